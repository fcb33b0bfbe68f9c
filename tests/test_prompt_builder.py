"""Tests for prompt section assembly."""

from __future__ import annotations

import pytest

from phase_assistant.application.prompt_builder import (
    SECTION_DELIMITER,
    PromptBuilder,
    compose_turn_prompt,
)


class TestPromptBuilder:
    def test_skips_blank_sections(self):
        builder = PromptBuilder().add("a", "one").add("b", "  \n").add("c", None).add("d", "two")
        assert builder.section_names == ["a", "d"]
        assert builder.build() == f"one{SECTION_DELIMITER}two"

    def test_tagged_section(self):
        assert PromptBuilder().add("doc", "body", tag="user_document").build() == (
            "<user_document>\nbody\n</user_document>"
        )

    def test_duplicate_name_rejected(self):
        builder = PromptBuilder().add("a", "one")
        with pytest.raises(ValueError):
            builder.add("a", "again")


class TestComposeTurnPrompt:
    def test_full_order(self):
        builder = compose_turn_prompt(
            "List the requirements",
            attached_document="The portal needs SSO.",
            retrieved_context="<retrieved_context>\n[1] ...\n</retrieved_context>",
            preamble="Step 1: read everything.",
        )

        assert builder.section_names == ["request", "document", "context", "preamble"]
        prompt = builder.build()
        assert prompt.startswith("Process the following user request:\nList the requirements")
        assert prompt.index("<user_document>") < prompt.index("<retrieved_context>") < prompt.index("Step 1")

    def test_optional_sections_omitted(self):
        builder = compose_turn_prompt("Hi", attached_document=None, retrieved_context="", preamble=None)
        assert builder.section_names == ["request"]
        assert builder.build() == "Process the following user request:\nHi"
