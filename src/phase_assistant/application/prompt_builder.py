"""Ordered, named prompt sections rendered with a fixed delimiter scheme."""

from __future__ import annotations

from dataclasses import dataclass

SECTION_DELIMITER = "\n\n---\n\n"


@dataclass(frozen=True)
class PromptSection:
    name: str
    body: str
    tag: str | None = None

    def render(self) -> str:
        if self.tag:
            return f"<{self.tag}>\n{self.body}\n</{self.tag}>"
        return self.body


class PromptBuilder:
    """Collects sections in insertion order; blank optional sections are skipped."""

    def __init__(self) -> None:
        self._sections: list[PromptSection] = []

    def add(self, name: str, body: str | None, *, tag: str | None = None) -> PromptBuilder:
        if body is None or not body.strip():
            return self
        if any(s.name == name for s in self._sections):
            raise ValueError(f"duplicate prompt section '{name}'")
        self._sections.append(PromptSection(name=name, body=body.strip("\n"), tag=tag))
        return self

    @property
    def section_names(self) -> list[str]:
        return [s.name for s in self._sections]

    def build(self) -> str:
        return SECTION_DELIMITER.join(s.render() for s in self._sections)


def compose_turn_prompt(
    user_message: str,
    attached_document: str | None = None,
    retrieved_context: str | None = None,
    preamble: str | None = None,
) -> PromptBuilder:
    """Assemble a chat-turn prompt.

    Order: user request, attached document, retrieved context, phase preamble.
    ``retrieved_context`` arrives already wrapped by ``format_context``.
    """
    return (
        PromptBuilder()
        .add("request", f"Process the following user request:\n{user_message}")
        .add("document", attached_document, tag="user_document")
        .add("context", retrieved_context)
        .add("preamble", preamble)
    )
