"""Semantic chunker: splits document text at its most senior heading level.

Sub-headers stay inside the content of the chunk they belong to. The split
itself is delegated to a splitter (a generative agent or the rule-based
``HeadingSplitter``) whose raw output goes through the tolerant decoder.
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass

from loguru import logger

from phase_assistant.application.chunk_decoder import decode_chunk_list
from phase_assistant.application.exceptions import ChunkingError
from phase_assistant.application.infrastructure.agent import classify_model_failure
from phase_assistant.application.infrastructure.agent_registry import AgentRegistry
from phase_assistant.application.infrastructure.prompts import CHUNKER_AGENT_KEY
from phase_assistant.domain.models import ChunkDraft
from phase_assistant.domain.protocols import ISplitter

DEFAULT_SECTION = "Document"

_ATX_HEADING = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?(?:[ \t]+#+)?[ \t]*$")
_FENCE = re.compile(r"^ {0,3}(```|~~~)")


# ---------------------------------------------------------------------------
# Heading detection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Heading:
    line_no: int
    level: int
    title: str


def find_headings(text: str) -> list[Heading]:
    """Return ATX headings outside fenced code blocks."""
    headings: list[Heading] = []
    fence: str | None = None
    for i, line in enumerate(text.splitlines()):
        fence_match = _FENCE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker
            elif marker == fence:
                fence = None
            continue
        if fence is not None:
            continue
        m = _ATX_HEADING.match(line)
        if m:
            headings.append(Heading(line_no=i, level=len(m.group(1)), title=(m.group(2) or "").strip()))
    return headings


def _block(lines: list[str]) -> str:
    return "\n".join(lines).strip("\n").rstrip()


def split_at_level(text: str, level: int) -> tuple[str, list[ChunkDraft]]:
    """Split *text* at headings of *level*.

    Returns the text before the first such heading and one draft per heading.
    """
    lines = text.splitlines()
    starts = [h for h in find_headings(text) if h.level == level]
    if not starts:
        return _block(lines), []

    preamble = _block(lines[: starts[0].line_no])
    drafts: list[ChunkDraft] = []
    for n, heading in enumerate(starts):
        end = starts[n + 1].line_no if n + 1 < len(starts) else len(lines)
        drafts.append(ChunkDraft(section=heading.title, content=_block(lines[heading.line_no + 1 : end])))
    return preamble, drafts


# ---------------------------------------------------------------------------
# Splitters
# ---------------------------------------------------------------------------


class HeadingSplitter:
    """Deterministic splitter emitting the same list shape as the chunker agent."""

    async def split(self, text: str, level: int) -> str:
        _, drafts = split_at_level(text, level)
        return json.dumps(
            [{"header": d.section, "content": d.content} for d in drafts],
            ensure_ascii=False,
        )


class AgentSplitter:
    """Splitter backed by the ``chunker`` agent from the registry."""

    def __init__(self, registry: AgentRegistry, timeout_seconds: float = 600.0) -> None:
        self.registry = registry
        self.timeout_seconds = timeout_seconds

    async def split(self, text: str, level: int) -> str:
        instance = await self.registry.get(CHUNKER_AGENT_KEY)
        prompt = (
            f"Split the following Markdown document at its level-{level} headers "
            f"('{'#' * level} ').\n\n{text}"
        )
        try:
            result = await asyncio.wait_for(instance.agent.run(prompt), timeout=self.timeout_seconds)
        except Exception as exc:
            raise classify_model_failure(exc) from exc
        return result.output


# ---------------------------------------------------------------------------
# Chunker
# ---------------------------------------------------------------------------


class SemanticChunker:
    """Turns document text into an ordered list of ``ChunkDraft`` records."""

    def __init__(self, splitter: ISplitter) -> None:
        self.splitter = splitter

    async def chunk(self, text: str, file_name: str | None = None) -> list[ChunkDraft]:
        """Chunk *text*.

        Raises:
            ChunkingError: If the splitter output cannot be decoded.
        """
        if not text or not text.strip():
            return []

        headings = find_headings(text)
        if not headings:
            return [ChunkDraft(section=file_name or DEFAULT_SECTION, content=text.strip())]

        level = min(h.level for h in headings)
        top = [h for h in headings if h.level == level]
        lines = text.splitlines()
        preamble = _block(lines[: top[0].line_no])
        body = "\n".join(lines[top[0].line_no :])

        raw = await self.splitter.split(body, level)
        decoded = decode_chunk_list(raw)
        if not decoded.ok:
            logger.warning("Chunk decoding failed for {}: {}", file_name or "<text>", decoded.error)
            raise ChunkingError(f"Could not decode chunk list: {decoded.error}")

        records = list(decoded.records)
        if len(records) > len(top):
            # untitled empty headings are real sections; only trim surplus blanks
            records = [r for r in records if r.section or r.content.strip()] or records
        if not records:
            raise ChunkingError("Splitter returned an empty chunk list for a document with headings")

        if preamble:
            first = records[0]
            content = f"{preamble}\n\n{first.content}" if first.content else preamble
            records[0] = ChunkDraft(section=first.section, content=content)

        if len(records) != len(top):
            logger.warning(
                "Splitter returned {} chunks for {} level-{} headings in {}",
                len(records),
                len(top),
                level,
                file_name or "<text>",
            )
        logger.info("Chunked {} into {} sections at level {}", file_name or "<text>", len(records), level)
        return records
