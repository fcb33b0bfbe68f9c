"""Tolerant decoder for list-shaped splitter output.

Generative splitters tend to wrap the requested JSON list in chatter or
code fences and to emit raw newlines inside string values. The decoder
recovers the list when it can and otherwise returns an error variant;
it never raises.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field

from phase_assistant.domain.models import ChunkDraft

# C0 controls except \t \n \r
_STRAY_CONTROL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

_IN_STRING_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


@dataclass
class ChunkDecodeResult:
    records: list[ChunkDraft] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def extract_list_candidate(raw: str) -> str | None:
    """Return the substring from the first ``[`` to the last ``]``."""
    start = raw.find("[")
    end = raw.rfind("]")
    if start == -1 or end == -1 or end < start:
        return None
    return raw[start : end + 1]


def escape_string_whitespace(candidate: str) -> str:
    """Escape literal newline, carriage-return and tab inside JSON strings.

    Whitespace between tokens is left alone, so pretty-printed lists
    survive unchanged.
    """
    out: list[str] = []
    in_string = False
    escaped = False
    for ch in candidate:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            elif ch in _IN_STRING_ESCAPES:
                out.append(_IN_STRING_ESCAPES[ch])
                continue
        elif ch == '"':
            in_string = True
        out.append(ch)
    return "".join(out)


def decode_chunk_list(raw: str) -> ChunkDecodeResult:
    """Decode splitter output into ``ChunkDraft`` records.

    Accepts items shaped ``{"header": ..., "content": ...}`` or
    ``{"section": ..., "content": ...}``.
    """
    if not raw or not raw.strip():
        return ChunkDecodeResult(error="splitter returned no output")

    candidate = extract_list_candidate(raw)
    if candidate is None:
        return ChunkDecodeResult(error="no list delimiters found in splitter output")

    candidate = _STRAY_CONTROL.sub("", candidate)
    candidate = escape_string_whitespace(candidate)

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        return ChunkDecodeResult(error=f"splitter output is not valid JSON: {exc.msg} at {exc.pos}")

    if not isinstance(parsed, list):
        return ChunkDecodeResult(error="splitter output is not a list")

    records: list[ChunkDraft] = []
    for i, item in enumerate(parsed):
        if not isinstance(item, dict):
            return ChunkDecodeResult(error=f"item {i} is not an object")
        content = item.get("content")
        header = item.get("header", item.get("section", ""))
        if not isinstance(content, str):
            return ChunkDecodeResult(error=f"item {i} has no string 'content'")
        if header is None:
            header = ""
        if not isinstance(header, str):
            return ChunkDecodeResult(error=f"item {i} has a non-string header")
        records.append(ChunkDraft(section=header.strip().lstrip("#").strip(), content=content))

    return ChunkDecodeResult(records=records)
