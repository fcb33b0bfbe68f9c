"""Plain-text extraction for uploaded files (UTF-8 text and .docx)."""

from __future__ import annotations

import io
import zipfile
from pathlib import PurePath

import docx
from docx.opc.exceptions import PackageNotFoundError

from phase_assistant.application.exceptions import ExtractionError

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_EXTENSIONS = {".txt", ".md", ".markdown"}


def guess_mime_type(file_name: str, declared: str | None = None) -> str:
    if declared and declared != "application/octet-stream":
        return declared
    suffix = PurePath(file_name).suffix.lower()
    if suffix == ".docx":
        return DOCX_MIME
    if suffix in (".md", ".markdown"):
        return "text/markdown"
    if suffix == ".txt":
        return "text/plain"
    return declared or "application/octet-stream"


def extract_text(file_name: str, content: bytes, mime_type: str | None = None) -> str:
    """Return the plain text of an uploaded file.

    Raises:
        ExtractionError: For unsupported types and unreadable content.
    """
    suffix = PurePath(file_name).suffix.lower()
    mime = guess_mime_type(file_name, mime_type)

    if suffix == ".docx" or mime == DOCX_MIME:
        return _extract_docx(file_name, content)
    if suffix in TEXT_EXTENSIONS or mime.startswith("text/"):
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ExtractionError(f"{file_name} is not valid UTF-8 text") from exc
    raise ExtractionError(f"Unsupported file type for {file_name} ({mime}); upload .txt, .md or .docx")


def _extract_docx(file_name: str, content: bytes) -> str:
    """Join paragraph text; Word heading styles become Markdown headings."""
    try:
        document = docx.Document(io.BytesIO(content))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
        raise ExtractionError(f"{file_name} is not a readable .docx file") from exc

    lines: list[str] = []
    for para in document.paragraphs:
        text = para.text.strip()
        if not text:
            continue
        style = para.style.name if para.style is not None else ""
        if style.startswith("Heading "):
            level = style.removeprefix("Heading ").strip()
            if level.isdigit() and 1 <= int(level) <= 6:
                lines.append(f"{'#' * int(level)} {text}")
                continue
        if style == "Title":
            lines.append(f"# {text}")
            continue
        lines.append(text)
    return "\n".join(lines)
