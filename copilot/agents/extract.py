"""Text extraction — normalizes upstream response shapes into plain text.

The Responses API, Chat Completions and LangChain chat messages each put the
generated text somewhere different, and the layout shifts between model
families. Everything here degrades to an empty string instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)


def _read_value(value: object, key: str) -> object | None:
    if isinstance(value, Mapping):
        return value.get(key)
    return getattr(value, key, None)


def _read_sequence(value: object, key: str) -> tuple[object, ...]:
    candidate = _read_value(value, key)
    if isinstance(candidate, Sequence) and not isinstance(candidate, (str, bytes, bytearray)):
        return tuple(candidate)
    return ()


def _read_str(value: object, key: str) -> str | None:
    candidate = _read_value(value, key)
    if isinstance(candidate, str) and candidate.strip():
        return candidate
    return None


def _part_text(part: object) -> str | None:
    """Text of one content part: a plain string or an object with ``value``."""
    text = _read_value(part, "text")
    if isinstance(text, str):
        return text if text.strip() else None
    if text is not None:
        return _read_str(text, "value")
    return _read_str(part, "value")


def _extract(response: object) -> str:
    for key in ("output_text", "text"):
        direct = _read_str(response, key)
        if direct:
            return direct

    choices = _read_sequence(response, "choices")
    if choices:
        content = _read_str(_read_value(choices[0], "message"), "content")
        if content:
            return content

    chunks: list[str] = []
    for item in _read_sequence(response, "output"):
        for part in _read_sequence(item, "content"):
            text = _part_text(part)
            if text:
                chunks.append(text)
    return "\n".join(chunks)


def extract_text(response: object) -> str:
    """Return the best-effort plain text in an upstream response, or ``""``.

    Checked in order:
        output_text / text          — top-level convenience field
        choices[0].message.content  — chat-completions layout
        output[].content[].text     — responses layout; ``text`` may be a
                                      string or an object carrying ``value``
    Works on SDK objects and plain dicts alike.
    """
    if response is None:
        return ""
    try:
        return _extract(response)
    except Exception as e:  # noqa: BLE001 - SDK properties can raise on odd payloads
        logger.debug(f"Response text extraction failed ({type(e).__name__}): {e}")
        return ""


def message_text(content) -> str:
    """Normalize chat message content — a string or a list of content blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        # Content blocks: [{"type": "text", "text": "..."}]
        parts = []
        for block in content:
            if isinstance(block, dict):
                text = block.get("text")
                if isinstance(text, str):
                    parts.append(text)
            elif isinstance(block, str):
                parts.append(block)
        return "\n".join(parts)
    return ""
