"""Normalization of model response content.

Providers return either a plain string or a list of heterogeneous fragments
(dicts with a `type`, bare strings, SDK objects). These helpers turn that into
plain text or into the closed set of UI content parts. Neither raises.
"""

import json
from typing import Any

from worldsmith.models.content import (
    BlockquotePart,
    CodePart,
    ContentPart,
    ErrorPart,
    HeadingPart,
    ListPart,
    OtherPart,
    TextPart,
)

UNKNOWN_ERROR_MESSAGE = "Unknown error"


def content_to_text(content: Any) -> str:
    """Extract plain text from model content.

    Strings pass through. For lists only bare strings and `type: "text"`
    fragments contribute. Anything else yields an empty string.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(_fragment_text(part) for part in content)
    return ""


def _fragment_text(part: Any) -> str:
    if isinstance(part, str):
        return part
    if isinstance(part, dict) and part.get("type") == "text":
        text = part.get("text")
        if isinstance(text, str):
            return text
    return ""


def safe_json(value: Any) -> str:
    """Compact JSON for display, falling back to `str()`."""
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def content_to_parts(content: Any) -> list[ContentPart]:
    """Normalize model content into structured content parts."""
    if isinstance(content, str):
        return [TextPart(text=content)]
    if isinstance(content, list):
        return [_fragment_to_part(part) for part in content]
    return []


def _fragment_to_part(part: Any) -> ContentPart:
    if isinstance(part, str):
        return TextPart(text=part)
    if not isinstance(part, dict):
        return OtherPart(payload=safe_json(part))

    match part.get("type"):
        case "text":
            return TextPart(text=_str_or(part.get("text"), ""))
        case "code":
            return CodePart(code=_str_or(part.get("code"), ""), language=_optional_str(part.get("language")))
        case "list":
            items = part.get("items")
            ordered = part.get("ordered")
            return ListPart(
                items=[str(item) for item in items] if isinstance(items, list) else [],
                ordered=ordered if isinstance(ordered, bool) else None,
            )
        case "heading":
            level = part.get("level")
            return HeadingPart(
                text=_str_or(part.get("text"), ""),
                level=level if isinstance(level, int) and not isinstance(level, bool) else None,
            )
        case "blockquote":
            return BlockquotePart(text=_str_or(part.get("text"), ""))
        case "error":
            return ErrorPart(message=_str_or(part.get("message"), UNKNOWN_ERROR_MESSAGE) or UNKNOWN_ERROR_MESSAGE)
        case "other" if isinstance(part.get("json"), str):
            # Already normalized
            return OtherPart(payload=part["json"])
        case _:
            return OtherPart(payload=safe_json(part))


def _str_or(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def parts_to_dicts(parts: list[ContentPart]) -> list[dict[str, Any]]:
    """Serialize parts for the wire (camelCase aliases, no empty optionals)."""
    return [part.model_dump(by_alias=True, exclude_none=True) for part in parts]
