"""Structured content parts rendered by the UI."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class TextPart(BaseModel):
    """Plain text content part."""

    type: Literal["text"] = "text"
    text: str


class CodePart(BaseModel):
    """Code block content part."""

    type: Literal["code"] = "code"
    code: str
    language: str | None = None


class ListPart(BaseModel):
    """Bulleted or numbered list content part."""

    type: Literal["list"] = "list"
    items: list[str]
    ordered: bool | None = None


class HeadingPart(BaseModel):
    """Heading content part."""

    type: Literal["heading"] = "heading"
    text: str
    level: int | None = None


class BlockquotePart(BaseModel):
    """Blockquote content part."""

    type: Literal["blockquote"] = "blockquote"
    text: str


class ErrorPart(BaseModel):
    """Content-level error (distinct from a stream_error chunk)."""

    type: Literal["error"] = "error"
    message: str


class OtherPart(BaseModel):
    """Unrecognised fragment preserved as a JSON string."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["other"] = "other"
    payload: str = Field(alias="json")


ContentPart = Annotated[
    TextPart | CodePart | ListPart | HeadingPart | BlockquotePart | ErrorPart | OtherPart,
    Field(discriminator="type"),
]
