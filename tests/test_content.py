"""Tests for content normalization."""

from worldsmith.models.content import (
    BlockquotePart,
    CodePart,
    ErrorPart,
    HeadingPart,
    ListPart,
    OtherPart,
    TextPart,
)
from worldsmith.utils.content import content_to_parts, content_to_text, parts_to_dicts, safe_json


class TestContentToText:
    """Tests for plain-text extraction."""

    def test_string_passthrough(self):
        assert content_to_text("Hello") == "Hello"

    def test_text_fragments_joined(self):
        """Test that only strings and text fragments contribute."""
        content = [
            {"type": "text", "text": "Hello "},
            {"type": "tool_use", "name": "add", "input": {}},
            "world",
            {"type": "text", "text": 42},
            object(),
        ]

        assert content_to_text(content) == "Hello world"

    def test_other_shapes_are_empty(self):
        """Test that unsupported content yields an empty string."""
        assert content_to_text(None) == ""
        assert content_to_text({"type": "text", "text": "dict is not a list"}) == ""


class TestContentToParts:
    """Tests for structured part normalization."""

    def test_string_becomes_text_part(self):
        assert content_to_parts("Hi") == [TextPart(text="Hi")]

    def test_known_fragment_types(self):
        """Test every recognised fragment type."""
        content = [
            {"type": "text", "text": "Intro"},
            {"type": "code", "code": "print(1)", "language": "python"},
            {"type": "list", "items": ["a", 2], "ordered": True},
            {"type": "heading", "text": "Nations", "level": 2},
            {"type": "blockquote", "text": "Quoted"},
            {"type": "error", "message": "Tool failed"},
            "bare string",
        ]

        assert content_to_parts(content) == [
            TextPart(text="Intro"),
            CodePart(code="print(1)", language="python"),
            ListPart(items=["a", "2"], ordered=True),
            HeadingPart(text="Nations", level=2),
            BlockquotePart(text="Quoted"),
            ErrorPart(message="Tool failed"),
            TextPart(text="bare string"),
        ]

    def test_optional_fields_dropped_when_invalid(self):
        """Test that wrongly typed optional fields are omitted."""
        parts = content_to_parts(
            [
                {"type": "code", "code": "x", "language": 3},
                {"type": "list", "items": "not a list", "ordered": "yes"},
                {"type": "heading", "text": "H", "level": True},
            ]
        )

        assert parts == [
            CodePart(code="x"),
            ListPart(items=[]),
            HeadingPart(text="H"),
        ]

    def test_error_without_message(self):
        """Test the default error message."""
        assert content_to_parts([{"type": "error"}]) == [ErrorPart(message="Unknown error")]

    def test_unknown_fragment_kept_as_compact_json(self):
        """Test that unknown fragments are preserved verbatim as JSON."""
        parts = content_to_parts([{"type": "weird"}])

        assert parts == [OtherPart(payload='{"type":"weird"}')]
        assert parts_to_dicts(parts) == [{"type": "other", "json": '{"type":"weird"}'}]

    def test_normalized_other_passes_through(self):
        """Test that an already normalized other part is not wrapped again."""
        parts = content_to_parts([{"type": "other", "json": '{"a":1}'}])

        assert parts == [OtherPart(payload='{"a":1}')]

    def test_unsupported_content(self):
        assert content_to_parts(None) == []


class TestSafeJson:
    """Tests for display serialization."""

    def test_compact_output(self):
        assert safe_json({"a": [1, 2]}) == '{"a":[1,2]}'

    def test_unserializable_falls_back_to_str(self):
        value = {1, 2}
        assert safe_json(value) == str(value)


class TestNormalizerConsistency:
    """Properties that tie the two normalizers together."""

    def test_text_parts_concatenate_to_text(self):
        """Test that text parts of a text-only list add up to content_to_text."""
        content = [{"type": "text", "text": "The "}, "Silverrun ", {"type": "text", "text": "flows west"}]

        parts = content_to_parts(content)

        assert "".join(part.text for part in parts) == content_to_text(content)

    def test_reparsing_parts_is_stable(self):
        """Test that feeding normalized parts back in returns the same parts."""
        content = [
            {"type": "heading", "text": "H", "level": 2},
            {"type": "list", "items": ["a"], "ordered": False},
            {"type": "weird", "value": 1},
            {"type": "error"},
            "plain",
        ]

        once = content_to_parts(content)
        twice = content_to_parts(parts_to_dicts(once))

        assert twice == once
