"""Tests for the error taxonomy and error rendering."""

from pathlib import Path

import pytest

from spanxml.shared.errors import (
    ArenaAllocationError,
    BinDecodeError,
    BinDecodeErrorKind,
    BinEncodeError,
    ErrorContext,
    SpanXmlError,
    XmlError,
    XmlErrorKind,
    XmlSyntaxError,
)
from spanxml.source.span import Span


class TestErrorContext:
    """Test suite for ErrorContext."""

    def test_position_is_one_based(self):
        """Test row and column computation for a span on the second line."""
        source = "<a>\n  <b>"
        context = ErrorContext(source, Span.from_source(source, 6, 9))

        assert context.position() == (2, 3)
        assert context.offset == 6

    def test_excerpt_uses_first_line_only(self):
        """Test that multi-line spans render only their first line."""
        source = "<a>\n<b>\n</a>"
        context = ErrorContext(source, Span.from_source(source, 4, len(source)))

        assert context.excerpt() == "<b>"

    def test_rendering_with_path(self):
        """Test rendering with an attached path."""
        source = "<root>"
        context = ErrorContext(source, Span.from_source(source, 0, 6), "doc.xml")

        assert str(context) == "| <root>\n= At doc.xml:1:1"

    def test_rendering_without_source(self):
        """Test rendering for errors that have no source text."""
        assert str(ErrorContext("")) == ""
        assert str(ErrorContext("", None, "missing.xml")) == "= In missing.xml"


class TestXmlError:
    """Test suite for XmlError."""

    def test_message_templates(self):
        """Test the messages rendered for each kind."""
        assert XmlError(XmlErrorKind.UNCLOSED_TAG, detail="b").message == "Unclosed tag: b"
        assert XmlError(XmlErrorKind.UNEXPECTED_EOF).message == (
            "End of file reached unexpectedly"
        )
        assert XmlError(XmlErrorKind.CUSTOM, detail="anything").message == "anything"
        assert XmlError(XmlErrorKind.DECLARATION_NOT_FIRST).message.startswith(
            "The <?xml> declaration"
        )

    def test_full_rendering(self):
        """Test excerpt, location and message lines together."""
        source = "<a><b>x</a>"
        error = XmlError(
            XmlErrorKind.UNCLOSED_TAG,
            ErrorContext(source, Span.from_source(source, 7, 11)),
            "b",
        )

        assert str(error) == "| </a>\n= At 1:8\n= Unclosed tag: b"

    def test_with_path(self):
        """Test attaching a path after the fact."""
        source = "<a>"
        error = XmlError(
            XmlErrorKind.UNEXPECTED_EOF, ErrorContext(source, Span.end_of(source))
        )

        returned = error.with_path("input.xml")

        assert returned is error
        assert error.context.path == Path("input.xml")
        assert "= At input.xml:1:3" in str(error)

    def test_from_os_error(self):
        """Test wrapping an I/O failure."""
        error = XmlError.from_os_error(FileNotFoundError("No such file"), "gone.xml")

        assert error.kind is XmlErrorKind.IO
        assert str(error) == "= In gone.xml\n= IO error: No such file"

    def test_hierarchy(self):
        """Test that all package errors share one base class."""
        for error_type in (
            XmlError, XmlSyntaxError, BinDecodeError, BinEncodeError, ArenaAllocationError
        ):
            assert issubclass(error_type, SpanXmlError)


class TestOtherErrors:
    """Test suite for the lexical, binary and arena errors."""

    def test_syntax_error(self):
        """Test that syntax errors keep the reason and offset apart."""
        error = XmlSyntaxError("Expected a name", 12)

        assert error.reason == "Expected a name"
        assert error.offset == 12
        assert str(error) == "Expected a name at offset 12"

    def test_bin_decode_error_message(self):
        """Test decode error message composition."""
        error = BinDecodeError(BinDecodeErrorKind.UNEXPECTED_EOF, "needed 8 bytes", 4)

        assert str(error) == "End of file; expected more data: needed 8 bytes (at byte 4)"
        assert error.offset == 4

    def test_arena_allocation_error(self):
        """Test the arena allocation error fields."""
        with pytest.raises(ArenaAllocationError, match="Cannot allocate 10 characters") as info:
            raise ArenaAllocationError(10, 3)
        assert info.value.requested == 10
        assert info.value.available == 3
