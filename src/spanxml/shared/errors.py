"""Exception taxonomy for parsing, binary coding and arena allocation.

Structural and lexical failures raised while building a tree are reported as
:class:`XmlError`, which carries an :class:`ErrorContext` pointing at the
offending span. Rendering an error computes the row and column lazily, so the
cost of a position scan is only paid on the failure path.
"""

from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from spanxml.source.span import Span


class SpanXmlError(Exception):
    """Base exception for every error raised by the package."""


class XmlErrorKind(Enum):
    """Kinds of errors reported while parsing a document."""

    CUSTOM = "{detail}"
    DECLARATION_NOT_FIRST = (
        "The <?xml> declaration must appear at the start of the document"
    )
    UNCLOSED_TAG = "Unclosed tag: {detail}"
    UNEXPECTED_EOF = "End of file reached unexpectedly"
    SYNTAX = "XML parser error: {detail}"
    IO = "IO error: {detail}"
    ALLOCATION = "Memory allocation error: {detail}"
    DEPTH_LIMIT_EXCEEDED = "Maximum nesting depth exceeded: {detail}"

    def render(self, detail: str = "") -> str:
        """Format the message template for this kind."""
        return self.value.format(detail=detail)


class ErrorContext:
    """Location of an error in the parsed source.

    Holds the full source for row/column computation, the offending span and
    an optional path of the file the source was read from.
    """

    def __init__(
        self,
        source: str,
        span: Optional["Span"] = None,
        path: Optional[Union[str, Path]] = None,
    ) -> None:
        self.source = source
        self.span = span
        self.path = Path(path) if path is not None else None

    @property
    def offset(self) -> int:
        """Absolute offset of the error in the source."""
        return self.span.start if self.span is not None else 0

    def position(self) -> tuple:
        """Return the 1-based (row, column) of the error."""
        if self.span is None:
            return (1, 1)
        return self.span.position(self.source)

    def excerpt(self) -> str:
        """First line of the offending span's text."""
        if self.span is None:
            return ""
        return self.span.text.split("\n", 1)[0]

    def __str__(self) -> str:
        lines = []
        line = self.excerpt()
        if line:
            lines.append(f"| {line}")

        if self.source:
            row, col = self.position()
            location = f"{self.path}:" if self.path is not None else ""
            lines.append(f"= At {location}{row}:{col}")
        elif self.path is not None:
            lines.append(f"= In {self.path}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"ErrorContext(offset={self.offset!r}, path={self.path!r}, "
            f"source_length={len(self.source)})"
        )


class XmlError(SpanXmlError):
    """An error that occurred while parsing or loading a document."""

    def __init__(
        self,
        kind: XmlErrorKind,
        context: Optional[ErrorContext] = None,
        detail: str = "",
    ) -> None:
        self.kind = kind
        self.context = context if context is not None else ErrorContext("")
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        """The specific message, without location information."""
        return self.kind.render(self.detail)

    def with_path(self, path: Union[str, Path]) -> "XmlError":
        """Attach the path of the file being parsed to the error context."""
        self.context.path = Path(path)
        return self

    @classmethod
    def from_os_error(
        cls, error: OSError, path: Optional[Union[str, Path]] = None
    ) -> "XmlError":
        """Wrap an I/O failure while reading a source file."""
        return cls(XmlErrorKind.IO, ErrorContext("", None, path), detail=str(error))

    def __str__(self) -> str:
        rendered = str(self.context)
        message_lines = "\n".join(f"= {line}" for line in self.message.splitlines())
        if rendered:
            return f"{rendered}\n{message_lines}"
        return message_lines


class XmlSyntaxError(SpanXmlError):
    """Lexical error raised by the tokenizer at a given source offset."""

    def __init__(self, message: str, offset: int) -> None:
        super().__init__(f"{message} at offset {offset}")
        self.reason = message
        self.offset = offset


class BinDecodeErrorKind(Enum):
    """Failure modes of the binary decoder."""

    UNEXPECTED_EOF = "End of file; expected more data"
    INVALID_UTF8 = "Invalid UTF-8 string"
    INVALID_ENUM_VARIANT = "Invalid enum variant"
    INVALID_HEADER = "Data did not have a valid header"
    SPAN_OUT_OF_RANGE = "Span lies outside of the source header"
    ALLOCATION = "Memory allocation error"
    DEPTH_LIMIT_EXCEEDED = "Maximum nesting depth exceeded"


class BinDecodeError(SpanXmlError):
    """Error occurred while decoding binary data."""

    def __init__(
        self,
        kind: BinDecodeErrorKind,
        detail: Optional[str] = None,
        offset: Optional[int] = None,
    ) -> None:
        self.kind = kind
        self.detail = detail
        self.offset = offset
        message = kind.value
        if detail:
            message = f"{message}: {detail}"
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message)


class BinEncodeError(SpanXmlError):
    """Error occurred while encoding a tree to binary."""

    def __init__(self, message: str, offset: Optional[int] = None) -> None:
        super().__init__(message)
        self.offset = offset


class ArenaAllocationError(SpanXmlError):
    """Raised when an arena cannot hold a requested allocation."""

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            f"Cannot allocate {requested} characters; {available} available in arena"
        )
        self.requested = requested
        self.available = available
