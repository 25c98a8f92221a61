"""Primitive binary encoder and decoder.

Layout of the primitives, all little-endian:

- ``u8``: one byte; ``bool``: one byte, any non-zero value reads as true
- ``usize``: eight bytes
- ``str``: ``usize`` byte length followed by UTF-8 bytes
- optional: ``u8`` presence flag followed by the value when present
- sequence: ``usize`` item count followed by the items
- span: in header mode ``usize`` start and ``usize`` length into the source
  header; in inline mode ``usize`` start followed by the text as ``str``

Streams start with a four byte magic identifying the string format.
"""

import struct
from typing import Callable, List, Optional, TypeVar

from spanxml.shared.config import BinaryConfig, StringFormat
from spanxml.shared.errors import (
    ArenaAllocationError,
    BinDecodeError,
    BinDecodeErrorKind,
    BinEncodeError,
)
from spanxml.source.arena import SourceArena
from spanxml.source.span import Span

T = TypeVar("T")

MAGIC_HEADER = b"SXH\x01"
MAGIC_INLINE = b"SXI\x01"
MAGIC_LENGTH = 4

_MAGIC_FORMATS = {
    MAGIC_HEADER: StringFormat.HEADER,
    MAGIC_INLINE: StringFormat.INLINE,
}

_USIZE = struct.Struct("<Q")


class Encoder:
    """Append-only binary writer.

    When constructed with a ``source``, spans are written as offsets into it
    (header mode); otherwise every span carries its own text (inline mode).
    """

    def __init__(
        self,
        source: Optional[str] = None,
        config: Optional[BinaryConfig] = None
    ) -> None:
        self.source = source
        self.config = config or BinaryConfig()
        self._buffer = bytearray()

    @property
    def string_format(self) -> StringFormat:
        return StringFormat.HEADER if self.source is not None else StringFormat.INLINE

    def getvalue(self) -> bytes:
        """Return the encoded bytes."""
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def write_magic(self) -> None:
        """Write the stream magic and, in header mode, the source header."""
        if self.source is not None:
            self._buffer += MAGIC_HEADER
            self.write_str(self.source)
        else:
            self._buffer += MAGIC_INLINE

    def write_u8(self, value: int) -> None:
        self._buffer.append(value)

    def write_bool(self, value: bool) -> None:
        self._buffer.append(1 if value else 0)

    def write_usize(self, value: int) -> None:
        self._buffer += _USIZE.pack(value)

    def write_str(self, text: str) -> None:
        encoded = text.encode("utf-8")
        self.write_usize(len(encoded))
        self._buffer += encoded

    def write_optional(self, value: Optional[T], writer: Callable[[T], None]) -> None:
        if value is None:
            self.write_u8(0)
        else:
            self.write_u8(1)
            writer(value)

    def write_sequence(self, items: List[T], writer: Callable[[T], None]) -> None:
        self.write_usize(len(items))
        for item in items:
            writer(item)

    def write_span(self, span: Span) -> None:
        if self.source is None:
            self.write_usize(span.start)
            self.write_str(span.text)
            return

        if self.config.verify_header_spans:
            self._verify_span(span)
        self.write_usize(span.start)
        self.write_usize(len(span))

    def _verify_span(self, span: Span) -> None:
        recorded = self.source[span.start:span.start + len(span)]
        if recorded != span.text:
            raise BinEncodeError(
                f"Span text at offset {span.start} no longer matches the source "
                f"header; encode without a source to use inline strings",
                offset=span.start,
            )


class Decoder:
    """Bounds-checked binary reader.

    Inline strings are allocated into ``arena``; in header mode spans are views
    into the source header, which is allocated into the arena once.
    """

    def __init__(
        self,
        data: bytes,
        source: Optional[str] = None,
        arena: Optional[SourceArena] = None,
        config: Optional[BinaryConfig] = None
    ) -> None:
        self._data = bytes(data)
        self.cursor = 0
        self.source = source
        self.arena = arena if arena is not None else SourceArena()
        self.config = config or BinaryConfig()

    @property
    def remaining(self) -> int:
        return len(self._data) - self.cursor

    def with_source(self, source: str) -> None:
        """Switch to header mode: spans become offsets into ``source``."""
        self.source = source

    def read_magic(self) -> StringFormat:
        """Read the stream magic, loading the source header in header mode."""
        magic = self._data[:MAGIC_LENGTH]
        string_format = _MAGIC_FORMATS.get(magic)
        if string_format is None:
            raise BinDecodeError(
                BinDecodeErrorKind.INVALID_HEADER, f"unknown magic {magic!r}", 0
            )
        self.cursor = MAGIC_LENGTH

        if string_format is StringFormat.HEADER:
            self.with_source(self.alloc(self.read_str()))
        return string_format

    def read_bytes(self, count: int) -> bytes:
        end = self.cursor + count
        if end > len(self._data):
            raise BinDecodeError(
                BinDecodeErrorKind.UNEXPECTED_EOF,
                f"needed {count} bytes, {self.remaining} left",
                self.cursor,
            )
        chunk = self._data[self.cursor:end]
        self.cursor = end
        return chunk

    def read_u8(self) -> int:
        if self.cursor >= len(self._data):
            raise BinDecodeError(BinDecodeErrorKind.UNEXPECTED_EOF, offset=self.cursor)
        value = self._data[self.cursor]
        self.cursor += 1
        return value

    def read_bool(self) -> bool:
        return self.read_u8() != 0

    def read_usize(self) -> int:
        (value,) = _USIZE.unpack(self.read_bytes(_USIZE.size))
        return value

    def read_str(self) -> str:
        offset = self.cursor
        raw = self.read_bytes(self.read_usize())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise BinDecodeError(BinDecodeErrorKind.INVALID_UTF8, str(e), offset) from e

    def read_count(self) -> int:
        """Read a sequence length, rejecting counts the data cannot hold.

        Every encoded item takes at least one byte, so a count larger than the
        remaining data can only come from a truncated or corrupt stream.
        """
        offset = self.cursor
        count = self.read_usize()
        if count > self.remaining:
            raise BinDecodeError(
                BinDecodeErrorKind.UNEXPECTED_EOF,
                f"sequence of {count} items exceeds the {self.remaining} bytes left",
                offset,
            )
        return count

    def read_optional(self, reader: Callable[[], T]) -> Optional[T]:
        if self.read_u8() == 0:
            return None
        return reader()

    def read_sequence(self, reader: Callable[[], T]) -> List[T]:
        return [reader() for _ in range(self.read_count())]

    def read_span(self) -> Span:
        offset = self.cursor
        start = self.read_usize()
        if self.source is None:
            return Span(self.alloc(self.read_str()), start)

        length = self.read_usize()
        if start + length > len(self.source):
            raise BinDecodeError(
                BinDecodeErrorKind.SPAN_OUT_OF_RANGE,
                f"span {start}..{start + length} in a source of {len(self.source)} "
                f"characters",
                offset,
            )
        return Span.from_source(self.source, start, start + length)

    def read_enum(self, enum_type: Callable[[int], T]) -> T:
        offset = self.cursor
        value = self.read_u8()
        try:
            return enum_type(value)
        except ValueError as e:
            raise BinDecodeError(
                BinDecodeErrorKind.INVALID_ENUM_VARIANT,
                f"{getattr(enum_type, '__name__', 'enum')} value {value}",
                offset,
            ) from e

    def alloc(self, text: str) -> str:
        try:
            return self.arena.alloc(text)
        except (ArenaAllocationError, MemoryError) as e:
            raise BinDecodeError(
                BinDecodeErrorKind.ALLOCATION, str(e), self.cursor
            ) from e

