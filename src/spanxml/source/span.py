"""Text spans that remember where they came from.

A :class:`Span` is a view of a range of a backing string plus the absolute
offset of that text in the original document. Views are sliced lazily so a
tag span covering most of a large document costs no more than a leaf span.
"""

from typing import TYPE_CHECKING, Tuple

if TYPE_CHECKING:
    from spanxml.source.arena import SourceArena

_REPR_PREVIEW = 40


class Span:
    """Text with an absolute character offset into its source document."""

    __slots__ = ("_backing", "_begin", "_end", "_start")

    def __init__(self, text: str = "", start: int = 0) -> None:
        self._backing = text
        self._begin = 0
        self._end = len(text)
        self._start = start

    @classmethod
    def from_source(cls, source: str, begin: int, end: int) -> "Span":
        """Create a view of ``source[begin:end]`` located at ``begin``."""
        span = cls.__new__(cls)
        span._backing = source
        span._begin = begin
        span._end = end
        span._start = begin
        return span

    @classmethod
    def end_of(cls, source: str) -> "Span":
        """Empty span positioned at the final character of ``source``."""
        offset = max(len(source) - 1, 0)
        return cls.from_source(source, offset, offset)

    @property
    def text(self) -> str:
        return self._backing[self._begin:self._end]

    @property
    def start(self) -> int:
        return self._start

    @property
    def end(self) -> int:
        """Offset one past the last character of the span."""
        return self._start + (self._end - self._begin)

    def extend(self, other: "Span", source: str) -> "Span":
        """Return the span covering both ``self`` and ``other`` in ``source``."""
        begin = min(self._start, other._start)
        end = max(self.end, other.end)
        return Span.from_source(source, begin, end)

    def set(self, text: str, arena: "SourceArena") -> None:
        """Replace the text with an arena copy of ``text``, keeping the offset."""
        self._backing = arena.alloc(text)
        self._begin = 0
        self._end = len(self._backing)

    def strip_offset(self) -> None:
        """Forget where the span came from by moving it to offset 0."""
        self._start = 0

    def position(self, source: str) -> Tuple[int, int]:
        """Compute the 1-based (row, column) of the span start in ``source``.

        Linear in the offset; only meant for error reporting.
        """
        offset = min(self._start, len(source))
        row = source.count("\n", 0, offset) + 1
        col = offset - (source.rfind("\n", 0, offset) + 1) + 1
        return row, col

    def __len__(self) -> int:
        return self._end - self._begin

    def __str__(self) -> str:
        return self.text

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Span):
            return self._start == other._start and self.text == other.text
        if isinstance(other, str):
            return self.text == other
        return NotImplemented

    # Spans change through set(), so they cannot be dictionary keys.
    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        text = self.text
        if len(text) > _REPR_PREVIEW:
            text = text[:_REPR_PREVIEW] + "..."
        return f"Span({text!r}, start={self._start})"
