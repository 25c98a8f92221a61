"""Source text ownership: the string arena and positioned spans."""

from .arena import SourceArena
from .span import Span

__all__ = [
    "SourceArena",
    "Span",
]
