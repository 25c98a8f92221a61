"""Append-only string pool backing decoded and mutated spans.

The arena owns every string allocated through it for as long as the arena
itself is alive, so spans pointing into it never outlive their text.
"""

from typing import List, Optional

from spanxml.shared.config import ArenaConfig
from spanxml.shared.errors import ArenaAllocationError
from spanxml.shared.logging import get_logger


class SourceArena:
    """Pool of strings with an optional character capacity."""

    def __init__(
        self,
        config: Optional[ArenaConfig] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        self.config = config or ArenaConfig()
        self.logger = get_logger(__name__, correlation_id, "arena")
        self._chunks: List[str] = []
        self._size = 0

    @property
    def size(self) -> int:
        """Number of characters currently held by the arena."""
        return self._size

    @property
    def available(self) -> Optional[int]:
        """Remaining capacity in characters, or None when unbounded."""
        if self.config.max_chars is None:
            return None
        return self.config.max_chars - self._size

    def alloc(self, text: str) -> str:
        """Store ``text`` in the arena and return the arena-owned string.

        Raises:
            ArenaAllocationError: If the allocation would exceed ``max_chars``
        """
        available = self.available
        if available is not None and len(text) > available:
            raise ArenaAllocationError(len(text), available)

        self._chunks.append(text)
        self._size += len(text)
        return text

    def try_alloc(self, text: str) -> Optional[str]:
        """Like :meth:`alloc`, but return None instead of raising."""
        try:
            return self.alloc(text)
        except ArenaAllocationError as e:
            self.logger.warning(
                "Arena allocation refused",
                extra={"requested": e.requested, "available": e.available}
            )
            return None

    def __len__(self) -> int:
        return len(self._chunks)

    def __repr__(self) -> str:
        return (
            f"SourceArena(allocations={len(self._chunks)}, size={self._size}, "
            f"max_chars={self.config.max_chars})"
        )
