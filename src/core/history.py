from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, List

if TYPE_CHECKING:  # pragma: no cover
    from .position import Position


@dataclass
class PositionHistory:
    """Chronological record of the positions reached in one game.

    Entries are detached snapshots: each is a copy whose own history is empty,
    so the record never nests. Only appending and a full clear are supported.
    """

    _positions: List["Position"] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator["Position"]:
        return iter(self._positions)

    def clear(self) -> None:
        self._positions.clear()

    def add_position(self, position: "Position") -> None:
        self._positions.append(position.clone())

    def latest(self) -> "Position":
        if not self._positions:
            raise IndexError("position history is empty")
        return self._positions[-1]

    def count(self, position: "Position") -> int:
        """Return how many recorded entries equal ``position``."""
        return sum(1 for p in self._positions if p == position)

    def has_threefold_repetition(self) -> bool:
        """Return True if the latest entry has occurred at least three times."""
        if len(self._positions) < 3:
            return False
        return self.count(self._positions[-1]) >= 3
