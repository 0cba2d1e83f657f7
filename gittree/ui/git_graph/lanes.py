"""
Lane allocation for the commit graph.

Lanes live in an arena of LaneSlot records addressed by index. Free slots are
kept on a min-heap so allocation always hands out the lowest free index, which
keeps the main line leftmost and bundles side branches to the right.
"""

import heapq
from collections.abc import Iterable
from dataclasses import dataclass


@dataclass
class LaneSlot:
    """One column of the graph and the commit expected next in it."""

    index: int
    occupant: str | None = None

    @property
    def is_free(self) -> bool:
        return self.occupant is None


class LaneAllocator:
    """Arena of lane slots with an explicit free list."""

    def __init__(self) -> None:
        self._slots: list[LaneSlot] = []
        self._free: list[int] = []
        # occupant oid -> indices of the slots waiting for it
        self._by_occupant: dict[str, list[int]] = {}

    def allocate(self, occupant: str, exclude: Iterable[int] = ()) -> int:
        """Claim the lowest free slot not in `exclude` for `occupant`."""
        excluded = set(exclude)
        skipped: list[int] = []
        index: int | None = None

        while self._free:
            candidate = heapq.heappop(self._free)
            if candidate in excluded:
                skipped.append(candidate)
                continue
            index = candidate
            break

        for candidate in skipped:
            heapq.heappush(self._free, candidate)

        if index is None:
            index = len(self._slots)
            self._slots.append(LaneSlot(index))

        self._set_occupant(index, occupant)
        return index

    def assign(self, index: int, occupant: str) -> None:
        """Hand an already claimed slot over to a new occupant."""
        slot = self._slots[index]
        if slot.is_free:
            raise ValueError(f"Lane {index} is not allocated")
        self._clear_occupant(index)
        self._set_occupant(index, occupant)

    def release(self, index: int) -> None:
        """Return a slot to the free list."""
        slot = self._slots[index]
        if slot.is_free:
            return
        self._clear_occupant(index)
        heapq.heappush(self._free, index)

    def release_all(self) -> list[int]:
        """Free every occupied slot and return their indices."""
        released = self.active_lanes()
        for index in released:
            self.release(index)
        return released

    def lanes_of(self, occupant: str) -> list[int]:
        """Indices of slots waiting for `occupant`, lowest first."""
        return sorted(self._by_occupant.get(occupant, ()))

    def occupant(self, index: int) -> str | None:
        if index >= len(self._slots):
            return None
        return self._slots[index].occupant

    def active_lanes(self) -> list[int]:
        return [slot.index for slot in self._slots if not slot.is_free]

    @property
    def active_count(self) -> int:
        return len(self._slots) - len(self._free)

    @property
    def width(self) -> int:
        """One past the highest occupied slot."""
        for slot in reversed(self._slots):
            if not slot.is_free:
                return slot.index + 1
        return 0

    def _set_occupant(self, index: int, occupant: str) -> None:
        self._slots[index].occupant = occupant
        self._by_occupant.setdefault(occupant, []).append(index)

    def _clear_occupant(self, index: int) -> None:
        slot = self._slots[index]
        if slot.occupant is None:
            return
        waiting = self._by_occupant.get(slot.occupant, [])
        if index in waiting:
            waiting.remove(index)
        if not waiting:
            self._by_occupant.pop(slot.occupant, None)
        slot.occupant = None
