"""Registry index — insertion-ordered doubly linked list over project ids.

The index is an arena: a dict from id to a slot holding the prev/next ids.
Slot 0 is the sentinel. Its ``next`` is the head (newest project) and its
``prev`` is the tail (oldest project). An empty index is the sentinel
pointing at itself.

    push_front(id)   O(1)
    remove(id)       O(1)
    iteration        O(1) per step, head to tail

Ids are dense positive integers handed out by the registry. The index never
assigns ids itself and rejects 0 and duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

SENTINEL_ID = 0


@dataclass
class IndexSlot:
    """Neighbour links for one id."""
    prev: int = SENTINEL_ID
    next: int = SENTINEL_ID


class RegistryIndex:
    """Ordered set of live project ids.

    Thread-safety: this class is not thread-safe. The caller must
    synchronise access if used from multiple threads.
    """

    def __init__(self) -> None:
        self._slots: dict[int, IndexSlot] = {SENTINEL_ID: IndexSlot()}
        self._size = 0

    @classmethod
    def from_ids(cls, ids_front_to_back: list[int]) -> RegistryIndex:
        """Rebuild an index whose traversal yields ids in the given order."""
        index = cls()
        for project_id in reversed(ids_front_to_back):
            index.push_front(project_id)
        return index

    def push_front(self, project_id: int) -> None:
        """Insert an id at the head.

        Raises:
            ValueError: If the id is the sentinel, not positive, or present.
        """
        if project_id <= SENTINEL_ID:
            raise ValueError(f"Index ids must be positive, got {project_id}")
        if project_id in self._slots:
            raise ValueError(f"Id already indexed: {project_id}")

        sentinel = self._slots[SENTINEL_ID]
        old_head = sentinel.next
        self._slots[project_id] = IndexSlot(prev=SENTINEL_ID, next=old_head)
        self._slots[old_head].prev = project_id
        sentinel.next = project_id
        self._size += 1

    def remove(self, project_id: int) -> None:
        """Unlink an id.

        Raises:
            KeyError: If the id is not in the index.
        """
        if project_id == SENTINEL_ID or project_id not in self._slots:
            raise KeyError(project_id)
        slot = self._slots.pop(project_id)
        self._slots[slot.prev].next = slot.next
        self._slots[slot.next].prev = slot.prev
        self._size -= 1

    def __contains__(self, project_id: object) -> bool:
        return project_id != SENTINEL_ID and project_id in self._slots

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[int]:
        """Yield ids head to tail (newest first)."""
        current = self._slots[SENTINEL_ID].next
        while current != SENTINEL_ID:
            # Capture the successor first so the caller may remove `current`.
            following = self._slots[current].next
            yield current
            current = following

    @property
    def head(self) -> int:
        """Newest id, or SENTINEL_ID when empty."""
        return self._slots[SENTINEL_ID].next

    @property
    def tail(self) -> int:
        """Oldest id, or SENTINEL_ID when empty."""
        return self._slots[SENTINEL_ID].prev

    def neighbours(self, project_id: int) -> tuple[int, int]:
        """Return (prev, next) of an id. SENTINEL_ID marks either end."""
        slot = self._slots.get(project_id)
        if slot is None or project_id == SENTINEL_ID:
            raise KeyError(project_id)
        return slot.prev, slot.next

    def ids(self) -> list[int]:
        return list(self)
