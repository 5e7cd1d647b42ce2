"""Tests for the registry index — proves ordering and O(1) unlink invariants."""

import pytest

from guildhall.registry.index import SENTINEL_ID, RegistryIndex


def _index_with(*ids: int) -> RegistryIndex:
    index = RegistryIndex()
    for project_id in ids:
        index.push_front(project_id)
    return index


class TestPushFront:
    def test_empty_index(self) -> None:
        index = RegistryIndex()
        assert len(index) == 0
        assert list(index) == []
        assert index.head == SENTINEL_ID
        assert index.tail == SENTINEL_ID

    def test_newest_first(self) -> None:
        index = _index_with(1, 2, 3)
        assert list(index) == [3, 2, 1]
        assert index.head == 3
        assert index.tail == 1
        assert len(index) == 3

    def test_sentinel_rejected(self) -> None:
        with pytest.raises(ValueError):
            RegistryIndex().push_front(SENTINEL_ID)

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError):
            RegistryIndex().push_front(-4)

    def test_duplicate_rejected(self) -> None:
        index = _index_with(1)
        with pytest.raises(ValueError):
            index.push_front(1)


class TestRemove:
    def test_remove_middle(self) -> None:
        index = _index_with(1, 2, 3)
        index.remove(2)
        assert list(index) == [3, 1]
        assert index.neighbours(3) == (SENTINEL_ID, 1)
        assert index.neighbours(1) == (3, SENTINEL_ID)

    def test_remove_head(self) -> None:
        index = _index_with(1, 2, 3)
        index.remove(3)
        assert list(index) == [2, 1]
        assert index.head == 2

    def test_remove_tail(self) -> None:
        index = _index_with(1, 2, 3)
        index.remove(1)
        assert list(index) == [3, 2]
        assert index.tail == 2

    def test_remove_last_leaves_empty(self) -> None:
        index = _index_with(7)
        index.remove(7)
        assert len(index) == 0
        assert index.head == SENTINEL_ID
        assert index.tail == SENTINEL_ID

    def test_remove_unknown_raises(self) -> None:
        with pytest.raises(KeyError):
            _index_with(1).remove(5)

    def test_remove_sentinel_raises(self) -> None:
        with pytest.raises(KeyError):
            _index_with(1).remove(SENTINEL_ID)

    def test_remove_twice_raises(self) -> None:
        index = _index_with(1, 2)
        index.remove(1)
        with pytest.raises(KeyError):
            index.remove(1)

    def test_push_after_remove_keeps_order(self) -> None:
        index = _index_with(1, 2, 3)
        index.remove(2)
        index.push_front(4)
        assert list(index) == [4, 3, 1]


class TestTraversal:
    def test_contains(self) -> None:
        index = _index_with(1, 2)
        assert 1 in index
        assert 3 not in index
        assert SENTINEL_ID not in index

    def test_remove_current_during_iteration(self) -> None:
        index = _index_with(1, 2, 3, 4)
        seen = []
        for project_id in index:
            seen.append(project_id)
            if project_id % 2 == 0:
                index.remove(project_id)
        assert seen == [4, 3, 2, 1]
        assert list(index) == [3, 1]

    def test_from_ids_round_trip(self) -> None:
        index = RegistryIndex.from_ids([9, 5, 2])
        assert list(index) == [9, 5, 2]
        assert len(index) == 3

    def test_size_tracks_many_operations(self) -> None:
        index = RegistryIndex()
        for project_id in range(1, 101):
            index.push_front(project_id)
        for project_id in range(1, 101, 3):
            index.remove(project_id)
        expected = [i for i in range(100, 0, -1) if (i - 1) % 3 != 0]
        assert list(index) == expected
        assert len(index) == len(expected)
