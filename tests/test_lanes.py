"""Tests for the lane allocator."""

import pytest

from gittree.ui.git_graph.lanes import LaneAllocator


class TestAllocate:
    """Allocation always hands out the lowest free lane."""

    def test_allocates_sequentially(self):
        lanes = LaneAllocator()
        assert [lanes.allocate(oid) for oid in "abc"] == [0, 1, 2]
        assert lanes.active_count == 3
        assert lanes.width == 3

    def test_reuses_lowest_released_lane(self):
        lanes = LaneAllocator()
        for oid in "abcd":
            lanes.allocate(oid)
        lanes.release(2)
        lanes.release(1)

        assert lanes.allocate("e") == 1
        assert lanes.allocate("f") == 2
        assert lanes.allocate("g") == 4

    def test_exclude_skips_lanes_but_keeps_them_free(self):
        lanes = LaneAllocator()
        for oid in "abc":
            lanes.allocate(oid)
        lanes.release(0)
        lanes.release(1)

        assert lanes.allocate("x", exclude=[0]) == 1
        # Lane 0 went back to the free list
        assert lanes.allocate("y") == 0


class TestOccupants:
    """Tracking which commit each lane waits for."""

    def test_lanes_of_returns_all_waiting_lanes_sorted(self):
        lanes = LaneAllocator()
        lanes.allocate("p")
        lanes.allocate("q")
        lanes.allocate("p")

        assert lanes.lanes_of("p") == [0, 2]
        assert lanes.lanes_of("missing") == []

    def test_assign_moves_lane_to_new_occupant(self):
        lanes = LaneAllocator()
        index = lanes.allocate("child")
        lanes.assign(index, "parent")

        assert lanes.occupant(index) == "parent"
        assert lanes.lanes_of("child") == []
        assert lanes.lanes_of("parent") == [index]

    def test_assign_free_lane_raises(self):
        lanes = LaneAllocator()
        index = lanes.allocate("a")
        lanes.release(index)

        with pytest.raises(ValueError):
            lanes.assign(index, "b")

    def test_release_is_idempotent(self):
        lanes = LaneAllocator()
        index = lanes.allocate("a")
        lanes.release(index)
        lanes.release(index)

        assert lanes.active_count == 0
        assert lanes.allocate("b") == index
        assert lanes.allocate("c") == 1

    def test_release_all_frees_everything(self):
        lanes = LaneAllocator()
        for oid in "abc":
            lanes.allocate(oid)
        lanes.release(1)

        assert lanes.release_all() == [0, 2]
        assert lanes.active_lanes() == []
        assert lanes.width == 0
        assert lanes.occupant(5) is None
