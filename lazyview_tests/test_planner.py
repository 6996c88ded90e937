import pytest

from lazyview.planner import PrefetchPlanner, next_request_for_view
from lazyview.sparse_vec import SparseVec, from_blocks


def test_no_view_request_nothing():
    p = SparseVec[int].with_length(20)
    assert next_request_for_view(p, range(0, 0)) is None
    assert next_request_for_view(p, range(7, 7)) is None


def test_request_extra_half_after():
    p = SparseVec[int].with_length(20)
    assert next_request_for_view(p, range(0, 10)) == range(0, 15)


def test_request_extra_half_before():
    p = SparseVec[int].with_length(20)
    assert next_request_for_view(p, range(10, 20)) == range(5, 20)


def test_request_half_either_side():
    p = SparseVec[int].with_length(100)
    assert next_request_for_view(p, range(10, 20)) == range(5, 25)


def test_full_view_request_all():
    p = SparseVec[int].with_length(20)
    assert next_request_for_view(p, range(0, 20)) == range(0, 20)


def test_request_half_after():
    p = SparseVec[int].with_length(20)
    p.insert(0, range(10))
    assert next_request_for_view(p, range(0, 10)) == range(10, 15)


def test_request_half_before():
    p = SparseVec[int].with_length(20)
    p.insert(10, range(10, 20))
    assert next_request_for_view(p, range(10, 20)) == range(5, 10)


def test_all_loaded_request_nothing():
    p = SparseVec.from_full(list(range(20)))
    assert next_request_for_view(p, range(5, 10)) is None


def test_loaded_window_request_nothing():
    """Gaps outside the expanded view are ignored."""
    p = SparseVec[int].with_length(100)
    p.insert(40, range(30))
    assert next_request_for_view(p, range(50, 60)) is None


def test_longest_gap_wins():
    p = from_blocks(30, [(6, [1]), (9, [1])])
    # Scanned window is [0, 14): gaps [0, 6), [7, 9) and [10, 14).
    assert next_request_for_view(p, range(2, 10)) == range(0, 6)


def test_equal_gaps_first_wins():
    p = from_blocks(20, [(4, [1, 1]), (10, [1, 1])])
    # Scanned window is [0, 16): gaps [0, 4), [6, 10) and [12, 16).
    assert next_request_for_view(p, range(4, 12)) == range(0, 4)


def test_trailing_gap_closed_at_window_end():
    p = from_blocks(20, [(0, [1, 1, 1, 1, 1, 1])])
    assert next_request_for_view(p, range(0, 10)) == range(6, 15)


def test_filled_gap_not_reported_again():
    p = SparseVec[int].with_length(20)
    p.insert(0, range(10))
    view = range(0, 10)
    first = next_request_for_view(p, view)
    assert first == range(10, 15)
    p.insert(first.start, [0] * len(first))
    assert next_request_for_view(p, view) is None


def test_repeated_until_done():
    p = SparseVec[int].with_length(100)
    p.insert(30, [0] * 5)
    view = range(20, 40)
    seen = []
    while True:
        req = next_request_for_view(p, view)
        if req is None:
            break
        assert req not in seen
        seen.append(req)
        p.insert(req.start, [0] * len(req))
    assert p.missing_ranges(range(10, 50)) == []


def test_view_past_length_is_clamped():
    p = SparseVec[int].with_length(10)
    assert next_request_for_view(p, range(8, 14)) == range(5, 10)


def test_none_values_count_as_missing():
    p = from_blocks(4, [(0, [None, None, None, None])])
    assert next_request_for_view(p, range(0, 4)) == range(0, 4)


def test_invalid_view():
    p = SparseVec[int].with_length(10)
    with pytest.raises(ValueError):
        next_request_for_view(p, range(0, 10, 2))
    with pytest.raises(ValueError):
        next_request_for_view(p, range(-2, 3))


class TestPrefetchPlanner:
    def test_defaults(self):
        planner = PrefetchPlanner()
        assert planner.margin_percent == 50
        assert planner.max_request is None
        assert planner.margin(range(0, 11)) == 5

    def test_should_load(self):
        planner = PrefetchPlanner()
        assert planner.should_load(20, range(0, 10)) == range(0, 15)
        assert planner.should_load(20, range(10, 20)) == range(5, 20)
        assert planner.should_load(100, range(10, 20)) == range(5, 25)
        assert planner.should_load(20, range(0, 20)) == range(0, 20)

    def test_no_margin(self):
        planner = PrefetchPlanner(margin_percent=0)
        p = SparseVec[int].with_length(100)
        assert planner.next_request(p, range(10, 20)) == range(10, 20)

    def test_large_margin(self):
        planner = PrefetchPlanner(margin_percent=200)
        p = SparseVec[int].with_length(100)
        assert planner.next_request(p, range(40, 50)) == range(20, 70)

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            PrefetchPlanner(margin_percent=-1)
        with pytest.raises(ValueError):
            PrefetchPlanner(max_request=0)

    def test_cap_gap_after_view(self):
        planner = PrefetchPlanner(max_request=3)
        p = SparseVec[int].with_length(20)
        p.insert(0, range(10))
        assert planner.next_request(p, range(0, 10)) == range(10, 13)

    def test_cap_gap_before_view(self):
        planner = PrefetchPlanner(max_request=3)
        p = SparseVec[int].with_length(20)
        p.insert(10, range(10))
        assert planner.next_request(p, range(10, 20)) == range(7, 10)

    def test_cap_gap_in_view(self):
        planner = PrefetchPlanner(max_request=4)
        p = SparseVec[int].with_length(100)
        assert planner.next_request(p, range(10, 20)) == range(10, 14)

    def test_cap_not_needed(self):
        planner = PrefetchPlanner(max_request=50)
        p = SparseVec[int].with_length(100)
        assert planner.next_request(p, range(10, 20)) == range(5, 25)


def test_empty_view_before_start_request_nothing():
    p = SparseVec[int].with_length(20)
    assert next_request_for_view(p, range(-3, -3)) is None


class TestPendingRanges:
    def test_pending_counts_as_loaded(self):
        planner = PrefetchPlanner()
        p = SparseVec[int].with_length(100)
        p.insert(20, [1] * 5)
        view = range(10, 30)
        assert planner.next_request(p, view) == range(0, 20)
        assert planner.next_request(p, view, [range(0, 20)]) == range(25, 40)

    def test_pending_splits_gap(self):
        planner = PrefetchPlanner()
        p = SparseVec[int].with_length(100)
        # Window [5, 25) minus [8, 20) leaves [5, 8) and [20, 25).
        assert planner.next_request(p, range(10, 20), [range(8, 20)]) == range(
            20, 25
        )

    def test_pending_outside_window_ignored(self):
        planner = PrefetchPlanner()
        p = SparseVec[int].with_length(100)
        pending = [range(0, 3), range(60, 70)]
        assert planner.next_request(p, range(10, 20), pending) == range(5, 25)

    def test_everything_pending(self):
        planner = PrefetchPlanner()
        p = SparseVec[int].with_length(100)
        pending = [range(0, 10), range(10, 30)]
        assert planner.next_request(p, range(10, 20), pending) is None
