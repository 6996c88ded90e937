"""Decide which range of records should be loaded next for a view."""

import logging
from typing import Any, Optional, Sequence

from attrs import define, field, validators

from lazyview.sparse_vec import SparseVec

logger = logging.getLogger(__name__)


def _check_view(view: range) -> None:
    if view.step != 1:
        raise ValueError(f"View step must be 1, got {view.step}")
    if view.start < 0:
        raise ValueError(f"View {view} starts before 0")


@define
class PrefetchPlanner:
    """Computes the next range to request for a view into a sparse vector.

    The view is expanded in both directions by a margin proportional to
    its size and clamped to the bounds of the vector. That window is
    scanned and the longest run of missing positions is the next request.
    When several runs have the same maximal length, the first one wins.

    The planner keeps no state between calls. Requests that are in
    progress are only taken into account when the caller passes them in.

    Attributes:
        margin_percent: The size of the margin added to each side of the
            view, as a percentage of the view size.
        max_request: The largest number of positions to request at once;
            None for no limit.
    """

    margin_percent: int = field(default=50, validator=validators.ge(0))
    max_request: Optional[int] = field(
        default=None,
        validator=validators.optional(validators.ge(1)),
        kw_only=True,
    )

    def margin(self, view: range) -> int:
        """The number of extra positions to load on each side of the view."""
        return len(view) * self.margin_percent // 100

    def should_load(self, length: int, view: range) -> range:
        """Expand the view by the margin and clamp it to [0, length)."""
        _check_view(view)
        extra = self.margin(view)
        end = min(length, view.stop + extra)
        start = min(max(0, view.start - extra), end)
        return range(start, end)

    def next_request(
        self,
        data: SparseVec[Any],
        view: range,
        pending: Sequence[range] = (),
    ) -> Optional[range]:
        """Get the range of records that should be requested next.

        Call this when the view changes or when ready to make a request.

        Args:
            data: The records loaded so far.
            view: The range of indices that is currently visible.
            pending: Ranges that were already requested; they are treated
                as loaded. Must be sorted by start and not overlap.

        Returns:
            The range to request or None if nothing needs to be loaded.
        """
        if len(view) == 0:
            return None
        _check_view(view)
        should_load = self.should_load(len(data), view)
        logger.debug("View %s, scanning %s", view, should_load)

        pending_iter = iter(pending)
        crt_pending = next(pending_iter, None)

        longest: Optional[range] = None
        current_start: Optional[int] = None
        for i, item in enumerate(data.iter_range(should_load)):
            index = should_load.start + i
            while crt_pending is not None and crt_pending.stop <= index:
                crt_pending = next(pending_iter, None)
            if item is not None or (
                crt_pending is not None and crt_pending.start <= index
            ):
                if current_start is not None:
                    current = range(current_start, index)
                    current_start = None
                    if longest is None or len(longest) < len(current):
                        longest = current
            elif current_start is None:
                current_start = index

        if current_start is not None:
            current = range(current_start, should_load.stop)
            if longest is None or len(longest) < len(current):
                longest = current

        if longest is not None and self.max_request is not None:
            longest = self.cap(longest, view)

        logger.debug("Next request for view %s: %s", view, longest)
        return longest

    def cap(self, gap: range, view: range) -> range:
        """Limit a gap to `max_request` positions, keeping the part nearest
        to the view.
        """
        limit = self.max_request
        if limit is None or len(gap) <= limit:
            return gap
        if gap.stop <= view.start:
            # The gap is before the view; keep its tail.
            return range(gap.stop - limit, gap.stop)
        if gap.start < view.stop:
            # The gap intersects the view; start with the visible part.
            start = max(gap.start, view.start)
            return range(start, min(gap.stop, start + limit))
        return range(gap.start, gap.start + limit)


_default_planner = PrefetchPlanner()


def next_request_for_view(
    data: SparseVec[Any], in_view: range
) -> Optional[range]:
    """Get the next range to request using the default policy.

    The default policy aims to load 50% of the size of the view in either
    direction. Expects that any previous requests have completed.
    """
    return _default_planner.next_request(data, in_view)
