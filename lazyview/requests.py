import logging
from typing import Dict, List, Optional, Tuple

from attrs import define, field

logger = logging.getLogger(__name__)

DEFAULT_JOIN_LIMIT = 50


@define
class RangeRequest:
    """A request for a contiguous range of records.

    Attributes:
        start: The index of the first record to load.
        count: The number of records to load.
        uniq_id: A unique identifier assigned when the request is added to
            a manager.
        pushed: True once the request was handed to the fetch mechanism;
            pushed requests are no longer changed by the manager.
    """

    start: int
    count: int
    uniq_id: int = field(init=False, default=-1)
    pushed: bool = field(default=False, init=False)

    @property
    def end(self) -> int:
        return self.start + self.count

    def as_range(self) -> range:
        return range(self.start, self.end)


class RangeRequestManager:
    """Keeps track of the requests that are in progress.

    The prefetch planner only looks at the data that was already loaded,
    so asking it twice before a fetch completes gives the same answer.
    The manager removes from new requests the parts that are already
    requested.

    Attributes:
        uniq_gen: A unique identifier generator for requests.
        requests: The pending requests, keyed by their ID.
        join_limit: Unpushed requests larger than this are not extended
            with adjacent requests.
    """

    uniq_gen: int
    requests: Dict[int, RangeRequest]
    join_limit: int

    def __init__(self, join_limit: int = DEFAULT_JOIN_LIMIT) -> None:
        self.uniq_gen = 0
        self.requests = {}
        self.join_limit = join_limit

    def new_request(self, start: int, count: int) -> "RangeRequest":
        """Create a new request (without adding it to the manager)."""
        return RangeRequest(start, count)

    def add_request(self, req: "RangeRequest") -> None:
        """Assign an ID to the request and add it to the pending ones."""
        uniq_id = self.uniq_gen
        self.uniq_gen += 1
        req.uniq_id = uniq_id
        self.requests[uniq_id] = req

    def complete_request(self, uniq_id: int) -> Optional["RangeRequest"]:
        """Forget a request; returns it or None if it was not pending."""
        return self.requests.pop(uniq_id, None)

    def pending_ranges(self) -> List[range]:
        """The ranges of the pending requests, sorted by start."""
        return sorted(
            (r.as_range() for r in self.requests.values() if r.count > 0),
            key=lambda r: r.start,
        )

    def is_pending(self, index: int) -> bool:
        """Tell if an index is part of a pending request."""
        return any(r.start <= index < r.end for r in self.requests.values())

    def _trim(
        self, req: "RangeRequest"
    ) -> Tuple[bool, Optional["RangeRequest"]]:
        """Trim the request and join it to an adjacent one if possible.

        Returns:
            A tuple where the first element is True if the request still
            has something to load and the second is the unpushed request
            that absorbed it, if any.
        """
        start = req.start
        end = req.end

        # Keep the leading part that no other request covers (even if
        # those were pushed). The rest is picked up by a later request.
        for other in sorted(self.requests.values(), key=lambda r: r.start):
            if other.count <= 0 or other.end <= start:
                continue
            if other.start <= start:
                # OTHER:   |------------------|
                # NEW:          |------------------|
                start = other.end
                if start >= end:
                    break
            elif other.start < end:
                # OTHER:         |-----------|
                # NEW:   |---------------------------|
                end = other.start
                break
            else:
                break

        if start != req.start or end != req.end:
            logger.debug(
                "Request [%d, %d) trimmed to [%d, %d)",
                req.start,
                req.end,
                start,
                max(start, end),
            )
        req.start = start
        req.count = max(0, end - start)
        if req.count == 0:
            return False, None

        # Next, attempt to join this request to an adjacent one. After
        # the trim above the limits can only be exactly equal.
        for other in self.requests.values():
            if other.pushed or other.count > self.join_limit:
                continue
            if other.start == req.end:
                other.start = req.start
                other.count += req.count
                req.count = 0
                logger.debug("Request prepended to %s", other)
                return False, other
            if req.start == other.end:
                other.count += req.count
                req.count = 0
                logger.debug("Request appended to %s", other)
                return False, other

        return True, None

    def trim_request(self, req: "RangeRequest") -> bool:
        """Trim a request based on the requests already in progress.

        Only the leading part of the request that no pending request
        covers is kept. If that part is adjacent to an unpushed pending
        request the pending one is extended instead and the new request
        ends up empty.

        Args:
            req: The request to trim.

        Returns:
            False if the request is empty, True otherwise.
        """
        return self._trim(req)[0]

    def place_request(self, start: int, count: int) -> Optional["RangeRequest"]:
        """Trim a new request and add it if something remains.

        Returns:
            The unpushed request that covers the new data: either the new
            request or a pending one that absorbed it. None if pending
            requests already cover all of it.
        """
        req = self.new_request(start, count)
        keep, absorbed_by = self._trim(req)
        if keep:
            self.add_request(req)
            return req
        return absorbed_by
