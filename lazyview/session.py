import logging
from typing import Any, Generic, Iterable, List, Optional, TypeVar

from attrs import define, field

from lazyview.errors import UnknownRequestError
from lazyview.planner import PrefetchPlanner
from lazyview.requests import RangeRequest, RangeRequestManager
from lazyview.sparse_vec import SparseVec

T = TypeVar("T")
logger = logging.getLogger(__name__)


@define
class LazyViewSession(Generic[T]):
    """Drives the loading of records for a scrollable view.

    The session owns the loaded records, asks the planner what to load
    when the view changes and keeps track of the requests that are in
    progress so that the same records are not requested twice. Fetching
    the records is up to the caller:

    1. call `update_view()` when the visible range changes; it returns
       the request to issue, if any;
    2. call `mark_pushed()` when the request was handed to the fetch
       mechanism; from then on the request is no longer extended;
    3. call `push_result()` with the records (or `fail_request()`).

    The session is not thread-safe; results produced on other threads
    must be handed over to the thread that owns the session.

    Attributes:
        data: The loaded records.
        planner: Decides what to load next.
        manager: Tracks the requests in progress.
        view: The last view passed to `update_view()`.
    """

    data: SparseVec[T]
    planner: PrefetchPlanner = field(factory=PrefetchPlanner)
    manager: RangeRequestManager = field(factory=RangeRequestManager)
    view: range = field(default=range(0), init=False)

    @classmethod
    def with_length(cls, length: int, **kwargs: Any) -> "LazyViewSession[T]":
        """Create a session for a sequence with the given number of records."""
        return cls(SparseVec.with_length(length), **kwargs)

    def __len__(self) -> int:
        return len(self.data)

    @property
    def pending(self) -> List[RangeRequest]:
        """The requests in progress, sorted by start."""
        return sorted(self.manager.requests.values(), key=lambda r: r.start)

    def update_view(self, view: range) -> Optional[RangeRequest]:
        """Record the visible range and compute the request to issue.

        Returns:
            The unpushed request that covers the next range to load or
            None if nothing needs to be requested now.
        """
        self.view = view
        gap = self.planner.next_request(
            self.data, view, self.manager.pending_ranges()
        )
        if gap is None:
            return None
        req = self.manager.place_request(gap.start, len(gap))
        if req is None:
            logger.debug("Range %s is already requested", gap)
        return req

    def _get(self, uniq_id: int) -> RangeRequest:
        req = self.manager.requests.get(uniq_id)
        if req is None:
            raise UnknownRequestError(uniq_id)
        return req

    def mark_pushed(self, uniq_id: int) -> RangeRequest:
        """Mark a request as handed to the fetch mechanism.

        Raises:
            UnknownRequestError: If the request is not pending.
        """
        req = self._get(uniq_id)
        req.pushed = True
        return req

    def push_result(self, uniq_id: int, records: Iterable[T]) -> RangeRequest:
        """Store the records loaded for a request and forget the request.

        If fewer records than requested arrive, the rest of the range
        remains a gap and will be requested again. Extra records are
        dropped.

        Raises:
            UnknownRequestError: If the request is not pending.
            OverlapError: If some of the records are already present. The
                request stays pending in this case.
        """
        req = self._get(uniq_id)
        items = list(records)
        if len(items) != req.count:
            logger.warning(
                "Request %d for [%d, %d) received %d records",
                uniq_id,
                req.start,
                req.end,
                len(items),
            )
            items = items[: req.count]
        self.data.insert(req.start, items)
        self.manager.complete_request(uniq_id)
        return req

    def fail_request(self, uniq_id: int, error: Any = None) -> RangeRequest:
        """Forget a request that could not be completed.

        The range is left empty; it is not retried but a later call to
        `update_view()` may request it again.

        Raises:
            UnknownRequestError: If the request is not pending.
        """
        req = self._get(uniq_id)
        self.manager.complete_request(uniq_id)
        logger.error(
            "Request %d for [%d, %d) failed: %s",
            uniq_id,
            req.start,
            req.end,
            error,
        )
        return req

    def next_request(self) -> Optional[RangeRequest]:
        """Compute the next request for the last view."""
        return self.update_view(self.view)
