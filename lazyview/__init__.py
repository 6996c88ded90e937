from lazyview.errors import LazyViewError, OverlapError, UnknownRequestError
from lazyview.planner import PrefetchPlanner, next_request_for_view
from lazyview.requests import RangeRequest, RangeRequestManager
from lazyview.session import LazyViewSession
from lazyview.sparse_vec import Block, SparseVec, SparseVecIter, from_blocks

__all__ = [
    "Block",
    "LazyViewError",
    "LazyViewSession",
    "OverlapError",
    "PrefetchPlanner",
    "RangeRequest",
    "RangeRequestManager",
    "SparseVec",
    "SparseVecIter",
    "UnknownRequestError",
    "from_blocks",
    "next_request_for_view",
]
