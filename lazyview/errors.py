from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from lazyview.sparse_vec import Block  # noqa: F401


class LazyViewError(Exception):
    """Base class for the errors raised by this package."""


class OverlapError(LazyViewError, ValueError):
    """A block was inserted over data that is already present or past the
    end of the vector.

    The vector is left untouched when this error is raised.

    Attributes:
        start: The offset where the insertion was attempted.
        end: The (exclusive) end of the rejected block.
        length: The logical length of the vector.
        conflict: The existing block that intersects the new one or None
            if the new block exceeds the logical length.
    """

    start: int
    end: int
    length: int
    conflict: Optional["Block[Any]"]

    def __init__(
        self,
        start: int,
        end: int,
        length: int,
        conflict: Optional["Block[Any]"] = None,
    ):
        self.start = start
        self.end = end
        self.length = length
        self.conflict = conflict
        if conflict is None:
            msg = (
                f"Inserted block [{start}, {end}) exceeds the logical "
                f"length {length}"
            )
        else:
            msg = (
                f"Inserted block [{start}, {end}) overlaps existing block "
                f"[{conflict.offset}, {conflict.end})"
            )
        super().__init__(msg)


class UnknownRequestError(LazyViewError, KeyError):
    """A request ID is not tracked (it was never issued or was already
    completed).

    Attributes:
        uniq_id: The unknown request ID.
    """

    uniq_id: int

    def __init__(self, uniq_id: int):
        self.uniq_id = uniq_id
        super().__init__(f"Request {uniq_id} is not pending")

    def __str__(self) -> str:
        return str(self.args[0])
