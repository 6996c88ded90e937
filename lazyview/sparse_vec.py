"""Sparse vector that stores only the populated runs of a fixed-length
sequence.
"""

import logging
from typing import (
    Generic,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from attrs import define, field

from lazyview.errors import OverlapError

T = TypeVar("T")
logger = logging.getLogger(__name__)


@define
class Block(Generic[T]):
    """A contiguous run of populated items.

    Attributes:
        offset: The index of the first item inside the vector.
        data: The items, in order.
    """

    offset: int
    data: List[T] = field(factory=list, repr=lambda d: f"<{len(d)} items>")

    @property
    def end(self) -> int:
        """The index just past the last item of the block."""
        return self.offset + len(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def as_range(self) -> range:
        return range(self.offset, self.end)


class SparseVecIter(Generic[T]):
    """Lazy iterator over a section of a sparse vector.

    It yields exactly one value for each index in the section: the item
    stored at that index or None for a gap. Gaps are never materialized;
    the iterator only keeps the current position, the index of the block
    that contains or follows that position, and the end of the section.

    Attributes:
        position: The absolute index of the next value.
        end: The absolute index where the iteration stops.
    """

    position: int
    end: int

    def __init__(
        self,
        blocks: List[Block[T]],
        start: int,
        end: int,
        block_index: int = 0,
    ):
        self._blocks = blocks
        self._block_index = block_index
        self.position = start
        self.end = end

    def __iter__(self) -> "SparseVecIter[T]":
        return self

    def __next__(self) -> Optional[T]:
        if self.position >= self.end:
            raise StopIteration
        position = self.position
        self.position += 1

        blocks = self._blocks
        while self._block_index < len(blocks):
            block = blocks[self._block_index]
            if position < block.offset:
                # In the gap before the block.
                return None
            if position < block.end:
                return block.data[position - block.offset]

            # The block is behind us.
            self._block_index += 1
        return None

    def __length_hint__(self) -> int:
        return self.remaining

    @property
    def remaining(self) -> int:
        """The number of values that are still to be produced."""
        return max(0, self.end - self.position)


class SparseVec(Generic[T]):
    """A fixed-length sequence where only some contiguous runs (blocks) are
    populated.

    The blocks are kept sorted by offset and never overlap. Blocks that
    touch each other are not merged. Positions not covered by a block are
    gaps and read as None; no storage is allocated for them so the
    logical length may be arbitrarily large.

    New data can only be inserted in empty space; existing blocks are
    never changed, split or removed.

    Attributes:
        length: The logical length of the vector. It never changes.
    """

    _length: int
    _blocks: List[Block[T]]

    def __init__(self, length: int = 0) -> None:
        if length < 0:
            raise ValueError(f"Length must be non-negative, got {length}")
        self._length = length
        self._blocks = []

    @classmethod
    def with_length(cls, length: int) -> "SparseVec[T]":
        """Create an empty vector with the given logical length."""
        return cls(length)

    @classmethod
    def from_full(cls, data: Iterable[T]) -> "SparseVec[T]":
        """Create a vector fully populated by a single block.

        The logical length of the result is the number of items in `data`.
        """
        items = list(data)
        result = cls(len(items))
        if items:
            result._blocks.append(Block(0, items))
        return result

    @property
    def length(self) -> int:
        return self._length

    def __len__(self) -> int:
        return self._length

    def __repr__(self) -> str:
        return (
            f"SparseVec(length={self._length}, "
            f"blocks={[(b.offset, b.end) for b in self._blocks]})"
        )

    @property
    def blocks(self) -> Tuple[Block[T], ...]:
        """The blocks of the vector, sorted by offset."""
        return tuple(self._blocks)

    @property
    def true_size(self) -> int:
        """The number of positions that hold data."""
        return sum(len(b) for b in self._blocks)

    def _block_index(self, position: int) -> int:
        """Locate the first block that ends after `position`.

        This is either the block that contains the position or the first
        block located after it. If no such block exists the result is the
        number of blocks.
        """
        left = 0
        right = len(self._blocks)
        while left < right:
            center = (left + right) >> 1
            if self._blocks[center].end <= position:
                left = center + 1
            else:
                right = center
        return left

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self._length:
            raise IndexError(
                f"Index {index} out of range. Vector has {self._length} items."
            )

    def __getitem__(self, index: int) -> Optional[T]:
        """Get the item at the index or None if the index is in a gap.

        Raises:
            IndexError: If the index is outside [0, length).
        """
        self._check_index(index)
        i = self._block_index(index)
        if i < len(self._blocks):
            block = self._blocks[i]
            if block.offset <= index:
                return block.data[index - block.offset]
        return None

    def is_loaded(self, index: int) -> bool:
        """Tell if the index is covered by a block."""
        self._check_index(index)
        i = self._block_index(index)
        return i < len(self._blocks) and self._blocks[i].offset <= index

    def insert(self, start: int, data: Iterable[T]) -> None:
        """Insert data into empty space.

        Args:
            start: The index of the first new item.
            data: The items to insert.

        Raises:
            ValueError: If start is negative.
            OverlapError: If the new block would overlap an existing block
                or extend past the logical length. The vector is not
                modified in this case.
        """
        if start < 0:
            raise ValueError(f"Start must be non-negative, got {start}")
        items = list(data)
        end = start + len(items)
        if end > self._length:
            raise OverlapError(start, end, self._length)

        pos = self._block_index(start)
        if pos < len(self._blocks) and self._blocks[pos].offset < end:
            raise OverlapError(start, end, self._length, self._blocks[pos])

        if not items:
            return
        self._blocks.insert(pos, Block(start, items))
        logger.debug(
            "Inserted block [%d, %d) at position %d of %d",
            start,
            end,
            pos,
            len(self._blocks),
        )

    def _check_range(self, idxs: range) -> None:
        if idxs.step != 1:
            raise ValueError(f"Range step must be 1, got {idxs.step}")
        if idxs.start < 0:
            raise ValueError(f"Range {idxs} starts before 0")
        if idxs.stop > self._length and idxs.stop > idxs.start:
            raise ValueError(
                f"Range {idxs} ends past the length {self._length}"
            )

    def iter(self) -> SparseVecIter[T]:
        """Iterate over all positions of the vector."""
        return SparseVecIter(self._blocks, 0, self._length)

    def __iter__(self) -> Iterator[Optional[T]]:
        return self.iter()

    def iter_range(self, idxs: range) -> SparseVecIter[T]:
        """Iterate over the positions in a range.

        The result is the same as skipping `idxs.start` values from
        `iter()` and taking `len(idxs)` of them, but blocks located before
        the range are not visited.

        Raises:
            ValueError: If the step is not 1 or the range does not fit in
                [0, length).
        """
        self._check_range(idxs)
        if idxs.stop <= idxs.start:
            return SparseVecIter(self._blocks, idxs.start, idxs.start)
        return SparseVecIter(
            self._blocks,
            idxs.start,
            idxs.stop,
            self._block_index(idxs.start),
        )

    def loaded_ranges(self, view: Optional[range] = None) -> List[range]:
        """Get the populated runs, optionally limited to a view.

        Blocks that touch each other are reported separately.
        """
        if view is None:
            return [b.as_range() for b in self._blocks]
        self._check_range(view)
        if len(view) == 0:
            return []

        result = []
        for block in self._blocks[self._block_index(view.start) :]:
            if block.offset >= view.stop:
                break
            result.append(
                range(max(block.offset, view.start), min(block.end, view.stop))
            )
        return result

    def missing_ranges(self, view: Optional[range] = None) -> List[range]:
        """Get the gaps, optionally limited to a view."""
        if view is None:
            view = range(0, self._length)
        result = []
        crt = view.start
        for loaded in self.loaded_ranges(view):
            if loaded.start > crt:
                result.append(range(crt, loaded.start))
            crt = loaded.stop
        if crt < view.stop:
            result.append(range(crt, view.stop))
        return result

    def to_list(self) -> List[Optional[T]]:
        """Materialize the vector, gaps included, as a list."""
        return list(self.iter())


def from_blocks(
    length: int, blocks: Iterable[Tuple[int, Sequence[T]]]
) -> SparseVec[T]:
    """Create a vector and insert the (offset, data) pairs into it."""
    result: SparseVec[T] = SparseVec(length)
    for offset, data in blocks:
        result.insert(offset, data)
    return result
