"""ID trees: the full set of intermediate digests of a sorted collection.

A tree is stored as one flat block of 64 byte digests, root first, followed
by each row down to the leaves.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import InvalidTreeError, NilIDError
from .ident import DIGEST_SIZE, ID, VOID_ID, BytesLike, Digest

__all__ = ["Tree", "Node", "tree_size", "list_size"]

_HEAD_SIZE = 3 * DIGEST_SIZE


def tree_size(length: int) -> int:
    """Number of nodes in the tree of a list of ``length`` digests."""
    total = 1
    while length > 1:
        total += length
        length = (length + 1) // 2
    return total


def list_size(total: int) -> int:
    """Length of the list whose tree has ``total`` nodes."""
    if total < 1:
        raise ValueError("invalid tree size")
    high = (total + 1) // 2
    low = high - (total.bit_length() - 1)
    if tree_size(low) == total:
        return low
    if tree_size(high) == total:
        return high
    while True:
        length = (high + low) // 2
        size = tree_size(length)
        if length == low:
            raise ValueError("invalid tree size")
        if size > total:
            high = length
        elif size < total:
            low = length
        else:
            return length


def _row_count(length: int) -> int:
    rows = 1
    while length > 1:
        rows += 1
        length = (length + 1) // 2
    return rows


def _row_ranges(length: int) -> list[tuple[int, int]]:
    """Start and end node index of every row, root row first."""
    rows = _row_count(length)
    ranges = [(0, 1)] * rows
    offset = tree_size(length) - length
    remaining = length
    for row in range(rows - 1, 0, -1):
        ranges[row] = (offset, offset + remaining)
        remaining = (remaining + 1) // 2
        offset -= remaining
    return ranges


class Tree:
    """Merkle-style tree of digests over a list of leaf digests."""

    __slots__ = ("_data", "_rows")

    def __init__(self, digests: Iterable[BytesLike] = ()) -> None:
        leaves = b"".join(
            d if isinstance(d, Digest) else Digest(d) for d in digests
        )
        self._allocate(len(leaves) // DIGEST_SIZE)
        start = self._rows[-1][0]
        self._data[start:start + len(leaves)] = leaves

    def _allocate(self, length: int) -> None:
        self._rows = [
            (start * DIGEST_SIZE, end * DIGEST_SIZE)
            for start, end in _row_ranges(length)
        ]
        self._data = bytearray(tree_size(length) * DIGEST_SIZE)

    def __str__(self) -> str:
        return "".join(
            str(digest.id()) for row in range(self.row_count()) for digest in self.row(row)
        )

    def __repr__(self) -> str:
        return f"Tree({self.count()} ids, root {self.id()})"

    def row_count(self) -> int:
        """Number of rows, the root row included."""
        return len(self._rows)

    def node_count(self) -> int:
        """Number of digests in the whole tree."""
        return len(self._data) // DIGEST_SIZE

    def id_count(self) -> int:
        """Number of leaf digests."""
        start, end = self._rows[-1]
        return (end - start) // DIGEST_SIZE

    def row(self, index: int) -> list[Digest]:
        """The digests of one row; row 0 holds the root."""
        start, end = self._rows[index]
        return [
            Digest(self._data[pos:pos + DIGEST_SIZE])
            for pos in range(start, end, DIGEST_SIZE)
        ]

    def at(self, row: int, index: int) -> Digest:
        """The digest at ``index`` within ``row``."""
        start, end = self._rows[row]
        pos = start + index * DIGEST_SIZE
        if index < 0 or pos + DIGEST_SIZE > end:
            raise IndexError("tree index out of range")
        return Digest(self._data[pos:pos + DIGEST_SIZE])

    def compute(self) -> Digest:
        """Fill every row above the leaves and return the root digest."""
        for row in range(len(self._rows) - 2, -1, -1):
            child_start, child_end = self._rows[row + 1]
            target = self._rows[row][0]
            for offset in range(child_start, child_end, 2 * DIGEST_SIZE):
                left = bytes(self._data[offset:offset + DIGEST_SIZE])
                if offset + DIGEST_SIZE >= child_end:
                    node = left
                else:
                    right = bytes(
                        self._data[offset + DIGEST_SIZE:offset + 2 * DIGEST_SIZE]
                    )
                    pair = right + left if left > right else left + right
                    node = hashlib.sha512(pair).digest()
                self._data[target:target + DIGEST_SIZE] = node
                target += DIGEST_SIZE
        return self.digest()

    def length(self) -> int:
        """Number of digests in the whole tree."""
        return self.node_count()

    def size(self) -> int:
        """Number of bytes of the binary form."""
        return len(self._data)

    def count(self) -> int:
        """Number of items in the list the tree stands for."""
        return self.id_count()

    def id(self) -> ID:
        """C4 ID of the root."""
        return self.digest().id()

    def digest(self) -> Digest:
        """Root digest."""
        return Digest(self._data[:DIGEST_SIZE])

    def node(self, index: int) -> "Node":
        """Node at a position in the flat, root-first ordering."""
        position = index * DIGEST_SIZE
        for row, (start, end) in enumerate(self._rows):
            if index >= 0 and start <= position < end:
                return Node(self, row, (position - start) // DIGEST_SIZE)
        raise IndexError("tree index out of range")

    def to_bytes(self) -> bytes:
        """Binary form; the tree must have been computed."""
        if self.digest().id() == VOID_ID:
            raise NilIDError()
        return bytes(self._data)

    @classmethod
    def from_bytes(cls, data: BytesLike) -> "Tree":
        """Rebuild a tree from its binary form."""
        raw = bytes(data)
        if len(raw) < _HEAD_SIZE:
            raise InvalidTreeError()
        root, left, right = (
            Digest(raw[pos:pos + DIGEST_SIZE]) for pos in range(0, _HEAD_SIZE, DIGEST_SIZE)
        )
        if right.sum(left) != root:
            raise InvalidTreeError()
        try:
            length = list_size(len(raw) // DIGEST_SIZE)
        except ValueError:
            raise InvalidTreeError() from None
        tree = cls.__new__(cls)
        tree._allocate(length)
        tree._data[:] = raw[:len(tree._data)]
        return tree


@dataclass(frozen=True)
class Node:
    """One digest within a tree, with access to its parent and children."""

    tree: Tree
    row: int
    index: int

    def parent(self) -> "Node":
        """The node one row up; the root is its own parent."""
        if self.row == 0:
            return self
        return Node(self.tree, self.row - 1, self.index // 2)

    def label(self) -> Digest:
        """The digest held by this node."""
        return self.tree.at(self.row, self.index)

    def left(self) -> Optional[Digest]:
        """Left child digest, or None for a leaf."""
        return self._child(self.index * 2)

    def right(self) -> Optional[Digest]:
        """Right child digest, or None for a leaf or a carried-up node."""
        return self._child(self.index * 2 + 1)

    def _child(self, index: int) -> Optional[Digest]:
        if self.row + 1 >= self.tree.row_count():
            return None
        try:
            return self.tree.at(self.row + 1, index)
        except IndexError:
            return None