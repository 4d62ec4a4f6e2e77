"""Sorted collections of digests and IDs, and the C4 ID of a collection."""

from __future__ import annotations

from bisect import bisect_left
from typing import Iterable, Iterator, Optional

from .ident import DIGEST_SIZE, ID, VOID_ID, BytesLike, Digest

__all__ = ["DigestSlice", "IDSlice"]


class DigestSlice:
    """A sorted list of unique digests.

    The digest of the whole collection is found by summing successive pairs
    of digests, carrying an odd last digest into the next round, until only
    one digest remains.
    """

    __slots__ = ("_items",)

    def __init__(self, digests: Iterable[BytesLike] = ()) -> None:
        self._items: list[Digest] = []
        for digest in digests:
            self.insert(digest)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Digest]:
        return iter(self._items)

    def __getitem__(self, index: int) -> Digest:
        return self._items[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DigestSlice):
            return self._items == other._items
        return NotImplemented

    def __repr__(self) -> str:
        return f"DigestSlice({len(self._items)} digests)"

    def index(self, digest: BytesLike) -> int:
        """Position of ``digest``, or where it would be inserted."""
        return bisect_left(self._items, bytes(digest))

    def insert(self, digest: Optional[BytesLike]) -> int:
        """Insert in sorted order and return the position.

        ``None`` is ignored and gives -1.  A digest already present is not
        inserted again; the result is then ``-(position + 1)``.
        """
        if digest is None:
            return -1
        item = digest if isinstance(digest, Digest) else Digest(digest)
        position = self.index(item)
        if position < len(self._items) and self._items[position] == item:
            return -(position + 1)
        self._items.insert(position, item)
        return position

    def digest(self) -> Optional[Digest]:
        """Digest of the collection, or None when it is empty."""
        if not self._items:
            return None
        level = list(self._items)
        while len(level) > 1:
            paired = [left.sum(right) for left, right in zip(level[0::2], level[1::2])]
            if len(level) % 2:
                paired.append(level[-1])
            level = paired
        return level[0]

    def to_bytes(self) -> bytes:
        """All digests concatenated in order."""
        return b"".join(self._items)

    def write(self, data: BytesLike) -> int:
        """Insert every 64 byte digest found in ``data``; returns its length."""
        raw = bytes(data)
        if len(raw) % DIGEST_SIZE:
            raise ValueError("input must be divisible by 64")
        for start in range(0, len(raw), DIGEST_SIZE):
            self.insert(Digest(raw[start:start + DIGEST_SIZE]))
        return len(raw)


class IDSlice:
    """A sorted list of unique C4 IDs."""

    __slots__ = ("_items",)

    def __init__(self, ids: Iterable[Optional[ID]] = ()) -> None:
        self._items: list[ID] = []
        for ident in ids:
            self.insert(ident)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ID]:
        return iter(self._items)

    def __getitem__(self, index: int) -> ID:
        return self._items[index]

    def __str__(self) -> str:
        return "".join(str(ident) for ident in self._items)

    def __repr__(self) -> str:
        return f"IDSlice({len(self._items)} ids)"

    def index(self, ident: Optional[ID]) -> int:
        """Position of ``ident``, or where it would go; -1 for None."""
        if ident is None:
            return -1
        return bisect_left(self._items, ident)

    def insert(self, ident: Optional[ID]) -> None:
        """Insert in sorted order; None and duplicates are ignored."""
        if ident is None:
            return
        position = self.index(ident)
        if position < len(self._items) and self._items[position].cmp(ident) == 0:
            return
        self._items.insert(position, ident)

    def id(self) -> ID:
        """C4 ID of the collection; the zero ID when it is empty."""
        digest = DigestSlice(ident.digest() for ident in self._items).digest()
        if digest is None:
            return VOID_ID
        return digest.id()