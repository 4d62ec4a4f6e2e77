"""C4 identifiers: base-58 encoded SHA-512 digests of data.

A C4 ID is a 90 character string starting with ``c4``.  In memory it is
held either as an :class:`ID` (the numeric value) or as a 64 byte
:class:`Digest` (the raw SHA-512 hash).
"""

from __future__ import annotations

import functools
import hashlib
import json
from typing import BinaryIO, Protocol, Union

from .errors import BadCharError, BadLengthError, NilIDError

__all__ = [
    "CHARSET",
    "BASE",
    "ID_LENGTH",
    "DIGEST_SIZE",
    "Identifiable",
    "ID",
    "Digest",
    "Encoder",
    "parse",
    "identify",
    "identify_bytes",
    "NIL_ID",
    "VOID_ID",
    "MAX_ID",
]

CHARSET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
BASE = 58
ID_LENGTH = 90
DIGEST_SIZE = 64
_PREFIX = "c4"
_BODY_LENGTH = ID_LENGTH - len(_PREFIX)
_LIMIT = BASE**_BODY_LENGTH
_LOOKUP = {ord(char): value for value, char in enumerate(CHARSET)}
_CHUNK_SIZE = 64 * 1024

BytesLike = Union[bytes, bytearray, memoryview]


class Identifiable(Protocol):
    """Anything that can report its own C4 ID."""

    def id(self) -> "ID": ...


@functools.total_ordering
class ID:
    """A C4 ID, held as its numeric value."""

    __slots__ = ("_value",)

    def __init__(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError("an ID is built from an int")
        if not 0 <= value < _LIMIT:
            raise ValueError("value out of range for a C4 ID")
        self._value = value

    def __int__(self) -> int:
        return self._value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ID):
            return self._value == other._value
        return NotImplemented

    def __lt__(self, other: object) -> bool:
        if isinstance(other, ID):
            return self._value < other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __str__(self) -> str:
        digits = []
        remaining = self._value
        while remaining:
            remaining, digit = divmod(remaining, BASE)
            digits.append(CHARSET[digit])
        body = "".join(reversed(digits)).rjust(_BODY_LENGTH, CHARSET[0])
        return _PREFIX + body

    def __repr__(self) -> str:
        return f"ID('{self}')"

    def digest(self) -> "Digest":
        """Return the 64 byte digest this ID stands for."""
        if self._value.bit_length() > DIGEST_SIZE * 8:
            raise NilIDError()
        return Digest(self._value.to_bytes(DIGEST_SIZE, "big"))

    def cmp(self, other: "ID | None") -> int:
        """Compare numerically: -1, 0 or 1.  Any ID sorts before ``None``."""
        if other is None:
            return -1
        return (self._value > other._value) - (self._value < other._value)

    def less(self, other: "ID | None") -> bool:
        """True when ``self.cmp(other)`` is negative."""
        return self.cmp(other) < 0

    def to_json(self) -> str:
        """JSON text for this ID; the zero ID becomes an empty string."""
        if self._value == 0:
            return '""'
        return json.dumps(str(self))

    @classmethod
    def from_json(cls, data: str | bytes) -> "ID | None":
        """Decode JSON text: ``null`` gives None, ``""`` gives the zero ID."""
        if isinstance(data, (bytes, bytearray)):
            data = data.decode("utf-8")
        text = json.loads(data)
        if text is None:
            return None
        if not isinstance(text, str):
            raise TypeError("a C4 ID in JSON must be a string")
        if text == "":
            return cls(0)
        return parse(text)

    def to_bytes(self) -> bytes:
        """Binary form: the 64 digest bytes."""
        return bytes(self.digest())

    @classmethod
    def from_bytes(cls, data: BytesLike) -> "ID":
        """Build an ID from up to 64 big-endian digest bytes."""
        raw = bytes(data)
        if len(raw) > DIGEST_SIZE:
            raise NilIDError()
        return Digest.from_bytes(raw).id()


class Digest(bytes):
    """A 64 byte C4 digest (the raw SHA-512 hash)."""

    def __new__(cls, data: BytesLike) -> "Digest":
        raw = bytes(data)
        if len(raw) != DIGEST_SIZE:
            raise ValueError(
                f"a digest is {DIGEST_SIZE} bytes, got {len(raw)}"
            )
        return super().__new__(cls, raw)

    @classmethod
    def from_bytes(cls, data: BytesLike) -> "Digest":
        """Build a digest, left-padding shorter input with zero bytes."""
        raw = bytes(data)
        if len(raw) > DIGEST_SIZE:
            raise ValueError(
                f"a digest is at most {DIGEST_SIZE} bytes, got {len(raw)}"
            )
        return cls(raw.rjust(DIGEST_SIZE, b"\x00"))

    def sum(self, other: BytesLike) -> "Digest":
        """Digest of the pair, lesser digest first; equal digests give one."""
        right = other if isinstance(other, Digest) else Digest(other)
        if bytes(self) == bytes(right):
            return self
        low, high = sorted((bytes(self), bytes(right)))
        return Digest(hashlib.sha512(low + high).digest())

    def id(self) -> ID:
        """The C4 ID of these bytes, read directly (not re-hashed)."""
        return ID(int.from_bytes(self, "big"))

    def __repr__(self) -> str:
        return f"Digest('{self.id()}')"


class Encoder:
    """Incrementally identify a contiguous block of data."""

    def __init__(self) -> None:
        self._hash = hashlib.sha512()

    def write(self, data: BytesLike) -> int:
        """Feed bytes to the hash; returns the number of bytes taken."""
        self._hash.update(data)
        return len(data)

    def id(self) -> ID:
        """ID of everything written so far."""
        return self.digest().id()

    def digest(self) -> Digest:
        """Digest of everything written so far."""
        return Digest(self._hash.digest())

    def reset(self) -> None:
        """Forget all data written so far."""
        self._hash = hashlib.sha512()


def parse(source: str | bytes) -> ID:
    """Parse a 90 character C4 ID string."""
    raw = source.encode("utf-8") if isinstance(source, str) else bytes(source)
    if len(raw) != ID_LENGTH:
        raise BadLengthError(len(raw))
    value = 0
    for position, byte in enumerate(raw[len(_PREFIX):], start=len(_PREFIX)):
        digit = _LOOKUP.get(byte)
        if digit is None:
            raise BadCharError(position)
        value = value * BASE + digit
    return ID(value)


def identify_bytes(data: BytesLike) -> ID:
    """C4 ID of a block of bytes."""
    encoder = Encoder()
    encoder.write(data)
    return encoder.id()


def identify(source: BinaryIO | BytesLike | str) -> ID:
    """C4 ID of a readable stream, a bytes-like object or a string.

    Errors raised while reading the stream propagate to the caller.
    """
    if isinstance(source, str):
        return identify_bytes(source.encode("utf-8"))
    if isinstance(source, (bytes, bytearray, memoryview)):
        return identify_bytes(source)
    encoder = Encoder()
    while chunk := source.read(_CHUNK_SIZE):
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        encoder.write(chunk)
    return encoder.id()


NIL_ID = identify_bytes(b"")
"""ID of empty data."""

VOID_ID = Digest(bytes(DIGEST_SIZE)).id()
"""ID with every digest byte set to zero."""

MAX_ID = Digest(b"\xff" * DIGEST_SIZE).id()
"""ID with every digest byte set to 0xFF."""