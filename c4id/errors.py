"""Exceptions raised when parsing or decoding C4 identifiers."""

from __future__ import annotations

__all__ = [
    "C4Error",
    "BadCharError",
    "BadLengthError",
    "NilIDError",
    "InvalidTreeError",
]


class C4Error(Exception):
    """Base class of every error raised by this package."""


class BadCharError(C4Error, ValueError):
    """A character outside the C4 alphabet was found in an ID string."""

    def __init__(self, position: int) -> None:
        self.position = position
        super().__init__(f"non c4 id character at position {position}")


class BadLengthError(C4Error, ValueError):
    """An ID string did not have the required 90 characters."""

    def __init__(self, length: int) -> None:
        self.length = length
        super().__init__(
            f"c4 ids must be 90 characters long, input length {length}"
        )


class NilIDError(C4Error):
    """An ID was required but none (or an unusable one) was given."""

    def __init__(self) -> None:
        super().__init__("unexpected nil id")


class InvalidTreeError(C4Error, ValueError):
    """Serialized tree data is malformed."""

    def __init__(self) -> None:
        super().__init__("invalid tree data")