"""C4 IDs: base-58 encoded SHA-512 identifiers for data and sets of data,
ID trees, a key/link/tree store, and the ``c4`` command."""

__version__ = "0.8.0"

__all__ = ["cli", "db", "errors", "ident", "slices", "tree"]