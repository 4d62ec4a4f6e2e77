"""A persistent store for keys, links and trees of C4 digests.

Keys map names to digests (with a reverse index from digest to names),
links relate a source digest to target digests under a named
relationship, and trees hold computed ID trees.  Large trees can be kept
as separate files in one or more storage directories.
"""

from __future__ import annotations

import enum
import json
import os
import random
import sqlite3
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional

from .ident import DIGEST_SIZE, BytesLike, Digest
from .tree import Tree

__all__ = [
    "TreeStrategy",
    "Options",
    "Stats",
    "Entry",
    "Tx",
    "DB",
    "shuffle",
]

_DB_FILENAME = "db"
_OPTIONS_KEY = "global/options"
_BATCH_SIZE = 10000

_SCHEMA = """
CREATE TABLE IF NOT EXISTS keys (k BLOB PRIMARY KEY, v BLOB NOT NULL) WITHOUT ROWID;
CREATE TABLE IF NOT EXISTS key_index (k BLOB PRIMARY KEY, v BLOB NOT NULL) WITHOUT ROWID;
CREATE TABLE IF NOT EXISTS links (k BLOB PRIMARY KEY, v TEXT NOT NULL) WITHOUT ROWID;
CREATE TABLE IF NOT EXISTS trees (k BLOB PRIMARY KEY, v BLOB NOT NULL) WITHOUT ROWID;
CREATE TABLE IF NOT EXISTS paths (k BLOB PRIMARY KEY, v TEXT NOT NULL) WITHOUT ROWID;
CREATE TABLE IF NOT EXISTS options (k TEXT PRIMARY KEY, v TEXT NOT NULL) WITHOUT ROWID;
"""


class TreeStrategy(enum.IntEnum):
    """How trees are kept in the store."""

    NONE = 0
    CACHE = 1
    """Always store the entire tree."""
    COMPUTE = 2
    """Store only the id list and compute the tree when restored."""
    BALANCE = 3
    """Balance automatically between caching and computing."""


@dataclass
class Options:
    """Settings of a store; they are saved with it."""

    tree_max_size: int = 0
    """Largest tree, in bytes, kept inside the database; 0 means no limit."""
    tree_strategy: TreeStrategy = TreeStrategy.NONE
    external_store: list[str] = field(default_factory=list)
    """Directories in which tree files are written."""

    def to_json(self) -> str:
        return json.dumps(
            {
                "TreeMaxSize": self.tree_max_size,
                "TreeStrategy": int(self.tree_strategy),
                "ExternalStore": list(self.external_store) or None,
            }
        )

    @classmethod
    def from_json(cls, text: str) -> "Options":
        data = json.loads(text)
        return cls(
            tree_max_size=int(data.get("TreeMaxSize") or 0),
            tree_strategy=TreeStrategy(int(data.get("TreeStrategy") or 0)),
            external_store=list(data.get("ExternalStore") or []),
        )


@dataclass(frozen=True)
class Stats:
    """Counts of the items held in a store."""

    keys: int
    key_indexes: int
    trees: int
    links: int
    trees_size: int


@dataclass(frozen=True)
class Entry:
    """One item produced by the listing methods.

    Key listings fill ``key`` and ``value``; link listings fill
    ``source``, ``target`` and ``relationships``.
    """

    key: str = ""
    value: Optional[Digest] = None
    source: Optional[Digest] = None
    target: Optional[Digest] = None
    relationships: tuple[str, ...] = ()
    error: Optional[str] = None


def _as_digest(value: BytesLike) -> Digest:
    return value if isinstance(value, Digest) else Digest(value)


def shuffle(items: list) -> None:
    """Shuffle a list in place."""
    random.shuffle(items)


class Tx:
    """Collects key assignments for :meth:`DB.key_batch`.

    Assignments are written in batches of 10,000.
    """

    def __init__(self, db: "DB") -> None:
        self._db = db
        self._pending: list[tuple[bytes, Digest]] = []
        self.count = 0

    def key_set(self, key: str, digest: BytesLike) -> None:
        """Queue ``key`` to be set to ``digest``."""
        self._pending.append((key.encode("utf-8"), _as_digest(digest)))
        self.count += 1
        if len(self._pending) >= _BATCH_SIZE:
            self._flush()

    def _flush(self) -> None:
        if self._pending:
            self._db._write_keys(self._pending)
            self._pending = []


class DB:
    """A store of keys, links and trees kept in a directory."""

    def __init__(self, path: str | os.PathLike, options: Optional[Options] = None) -> None:
        path = os.fspath(path)
        if not os.path.exists(path):
            os.mkdir(path, 0o700)
        self.path = path
        self._conn = sqlite3.connect(os.path.join(path, _DB_FILENAME))
        self._conn.execute("PRAGMA synchronous = NORMAL")
        self._conn.executescript(_SCHEMA)

        saved = self._read_options()
        if options is None:
            options = saved or Options()
            self.storage = list(options.external_store)
            self.tree_max_size = options.tree_max_size
            self.tree_strategy = TreeStrategy(options.tree_strategy)
        else:
            base = saved or Options()
            self.storage = list(options.external_store)
            self.tree_max_size = (
                options.tree_max_size if options.tree_max_size > 0 else base.tree_max_size
            )
            self.tree_strategy = TreeStrategy(
                options.tree_strategy
                if options.tree_strategy != TreeStrategy.NONE
                else base.tree_strategy
            )
        self._write_options()
        if not self.storage:
            self.storage.append(path)

    @classmethod
    def open(cls, path: str | os.PathLike, options: Optional[Options] = None) -> "DB":
        """Open the store at ``path``, creating the directory if needed."""
        return cls(path, options)

    def __enter__(self) -> "DB":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying database."""
        self._conn.close()

    # -- options -----------------------------------------------------------

    def _write_options(self) -> None:
        opts = Options(
            tree_max_size=self.tree_max_size,
            tree_strategy=self.tree_strategy,
            external_store=self.storage,
        )
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO options (k, v) VALUES (?, ?)",
                (_OPTIONS_KEY, opts.to_json()),
            )

    def _read_options(self) -> Optional[Options]:
        row = self._conn.execute(
            "SELECT v FROM options WHERE k = ?", (_OPTIONS_KEY,)
        ).fetchone()
        if row is None:
            return None
        try:
            return Options.from_json(row[0])
        except (ValueError, TypeError):
            return Options()

    # -- helpers -----------------------------------------------------------

    def _scan(self, table: str, prefix: bytes = b"") -> list[tuple]:
        if prefix:
            cursor = self._conn.execute(
                f"SELECT k, v FROM {table} WHERE substr(k, 1, ?) = ? ORDER BY k",
                (len(prefix), prefix),
            )
        else:
            cursor = self._conn.execute(f"SELECT k, v FROM {table} ORDER BY k")
        return cursor.fetchall()

    @staticmethod
    def _lookup(cur: sqlite3.Cursor, table: str, key: bytes):
        row = cur.execute(f"SELECT v FROM {table} WHERE k = ?", (key,)).fetchone()
        return None if row is None else row[0]

    def _put_key(self, cur: sqlite3.Cursor, key: bytes, digest: Digest) -> Optional[bytes]:
        previous = self._lookup(cur, "keys", key)
        if previous is not None:
            cur.execute("DELETE FROM key_index WHERE k = ?", (bytes(previous) + key,))
        cur.execute("INSERT OR REPLACE INTO keys (k, v) VALUES (?, ?)", (key, bytes(digest)))
        cur.execute(
            "INSERT OR REPLACE INTO key_index (k, v) VALUES (?, ?)",
            (bytes(digest) + key, b"\x01"),
        )
        return previous

    def _delete_key(self, cur: sqlite3.Cursor, key: bytes) -> Optional[bytes]:
        previous = self._lookup(cur, "keys", key)
        if previous is None:
            return None
        cur.execute("DELETE FROM keys WHERE k = ?", (key,))
        cur.execute("DELETE FROM key_index WHERE k = ?", (bytes(previous) + key,))
        return previous

    @staticmethod
    def _to_digest(raw: Optional[bytes]) -> Optional[Digest]:
        if raw is None or len(raw) != DIGEST_SIZE:
            return None
        return Digest(raw)

    def _write_keys(self, entries: Iterable[tuple[bytes, Digest]]) -> None:
        with self._conn:
            cur = self._conn.cursor()
            for key, digest in entries:
                self._put_key(cur, key, digest)

    # -- stats -------------------------------------------------------------

    def stats(self) -> Stats:
        """Counts of keys, index entries, trees and links."""
        def count(table: str) -> int:
            return self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

        size = self._conn.execute(
            "SELECT COALESCE(SUM(length(v)), 0) FROM trees"
        ).fetchone()[0]
        return Stats(
            keys=count("keys"),
            key_indexes=count("key_index"),
            trees=count("trees"),
            links=count("links"),
            trees_size=int(size),
        )

    # -- keys --------------------------------------------------------------

    def key_set(self, key: str, digest: BytesLike) -> Optional[Digest]:
        """Set ``key`` to ``digest``; returns the previous digest or None."""
        value = _as_digest(digest)
        with self._conn:
            previous = self._put_key(self._conn.cursor(), key.encode("utf-8"), value)
        return self._to_digest(previous)

    def key_find(self, digest: BytesLike) -> list[str]:
        """All keys currently set to ``digest``."""
        prefix = bytes(_as_digest(digest))
        return [
            bytes(k[DIGEST_SIZE:]).decode("utf-8")
            for k, _ in self._scan("key_index", prefix)
        ]

    def key_get(self, key: str) -> Optional[Digest]:
        """Digest stored under ``key``, or None."""
        raw = self._lookup(self._conn.cursor(), "keys", key.encode("utf-8"))
        return self._to_digest(raw)

    def key_delete(self, key: str) -> Optional[Digest]:
        """Remove ``key``; returns the digest it held, or None."""
        with self._conn:
            previous = self._delete_key(self._conn.cursor(), key.encode("utf-8"))
        return self._to_digest(previous)

    def key_get_all(self, *prefixes: str) -> Iterator[Entry]:
        """Entries for every key starting with each of the given prefixes."""
        for prefix in prefixes:
            for k, v in self._scan("keys", prefix.encode("utf-8")):
                raw = bytes(v)
                yield Entry(
                    key=bytes(k).decode("utf-8"),
                    value=self._to_digest(raw),
                    error=None if len(raw) == DIGEST_SIZE else "wrong value size",
                )

    def key_cas(
        self,
        key: str,
        old_digest: Optional[BytesLike],
        new_digest: Optional[BytesLike],
    ) -> bool:
        """Set ``key`` to ``new_digest`` only if it now holds ``old_digest``.

        None stands for an unset key on either side.  Returns whether the
        swap took place.
        """
        encoded = key.encode("utf-8")
        expected = b"" if old_digest is None else bytes(old_digest)
        with self._conn:
            cur = self._conn.cursor()
            current = self._lookup(cur, "keys", encoded)
            if (b"" if current is None else bytes(current)) != expected:
                return False
            if new_digest is None:
                self._delete_key(cur, encoded)
            else:
                self._put_key(cur, encoded, _as_digest(new_digest))
        return True

    def key_delete_all(self, *prefixes: str) -> int:
        """Delete keys with any of the prefixes, or every key if none given.

        Returns the number of keys deleted.
        """
        count = 0
        if not prefixes:
            with self._conn:
                count = self._conn.execute("SELECT COUNT(*) FROM keys").fetchone()[0]
                self._conn.execute("DELETE FROM keys")
                self._conn.execute("DELETE FROM key_index")
            return count
        for prefix in prefixes:
            rows = self._scan("keys", prefix.encode("utf-8"))
            with self._conn:
                cur = self._conn.cursor()
                for k, _ in rows:
                    if self._delete_key(cur, bytes(k)) is not None:
                        count += 1
        return count

    def key_batch(self, fn: Callable[[Tx], bool]) -> None:
        """Call ``fn`` with a :class:`Tx` until it returns False, then write."""
        tx = Tx(self)
        while fn(tx):
            pass
        tx._flush()

    # -- links -------------------------------------------------------------

    def link_set(self, relationship: str, source: BytesLike, *targets: BytesLike) -> None:
        """Relate ``source`` to each target under ``relationship``."""
        if not targets:
            raise ValueError("missing targets")
        src = bytes(_as_digest(source))
        rows = [(src + bytes(_as_digest(t)), relationship) for t in targets]
        with self._conn:
            self._conn.executemany(
                "INSERT OR REPLACE INTO links (k, v) VALUES (?, ?)", rows
            )

    def link_get(self, relationship: str, source: BytesLike) -> Iterator[Entry]:
        """Targets linked from ``source`` under ``relationship``."""
        src = _as_digest(source)
        for k, v in self._scan("links", bytes(src)):
            if v != relationship:
                continue
            yield Entry(source=src, target=Digest(bytes(k)[DIGEST_SIZE:]), relationships=(v,))

    def link_delete(self, relationship: str, source: BytesLike, *targets: BytesLike) -> int:
        """Remove links from ``source`` to the targets under ``relationship``."""
        if not targets:
            raise ValueError("missing targets")
        src = bytes(_as_digest(source))
        count = 0
        with self._conn:
            cur = self._conn.cursor()
            for target in targets:
                cur.execute(
                    "DELETE FROM links WHERE k = ? AND v = ?",
                    (src + bytes(_as_digest(target)), relationship),
                )
                count += cur.rowcount
        return count

    def link_get_all(self, *sources: BytesLike) -> Iterator[Entry]:
        """Every link from each source, or every link if none given."""
        if not sources:
            for k, v in self._scan("links"):
                raw = bytes(k)
                yield Entry(
                    source=Digest(raw[:DIGEST_SIZE]),
                    target=Digest(raw[DIGEST_SIZE:]),
                    relationships=(v,),
                )
            return
        for source in sources:
            src = _as_digest(source)
            for k, v in self._scan("links", bytes(src)):
                yield Entry(
                    source=src,
                    target=Digest(bytes(k)[DIGEST_SIZE:]),
                    relationships=(v,),
                )

    def link_delete_all(self, *sources: BytesLike) -> int:
        """Delete links from each source, or every link if none given."""
        with self._conn:
            cur = self._conn.cursor()
            if not sources:
                cur.execute("DELETE FROM links")
                return cur.rowcount
            count = 0
            for source in sources:
                src = bytes(_as_digest(source))
                cur.execute(
                    "DELETE FROM links WHERE substr(k, 1, ?) = ?", (len(src), src)
                )
                count += cur.rowcount
            return count

    # -- trees -------------------------------------------------------------

    def tree_set(self, tree: Tree) -> None:
        """Store a computed tree, in a separate file if it is too large."""
        data = tree.to_bytes()
        root = data[:DIGEST_SIZE]
        if self.tree_max_size == 0 or len(data) <= self.tree_max_size:
            with self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO trees (k, v) VALUES (?, ?)", (root, data)
                )
            return
        path = _write_file_data(self.storage, Digest(root), data)
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO paths (k, v) VALUES (?, ?)", (root, path)
            )
            self._conn.execute(
                "INSERT OR REPLACE INTO trees (k, v) VALUES (?, ?)", (root, root)
            )

    def tree_get(self, digest: BytesLike) -> Optional[Tree]:
        """The tree with root ``digest``, or None if it is not stored."""
        key = bytes(_as_digest(digest))
        cur = self._conn.cursor()
        data = self._lookup(cur, "trees", key)
        if data is None:
            return None
        data = bytes(data)
        if len(data) == DIGEST_SIZE:
            path = self._lookup(cur, "paths", data)
            if path is None:
                return None
            with open(path, "rb") as handle:
                data = handle.read()
        return Tree.from_bytes(data)

    def tree_delete(self, digest: BytesLike) -> None:
        """Forget the tree with root ``digest``."""
        key = bytes(_as_digest(digest))
        with self._conn:
            self._conn.execute("DELETE FROM trees WHERE k = ?", (key,))
            self._conn.execute("DELETE FROM paths WHERE k = ?", (key,))


def _write_file_data(paths: list[str], digest: Digest, data: bytes) -> str:
    """Write ``data`` into one of the storage directories; return its path.

    An existing file of the right size is reused.  New files go to a
    randomly chosen directory, trying the others if writing fails.
    """
    filename = str(digest.id())
    candidates = []
    for base in paths:
        if not os.path.exists(base):
            raise FileNotFoundError(f"storage location {base!r} does not exist")
        full = os.path.join(base, filename[0:2], filename[2:4], filename)
        if os.path.isfile(full) and os.path.getsize(full) == len(data):
            return full
        candidates.append(full)
    shuffle(candidates)
    failure: Optional[OSError] = None
    for full in candidates:
        os.makedirs(os.path.dirname(full), mode=0o700, exist_ok=True)
        try:
            with open(full, "wb") as handle:
                handle.write(data)
        except OSError as exc:
            failure = exc
            continue
        return full
    raise OSError(f"unable to write tree file {filename}") from failure