# c4id

Universally unique, consistent identifiers for data, following the C4 ID
standard (SMPTE ST 2114:2017). A C4 ID is the SHA-512 hash of a block of data,
base-58 encoded into a 90 character string that starts with `c4`. The same data
always yields the same ID, so IDs can be used as filenames, URL parts, database
keys, or anywhere else a string identifier fits.

The package has no dependencies beyond the Python standard library.

## Install

```
pip install c4id
```

## Identifying data

```python
from c4id.ident import identify, identify_bytes, parse, Encoder

ident = identify_bytes(b"foo")
print(str(ident))
# c45xZeXwMSpqXjpDumcHMA6mhoAmGHkUo7r9WmN2UgSEQzj9KjgseaQdkEJ11fGb5S1WEENcV3q8RFWwEeVpC7Fjk2

with open("some_file", "rb") as f:
    file_id = identify(f)

enc = Encoder()
enc.write(b"streamed ")
enc.write(b"data")
streamed_id = enc.id()
enc.reset()

same = parse(str(ident))
assert same.cmp(ident) == 0
```

`identify` accepts a readable binary stream, a bytes-like object, or a `str`
(which is encoded as UTF-8). Errors raised while reading a stream reach the
caller.

`parse` raises `BadLengthError` or `BadCharError` for malformed strings; both
are `C4Error`s (and `ValueError`s) from `c4id.errors`.

IDs compare and sort by numeric value (`<`, `==`, `cmp`, `less`; `cmp` with
`None` gives -1). An `ID` becomes its 64 byte `Digest` with `ident.digest()`,
and a `Digest` becomes an `ID` with `digest.id()`. `Digest.from_bytes` pads
shorter input with leading zero bytes. `Digest.sum` hashes two digests lesser
first; two equal digests sum to themselves.

`ID.to_json()` gives the quoted ID string (`""` for the zero ID), and
`ID.from_json()` reads it back (`null` gives `None`). `ID.to_bytes()` and
`ID.from_bytes()` convert to and from the 64 digest bytes.

The constants `NIL_ID` (ID of empty data), `VOID_ID` (all digest bytes zero)
and `MAX_ID` (all digest bytes 0xFF) are provided in `c4id.ident`.

## Identifying collections

Sets of non-contiguous data, such as the files of a folder, are identified by
inserting their IDs or digests into a sorted slice. Duplicates are kept once,
so insertion order does not matter:

```python
from c4id.slices import IDSlice, DigestSlice

ids = IDSlice()
for name in (b"alfa", b"bravo", b"charlie"):
    ids.insert(identify_bytes(name))
collection_id = ids.id()

digests = DigestSlice(identify_bytes(n).digest() for n in (b"alfa", b"bravo"))
collection_digest = digests.digest()
```

`DigestSlice.to_bytes()` concatenates its digests and `DigestSlice.write()`
inserts every 64 byte digest from a block of bytes.

`c4id.tree.Tree` keeps every intermediate digest of that computation:

```python
from c4id.tree import Tree

tree = Tree(digests)
root = tree.compute()          # same as digests.digest()
data = tree.to_bytes()
restored = Tree.from_bytes(data)
```

Rows are read with `row`, single digests with `at`, and `node` gives a `Node`
with `parent`, `label`, `left` and `right`. `Tree.from_bytes` raises
`InvalidTreeError` for data that is not a tree; `to_bytes` raises
`NilIDError` for a tree that has not been computed.

## Storage

`c4id.db.DB` keeps, in a single directory (an SQLite file named `db` inside
it), keys mapped to digests, typed links between digests, and trees:

```python
from c4id.db import DB

with DB.open("store_dir", None) as db:
    db.key_set("assets/foo", ident.digest())
    print(db.key_get("assets/foo").id())
    print(db.key_find(ident.digest()))          # ['assets/foo']
    db.link_set("metadata", ident.digest(), streamed_id.digest())
    for entry in db.link_get("metadata", ident.digest()):
        print(entry.target.id())
```

- Keys: `key_set`, `key_get`, `key_delete`, `key_find`, `key_get_all(*prefixes)`,
  `key_delete_all(*prefixes)` (all keys when no prefix is given), `key_cas`
  (compare and swap, where `None` stands for an unset key), and `key_batch`,
  which calls a function with a `Tx` until it returns `False` and writes the
  queued `Tx.key_set` calls in batches of 10,000.
- Links: `link_set`, `link_get`, `link_delete`, `link_get_all`,
  `link_delete_all`. Setting or deleting links without targets raises
  `ValueError`.
- Trees: `tree_set`, `tree_get`, `tree_delete`. With `Options(tree_max_size=N)`,
  trees larger than `N` bytes are written as files under the directories in
  `Options.external_store` (the store directory when none is given).
- `stats()` returns a `Stats` with counts of keys, index entries, trees and
  links, and the bytes held by trees.

Listing methods yield `Entry` objects. Options are saved with the store and
reused when it is opened again with `None`. `Options.tree_strategy` is saved
but does not change how trees are stored.

## Command line

```
c4 [flags] [file ...]
```

With no file, `c4` identifies data piped on standard input. With a single file
and no flags it prints just that file's ID (a folder is identified by the IDs
of its contents). Otherwise it prints `id:  path` lines. Flags:

- `-R`, `--recursive` identify and print everything below the given paths
- `-d N`, `--depth N` print IDs only down to `N` directories deep
- `-a`, `--absolute` print absolute paths
- `-L`, `--links` follow symbolic links (otherwise a link gets the ID of empty data)
- `-m`, `--metadata` include filesystem metadata (name, folder, link, bytes)
- `-f id|path`, `--formatting` choose ID-oriented or path-oriented output
- `-v`, `--version` show the version