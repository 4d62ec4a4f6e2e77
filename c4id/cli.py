"""The ``c4`` command: print C4 IDs of files, folders or piped data."""

from __future__ import annotations

import argparse
import os
import stat
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence, TextIO

from .ident import ID, NIL_ID, identify
from .slices import IDSlice

__all__ = ["Settings", "version_string", "walk_filesystem", "main"]

VERSION_NUMBER = "0.8"


def version_string() -> str:
    """Version banner naming the platform."""
    return f"c4 version {VERSION_NUMBER} ({sys.platform})"


@dataclass
class Settings:
    """Options that control what the walk prints and follows."""

    recursive: bool = False
    absolute: bool = False
    links: bool = False
    depth: int = 0
    include_meta: bool = False
    formatting: str = "id"
    stream: Optional[TextIO] = None

    @property
    def out(self) -> TextIO:
        return self.stream if self.stream is not None else sys.stdout


@dataclass
class _Item:
    folder: bool
    link: bool
    socket: bool
    size: int
    modified: datetime
    link_target: Optional[str] = None
    c4id: str = ""


def _stat_item(path: str) -> _Item:
    try:
        info = os.lstat(path)
    except OSError as exc:
        raise OSError(f'Unable to get status for "{path}": {exc}') from exc
    return _Item(
        folder=stat.S_ISDIR(info.st_mode),
        link=stat.S_ISLNK(info.st_mode),
        socket=stat.S_ISSOCK(info.st_mode),
        size=info.st_size,
        modified=datetime.fromtimestamp(info.st_mtime, tz=timezone.utc),
    )


def _file_id(path: str) -> ID:
    try:
        with open(path, "rb") as handle:
            return identify(handle)
    except OSError as exc:
        raise OSError(f"Unable to identify {path}. {exc}") from exc


def _relative(path: str, root: str) -> str:
    try:
        return os.path.relpath(path, root)
    except ValueError:
        return ""


def _metadata_output(item: _Item, path: str, base_name: str, root: str,
                     settings: Settings) -> None:
    out = settings.out
    if settings.formatting == "path":
        out.write(f'"{path}":\n')
        out.write(f"  c4id: {item.c4id}\n")
    else:
        out.write(f"{item.c4id}:\n")
        out.write(f'  path: "{path}"\n')
    out.write(f'  name:  "{base_name}"\n')
    out.write(f"  folder:  {'true' if item.folder else 'false'}\n")
    if item.link_target is None:
        out.write("  link:  false\n")
    else:
        link_path = item.link_target
        if not settings.absolute and link_path:
            link_path = _relative(link_path, root)
        out.write(f'  link:  "{link_path}"\n')
    out.write(f"  bytes:  {item.size}\n")


def _output(path: str, item: _Item, settings: Settings) -> None:
    root = os.path.abspath(".")
    base_name = os.path.basename(path)
    shown = path if settings.absolute else _relative(path, root)
    if settings.include_meta:
        _metadata_output(item, shown, base_name, root, settings)
    elif settings.formatting == "path":
        settings.out.write(f"{shown}:  {item.c4id}\n")
    else:
        settings.out.write(f"{item.c4id}:  {shown}\n")


def walk_filesystem(path: str | os.PathLike, depth: int,
                    settings: Optional[Settings] = None) -> ID:
    """Identify ``path``, printing entries down to ``depth`` levels.

    Folders are identified by the collection of their children's IDs;
    sockets, and links that are not followed, get the ID of empty data.
    """
    settings = settings if settings is not None else Settings()
    filename = os.fspath(path)
    full = os.path.abspath(filename)
    item = _stat_item(full)

    if item.socket:
        ident = NIL_ID
    elif item.link and not settings.links:
        item.link_target = os.path.realpath(filename)
        ident = NIL_ID
    elif item.link:
        try:
            target = os.path.realpath(filename, strict=True)
        except OSError as exc:
            print(f"Unable to follow link {filename}. {exc}", file=sys.stderr)
            item.link_target = ""
            ident = NIL_ID
        else:
            item.link_target = target
            ident = IDSlice([walk_filesystem(target, depth - 1, settings)]).id()
    elif item.folder:
        try:
            names = sorted(os.listdir(full))
        except OSError as exc:
            raise OSError(f"Unable to read directory: {exc}") from exc
        ident = IDSlice(
            walk_filesystem(filename + os.sep + name, depth - 1, settings)
            for name in names
        ).id()
    else:
        ident = _file_id(full)

    item.c4id = str(ident)
    if depth >= 0 or settings.recursive:
        _output(full, item, settings)
    return ident


def _print_id(ident: ID, stream: TextIO) -> None:
    isatty = getattr(stream, "isatty", None)
    ending = "\n" if isatty is not None and isatty() else ""
    stream.write(f"{ident}{ending}")


def _build_parser() -> argparse.ArgumentParser:
    description = (
        "  c4 generates C4 IDs for all files and folders specified.\n"
        "  If no file is given c4 will read piped data."
    )
    parser = argparse.ArgumentParser(
        prog="c4",
        usage=f"{version_string()}\n\nUsage: c4 [flags] [file]",
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--version", action="store_true",
                        help="Show version information.")
    parser.add_argument("-R", "--recursive", action="store_true",
                        help="Recursively identify all files for the given path.")
    parser.add_argument("-a", "--absolute", action="store_true",
                        help="Output absolute paths, instead of relative paths.")
    parser.add_argument("-L", "--links", action="store_true",
                        help="All symbolic links are followed.")
    parser.add_argument("-d", "--depth", type=int, default=0,
                        help="Only output ids for files and folders 'depth' "
                             "directories deep.")
    parser.add_argument("-m", "--metadata", action="store_true",
                        help="Include filesystem metadata.")
    parser.add_argument("-f", "--formatting", default="id",
                        help='Output formatting options. "id": c4id oriented. '
                             '"path": path oriented.')
    parser.add_argument("files", nargs="*")
    return parser


def _identify_pipe(parser: argparse.ArgumentParser, settings: Settings) -> None:
    stdin = sys.stdin
    if stdin is None or stdin.isatty():
        parser.print_help(sys.stderr)
        return
    source = getattr(stdin, "buffer", stdin)
    _print_id(identify(source), settings.out)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command; returns the exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.version:
        print(version_string())
        return 0

    settings = Settings(
        recursive=args.recursive,
        absolute=args.absolute,
        links=args.links,
        depth=args.depth,
        include_meta=args.metadata,
        formatting=args.formatting,
    )
    files: list[str] = args.files
    try:
        if not files:
            _identify_pipe(parser, settings)
        elif len(files) == 1 and not (settings.recursive or settings.include_meta) \
                and settings.depth == 0:
            ident = walk_filesystem(os.path.abspath(files[0]), -1, settings)
            _print_id(ident, settings.out)
        else:
            depth = max(settings.depth, 0)
            for name in files:
                walk_filesystem(os.path.abspath(name), depth, settings)
    except OSError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())