from __future__ import annotations

import enum
import logging
import os
import sys
from collections.abc import Callable, Iterable, Iterator
from contextlib import closing, suppress
from dataclasses import dataclass, field
from typing import IO, BinaryIO

from .entry import Entry, Ordering, compare_mtime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlagSpec:
    letter: str
    long: str
    help: str
    check: Callable[[Entry], bool] | None = None  # None: needs a reference entry


TEST_FLAGS: tuple[FlagSpec, ...] = (
    FlagSpec("a", "hidden", "hidden", Entry.is_hidden),
    FlagSpec("b", "block", "block device", Entry.is_block),
    FlagSpec("c", "char", "char device", Entry.is_char),
    FlagSpec("d", "dir", "directory", Entry.is_dir),
    FlagSpec("e", "exists", "exists", Entry.exists),
    FlagSpec("f", "file", "regular file", Entry.is_file),
    FlagSpec("g", "has-setgid", "setgid", Entry.has_setgid),
    FlagSpec("h", "symlink", "symlink", Entry.is_symlink),
    FlagSpec("n", "newer", "newer than file"),
    FlagSpec("o", "older", "older than file"),
    FlagSpec("p", "pipe", "pipe", Entry.is_pipe),
    FlagSpec("r", "readable", "readable", Entry.is_readable),
    FlagSpec("s", "non-empty", "non-empty", Entry.is_non_empty),
    FlagSpec("u", "has-setuid", "setuid", Entry.has_setuid),
    FlagSpec("w", "writable", "writable", Entry.is_writable),
    FlagSpec("x", "executable", "executable", Entry.is_executable),
)

_CHECKS = {t.letter: t.check for t in TEST_FLAGS}


@dataclass(frozen=True)
class Options:
    tests: frozenset[str] = field(default_factory=frozenset)
    invert: bool = False
    quiet: bool = False
    recurse: bool = False
    newer: str | None = None  # reference path for "n"
    older: str | None = None  # reference path for "o"

    def __post_init__(self) -> None:
        unknown = set(self.tests) - set(_CHECKS)
        if unknown:
            raise ValueError(f"unknown test flag(s): {''.join(sorted(unknown))}")
        object.__setattr__(self, "tests", frozenset(self.tests))


class Outcome(enum.Enum):
    NO_MATCH = "no-match"
    MATCH = "match"
    STOP = "stop"  # quiet mode found a match; nothing else needs evaluating


def _run_test(
    letter: str, entry: Entry, newer: Entry | None, older: Entry | None
) -> bool:
    if letter == "n":
        return newer is not None and compare_mtime(entry, newer) is Ordering.GREATER
    if letter == "o":
        return older is not None and compare_mtime(entry, older) is Ordering.LESS
    check = _CHECKS[letter]
    assert check is not None
    return check(entry)


def evaluate(
    entry: Entry,
    options: Options,
    newer: Entry | None = None,
    older: Entry | None = None,
) -> bool:
    """AND every active test together, then apply the global inversion.

    Inactive tests are vacuously true, so with no tests active every entry
    matches unless ``options.invert`` is set. ``n`` and ``o`` are false when
    their reference entry is missing or either side cannot be stat'ed.
    """
    conjunction = all(_run_test(t, entry, newer, older) for t in sorted(options.tests))
    return conjunction != options.invert


def walk(root: str) -> Iterator[str]:
    """Yield every path below ``root`` in pre-order, not including ``root``.

    Symlinked directories below the root are listed but not descended into.
    Unreadable directories are skipped. Closing the generator closes every
    directory handle still open.
    """
    stack: list[tuple[str, Iterator[os.DirEntry]]] = []

    def push_dir(path: str) -> None:
        try:
            it = os.scandir(path)
        except (OSError, ValueError) as e:
            logger.debug("cannot read directory %r: %s", path, e)
            return
        stack.append((path, it))

    push_dir(root)
    try:
        while stack:
            cur_path, it = stack[-1]
            try:
                entry = next(it)
            except StopIteration:
                with suppress(OSError):
                    it.close()  # type: ignore[attr-defined]
                stack.pop()
                continue
            except OSError as e:
                logger.debug("error reading %r: %s", cur_path, e)
                with suppress(OSError):
                    it.close()  # type: ignore[attr-defined]
                stack.pop()
                continue

            path = os.path.join(cur_path, entry.name)
            yield path

            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False
            if is_dir:
                push_dir(path)
    finally:
        for _, it in stack:
            with suppress(OSError):
                it.close()  # type: ignore[attr-defined]
        stack.clear()


def read_paths(stream: BinaryIO) -> list[str]:
    """Read newline separated paths until a blank line or end of input."""
    paths: list[str] = []
    for raw in stream:
        if raw == b"\n":
            break
        paths.append(os.fsdecode(raw.strip()))
    return paths


def _candidates(path: str, options: Options) -> Iterator[Entry]:
    root = Entry(path)
    if options.recurse and root.is_dir():
        with closing(walk(path)) as paths:
            for sub in paths:
                yield Entry(sub)
    else:
        yield root


def report(
    entry: Entry,
    options: Options,
    out: IO[str],
    newer: Entry | None = None,
    older: Entry | None = None,
) -> Outcome:
    if not evaluate(entry, options, newer, older):
        return Outcome.NO_MATCH
    if options.quiet:
        return Outcome.STOP
    out.write(entry.display() + "\n")
    return Outcome.MATCH


def run(paths: Iterable[str], options: Options, out: IO[str] | None = None) -> int:
    """Evaluate every candidate and return the exit status.

    0 when anything matched, 1 otherwise. In quiet mode the first match
    stops the run immediately with 0 and nothing is printed.
    """
    if out is None:
        out = sys.stdout
    newer = Entry(options.newer) if options.newer else None
    older = Entry(options.older) if options.older else None

    matched = False
    for path in paths:
        with closing(_candidates(path, options)) as entries:
            for entry in entries:
                outcome = report(entry, options, out, newer, older)
                if outcome is Outcome.STOP:
                    return 0
                if outcome is Outcome.MATCH:
                    matched = True
    return 0 if matched else 1
