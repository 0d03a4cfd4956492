from __future__ import annotations

import argparse
import contextlib
import logging
import sys
from collections.abc import Sequence

from .core import TEST_FLAGS, Options, read_paths, run

USAGE = "%(prog)s [-abcdefghlpqrsuvwx] [-n file] [-o file] [file...]"


def build_parser() -> argparse.ArgumentParser:
    # -h is the symlink test, so argparse must not claim it for help.
    p = argparse.ArgumentParser(
        prog="stest",
        usage=USAGE,
        description="Print the paths that pass every requested test.",
        add_help=False,
        allow_abbrev=False,
    )
    p.add_argument("paths", nargs="*", help="Paths to test (read from stdin if none)")

    for t in TEST_FLAGS:
        if t.check is None:
            p.add_argument(
                f"-{t.letter}",
                f"--{t.long}",
                dest=t.letter,
                nargs="?",
                const="",
                metavar="file",
                help=t.help,
            )
        else:
            p.add_argument(
                f"-{t.letter}", f"--{t.long}", dest=t.letter, action="store_true", help=t.help
            )

    p.add_argument("-l", "--recurse", action="store_true", help="test directory contents")
    p.add_argument("-q", "--quiet", action="store_true", help="exit on first match, print nothing")
    p.add_argument("-v", "--inverted", action="store_true", help="invert the result")
    p.add_argument("--debug", action="store_true", help="Log absorbed filesystem errors")
    p.add_argument("--help", action="help", help="Show this message and exit")
    return p


def options_from_args(ns: argparse.Namespace) -> Options:
    tests = set()
    for t in TEST_FLAGS:
        value = getattr(ns, t.letter)
        if t.check is None:
            if value is not None:
                tests.add(t.letter)
        elif value:
            tests.add(t.letter)

    return Options(
        tests=frozenset(tests),
        invert=ns.inverted,
        quiet=ns.quiet,
        recurse=ns.recurse,
        newer=ns.n or None,
        older=ns.o or None,
    )


def main(argv: Sequence[str] | None = None) -> int:
    p = build_parser()
    ns = p.parse_intermixed_args(argv)

    if ns.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="stest: %(levelname)s: %(message)s",
            stream=sys.stderr,
        )

    opts = options_from_args(ns)
    paths = ns.paths or read_paths(sys.stdin.buffer)

    try:
        status = run(paths, opts)
        sys.stdout.flush()
    except BrokenPipeError:
        with contextlib.suppress(Exception):
            sys.stdout.close()
        return 0

    return status


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
