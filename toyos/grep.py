"""A small grep supporting the ^ . * $ operators."""

from __future__ import annotations

import sys
from typing import BinaryIO, Iterator

_BUFSIZE = 1024


def _matchhere(re: str, ri: int, text: str, ti: int) -> bool:
    while True:
        if ri == len(re):
            return True
        if ri + 1 < len(re) and re[ri + 1] == "*":
            return _matchstar(re[ri], re, ri + 2, text, ti)
        if re[ri] == "$" and ri + 1 == len(re):
            return ti == len(text)
        if ti < len(text) and (re[ri] == "." or re[ri] == text[ti]):
            ri += 1
            ti += 1
            continue
        return False


def _matchstar(c: str, re: str, ri: int, text: str, ti: int) -> bool:
    while True:
        if _matchhere(re, ri, text, ti):
            return True
        if ti < len(text) and (text[ti] == c or c == "."):
            ti += 1
        else:
            return False


def match(re: str, text: str) -> bool:
    """Return whether ``re`` matches anywhere in ``text``."""
    if re.startswith("^"):
        return _matchhere(re, 1, text, 0)
    return any(_matchhere(re, 0, text, ti) for ti in range(len(text) + 1))


def grep(pattern: str, stream: BinaryIO) -> Iterator[bytes]:
    """Yield each newline-terminated line of ``stream`` that matches ``pattern``.

    Input is read into a buffer of fixed size; a buffer holding no complete
    line is discarded, and a final line without a newline is never reported.
    """
    buf = b""
    while True:
        chunk = stream.read(_BUFSIZE - len(buf) - 1)
        if not chunk:
            break
        buf += chunk
        start = 0
        while (nl := buf.find(b"\n", start)) != -1:
            line = buf[start:nl]
            text = line.split(b"\0", 1)[0].decode("latin-1")
            if match(pattern, text):
                yield buf[start : nl + 1]
            start = nl + 1
        buf = b"" if start == 0 else buf[start:]


def main(argv=None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("usage: grep pattern [file ...]", file=sys.stderr)
        return 1
    pattern, *paths = args
    out = sys.stdout.buffer
    if not paths:
        for line in grep(pattern, sys.stdin.buffer):
            out.write(line)
        out.flush()
        return 0
    for path in paths:
        try:
            fh = open(path, "rb")
        except OSError:
            out.write(f"grep: cannot open {path}\n".encode())
            out.flush()
            return 1
        with fh:
            for line in grep(pattern, fh):
                out.write(line)
    out.flush()
    return 0