"""Minimal printf-style formatting for user programs and the kernel console."""

from __future__ import annotations

from typing import Iterator

from .layout import Panic

_UPPER_DIGITS = "0123456789ABCDEF"
_LOWER_DIGITS = "0123456789abcdef"
_MASK32 = 0xFFFFFFFF


def _number(value, base: int, signed: bool, digits: str) -> str:
    x = int(value) & _MASK32
    negative = signed and bool(x & 0x80000000)
    if negative:
        x = (-x) & _MASK32
    out = []
    while True:
        out.append(digits[x % base])
        x //= base
        if x == 0:
            break
    if negative:
        out.append("-")
    return "".join(reversed(out))


def _take(args: Iterator):
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _char(value) -> str:
    if isinstance(value, str):
        if len(value) != 1:
            raise TypeError("%c needs a single character")
        return value
    return chr(int(value) & 0xFF)


def _format(fmt: str, args: tuple, digits: str, with_char: bool) -> str:
    values = iter(args)
    chars = iter(fmt)
    out: list[str] = []
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        c = next(chars, None)
        if c is None:
            break
        if c == "d":
            out.append(_number(_take(values), 10, True, digits))
        elif c in ("x", "p"):
            out.append(_number(_take(values), 16, False, digits))
        elif c == "s":
            s = _take(values)
            out.append("(null)" if s is None else str(s))
        elif c == "c" and with_char:
            out.append(_char(_take(values)))
        elif c == "%":
            out.append("%")
        else:
            # Unknown sequences are printed as they are to draw attention.
            out.append("%" + c)
    return "".join(out)


def render(fmt: str, *args) -> str:
    """Format like the user-level printf: %d, %x, %p, %s, %c and %%."""
    return _format(fmt, args, _UPPER_DIGITS, True)


def render_console(fmt: str, *args) -> str:
    """Format like the kernel console: %d, %x, %p, %s and %%, lower-case hex."""
    if fmt is None:
        raise Panic("null fmt")
    return _format(fmt, args, _LOWER_DIGITS, False)