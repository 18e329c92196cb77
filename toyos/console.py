"""Console: line-edited keyboard input and output to screen and serial line."""

from __future__ import annotations

import threading
from typing import Callable, Iterable, Optional, Union

from .layout import Panic

INPUT_BUF = 128
BACKSPACE = 0x100
COLS = 80
ROWS = 25
_ATTR = 0x0700  # light grey on black


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


def _code(c: Union[int, str]) -> int:
    return ord(c) if isinstance(c, str) else int(c)


class Screen:
    """A text-mode display of 80 by 25 cells with a cursor."""

    def __init__(self) -> None:
        self.cells = [0] * (COLS * ROWS)
        self.pos = 0

    def putc(self, c: Union[int, str]) -> None:
        c = _code(c)
        pos = self.pos
        if c == ord("\n"):
            pos += COLS - pos % COLS
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.cells[pos] = (c & 0xFF) | _ATTR
            pos += 1

        if pos < 0 or pos > ROWS * COLS:
            raise Panic("pos under/overflow")

        if pos // COLS >= 24:
            self.cells[: 23 * COLS] = self.cells[COLS : 24 * COLS]
            pos -= COLS
            self.cells[pos : 24 * COLS] = [0] * (24 * COLS - pos)

        self.pos = pos
        self.cells[pos] = ord(" ") | _ATTR


class Console:
    """Echoes typed characters and hands out completed input lines."""

    def __init__(
        self,
        screen: Optional[Screen] = None,
        uart: Optional[Callable[[int], None]] = None,
        procdump: Optional[Callable[[], None]] = None,
    ):
        self.screen = screen if screen is not None else Screen()
        self.serial = bytearray()
        self._uart = uart if uart is not None else self.serial.append
        self._procdump = procdump
        self._cond = threading.Condition()
        self._killed = False
        self._buf = bytearray(INPUT_BUF)
        self._r = 0  # read index
        self._w = 0  # write index
        self._e = 0  # edit index

    @property
    def killed(self) -> bool:
        return self._killed

    @killed.setter
    def killed(self, value: bool) -> None:
        with self._cond:
            self._killed = bool(value)
            self._cond.notify_all()

    def putc(self, c: Union[int, str]) -> None:
        """Send one character to the serial line and the screen."""
        c = _code(c)
        if c == BACKSPACE:
            for byte in b"\b \b":
                self._uart(byte)
        else:
            self._uart(c & 0xFF)
        self.screen.putc(c)

    def interrupt(self, chars: Iterable[Union[int, str]]) -> None:
        """Process typed characters; a negative code ends the batch."""
        dump = False
        with self._cond:
            for c in chars:
                c = _code(c)
                if c < 0:
                    break
                if c == _ctrl("P"):
                    dump = True
                elif c == _ctrl("U"):
                    while self._e != self._w and self._buf[(self._e - 1) % INPUT_BUF] != ord("\n"):
                        self._e -= 1
                        self.putc(BACKSPACE)
                elif c in (_ctrl("H"), 0x7F):
                    if self._e != self._w:
                        self._e -= 1
                        self.putc(BACKSPACE)
                elif c != 0 and self._e - self._r < INPUT_BUF:
                    if c == ord("\r"):
                        c = ord("\n")
                    self._buf[self._e % INPUT_BUF] = c & 0xFF
                    self._e += 1
                    self.putc(c)
                    if c == ord("\n") or c == _ctrl("D") or self._e == self._r + INPUT_BUF:
                        self._w = self._e
                        self._cond.notify_all()
        if dump and self._procdump is not None:
            self._procdump()

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, stopping after a newline or at end of input."""
        target = n
        out = bytearray()
        with self._cond:
            while n > 0:
                while self._r == self._w:
                    if self._killed:
                        raise InterruptedError("console read interrupted")
                    self._cond.wait()
                c = self._buf[self._r % INPUT_BUF]
                self._r += 1
                if c == _ctrl("D"):
                    if n < target:
                        # Keep ^D so the next read returns nothing.
                        self._r -= 1
                    break
                out.append(c)
                n -= 1
                if c == ord("\n"):
                    break
        return bytes(out)

    def write(self, data: Union[bytes, bytearray, str]) -> int:
        """Write every byte of ``data`` to the console."""
        if isinstance(data, str):
            data = data.encode("latin-1")
        data = bytes(data)
        with self._cond:
            for byte in data:
                self.putc(byte)
        return len(data)