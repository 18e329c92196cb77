"""Buffer cache: cached, exclusively held copies of disk blocks."""

from __future__ import annotations

import enum
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from .layout import BSIZE, NBUF, Panic


class BufFlag(enum.IntFlag):
    NONE = 0
    BUSY = 0x1  # handed out by bread, not yet released
    VALID = 0x2  # data has been read from disk
    DIRTY = 0x4  # data has been modified and must be written


def _empty_block() -> bytearray:
    return bytearray(BSIZE)


@dataclass(eq=False)
class Buf:
    dev: int = -1
    blockno: int = 0
    flags: BufFlag = BufFlag.NONE
    data: bytearray = field(default_factory=_empty_block)


class BufferCache:
    """A fixed set of buffers kept in most-recently-used order."""

    def __init__(self, disk, nbuf: int = NBUF):
        if nbuf < 1:
            raise ValueError("the cache needs at least one buffer")
        self.disk = disk
        self._cond = threading.Condition()
        self._bufs = [Buf() for _ in range(nbuf)]  # most recently used first

    def _get(self, dev: int, blockno: int) -> Buf:
        with self._cond:
            while True:
                cached = next(
                    (b for b in self._bufs if b.dev == dev and b.blockno == blockno), None
                )
                if cached is None:
                    break
                if not cached.flags & BufFlag.BUSY:
                    cached.flags |= BufFlag.BUSY
                    return cached
                self._cond.wait()

            # Recycle the least recently used buffer that is neither held nor
            # pinned dirty by the log.
            for b in reversed(self._bufs):
                if not b.flags & (BufFlag.BUSY | BufFlag.DIRTY):
                    b.dev = dev
                    b.blockno = blockno
                    b.flags = BufFlag.BUSY
                    return b
        raise Panic("bget: no buffers")

    def _sync(self, buf: Buf) -> None:
        if not buf.flags & BufFlag.BUSY:
            raise Panic("iderw: buf not busy")
        if buf.flags & (BufFlag.VALID | BufFlag.DIRTY) == BufFlag.VALID:
            raise Panic("iderw: nothing to do")
        if buf.dev != self.disk.dev:
            raise Panic(f"iderw: request not for disk {self.disk.dev}")
        if buf.flags & BufFlag.DIRTY:
            self.disk.write_block(buf.blockno, bytes(buf.data))
            buf.flags &= ~BufFlag.DIRTY
        else:
            buf.data[:] = self.disk.read_block(buf.blockno)
        buf.flags |= BufFlag.VALID

    def bread(self, dev: int, blockno: int) -> Buf:
        """Return a busy buffer holding the contents of the block."""
        buf = self._get(dev, blockno)
        if not buf.flags & BufFlag.VALID:
            self._sync(buf)
        return buf

    def bwrite(self, buf: Buf) -> None:
        """Write a busy buffer's contents to disk."""
        if not buf.flags & BufFlag.BUSY:
            raise Panic("bwrite")
        buf.flags |= BufFlag.DIRTY
        self._sync(buf)

    def brelse(self, buf: Buf) -> None:
        """Release a busy buffer and mark it most recently used."""
        if not buf.flags & BufFlag.BUSY:
            raise Panic("brelse")
        with self._cond:
            self._bufs.remove(buf)
            self._bufs.insert(0, buf)
            buf.flags &= ~BufFlag.BUSY
            self._cond.notify_all()

    @contextmanager
    def block(self, dev: int, blockno: int) -> Iterator[Buf]:
        """Hold a block for the duration of a with-statement."""
        buf = self.bread(dev, blockno)
        try:
            yield buf
        finally:
            self.brelse(buf)