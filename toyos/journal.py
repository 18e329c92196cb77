"""Write-ahead redo log that makes groups of file system updates atomic."""

from __future__ import annotations

import struct
import threading
from contextlib import contextmanager
from typing import Iterator

from .bufcache import Buf, BufferCache, BufFlag
from .layout import BSIZE, LOGSIZE, MAXOPBLOCKS, ROOTDEV, Panic, SuperBlock

_COUNT = struct.Struct("<i")
_HEADER_SIZE = _COUNT.size * (1 + LOGSIZE)


class Log:
    """Collects block writes of concurrent operations and commits them together.

    The on-disk log is a header block listing home block numbers, followed by
    the logged copies of those blocks.
    """

    def __init__(self, cache: BufferCache, dev: int = ROOTDEV):
        if _HEADER_SIZE >= BSIZE:
            raise Panic("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        with cache.block(dev, 1) as bp:
            sb = SuperBlock.unpack(bp.data)
        self.start = sb.logstart
        self.size = sb.nlog
        self.outstanding = 0
        self.committing = False
        self.blocks: list[int] = []
        self._cond = threading.Condition()
        self.recover()

    def _install_trans(self) -> None:
        for tail, home in enumerate(self.blocks):
            lbuf = self.cache.bread(self.dev, self.start + tail + 1)
            dbuf = self.cache.bread(self.dev, home)
            dbuf.data[:] = lbuf.data
            self.cache.bwrite(dbuf)
            self.cache.brelse(lbuf)
            self.cache.brelse(dbuf)

    def _read_head(self) -> None:
        with self.cache.block(self.dev, self.start) as buf:
            (n,) = _COUNT.unpack_from(buf.data, 0)
            if not 0 <= n <= LOGSIZE:
                raise Panic("log header corrupt")
            self.blocks = list(struct.unpack_from(f"<{n}i", buf.data, _COUNT.size))

    def _write_head(self) -> None:
        buf = self.cache.bread(self.dev, self.start)
        _COUNT.pack_into(buf.data, 0, len(self.blocks))
        struct.pack_into(f"<{len(self.blocks)}i", buf.data, _COUNT.size, *self.blocks)
        self.cache.bwrite(buf)
        self.cache.brelse(buf)

    def _write_log(self) -> None:
        for tail, home in enumerate(self.blocks):
            to = self.cache.bread(self.dev, self.start + tail + 1)
            src = self.cache.bread(self.dev, home)
            to.data[:] = src.data
            self.cache.bwrite(to)
            self.cache.brelse(src)
            self.cache.brelse(to)

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()  # the real commit point
            self._install_trans()
            self.blocks = []
            self._write_head()

    def recover(self) -> None:
        """Install any committed transaction found on disk, then clear the log."""
        self._read_head()
        self._install_trans()
        self.blocks = []
        self._write_head()

    def begin_op(self) -> None:
        """Mark the start of an operation, waiting while the log is busy or full."""
        with self._cond:
            while (
                self.committing
                or len(self.blocks) + (self.outstanding + 1) * MAXOPBLOCKS > LOGSIZE
            ):
                self._cond.wait()
            self.outstanding += 1

    def end_op(self) -> None:
        """Mark the end of an operation; the last one out commits."""
        with self._cond:
            self.outstanding -= 1
            if self.committing:
                raise Panic("log.committing")
            do_commit = self.outstanding == 0
            if do_commit:
                self.committing = True
            else:
                self._cond.notify_all()

        if do_commit:
            try:
                self._commit()
            finally:
                with self._cond:
                    self.committing = False
                    self._cond.notify_all()

    def log_write(self, buf: Buf) -> None:
        """Record a modified buffer for the current transaction and pin it."""
        if len(self.blocks) >= LOGSIZE or len(self.blocks) >= self.size - 1:
            raise Panic("too big a transaction")
        if self.outstanding < 1:
            raise Panic("log_write outside of trans")
        with self._cond:
            if buf.blockno not in self.blocks:
                self.blocks.append(buf.blockno)
            buf.flags |= BufFlag.DIRTY

    @contextmanager
    def transaction(self) -> Iterator["Log"]:
        """Run the body as one file system operation."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()