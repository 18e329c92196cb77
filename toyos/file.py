"""Open files: reference-counted handles on inodes and pipes."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from typing import Optional

from .fs import FileSystem, Inode, Stat
from .kalloc import PageAllocator
from .layout import BSIZE, LOGSIZE, NFILE, Panic

PIPESIZE = 512

# Write a few blocks per transaction so one write never overflows the log:
# room for the inode, an indirect block, allocation blocks and two blocks
# of slop for unaligned writes.
_MAX_WRITE = ((LOGSIZE - 1 - 1 - 2) // 2) * BSIZE


class FileType(enum.Enum):
    NONE = 0
    PIPE = 1
    INODE = 2


class Pipe:
    """A bounded byte channel between a reading and a writing file."""

    def __init__(
        self, allocator: Optional[PageAllocator] = None, page: Optional[int] = None
    ):
        self._cond = threading.Condition()
        self._data = bytearray(PIPESIZE)
        self.nread = 0
        self.nwrite = 0
        self.readopen = True
        self.writeopen = True
        self._allocator = allocator
        self._page = page

    def write(self, data) -> int:
        """Write all of ``data``, waiting while the pipe is full."""
        data = bytes(data)
        with self._cond:
            for byte in data:
                while self.nwrite == self.nread + PIPESIZE:
                    if not self.readopen:
                        raise BrokenPipeError("pipe has no reader")
                    self._cond.notify_all()
                    self._cond.wait()
                self._data[self.nwrite % PIPESIZE] = byte
                self.nwrite += 1
            self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, waiting until data arrives or the writer closes."""
        with self._cond:
            while self.nread == self.nwrite and self.writeopen:
                self._cond.wait()
            out = bytearray()
            while len(out) < n and self.nread != self.nwrite:
                out.append(self._data[self.nread % PIPESIZE])
                self.nread += 1
            self._cond.notify_all()
        return bytes(out)

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, else the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()
            both_closed = not self.readopen and not self.writeopen
        if both_closed and self._allocator is not None and self._page is not None:
            self._allocator.kfree(self._page)
            self._page = None


@dataclass(eq=False)
class File:
    """One entry of the open file table."""

    table: "FileTable" = field(repr=False)
    type: FileType = FileType.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Optional[Pipe] = None
    ip: Optional[Inode] = None
    off: int = 0

    def _fs(self) -> FileSystem:
        if self.table.fs is None:
            raise RuntimeError("file table has no file system")
        return self.table.fs

    def dup(self) -> "File":
        """Take another reference to this file."""
        with self.table._lock:
            if self.ref < 1:
                raise Panic("filedup")
            self.ref += 1
        return self

    def close(self) -> None:
        """Drop a reference; release the pipe end or inode with the last one."""
        with self.table._lock:
            if self.ref < 1:
                raise Panic("fileclose")
            self.ref -= 1
            if self.ref > 0:
                return
            kind, pipe, ip, writable = self.type, self.pipe, self.ip, self.writable
            self.type = FileType.NONE
            self.pipe = None
            self.ip = None

        if kind is FileType.PIPE:
            pipe.close(writable)
        elif kind is FileType.INODE:
            fs = self._fs()
            with fs.log.transaction():
                fs.iput(ip)

    def stat(self) -> Stat:
        """Metadata of the file's inode."""
        if self.type is not FileType.INODE:
            raise OSError("stat of a file that is not an inode")
        fs = self._fs()
        fs.ilock(self.ip)
        try:
            return fs.stati(self.ip)
        finally:
            fs.iunlock(self.ip)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes from the current offset."""
        if not self.readable:
            raise PermissionError("file not open for reading")
        if self.type is FileType.PIPE:
            return self.pipe.read(n)
        if self.type is FileType.INODE:
            fs = self._fs()
            fs.ilock(self.ip)
            try:
                data = fs.readi(self.ip, self.off, n)
                self.off += len(data)
            finally:
                fs.iunlock(self.ip)
            return data
        raise Panic("fileread")

    def write(self, data) -> int:
        """Write all of ``data`` at the current offset."""
        if not self.writable:
            raise PermissionError("file not open for writing")
        data = bytes(data)
        if self.type is FileType.PIPE:
            return self.pipe.write(data)
        if self.type is FileType.INODE:
            fs = self._fs()
            done = 0
            while done < len(data):
                chunk = data[done : done + _MAX_WRITE]
                with fs.log.transaction():
                    fs.ilock(self.ip)
                    try:
                        written = fs.writei(self.ip, chunk, self.off)
                        if written > 0:
                            self.off += written
                    finally:
                        fs.iunlock(self.ip)
                if written != len(chunk):
                    raise Panic("short filewrite")
                done += written
            return len(data)
        raise Panic("filewrite")


class FileTable:
    """The system-wide table of open files."""

    def __init__(
        self,
        fs: Optional[FileSystem] = None,
        allocator: Optional[PageAllocator] = None,
        nfile: int = NFILE,
    ):
        self.fs = fs
        self.allocator = allocator
        self._lock = threading.Lock()
        self._files = [File(self) for _ in range(nfile)]

    def alloc(self) -> File:
        """Claim a free entry; the caller fills in its type and target."""
        with self._lock:
            for f in self._files:
                if f.ref == 0:
                    f.ref = 1
                    f.type = FileType.NONE
                    f.readable = False
                    f.writable = False
                    f.pipe = None
                    f.ip = None
                    f.off = 0
                    return f
        raise OSError("file table full")

    def pipe(self) -> tuple[File, File]:
        """Create a pipe and return its (read end, write end)."""
        allocated: list[File] = []
        try:
            reader = self.alloc()
            allocated.append(reader)
            writer = self.alloc()
            allocated.append(writer)
            page = self.allocator.kalloc() if self.allocator is not None else None
        except Exception:
            for f in allocated:
                f.close()
            raise
        p = Pipe(self.allocator, page)
        reader.type = FileType.PIPE
        reader.readable = True
        reader.writable = False
        reader.pipe = p
        writer.type = FileType.PIPE
        writer.readable = False
        writer.writable = True
        writer.pipe = p
        return reader, writer