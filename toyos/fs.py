"""File system: block allocation, inodes, inode content, directories and paths."""

from __future__ import annotations

import enum
import struct
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from .bufcache import BufferCache
from .journal import Log
from .layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDEV,
    NDIRECT,
    NINDIRECT,
    NINODE,
    ROOTDEV,
    ROOTINO,
    DirEntry,
    DiskInode,
    Panic,
    SuperBlock,
    bblock,
    iblock,
)

_ADDR = struct.Struct("<I")
_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class InodeType(enum.IntEnum):
    FREE = 0
    DIR = 1
    FILE = 2
    DEV = 3


@dataclass(frozen=True)
class Stat:
    dev: int
    ino: int
    type: int
    nlink: int
    size: int


@dataclass
class Device:
    """Read and write handlers for a major device number."""

    read: Optional[Callable[["Inode", int], bytes]] = None
    write: Optional[Callable[["Inode", bytes], int]] = None


def _empty_addrs() -> list[int]:
    return [0] * (NDIRECT + 1)


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode plus cache bookkeeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    busy: bool = False
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=_empty_addrs)


def skipelem(path: str) -> Optional[tuple[str, str]]:
    """Split off the first path element.

    Returns ``(name, rest)`` where ``name`` is cut to DIRSIZ characters and
    ``rest`` has no leading slashes, or None when no element is left.
    """
    path = path.lstrip("/")
    if not path:
        return None
    elem, _, rest = path.partition("/")
    return elem[:DIRSIZ], rest.lstrip("/")


def namecmp(s: str, t: str) -> int:
    """Compare two directory names on their first DIRSIZ characters."""
    a, b = s[:DIRSIZ], t[:DIRSIZ]
    return (a > b) - (a < b)


class FileSystem:
    """Files and directories stored on one device through a buffer cache and log."""

    def __init__(
        self,
        cache: BufferCache,
        log: Optional[Log] = None,
        dev: int = ROOTDEV,
        devices: Optional[dict[int, Device]] = None,
    ):
        self.cache = cache
        self.dev = dev
        with cache.block(dev, 1) as bp:
            self.sb = SuperBlock.unpack(bp.data)
        self.log = log if log is not None else Log(cache, dev)
        self.devices: dict[int, Device] = dict(devices or {})
        self._cond = threading.Condition()
        self._inodes = [Inode() for _ in range(NINODE)]

    # Blocks.

    def _bzero(self, bno: int) -> None:
        with self.cache.block(self.dev, bno) as bp:
            bp.data[:] = bytes(BSIZE)
            self.log.log_write(bp)

    def balloc(self) -> int:
        """Allocate a zeroed disk block and return its number."""
        size = self.sb.size
        for base in range(0, size, BPB):
            found = None
            with self.cache.block(self.dev, bblock(base, self.sb)) as bp:
                for bi in range(min(BPB, size - base)):
                    mask = 1 << (bi % 8)
                    if not bp.data[bi // 8] & mask:
                        bp.data[bi // 8] |= mask
                        self.log.log_write(bp)
                        found = base + bi
                        break
            if found is not None:
                self._bzero(found)
                return found
        raise Panic("balloc: out of blocks")

    def bfree(self, b: int) -> None:
        """Mark a disk block free."""
        with self.cache.block(self.dev, bblock(b, self.sb)) as bp:
            bi = b % BPB
            mask = 1 << (bi % 8)
            if not bp.data[bi // 8] & mask:
                raise Panic("freeing free block")
            bp.data[bi // 8] &= ~mask & 0xFF
            self.log.log_write(bp)

    # Inodes.

    @staticmethod
    def _dinode_offset(inum: int) -> int:
        return (inum % IPB) * DiskInode.SIZE

    def ialloc(self, type_: int) -> Inode:
        """Allocate a free on-disk inode of the given type and return it unlocked."""
        for inum in range(1, self.sb.ninodes):
            with self.cache.block(self.dev, iblock(inum, self.sb)) as bp:
                off = self._dinode_offset(inum)
                if DiskInode.unpack(bp.data[off:]).type == 0:
                    bp.data[off : off + DiskInode.SIZE] = DiskInode(type=int(type_)).pack()
                    self.log.log_write(bp)
                    allocated = True
                else:
                    allocated = False
            if allocated:
                return self.iget(inum)
        raise Panic("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy a modified in-memory inode to disk."""
        with self.cache.block(ip.dev, iblock(ip.inum, self.sb)) as bp:
            off = self._dinode_offset(ip.inum)
            din = DiskInode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, ip.addrs)
            bp.data[off : off + DiskInode.SIZE] = din.pack()
            self.log.log_write(bp)

    def iget(self, inum: int) -> Inode:
        """Return the cached inode for ``inum``, neither locked nor read from disk."""
        with self._cond:
            empty = None
            for ip in self._inodes:
                if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise Panic("iget: no inodes")
            empty.dev = self.dev
            empty.inum = inum
            empty.ref = 1
            empty.busy = False
            empty.valid = False
            return empty

    def idup(self, ip: Inode) -> Inode:
        """Take another reference to ``ip``."""
        with self._cond:
            ip.ref += 1
        return ip

    def ilock(self, ip: Inode) -> None:
        """Lock the inode, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise Panic("ilock")
        with self._cond:
            while ip.busy:
                self._cond.wait()
            ip.busy = True
        if not ip.valid:
            with self.cache.block(ip.dev, iblock(ip.inum, self.sb)) as bp:
                din = DiskInode.unpack(bp.data[self._dinode_offset(ip.inum) :])
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                raise Panic("ilock: no type")

    def iunlock(self, ip: Inode) -> None:
        if ip is None or not ip.busy or ip.ref < 1:
            raise Panic("iunlock")
        with self._cond:
            ip.busy = False
            self._cond.notify_all()

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last and unlinked."""
        with self._cond:
            release = ip.ref == 1 and ip.valid and ip.nlink == 0
            if release:
                if ip.busy:
                    raise Panic("iput busy")
                ip.busy = True
        if release:
            self.itrunc(ip)
            ip.type = 0
            self.iupdate(ip)
            with self._cond:
                ip.busy = False
                ip.valid = False
                self._cond.notify_all()
        with self._cond:
            ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        self.iunlock(ip)
        self.iput(ip)

    # Inode content.

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self.balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self.balloc()
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                (addr,) = _ADDR.unpack_from(bp.data, bn * _ADDR.size)
                if addr == 0:
                    addr = self.balloc()
                    _ADDR.pack_into(bp.data, bn * _ADDR.size, addr)
                    self.log.log_write(bp)
            return addr
        raise Panic("bmap: out of range")

    def itrunc(self, ip: Inode) -> None:
        """Free all of the inode's content blocks."""
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self.bfree(ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                addrs = _INDIRECT.unpack_from(bp.data)
            for addr in addrs:
                if addr:
                    self.bfree(addr)
            self.bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        return Stat(ip.dev, ip.inum, ip.type, ip.nlink, ip.size)

    def _device(self, ip: Inode, op: str) -> Callable:
        device = self.devices.get(ip.major) if 0 <= ip.major < NDEV else None
        handler = getattr(device, op, None) if device is not None else None
        if handler is None:
            raise OSError(f"no {op} handler for device {ip.major}")
        return handler

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off`` from a locked inode."""
        if ip.type == InodeType.DEV:
            return self._device(ip, "read")(ip, n)
        if off < 0 or n < 0 or off > ip.size:
            raise ValueError(f"read at {off} outside file of size {ip.size}")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            with self.cache.block(ip.dev, self._bmap(ip, off // BSIZE)) as bp:
                start = off % BSIZE
                m = min(n - len(out), BSIZE - start)
                out += bp.data[start : start + m]
            off += m
        return bytes(out)

    def writei(self, ip: Inode, data, off: int) -> int:
        """Write ``data`` at ``off`` into a locked inode, growing it if needed."""
        if ip.type == InodeType.DEV:
            return self._device(ip, "write")(ip, bytes(data))
        data = memoryview(bytes(data))
        n = len(data)
        if off < 0 or off > ip.size:
            raise ValueError(f"write at {off} outside file of size {ip.size}")
        if off + n > MAXFILE * BSIZE:
            raise ValueError("write exceeds maximum file size")
        tot = 0
        while tot < n:
            with self.cache.block(ip.dev, self._bmap(ip, off // BSIZE)) as bp:
                start = off % BSIZE
                m = min(n - tot, BSIZE - start)
                bp.data[start : start + m] = data[tot : tot + m]
                self.log.log_write(bp)
            tot += m
            off += m
        if n > 0 and off > ip.size:
            ip.size = off
            self.iupdate(ip)
        return n

    # Directories.

    def dirlookup(self, dp: Inode, name: str) -> Optional[tuple[Inode, int]]:
        """Find ``name`` in a locked directory; return its inode and entry offset."""
        if dp.type != InodeType.DIR:
            raise Panic("dirlookup not DIR")
        for off in range(0, dp.size, DirEntry.SIZE):
            raw = self.readi(dp, off, DirEntry.SIZE)
            if len(raw) != DirEntry.SIZE:
                raise Panic("dirlink read")
            de = DirEntry.unpack(raw)
            if de.inum and namecmp(name, de.name) == 0:
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry (name, inum) to a locked directory."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(name)
        off = 0
        while off < dp.size:
            raw = self.readi(dp, off, DirEntry.SIZE)
            if len(raw) != DirEntry.SIZE:
                raise Panic("dirlink read")
            if DirEntry.unpack(raw).inum == 0:
                break
            off += DirEntry.SIZE
        if self.writei(dp, DirEntry(inum, name[:DIRSIZ]).pack(), off) != DirEntry.SIZE:
            raise Panic("dirlink")

    # Paths.

    def _namex(self, path: str, cwd: Optional[Inode], parent: bool) -> tuple[Inode, str]:
        if path.startswith("/") or cwd is None:
            ip = self.iget(ROOTINO)
        else:
            ip = self.idup(cwd)
        name = ""
        while (step := skipelem(path)) is not None:
            name, path = step
            self.ilock(ip)
            if ip.type != InodeType.DIR:
                self.iunlockput(ip)
                raise NotADirectoryError(name)
            if parent and not path:
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            if found is None:
                self.iunlockput(ip)
                raise FileNotFoundError(name)
            self.iunlockput(ip)
            ip = found[0]
        if parent:
            self.iput(ip)
            raise FileNotFoundError("path has no final element")
        return ip, name

    def namei(self, path: str, cwd: Optional[Inode] = None) -> Inode:
        """Return the unlocked inode named by ``path``. Must run inside a transaction."""
        return self._namex(path, cwd, False)[0]

    def nameiparent(self, path: str, cwd: Optional[Inode] = None) -> tuple[Inode, str]:
        """Return the parent directory of ``path`` and the final element's name."""
        return self._namex(path, cwd, True)