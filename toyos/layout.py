"""On-disk file system format and system-wide size limits."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import ClassVar

NPROC = 64
KSTACKSIZE = 4096
NCPU = 8
NOFILE = 16
NFILE = 100
NINODE = 50
NDEV = 10
ROOTDEV = 1
MAXARG = 32
MAXOPBLOCKS = 10
LOGSIZE = MAXOPBLOCKS * 3
NBUF = MAXOPBLOCKS * 3
FSSIZE = 1000

ROOTINO = 1
BSIZE = 512
NDIRECT = 12
NINDIRECT = BSIZE // struct.calcsize("<I")
MAXFILE = NDIRECT + NINDIRECT
DIRSIZ = 14
BPB = BSIZE * 8


class Panic(RuntimeError):
    """An unrecoverable violation of a kernel invariant."""


@dataclass
class SuperBlock:
    """Describes the disk layout: sizes and starting blocks of each region."""

    size: int = 0
    nblocks: int = 0
    ninodes: int = 0
    nlog: int = 0
    logstart: int = 0
    inodestart: int = 0
    bmapstart: int = 0

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<7I")
    SIZE: ClassVar[int] = _FORMAT.size

    def pack(self) -> bytes:
        return self._FORMAT.pack(
            self.size,
            self.nblocks,
            self.ninodes,
            self.nlog,
            self.logstart,
            self.inodestart,
            self.bmapstart,
        )

    @classmethod
    def unpack(cls, data) -> "SuperBlock":
        return cls(*cls._FORMAT.unpack_from(data))


def _empty_addrs() -> list[int]:
    return [0] * (NDIRECT + 1)


@dataclass
class DiskInode:
    """The on-disk form of an inode."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=_empty_addrs)

    _FORMAT: ClassVar[struct.Struct] = struct.Struct(f"<4hI{NDIRECT + 1}I")
    SIZE: ClassVar[int] = _FORMAT.size

    def __post_init__(self) -> None:
        self.addrs = list(self.addrs)
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"an inode holds exactly {NDIRECT + 1} block addresses")

    def pack(self) -> bytes:
        return self._FORMAT.pack(
            self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def unpack(cls, data) -> "DiskInode":
        type_, major, minor, nlink, size, *addrs = cls._FORMAT.unpack_from(data)
        return cls(type_, major, minor, nlink, size, addrs)


@dataclass
class DirEntry:
    """One entry of a directory: an inode number and a name of up to DIRSIZ bytes."""

    inum: int = 0
    name: str = ""

    _FORMAT: ClassVar[struct.Struct] = struct.Struct(f"<H{DIRSIZ}s")
    SIZE: ClassVar[int] = _FORMAT.size

    def pack(self) -> bytes:
        raw = self.name.encode("utf-8", "surrogateescape")[:DIRSIZ]
        return self._FORMAT.pack(self.inum, raw)

    @classmethod
    def unpack(cls, data) -> "DirEntry":
        inum, raw = cls._FORMAT.unpack_from(data)
        name = raw.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")
        return cls(inum, name)


IPB = BSIZE // DiskInode.SIZE


def iblock(inum: int, sb: SuperBlock) -> int:
    """Block holding inode ``inum``."""
    return inum // IPB + sb.inodestart


def bblock(b: int, sb: SuperBlock) -> int:
    """Block of the free map holding the bit for block ``b``."""
    return b // BPB + sb.bmapstart