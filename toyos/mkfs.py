"""Build a file system image holding a root directory and a set of files."""

from __future__ import annotations

import struct
import sys
from collections.abc import Mapping
from typing import Iterable, Union

from .fs import InodeType
from .layout import (
    BPB,
    BSIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    SuperBlock,
    iblock,
)

NINODES = 200

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")

Files = Union[Mapping, Iterable[tuple[str, bytes]]]


class _ImageBuilder:
    """Lays out an empty file system and appends files to its root directory.

    Layout: [ boot | super | log | inode blocks | free bit map | data blocks ]
    """

    def __init__(self, fssize: int, ninodes: int):
        self.fssize = fssize
        self.ninodes = ninodes
        self.nbitmap = fssize // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nlog = LOGSIZE
        self.nmeta = 2 + self.nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = fssize - self.nmeta
        if self.nblocks <= 0:
            raise ValueError("image too small to hold its metadata")
        self.sb = SuperBlock(
            size=fssize,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=self.nlog,
            logstart=2,
            inodestart=2 + self.nlog,
            bmapstart=2 + self.nlog + self.ninodeblocks,
        )
        self.image = bytearray(fssize * BSIZE)
        self.freeinode = 1
        self.freeblock = self.nmeta

        self.image[BSIZE : BSIZE + SuperBlock.SIZE] = self.sb.pack()

        self.rootino = self._ialloc(InodeType.DIR)
        if self.rootino != ROOTINO:
            raise AssertionError("root directory must be the first inode")
        self._iappend(self.rootino, DirEntry(self.rootino, ".").pack())
        self._iappend(self.rootino, DirEntry(self.rootino, "..").pack())

    def _inode_span(self, inum: int) -> slice:
        start = iblock(inum, self.sb) * BSIZE + (inum % IPB) * DiskInode.SIZE
        return slice(start, start + DiskInode.SIZE)

    def _rinode(self, inum: int) -> DiskInode:
        return DiskInode.unpack(self.image[self._inode_span(inum)])

    def _winode(self, inum: int, din: DiskInode) -> None:
        self.image[self._inode_span(inum)] = din.pack()

    def _ialloc(self, type_: int) -> int:
        inum = self.freeinode
        if inum >= self.ninodes:
            raise ValueError("image out of inodes")
        self.freeinode += 1
        self._winode(inum, DiskInode(type=int(type_), nlink=1))
        return inum

    def _next_block(self) -> int:
        if self.freeblock >= self.fssize:
            raise ValueError("image out of blocks")
        block = self.freeblock
        self.freeblock += 1
        return block

    def _iappend(self, inum: int, data: bytes) -> None:
        din = self._rinode(inum)
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file exceeds the maximum file size")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._next_block()
                target = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._next_block()
                ind = din.addrs[NDIRECT] * BSIZE
                indirect = list(_INDIRECT.unpack_from(self.image, ind))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._next_block()
                    _INDIRECT.pack_into(self.image, ind, *indirect)
                target = indirect[fbn - NDIRECT]
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            start = target * BSIZE + off - fbn * BSIZE
            self.image[start : start + n1] = data[pos : pos + n1]
            pos += n1
            off += n1
        din.size = off
        self._winode(inum, din)

    def add_file(self, name: str, data: bytes) -> int:
        if "/" in name:
            raise ValueError(f"file name {name!r} must not contain '/'")
        # Binaries are built as _name so the host does not run them by mistake.
        if name.startswith("_"):
            name = name[1:]
        inum = self._ialloc(InodeType.FILE)
        self._iappend(self.rootino, DirEntry(inum, name).pack())
        self._iappend(inum, bytes(data))
        return inum

    def finish(self) -> bytes:
        root = self._rinode(self.rootino)
        root.size = (root.size // BSIZE + 1) * BSIZE
        self._winode(self.rootino, root)

        used = self.freeblock
        if used >= BPB:
            raise ValueError("too many blocks in use for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        start = self.sb.bmapstart * BSIZE
        self.image[start : start + BSIZE] = bitmap
        return bytes(self.image)


def build_image(files: Files, fssize: int = FSSIZE, ninodes: int = NINODES) -> bytes:
    """Return a file system image whose root directory holds ``files``.

    ``files`` is a mapping or an iterable of (name, data) pairs.
    """
    builder = _ImageBuilder(fssize, ninodes)
    items = files.items() if isinstance(files, Mapping) else files
    for name, data in items:
        builder.add_file(name, data)
    return builder.finish()


def main(argv=None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1
    out, *paths = args

    builder = _ImageBuilder(FSSIZE, NINODES)
    print(
        f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
        f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
        f"blocks {builder.nblocks} total {FSSIZE}"
    )
    for path in paths:
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except OSError as exc:
            print(f"{path}: {exc.strerror}", file=sys.stderr)
            return 1
        try:
            builder.add_file(path, data)
        except ValueError as exc:
            print(f"mkfs: {exc}", file=sys.stderr)
            return 1

    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
    try:
        image = builder.finish()
    except ValueError as exc:
        print(f"mkfs: {exc}", file=sys.stderr)
        return 1
    try:
        with open(out, "wb") as fh:
            fh.write(image)
    except OSError as exc:
        print(f"{out}: {exc.strerror}", file=sys.stderr)
        return 1
    return 0