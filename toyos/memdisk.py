"""A disk whose blocks live in memory."""

from __future__ import annotations

from .layout import BSIZE, FSSIZE, ROOTDEV, Panic


class MemDisk:
    """Block device backed by a bytearray image."""

    def __init__(self, image=None, *, nblocks: int = FSSIZE, dev: int = ROOTDEV):
        self.image = bytearray(nblocks * BSIZE) if image is None else bytearray(image)
        self.nblocks = len(self.image) // BSIZE
        self.dev = dev

    def _offset(self, blockno: int) -> int:
        if not 0 <= blockno < self.nblocks:
            raise Panic("iderw: block out of range")
        return blockno * BSIZE

    def read_block(self, blockno: int) -> bytes:
        off = self._offset(blockno)
        return bytes(self.image[off : off + BSIZE])

    def write_block(self, blockno: int, data) -> None:
        if len(data) != BSIZE:
            raise ValueError(f"a block is exactly {BSIZE} bytes, got {len(data)}")
        off = self._offset(blockno)
        self.image[off : off + BSIZE] = data