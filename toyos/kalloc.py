"""Physical page allocator handing out page-aligned addresses."""

from __future__ import annotations

import threading

PGSIZE = 4096


def _pgroundup(addr: int) -> int:
    return (addr + PGSIZE - 1) & ~(PGSIZE - 1)


class PageAllocator:
    """Keeps a free list of pages between ``lower`` and ``upper``."""

    def __init__(self, lower: int, upper: int):
        self.lower = lower
        self.upper = upper
        self._free: list[int] = []
        self._lock = threading.Lock()

    def freerange(self, start: int, end: int) -> None:
        """Free every whole page in [start, end)."""
        for page in range(_pgroundup(start), end - PGSIZE + 1, PGSIZE):
            self.kfree(page)

    def kfree(self, addr: int) -> None:
        """Return a page to the free list."""
        from .layout import Panic

        if addr % PGSIZE or addr < self.lower or addr >= self.upper:
            raise Panic("kfree")
        with self._lock:
            self._free.append(addr)

    def kalloc(self) -> int:
        """Take a page off the free list."""
        with self._lock:
            if not self._free:
                raise MemoryError("kalloc: out of memory")
            return self._free.pop()

    def free_frame_count(self) -> int:
        with self._lock:
            return len(self._free)