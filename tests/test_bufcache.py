import threading

import pytest

from toyos.bufcache import BufferCache, BufFlag
from toyos.layout import BSIZE, ROOTDEV, Panic
from toyos.memdisk import MemDisk


def make(nbuf=4, nblocks=16):
    disk = MemDisk(nblocks=nblocks)
    return disk, BufferCache(disk, nbuf=nbuf)


def test_bread_reads_disk_contents():
    disk, cache = make()
    disk.write_block(5, b"\x07" * BSIZE)
    buf = cache.bread(ROOTDEV, 5)
    assert bytes(buf.data) == b"\x07" * BSIZE
    assert buf.flags == BufFlag.BUSY | BufFlag.VALID


def test_bwrite_reaches_disk_and_clears_dirty():
    disk, cache = make()
    buf = cache.bread(ROOTDEV, 2)
    buf.data[:] = b"\x09" * BSIZE
    cache.bwrite(buf)
    assert disk.read_block(2) == b"\x09" * BSIZE
    assert not buf.flags & BufFlag.DIRTY


def test_cached_block_is_not_reread():
    disk, cache = make()
    first = cache.bread(ROOTDEV, 3)
    cache.brelse(first)
    disk.write_block(3, b"\x01" * BSIZE)
    again = cache.bread(ROOTDEV, 3)
    assert again is first
    assert bytes(again.data) == bytes(BSIZE)


def test_brelse_requires_busy():
    _, cache = make()
    buf = cache.bread(ROOTDEV, 1)
    cache.brelse(buf)
    with pytest.raises(Panic, match="brelse"):
        cache.brelse(buf)


def test_bwrite_requires_busy():
    _, cache = make()
    buf = cache.bread(ROOTDEV, 1)
    cache.brelse(buf)
    with pytest.raises(Panic, match="bwrite"):
        cache.bwrite(buf)


def test_running_out_of_buffers_panics():
    _, cache = make(nbuf=2)
    cache.bread(ROOTDEV, 1)
    cache.bread(ROOTDEV, 2)
    with pytest.raises(Panic, match="no buffers"):
        cache.bread(ROOTDEV, 3)


def test_dirty_released_buffer_is_not_recycled():
    _, cache = make(nbuf=1)
    buf = cache.bread(ROOTDEV, 1)
    buf.flags |= BufFlag.DIRTY
    cache.brelse(buf)
    with pytest.raises(Panic, match="no buffers"):
        cache.bread(ROOTDEV, 2)


def test_least_recently_used_is_recycled():
    _, cache = make(nbuf=2)
    a = cache.bread(ROOTDEV, 1)
    cache.brelse(a)
    b = cache.bread(ROOTDEV, 2)
    cache.brelse(b)
    c = cache.bread(ROOTDEV, 3)
    cache.brelse(c)
    assert c is a
    assert cache.bread(ROOTDEV, 2) is b


def test_wrong_device_panics():
    _, cache = make()
    with pytest.raises(Panic, match="not for disk"):
        cache.bread(ROOTDEV + 1, 0)


def test_block_context_releases():
    disk, cache = make()
    disk.write_block(4, b"\x05" * BSIZE)
    with cache.block(ROOTDEV, 4) as buf:
        assert buf.flags & BufFlag.BUSY
        assert bytes(buf.data) == b"\x05" * BSIZE
    assert not buf.flags & BufFlag.BUSY


def test_bread_waits_for_busy_buffer():
    _, cache = make()
    first = cache.bread(ROOTDEV, 5)
    got = []
    worker = threading.Thread(target=lambda: got.append(cache.bread(ROOTDEV, 5)))
    worker.start()
    worker.join(0.1)
    assert worker.is_alive()
    cache.brelse(first)
    worker.join(2)
    assert got == [first]


def test_zero_buffers_rejected():
    disk = MemDisk(nblocks=2)
    with pytest.raises(ValueError):
        BufferCache(disk, nbuf=0)