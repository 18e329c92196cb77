import pytest
from hypothesis import given
from hypothesis import strategies as st

from toyos.layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    DirEntry,
    DiskInode,
    SuperBlock,
    bblock,
    iblock,
)

u32 = st.integers(min_value=0, max_value=2**32 - 1)
i16 = st.integers(min_value=-(2**15), max_value=2**15 - 1)


@given(st.lists(u32, min_size=7, max_size=7))
def test_superblock_round_trip(values):
    sb = SuperBlock(*values)
    assert SuperBlock.unpack(sb.pack()) == sb


def test_superblock_is_little_endian():
    assert SuperBlock(size=1).pack()[:4] == b"\x01\x00\x00\x00"


def test_superblock_unpack_ignores_trailing_bytes():
    sb = SuperBlock(10, 20, 30, 40, 50, 60, 70)
    assert SuperBlock.unpack(sb.pack() + bytes(BSIZE)) == sb


@given(i16, i16, i16, i16, u32, st.lists(u32, min_size=NDIRECT + 1, max_size=NDIRECT + 1))
def test_dinode_round_trip(type_, major, minor, nlink, size, addrs):
    ino = DiskInode(type_, major, minor, nlink, size, addrs)
    assert DiskInode.unpack(ino.pack()) == ino


def test_dinodes_tile_a_block():
    assert len(DiskInode().pack()) * IPB == BSIZE


def test_dinode_rejects_wrong_address_count():
    with pytest.raises(ValueError):
        DiskInode(addrs=[0] * NDIRECT)


def test_dirent_bytes():
    assert DirEntry(1, ".").pack() == b"\x01\x00." + bytes(DIRSIZ - 1)


def test_dirents_tile_a_block():
    assert BSIZE % len(DirEntry(1, "x").pack()) == 0


def test_dirent_name_truncated_to_dirsiz():
    long_name = "a" * (DIRSIZ + 6)
    assert DirEntry.unpack(DirEntry(3, long_name).pack()).name == "a" * DIRSIZ


@given(
    st.integers(min_value=0, max_value=2**16 - 1),
    st.text(alphabet="abcdefghijklmnopqrstuvwxyz._-", max_size=DIRSIZ),
)
def test_dirent_round_trip(inum, name):
    assert DirEntry.unpack(DirEntry(inum, name).pack()) == DirEntry(inum, name)


def test_iblock_boundaries():
    sb = SuperBlock(inodestart=32)
    assert iblock(0, sb) == sb.inodestart
    assert iblock(IPB - 1, sb) == sb.inodestart
    assert iblock(IPB, sb) == sb.inodestart + 1


def test_bblock_boundaries():
    sb = SuperBlock(bmapstart=58)
    assert bblock(0, sb) == sb.bmapstart
    assert bblock(BPB - 1, sb) == sb.bmapstart
    assert bblock(BPB, sb) == sb.bmapstart + 1


def test_file_size_limits():
    assert MAXFILE == NDIRECT + NINDIRECT
    assert NINDIRECT * 4 == BSIZE
    addrs = list(range(1, NDIRECT + 1)) + [MAXFILE]
    ino = DiskInode(size=MAXFILE * BSIZE, addrs=addrs)
    packed = ino.pack()
    assert len(packed) == BSIZE // IPB
    restored = DiskInode.unpack(packed)
    assert restored.size == MAXFILE * BSIZE
    assert restored.addrs[NDIRECT] == MAXFILE