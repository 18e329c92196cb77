import pytest
from hypothesis import given
from hypothesis import strategies as st

from toyos.kalloc import PGSIZE, PageAllocator
from toyos.layout import Panic

LOWER = PGSIZE
UPPER = PGSIZE * 5


def make():
    alloc = PageAllocator(LOWER, UPPER)
    alloc.freerange(LOWER, UPPER)
    return alloc


def test_freerange_frees_whole_pages():
    assert make().free_frame_count() == 4


def test_kalloc_returns_last_freed_page():
    alloc = make()
    assert alloc.kalloc() == UPPER - PGSIZE


def test_kalloc_decrements_count():
    alloc = make()
    before = alloc.free_frame_count()
    alloc.kalloc()
    assert alloc.free_frame_count() == before - 1


def test_allocated_pages_are_distinct_and_aligned():
    alloc = make()
    pages = [alloc.kalloc() for _ in range(alloc.free_frame_count())]
    assert len(set(pages)) == len(pages)
    assert all(p % PGSIZE == 0 and LOWER <= p < UPPER for p in pages)


def test_exhaustion_raises_memory_error():
    alloc = make()
    for _ in range(alloc.free_frame_count()):
        alloc.kalloc()
    with pytest.raises(MemoryError):
        alloc.kalloc()


def test_freerange_rounds_start_up():
    aligned = make()
    unaligned = PageAllocator(LOWER, UPPER)
    unaligned.freerange(LOWER + 1, UPPER)
    assert unaligned.free_frame_count() == aligned.free_frame_count() - 1


def test_freerange_skips_partial_last_page():
    alloc = PageAllocator(LOWER, UPPER)
    alloc.freerange(LOWER, UPPER - 1)
    assert alloc.free_frame_count() == make().free_frame_count() - 1


@pytest.mark.parametrize("addr", [LOWER + 1, 0, UPPER])
def test_bad_kfree_panics(addr):
    alloc = PageAllocator(LOWER, UPPER)
    with pytest.raises(Panic, match="kfree"):
        alloc.kfree(addr)


@given(st.integers(min_value=0, max_value=4))
def test_alloc_then_free_restores_count(k):
    alloc = make()
    before = alloc.free_frame_count()
    pages = [alloc.kalloc() for _ in range(k)]
    for page in pages:
        alloc.kfree(page)
    assert alloc.free_frame_count() == before