import pytest

from storage.errors import PageReadError
from storage.heap_page import PAGE_SIZE
from storage.pager import HeapFile, MemoryPageSource


def test_heap_file_reads_exact_pages(tmp_path):
    path = tmp_path / "16567"
    path.write_bytes(b"A" * PAGE_SIZE + b"B" * PAGE_SIZE + b"tail")
    with HeapFile(str(path)) as hf:
        assert hf.page_size() == PAGE_SIZE
        # trailing partial page is not counted
        assert hf.page_count() == 2
        assert hf.read_page(1) == b"B" * PAGE_SIZE
        assert hf.read_page(0) == b"A" * PAGE_SIZE
        with pytest.raises(PageReadError):
            hf.read_page(2)
        with pytest.raises(PageReadError):
            hf.read_page(-1)


def test_heap_file_custom_page_size(tmp_path):
    path = tmp_path / "rel"
    path.write_bytes(bytes(range(16)) * 4)
    with HeapFile(str(path), page_size=16) as hf:
        assert hf.page_count() == 4
        assert hf.read_page(3) == bytes(range(16))


def test_heap_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        HeapFile(str(tmp_path / "nope"))


def test_memory_source():
    src = MemoryPageSource(b"\x01" * 10 + b"\x02" * 10, page_size=10)
    assert src.page_count() == 2
    assert src.read_page(1) == b"\x02" * 10
    with pytest.raises(PageReadError):
        src.read_page(2)
    with pytest.raises(ValueError):
        MemoryPageSource(b"", page_size=0)
