# pager.py
from __future__ import annotations
import io
import os
from typing import Protocol

from .errors import PageReadError
from .heap_page import PAGE_SIZE

# ---------------- 页源 ----------------
# 解析核心只认“给定页号 -> 恰好 page_size 字节的不可变缓冲区”。
# 打开/定位/读取文件都在这里完成，核心本身不碰文件系统。


class PageSource(Protocol):
    def page_size(self) -> int: ...
    def page_count(self) -> int: ...
    def read_page(self, page_no: int) -> bytes: ...


class HeapFile:
    """
    只读的关系文件（例如 base/<dboid>/<relfilenode>）：
      - 按 page_no * page_size 定位并读取整页
      - 文件尾部不足一页的残片不计入 page_count
      - 短读视为损坏，抛 PageReadError
    """

    def __init__(self, file_path: str, page_size: int = PAGE_SIZE):
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.path = file_path
        self._page_size = page_size
        # buffering=0 关闭 Python 级缓冲，每次读都直达文件
        self._f: io.RawIOBase = open(self.path, "rb", buffering=0)

    # ------------------------- 公共 API -------------------------

    def page_size(self) -> int:
        return self._page_size

    def page_count(self) -> int:
        """按当前文件大小计算完整页数。"""
        return os.fstat(self._f.fileno()).st_size // self._page_size

    def read_page(self, page_no: int) -> bytes:
        self._check_pid(page_no)
        self._f.seek(page_no * self._page_size)
        data = self._read_exact(self._page_size)
        if len(data) != self._page_size:
            raise PageReadError(f"short read on page {page_no}: got {len(data)} of {self._page_size} bytes")
        return data

    def close(self) -> None:
        self._f.close()

    def __enter__(self) -> "HeapFile":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------- 内部方法 -------------------------

    def _check_pid(self, pid: int) -> None:
        if pid < 0 or pid >= self.page_count():
            raise PageReadError(f"page {pid} out of range (page_count={self.page_count()})")

    def _read_exact(self, n: int) -> bytes:
        # 无缓冲的 read 可能分段返回，读满或遇到 EOF 为止
        chunks = []
        remaining = n
        while remaining > 0:
            chunk = self._f.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)


class MemoryPageSource:
    """内存中的页序列；主要给测试和上层直接传入字节时使用。"""

    def __init__(self, data: bytes, page_size: int = PAGE_SIZE):
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self._data = bytes(data)
        self._page_size = page_size

    def page_size(self) -> int:
        return self._page_size

    def page_count(self) -> int:
        return len(self._data) // self._page_size

    def read_page(self, page_no: int) -> bytes:
        if page_no < 0 or page_no >= self.page_count():
            raise PageReadError(f"page {page_no} out of range (page_count={self.page_count()})")
        start = page_no * self._page_size
        return self._data[start:start + self._page_size]
