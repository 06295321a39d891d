# engine/inspector.py
from __future__ import annotations

import sys
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, asdict, field
from typing import Deque, Iterable, Iterator, List, Optional, TextIO, Tuple, Union

from storage.errors import PageDecodeError, PageReadError
from storage.heap_page import (
    PAGE_SIZE, PageHeader, Slot, SlotState,
    check_slot_bounds, decode_page_header, decode_slots, slot_span, validate_header,
)
from storage.pager import PageSource
from storage.tuple_header import TupleHeader, decode_tuple_header
from .diag import InspectStats, _InspectDiag
from .record import DecodedRecord, decode_record
from .schema import DEMO_SCHEMA, Schema


# --------------------------- 结果结构 ---------------------------

@dataclass(frozen=True)
class SlotResult:
    """
    单个槽的解析结果：
    - 非 NORMAL 槽：tuple_header / record / error 全为 None
    - NORMAL 槽成功：tuple_header 必有，record 在 decode_rows=True 时有
    - NORMAL 槽失败：error 为该槽的错误，其余槽不受影响
    """
    slot: Slot
    tuple_header: Optional[TupleHeader] = None
    record: Optional[DecodedRecord] = None
    error: Optional[PageDecodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class PageDump:
    page_no: int
    header: PageHeader
    results: Tuple[SlotResult, ...] = field(default_factory=tuple)

    @property
    def slots(self) -> List[Slot]:
        return [r.slot for r in self.results]

    @property
    def records(self) -> List[DecodedRecord]:
        return [r.record for r in self.results if r.record is not None]

    @property
    def failures(self) -> List[SlotResult]:
        return [r for r in self.results if r.error is not None]


PageOutcome = Tuple[int, Union[PageDump, PageDecodeError, PageReadError]]


# --------------------------- 解析核心 ---------------------------

def decode_slot(page: bytes, header: PageHeader, slot: Slot,
                schema: Schema = DEMO_SCHEMA, decode_rows: bool = True) -> SlotResult:
    """解析一个槽；记录级错误被收进结果而不是抛出。"""
    if slot.state != SlotState.NORMAL:
        return SlotResult(slot)
    th: Optional[TupleHeader] = None
    try:
        check_slot_bounds(slot, header)
        span = slot_span(page, slot)
        th = decode_tuple_header(span)
        record = decode_record(span, th, schema) if decode_rows else None
    except PageDecodeError as e:
        if e.slot is None:
            e.slot = slot.index
        return SlotResult(slot, tuple_header=th, error=e)
    return SlotResult(slot, tuple_header=th, record=record)


def inspect_page(page: bytes, page_no: int = 0, schema: Schema = DEMO_SCHEMA,
                 decode_rows: bool = True, page_size: int = PAGE_SIZE) -> PageDump:
    """
    解析一整页：页头 -> 行指针数组 -> 页头几何校验 -> 逐槽解析。
    页头或槽数组出错（TruncatedInput / MalformedHeader）直接抛出，整页放弃；
    槽级错误记录在对应 SlotResult 中，继续解析下一个槽。
    """
    header = decode_page_header(page)
    slots = decode_slots(page, header, page_size)
    validate_header(header, page_size)
    results = tuple(decode_slot(page, header, s, schema, decode_rows) for s in slots)
    return PageDump(page_no=page_no, header=header, results=results)


# --------------------------- 页源驱动 ---------------------------

class HeapInspector:
    """
    对一个页源逐页解析：
    - inspect(page_no): 单页，页级错误直接抛出
    - iter_pages(page_nos, workers): 多页，页级错误作为该页的结果返回
      workers > 1 时读页仍在调用线程顺序进行，解码交给线程池；结果按页号顺序返回
    - stats_snapshot / global_stats / report_stats: 统计
    - enable_global_log: 事件写入日志文件
    """

    def __init__(self, source: PageSource, schema: Schema = DEMO_SCHEMA, decode_rows: bool = True):
        self.source = source
        self.schema = schema
        self.decode_rows = decode_rows
        self._stats = InspectStats(start_ts=time.time())

    # -------------------- 对外 API --------------------

    def inspect(self, page_no: int) -> PageDump:
        page = self._read(page_no)
        try:
            dump = self._decode(page_no, page)
        except PageDecodeError as e:
            self._page_failed(page_no, e)
            raise
        self._account(dump)
        return dump

    def iter_pages(self, page_nos: Iterable[int], workers: int = 1) -> Iterator[PageOutcome]:
        if workers <= 1:
            for pid in page_nos:
                yield pid, self._inspect_quiet(pid)
            return

        # 最多 workers * 2 页在途：窗口满了先交出队头，再读下一页
        limit = workers * 2
        window: Deque[Tuple[int, Optional[Future], Optional[PageReadError]]] = deque()
        with ThreadPoolExecutor(max_workers=workers) as pool:
            for pid in page_nos:
                try:
                    page = self._read(pid)
                except PageReadError as e:
                    window.append((pid, None, e))
                else:
                    window.append((pid, pool.submit(self._decode, pid, page), None))
                while len(window) >= limit:
                    yield self._settle(*window.popleft())
            while window:
                yield self._settle(*window.popleft())

    def inspect_all(self, workers: int = 1) -> List[PageOutcome]:
        return list(self.iter_pages(range(self.source.page_count()), workers))

    def stats_snapshot(self) -> dict:
        return asdict(self._stats)

    @staticmethod
    def global_stats() -> dict:
        return _InspectDiag.snapshot()

    @staticmethod
    def reset_global_stats() -> None:
        _InspectDiag.reset()

    @staticmethod
    def enable_global_log(path: str | None = None) -> None:
        _InspectDiag.enable_log(path)

    @staticmethod
    def disable_global_log() -> None:
        _InspectDiag.disable_log()

    def report_stats(self, out: TextIO | None = None) -> None:
        s = self._stats
        print(f"[STATS] pages={s.pages} failed_pages={s.pages_failed} "
              f"slots={s.slots} normal={s.normal_slots} "
              f"records_ok={s.records_ok} records_failed={s.records_failed} "
              f"bytes_read={s.bytes_read} read_errors={s.read_errors}",
              file=out or sys.stdout)

    # -------------------- 内部方法 --------------------

    def _read(self, page_no: int) -> bytes:
        try:
            page = self.source.read_page(page_no)
        except PageReadError as e:
            self._stats.read_errors += 1
            _InspectDiag.page_unreadable(page_no, e)
            raise
        self._stats.bytes_read += len(page)
        _InspectDiag.add(bytes_read=len(page))
        return page

    def _decode(self, page_no: int, page: bytes) -> PageDump:
        return inspect_page(page, page_no, self.schema, self.decode_rows, self.source.page_size())

    def _settle(self, page_no: int, fut: Optional[Future],
                read_err: Optional[PageReadError]) -> PageOutcome:
        """等待一个在途页的解码结果并记账"""
        if fut is None:
            return page_no, read_err
        try:
            dump = fut.result()
        except PageDecodeError as e:
            self._page_failed(page_no, e)
            return page_no, e
        self._account(dump)
        return page_no, dump

    def _inspect_quiet(self, page_no: int) -> Union[PageDump, PageDecodeError, PageReadError]:
        try:
            return self.inspect(page_no)
        except (PageDecodeError, PageReadError) as e:
            return e

    def _page_failed(self, page_no: int, err: PageDecodeError) -> None:
        self._stats.pages += 1
        self._stats.pages_failed += 1
        _InspectDiag.page_rejected(page_no, err)

    def _account(self, dump: PageDump) -> None:
        normal = [r for r in dump.results if r.slot.state == SlotState.NORMAL]
        failed = [r for r in normal if r.error is not None]
        s = self._stats
        s.pages += 1
        s.slots += len(dump.results)
        s.normal_slots += len(normal)
        s.records_ok += len(normal) - len(failed)
        s.records_failed += len(failed)

        page_size = self.source.page_size()
        if dump.header.special != page_size:
            _InspectDiag.special_mismatch(dump.page_no, dump.header.special, page_size)
        for r in failed:
            _InspectDiag.slot_rejected(dump.page_no, r.slot.index, r.error)
        _InspectDiag.page_decoded(dump.page_no, len(dump.results), len(normal), len(failed))
