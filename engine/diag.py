# engine/diag.py
from __future__ import annotations

import os
import time
import logging
import threading
from dataclasses import dataclass, asdict


# --------------------------- 统计 ---------------------------

@dataclass
class InspectStats:
    """
    解析统计（一个 HeapInspector 一份，另有一份全局聚合）：
    - pages / pages_failed: 解析的页数 / 页头或槽数组失败的页数
    - slots / normal_slots: 行指针总数 / 其中 NORMAL 的个数
    - records_ok / records_failed: 元组解析成功 / 失败数
    - bytes_read: 从页源读入的字节数
    - read_errors: 页源读取失败（越界 / 短读）的页数，不计入 pages
    - start_ts: 统计起始时间
    """
    pages: int = 0
    pages_failed: int = 0
    slots: int = 0
    normal_slots: int = 0
    records_ok: int = 0
    records_failed: int = 0
    bytes_read: int = 0
    read_errors: int = 0
    start_ts: float = 0.0


class _InspectDiag:
    """
    全局诊断器（跨实例聚合统计 + 可选写文件日志）：
    - 类变量维护全局 InspectStats，加锁保证多线程解析时计数正确
    - 文件日志默认关闭；enable_log 后由 page_decoded / page_rejected /
      slot_rejected / page_unreadable / special_mismatch 记录页/槽级事件
    """
    _global_lock = threading.Lock()
    _global = InspectStats(start_ts=time.time())
    _logger: logging.Logger | None = None
    _log_handler: logging.Handler | None = None

    @classmethod
    def add(cls, **delta) -> None:
        with cls._global_lock:
            g = cls._global
            for k, v in delta.items():
                if hasattr(g, k):
                    setattr(g, k, getattr(g, k) + int(v))

    @classmethod
    def snapshot(cls) -> dict:
        with cls._global_lock:
            return asdict(cls._global)

    @classmethod
    def reset(cls) -> None:
        with cls._global_lock:
            cls._global = InspectStats(start_ts=time.time())

    @classmethod
    def enable_log(cls, path: str | None = None) -> None:
        """
        开启文件日志（仅初始化一次）：
        - 默认写入 __logs__/heapdump.log
        """
        if cls._logger:
            return
        logger = logging.getLogger("heapdump")
        logger.setLevel(logging.INFO)
        if path is None:
            os.makedirs("__logs__", exist_ok=True)
            path = os.path.join("__logs__", "heapdump.log")
        handler = logging.FileHandler(path, encoding="utf-8")
        fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        cls._logger = logger
        cls._log_handler = handler

    @classmethod
    def disable_log(cls) -> None:
        if cls._logger and cls._log_handler:
            cls._logger.removeHandler(cls._log_handler)
            cls._log_handler.close()
        cls._logger = None
        cls._log_handler = None

    @classmethod
    def log(cls, msg: str, level: int = logging.INFO) -> None:
        if cls._logger:
            cls._logger.log(level, msg)

    # -------------------- 页/槽级事件 --------------------

    @classmethod
    def page_decoded(cls, page_no: int, slots: int, normal: int, failed: int) -> None:
        cls.add(pages=1, slots=slots, normal_slots=normal,
                records_ok=normal - failed, records_failed=failed)
        cls.log(f"PAGE {page_no} decoded: slots={slots} normal={normal} failed={failed}")

    @classmethod
    def page_rejected(cls, page_no: int, err: Exception) -> None:
        """页头或槽数组无法解析，整页放弃"""
        cls.add(pages=1, pages_failed=1)
        cls.log(f"PAGE {page_no} rejected: {type(err).__name__}: {err}", logging.ERROR)

    @classmethod
    def page_unreadable(cls, page_no: int, err: Exception) -> None:
        """页源读不到这一页（越界 / 短读）"""
        cls.add(read_errors=1)
        cls.log(f"PAGE {page_no} unreadable: {type(err).__name__}: {err}", logging.ERROR)

    @classmethod
    def slot_rejected(cls, page_no: int, slot_no: int, err: Exception) -> None:
        cls.log(f"PAGE {page_no} SLOT {slot_no} rejected: {type(err).__name__}: {err}", logging.WARNING)

    @classmethod
    def special_mismatch(cls, page_no: int, special: int, page_size: int) -> None:
        # pd_special 不等于页大小：带 special 区的页（索引页等）
        cls.log(f"PAGE {page_no} pd_special={special} != page size {page_size}; not a heap page?",
                logging.WARNING)
