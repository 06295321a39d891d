# tuple_header.py
from __future__ import annotations
import struct
from dataclasses import dataclass
from enum import IntFlag

from .errors import TruncatedInputError

# ---------------- 元组头布局 ----------------
# xmin(uint32) | xmax(uint32) | cid/xvac(uint32)
# | ctid.block_hi(uint16) | ctid.block_lo(uint16) | ctid.offset(uint16)
# | infomask2(uint16) | infomask(uint16) | hoff(uint8)
# 紧跟其后的是可选的 NULL 位图 t_bits；hoff 指向数据区起点（已跨过位图与填充）。
_TUP_FMT = "<IIIHHHHHB"
TUPLE_HEADER_SIZE = struct.calcsize(_TUP_FMT)  # 23 字节

NATTS_MASK = 0x07FF


class InfoMask(IntFlag):
    HASNULL = 0x0001
    HASVARWIDTH = 0x0002
    HASEXTERNAL = 0x0004
    HASOID_OLD = 0x0008
    XMAX_KEYSHR_LOCK = 0x0010
    COMBOCID = 0x0020
    XMAX_EXCL_LOCK = 0x0040
    XMAX_LOCK_ONLY = 0x0080
    XMIN_COMMITTED = 0x0100
    XMIN_INVALID = 0x0200
    XMAX_COMMITTED = 0x0400
    XMAX_INVALID = 0x0800
    XMAX_IS_MULTI = 0x1000
    UPDATED = 0x2000
    MOVED_OFF = 0x4000
    MOVED_IN = 0x8000


@dataclass(frozen=True)
class TupleHeader:
    xmin: int
    xmax: int
    cid: int  # 与 xvac 共用同一字段，由 MOVED_OFF/MOVED_IN 决定含义
    ctid_block_hi: int
    ctid_block_lo: int
    ctid_offset: int
    infomask2: int
    infomask: int
    hoff: int

    @property
    def natts(self) -> int:
        return self.infomask2 & NATTS_MASK

    @property
    def ctid_block(self) -> int:
        return (self.ctid_block_hi << 16) | self.ctid_block_lo

    @property
    def flags(self) -> InfoMask:
        return InfoMask(self.infomask)

    @property
    def has_nulls(self) -> bool:
        return bool(self.infomask & InfoMask.HASNULL)

    @property
    def xvac(self) -> int | None:
        """旧式 VACUUM FULL 移动过的元组才有 xvac，否则该字段是命令号。"""
        if self.infomask & (InfoMask.MOVED_OFF | InfoMask.MOVED_IN):
            return self.cid
        return None


def decode_tuple_header(span: bytes) -> TupleHeader:
    """
    从记录区间开头解析固定 23 字节的元组头：
      - 区间不足 23 字节 -> TruncatedInputError
      - hoff 超出区间长度 -> TruncatedInputError
    """
    if len(span) < TUPLE_HEADER_SIZE:
        raise TruncatedInputError(f"tuple header needs {TUPLE_HEADER_SIZE} bytes, span has {len(span)}")
    hdr = TupleHeader(*struct.unpack_from(_TUP_FMT, span, 0))
    if hdr.hoff > len(span):
        raise TruncatedInputError(f"t_hoff={hdr.hoff} beyond span length {len(span)}")
    return hdr
