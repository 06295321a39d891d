# heap_page.py
from __future__ import annotations
import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from typing import List

from .errors import MalformedHeaderError, SpanOutOfBoundsError, TruncatedInputError

# ---------------- 堆页布局定义 ----------------
# 页大小固定 8KiB，全部字段小端序。
#
# [ PageHeader 24B | ItemId[0..n) ↓ | .... 空闲 .... | ↑ Tuples | Special ]
#                  ^24             ^lower           ^upper      ^special
PAGE_SIZE = 8192

# Header 格式:
#   xlogid(uint32) | xrecoff(uint32) | checksum(uint16) | flags(uint16)
#   | lower(uint16) | upper(uint16) | special(uint16)
#   | pagesize_version(uint16) | prune_xid(uint32)
_HDR_FMT = "<IIHHHHHHI"
PAGE_HEADER_SIZE = struct.calcsize(_HDR_FMT)  # 4+4+2+2+2+2+2+2+4 = 24 字节

# 行指针(ItemIdData): 两个 uint16；2 位状态被拆在两个字之间：
#   - w0 的最高位  -> 状态低位
#   - w1 的最低位  -> 状态高位
_ITEM_FMT = "<HH"
ITEM_ID_SIZE = struct.calcsize(_ITEM_FMT)  # 4 字节


class PageFlags(IntFlag):
    HAS_FREE_LINES = 0x0001
    PAGE_FULL = 0x0002
    ALL_VISIBLE = 0x0004


class SlotState(IntEnum):
    UNUSED = 0
    NORMAL = 1
    REDIRECT = 2
    DEAD = 3


@dataclass(frozen=True)
class PageHeader:
    """页头快照（解析一次后只读）。"""
    xlogid: int
    xrecoff: int
    checksum: int
    flags: int
    lower: int
    upper: int
    special: int
    pagesize_version: int
    prune_xid: int

    @property
    def lsn(self) -> int:
        return (self.xlogid << 32) | self.xrecoff

    @property
    def free_space(self) -> int:
        """lower 与 upper 之间的空闲字节数（头部损坏时可能为负）。"""
        return self.upper - self.lower

    @property
    def page_size(self) -> int:
        return self.pagesize_version & 0xFF00

    @property
    def layout_version(self) -> int:
        return self.pagesize_version & 0x00FF

    @property
    def page_flags(self) -> PageFlags:
        return PageFlags(self.flags & 0x0007)

    @property
    def slot_count(self) -> int:
        # 向下取整；lower < 24 时结果为负
        return (self.lower - PAGE_HEADER_SIZE) // ITEM_ID_SIZE


@dataclass(frozen=True)
class Slot:
    """一个行指针：15 位偏移、15 位长度、2 位状态、从 1 开始的序号。"""
    index: int
    offset: int
    length: int
    state: SlotState

    @property
    def end(self) -> int:
        return self.offset + self.length


# ---------- Header 解析 ----------
def decode_page_header(buf: bytes) -> PageHeader:
    """解析页首 24 字节；此处不做任何取值校验（交给 validate_header）。"""
    if len(buf) < PAGE_HEADER_SIZE:
        raise TruncatedInputError(
            f"page header needs {PAGE_HEADER_SIZE} bytes, got {len(buf)}")
    return PageHeader(*struct.unpack_from(_HDR_FMT, buf, 0))


# ---------- 行指针数组解析 ----------
def max_slots(page_size: int = PAGE_SIZE) -> int:
    return (page_size - PAGE_HEADER_SIZE) // ITEM_ID_SIZE


def unpack_item_id(w0: int, w1: int) -> tuple[int, int, SlotState]:
    """
    把两个原始 16 位字拆成 (offset, length, state)：
      offset = w0 & 0x7FFF
      length = w1 >> 1
      state  = ((w0 >> 15) & 1) | ((w1 << 1) & 2)
    """
    state = ((w0 >> 15) & 0x01) | ((w1 << 1) & 0x02)
    return w0 & 0x7FFF, w1 >> 1, SlotState(state)


def decode_slots(buf: bytes, header: PageHeader, page_size: int = PAGE_SIZE) -> List[Slot]:
    """
    按 header.lower 计算槽数量并逐个解析：
      - 槽数量为负或超过页可容纳上限 -> MalformedHeaderError
      - 缓冲区在数组中途结束 -> TruncatedInputError
    """
    n = header.slot_count
    if n < 0 or n > max_slots(page_size):
        raise MalformedHeaderError(f"bad pd_lower={header.lower}; computed item id count={n}")

    slots: List[Slot] = []
    for i in range(n):
        pos = PAGE_HEADER_SIZE + i * ITEM_ID_SIZE
        if pos + ITEM_ID_SIZE > len(buf):
            raise TruncatedInputError(f"item id array ends at byte {len(buf)}, slot {i + 1} needs {pos + ITEM_ID_SIZE}")
        w0, w1 = struct.unpack_from(_ITEM_FMT, buf, pos)
        offset, length, state = unpack_item_id(w0, w1)
        slots.append(Slot(index=i + 1, offset=offset, length=length, state=state))
    return slots


# ---------- 边界校验 ----------
def validate_header(header: PageHeader, page_size: int = PAGE_SIZE) -> None:
    """校验 24 <= lower <= upper <= special <= page_size，不满足则整页失败。"""
    if not (PAGE_HEADER_SIZE <= header.lower <= header.upper <= header.special <= page_size):
        raise MalformedHeaderError(
            f"page geometry out of range: lower={header.lower} upper={header.upper} "
            f"special={header.special} page_size={page_size}")


def check_slot_bounds(slot: Slot, header: PageHeader) -> None:
    """
    NORMAL 槽的区间必须满足：
      0 < offset，offset + length <= special，offset >= upper
    只影响当前槽；非 NORMAL 槽不检查。
    """
    if slot.state != SlotState.NORMAL:
        return
    if slot.offset <= 0 or slot.end > header.special or slot.offset < header.upper:
        raise SpanOutOfBoundsError(
            f"tuple span [{slot.offset}, {slot.end}) outside data area "
            f"[{header.upper}, {header.special})", slot=slot.index)


def slot_span(buf: bytes, slot: Slot) -> bytes:
    """返回槽指向的记录字节（调用前须先通过 check_slot_bounds）。"""
    if slot.end > len(buf):
        raise TruncatedInputError(f"tuple span ends at {slot.end}, page has {len(buf)} bytes", slot=slot.index)
    return bytes(buf[slot.offset:slot.end])
