# varlena.py
from __future__ import annotations
import struct
from enum import Enum
from typing import Tuple

from .errors import InvalidEncodingError, TruncatedInputError, UnsupportedEncodingError

# ---------------- varlena 头（小端平台） ----------------
#   xxxxxxx1                      1 字节短头，总长 = byte >> 1（含头），最多 127
#   xxxxxx00 (4 字节)             4 字节长头，未压缩，总长 = word >> 2（含头）
#   xxxxxx10 (4 字节)             4 字节长头，压缩（不支持）
#   00000001 (1 字节)             行外 TOAST 指针；按短头规则总长为 0，归为非法长度
_LONG_FMT = "<I"
SHORT_HEADER_SIZE = 1
LONG_HEADER_SIZE = struct.calcsize(_LONG_FMT)


class VarlenaForm(Enum):
    SHORT = "short"
    LONG = "long"
    COMPRESSED = "compressed"


def classify_varlena(buf: bytes, off: int) -> Tuple[VarlenaForm, int]:
    """
    从 off 处的首字节/首字一次性判定头部形态，返回 (form, total_len)。
    total_len 包含头部本身；不支持的形态 total_len 为 0。
    """
    if off >= len(buf):
        raise TruncatedInputError(f"varlena header at {off} beyond buffer of {len(buf)} bytes")
    first = buf[off]
    if first & 0x01:
        return VarlenaForm.SHORT, first >> 1
    if off + LONG_HEADER_SIZE > len(buf):
        raise TruncatedInputError(f"4-byte varlena header at {off} beyond buffer of {len(buf)} bytes")
    (word,) = struct.unpack_from(_LONG_FMT, buf, off)
    if word & 0x03 == 0x00:
        return VarlenaForm.LONG, word >> 2
    # 首字节最低位为 0 时只剩 00 与 10 两种情况
    return VarlenaForm.COMPRESSED, 0


def read_varlena(buf: bytes, off: int) -> Tuple[bytes, int]:
    """
    解码 off 处的 varlena，返回 (payload, next_off)。
      - 长度字段小于头部大小 -> InvalidEncodingError
      - 压缩形态            -> UnsupportedEncodingError（绝不当作数据读取）
      - 缓冲区提前结束       -> TruncatedInputError
    """
    form, total = classify_varlena(buf, off)
    if form is VarlenaForm.SHORT:
        hdr = SHORT_HEADER_SIZE
        if total < SHORT_HEADER_SIZE:
            raise InvalidEncodingError(f"short varlena length {total} < {SHORT_HEADER_SIZE}")
    elif form is VarlenaForm.LONG:
        hdr = LONG_HEADER_SIZE
        if total < LONG_HEADER_SIZE:
            raise InvalidEncodingError(f"long varlena length {total} < {LONG_HEADER_SIZE}")
    else:
        raise UnsupportedEncodingError(f"{form.value} varlena at offset {off} not supported")

    end = off + total
    if end > len(buf):
        raise TruncatedInputError(f"varlena [{off}, {end}) beyond buffer of {len(buf)} bytes")
    return bytes(buf[off + hdr:end]), end
