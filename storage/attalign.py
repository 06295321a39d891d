# attalign.py
from __future__ import annotations
from typing import Dict

from .errors import TruncatedInputError
from .tuple_header import TUPLE_HEADER_SIZE, TupleHeader

# attalign: 'c'=1, 's'=2, 'i'=4, 'd'=8
ALIGN_CHAR = 1
ALIGN_SHORT = 2
ALIGN_INT = 4
ALIGN_DOUBLE = 8

_ALIGN_CODES: Dict[str, int] = {"c": ALIGN_CHAR, "s": ALIGN_SHORT, "i": ALIGN_INT, "d": ALIGN_DOUBLE}


def align_class(code: str | int) -> int:
    """接受 attalign 字符或字节数，返回对齐字节数。"""
    if isinstance(code, int):
        if code not in _ALIGN_CODES.values():
            raise ValueError(f"alignment must be one of 1, 2, 4, 8; got {code}")
        return code
    try:
        return _ALIGN_CODES[code]
    except KeyError:
        raise ValueError(f"unknown attalign code: {code!r}") from None


def align(offset: int, cls: int) -> int:
    """把 offset 向上取整到 cls 的倍数（cls 必须是 2 的幂）。"""
    return (offset + cls - 1) & ~(cls - 1)


class NullBitmap:
    """
    元组的 NULL 位图视图：
      - 仅当 infomask 含 HASNULL 时存在
      - 位于固定头之后，占 ceil(natts/8) 字节
      - 第 i 个属性对应 byte[i // 8] 的第 (i % 8) 位（低位优先），置位表示 NULL
    未设置 HASNULL 时不消费任何字节，所有属性都视为非空。
    """

    def __init__(self, bits: bytes | None):
        self._bits = bits

    @classmethod
    def from_tuple(cls, span: bytes, header: TupleHeader) -> "NullBitmap":
        if not header.has_nulls:
            return cls(None)
        nbytes = bitmap_size(header.natts)
        end = TUPLE_HEADER_SIZE + nbytes
        if end > len(span):
            raise TruncatedInputError(f"null bitmap needs bytes [{TUPLE_HEADER_SIZE}, {end}), span has {len(span)}")
        return cls(bytes(span[TUPLE_HEADER_SIZE:end]))

    @property
    def present(self) -> bool:
        return self._bits is not None

    def is_null(self, attnum: int) -> bool:
        """attnum 从 0 开始；超出位图的属性视为非空。"""
        if self._bits is None:
            return False
        byte_idx = attnum // 8
        if byte_idx >= len(self._bits):
            return False
        return bool(self._bits[byte_idx] & (1 << (attnum % 8)))


def bitmap_size(natts: int) -> int:
    return (natts + 7) // 8
