# errors.py
from __future__ import annotations


class PageDecodeError(Exception):
    """页解析错误的基类；携带可选的槽号，便于报告定位。"""

    def __init__(self, message: str, slot: int | None = None):
        super().__init__(message)
        self.slot = slot


class TruncatedInputError(PageDecodeError):
    """缓冲区长度不足以容纳某个结构。"""


class MalformedHeaderError(PageDecodeError):
    """页头字段（或由其推出的槽数量）超出页容量。"""


class SpanOutOfBoundsError(PageDecodeError):
    """NORMAL 槽的字节区间不在页内，或落在数据区之前。"""


class InvalidEncodingError(PageDecodeError):
    """varlena 长度字段小于结构最小值。"""


class UnsupportedEncodingError(PageDecodeError):
    """压缩或行外(TOAST)的 varlena，不支持解析。"""


class PageReadError(IOError):
    """页源无法交付一整页（越界或短读）。"""
