"""Attribute descriptors driving the tuple walker: fixed-width or varlena."""
from __future__ import annotations
import struct
from dataclasses import dataclass
from typing import Any, Callable, List

from storage.attalign import ALIGN_DOUBLE, ALIGN_INT

VARLENA = -1  # attlen of variable-length types


def _read_int8(raw: bytes) -> int:
    return struct.unpack("<q", raw)[0]


def _read_int4(raw: bytes) -> int:
    return struct.unpack("<i", raw)[0]


def _read_text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class Column:
    name: str
    type: str            # "BIGINT" / "INT" / "TEXT"
    attalign: int        # 1, 2, 4 or 8
    attlen: int          # byte width, or VARLENA
    read: Callable[[bytes], Any]

    @property
    def is_varlena(self) -> bool:
        return self.attlen == VARLENA


def bigint(name: str) -> Column:
    return Column(name, "BIGINT", ALIGN_DOUBLE, 8, _read_int8)


def integer(name: str) -> Column:
    return Column(name, "INT", ALIGN_INT, 4, _read_int4)


def text(name: str) -> Column:
    return Column(name, "TEXT", ALIGN_INT, VARLENA, _read_text)


@dataclass(frozen=True)
class Schema:
    columns: List[Column]

    def index_of(self, name: str) -> int:
        for i, c in enumerate(self.columns):
            if c.name == name:
                return i
        raise KeyError(name)

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]


# id BIGINT, name TEXT
DEMO_SCHEMA = Schema([bigint("id"), text("name")])
