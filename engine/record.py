"""Tuple decode: walk a schema's attributes over one tuple's bytes."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from storage.attalign import NullBitmap, align
from storage.errors import TruncatedInputError
from storage.tuple_header import TupleHeader
from storage.varlena import read_varlena
from .schema import DEMO_SCHEMA, Schema


@dataclass(frozen=True)
class DecodedRecord:
    columns: Tuple[str, ...]
    values: Tuple[Any, ...]

    def get(self, name: str) -> Any:
        return self.values[self.columns.index(name)]

    def as_dict(self) -> Dict[str, Any]:
        return dict(zip(self.columns, self.values))


def decode_record(span: bytes, header: TupleHeader, schema: Schema = DEMO_SCHEMA) -> DecodedRecord:
    """
    Starts at t_hoff, which already points past the null bitmap and its
    padding. Each non-null attribute is aligned to its attalign before it is
    read; nulls consume no bytes and do not align. Nullness comes only from
    the bitmap; without HASNULL every attribute is read.
    """
    nulls = NullBitmap.from_tuple(span, header)
    off = header.hoff
    values: List[Optional[Any]] = []

    for attnum, col in enumerate(schema.columns):
        if nulls.is_null(attnum):
            values.append(None)
            continue
        off = align(off, col.attalign)
        if col.is_varlena:
            payload, off = read_varlena(span, off)
            values.append(col.read(payload))
        else:
            end = off + col.attlen
            if end > len(span):
                raise TruncatedInputError(f"attribute {col.name} needs bytes [{off}, {end}), span has {len(span)}")
            values.append(col.read(bytes(span[off:end])))
            off = end

    return DecodedRecord(tuple(schema.names), tuple(values))
