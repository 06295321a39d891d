import pytest

from storage.errors import TruncatedInputError
from storage.tuple_header import TUPLE_HEADER_SIZE, InfoMask, decode_tuple_header
from pagebuild import make_tuple


def test_tuple_header_fields():
    span = make_tuple(xmin=731, xmax=0, cid=3, ctid=(1, 2, 7),
                      infomask=InfoMask.XMIN_COMMITTED | InfoMask.XMAX_INVALID | InfoMask.HASVARWIDTH)
    h = decode_tuple_header(span)
    assert TUPLE_HEADER_SIZE == 23
    assert (h.xmin, h.xmax, h.cid) == (731, 0, 3)
    assert h.ctid_block == (1 << 16) | 2
    assert h.ctid_offset == 7
    assert h.natts == 2
    assert h.hoff == 24
    assert not h.has_nulls
    assert InfoMask.XMAX_INVALID in h.flags
    assert h.xvac is None


def test_natts_uses_low_eleven_bits():
    span = bytearray(make_tuple())
    span[18:20] = (0xF802).to_bytes(2, "little")
    assert decode_tuple_header(bytes(span)).natts == 2


def test_xvac_when_moved():
    h = decode_tuple_header(make_tuple(cid=99, infomask=InfoMask.MOVED_OFF))
    assert h.xvac == 99


def test_span_shorter_than_header():
    with pytest.raises(TruncatedInputError):
        decode_tuple_header(make_tuple()[:22])


def test_hoff_beyond_span():
    span = bytearray(make_tuple())
    span[22] = 200
    with pytest.raises(TruncatedInputError):
        decode_tuple_header(bytes(span))
