import struct

import pytest

from storage.errors import MalformedHeaderError, SpanOutOfBoundsError, TruncatedInputError
from storage.heap_page import (
    PAGE_SIZE, PAGE_HEADER_SIZE, PageFlags, Slot, SlotState,
    check_slot_bounds, decode_page_header, decode_slots, max_slots, unpack_item_id, validate_header,
)
from pagebuild import build_page, write_header, write_slot


def test_page_header_fields():
    page = bytearray(PAGE_SIZE)
    write_header(page, lower=28, upper=8100, xlogid=1, xrecoff=0x2000, checksum=0xBEEF,
                 flags=0x0005, prune_xid=777)
    h = decode_page_header(bytes(page))
    assert (h.lower, h.upper, h.special) == (28, 8100, 8192)
    assert h.checksum == 0xBEEF
    assert h.prune_xid == 777
    assert h.lsn == (1 << 32) | 0x2000
    assert h.free_space == 8100 - 28
    assert h.page_size == 8192
    assert h.layout_version == 4
    assert h.page_flags == PageFlags.HAS_FREE_LINES | PageFlags.ALL_VISIBLE
    assert h.slot_count == 1


def test_page_header_truncated():
    with pytest.raises(TruncatedInputError):
        decode_page_header(b"\x00" * 23)


def test_item_id_bitfields_full_word_domain():
    for w1 in (0x0000, 0x0001, 0x0002, 0x7FFF, 0x8000, 0xFFFE, 0xFFFF):
        for w0 in range(0x10000):
            off, length, state = unpack_item_id(w0, w1)
            assert off == w0 & 0x7FFF
            assert length == w1 >> 1
            assert state == (((w0 >> 15) & 1) | ((w1 << 1) & 2))
    for w0 in (0x0000, 0x7FFF, 0x8000, 0xFFFF):
        for w1 in range(0x10000):
            off, length, state = unpack_item_id(w0, w1)
            assert (off, length) == (w0 & 0x7FFF, w1 >> 1)
            assert int(state) == (((w0 >> 15) & 1) | ((w1 << 1) & 2))


def test_decode_slots_states_and_indexes():
    page = build_page([(8000, 40, SlotState.NORMAL), (0, 0, SlotState.UNUSED),
                       (3, 0, SlotState.REDIRECT), (8100, 30, SlotState.DEAD)], upper=8000)
    h = decode_page_header(page)
    slots = decode_slots(page, h)
    assert [s.index for s in slots] == [1, 2, 3, 4]
    assert [s.state for s in slots] == [SlotState.NORMAL, SlotState.UNUSED, SlotState.REDIRECT, SlotState.DEAD]
    assert (slots[0].offset, slots[0].length) == (8000, 40)
    assert slots[2].offset == 3


def test_slot_count_matches_lower():
    for lower in (24, 28, 100, 8192):
        page = bytearray(PAGE_SIZE)
        write_header(page, lower=lower, upper=8192)
        h = decode_page_header(page)
        assert len(decode_slots(page, h)) == (lower - 24) // 4


def test_slot_count_negative_is_malformed():
    page = bytearray(PAGE_SIZE)
    write_header(page, lower=20, upper=8192)
    with pytest.raises(MalformedHeaderError):
        decode_slots(page, decode_page_header(page))


def test_slot_count_over_capacity_is_malformed():
    page = bytearray(PAGE_SIZE)
    write_header(page, lower=PAGE_HEADER_SIZE + 4 * (max_slots() + 1), upper=8192)
    with pytest.raises(MalformedHeaderError):
        decode_slots(page, decode_page_header(page))


def test_slot_array_truncated():
    page = bytearray(PAGE_SIZE)
    write_header(page, lower=40, upper=8192)
    with pytest.raises(TruncatedInputError):
        decode_slots(bytes(page[:30]), decode_page_header(page))


def test_validate_header_geometry():
    page = bytearray(PAGE_SIZE)
    write_header(page, lower=28, upper=8100)
    validate_header(decode_page_header(page))

    write_header(page, lower=200, upper=100)
    with pytest.raises(MalformedHeaderError):
        validate_header(decode_page_header(page))

    write_header(page, lower=28, upper=8100, special=9000)
    with pytest.raises(MalformedHeaderError):
        validate_header(decode_page_header(page))


def test_check_slot_bounds():
    page = bytearray(PAGE_SIZE)
    write_header(page, lower=28, upper=8000)
    h = decode_page_header(page)

    check_slot_bounds(Slot(1, 8000, 192, SlotState.NORMAL), h)
    for bad in (Slot(1, 8100, 100, SlotState.NORMAL),   # past special
                Slot(1, 7990, 20, SlotState.NORMAL),    # before upper
                Slot(1, 0, 10, SlotState.NORMAL)):
        with pytest.raises(SpanOutOfBoundsError) as ei:
            check_slot_bounds(bad, h)
        assert ei.value.slot == 1
    # non-normal slots are never checked
    check_slot_bounds(Slot(2, 9000, 9000, SlotState.DEAD), h)


def test_header_reads_little_endian():
    page = bytearray(PAGE_SIZE)
    struct.pack_into("<HHH", page, 12, 0x0020, 0x1F00, 0x2000)
    h = decode_page_header(page)
    assert (h.lower, h.upper, h.special) == (0x20, 0x1F00, 0x2000)


def test_write_slot_roundtrip_through_decoder():
    page = bytearray(PAGE_SIZE)
    write_header(page, lower=32, upper=7000)
    write_slot(page, 1, 7000, 123, SlotState.NORMAL)
    write_slot(page, 2, 32767, 32767, SlotState.DEAD)
    s1, s2 = decode_slots(page, decode_page_header(page))
    assert (s1.offset, s1.length, s1.state) == (7000, 123, SlotState.NORMAL)
    assert (s2.offset, s2.length, s2.state) == (32767, 32767, SlotState.DEAD)
