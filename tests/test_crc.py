from hypothesis import given
from hypothesis import strategies as st

from pumplink.crc import crc8, crc16


def test_crc8_empty_is_initial_value():
    assert crc8(b"") == 0


def test_crc16_empty_is_initial_value():
    assert crc16(b"") == 0xFFFF


def test_crc8_single_byte_is_polynomial():
    assert crc8(b"\x01") == 0x9B


def test_crc8_check_value():
    assert crc8(b"123456789") == 0xEA


def test_crc16_check_value():
    assert crc16(b"123456789") == 0x29B1


@given(st.binary(max_size=300))
def test_crc8_residue_is_zero(data):
    assert crc8(data + bytes([crc8(data)])) == 0


@given(st.binary(max_size=300))
def test_crc16_residue_is_zero(data):
    assert crc16(data + crc16(data).to_bytes(2, "big")) == 0


@given(st.binary(max_size=100))
def test_accepts_any_byte_iterable(data):
    assert crc8(bytearray(data)) == crc8(list(data))
    assert crc16(memoryview(data)) == crc16(iter(data))


@given(st.binary(min_size=1, max_size=100), st.integers(min_value=1, max_value=255))
def test_single_byte_change_detected(data, delta):
    changed = bytearray(data)
    changed[0] ^= delta
    assert crc8(changed) != crc8(data)
    assert crc16(changed) != crc16(data)


@given(st.binary(max_size=100))
def test_results_in_range(data):
    assert 0 <= crc8(data) <= 0xFF
    assert 0 <= crc16(data) <= 0xFFFF