"""CRC-8 (polynomial 0x9B) and CRC-16 (CCITT, polynomial 0x1021) checksums."""

from __future__ import annotations

from collections.abc import Iterable

__all__ = ["crc8", "crc16"]


def _crc8_table(poly: int) -> tuple[int, ...]:
    table = []
    for i in range(256):
        value = i
        for _ in range(8):
            value = ((value << 1) ^ poly if value & 0x80 else value << 1) & 0xFF
        table.append(value)
    return tuple(table)


def _crc16_table(poly: int) -> tuple[int, ...]:
    table = []
    for i in range(256):
        value = i << 8
        for _ in range(8):
            value = ((value << 1) ^ poly if value & 0x8000 else value << 1) & 0xFFFF
        table.append(value)
    return tuple(table)


_CRC8_TABLE = _crc8_table(0x9B)
_CRC16_TABLE = _crc16_table(0x1021)


def crc8(data: Iterable[int]) -> int:
    """CRC-8 with polynomial 0x9B and initial value 0."""
    res = 0
    for byte in data:
        res = _CRC8_TABLE[res ^ byte]
    return res


def crc16(data: Iterable[int]) -> int:
    """CRC-16 with polynomial 0x1021 and initial value 0xFFFF."""
    res = 0xFFFF
    for byte in data:
        res = ((res << 8) & 0xFFFF) ^ _CRC16_TABLE[(res >> 8) ^ byte]
    return res