"""4b/6b line coding used on the pump radio link.

Each 4-bit nibble is sent as a 6-bit code word.  Two input bytes become
three output bytes; an odd final byte becomes two output bytes, the last
of which is padded with the bit pattern 0101.
"""

from __future__ import annotations

from collections.abc import Iterable

__all__ = ["DecodingError", "encode_4b6b", "decode_4b6b"]

_ENCODE = (
    0x15, 0x31, 0x32, 0x23,
    0x34, 0x25, 0x26, 0x16,
    0x1A, 0x19, 0x2A, 0x0B,
    0x2C, 0x0D, 0x0E, 0x1C,
)

_DECODE = {code: nibble for nibble, code in enumerate(_ENCODE)}

_PAD = 0b0101


class DecodingError(ValueError):
    """Raised when input is not valid 4b/6b-encoded data."""


def encode_4b6b(data: Iterable[int]) -> bytes:
    """Encode bytes with 4b/6b coding.

    Encoding n bytes produces 3 * (n // 2) + 2 * (n % 2) bytes.
    """
    out = bytearray()
    acc = 0
    nbits = 0
    for byte in data:
        for nibble in (byte >> 4, byte & 0x0F):
            acc = (acc << 6) | _ENCODE[nibble]
            nbits += 6
            while nbits >= 8:
                nbits -= 8
                out.append((acc >> nbits) & 0xFF)
            acc &= (1 << nbits) - 1
    if nbits:
        # Only an odd final byte leaves bits over: exactly four of them.
        out.append(((acc << 4) | _PAD) & 0xFF)
    return bytes(out)


def decode_4b6b(data: bytes | bytearray | memoryview) -> bytes:
    """Decode 4b/6b-coded bytes.

    Decoding n bytes produces 2 * (n // 3) + (n % 3) // 2 bytes.
    Raises DecodingError on an invalid code word or impossible length.
    """
    data = bytes(data)
    if len(data) % 3 == 1:
        raise DecodingError(f"invalid 4b/6b length {len(data)}")
    out = bytearray()
    acc = 0
    nbits = 0
    high: int | None = None
    for byte in data:
        acc = (acc << 8) | byte
        nbits += 8
        while nbits >= 6:
            nbits -= 6
            code = (acc >> nbits) & 0x3F
            nibble = _DECODE.get(code)
            if nibble is None:
                raise DecodingError(f"invalid 4b/6b code word {code:#04x}")
            if high is None:
                high = nibble
            else:
                out.append((high << 4) | nibble)
                high = None
        acc &= (1 << nbits) - 1
    # Any bits left over after a two-byte tail are padding.
    return bytes(out)