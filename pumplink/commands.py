"""Packet framing and command exchange with the pump over a radio link.

Every packet carries the CareLink device type, the 3-byte pump ID, the
command code, a parameter length, optional parameters and a CRC-8, and is
sent 4b/6b encoded.  Responses are checked and their payload is returned.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Protocol

from .codec import DecodingError, decode_4b6b, encode_4b6b
from .crc import crc8, crc16
from .model import HISTORY_PAGE_SIZE

__all__ = [
    "CARELINK_DEVICE",
    "PAYLOAD_LENGTH",
    "FRAGMENT_LENGTH",
    "NUM_FRAGMENTS",
    "DONE_BIT",
    "DEFAULT_TRIES",
    "DEFAULT_TIMEOUT",
    "MAX_NAKS",
    "RX_BUFFER_SIZE",
    "PUMP_FREQUENCY",
    "DEFAULT_PUMP_ID",
    "Command",
    "Radio",
    "PumpError",
    "NoResponseError",
    "DecodingFailureError",
    "CrcFailureError",
    "InvalidResponseError",
    "PumpLink",
    "parse_pump_id",
    "encode_short_packet",
    "encode_long_packet",
]

_log = logging.getLogger(__name__)

CARELINK_DEVICE = 0xA7

PAYLOAD_LENGTH = 64
FRAGMENT_LENGTH = PAYLOAD_LENGTH + 1  # sequence number + payload
DONE_BIT = 1 << 7
NUM_FRAGMENTS = 16

DEFAULT_TRIES = 3
DEFAULT_TIMEOUT = 500  # milliseconds
MAX_NAKS = 10
RX_BUFFER_SIZE = 150

# Working pump frequency in Hz.
PUMP_FREQUENCY = 868_250_000
DEFAULT_PUMP_ID = "123456"

_MAX_PARAMS = 64
# A 71-byte long packet encodes to 107 bytes.
_LONG_ENCODED_LENGTH = 107
_WAKEUP_BURST_TRIES = 100
_WAKEUP_BURST_TIMEOUT = 10
_WAKEUP_FINAL_TIMEOUT = 10_000


class Command(IntEnum):
    ACK = 0x06
    NAK = 0x15
    WAKEUP = 0x5D
    CLOCK = 0x70
    BATTERY = 0x72
    RESERVOIR = 0x73
    HISTORY = 0x80
    CARB_UNITS = 0x88
    GLUCOSE_UNITS = 0x89
    CARB_RATIOS = 0x8A
    SENSITIVITIES = 0x8B
    TARGETS_512 = 0x8C
    MODEL = 0x8D
    SETTINGS_512 = 0x91
    BASAL_RATES = 0x92
    TEMP_BASAL = 0x98
    TARGETS = 0x9F
    SETTINGS = 0xC0
    STATUS = 0xCE


class Radio(Protocol):
    """The radio interface a PumpLink talks through."""

    def transmit(self, packet: bytes) -> None:
        """Send an encoded packet."""

    def receive(self, max_len: int, timeout: int) -> bytes:
        """Return up to max_len received bytes, or b"" after timeout milliseconds."""


class PumpError(Exception):
    """Raised when a pump command fails."""


class NoResponseError(PumpError):
    def __init__(self, cmd: int) -> None:
        super().__init__(f"command {cmd:02X}: no response")
        self.command = cmd


class DecodingFailureError(PumpError):
    def __init__(self, cmd: int) -> None:
        super().__init__(f"command {cmd:02X}: decoding failure")
        self.command = cmd


class CrcFailureError(PumpError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidResponseError(PumpError):
    def __init__(self, cmd: int) -> None:
        super().__init__(f"command {cmd:02X}: invalid response")
        self.command = cmd


def parse_pump_id(text: str) -> bytes:
    """Convert a pump serial number written in hex digits to its 3-byte form.

    Each character shifts in one nibble; characters that are not hex digits
    contribute a zero nibble.  Only the last six digits are kept.
    """
    n = 0
    for c in text:
        n <<= 4
        if c in "0123456789abcdefABCDEF":
            n += int(c, 16)
    return (n & 0xFFFFFF).to_bytes(3, "big")


def _check_pump_id(pump_id: bytes) -> bytes:
    pump_id = bytes(pump_id)
    if len(pump_id) != 3:
        raise ValueError(f"pump ID must be 3 bytes, not {len(pump_id)}")
    return pump_id


def encode_short_packet(pump_id: bytes, cmd: int) -> bytes:
    """Encode a 7-byte command packet without parameters (11 bytes on air)."""
    body = bytes([CARELINK_DEVICE]) + _check_pump_id(pump_id) + bytes([cmd, 0])
    return encode_4b6b(body + bytes([crc8(body)]))


def encode_long_packet(pump_id: bytes, cmd: int, params: bytes) -> bytes:
    """Encode a 71-byte command packet with up to 64 parameter bytes (107 on air)."""
    params = bytes(params)
    if len(params) > _MAX_PARAMS:
        raise ValueError(f"at most {_MAX_PARAMS} parameter bytes, not {len(params)}")
    body = (
        bytes([CARELINK_DEVICE])
        + _check_pump_id(pump_id)
        + bytes([cmd, len(params)])
        + params.ljust(_MAX_PARAMS, b"\x00")
    )
    return encode_4b6b(body + bytes([crc8(body)]))


class PumpLink:
    """Sends commands to one pump through a radio and checks its responses."""

    def __init__(self, radio: Radio, pump_id: str | bytes = DEFAULT_PUMP_ID) -> None:
        self._radio = radio
        if isinstance(pump_id, str):
            pump_id = parse_pump_id(pump_id)
        self.pump_id = _check_pump_id(pump_id)

    def _perform(
        self, cmd: int, packet: bytes, tries: int, timeout: int, expected: int
    ) -> bytes:
        if len(packet) == _LONG_ENCODED_LENGTH:
            # Don't attempt state-changing commands more than once.
            tries = 1
        raw = b""
        for _ in range(tries):
            self._radio.transmit(packet)
            raw = bytes(self._radio.receive(RX_BUFFER_SIZE, timeout))
            if raw:
                break
        if not raw:
            raise NoResponseError(cmd)
        try:
            decoded = decode_4b6b(raw)
        except DecodingError:
            raise DecodingFailureError(cmd) from None
        if not decoded:
            raise DecodingFailureError(cmd)
        body, check = decoded[:-1], decoded[-1]
        if crc8(body) != check:
            raise CrcFailureError(f"command {cmd:02X}: CRC failure")
        if not self._valid_response(body, cmd, expected):
            raise InvalidResponseError(cmd)
        return body[5:]

    def _valid_response(self, body: bytes, cmd: int, expected: int) -> bool:
        if len(body) < 6:
            return False
        if body[0] != CARELINK_DEVICE or body[1:4] != self.pump_id:
            return False
        return body[4] in (cmd, expected)

    def short_command(self, cmd: int) -> bytes:
        """Send a command without parameters and return the response payload."""
        packet = encode_short_packet(self.pump_id, cmd)
        return self._perform(cmd, packet, DEFAULT_TRIES, DEFAULT_TIMEOUT, cmd)

    def _acknowledge(self, cmd: int) -> bytes:
        packet = encode_short_packet(self.pump_id, Command.ACK)
        return self._perform(Command.ACK, packet, 1, DEFAULT_TIMEOUT, cmd)

    def extended_response(self, cmd: int) -> bytes:
        """Send a command whose response arrives in acknowledged fragments.

        Returns the concatenated fragment payloads.
        """
        data = self.short_command(cmd)
        expected = 1
        result = bytearray()
        while len(data) == FRAGMENT_LENGTH:
            seq = data[0] & ~DONE_BIT & 0xFF
            if seq != expected:
                raise PumpError(
                    f"command {cmd:02X}: received fragment {seq} instead of {expected}"
                )
            result += data[1:]
            if data[0] & DONE_BIT:
                return bytes(result)
            data = self._acknowledge(cmd)
            expected += 1
        raise PumpError(f"command {cmd:02X}: received {len(data)}-byte response")

    def _recover_fragment(self, cmd: int, page_num: int, expected: int) -> bytes:
        packet = encode_short_packet(self.pump_id, Command.NAK)
        for count in range(1, MAX_NAKS + 1):
            try:
                data = self._perform(Command.NAK, packet, 1, DEFAULT_TIMEOUT, cmd)
            except NoResponseError:
                continue
            if not data:
                raise PumpError(f"command {cmd:02X}: empty packet")
            _log.info(
                "history page %d: received fragment %d after %d NAK(s)",
                page_num,
                data[0] & ~DONE_BIT & 0xFF,
                count,
            )
            return data
        raise PumpError(f"history page {page_num}: lost fragment {expected}")

    @staticmethod
    def _check_page_crc(page: bytes, page_num: int) -> bytes:
        received = int.from_bytes(page[HISTORY_PAGE_SIZE:HISTORY_PAGE_SIZE + 2], "big")
        computed = crc16(page[:HISTORY_PAGE_SIZE])
        if computed != received:
            raise CrcFailureError(
                f"history page {page_num}: computed CRC {computed:04X}"
                f" but received {received:04X}"
            )
        return page[:HISTORY_PAGE_SIZE]

    def download_page(self, cmd: int, page_num: int) -> bytes:
        """Download one history page and return its 1022 data bytes."""
        packet = encode_short_packet(self.pump_id, cmd)
        self._perform(cmd, packet, DEFAULT_TRIES, DEFAULT_TIMEOUT, Command.ACK)
        packet = encode_long_packet(self.pump_id, cmd, bytes([page_num & 0xFF]))
        data = self._perform(cmd, packet, DEFAULT_TRIES, 2 * DEFAULT_TIMEOUT, Command.ACK)
        expected = 1
        page = bytearray()
        while len(data) == FRAGMENT_LENGTH:
            seq = data[0] & ~DONE_BIT & 0xFF
            if seq > expected:
                raise PumpError(
                    f"history page {page_num}: received fragment {seq} instead of {expected}"
                )
            if seq == expected:
                page += data[1:]
                expected += 1
            if seq == NUM_FRAGMENTS:
                if not data[0] & DONE_BIT:
                    raise PumpError(f"history page {page_num}: missing done bit")
                return self._check_page_crc(bytes(page), page_num)
            try:
                data = self._acknowledge(cmd)
            except NoResponseError:
                data = self._recover_fragment(cmd, page_num, expected)
        raise PumpError(f"history page {page_num}: received {len(data)}-byte response")

    def send_wakeup(self) -> bool:
        """Send a burst of wakeup packets, then wait for the pump to answer."""
        packet = encode_short_packet(self.pump_id, Command.WAKEUP)
        try:
            self._perform(
                Command.WAKEUP,
                packet,
                _WAKEUP_BURST_TRIES,
                _WAKEUP_BURST_TIMEOUT,
                Command.ACK,
            )
        except PumpError:
            pass
        try:
            self._perform(Command.WAKEUP, packet, 1, _WAKEUP_FINAL_TIMEOUT, Command.ACK)
        except PumpError as err:
            _log.error("%s", err)
            return False
        return True