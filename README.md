# pumplink

`pumplink` talks to Medtronic insulin pumps through a packet radio that you
supply and decodes what they send back. It uses only the standard library.
The package builds and checks the packets and runs the command exchanges.
It decodes the pump's settings, schedules and history pages.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## What is inside

| Module              | Purpose |
|---------------------|---------|
| `pumplink.codec`    | 4b/6b line coding: `encode_4b6b`, `decode_4b6b`, `DecodingError` |
| `pumplink.crc`      | `crc8` (polynomial 0x9B, initial value 0) and `crc16` (polynomial 0x1021, initial value 0xFFFF) |
| `pumplink.model`    | `CarbUnits`, `GlucoseUnits`, `TempBasalType`, the frozen dataclasses `Settings`, `Status`, `BasalRate`, `CarbRatio`, `Sensitivity`, `Target`, and the conversions `int_to_insulin`, `int_to_glucose`, `half_hours` |
| `pumplink.utility`  | `since_midnight`, `time_string`, `short_time`, `duration_string`, `insulin_string` |
| `pumplink.schedule` | `entry_at`, `basal_rate_at`, `carb_ratio_at`, `sensitivity_at`, `target_at`, `next_change` |
| `pumplink.history`  | `decode_time`, `decode_history_record`, `decode_history`, `record_type_name`, `RecordType`, `AlarmCode`, `HistoryRecord` and the `HistoryError` family |
| `pumplink.commands` | Packet framing and command exchange: `PumpLink`, `Radio`, `Command`, `parse_pump_id`, `encode_short_packet`, `encode_long_packet` and the `PumpError` family |
| `pumplink.pump`     | High-level queries through `Pump` |

Units used throughout:

- Insulin amounts are in milliunits.
- Glucose is in mg/dL. On pumps set to mmol/L it is in µmol/L.
- Times of day are seconds since midnight.
- Timestamps are local epoch seconds.

## Encoding and checksums

```python
from pumplink.codec import encode_4b6b, decode_4b6b
from pumplink.crc import crc8, crc16

payload = bytes([0xA7, 0x12, 0x34, 0x56, 0x8D, 0x00])
wire = encode_4b6b(payload + bytes([crc8(payload)]))
assert decode_4b6b(wire)[:-1] == payload
```

`decode_4b6b` raises `DecodingError` in two cases. The first is a 6-bit code
word that has no meaning in the code. The second is an input length that
cannot come from encoding. `DecodingError` is a subclass of `ValueError`.

## Talking to a pump

`Radio` is a protocol with two methods:

- `transmit(packet)` sends an encoded packet.
- `receive(max_len, timeout)` waits up to `timeout` milliseconds. It returns
  at most `max_len` received bytes, or `b""` if nothing arrived.

Any object with these two methods will do.

```python
from pumplink.commands import PumpLink, PumpError
from pumplink.pump import Pump


class MyRadio:
    def transmit(self, packet):
        ...  # hand the bytes to your transceiver

    def receive(self, max_len, timeout):
        ...  # return the bytes received, or b"" on timeout


link = PumpLink(MyRadio(), "123456")   # pump serial number, in hex digits
pump = Pump(link)

try:
    pump.wakeup()
    print("model", pump.model(), "family", pump.family())
    print("reservoir", pump.reservoir())      # milliunits
    print("battery", pump.battery())          # millivolts
    for rate in pump.basal_rates(48):
        print(rate.start, rate.rate)
except PumpError as err:
    print("pump did not answer properly:", err)
```

### The command link

`PumpLink` frames each command in one of two ways:

- A 7-byte short packet, which is 11 bytes on air.
- A 71-byte long packet with up to 64 parameter bytes, which is 107 bytes on
  air.

How often a command is sent:

- Short commands are tried up to `DEFAULT_TRIES` (3) times. Each try waits
  `DEFAULT_TIMEOUT` (500 ms) for an answer.
- Long packets are sent only once.

A response is accepted only if all of these hold:

- it decodes;
- its CRC-8 matches;
- it carries the CareLink device type and this pump's ID;
- it echoes the command or the expected reply.

`PumpLink` offers these methods:

- `short_command(cmd)` returns the response payload.
- `extended_response(cmd)` returns a response that arrives in acknowledged
  64-byte fragments, joined together.
- `download_page(cmd, page_num)` downloads 16 fragments and checks the
  page's CRC-16. If an acknowledgement gets no answer, it sends up to
  `MAX_NAKS` (10) NAKs to recover the fragment.
- `send_wakeup()` sends a burst of wakeup packets, then waits up to ten
  seconds for the pump to answer. It returns `True` or `False`.

A failed exchange raises `PumpError` or one of its subclasses:

- `NoResponseError`
- `DecodingFailureError`
- `CrcFailureError`
- `InvalidResponseError`

The `Pump` methods also raise `PumpError` when a response is too short or has
an unexpected length field.

### Pump queries

| Method | Returns |
|--------|---------|
| `model()`, `family()` | Model number, and its last two digits. The family is cached after the first query. |
| `battery()` | Battery voltage in millivolts |
| `reservoir()` | Insulin remaining, in milliunits |
| `clock()` | Pump clock as local epoch seconds |
| `status()` | `Status(code, bolusing, suspended)`. Its `normal` property checks the status code. |
| `settings()` | `Settings(dia, temp_basal_type, max_basal, max_bolus)` |
| `temp_basal()` | `(rate, minutes)`. The rate is 0 for a percentage temp basal, which is not supported. |
| `carb_units()`, `glucose_units()` | `CarbUnits` / `GlucoseUnits`, or the raw value if it is unknown |
| `basal_rates(limit)`, `carb_ratios(limit)`, `sensitivities(limit)`, `targets(limit)` | Schedule entries, at most `limit` of them |
| `history_page(page_num)` | The 1022 data bytes of one history page |
| `wakeup()` | `True` if the pump answers a model query. Otherwise it returns the result of `send_wakeup()`. |

## Reading history

`decode_history(page, family)` is a generator. It yields the
`HistoryRecord`s of a page that concern insulin delivery:

- boluses;
- temporary basal rates and durations;
- basal profile starts;
- suspends and resumes;
- rewinds and primes;
- alarms and cleared alarms.

For `Alarm` records the `insulin` field holds the alarm code.

```python
from pumplink.history import decode_history, record_type_name

page = pump.history_page(0)
for record in decode_history(page, pump.family()):
    print(record_type_name(record.type), record.time, record.insulin, record.duration)
```

Decoding stops at the all-zero padding at the end of a page. Some records
are malformed, and each raises its own error:

- An unknown record type raises `UnknownRecordError`.
- A record that runs past the end of the data raises `RecordSizeError`.
- A record of length zero raises `HistoryError`.

`UnknownRecordError` and `RecordSizeError` are subclasses of `HistoryError`.
The error is raised only after the records before it have been yielded.

`decode_history_record(data, family)` decodes a single record. It returns
every known record type and marks the insulin-related ones with
`relevant=True`. `decode_time(data)` converts a 5-byte history timestamp to
local epoch seconds.

## Schedules

```python
from pumplink.schedule import basal_rate_at, next_change

rates = pump.basal_rates(48)
now = pump.clock()
current = basal_rate_at(rates, now)      # index into rates, or None
changes_at = next_change(rates, now)
```

`next_change` returns the time at which the next entry takes effect,
strictly after the given time. At the end of the day that is the following
midnight. It raises `ValueError` if no entry is in effect at the given time.

## What this package does not do

- It contains no radio driver. Sending and receiving the encoded bytes on
  the pump frequency is up to the `Radio` object you supply.
  `pumplink.commands.PUMP_FREQUENCY` (868.25 MHz) is provided for reference
  only.
- It has no command-line program, server or user interface. It is a library
  to be called from your own code.
- It does not store or upload readings anywhere.