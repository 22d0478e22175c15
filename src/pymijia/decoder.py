"""Decoder for Xiaomi MiBeacon sensor advertisements.

Layout of the service data (offsets in bytes)::

    0  1  2  3  4  5  6  7  8  9  10 11 12 13 14 15 16 17
    50 20 AA 01 B8 92 85 DC A8 65 4C 0D 10 04 CC 00 0C 02
                                     ^^^^^    ^^^^^ ^^^^^
                                     event    value(s)

The two-byte little-endian event type at offset 11 selects how the value
bytes starting at offset 14 are interpreted.
"""

from __future__ import annotations

import enum
import struct
from collections.abc import Container

from pymijia.models import Advertisement, ReadingFragment

MIBEACON_SERVICE_UUID = "0000fe95-0000-1000-8000-00805f9b34fb"
_MIBEACON_SHORT_UUID = "fe95"

MIN_SERVICE_DATA_LENGTH = 15
EVENT_TYPE_OFFSET = 11
VALUE_OFFSET = 14


class EventType(enum.IntEnum):
    TEMPERATURE = 0x1004
    HUMIDITY = 0x1006
    BATTERY = 0x100A
    TEMPERATURE_HUMIDITY = 0x100D


# Number of value bytes each event type needs after VALUE_OFFSET.
_VALUE_LENGTHS: dict[EventType, int] = {
    EventType.TEMPERATURE: 2,
    EventType.HUMIDITY: 2,
    EventType.BATTERY: 1,
    EventType.TEMPERATURE_HUMIDITY: 4,
}


def _is_mibeacon_uuid(uuid: str) -> bool:
    normalized = uuid.strip().lower()
    return normalized in (MIBEACON_SERVICE_UUID, _MIBEACON_SHORT_UUID, f"0x{_MIBEACON_SHORT_UUID}")


def decode_service_data(data: bytes) -> ReadingFragment | None:
    """Decode raw MiBeacon service data into a reading fragment.

    Returns ``None`` when the payload is too short, carries an event type
    that is not a sensor reading, or holds an out-of-range battery level.
    """
    if len(data) < MIN_SERVICE_DATA_LENGTH:
        return None

    (raw_event,) = struct.unpack_from("<H", data, EVENT_TYPE_OFFSET)
    try:
        event = EventType(raw_event)
    except ValueError:
        return None

    if len(data) < VALUE_OFFSET + _VALUE_LENGTHS[event]:
        return None

    if event is EventType.TEMPERATURE:
        (temperature,) = struct.unpack_from("<h", data, VALUE_OFFSET)
        return ReadingFragment(temperature=temperature)
    if event is EventType.HUMIDITY:
        (humidity,) = struct.unpack_from("<H", data, VALUE_OFFSET)
        return ReadingFragment(humidity=humidity)
    if event is EventType.BATTERY:
        battery = data[VALUE_OFFSET]
        if battery > 100:
            return None
        return ReadingFragment(battery=battery)

    temperature, humidity = struct.unpack_from("<hH", data, VALUE_OFFSET)
    return ReadingFragment(temperature=temperature, humidity=humidity)


def select_service_data(adv: Advertisement) -> bytes | None:
    """Return the first MiBeacon service-data payload carried by *adv*."""
    for uuid, data in adv.service_data:
        if _is_mibeacon_uuid(uuid):
            return bytes(data)
    return None


def decode_advertisement(adv: Advertisement, identities: Container[str]) -> ReadingFragment | None:
    """Decode *adv* if it comes from one of *identities* and carries sensor data."""
    if adv.address.upper() not in identities:
        return None
    data = select_service_data(adv)
    if data is None:
        return None
    return decode_service_data(data)


def format_tenths(value: int) -> str:
    """Format a tenths value as ``D.d``, keeping the sign for values above -1."""
    sign = "-" if value < 0 else ""
    whole, tenth = divmod(abs(value), 10)
    return f"{sign}{whole}.{tenth}"


def format_advertisement(adv: Advertisement) -> str:
    """One-line diagnostic dump of an advertisement that was not decoded."""
    if adv.connectable is None:
        kind = "?"
    else:
        kind = "C" if adv.connectable else "N"
    rssi = "?" if adv.rssi is None else str(adv.rssi)
    parts: list[str] = []
    if adv.local_name:
        parts.append(f"Name: {adv.local_name}")
    if adv.services:
        parts.append(f"Svcs: [{' '.join(adv.services)}]")
    if adv.manufacturer_data:
        blobs = " ".join(f"{company:04X}:{data.hex().upper()}" for company, data in adv.manufacturer_data.items())
        parts.append(f"MD: {blobs}")
    line = f"[{adv.address}] {kind} {rssi:>3}:"
    if parts:
        line += " " + ", ".join(parts)
    return line
