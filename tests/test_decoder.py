"""Tests for MiBeacon service-data decoding."""

from __future__ import annotations

import struct

import pytest

from pymijia.decoder import (
    MIBEACON_SERVICE_UUID,
    EventType,
    decode_advertisement,
    decode_service_data,
    format_advertisement,
    format_tenths,
    select_service_data,
)
from pymijia.models import Advertisement, ReadingFragment

# Frame control, product id, frame counter and reversed MAC (11 bytes).
_HEADER = bytes.fromhex("5020AA01B89285DCA8654C")
_ADDRESS = "4C:65:A8:DC:85:92"


def _payload(event: int, value: bytes) -> bytes:
    return _HEADER + struct.pack("<H", event) + bytes([len(value)]) + value


# ------------------------------------------------------------------
# decode_service_data
# ------------------------------------------------------------------


class TestDecodeServiceData:
    def test_temperature_is_signed(self) -> None:
        fragment = decode_service_data(_payload(EventType.TEMPERATURE, struct.pack("<h", -55)))
        assert fragment == ReadingFragment(temperature=-55)

    def test_humidity(self) -> None:
        fragment = decode_service_data(_payload(EventType.HUMIDITY, struct.pack("<H", 524)))
        assert fragment == ReadingFragment(humidity=524)

    def test_battery_single_byte(self) -> None:
        data = _payload(EventType.BATTERY, bytes([87]))
        assert len(data) == 15
        assert decode_service_data(data) == ReadingFragment(battery=87)

    def test_temperature_and_humidity(self) -> None:
        fragment = decode_service_data(_payload(EventType.TEMPERATURE_HUMIDITY, struct.pack("<hH", 204, 524)))
        assert fragment is not None
        assert fragment.temperature == 204
        assert fragment.humidity == 524
        assert fragment.battery is None

    def test_captured_frame(self) -> None:
        fragment = decode_service_data(bytes.fromhex("5020AA01B89285DCA8654C0D1004CC000C02"))
        assert fragment == ReadingFragment(temperature=204, humidity=524)

    def test_short_payload_ignored(self) -> None:
        data = _payload(EventType.TEMPERATURE, struct.pack("<h", 210))
        assert decode_service_data(data[:14]) is None

    @pytest.mark.parametrize("event", [0x1007, 0x1008, 0x0000, 0xFFFF])
    def test_unknown_event_type_ignored(self, event: int) -> None:
        assert decode_service_data(_payload(event, b"\x01\x02\x03\x04")) is None

    def test_truncated_combined_payload_ignored(self) -> None:
        data = _payload(EventType.TEMPERATURE_HUMIDITY, struct.pack("<hH", 204, 524))
        assert decode_service_data(data[:16]) is None

    def test_out_of_range_battery_ignored(self) -> None:
        assert decode_service_data(_payload(EventType.BATTERY, bytes([0xFF]))) is None


# ------------------------------------------------------------------
# Advertisement gating
# ------------------------------------------------------------------


class TestDecodeAdvertisement:
    def _adv(self, *, address: str = _ADDRESS, uuid: str = MIBEACON_SERVICE_UUID) -> Advertisement:
        data = _payload(EventType.HUMIDITY, struct.pack("<H", 455))
        return Advertisement(address=address, service_data=((uuid, data),))

    def test_configured_identity_is_decoded(self) -> None:
        assert decode_advertisement(self._adv(), {_ADDRESS}) == ReadingFragment(humidity=455)

    def test_address_case_is_ignored(self) -> None:
        assert decode_advertisement(self._adv(address=_ADDRESS.lower()), {_ADDRESS}) is not None

    def test_unconfigured_identity_ignored(self) -> None:
        assert decode_advertisement(self._adv(), {"11:22:33:44:55:66"}) is None

    def test_other_service_ignored(self) -> None:
        adv = self._adv(uuid="0000181a-0000-1000-8000-00805f9b34fb")
        assert decode_advertisement(adv, {_ADDRESS}) is None

    def test_short_uuid_form_accepted(self) -> None:
        assert select_service_data(self._adv(uuid="FE95")) is not None

    def test_first_matching_entry_wins(self) -> None:
        first = _payload(EventType.BATTERY, bytes([50]))
        second = _payload(EventType.BATTERY, bytes([60]))
        adv = Advertisement(
            address=_ADDRESS,
            service_data=(("0000181a-0000-1000-8000-00805f9b34fb", b"\x00"), (MIBEACON_SERVICE_UUID, first), ("fe95", second)),
        )
        assert select_service_data(adv) == first


# ------------------------------------------------------------------
# Formatting
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(0, "0.0"), (50, "5.0"), (100, "10.0"), (204, "20.4"), (-15, "-1.5"), (-5, "-0.5"), (-200, "-20.0")],
)
def test_format_tenths(raw: int, expected: str) -> None:
    assert format_tenths(raw) == expected


def test_format_advertisement_full() -> None:
    adv = Advertisement(
        address="11:22:33:44:55:66",
        connectable=True,
        rssi=-70,
        local_name="LYWSD02",
        services=("fe95",),
        manufacturer_data={0x0157: b"\x01\x02"},
    )
    assert format_advertisement(adv) == "[11:22:33:44:55:66] C -70: Name: LYWSD02, Svcs: [fe95], MD: 0157:0102"


def test_format_advertisement_minimal() -> None:
    adv = Advertisement(address="11:22:33:44:55:66", connectable=False, rssi=-5)
    assert format_advertisement(adv) == "[11:22:33:44:55:66] N  -5:"


def test_format_advertisement_unknown_connectable() -> None:
    line = format_advertisement(Advertisement(address="11:22:33:44:55:66"))
    assert line.startswith("[11:22:33:44:55:66] ?   ?:")
