from __future__ import annotations

import asyncio
import sys
from types import SimpleNamespace
from typing import Any

import pytest
from bleak.exc import BleakError

from pymijia import scanner as scanner_mod
from pymijia.exceptions import MijiaScanError
from pymijia.models import Advertisement
from pymijia.scanner import BleakAdvertisementSource, advertisement_from_bleak, wait_for_window

_UUID = "0000fe95-0000-1000-8000-00805f9b34fb"


def _bleak_pair() -> tuple[Any, Any]:
    device = SimpleNamespace(address="aa:01:b8:92:85:dc", name="MJ_HT_V1")
    data = SimpleNamespace(
        rssi=-61,
        local_name=None,
        service_uuids=[_UUID],
        manufacturer_data={0x0157: bytearray(b"\x01")},
        service_data={_UUID: bytearray(b"\x50\x20")},
    )
    return device, data


class _FakeScanner:
    instances: list[_FakeScanner] = []
    start_error: Exception | None = None
    stop_error: Exception | None = None

    def __init__(self, detection_callback: Any = None, **kwargs: Any) -> None:
        self.callback = detection_callback
        self.kwargs = kwargs
        self.stopped = False
        _FakeScanner.instances.append(self)

    async def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.callback(*_bleak_pair())

    async def stop(self) -> None:
        self.stopped = True
        if self.stop_error is not None:
            raise self.stop_error


@pytest.fixture
def fake_scanner(monkeypatch: pytest.MonkeyPatch) -> type[_FakeScanner]:
    _FakeScanner.instances = []
    _FakeScanner.start_error = None
    _FakeScanner.stop_error = None
    monkeypatch.setattr(scanner_mod, "BleakScanner", _FakeScanner)
    return _FakeScanner


def test_advertisement_from_bleak() -> None:
    adv = advertisement_from_bleak(*_bleak_pair())

    assert adv == Advertisement(
        address="AA:01:B8:92:85:DC",
        connectable=None,
        rssi=-61,
        local_name="MJ_HT_V1",
        services=(_UUID,),
        manufacturer_data={0x0157: b"\x01"},
        service_data=((_UUID, b"\x50\x20"),),
    )


@pytest.mark.asyncio
async def test_wait_for_window_times_out_quietly() -> None:
    await wait_for_window(0.01, asyncio.Event())


@pytest.mark.asyncio
async def test_wait_for_window_returns_on_stop() -> None:
    stop = asyncio.Event()
    stop.set()
    await asyncio.wait_for(wait_for_window(60.0, stop), timeout=1.0)


@pytest.mark.asyncio
async def test_scan_forwards_advertisements(fake_scanner: type[_FakeScanner]) -> None:
    seen: list[Advertisement] = []
    source = BleakAdvertisementSource(adapter="hci1", scanning_mode="active")

    await source.scan(seen.append, duration=0.01)

    scanner = fake_scanner.instances[0]
    assert scanner.kwargs == {"scanning_mode": "active", "adapter": "hci1"}
    assert scanner.stopped
    assert [adv.address for adv in seen] == ["AA:01:B8:92:85:DC"]


@pytest.mark.asyncio
async def test_default_linux_scan_is_passive_with_mibeacon_pattern(
    fake_scanner: type[_FakeScanner], monkeypatch: pytest.MonkeyPatch
) -> None:
    from bleak.assigned_numbers import AdvertisementDataType

    monkeypatch.setattr(sys, "platform", "linux")
    source = BleakAdvertisementSource()

    await source.scan(lambda _adv: None, duration=0.01)

    kwargs = fake_scanner.instances[0].kwargs
    assert kwargs["scanning_mode"] == "passive"
    assert "adapter" not in kwargs
    (pattern,) = kwargs["bluez"]["or_patterns"]
    assert pattern.start_position == 0
    assert pattern.ad_data_type == AdvertisementDataType.SERVICE_DATA_UUID16
    assert pattern.content_of_pattern == b"\x95\xfe"


@pytest.mark.asyncio
async def test_passive_scan_elsewhere_has_no_bluez_args(
    fake_scanner: type[_FakeScanner], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(sys, "platform", "darwin")

    await BleakAdvertisementSource().scan(lambda _adv: None, duration=0.01)

    assert fake_scanner.instances[0].kwargs == {"scanning_mode": "passive"}


@pytest.mark.asyncio
async def test_scan_start_failure_is_scan_error(fake_scanner: type[_FakeScanner]) -> None:
    fake_scanner.start_error = BleakError("No Bluetooth adapters found.")
    source = BleakAdvertisementSource(scanning_mode="active")

    with pytest.raises(MijiaScanError, match="Can't start BLE scan"):
        await source.scan(lambda _adv: None, duration=0.01)


@pytest.mark.asyncio
async def test_scan_stop_failure_is_scan_error(fake_scanner: type[_FakeScanner]) -> None:
    fake_scanner.stop_error = BleakError("adapter removed")
    source = BleakAdvertisementSource(scanning_mode="active")

    with pytest.raises(MijiaScanError, match="Error with scan"):
        await source.scan(lambda _adv: None, duration=0.01)
