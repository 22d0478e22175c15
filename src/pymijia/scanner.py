"""Passive BLE advertisement source backed by bleak."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import Callable
from typing import Any

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from pymijia.exceptions import MijiaScanError
from pymijia.models import Advertisement

# MiBeacon 16-bit service UUID 0xFE95, little endian as it appears on air.
_MIBEACON_UUID16_LE = b"\x95\xfe"


def advertisement_from_bleak(device: BLEDevice, data: AdvertisementData) -> Advertisement:
    """Convert a bleak detection callback pair into an :class:`Advertisement`."""
    return Advertisement(
        address=device.address.upper(),
        connectable=None,
        rssi=data.rssi,
        local_name=data.local_name or device.name,
        services=tuple(data.service_uuids),
        manufacturer_data={company: bytes(blob) for company, blob in data.manufacturer_data.items()},
        service_data=tuple((uuid, bytes(blob)) for uuid, blob in data.service_data.items()),
    )


def _bluez_passive_args() -> dict[str, Any]:
    """BlueZ only scans passively through an advertisement monitor pattern."""
    from bleak.assigned_numbers import AdvertisementDataType

    try:
        from bleak.args.bluez import OrPattern
    except ImportError:
        from bleak.backends.bluezdbus.advertisement_monitor import OrPattern

    return {"or_patterns": [OrPattern(0, AdvertisementDataType.SERVICE_DATA_UUID16, _MIBEACON_UUID16_LE)]}


async def wait_for_window(duration: float, stop: asyncio.Event | None = None) -> None:
    """Wait until *duration* seconds elapse or *stop* is set, whichever is first.

    Running out of time is the normal way for a window to end and does not
    raise.
    """
    if stop is None:
        await asyncio.sleep(duration)
        return
    try:
        async with asyncio.timeout(duration):
            await stop.wait()
    except TimeoutError:
        pass


class BleakAdvertisementSource:
    """Runs bounded BLE scan windows and forwards every advertisement.

    Passive scanning on BlueZ goes through an advertisement monitor that
    only matches MiBeacon service data, so other nearby devices are never
    reported in that mode.  Use ``scanning_mode="active"`` to see them all.
    """

    def __init__(
        self,
        *,
        adapter: str | None = None,
        scanning_mode: str = "passive",
        logger: logging.Logger | None = None,
    ) -> None:
        self._adapter = adapter
        self._scanning_mode = scanning_mode
        self._logger = logger or logging.getLogger(__name__)

    def _scanner_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"scanning_mode": self._scanning_mode}
        if self._adapter:
            kwargs["adapter"] = self._adapter
        if self._scanning_mode == "passive" and sys.platform.startswith("linux"):
            kwargs["bluez"] = _bluez_passive_args()
        return kwargs

    async def scan(
        self,
        on_advertisement: Callable[[Advertisement], None],
        *,
        duration: float,
        stop: asyncio.Event | None = None,
    ) -> None:
        """Scan for *duration* seconds, calling *on_advertisement* for each packet.

        Raises
        ------
        MijiaScanError
            The adapter is unavailable, rejects the scan parameters or fails
            while stopping.
        """

        def detection_callback(device: BLEDevice, data: AdvertisementData) -> None:
            on_advertisement(advertisement_from_bleak(device, data))

        try:
            scanner = BleakScanner(detection_callback=detection_callback, **self._scanner_kwargs())
            await scanner.start()
        except (BleakError, OSError, ValueError) as exc:
            raise MijiaScanError(f"Can't start BLE scan: {exc}") from exc
        self._logger.debug("BLE scan started mode=%s duration=%ss", self._scanning_mode, duration)

        try:
            await wait_for_window(duration, stop)
        except BaseException:
            with contextlib.suppress(BleakError, OSError):
                await scanner.stop()
            raise

        try:
            await scanner.stop()
        except (BleakError, OSError) as exc:
            raise MijiaScanError(f"Error with scan: {exc}") from exc
        self._logger.debug("BLE scan window closed")
