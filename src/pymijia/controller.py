"""Scan/drain/publish cycle.

Each cycle runs one bounded scan window, decoding and aggregating every
advertisement as it arrives, then drains the aggregator and publishes the
per-device readings.  Draining only starts after the window has closed, so
the aggregator is never read and written at the same time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Protocol

from pymijia.aggregator import ReadingAggregator
from pymijia.decoder import decode_advertisement, format_advertisement
from pymijia.models import Advertisement, AggregatedReading


class CycleState(StrEnum):
    IDLE = "idle"
    SCANNING = "scanning"
    PUBLISHING = "publishing"


class AdvertisementSource(Protocol):
    async def scan(
        self,
        on_advertisement: Callable[[Advertisement], None],
        *,
        duration: float,
        stop: asyncio.Event | None = None,
    ) -> None: ...


class ReadingSink(Protocol):
    def publish(self, name: str, reading: AggregatedReading) -> int: ...


class ScanCycleController:
    """Drives the endless scan-then-publish loop.

    ``identities`` maps a device address to its logical name; readings
    from any other address are neither aggregated nor published.
    """

    def __init__(
        self,
        source: AdvertisementSource,
        aggregator: ReadingAggregator,
        publisher: ReadingSink,
        identities: Mapping[str, str],
        *,
        scan_duration: float = 60.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self._source = source
        self._aggregator = aggregator
        self._publisher = publisher
        self._identities = identities
        self._scan_duration = scan_duration
        self._logger = logger or logging.getLogger(__name__)
        self._state = CycleState.IDLE
        self._cycles = 0

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def cycles(self) -> int:
        """Number of completed scan/publish cycles."""
        return self._cycles

    def handle_advertisement(self, adv: Advertisement) -> None:
        """Decode and aggregate one advertisement; never raises."""
        try:
            fragment = decode_advertisement(adv, self._identities)
            if fragment is None:
                if self._logger.isEnabledFor(logging.DEBUG):
                    self._logger.debug("%s", format_advertisement(adv))
                return
            self._aggregator.ingest(adv.address.upper(), fragment)
        except Exception:
            self._logger.debug("Advertisement handling failed address=%s", adv.address, exc_info=True)

    def publish_drained(self) -> int:
        """Drain the aggregator and publish every configured device's reading."""
        published = 0
        for identity, reading in self._aggregator.drain().items():
            self._logger.debug("Drained reading identity=%s reading=%s", identity, reading)
            name = self._identities.get(identity)
            if name is None or reading.is_empty():
                continue
            try:
                self._publisher.publish(name, reading)
            except Exception:
                self._logger.warning("Publishing failed for device=%s", name, exc_info=True)
                continue
            published += 1
        return published

    async def run_cycle(self, stop: asyncio.Event | None = None) -> int:
        """Run one scan window followed by one publish pass.

        Returns the number of devices whose readings were published.
        :class:`~pymijia.exceptions.MijiaScanError` from the source is
        propagated untouched.
        """
        self._state = CycleState.SCANNING
        try:
            await self._source.scan(self.handle_advertisement, duration=self._scan_duration, stop=stop)
        except BaseException:
            self._state = CycleState.IDLE
            raise

        self._state = CycleState.PUBLISHING
        try:
            published = self.publish_drained()
        finally:
            self._state = CycleState.IDLE
        self._cycles += 1
        self._logger.debug("Cycle %d complete, published %d device(s)", self._cycles, published)
        return published

    async def run_forever(self, stop: asyncio.Event) -> None:
        """Repeat cycles until *stop* is set; the final window is still published."""
        while not stop.is_set():
            await self.run_cycle(stop)
