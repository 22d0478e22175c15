"""Per-cycle aggregation of reading fragments.

This is the only component allowed to merge decoded fragments.  Entries
live for exactly one scan cycle: created by the first fragment for a
device, updated in place by later ones and handed out by :meth:`drain`.
"""

from __future__ import annotations

import logging

from pymijia.models import AggregatedReading, ReadingFragment


class ReadingAggregator:
    """Latest-value-wins map of device identity to aggregated reading."""

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._readings: dict[str, AggregatedReading] = {}
        self._logger = logger or logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self._readings)

    def __contains__(self, identity: object) -> bool:
        return identity in self._readings

    def get(self, identity: str) -> AggregatedReading | None:
        return self._readings.get(identity)

    def ingest(self, identity: str, fragment: ReadingFragment) -> AggregatedReading:
        """Merge *fragment* into the current-cycle entry for *identity*."""
        reading = self._readings.get(identity)
        if reading is None:
            reading = AggregatedReading.from_fragment(fragment)
            self._readings[identity] = reading
        else:
            reading.merge(fragment)
        self._logger.debug("Ingested fragment identity=%s fragment=%s", identity, fragment)
        return reading

    def drain(self) -> dict[str, AggregatedReading]:
        """Remove and return everything accumulated since the last drain."""
        drained, self._readings = self._readings, {}
        return drained
