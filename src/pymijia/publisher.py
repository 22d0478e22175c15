"""Map aggregated readings to timestamped MQTT messages."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

from pymijia.decoder import format_tenths
from pymijia.models import AggregatedReading, Metric, MetricMessage

DEFAULT_BASE_TOPIC = "collectd/mqtt.o362.us/mqtt"


class MessageSink(Protocol):
    """Anything that can fire-and-forget a payload to a topic."""

    def publish(self, topic: str, payload: str) -> bool: ...


def topic_for(base_topic: str, metric: Metric, name: str) -> str:
    return f"{base_topic.rstrip('/')}/{metric.value}-{name}"


def build_messages(
    name: str,
    reading: AggregatedReading,
    *,
    base_topic: str = DEFAULT_BASE_TOPIC,
    now: int,
) -> list[MetricMessage]:
    """Build one message per metric present in *reading*.

    Bodies are ``<unix-seconds>:<value>`` where temperature and humidity
    are ``D.d`` and battery is a bare integer.
    """
    values: list[tuple[Metric, str]] = []
    if reading.temperature is not None:
        values.append((Metric.TEMPERATURE, format_tenths(reading.temperature)))
    if reading.humidity is not None:
        values.append((Metric.HUMIDITY, format_tenths(reading.humidity)))
    if reading.battery is not None:
        values.append((Metric.BATTERY, str(reading.battery)))

    return [
        MetricMessage(metric=metric, topic=topic_for(base_topic, metric, name), payload=f"{now}:{value}")
        for metric, value in values
    ]


class ReadingPublisher:
    """Publishes each device's aggregated reading through a message sink."""

    def __init__(
        self,
        sink: MessageSink,
        *,
        base_topic: str = DEFAULT_BASE_TOPIC,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ) -> None:
        self._sink = sink
        self._base_topic = base_topic
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    @property
    def base_topic(self) -> str:
        return self._base_topic

    def publish(self, name: str, reading: AggregatedReading) -> int:
        """Publish *reading* for device *name*; return how many messages went out.

        A failing message is logged and skipped so that its siblings are
        still published.
        """
        messages = build_messages(name, reading, base_topic=self._base_topic, now=int(self._clock()))
        sent = 0
        for message in messages:
            try:
                accepted = self._sink.publish(message.topic, message.payload)
            except Exception:
                self._logger.warning("Publish raised topic=%s", message.topic, exc_info=True)
                continue
            if not accepted:
                self._logger.warning("Publish not accepted topic=%s payload=%s", message.topic, message.payload)
                continue
            self._logger.debug("Published topic=%s payload=%s", message.topic, message.payload)
            sent += 1
        return sent
