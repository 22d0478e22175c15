"""pymijia - Passive BLE to MQTT bridge for Xiaomi Mijia sensors."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pymijia")
except PackageNotFoundError:
    __version__ = "0+local"
from pymijia.aggregator import ReadingAggregator
from pymijia.config import BridgeConfig, BrokerConfig
from pymijia.controller import CycleState, ScanCycleController
from pymijia.decoder import EventType, decode_advertisement, decode_service_data
from pymijia.exceptions import (
    MijiaBrokerError,
    MijiaConfigError,
    MijiaError,
    MijiaScanError,
)
from pymijia.models import (
    Advertisement,
    AggregatedReading,
    Metric,
    MetricMessage,
    ReadingFragment,
)
from pymijia.publisher import ReadingPublisher, build_messages

__all__ = [
    "__version__",
    "Advertisement",
    "AggregatedReading",
    "BridgeConfig",
    "BrokerConfig",
    "CycleState",
    "EventType",
    "Metric",
    "MetricMessage",
    "MijiaBrokerError",
    "MijiaConfigError",
    "MijiaError",
    "MijiaScanError",
    "ReadingAggregator",
    "ReadingFragment",
    "ReadingPublisher",
    "ScanCycleController",
    "build_messages",
    "decode_advertisement",
    "decode_service_data",
]
