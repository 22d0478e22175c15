"""Command line entry point: run the BLE to MQTT bridge until killed."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from collections.abc import Sequence

from pymijia._mqtt import MqttRuntime
from pymijia.aggregator import ReadingAggregator
from pymijia.config import DEFAULT_CONFIG_PATH, BridgeConfig
from pymijia.controller import ScanCycleController
from pymijia.exceptions import MijiaBrokerError, MijiaConfigError, MijiaScanError
from pymijia.publisher import ReadingPublisher
from pymijia.scanner import BleakAdvertisementSource

_LOG = logging.getLogger("pymijia")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pymijia",
        description="Passively listen for Xiaomi Mijia sensor advertisements and report them via MQTT.",
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Config file location (default: {DEFAULT_CONFIG_PATH}).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help=(
            "Enable verbose output: debug logs, unmatched advertisements and drained readings. "
            "Passive scans on Linux only receive MiBeacon (0xFE95) advertisements."
        ),
    )
    return parser.parse_args(argv)


async def _run_bridge(config: BridgeConfig, runtime: MqttRuntime) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signum, stop.set)

    controller = ScanCycleController(
        BleakAdvertisementSource(adapter=config.adapter),
        ReadingAggregator(),
        ReadingPublisher(runtime, base_topic=config.broker.base_topic),
        config.identities,
        scan_duration=config.scan_duration,
    )
    _LOG.info(
        "Listening for %d device(s), publishing every %.0fs under %s",
        len(config.devices),
        config.scan_duration,
        config.broker.base_topic,
    )
    await controller.run_forever(stop)
    _LOG.info("Shutdown requested, stopping after %d cycle(s)", controller.cycles)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = BridgeConfig.from_file(args.config)
    except MijiaConfigError as exc:
        _LOG.error("%s", exc)
        return 1
    _LOG.debug("Loaded configuration broker=%s devices=%s", config.broker, dict(config.devices))

    runtime = MqttRuntime(config.broker)
    try:
        runtime.start()
    except MijiaBrokerError as exc:
        _LOG.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        runtime.stop()
        return 0

    try:
        asyncio.run(_run_bridge(config, runtime))
    except MijiaScanError as exc:
        _LOG.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        pass
    finally:
        runtime.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
