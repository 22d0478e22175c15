"""Custom exception hierarchy for pymijia."""

from __future__ import annotations


class MijiaError(Exception):
    """Base exception for all pymijia errors."""


class MijiaConfigError(MijiaError):
    """Invalid or missing configuration."""


class MijiaScanError(MijiaError):
    """BLE scanning could not be started or ended with a radio error.

    A scan window that simply runs out is not an error and never raises
    this exception.
    """


class MijiaBrokerError(MijiaError):
    """MQTT broker connection failure."""

    def __init__(
        self,
        message: str,
        *,
        host: str = "",
        port: int | None = None,
    ) -> None:
        self.host = host
        self.port = port
        super().__init__(message)
