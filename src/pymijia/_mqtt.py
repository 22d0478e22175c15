"""Internal MQTT publishing runtime."""

from __future__ import annotations

import logging
import threading
from typing import Any, cast

import paho.mqtt.client as mqtt

from pymijia.config import BrokerConfig
from pymijia.exceptions import MijiaBrokerError


class MqttRuntime:
    """Threaded paho-mqtt client used as a long-lived publish sink.

    Publishing is fire-and-forget at QoS 0 without retain.  Reconnecting
    after a dropped connection is left to paho's network loop.
    """

    def __init__(
        self,
        config: BrokerConfig,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._connected = threading.Event()
        self._answered = threading.Event()
        self._connect_error: str | None = None

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def start(self) -> None:
        """Connect to the broker and wait for it to accept the session.

        Raises
        ------
        MijiaBrokerError
            The broker is unreachable, refuses the connection or does not
            answer within ``connect_timeout`` seconds.
        """
        self.stop()
        config = self._config
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s tls=%s client_id=%s",
            config.host,
            config.port,
            config.tls,
            config.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if config.username is not None:
            client.username_pw_set(config.username, config.password)
        if config.tls:
            client.tls_set()
        client.reconnect_delay_set(min_delay=1, max_delay=60)

        self._connected.clear()
        self._answered.clear()
        self._connect_error = None

        def on_connect(
            _c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._connect_error = str(reason_code)
                self._logger.warning("MQTT connect failed: %s", reason_code)
                self._answered.set()
                return
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            self._connected.set()
            self._answered.set()

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self._connected.clear()
            if self._running:
                self._logger.warning("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_disconnect = on_disconnect

        try:
            client.connect(config.host, config.port, keepalive=config.keepalive)
        except (OSError, ValueError) as exc:
            raise MijiaBrokerError(
                f"Can't connect to MQTT broker {config.host}:{config.port}: {exc}",
                host=config.host,
                port=config.port,
            ) from exc
        client.loop_start()

        self._answered.wait(config.connect_timeout)
        if not self._connected.is_set():
            client.disconnect()
            client.loop_stop()
            reason = self._connect_error or f"no answer within {config.connect_timeout}s"
            raise MijiaBrokerError(
                f"MQTT broker {config.host}:{config.port} rejected connection: {reason}",
                host=config.host,
                port=config.port,
            )

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def publish(self, topic: str, payload: str) -> bool:
        """Queue *payload* for *topic*; return whether paho accepted it."""
        client = self._client
        if client is None:
            self._logger.debug("MQTT publish dropped, runtime not started topic=%s", topic)
            return False
        info = client.publish(topic, payload, qos=0, retain=False)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._logger.debug("MQTT publish rc=%s topic=%s", mqtt.error_string(info.rc), topic)
            return False
        return True

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected.clear()

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
