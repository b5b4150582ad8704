"""Start-up choices made by the API server: MQTT client id, JWT source, lookups."""

from __future__ import annotations

import enum
import logging
import socket
import threading
from typing import Any, Callable, Mapping

log = logging.getLogger(__name__)


class JwtGeneratorKind(enum.Enum):
    """Where the JWT presented to the MQTT broker comes from."""

    RSA = "rsa_generator"
    FILE = "file_reader"


class ConnectionLookup(enum.Enum):
    """How the API server finds a connection for a request."""

    STRICT = "strict"
    RELAXED = "relaxed"


class OnceNotifier:
    """On-connect handler that signals only the first connection.

    The broker client calls its on-connect handler again after every
    reconnect; only the initial connection is reported to ``notify``.
    """

    def __init__(self, notify: Callable[[], Any] | None = None) -> None:
        self._notify = notify
        self._lock = threading.Lock()
        self._fired = False
        self.connected = threading.Event()

    def __call__(self, *args: Any) -> None:
        log.info("Connected to MQTT broker")
        with self._lock:
            if self._fired:
                return
            self._fired = True
        self.connected.set()
        if self._notify is not None:
            self._notify()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the first connection; True if it happened in time."""
        return self.connected.wait(timeout)


def build_tenant_translator_mock_mapping(
    mapping: Mapping[str, Any],
) -> dict[str, str | None]:
    """Turn a configured mapping into one where empty strings mean no tenant."""
    result: dict[str, str | None] = {}
    for key, value in mapping.items():
        if not isinstance(value, str):
            raise TypeError(
                f"tenant mapping value for {key!r} must be a string, got {type(value).__name__}"
            )
        result[key] = value or None
    return result


def build_mqtt_client_id(use_hostname: bool, client_id: str) -> str:
    """Choose the client id for the MQTT connection.

    The host name wins when ``use_hostname`` is set; otherwise the configured
    id is used. Raises ValueError when neither is available.
    """
    if use_hostname:
        try:
            return socket.gethostname()
        except OSError:
            log.error("Unable to determine hostname to use as client_id for MQTT connection")
            raise
    if client_id:
        return client_id
    message = "Unable to determine what to use as the client_id for MQTT connection"
    log.error(message)
    raise ValueError(message)


def choose_jwt_generator(impl: str | JwtGeneratorKind) -> JwtGeneratorKind:
    """Resolve the configured JWT generator; raises ValueError if unknown."""
    if isinstance(impl, JwtGeneratorKind):
        return impl
    try:
        return JwtGeneratorKind(impl)
    except ValueError:
        message = "Invalid JWT generator configured for the MQTT connection"
        log.error(message)
        raise ValueError(message) from None


def choose_connection_lookup(impl: str) -> ConnectionLookup:
    """Use the relaxed lookup only when asked for; anything else is strict."""
    if impl == ConnectionLookup.RELAXED.value:
        log.info('Using "relaxed" connection lookup mechanism')
        return ConnectionLookup.RELAXED
    log.info('Using "strict" connection lookup mechanism')
    return ConnectionLookup.STRICT