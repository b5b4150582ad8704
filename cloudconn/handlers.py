"""Handling of control messages that clients publish on their control topics."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, Protocol

from cloudconn.metrics import control_message_received_counter
from cloudconn.protocol import (
    ZERO_TIME,
    ControlMessage,
    get_client_name_from_connection_status_content,
    get_client_version_from_connection_status_content,
)
from cloudconn.sanitize import sanitize_canonical_facts

log = logging.getLogger(__name__)

CANONICAL_FACTS_KEY = "canonical_facts"
DISPATCHERS_KEY = "dispatchers"
TAGS_KEY = "tags"
CATALOG_DISPATCHER_KEY = "catalog"
CATALOG_APPLICATION_TYPE = "ApplicationType"
CATALOG_SOURCE_NAME = "SrcName"
CATALOG_SOURCE_REF = "SourceRef"
CATALOG_SOURCE_TYPE = "SrcType"
PLAYBOOK_WORKER_DISPATCHER_KEY = "rhc-worker-playbook"


class DuplicateOrOldMessageError(Exception):
    """The message was already seen or is older than the stored one."""

    def __init__(self, message: str = "duplicate or old message") -> None:
        super().__init__(message)


class FatalError(Exception):
    """A storage failure after which the message must be processed again."""


class NotFoundError(LookupError):
    """No connection is stored for the client."""


@dataclass
class MessageMetadata:
    """Identity and time of the latest message accepted from a client."""

    latest_message_id: str = ""
    latest_timestamp: datetime = ZERO_TIME


@dataclass
class ConnectionState:
    """What is known about a connected client."""

    client_id: str = ""
    account: str = ""
    org_id: str = ""
    dispatchers: Any = None
    canonical_facts: Any = None
    tags: Any = None
    message_metadata: MessageMetadata = field(default_factory=MessageMetadata)
    tenant_lookup_failure_count: int = 0


class ConnectionRegistrar(Protocol):
    def register(self, state: ConnectionState) -> None: ...

    def unregister(self, client_id: str) -> None: ...

    def find_connection_by_client_id(self, client_id: str) -> ConnectionState: ...


class AccountIdResolver(Protocol):
    def map_client_id_to_account_id(self, client_id: str) -> tuple[str, str, str]: ...


class ConnectedClientRecorder(Protocol):
    def record_connected_client(self, identity: str, state: ConnectionState) -> None: ...


class SourcesRecorder(Protocol):
    def register_with_sources(
        self,
        identity: str,
        account: str,
        org_id: str,
        client_id: str,
        source_ref: str,
        source_name: str,
        source_type: str,
        application_type: str,
    ) -> None: ...


def is_duplicate_or_old_message(current: ConnectionState, incoming: ControlMessage) -> bool:
    """True when the incoming message repeats or predates the stored one."""
    metadata = current.message_metadata
    return (
        metadata.latest_message_id == incoming.message_id
        or incoming.sent < metadata.latest_timestamp
    )


def process_dispatchers(
    sources_recorder: SourcesRecorder,
    identity: str,
    account: str,
    org_id: str,
    client_id: str,
    payload: Mapping[str, Any],
) -> None:
    """Register a catalog dispatcher, if the client reported one, with sources."""
    if DISPATCHERS_KEY not in payload:
        log.debug("No dispatchers found (client_id=%s)", client_id)
        return

    dispatchers = payload[DISPATCHERS_KEY]
    log.debug("Dispatchers found: %s", json.dumps(dispatchers, default=str))
    if not isinstance(dispatchers, Mapping):
        raise TypeError("dispatchers must be a JSON object")

    if CATALOG_DISPATCHER_KEY not in dispatchers:
        log.debug("No catalog dispatcher found (client_id=%s)", client_id)
        return

    catalog = dispatchers[CATALOG_DISPATCHER_KEY]
    if not isinstance(catalog, Mapping):
        raise TypeError("catalog dispatcher must be a JSON object")

    required = (
        CATALOG_APPLICATION_TYPE,
        CATALOG_SOURCE_TYPE,
        CATALOG_SOURCE_REF,
        CATALOG_SOURCE_NAME,
    )
    if any(key not in catalog for key in required):
        log.debug("Found a catalog dispatcher, but missing some of the required fields")
        return

    values = {key: catalog[key] for key in required}
    for key, value in values.items():
        if not isinstance(value, str):
            raise TypeError(f"catalog field {key!r} must be a string")

    try:
        sources_recorder.register_with_sources(
            identity,
            account,
            org_id,
            client_id,
            values[CATALOG_SOURCE_REF],
            values[CATALOG_SOURCE_NAME],
            values[CATALOG_SOURCE_TYPE],
            values[CATALOG_APPLICATION_TYPE],
        )
    except Exception as err:  # noqa: BLE001 - registration failures are only reported
        log.error("Failed to register catalog with sources (client_id=%s): %s", client_id, err)


class ControlMessageHandler:
    """Process control messages read from kafka.

    A call raises only when the message should be processed again, i.e. on a
    FatalError from the connection store.
    """

    def __init__(
        self,
        registrar: ConnectionRegistrar,
        resolver: AccountIdResolver,
        connected_client_recorder: ConnectedClientRecorder,
        sources_recorder: SourcesRecorder | None = None,
        send_reconnect: Callable[[str], None] | None = None,
    ) -> None:
        self.registrar = registrar
        self.resolver = resolver
        self.connected_client_recorder = connected_client_recorder
        self.sources_recorder = sources_recorder
        self.send_reconnect = send_reconnect

    def __call__(self, client_id: str, payload: str | bytes) -> None:
        control_message_received_counter().inc()

        if not payload:
            # A removed retained message arrives with an empty payload.
            log.debug("client %s sent an empty payload", client_id)
            return

        try:
            message = ControlMessage.from_json(payload)
        except ValueError as err:
            log.error("Failed to unmarshal control message (client_id=%s): %s", client_id, err)
            return

        log.debug("Got a control message from %s: %s", client_id, message)

        if message.message_type == "connection-status":
            self.handle_connection_status(client_id, message)
        elif message.message_type == "event":
            self.handle_event(client_id, message)
        else:
            log.debug("Received an invalid message type: %s", message.message_type)

    def handle_connection_status(self, client_id: str, message: ControlMessage) -> None:
        content = message.content
        if not isinstance(content, Mapping):
            raise TypeError("connection-status content must be a JSON object")

        if "state" not in content:
            log.debug("Client %s did not send the connection state", client_id)
            return

        client_name, _ = get_client_name_from_connection_status_content(content)
        client_version, _ = get_client_version_from_connection_status_content(content)
        log.debug(
            "connection-status from %s (client_name=%s, client_version=%s)",
            client_id,
            client_name,
            client_version,
        )

        state = content["state"]
        try:
            if state == "online":
                self.handle_online(client_id, message)
            elif state == "offline":
                self.handle_offline(client_id, message)
            else:
                log.debug("Invalid connection state from connection-status message.")
        except DuplicateOrOldMessageError:
            return

    def check_for_duplicate(self, client_id: str, message: ControlMessage) -> None:
        """Raise DuplicateOrOldMessageError if the message was already handled."""
        try:
            current = self.registrar.find_connection_by_client_id(client_id)
        except NotFoundError:
            return
        except FatalError:
            raise
        except Exception as err:  # noqa: BLE001 - stale data gets overwritten
            log.error("Error during duplicate message check (client_id=%s): %s", client_id, err)
            current = ConnectionState()

        if is_duplicate_or_old_message(current, message):
            log.debug("ignoring message - duplicate or old message")
            raise DuplicateOrOldMessageError()

    def _reconnect(self, client_id: str) -> None:
        if self.send_reconnect is not None:
            self.send_reconnect(client_id)

    def handle_online(self, client_id: str, message: ControlMessage) -> None:
        log.debug("handling online connection-status message from %s", client_id)

        self.check_for_duplicate(client_id, message)

        try:
            identity, account, org_id = self.resolver.map_client_id_to_account_id(client_id)
        except Exception as err:  # noqa: BLE001 - tenant-less connections are fixed later
            log.error("Failed to resolve client id to account number (%s): %s", client_id, err)
            log.info("Allowing tenant-less connection to continue with connection registration.")
            identity, account, org_id = "", "", ""

        content = message.content
        if not isinstance(content, Mapping):
            raise TypeError("connection-status content must be a JSON object")

        state = ConnectionState(
            client_id=client_id,
            account=account,
            org_id=org_id,
            dispatchers=content.get(DISPATCHERS_KEY),
            canonical_facts=sanitize_canonical_facts(content.get(CANONICAL_FACTS_KEY)),
            tags=content.get(TAGS_KEY),
            message_metadata=MessageMetadata(
                latest_message_id=message.message_id,
                latest_timestamp=message.sent,
            ),
            tenant_lookup_failure_count=0,
        )

        try:
            self.registrar.register(state)
        except FatalError:
            raise
        except Exception as err:  # noqa: BLE001 - the client is asked to reconnect
            log.error("Failed to register connection (%s): %s", client_id, err)
            self._reconnect(client_id)
            return

        try:
            self.connected_client_recorder.record_connected_client(identity, state)
        except Exception as err:  # noqa: BLE001 - the client is asked to reconnect
            log.error("Failed to record client id within the platform (%s): %s", client_id, err)
            self._reconnect(client_id)
            return

        if self.sources_recorder is not None:
            process_dispatchers(
                self.sources_recorder, identity, account, org_id, client_id, content
            )

    def handle_offline(self, client_id: str, message: ControlMessage) -> None:
        log.debug("handling offline connection-status message from %s", client_id)
        try:
            self.registrar.unregister(client_id)
        except FatalError:
            raise
        except Exception as err:  # noqa: BLE001 - only fatal errors are retried
            log.error("Failed to unregister connection (%s): %s", client_id, err)

    def handle_event(self, client_id: str, message: ControlMessage) -> None:
        log.debug("Received an event message from client %s: %s", client_id, message)