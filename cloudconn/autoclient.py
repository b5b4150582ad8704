"""Messages, topics and endpoints used by the automated test client."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping

from cloudconn.protocol import (
    CanonicalFacts,
    ConnectionStatusMessageContent,
    ControlMessage,
    DataMessage,
)

CONNECTION_STATUS_TYPE = "connection-status"
CLIENT_NAME = "fred.flintstone"
CLIENT_VERSION = "11.0.2"
SEND_MESSAGE_BODY = b'{"directive": "imadirective", "payload": "imapayload"}'
IDENTITY_HEADER = "x-rh-identity"
REQUEST_ID_HEADER = "x-rh-insights-request-id"

_IDENTITY_TEMPLATE = (
    '{{"identity": {{"account_number": "{account}", "org_id": "{org}", "internal": {{}}, '
    '"service_account": {{"client_id": "0000", "username": "jdoe"}}, "type": "Associate"}}}}'
)


@dataclass(frozen=True)
class ClientTopics:
    """The MQTT topics a client reads from and writes to."""

    control_read: str
    control_write: str
    data_read: str


def build_identity_header(org_id: str, account_number: str) -> str:
    """Build a base64 encoded identity header for the given tenant."""
    document = _IDENTITY_TEMPLATE.format(account=account_number, org=org_id)
    return base64.b64encode(document.encode()).decode("ascii")


def client_topics(client_id: str) -> ClientTopics:
    """Return the topics used by the client with the given id."""
    prefix = f"redhat/insights/{client_id}"
    return ClientTopics(
        control_read=f"{prefix}/control/in",
        control_write=f"{prefix}/control/out",
        data_read=f"{prefix}/data/in",
    )


def _now_if_missing(sent: datetime | None) -> datetime:
    return sent if sent is not None else datetime.now(timezone.utc)


def build_last_will_message(message_id: str, sent: datetime | None = None) -> ControlMessage:
    """Build the offline message the broker publishes if the client vanishes."""
    return ControlMessage(
        message_type=CONNECTION_STATUS_TYPE,
        message_id=message_id,
        version=1,
        sent=_now_if_missing(sent),
        content=ConnectionStatusMessageContent(connection_state="offline"),
    )


def build_connection_status_message(
    message_id: str,
    canonical_facts: CanonicalFacts,
    dispatchers: Mapping[str, Mapping[str, str]] | None,
    tags: Mapping[str, str] | None,
    sent: datetime | None = None,
) -> ControlMessage:
    """Build the online message a client publishes after connecting."""
    content = ConnectionStatusMessageContent(
        canonical_facts=canonical_facts,
        dispatchers=None if dispatchers is None else {k: dict(v) for k, v in dispatchers.items()},
        connection_state="online",
        tags=None if tags is None else dict(tags),
        client_name=CLIENT_NAME,
        client_version=CLIENT_VERSION,
    )
    return ControlMessage(
        message_type=CONNECTION_STATUS_TYPE,
        message_id=message_id,
        version=1,
        sent=_now_if_missing(sent),
        content=content,
    )


def _connection_url(base_url: str, client_id: str, action: str) -> str:
    return f"{base_url}/api/cloud-connector/v2/connections/{client_id}/{action}"


def connection_status_url(base_url: str, client_id: str) -> str:
    """URL that reports whether a client is connected."""
    return _connection_url(base_url, client_id, "status")


def send_message_url(base_url: str, client_id: str) -> str:
    """URL that sends a message to a connected client."""
    return _connection_url(base_url, client_id, "message")


def message_id_from_data_payload(payload: str | bytes | None) -> str | None:
    """Return the message id of a received data message, or None for an empty payload.

    Raises ValueError if the payload is not a valid data message.
    """
    if not payload:
        return None
    return DataMessage.from_json(payload).message_id