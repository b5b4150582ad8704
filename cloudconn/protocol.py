"""Message types exchanged with connected clients and helpers that build them."""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_TIMESTAMP_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as RFC 3339 with trailing fractional zeros removed."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += f".{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def parse_timestamp(text: str) -> datetime:
    """Parse an RFC 3339 timestamp; fractions finer than microseconds are truncated."""
    match = _TIMESTAMP_RE.match(text)
    if match is None:
        raise ValueError(f"invalid timestamp: {text!r}")
    year, month, day, hour, minute, second, fraction, offset = match.groups()
    microsecond = int((fraction or "").ljust(6, "0")[:6])
    if offset in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if offset[0] == "-" else 1
        delta = timedelta(hours=int(offset[1:3]), minutes=int(offset[4:6]))
        tz = timezone(sign * delta)
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), microsecond, tzinfo=tz
    )


def _encode(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, Mapping):
        return {key: _encode(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def _require_mapping(data: Any, kind: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{kind} must be a JSON object")
    return data


def _str_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _int_field(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r} must be an integer")
    return value


def _time_field(data: Mapping[str, Any], key: str) -> datetime:
    value = data.get(key)
    if value is None:
        return ZERO_TIME
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a timestamp string")
    return parse_timestamp(value)


def _loads(text: str | bytes) -> Any:
    return json.loads(text)


@dataclass
class ControlMessage:
    """A message sent on a client's control topic."""

    message_type: str = ""
    message_id: str = ""
    version: int = 0
    sent: datetime = ZERO_TIME
    content: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.message_type,
            "message_id": self.message_id,
            "version": self.version,
            "sent": format_timestamp(self.sent),
            "content": _encode(self.content),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ControlMessage:
        data = _require_mapping(data, "control message")
        return cls(
            message_type=_str_field(data, "type"),
            message_id=_str_field(data, "message_id"),
            version=_int_field(data, "version"),
            sent=_time_field(data, "sent"),
            content=data.get("content"),
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> ControlMessage:
        return cls.from_dict(_loads(text))


@dataclass
class CanonicalFacts:
    """Facts that identify a host; empty fields are left out of the encoding."""

    insights_id: str = ""
    machine_id: str = ""
    subscription_manager_id: str = ""
    satellite_id: str = ""
    fqdn: str = ""
    bios_id: str = ""
    ip_addresses: list[str] = field(default_factory=list)
    mac_addresses: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        pairs = (
            ("insights_id", self.insights_id),
            ("machine_id", self.machine_id),
            ("subscription_manager_id", self.subscription_manager_id),
            ("satellite_id", self.satellite_id),
            ("fqdn", self.fqdn),
            ("bios_uuid", self.bios_id),
            ("ip_addresses", list(self.ip_addresses)),
            ("mac_addresses", list(self.mac_addresses)),
        )
        return {key: value for key, value in pairs if value}


@dataclass
class ConnectionStatusMessageContent:
    """Content of a connection-status control message."""

    canonical_facts: CanonicalFacts = field(default_factory=CanonicalFacts)
    dispatchers: dict[str, dict[str, str]] | None = None
    connection_state: str = ""
    tags: dict[str, str] | None = None
    client_name: str = ""
    client_version: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "canonical_facts": self.canonical_facts.to_dict(),
            "dispatchers": _encode(self.dispatchers),
            "state": self.connection_state,
            "tags": _encode(self.tags),
            "client_name": self.client_name,
            "client_version": self.client_version,
        }


@dataclass
class CommandMessageContent:
    """Content of a command control message."""

    command: str = ""
    arguments: Any = None
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": self.command,
            "arguments": _encode(self.arguments),
            "message": self.message,
        }


@dataclass
class EventMessage:
    """An event sent by a client on its control topic."""

    message_type: str = ""
    message_id: str = ""
    response_to: str = ""
    version: int = 0
    sent: datetime = ZERO_TIME
    content: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.message_type,
            "message_id": self.message_id,
            "response_to": self.response_to,
            "version": self.version,
            "sent": format_timestamp(self.sent),
            "content": self.content,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class CatalogServiceFacts:
    """Catalog facts reported by a client."""

    sources_type: str = ""
    application_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"sources_type": self.sources_type, "application_type": self.application_type}


@dataclass
class DataMessage:
    """A message sent on a client's data topic."""

    message_type: str = ""
    message_id: str = ""
    response_to: str = ""
    version: int = 0
    sent: datetime = ZERO_TIME
    directive: str = ""
    metadata: Any = None
    content: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.message_type,
            "message_id": self.message_id,
            "response_to": self.response_to,
            "version": self.version,
            "sent": format_timestamp(self.sent),
            "directive": self.directive,
            "metadata": _encode(self.metadata),
            "content": _encode(self.content),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DataMessage:
        data = _require_mapping(data, "data message")
        return cls(
            message_type=_str_field(data, "type"),
            message_id=_str_field(data, "message_id"),
            response_to=_str_field(data, "response_to"),
            version=_int_field(data, "version"),
            sent=_time_field(data, "sent"),
            directive=_str_field(data, "directive"),
            metadata=data.get("metadata"),
            content=data.get("content"),
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> DataMessage:
        return cls.from_dict(_loads(text))


def _string_from_content(field_name: str, payload: Mapping[str, Any]) -> tuple[str, bool]:
    if field_name not in payload:
        return "", False
    value = payload[field_name]
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string, got {type(value).__name__}")
    return value, True


def get_client_name_from_connection_status_content(payload: Mapping[str, Any]) -> tuple[str, bool]:
    """Return the client name and whether it was present."""
    return _string_from_content("client_name", payload)


def get_client_version_from_connection_status_content(
    payload: Mapping[str, Any],
) -> tuple[str, bool]:
    """Return the client version and whether it was present."""
    return _string_from_content("client_version", payload)


def build_control_message(
    message_type: str, content: CommandMessageContent | None
) -> tuple[uuid.UUID, ControlMessage]:
    """Build a control message with a fresh random id."""
    message_id = uuid.uuid4()
    message = ControlMessage(
        message_type=message_type,
        message_id=str(message_id),
        version=1,
        sent=datetime.now(timezone.utc),
        content=content,
    )
    return message_id, message


def build_reconnect_message(delay: int) -> tuple[uuid.UUID, ControlMessage]:
    """Build a command asking the client to reconnect after ``delay`` seconds."""
    content = CommandMessageContent(command="reconnect", arguments={"delay": str(delay)})
    return build_control_message("command", content)


def build_data_message(directive: str, metadata: Any, payload: Any) -> tuple[uuid.UUID, DataMessage]:
    """Build a data message with a fresh random id."""
    message_id = uuid.uuid4()
    message = DataMessage(
        message_type="data",
        message_id=str(message_id),
        version=1,
        sent=datetime.now(timezone.utc),
        metadata=metadata,
        directive=directive,
        content=payload,
    )
    return message_id, message