import json
import uuid
from datetime import datetime, timezone

import pytest

from cloudconn.protocol import (
    CanonicalFacts,
    CatalogServiceFacts,
    CommandMessageContent,
    ConnectionStatusMessageContent,
    ControlMessage,
    DataMessage,
    EventMessage,
    build_control_message,
    build_data_message,
    build_reconnect_message,
    get_client_name_from_connection_status_content,
    get_client_version_from_connection_status_content,
)


@pytest.mark.parametrize(
    "payload, expected_value, expected_found",
    [
        ({}, "", False),
        ({"client_name": "barney.rubble"}, "barney.rubble", True),
    ],
    ids=["empty payload", "valid client_name"],
)
def test_get_client_name(payload, expected_value, expected_found):
    assert get_client_name_from_connection_status_content(payload) == (
        expected_value,
        expected_found,
    )


@pytest.mark.parametrize(
    "payload, expected_value, expected_found",
    [
        ({}, "", False),
        ({"client_version": "12.1.101"}, "12.1.101", True),
    ],
    ids=["empty payload", "valid client_version"],
)
def test_get_client_version(payload, expected_value, expected_found):
    assert get_client_version_from_connection_status_content(payload) == (
        expected_value,
        expected_found,
    )


def test_non_string_client_name_is_rejected():
    with pytest.raises(TypeError):
        get_client_name_from_connection_status_content({"client_name": 5})


def test_control_message_json_round_trip():
    sent = datetime(2021, 2, 19, 10, 18, 24, 120000, tzinfo=timezone.utc)
    message = ControlMessage("connection-status", "1234", 1, sent, {"state": "online"})
    restored = ControlMessage.from_json(message.to_json())
    assert restored == message


def test_control_message_keys_and_utc_format():
    sent = datetime(2021, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    data = ControlMessage("event", "abc", 1, sent, "pong").to_dict()
    assert data == {
        "type": "event",
        "message_id": "abc",
        "version": 1,
        "sent": "2021-01-02T03:04:05Z",
        "content": "pong",
    }


def test_control_message_parses_nanosecond_timestamps():
    text = json.dumps({"type": "x", "message_id": "1", "version": 1, "sent": "2021-01-02T03:04:05.123456789Z"})
    message = ControlMessage.from_json(text)
    assert message.sent == datetime(2021, 1, 2, 3, 4, 5, 123456, tzinfo=timezone.utc)


def test_control_message_missing_fields_get_defaults():
    message = ControlMessage.from_dict({"type": "event"})
    assert message.message_id == ""
    assert message.version == 0
    assert message.content is None


def test_control_message_invalid_json_raises():
    with pytest.raises(ValueError):
        ControlMessage.from_json("{not json")


def test_control_message_non_object_raises():
    with pytest.raises(ValueError):
        ControlMessage.from_json("[1, 2]")


def test_control_message_bad_timestamp_raises():
    with pytest.raises(ValueError):
        ControlMessage.from_dict({"sent": "yesterday"})


def test_canonical_facts_omits_empty_fields():
    assert CanonicalFacts().to_dict() == {}
    facts = CanonicalFacts(fqdn="fred.flintstone.com", bios_id="b", ip_addresses=["192.168.68.101"])
    assert facts.to_dict() == {
        "fqdn": "fred.flintstone.com",
        "bios_uuid": "b",
        "ip_addresses": ["192.168.68.101"],
    }


def test_connection_status_content_encoding_nested_in_message():
    content = ConnectionStatusMessageContent(
        connection_state="online",
        dispatchers={},
        tags={},
        client_name="fred.flintstone",
        client_version="11.0.2",
    )
    message = ControlMessage("connection-status", "1", 1, datetime.now(timezone.utc), content)
    decoded = json.loads(message.to_json())
    assert decoded["content"] == {
        "canonical_facts": {},
        "dispatchers": {},
        "state": "online",
        "tags": {},
        "client_name": "fred.flintstone",
        "client_version": "11.0.2",
    }


def test_offline_content_has_null_dispatchers():
    content = ConnectionStatusMessageContent(connection_state="offline").to_dict()
    assert content["dispatchers"] is None
    assert content["tags"] is None
    assert content["state"] == "offline"


def test_build_reconnect_message():
    message_id, message = build_reconnect_message(5)
    assert message.message_type == "command"
    assert message.message_id == str(message_id)
    assert message.version == 1
    assert message.content.to_dict() == {
        "command": "reconnect",
        "arguments": {"delay": "5"},
        "message": "",
    }


def test_build_control_message_unique_ids():
    first_id, _ = build_control_message("command", CommandMessageContent(command="ping"))
    second_id, _ = build_control_message("command", CommandMessageContent(command="ping"))
    assert first_id != second_id
    assert isinstance(first_id, uuid.UUID)


def test_build_data_message_round_trip():
    message_id, message = build_data_message("imadirective", {"k": "v"}, "imapayload")
    restored = DataMessage.from_json(message.to_json())
    assert restored.message_type == "data"
    assert restored.message_id == str(message_id)
    assert restored.directive == "imadirective"
    assert restored.metadata == {"k": "v"}
    assert restored.content == "imapayload"
    assert restored.sent == message.sent


def test_event_message_encoding():
    sent = datetime(2021, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    data = json.loads(EventMessage("event", "m1", "", 1, sent, "pong").to_json())
    assert data["content"] == "pong"
    assert data["response_to"] == ""
    assert data["sent"] == "2021-01-02T03:04:05Z"


def test_catalog_service_facts_encoding():
    facts = CatalogServiceFacts(sources_type="ima_source_type", application_type="ima_app_type")
    assert facts.to_dict() == {"sources_type": "ima_source_type", "application_type": "ima_app_type"}