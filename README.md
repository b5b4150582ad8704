# cloudconn

`cloudconn` provides the building blocks of a cloud connector service.
Remote clients hold an MQTT connection to a broker. The connector records
which clients are online and sends them commands and data. This package
contains the wire messages and the logic that handles clients' control
messages. It also contains the small decisions a connector makes while
configuring itself. It uses only the standard library.

## Modules

### `cloudconn.protocol`

This module holds the wire messages as dataclasses:

- `ControlMessage`
- `DataMessage`
- `EventMessage`
- `CommandMessageContent`
- `ConnectionStatusMessageContent`
- `CanonicalFacts`
- `CatalogServiceFacts`

Each message has `to_dict()`. `ControlMessage`, `DataMessage` and
`EventMessage` also have `to_json()`. `ControlMessage` and `DataMessage`
can be read back with `from_dict()` and `from_json()`, which raise
`ValueError` on malformed input.

Timestamps are written in RFC 3339 form by `format_timestamp` and read by
`parse_timestamp`. A missing `sent` field is read as `ZERO_TIME`.
`CanonicalFacts.to_dict()` leaves empty fields out, and writes `bios_id` as
`bios_uuid`.

Builders:

- `build_control_message(message_type, content)`
- `build_reconnect_message(delay)`: a `"command"` message whose command is
  `"reconnect"` and whose arguments are `{"delay": "<delay>"}`.
- `build_data_message(directive, metadata, payload)`

Each builder returns a `(uuid.UUID, message)` pair with a fresh random id,
version 1 and the current UTC time.

Two helpers read optional string fields from a connection-status payload:

- `get_client_name_from_connection_status_content(payload)`
- `get_client_version_from_connection_status_content(payload)`

Both return `(value, found)`. A missing field gives `("", False)`.

```python
from cloudconn.protocol import build_reconnect_message

message_id, message = build_reconnect_message(5)
print(message.to_json())
```

### `cloudconn.sanitize`

- `valid_uuid(s)` accepts standard, braced, `urn:uuid:` and 32-digit hex
  forms.
- `sanitize_canonical_facts(cf)` returns a copy of the facts. It drops an
  `insights_id` that is not a UUID, and returns `{}` for `None`.

```python
from cloudconn.sanitize import sanitize_canonical_facts

sanitize_canonical_facts({"insights_id": "not-a-uuid", "fqdn": "host.example.com"})
# {"fqdn": "host.example.com"}
```

### `cloudconn.handlers`

`ControlMessageHandler(registrar, resolver, connected_client_recorder,
sources_recorder=None, send_reconnect=None)` is called as
`handler(client_id, payload)` with the raw JSON payload.

Every call increments the counter from `cloudconn.metrics`. Then:

- Empty payloads are ignored.
- Malformed JSON is ignored.
- Unknown message types are ignored.
- `"event"` messages are only logged.
- `"connection-status"` messages are dispatched by their `state` field.

An **online** message is handled in these steps:

1. It is checked against the stored connection. `is_duplicate_or_old_message`
   treats a message with the same id, or one sent earlier, as a duplicate.
   Duplicates are dropped.
2. The tenant is resolved. If resolution fails, the connection is still
   registered without a tenant.
3. A `ConnectionState` is registered. Its canonical facts are sanitized.
4. The client is recorded with the connected-client recorder.
5. A catalog dispatcher, if present, is passed to `process_dispatchers`.

If registration or recording fails, `send_reconnect(client_id)` is called
when it was supplied.

An **offline** message unregisters the connection.

A `FatalError` from the registrar always propagates. It means the message
must be processed again. `NotFoundError` from the registrar means the
client has no stored connection.

### `cloudconn.stale`

- `calculate_stale_cutoff_time(stale_time_offset, now=None)` returns
  `now - (stale_time_offset - 1 hour)`.
- `update_stale_connection(client, resolver, recorder, repository)` resolves
  the client's identity and re-records the client. It then marks the stale
  timestamp as updated. A failed lookup is recorded and re-raised. A failed
  recording is re-raised.

### `cloudconn.broker`

- `build_broker_tls_options(cert_file, key_file, ca_cert_file, skip_verify)`
  returns a list of `TlsOption`. Each option can `apply()` itself to an
  `ssl.SSLContext`. Giving only one of the certificate and key raises
  `ValueError`.
- `connection_lost_behaviour(shutdown_on_connection_lost)` returns a
  `ConnectionLostBehaviour`: either shut down, or reconnect automatically.
- `Subscriber` pairs a topic, a handler and a QoS.
- `build_producer_config(...)` returns a `ProducerConfig` with the `"hash"`
  balancer. It adds a `SaslConfig` only when a SASL mechanism is given.

### `cloudconn.metrics`

`Counter` is a thread-safe, monotonically increasing counter with `inc()`,
`reset()` and `value`. `control_message_received_counter()` returns the
process-wide counter of received control messages.

### `cloudconn.api_server`

- `build_mqtt_client_id(use_hostname, client_id)` picks the host name or
  the configured id. It raises `ValueError` when neither is available.
- `choose_jwt_generator(impl)` accepts `"rsa_generator"` or
  `"file_reader"` and raises `ValueError` otherwise.
- `choose_connection_lookup(impl)` returns `RELAXED` only for `"relaxed"`,
  and `STRICT` for anything else.
- `build_tenant_translator_mock_mapping(mapping)` maps empty strings to
  `None`.
- `OnceNotifier` is an on-connect handler. It signals only the first
  connection; use `wait(timeout)` to block until then.

### `cloudconn.autoclient`

Helpers for a client that simulates a connected host:

- `build_identity_header(org_id, account_number)` returns a base64 identity
  document.
- `client_topics(client_id)` returns the control in/out topics and the data
  in topic.
- `build_last_will_message` and `build_connection_status_message` build the
  offline and online messages.
- `connection_status_url` and `send_message_url` build the API endpoints.
- `message_id_from_data_payload(payload)` reads the id of a received data
  message.

## What this package does not do

This package contains no command-line program and opens no network
connections. It has no MQTT client and no Kafka consumer or producer. It
has no HTTP API server and no database storage of connections.

The registrar, resolver, recorders and repository that the handlers use
are protocols that you supply. The configuration helpers only decide
settings; they do not connect anything.

## Tests

The tests use pytest. Install the `test` extra and run `pytest`.