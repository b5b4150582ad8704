"""Configuration pieces for the MQTT broker and kafka producer connections."""

from __future__ import annotations

import enum
import ssl
from dataclasses import dataclass
from typing import Any, Callable, Sequence


class TlsOptionKind(enum.Enum):
    CERT = "cert"
    CA_CERTS = "ca_certs"
    SKIP_VERIFY = "skip_verify"


@dataclass(frozen=True)
class TlsOption:
    """One adjustment to the TLS settings of the broker connection."""

    kind: TlsOptionKind
    paths: tuple[str, ...] = ()

    def apply(self, context: ssl.SSLContext) -> None:
        """Apply this option to an SSL context."""
        if self.kind is TlsOptionKind.CERT:
            cert_file, key_file = self.paths
            context.load_cert_chain(certfile=cert_file, keyfile=key_file)
        elif self.kind is TlsOptionKind.CA_CERTS:
            context.load_verify_locations(cafile=self.paths[0])
        else:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE


def build_broker_tls_options(
    cert_file: str, key_file: str, ca_cert_file: str, skip_verify: bool
) -> list[TlsOption]:
    """Collect the TLS options named by the broker settings."""
    options: list[TlsOption] = []
    if cert_file and key_file:
        options.append(TlsOption(TlsOptionKind.CERT, (cert_file, key_file)))
    elif cert_file or key_file:
        raise ValueError("Cert or key file specified without the other")
    if ca_cert_file:
        options.append(TlsOption(TlsOptionKind.CA_CERTS, (ca_cert_file,)))
    if skip_verify:
        options.append(TlsOption(TlsOptionKind.SKIP_VERIFY))
    return options


@dataclass(frozen=True)
class ConnectionLostBehaviour:
    """What to do when the broker connection drops."""

    auto_reconnect: bool
    shutdown_on_loss: bool


def connection_lost_behaviour(shutdown_on_connection_lost: bool) -> ConnectionLostBehaviour:
    """Either shut down on a lost connection, or log it and reconnect."""
    if shutdown_on_connection_lost:
        return ConnectionLostBehaviour(auto_reconnect=False, shutdown_on_loss=True)
    return ConnectionLostBehaviour(auto_reconnect=True, shutdown_on_loss=False)


@dataclass(frozen=True)
class Subscriber:
    """A topic subscription and the handler that receives its messages."""

    topic: str
    entry_point: Callable[..., Any]
    qos: int


@dataclass(frozen=True)
class SaslConfig:
    mechanism: str
    username: str
    password: str
    ca: str


@dataclass(frozen=True)
class ProducerConfig:
    brokers: tuple[str, ...]
    topic: str
    batch_size: int
    batch_bytes: int
    sasl: SaslConfig | None = None
    balancer: str = ""


def build_producer_config(
    brokers: Sequence[str],
    topic: str,
    batch_size: int,
    batch_bytes: int,
    sasl_mechanism: str,
    username: str,
    password: str,
    ca: str,
) -> ProducerConfig:
    """Build the config of the producer that forwards client messages to kafka."""
    sasl = SaslConfig(sasl_mechanism, username, password, ca) if sasl_mechanism else None
    return ProducerConfig(
        brokers=tuple(brokers),
        topic=topic,
        batch_size=batch_size,
        batch_bytes=batch_bytes,
        sasl=sasl,
        balancer="hash",
    )