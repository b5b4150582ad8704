import ssl

import pytest

from cloudconn.broker import (
    ConnectionLostBehaviour,
    Subscriber,
    TlsOption,
    TlsOptionKind,
    build_broker_tls_options,
    build_producer_config,
    connection_lost_behaviour,
)


def test_no_tls_settings_gives_no_options():
    assert build_broker_tls_options("", "", "", False) == []


def test_all_tls_settings_in_order():
    options = build_broker_tls_options("cert.pem", "key.pem", "ca.pem", True)
    assert options == [
        TlsOption(TlsOptionKind.CERT, ("cert.pem", "key.pem")),
        TlsOption(TlsOptionKind.CA_CERTS, ("ca.pem",)),
        TlsOption(TlsOptionKind.SKIP_VERIFY),
    ]


@pytest.mark.parametrize("cert, key", [("cert.pem", ""), ("", "key.pem")])
def test_cert_without_key_raises(cert, key):
    with pytest.raises(ValueError, match="without the other"):
        build_broker_tls_options(cert, key, "", False)


def test_skip_verify_applies_to_context():
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    (option,) = build_broker_tls_options("", "", "", True)
    option.apply(context)
    assert context.check_hostname is False
    assert context.verify_mode == ssl.CERT_NONE


def test_missing_ca_file_raises_on_apply(tmp_path):
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    (option,) = build_broker_tls_options("", "", str(tmp_path / "missing.pem"), False)
    with pytest.raises(OSError):
        option.apply(context)


def test_connection_lost_shutdown():
    assert connection_lost_behaviour(True) == ConnectionLostBehaviour(
        auto_reconnect=False, shutdown_on_loss=True
    )


def test_connection_lost_reconnect():
    behaviour = connection_lost_behaviour(False)
    assert behaviour.auto_reconnect is True
    assert behaviour.shutdown_on_loss is False


def test_subscriber_holds_handler():
    def handler(*args):
        return args

    subscriber = Subscriber(topic="redhat/insights/+/control/out", entry_point=handler, qos=1)
    assert subscriber.entry_point("a") == ("a",)
    assert subscriber.qos == 1


def test_producer_config_without_sasl():
    config = build_producer_config(["kafka:9092"], "rhc", 10, 1024, "", "", "", "")
    assert config.sasl is None
    assert config.brokers == ("kafka:9092",)
    assert config.topic == "rhc"
    assert config.balancer == "hash"


def test_producer_config_with_sasl():
    password = "password"
    config = build_producer_config(
        ["kafka:9092"], "rhc", 10, 1024, "PLAIN", "user", password=password, ca="ca.pem"
    )
    assert config.sasl is not None
    assert config.sasl.mechanism == "PLAIN"
    assert config.sasl.username == "user"
    assert config.sasl.password == password
    assert config.sasl.ca == "ca.pem"
    assert (config.batch_size, config.batch_bytes) == (10, 1024)