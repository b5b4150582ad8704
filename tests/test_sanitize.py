import pytest

from cloudconn.sanitize import sanitize_canonical_facts, valid_uuid

VALID = "e20ea474-7287-4b68-80a6-533aa440e7bd"


def test_sanitize_none_returns_empty_dict():
    assert sanitize_canonical_facts(None) == {}


def test_sanitize_valid_insights_id_kept():
    facts = {"insights_id": VALID, "bios_uuid": VALID, "fqdn": "fred.flintstone.com"}
    assert sanitize_canonical_facts(facts) == facts


def test_sanitize_invalid_insights_id_removed():
    facts = {
        "insights_id": "\\u0000" * 36,
        "bios_uuid": VALID,
        "fqdn": "fred.flintstone.com",
    }
    sanitized = sanitize_canonical_facts(facts)
    assert "insights_id" not in sanitized
    assert sanitized["bios_uuid"] == VALID
    assert sanitized["fqdn"] == "fred.flintstone.com"


def test_sanitize_does_not_modify_input():
    facts = {"insights_id": "fred"}
    sanitize_canonical_facts(facts)
    assert facts == {"insights_id": "fred"}


def test_sanitize_non_string_insights_id_raises():
    with pytest.raises(TypeError):
        sanitize_canonical_facts({"insights_id": 42})


@pytest.mark.parametrize(
    "text",
    [
        VALID,
        VALID.upper(),
        "{" + VALID + "}",
        "urn:uuid:" + VALID,
        VALID.replace("-", ""),
    ],
)
def test_valid_uuid_accepts_known_forms(text):
    assert valid_uuid(text) is True


@pytest.mark.parametrize(
    "text",
    ["", "fred", "\u0000\u0000", VALID[:-1] + "g", "[" + VALID + "]", VALID.replace("-", "+")],
)
def test_valid_uuid_rejects_malformed(text):
    assert valid_uuid(text) is False