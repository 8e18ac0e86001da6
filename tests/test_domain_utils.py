"""Unit tests for domain normalization and format validation."""
import pytest

from app.services.domain_utils import normalize_domain, validate_domain_format


@pytest.mark.parametrize("raw, expected", [
    ("HTTPS://WWW.Example.com:443/x", "example.com"),
    ("http://shop.example.com/about?x=1", "shop.example.com"),
    ("www.example.com:8080", "example.com"),
    ("  Example.COM  ", "example.com"),
    ("shop.example.co.uk", "shop.example.co.uk"),
    ("", ""),
])
def test_normalize_domain(raw, expected):
    assert normalize_domain(raw) == expected


@pytest.mark.parametrize("raw", [
    "HTTPS://WWW.Example.com:443/x",
    "www.www.example.com",
    "https://www.https://example.com",
    "example.com :80",
    "not a domain at all",
    "::::",
    "WWW.",
    "http://",
])
def test_normalize_domain_is_idempotent(raw):
    once = normalize_domain(raw)
    assert normalize_domain(once) == once


def test_normalize_domain_never_raises_on_non_strings():
    assert normalize_domain(None) == ""
    assert normalize_domain(42) == ""


def test_normalize_malformed_input_is_lowercased():
    assert normalize_domain("Not-A-Domain") == "not-a-domain"


@pytest.mark.parametrize("raw", [
    "example.com",
    "my-store.co.uk",
    "https://www.Shop.Example.com/",
    "a1.io",
])
def test_valid_domains(raw):
    result = validate_domain_format(raw)
    assert result.valid is True
    assert result.reason is None


@pytest.mark.parametrize("raw, reason_fragment", [
    ("", "required"),
    ("a.b", "too short"),
    ("-bad.com", "hyphen"),
    ("bad-.com", "hyphen"),
    ("a..b.com", "consecutive dots"),
    (".example.com", "start or end with a dot"),
    ("localhost", "Invalid domain format"),
    ("example.c", "Invalid domain format"),
    ("example.123", "Invalid domain format"),
    ("exa_mple.com", "Invalid domain format"),
    ("x" * 64 + ".com", "1-63 characters"),
])
def test_invalid_domains_give_specific_reason(raw, reason_fragment):
    result = validate_domain_format(raw)
    assert result.valid is False
    assert reason_fragment in result.reason


def test_domain_over_253_characters_is_rejected():
    label = "a" * 60
    domain = ".".join([label] * 4) + ".co"  # 4*60 + 3 dots + 3 = 246
    domain = "b" * 8 + domain  # 254 characters
    assert len(domain) == 254
    result = validate_domain_format(domain)
    assert result.valid is False
    assert "too long" in result.reason
