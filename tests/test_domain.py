import pytest

from pubscan.utils.domain import (
    canonicalize_domain,
    dedupe_domains,
    extract_host,
    is_first_party_cookie,
    is_third_party_host,
    validate_domain,
)


@pytest.mark.parametrize("raw,expected", [
    ("example.com", "example.com"),
    ("https://www.Example.com:8080/path?q=1", "example.com"),
    ("http://user:pw@news.example.co.uk/", "news.example.co.uk"),
    ("//cdn.example.com/a.js", "cdn.example.com"),
    ("  WWW.EXAMPLE.COM.  ", "example.com"),
])
def test_canonicalize_domain(raw, expected):
    assert canonicalize_domain(raw) == expected


def test_extract_host_keeps_www():
    assert extract_host("https://www.example.com/x") == "www.example.com"


def test_dedupe_keeps_first_seen_order():
    assert dedupe_domains(["a.com", "a.com", "b.com"]) == ["a.com", "b.com"]
    assert dedupe_domains(["https://www.b.com/x", "a.com", "b.com", "", "   "]) == ["b.com", "a.com"]


def test_dedupe_ignores_non_strings():
    assert dedupe_domains(["a.com", None, 42]) == ["a.com"]


@pytest.mark.parametrize("bad", [
    "localhost", "127.0.0.1", "10.0.0.5", "192.168.1.1", "172.20.1.1",
    "8.8.8.8", "printer.local", "exa mple.com", "<script>.com", "",
])
def test_validate_domain_rejects(bad):
    with pytest.raises(ValueError):
        validate_domain(bad)


def test_validate_domain_accepts_and_normalizes():
    assert validate_domain("Example.COM.") == "example.com"
    assert validate_domain("news.example.co.uk") == "news.example.co.uk"


class TestFirstPartyCookie:
    def test_subdomain_cookie_is_first_party(self):
        assert is_first_party_cookie(".sub.example.com", "example.com")

    def test_exact_match_with_leading_dot(self):
        assert is_first_party_cookie(".example.com", "example.com")
        assert is_first_party_cookie("example.com", "www.example.com")

    def test_parent_domain_is_first_party(self):
        assert is_first_party_cookie(".example.com", "news.example.com")

    def test_bare_tld_is_not_first_party(self):
        assert not is_first_party_cookie(".com", "example.com")

    def test_lookalike_suffix_is_third_party(self):
        assert not is_first_party_cookie("notexample.com", "example.com")
        assert not is_first_party_cookie(".doubleclick.net", "example.com")

    def test_empty_values(self):
        assert not is_first_party_cookie("", "example.com")
        assert not is_first_party_cookie(".example.com", "")


def test_third_party_host():
    assert not is_third_party_host("cdn.example.com", "example.com")
    assert is_third_party_host("securepubads.g.doubleclick.net", "example.com")
