"""Tests for webfetch request header preparation and redaction."""

from webfetch.config import ACCEPT_HEADER
from webfetch.headers import REDACTED_VALUE, is_sensitive_header, prepare_headers, redact_headers


def test_default_accept_prefers_markdown():
    prepared = prepare_headers()
    assert prepared.accept == ACCEPT_HEADER == "text/markdown, text/html"
    assert prepared.headers["Accept"] == ACCEPT_HEADER
    assert prepared.headers["Accept-Encoding"] == "identity"
    assert prepared.blocked == []


def test_custom_accept_header_used_when_no_override():
    prepared = prepare_headers({"accept": "application/json"})
    assert prepared.accept == "application/json"
    assert "accept" not in prepared.headers


def test_accept_override_beats_custom_accept():
    """accept 参数优先于 headers 里的 Accept。"""
    prepared = prepare_headers({"Accept": "application/json"}, accept_override="text/plain")
    assert prepared.headers["Accept"] == "text/plain"


def test_hop_by_hop_and_reserved_headers_are_blocked():
    prepared = prepare_headers({
        "Connection": "close",
        "Accept-Encoding": "gzip",
        "Host": "evil.example",
        "Content-Length": "5",
        "X-Trace": "1",
    })
    assert sorted(prepared.blocked) == ["Accept-Encoding", "Connection", "Content-Length", "Host"]
    assert prepared.headers["Accept-Encoding"] == "identity"
    assert prepared.headers["X-Trace"] == "1"
    assert "Host" not in prepared.headers


def test_sensitive_headers_redacted_in_copy_only():
    """真实值照常发送，诊断副本脱敏。"""
    prepared = prepare_headers({
        "Authorization": "Bearer abc",
        "X-Session-Id": "s1",
        "X-Client-Secret": "shh",
        "User-Agent-Hint": "fine",
    })
    assert prepared.headers["Authorization"] == "Bearer abc"
    assert prepared.redacted["Authorization"] == REDACTED_VALUE
    assert prepared.redacted["X-Session-Id"] == REDACTED_VALUE
    assert prepared.redacted["X-Client-Secret"] == REDACTED_VALUE
    assert prepared.redacted["User-Agent-Hint"] == "fine"


def test_custom_headers_merge_case_insensitively():
    prepared = prepare_headers({"x-foo": "1", "X-Foo": "2"})
    assert [k for k in prepared.headers if k.lower() == "x-foo"] == ["X-Foo"]
    assert prepared.headers["X-Foo"] == "2"


def test_is_sensitive_header():
    assert is_sensitive_header("Cookie")
    assert is_sensitive_header("x-api-key")
    assert is_sensitive_header("X-Refresh-Token")
    assert not is_sensitive_header("Accept")
    assert redact_headers({"Password": "x"}) == {"Password": REDACTED_VALUE}
