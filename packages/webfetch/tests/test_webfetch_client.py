"""Tests for webfetch client: manual redirects, per-hop SSRF, hop cap, content-type gate."""

import asyncio

import httpx
import pytest

from webfetch.client import WebfetchClient
from webfetch.config import WebFetchConfig
from webfetch.errors import WebRedirectBlockedError, WebSSRFBlockedError, WebTooManyRedirectsError
from webfetch.headers import prepare_headers
from webfetch.models import FetchSuccess, UnsupportedContent
from webfetch.ssrf import PrivateNetworkGuard

HEADERS = prepare_headers().headers


def _fetch(handler, url, *, headers=None, mode="full", max_chars=12000, config=None):
    async def run_test():
        async with WebfetchClient(
            PrivateNetworkGuard(), config or WebFetchConfig(), transport=httpx.MockTransport(handler)
        ) as client:
            return await client.fetch(url, headers or HEADERS, mode=mode, max_chars=max_chars)

    return asyncio.run(run_test())


def test_client_follows_relative_redirect_and_records_chain():
    """302 相对 Location → 200；链包含两跳。"""
    def handler(request):
        if request.url.path == "/old":
            return httpx.Response(302, headers={"Location": "/new"})
        return httpx.Response(200, headers={"content-type": "text/plain"}, content=b"hello")

    result = _fetch(handler, "https://example.com/old")
    assert isinstance(result, FetchSuccess)
    assert result.redirect_chain == ["https://example.com/old", "https://example.com/new"]
    assert result.final_url == "https://example.com/new"
    assert result.status == 200
    assert result.status_text == "OK"
    assert result.body.text == "hello"


def test_client_sends_prepared_headers():
    seen = {}

    def handler(request):
        seen.update(request.headers)
        return httpx.Response(200, headers={"content-type": "text/plain"}, content=b"ok")

    _fetch(handler, "https://example.com/", config=WebFetchConfig(user_agent="test-agent/1.0"))
    assert seen["accept"] == "text/markdown, text/html"
    assert seen["accept-encoding"] == "identity"
    assert seen["user-agent"] == "test-agent/1.0"


def test_client_too_many_redirects_raises_with_chain():
    """超过 10 跳抛 WebTooManyRedirectsError，携带完整链。"""
    calls = []

    def handler(request):
        calls.append(str(request.url))
        n = len(calls)
        return httpx.Response(302, headers={"Location": f"/r{n}"})

    with pytest.raises(WebTooManyRedirectsError) as exc_info:
        _fetch(handler, "https://example.com/start")
    assert len(calls) == 11
    assert len(exc_info.value.redirect_chain) == 11
    assert exc_info.value.redirect_chain[0] == "https://example.com/start"
    assert exc_info.value.status == 508


def test_client_redirect_to_private_host_blocked_before_request():
    """跳转到 127.0.0.1 时不发出请求。"""
    calls = []

    def handler(request):
        calls.append(request.url.host)
        return httpx.Response(302, headers={"Location": "http://127.0.0.1/admin"})

    with pytest.raises(WebRedirectBlockedError) as exc_info:
        _fetch(handler, "https://example.com/start")
    assert calls == ["example.com"]
    assert exc_info.value.url == "http://127.0.0.1/admin"
    assert exc_info.value.redirect_chain == ["https://example.com/start"]
    assert exc_info.value.reason == "Blocked private IP host: 127.0.0.1"


def test_client_initial_private_host_blocked_without_network():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    with pytest.raises(WebSSRFBlockedError):
        _fetch(handler, "https://192.168.0.10/")
    assert calls == []


def test_client_redirect_without_location_is_terminal():
    def handler(request):
        return httpx.Response(302, headers={"content-type": "text/plain"}, content=b"moved somewhere")

    result = _fetch(handler, "https://example.com/")
    assert isinstance(result, FetchSuccess)
    assert result.status == 302
    assert result.ok is False
    assert result.redirect_chain == ["https://example.com/"]


def test_client_unsupported_content_type():
    """image/png 不读 body，返回 UnsupportedContent，保留原状态码。"""
    def handler(request):
        return httpx.Response(200, headers={"content-type": "image/png"}, content=b"\x89PNG")

    result = _fetch(handler, "https://example.com/logo.png")
    assert isinstance(result, UnsupportedContent)
    assert result.status == 200
    assert result.content_type == "image/png"


def test_client_missing_content_type_is_unsupported():
    def handler(request):
        return httpx.Response(200, content=b"???")

    assert isinstance(_fetch(handler, "https://example.com/"), UnsupportedContent)


def test_client_cross_origin_redirect_drops_credentials():
    seen = {}

    def handler(request):
        seen[request.url.host] = dict(request.headers)
        if request.url.host == "a.example.com":
            return httpx.Response(302, headers={"Location": "https://b.example.com/x"})
        return httpx.Response(200, headers={"content-type": "text/plain"}, content=b"ok")

    headers = prepare_headers({"Authorization": "Bearer t", "X-Trace": "1"}).headers
    _fetch(handler, "https://a.example.com/", headers=headers)
    assert seen["a.example.com"]["authorization"] == "Bearer t"
    assert "authorization" not in seen["b.example.com"]
    assert seen["b.example.com"]["x-trace"] == "1"


def test_client_same_origin_redirect_keeps_credentials():
    seen = []

    def handler(request):
        seen.append(request.headers.get("authorization"))
        if request.url.path == "/a":
            return httpx.Response(301, headers={"Location": "/b"})
        return httpx.Response(200, headers={"content-type": "text/plain"}, content=b"ok")

    headers = prepare_headers({"Authorization": "Bearer t"}).headers
    _fetch(handler, "https://example.com/a", headers=headers)
    assert seen == ["Bearer t", "Bearer t"]


def test_client_reports_js_shell_link_header_and_content_length():
    html = (
        '<html><body><div id="root"></div><script src="/a.js"></script>'
        "<noscript>Please enable JavaScript.</noscript></body></html>"
    ).encode("utf-8")

    def handler(request):
        return httpx.Response(
            200,
            headers={
                "content-type": "text/html",
                "content-length": str(len(html)),
                "link": '</index.md>; rel="alternate"',
            },
            content=html,
        )

    result = _fetch(handler, "https://example.com/")
    assert result.js_shell.detected is True
    assert result.content_length == len(html)
    assert result.link_header == '</index.md>; rel="alternate"'
    assert result.is_useful is False


def test_client_probe_mode_uses_probe_budget():
    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/plain"}, content=b"p" * 20000)

    result = _fetch(handler, "https://example.com/", mode="probe", config=WebFetchConfig(probe_byte_limit=1024))
    assert result.body.probe_bytes_read == 1024
    assert result.body.probe_byte_limit == 1024
    assert result.body.head_text == "p" * 1024


def test_client_js_shell_detection_ignores_max_chars_cut():
    """shell 信号在 max_chars 之后时，检测结果与 max_chars 无关。"""
    html = (
        '<html><head><meta name="description" content="' + "d" * 1500 + '">'
        + "".join(f'<script src="/{name}.js"></script>' for name in "abcde")
        + '</head><body><div id="root"></div></body></html>'
    ).encode("utf-8")

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/html"}, content=html)

    small = _fetch(handler, "https://example.com/", mode="probe", max_chars=1000)
    large = _fetch(handler, "https://example.com/", mode="probe", max_chars=12000)
    assert len(small.body.head_text) == 1000
    assert small.js_shell.detected is True
    assert small.js_shell.signals == large.js_shell.signals
    assert "spa_root_container" in small.js_shell.signals
