"""Tests for webfetch SSRF guard: private IPv4/IPv6, localhost, metadata hosts, override."""

import pytest

from webfetch.errors import WebSSRFBlockedError
from webfetch.ssrf import PrivateNetworkGuard, is_private_ip_host, normalize_hostname


@pytest.mark.parametrize(
    "host",
    [
        "127.0.0.1",
        "10.1.2.3",
        "172.16.0.1",
        "172.31.255.255",
        "192.168.1.1",
        "169.254.169.254",
        "100.64.0.1",
        "0.0.0.0",
        "::1",
        "::",
        "fe80::1",
        "fd00::1",
        "::ffff:127.0.0.1",
        "127.1",
        "0x7f.1",
        "2130706433",
    ],
)
def test_private_ip_hosts_are_private(host):
    assert is_private_ip_host(host) is True


@pytest.mark.parametrize("host", ["8.8.8.8", "172.32.0.1", "2606:4700::1111", "example.com", "::ffff:8.8.8.8"])
def test_public_hosts_are_not_private(host):
    assert is_private_ip_host(host) is False


def test_normalize_hostname():
    assert normalize_hostname("[FE80::1%eth0]") == "fe80::1"
    assert normalize_hostname("Example.COM.") == "example.com"


def test_guard_blocks_localhost_and_subdomains():
    guard = PrivateNetworkGuard()
    assert guard.block_reason("localhost") == "Blocked private host: localhost"
    assert guard.block_reason("api.localhost") == "Blocked private host: api.localhost"


def test_guard_blocks_metadata_host():
    guard = PrivateNetworkGuard()
    assert guard.block_reason("metadata.google.internal") == "Blocked metadata host: metadata.google.internal"


def test_guard_blocks_empty_host():
    assert PrivateNetworkGuard().block_reason("") == "Target host is empty"


def test_guard_allows_public_host():
    guard = PrivateNetworkGuard()
    assert guard.block_reason("example.com") is None
    guard.check_url("https://example.com/")


def test_guard_check_raises_with_host():
    """check 抛 WebSSRFBlockedError，status=403。"""
    guard = PrivateNetworkGuard()
    with pytest.raises(WebSSRFBlockedError) as exc_info:
        guard.check_url("https://127.0.0.1:8080/admin")
    assert exc_info.value.host == "127.0.0.1"
    assert exc_info.value.status == 403
    assert "Blocked private IP host: 127.0.0.1" in str(exc_info.value)


def test_guard_override_allows_everything():
    guard = PrivateNetworkGuard(allow_private_hosts=True)
    assert guard.block_reason("127.0.0.1") is None
    assert guard.block_reason("metadata.google.internal") is None
    guard.check("localhost")
