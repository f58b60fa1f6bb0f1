"""SSRF 防护：localhost、云元数据 host、私网/环回/链路本地 IPv4 与 IPv6 一律拒绝。"""

from __future__ import annotations

import ipaddress
import logging
import re
import socket
from typing import Optional

from webfetch.errors import WebSSRFBlockedError
from webfetch.url_utils import host_of

logger = logging.getLogger(__name__)

METADATA_HOSTS = frozenset((
    "metadata.google.internal",
    "metadata.goog",
    "instance-data",
    "instance-data.ec2.internal",
))

_PRIVATE_IPV4_NETWORKS = tuple(
    ipaddress.IPv4Network(n)
    for n in (
        "10.0.0.0/8",
        "127.0.0.0/8",
        "0.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "100.64.0.0/10",
    )
)
_PRIVATE_IPV6_NETWORKS = (
    ipaddress.IPv6Network("fe80::/10"),
    ipaddress.IPv6Network("fc00::/7"),
)
_IPV6_UNSPECIFIED = ipaddress.IPv6Address("::")
_IPV6_LOOPBACK = ipaddress.IPv6Address("::1")

# inet_aton 接受的简写形式：127.1、0x7f.1、2130706433
_IPV4_SHORTHAND_RE = re.compile(r"^(0x[0-9a-f]+|[0-9]+)(\.(0x[0-9a-f]+|[0-9]+)){0,3}$")


def normalize_hostname(hostname: str) -> str:
    """小写、去尾部点、去 IPv6 方括号与 %zone。"""
    h = (hostname or "").strip().lower()
    if h.endswith("."):
        h = h[:-1]
    if h.startswith("[") and h.endswith("]"):
        h = h[1:-1]
    return h.split("%", 1)[0]


def _parse_ipv4(host: str) -> Optional[ipaddress.IPv4Address]:
    try:
        return ipaddress.IPv4Address(host)
    except ValueError:
        pass
    if not _IPV4_SHORTHAND_RE.match(host):
        return None
    try:
        return ipaddress.IPv4Address(socket.inet_aton(host))
    except OSError:
        return None


def _is_private_ipv4(ip: ipaddress.IPv4Address) -> bool:
    return any(ip in net for net in _PRIVATE_IPV4_NETWORKS)


def _is_private_ipv6(host: str) -> bool:
    if ":" not in host:
        return False
    try:
        ip = ipaddress.IPv6Address(host)
    except ValueError:
        return False
    if ip in (_IPV6_UNSPECIFIED, _IPV6_LOOPBACK):
        return True
    if ip.ipv4_mapped is not None:
        return _is_private_ipv4(ip.ipv4_mapped)
    return any(ip in net for net in _PRIVATE_IPV6_NETWORKS)


def is_private_ip_host(host: str) -> bool:
    ipv4 = _parse_ipv4(host)
    if ipv4 is not None:
        return _is_private_ipv4(ipv4)
    return _is_private_ipv6(host)


class PrivateNetworkGuard:
    """allow_private_hosts 在构造时传入（由调用方每次调用读取环境变量），不读全局状态。"""

    def __init__(self, allow_private_hosts: bool = False) -> None:
        self.allow_private_hosts = allow_private_hosts

    def block_reason(self, hostname: str) -> Optional[str]:
        """返回拦截原因（含 host）；允许时返回 None。"""
        if self.allow_private_hosts:
            return None
        normalized = normalize_hostname(hostname)
        if not normalized:
            return "Target host is empty"
        if normalized == "localhost" or normalized.endswith(".localhost"):
            return f"Blocked private host: {normalized}"
        if normalized in METADATA_HOSTS:
            return f"Blocked metadata host: {normalized}"
        if is_private_ip_host(normalized):
            return f"Blocked private IP host: {normalized}"
        return None

    def check(self, hostname: str) -> None:
        reason = self.block_reason(hostname)
        if reason:
            logger.warning("webfetch ssrf blocked host=%s reason=%s", normalize_hostname(hostname), reason)
            raise WebSSRFBlockedError(reason, host=normalize_hostname(hostname))

    def check_url(self, url: str) -> None:
        self.check(host_of(url))
