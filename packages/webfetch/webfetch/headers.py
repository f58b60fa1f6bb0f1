"""请求头：Accept 优先级、强制 identity 编码、过滤 hop-by-hop/保留头、敏感头脱敏副本。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from webfetch.config import ACCEPT_HEADER

HOP_BY_HOP_HEADERS = frozenset((
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
))
RESERVED_HEADERS = frozenset(("accept-encoding", "content-length", "host"))
SENSITIVE_HEADERS = frozenset((
    "authorization",
    "cookie",
    "proxy-authorization",
    "x-api-key",
    "x-auth-token",
))
SENSITIVE_NAME_FRAGMENTS = ("token", "secret", "password", "session")
REDACTED_VALUE = "[redacted]"


@dataclass(frozen=True)
class PreparedHeaders:
    headers: Dict[str, str]
    redacted: Dict[str, str]
    blocked: List[str]
    accept: str


def is_sensitive_header(name: str) -> bool:
    lowered = name.strip().lower()
    if lowered in SENSITIVE_HEADERS:
        return True
    return any(fragment in lowered for fragment in SENSITIVE_NAME_FRAGMENTS)


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {name: (REDACTED_VALUE if is_sensitive_header(name) else value) for name, value in headers.items()}


def _set_header(headers: Dict[str, str], name: str, value: str) -> None:
    # 大小写不敏感，后写覆盖
    for existing in [k for k in headers if k.lower() == name.lower()]:
        del headers[existing]
    headers[name] = value


def prepare_headers(
    custom_headers: Optional[Mapping[str, str]] = None,
    accept_override: Optional[str] = None,
) -> PreparedHeaders:
    """accept_override > custom Accept > 默认 markdown 优先；被拒的头记录在 blocked。"""
    custom_headers = custom_headers or {}
    custom_accept: Optional[str] = None
    blocked: List[str] = []
    merged: Dict[str, str] = {}

    for raw_name, raw_value in custom_headers.items():
        name = str(raw_name).strip()
        if not name:
            continue
        lowered = name.lower()
        if lowered in HOP_BY_HOP_HEADERS or lowered in RESERVED_HEADERS:
            blocked.append(name)
            continue
        value = "" if raw_value is None else str(raw_value)
        if lowered == "accept":
            custom_accept = value.strip() or None
            continue
        _set_header(merged, name, value)

    override = (accept_override or "").strip()
    accept = override or custom_accept or ACCEPT_HEADER

    headers: Dict[str, str] = {"Accept": accept, "Accept-Encoding": "identity"}
    for name, value in merged.items():
        headers[name] = value
    return PreparedHeaders(
        headers=headers,
        redacted=redact_headers(headers),
        blocked=blocked,
        accept=accept,
    )
