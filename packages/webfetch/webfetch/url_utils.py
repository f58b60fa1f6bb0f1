"""URL 解析/校验、凭据脱敏、规范化（候选去重用：去 fragment、去跟踪参数）。"""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

import httpx

from webfetch.errors import EmptyUrlError, InvalidUrlError, UnsupportedSchemeError
from webfetch.models import ResolvedTarget

REDACTED_CREDENTIALS = "[redacted]"
ALLOWED_SCHEMES = ("http", "https")

# "name:" 之后紧跟数字视为 host:port（localhost:8080），不是 scheme
_SCHEME_RE = re.compile(r"^([a-z][a-z0-9+.-]*):(?!\d)", re.IGNORECASE)

_RAW_SCHEME_CREDENTIALS_RE = re.compile(r"([a-z][a-z0-9+.-]*://)[^/\s@]+@", re.IGNORECASE)
_RAW_PROTOCOL_RELATIVE_CREDENTIALS_RE = re.compile(r"(^|\s)//[^/\s@]+@")
_RAW_LEADING_CREDENTIALS_RE = re.compile(r"^([^/\s:@]+:[^/\s@]+)@")

# 要移除的 query 参数名（小写）；utm_* 用前缀匹配
TRACKING_PARAM_PREFIXES = ("utm_",)
TRACKING_PARAM_NAMES = frozenset(("spm", "fbclid"))


def resolve_url(raw_url: str) -> ResolvedTarget:
    """trim → 无 scheme 补 https:// → 解析 → 仅允许 http/https。"""
    trimmed = (raw_url or "").strip()
    if not trimmed:
        raise EmptyUrlError("URL must not be empty")

    match = _SCHEME_RE.match(trimmed)
    if match:
        scheme = match.group(1).lower()
        if scheme not in ALLOWED_SCHEMES:
            raise UnsupportedSchemeError(scheme)
        candidate = trimmed
    else:
        candidate = f"https://{trimmed}"

    try:
        url = httpx.URL(candidate)
    except (httpx.InvalidURL, ValueError) as e:
        raise InvalidUrlError(f"Invalid URL: {redact_url_credentials(trimmed)} ({e})") from e
    if url.scheme not in ALLOWED_SCHEMES:
        raise UnsupportedSchemeError(url.scheme)
    if not url.host:
        raise InvalidUrlError(f"Invalid URL: {redact_url_credentials(trimmed)}")
    return ResolvedTarget(url=str(url), hostname=url.host)


def redact_raw_url_credentials(raw_url: str) -> str:
    """无法结构化解析时的正则兜底。"""
    if "@" not in raw_url:
        return raw_url
    out = _RAW_SCHEME_CREDENTIALS_RE.sub(rf"\1{REDACTED_CREDENTIALS}@", raw_url)
    out = _RAW_PROTOCOL_RELATIVE_CREDENTIALS_RE.sub(rf"\1//{REDACTED_CREDENTIALS}@", out)
    return _RAW_LEADING_CREDENTIALS_RE.sub(f"{REDACTED_CREDENTIALS}@", out)


def redact_url_credentials(url: str) -> str:
    """去掉 user:password@；先 urlsplit，失败或无 netloc 时走正则。"""
    if not url:
        return ""
    try:
        parts = urlsplit(url)
    except ValueError:
        return redact_raw_url_credentials(url)
    if not parts.scheme or not parts.netloc:
        return redact_raw_url_credentials(url)
    if "@" not in parts.netloc:
        return url
    netloc = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit(parts._replace(netloc=netloc))


def host_of(url: str) -> str:
    """取 host（IPv6 不带方括号）；无法解析返回空串。"""
    try:
        return httpx.URL(url).host
    except (httpx.InvalidURL, ValueError):
        return ""


def same_origin(a: str, b: str) -> bool:
    try:
        ua, ub = httpx.URL(a), httpx.URL(b)
    except (httpx.InvalidURL, ValueError):
        return False
    return (ua.scheme, ua.host, ua.port) == (ub.scheme, ub.host, ub.port)


def normalize_fetch_url(url: str) -> str:
    """规范化 URL：scheme/host 小写；去掉 #fragment；query 中移除 utm_*, spm, fbclid。"""
    if not url or not isinstance(url, str):
        return url.strip() if url else ""
    u = url.strip()
    try:
        parsed = urlsplit(u)
    except ValueError:
        return u
    if not parsed.scheme or not parsed.netloc:
        return u
    query_dict = parse_qs(parsed.query, keep_blank_values=True)
    filtered = {}
    for k, v in query_dict.items():
        key_lower = k.lower()
        if key_lower in TRACKING_PARAM_NAMES:
            continue
        if any(key_lower.startswith(prefix) for prefix in TRACKING_PARAM_PREFIXES):
            continue
        filtered[k] = v
    return urlunsplit((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path or "/",
        urlencode(filtered, doseq=True),
        "",
    ))
