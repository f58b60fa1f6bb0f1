from __future__ import annotations

import os
from dataclasses import dataclass

PRIVATE_HOST_OVERRIDE_ENV = "WEBFETCH_ALLOW_PRIVATE_HOSTS"

ACCEPT_HEADER = "text/markdown, text/html"
USER_AGENT = "Mozilla/5.0 (compatible; webfetch/0.1)"

DEFAULT_MAX_CHARS = 12000
MIN_MAX_CHARS = 1000
MAX_MAX_CHARS = 100000

DEFAULT_MAX_LINES = 2000
DEFAULT_MAX_BYTES = 50 * 1024
DEFAULT_PROBE_BYTES = 8 * 1024
DEFAULT_TIMEOUT_SEC = 30.0
MAX_REDIRECTS = 10


def _read_opt_in_env(name: str) -> bool:
    # 只有显式 1/true/yes 才开启；其余（含未设置）保持关闭
    raw = os.getenv(name)
    if raw is None:
        return False
    return raw.strip().lower() in {"1", "true", "yes"}


def _read_float_env(name: str, default: float) -> float:
    try:
        return max(1.0, float(os.getenv(name, str(default))))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class WebFetchConfig:
    allow_private_hosts: bool = False
    timeout_sec: float = DEFAULT_TIMEOUT_SEC
    user_agent: str = USER_AGENT
    max_lines: int = DEFAULT_MAX_LINES
    max_bytes: int = DEFAULT_MAX_BYTES
    probe_byte_limit: int = DEFAULT_PROBE_BYTES
    max_redirects: int = MAX_REDIRECTS

    @classmethod
    def from_env(cls) -> "WebFetchConfig":
        return cls(
            allow_private_hosts=_read_opt_in_env(PRIVATE_HOST_OVERRIDE_ENV),
            timeout_sec=_read_float_env("WEBFETCH_TIMEOUT_SEC", DEFAULT_TIMEOUT_SEC),
            user_agent=(os.getenv("WEBFETCH_USER_AGENT") or "").strip() or USER_AGENT,
        )
