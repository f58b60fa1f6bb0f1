"""JS shell 检测：客户端渲染的空壳页面。单一信号不判定，至少两个独立信号才算。"""

from __future__ import annotations

import re
from typing import List

from bs4 import BeautifulSoup

from webfetch.content import is_html_content_type
from webfetch.models import JsShellReport

MANY_SCRIPTS_THRESHOLD = 5
THIN_TEXT_THRESHOLD = 220
MIN_SIGNALS = 2

SPA_ROOT_IDS = frozenset(("root", "app", "__next", "__nuxt"))

SIGNAL_MANY_SCRIPTS = "many_script_tags"
SIGNAL_THIN_TEXT = "thin_visible_text"
SIGNAL_SPA_ROOT = "spa_root_container"
SIGNAL_JS_REQUIRED = "javascript_required_text"
SIGNAL_HYDRATION = "hydration_marker"

_JS_REQUIRED_RE = re.compile(
    r"(enable|turn on|activate)\s+javascript"
    r"|javascript\s+(is\s+)?(required|disabled|must be enabled|needs to be enabled)"
    r"|requires?\s+javascript"
    r"|without\s+javascript",
    re.IGNORECASE,
)
_HYDRATION_RE = re.compile(
    r"__NEXT_DATA__|__NUXT__|__INITIAL_STATE__|__APOLLO_STATE__|__remixContext|__sveltekit"
    r"|window\.__PRELOADED_STATE__|data-reactroot|ng-version=|hydrateRoot\s*\(|ReactDOM\.hydrate\s*\(",
)
_WHITESPACE_RE = re.compile(r"\s+")


def _visible_text(soup: BeautifulSoup) -> str:
    for tag in soup.find_all(["script", "style"]):
        tag.decompose()
    return _WHITESPACE_RE.sub(" ", soup.get_text(separator=" ")).strip()


def detect_js_shell(html: str, content_type: str) -> JsShellReport:
    """仅对 text/html；其余类型返回未检测。"""
    if not html or not is_html_content_type(content_type):
        return JsShellReport()

    soup = BeautifulSoup(html, "html.parser")
    script_count = len(soup.find_all("script"))
    has_root = soup.find(id=lambda value: bool(value) and value in SPA_ROOT_IDS) is not None
    js_required = bool(_JS_REQUIRED_RE.search(html))
    hydration = bool(_HYDRATION_RE.search(html))
    visible_length = len(_visible_text(soup))

    signals: List[str] = []
    if script_count >= MANY_SCRIPTS_THRESHOLD:
        signals.append(SIGNAL_MANY_SCRIPTS)
    if 0 < visible_length < THIN_TEXT_THRESHOLD and script_count > 0:
        signals.append(SIGNAL_THIN_TEXT)
    if has_root:
        signals.append(SIGNAL_SPA_ROOT)
    if js_required:
        signals.append(SIGNAL_JS_REQUIRED)
    if hydration:
        signals.append(SIGNAL_HYDRATION)

    return JsShellReport(
        detected=len(signals) >= MIN_SIGNALS,
        signals=tuple(signals),
        script_count=script_count,
        visible_text_length=visible_length,
    )
