"""smart 策略的候选来源：Link 响应头、<link rel="alternate">、GitHub raw、WordPress REST。"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from webfetch.content import is_html_content_type, is_markdown_content_type
from webfetch.models import FetchSuccess, SmartCandidate
from webfetch.url_utils import normalize_fetch_url

MARKDOWN_SUFFIXES = (".md", ".markdown")
GITHUB_HOSTS = frozenset(("github.com", "www.github.com"))
GITHUB_RAW_HOST = "raw.githubusercontent.com"
WORDPRESS_API_PATH = "/wp-json"

_LINK_ENTRY_RE = re.compile(r"<([^>]*)>([^<]*)")


def parse_link_header(value: str) -> List[Dict[str, str]]:
    """'<a.md>; rel="alternate"; type="text/markdown", <b>; rel=next' -> [{url, rel, type}, ...]。"""
    entries: List[Dict[str, str]] = []
    for match in _LINK_ENTRY_RE.finditer(value or ""):
        entry = {"url": match.group(1).strip()}
        for param in match.group(2).split(";"):
            if "=" not in param:
                continue
            key, _, raw = param.partition("=")
            entry[key.strip().lower()] = raw.strip().strip(",").strip().strip("\"'")
        entries.append(entry)
    return entries


def _looks_like_markdown(url: str, declared_type: Optional[str]) -> bool:
    if declared_type and is_markdown_content_type(declared_type):
        return True
    try:
        path = urlsplit(url).path.lower()
    except ValueError:
        return False
    return path.endswith(MARKDOWN_SUFFIXES)


def link_header_candidates(link_header: Optional[str], base_url: str) -> List[SmartCandidate]:
    out = []
    for entry in parse_link_header(link_header or ""):
        if not entry["url"]:
            continue
        url = urljoin(base_url, entry["url"])
        if _looks_like_markdown(url, entry.get("type")):
            out.append(SmartCandidate(url=url, source="link-header"))
    return out


def html_alternate_candidates(html: str, base_url: str) -> List[SmartCandidate]:
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    out = []
    for tag in soup.find_all("link", href=True):
        rel = tag.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "alternate" not in [r.lower() for r in rel]:
            continue
        url = urljoin(base_url, tag["href"].strip())
        if _looks_like_markdown(url, tag.get("type")):
            out.append(SmartCandidate(url=url, source="html-alternate"))
    return out


def github_raw_candidate(url: str) -> Optional[SmartCandidate]:
    """github.com/{owner}/{repo}/blob/{ref}/{path} -> raw.githubusercontent.com/{owner}/{repo}/{ref}/{path}。"""
    parts = urlsplit(url)
    if (parts.hostname or "").lower() not in GITHUB_HOSTS:
        return None
    segments = parts.path.strip("/").split("/")
    if len(segments) < 5 or segments[2] != "blob":
        return None
    owner, repo, _, ref, *rest = segments
    raw_path = "/".join([owner, repo, ref, *rest])
    return SmartCandidate(url=f"https://{GITHUB_RAW_HOST}/{raw_path}", source="github-raw")


def wordpress_api_candidate(url: str) -> Optional[SmartCandidate]:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return None
    if parts.path.startswith(WORDPRESS_API_PATH):
        return None
    return SmartCandidate(
        url=urlunsplit((parts.scheme, parts.netloc, WORDPRESS_API_PATH, "", "")),
        source="wordpress-api",
    )


def dedupe_candidates(candidates: Iterable[SmartCandidate]) -> List[SmartCandidate]:
    seen = set()
    out = []
    for candidate in candidates:
        key = normalize_fetch_url(candidate.url)
        if key in seen:
            continue
        seen.add(key)
        out.append(candidate)
    return out


def discover_candidates(probe: FetchSuccess) -> List[SmartCandidate]:
    """Link 头 + HTML alternate；探测为 JS shell 时追加 GitHub raw / WordPress REST 启发式候选。"""
    base_url = probe.final_url
    candidates = link_header_candidates(probe.link_header, base_url)
    if is_html_content_type(probe.content_type):
        candidates.extend(html_alternate_candidates(probe.body.detection_text, base_url))
    if probe.js_shell.detected:
        for heuristic in (github_raw_candidate(base_url), wordpress_api_candidate(base_url)):
            if heuristic is not None:
                candidates.append(heuristic)
    return dedupe_candidates(candidates)
