"""Tests for smart-strategy alternate candidate discovery."""

from webfetch.alternates import (
    dedupe_candidates,
    discover_candidates,
    github_raw_candidate,
    html_alternate_candidates,
    link_header_candidates,
    parse_link_header,
    wordpress_api_candidate,
)
from webfetch.models import FetchSuccess, JsShellReport, SmartCandidate, StreamedText


def _probe(url, html="", content_type="text/html", link_header=None, shell=False):
    return FetchSuccess(
        status=200,
        status_text="OK",
        content_type=content_type,
        final_url=url,
        redirect_chain=[url],
        body=StreamedText(text=html, head_text=html),
        js_shell=JsShellReport(detected=shell, signals=("spa_root_container", "many_script_tags") if shell else ()),
        link_header=link_header,
    )


def test_parse_link_header():
    entries = parse_link_header(
        '<https://a.example/doc.md>; rel="alternate"; type="text/markdown", <https://a.example/2>; rel=next'
    )
    assert entries == [
        {"url": "https://a.example/doc.md", "rel": "alternate", "type": "text/markdown"},
        {"url": "https://a.example/2", "rel": "next"},
    ]
    assert parse_link_header("") == []


def test_link_header_candidates_only_markdown():
    """相对路径按 base 解析；只保留 markdown 类型或 .md 后缀。"""
    candidates = link_header_candidates(
        '</docs/page.md>; rel="alternate", </docs/page?page=2>; rel="next", '
        '</api/page>; rel="alternate"; type="text/markdown"',
        "https://example.com/docs/page",
    )
    assert candidates == [
        SmartCandidate("https://example.com/docs/page.md", "link-header"),
        SmartCandidate("https://example.com/api/page", "link-header"),
    ]


def test_html_alternate_candidates():
    html = (
        '<html><head>'
        '<link rel="alternate" type="text/markdown" href="/page.md">'
        '<link rel="alternate" type="application/rss+xml" href="/feed.xml">'
        '<link rel="stylesheet" href="/theme.md">'
        '</head><body></body></html>'
    )
    assert html_alternate_candidates(html, "https://example.com/page") == [
        SmartCandidate("https://example.com/page.md", "html-alternate"),
    ]
    assert html_alternate_candidates("", "https://example.com/") == []


def test_github_raw_candidate():
    candidate = github_raw_candidate("https://github.com/owner/repo/blob/main/docs/README.md")
    assert candidate == SmartCandidate(
        "https://raw.githubusercontent.com/owner/repo/main/docs/README.md", "github-raw"
    )
    assert github_raw_candidate("https://github.com/owner/repo") is None
    assert github_raw_candidate("https://gitlab.com/owner/repo/blob/main/a.md") is None


def test_wordpress_api_candidate():
    assert wordpress_api_candidate("https://blog.example.com/2024/post/") == SmartCandidate(
        "https://blog.example.com/wp-json", "wordpress-api"
    )
    assert wordpress_api_candidate("https://blog.example.com/wp-json/wp/v2/posts") is None


def test_dedupe_candidates_ignores_fragment_and_tracking():
    candidates = dedupe_candidates([
        SmartCandidate("https://example.com/a.md", "link-header"),
        SmartCandidate("https://example.com/a.md#top", "html-alternate"),
        SmartCandidate("https://EXAMPLE.com/a.md?utm_source=x", "html-alternate"),
        SmartCandidate("https://example.com/b.md", "html-alternate"),
    ])
    assert [c.url for c in candidates] == ["https://example.com/a.md", "https://example.com/b.md"]
    assert candidates[0].source == "link-header"


def test_discover_candidates_non_shell_skips_heuristics():
    probe = _probe("https://github.com/owner/repo/blob/main/README.md")
    assert discover_candidates(probe) == []


def test_discover_candidates_shell_adds_heuristics_in_order():
    """顺序：Link 头 → HTML alternate → GitHub raw → WordPress REST。"""
    probe = _probe(
        "https://github.com/owner/repo/blob/main/README.md",
        html='<link rel="alternate" type="text/markdown" href="/owner/repo/README.md">',
        link_header='<https://docs.example.com/readme.md>; rel="alternate"',
        shell=True,
    )
    assert [c.source for c in discover_candidates(probe)] == [
        "link-header",
        "html-alternate",
        "github-raw",
        "wordpress-api",
    ]


def test_discover_candidates_ignores_html_alternates_for_non_html():
    probe = _probe(
        "https://example.com/data",
        html='<link rel="alternate" type="text/markdown" href="/data.md">',
        content_type="text/plain",
    )
    assert discover_candidates(probe) == []


def test_discover_candidates_reads_alternates_past_max_chars_cut():
    """<link rel=alternate> 位于 max_chars 截断之后也能发现。"""
    html = '<html><head><title>' + "t" * 1500 + '</title><link rel="alternate" type="text/markdown" href="/p.md"></head></html>'
    probe = _probe("https://example.com/p")
    probe.body = StreamedText(text=html[:1000], head_text=html[:1000], sample_text=html)
    assert discover_candidates(probe) == [SmartCandidate("https://example.com/p.md", "html-alternate")]
