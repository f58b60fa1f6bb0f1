"""Content-Type 判定：只看响应头，不嗅探 body。"""

from __future__ import annotations

from typing import Optional

TEXTUAL_CONTENT_TYPES = frozenset((
    "application/json",
    "application/javascript",
    "application/xml",
    "application/xhtml+xml",
    "application/x-www-form-urlencoded",
    "application/x-sh",
    "application/x-shellscript",
    "application/x-bash",
))
MARKDOWN_CONTENT_TYPES = frozenset(("text/markdown", "text/x-markdown"))


def media_type(content_type: str) -> str:
    """去参数、小写：'Text/HTML; charset=utf-8' -> 'text/html'。"""
    if not content_type or not isinstance(content_type, str):
        return ""
    return content_type.split(";")[0].strip().lower()


def is_text_content_type(content_type: str) -> bool:
    normalized = media_type(content_type)
    if not normalized:
        return False
    if normalized.startswith("text/"):
        return True
    if normalized.endswith("+json") or normalized.endswith("+xml"):
        return True
    return normalized in TEXTUAL_CONTENT_TYPES


def is_html_content_type(content_type: str) -> bool:
    return media_type(content_type) == "text/html"


def is_markdown_content_type(content_type: str) -> bool:
    return media_type(content_type) in MARKDOWN_CONTENT_TYPES


def charset_of(content_type: str) -> Optional[str]:
    if not content_type:
        return None
    for part in content_type.split(";")[1:]:
        part = part.strip()
        if part.lower().startswith("charset="):
            return part.split("=", 1)[1].strip().strip("\"'") or None
    return None


def unsupported_content_message(content_type: str) -> str:
    shown = content_type.strip() or "(missing)"
    return (
        f"Unsupported content-type: {shown}. "
        "Only text responses are supported by this tool. "
        'If the server negotiates on Accept, retry with an explicit accept (for example accept="text/html" '
        'or accept="application/json") to request a textual representation.'
    )
