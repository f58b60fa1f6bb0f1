"""结果格式化：固定形状的文本块 + 诊断记录；所有 URL 在这里统一脱敏。"""

from __future__ import annotations

import dataclasses

from webfetch.models import FetchDetails, ToolResult
from webfetch.url_utils import redact_url_credentials


def format_tool_output(
    *,
    is_error: bool,
    url: str,
    status: int,
    status_text: str,
    content_type: str,
    body: str,
) -> str:
    status_label = f"{status} {status_text}" if status_text else f"{status}"
    return "\n".join([
        "Web fetch failed" if is_error else "Web fetch succeeded",
        f"URL: {url or '(unknown)'}",
        f"Status: {status_label}",
        f"Content-Type: {content_type or '(missing)'}",
        "",
        body or "(empty response body)",
    ])


def redact_details(details: FetchDetails) -> FetchDetails:
    return dataclasses.replace(
        details,
        requested_url=redact_url_credentials(details.requested_url),
        resolved_url=redact_url_credentials(details.resolved_url),
        final_url=redact_url_credentials(details.final_url),
        redirect_chain=[redact_url_credentials(u) for u in details.redirect_chain],
        alternate_candidates=[
            {**c, "url": redact_url_credentials(c.get("url", ""))} for c in details.alternate_candidates
        ],
        alternate_url_used=(
            redact_url_credentials(details.alternate_url_used) if details.alternate_url_used else None
        ),
    )


def create_tool_result(*, is_error: bool, body: str, details: FetchDetails) -> ToolResult:
    """文本中的 URL 取 resolved_url（解析失败时为 requested_url），脱敏后输出；跳转后的地址见 details.final_url。"""
    safe = redact_details(details)
    text = format_tool_output(
        is_error=is_error,
        url=safe.resolved_url or safe.requested_url,
        status=safe.status,
        status_text=safe.status_text,
        content_type=safe.content_type,
        body=body,
    )
    return ToolResult(text=text, is_error=is_error, details=safe)
