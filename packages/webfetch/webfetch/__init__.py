"""webfetch: 安全、有界的网页文本抓取（SSRF 防护、手动重定向、流式截断、smart 备选源）。"""

from webfetch.cancellation import CancellationToken
from webfetch.config import WebFetchConfig
from webfetch.models import (
    WEB_FETCH_ERROR_CODES,
    FetchDetails,
    ToolResult,
)
from webfetch.tool import TOOL_DESCRIPTION, TOOL_NAME, WebFetchParams, WebFetchTool

__all__ = [
    "CancellationToken",
    "FetchDetails",
    "TOOL_DESCRIPTION",
    "TOOL_NAME",
    "ToolResult",
    "WEB_FETCH_ERROR_CODES",
    "WebFetchConfig",
    "WebFetchParams",
    "WebFetchTool",
]
