"""webfetch 错误码（合同稳定，供 ToolResult.details.status 与 step.error_code）。"""

from __future__ import annotations

from typing import List, Optional, Sequence


class WebFetchError(Exception):
    """所有 webfetch 失败的基类；status/status_text 为类 HTTP 状态，供结果格式化。"""

    code: str = "RequestFailed"
    status: int = 500
    status_text: str = "Request Failed"

    def __init__(self, message: str = "") -> None:
        self.detail = message
        super().__init__(message or "Web fetch failed")


class WebInvalidInputError(WebFetchError, ValueError):
    """输入校验失败（空 url、无法解析、scheme 不支持）；status = 400。"""

    code: str = "InvalidInput"
    status: int = 400
    status_text: str = "Bad Request"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or "Invalid input")


class EmptyUrlError(WebInvalidInputError):
    code: str = "EmptyUrl"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or "URL must not be empty")


class InvalidUrlError(WebInvalidInputError):
    code: str = "InvalidUrl"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or "Invalid URL")


class UnsupportedSchemeError(WebInvalidInputError):
    """非 http/https scheme；不会被静默改写。"""

    code: str = "UnsupportedScheme"

    def __init__(self, scheme: str) -> None:
        self.scheme = scheme
        super().__init__(f"Unsupported URL scheme: {scheme}:")


class WebSSRFBlockedError(WebFetchError):
    """目标 host 为私网/环回/链路本地/云元数据；status = 403。"""

    code: str = "PrivateHostBlocked"
    status: int = 403
    status_text: str = "Forbidden"

    def __init__(self, message: str = "", host: Optional[str] = None) -> None:
        self.host = host
        super().__init__(message or "Private host blocked")


class WebRedirectBlockedError(WebSSRFBlockedError):
    """重定向跳转到被拦截的 host；携带被拦 url、原因与已走过的链。"""

    code: str = "RedirectBlocked"

    def __init__(self, url: str, reason: str, redirect_chain: Sequence[str]) -> None:
        self.url = url
        self.reason = reason
        self.redirect_chain: List[str] = list(redirect_chain)
        super().__init__(reason)


class WebTooManyRedirectsError(WebFetchError):
    """重定向超过上限；终止，不重试。"""

    code: str = "TooManyRedirects"
    status: int = 508
    status_text: str = "Loop Detected"

    def __init__(self, redirect_chain: Sequence[str], max_redirects: int) -> None:
        self.redirect_chain: List[str] = list(redirect_chain)
        self.max_redirects = max_redirects
        super().__init__(f"Too many redirects (limit is {max_redirects})")


class WebCancelledError(WebFetchError):
    """调用方取消；status = 499，与其他失败区分。"""

    code: str = "Cancelled"
    status: int = 499
    status_text: str = "Cancelled"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or "Request cancelled.")
