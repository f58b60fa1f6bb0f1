"""webfetch 客户端：httpx GET，关闭自动重定向、逐跳做 SSRF 检查；分类 content-type、流式读取、JS shell 检测。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional
from urllib.parse import urljoin

import httpx

from webfetch.cancellation import CancellationToken
from webfetch.capture import capture_full, capture_probe
from webfetch.config import WebFetchConfig
from webfetch.content import is_text_content_type
from webfetch.errors import WebFetchError, WebRedirectBlockedError, WebTooManyRedirectsError
from webfetch.js_shell import detect_js_shell
from webfetch.models import FetchAttemptResult, FetchMode, FetchSuccess, UnsupportedContent
from webfetch.ssrf import PrivateNetworkGuard
from webfetch.url_utils import ALLOWED_SCHEMES, redact_url_credentials, same_origin

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset((301, 302, 303, 307, 308))
# 跨 origin 跳转时不再携带
CROSS_ORIGIN_STRIPPED_HEADERS = frozenset(("authorization", "cookie", "proxy-authorization"))


@dataclass
class RedirectedResponse:
    """最终响应（stream 未读）+ 完整跳转链。"""

    response: httpx.Response
    redirect_chain: List[str]
    final_url: str


def _content_length(response: httpx.Response) -> Optional[int]:
    raw = (response.headers.get("content-length") or "").strip()
    return int(raw) if raw.isdigit() else None


def _redirect_headers(headers: Dict[str, str], current_url: str, next_url: str) -> Dict[str, str]:
    if same_origin(current_url, next_url):
        return headers
    return {k: v for k, v in headers.items() if k.lower() not in CROSS_ORIGIN_STRIPPED_HEADERS}


class WebfetchClient:
    """单次调用内共享一个 AsyncClient；async with 使用。transport 供测试注入 httpx.MockTransport。"""

    def __init__(
        self,
        guard: PrivateNetworkGuard,
        config: Optional[WebFetchConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.guard = guard
        self.config = config or WebFetchConfig()
        self._client = httpx.AsyncClient(
            follow_redirects=False,
            timeout=httpx.Timeout(self.config.timeout_sec),
            headers={"User-Agent": self.config.user_agent},
            transport=transport,
        )

    async def __aenter__(self) -> "WebfetchClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def open(
        self,
        url: str,
        headers: Mapping[str, str],
        *,
        token: Optional[CancellationToken] = None,
    ) -> RedirectedResponse:
        """发 GET 并手动跟随重定向；每一跳都过 guard，超过上限抛 WebTooManyRedirectsError。"""
        self.guard.check_url(url)
        chain = [url]
        current = url
        request_headers = dict(headers)
        hops = 0
        while True:
            if token is not None:
                token.raise_if_cancelled()
            request = self._client.build_request("GET", current, headers=request_headers)
            response = await self._client.send(request, stream=True)
            location = response.headers.get("location")
            if response.status_code not in REDIRECT_STATUSES or not location:
                return RedirectedResponse(response=response, redirect_chain=chain, final_url=current)

            next_url = urljoin(current, location.strip())
            await response.aclose()
            try:
                next_parsed = httpx.URL(next_url)
            except (httpx.InvalidURL, ValueError) as e:
                raise WebFetchError(f"Invalid redirect location: {redact_url_credentials(next_url)} ({e})") from e
            if next_parsed.scheme not in ALLOWED_SCHEMES:
                raise WebFetchError(f"Redirect to unsupported URL scheme: {next_parsed.scheme}:")
            reason = self.guard.block_reason(next_parsed.host)
            if reason:
                logger.warning(
                    "webfetch redirect blocked url=%s reason=%s", redact_url_credentials(next_url), reason
                )
                raise WebRedirectBlockedError(next_url, reason, chain)

            hops += 1
            if hops > self.config.max_redirects:
                raise WebTooManyRedirectsError(chain, self.config.max_redirects)
            logger.info(
                "webfetch redirect status=%s from=%s to=%s",
                response.status_code,
                redact_url_credentials(current),
                redact_url_credentials(next_url),
            )
            request_headers = _redirect_headers(request_headers, current, next_url)
            chain.append(next_url)
            current = next_url

    async def fetch(
        self,
        url: str,
        headers: Mapping[str, str],
        *,
        mode: FetchMode = "full",
        max_chars: int,
        token: Optional[CancellationToken] = None,
    ) -> FetchAttemptResult:
        """一次完整尝试：重定向 → content-type 判定 → 流式读取 → JS shell 检测。"""
        opened = await self.open(url, headers, token=token)
        response = opened.response
        content_type = response.headers.get("content-type", "")
        try:
            if not is_text_content_type(content_type):
                logger.info(
                    "webfetch unsupported content-type url=%s content_type=%s",
                    redact_url_credentials(opened.final_url),
                    content_type or "(missing)",
                )
                return UnsupportedContent(
                    status=response.status_code,
                    status_text=response.reason_phrase,
                    content_type=content_type,
                    final_url=opened.final_url,
                    redirect_chain=opened.redirect_chain,
                )
            if mode == "probe":
                body = await capture_probe(
                    response, max_chars, byte_limit=self.config.probe_byte_limit, token=token
                )
            else:
                body = await capture_full(
                    response,
                    max_chars,
                    max_lines=self.config.max_lines,
                    max_bytes=self.config.max_bytes,
                    token=token,
                )
        finally:
            await response.aclose()

        return FetchSuccess(
            status=response.status_code,
            status_text=response.reason_phrase,
            content_type=content_type,
            final_url=opened.final_url,
            redirect_chain=opened.redirect_chain,
            body=body,
            js_shell=detect_js_shell(body.detection_text, content_type),
            content_length=_content_length(response),
            link_header=response.headers.get("link"),
        )
