"""webfetch 工具入口：参数校验 → 解析 URL → 准备请求头 → direct/smart 执行 → ToolResult。

任何失败都返回带完整 details 的 ToolResult，不向调用方抛异常（外部 asyncio 取消除外）。
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Literal, Mapping, Optional, Tuple, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from webfetch.cancellation import CancellationToken, run_cancellable
from webfetch.capture import format_size
from webfetch.client import WebfetchClient
from webfetch.config import (
    DEFAULT_MAX_BYTES,
    DEFAULT_MAX_CHARS,
    DEFAULT_MAX_LINES,
    MAX_MAX_CHARS,
    MIN_MAX_CHARS,
    PRIVATE_HOST_OVERRIDE_ENV,
    WebFetchConfig,
)
from webfetch.content import unsupported_content_message
from webfetch.errors import (
    WebCancelledError,
    WebFetchError,
    WebInvalidInputError,
    WebRedirectBlockedError,
    WebSSRFBlockedError,
    WebTooManyRedirectsError,
)
from webfetch.formatter import create_tool_result
from webfetch.headers import prepare_headers
from webfetch.models import (
    FetchAttemptResult,
    FetchDetails,
    FetchSuccess,
    RequestSpec,
    ToolResult,
    UnsupportedContent,
)
from webfetch.smart import SmartOutcome, SmartStrategy
from webfetch.ssrf import PrivateNetworkGuard
from webfetch.url_utils import redact_url_credentials, resolve_url

logger = logging.getLogger(__name__)

TOOL_NAME = "webfetch"
TOOL_DESCRIPTION = (
    "Fetch HTTP(S) pages without JS rendering. Sends Accept: text/markdown, text/html "
    "(markdown first). Returns only text-like content types. Output is truncated to "
    f"{DEFAULT_MAX_LINES} lines or {format_size(DEFAULT_MAX_BYTES)} (whichever is hit first), "
    "then by max_chars; full output is saved to a temp file when truncated. "
    "strategy=smart probes the page first and prefers markdown alternates for JavaScript-rendered pages."
)


class WebFetchParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: str = Field(min_length=1)
    max_chars: int = Field(DEFAULT_MAX_CHARS, ge=MIN_MAX_CHARS, le=MAX_MAX_CHARS, alias="maxChars")
    mode: Literal["full", "probe"] = "full"
    strategy: Literal["direct", "smart"] = "direct"
    accept: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)

    def to_request_spec(self, token: Optional[CancellationToken] = None) -> RequestSpec:
        return RequestSpec(
            raw_url=self.url,
            mode=self.mode,
            strategy=self.strategy,
            accept_override=self.accept,
            custom_headers=dict(self.headers),
            max_chars=self.max_chars,
            cancellation_token=token,
        )


Outcome = Tuple[bool, str]  # (is_error, body)


def _error(details: FetchDetails, status: int, status_text: str, body: str) -> Outcome:
    details.status = status
    details.status_text = status_text
    return True, body


def _apply_attempt(details: FetchDetails, attempt: FetchAttemptResult) -> None:
    details.final_url = attempt.final_url
    details.redirect_chain = list(attempt.redirect_chain)
    details.status = attempt.status
    details.status_text = attempt.status_text
    details.content_type = attempt.content_type
    if isinstance(attempt, UnsupportedContent):
        return
    body = attempt.body
    details.content_length = attempt.content_length
    details.truncated = body.truncated
    details.truncated_by_lines = body.truncated_by_lines
    details.truncated_by_bytes = body.truncated_by_bytes
    details.truncated_by_max_chars = body.truncated_by_max_chars
    details.original_characters = body.total_characters
    details.returned_characters = len(body.text)
    details.full_output_path = body.full_output_path
    details.detected_js_shell = attempt.js_shell.detected
    details.js_shell_signals = list(attempt.js_shell.signals)
    details.probe_bytes_read = body.probe_bytes_read
    details.probe_byte_limit = body.probe_byte_limit


def _apply_smart(details: FetchDetails, outcome: SmartOutcome) -> None:
    _apply_attempt(details, outcome.result)
    details.alternate_candidates = [{"url": c.url, "source": c.source} for c in outcome.candidates]
    details.alternate_url_used = outcome.alternate_used.url if outcome.alternate_used else None
    details.smart_notes = list(outcome.notes)
    probe = outcome.probe
    if isinstance(probe, FetchSuccess):
        # 报告的是页面本身（probe）的 JS shell 判定
        details.detected_js_shell = probe.js_shell.detected
        details.js_shell_signals = list(probe.js_shell.signals)
        details.probe_bytes_read = probe.body.probe_bytes_read
        details.probe_byte_limit = probe.body.probe_byte_limit


def _attempt_outcome(details: FetchDetails, attempt: FetchAttemptResult, advisory: Optional[str] = None) -> Outcome:
    if isinstance(attempt, UnsupportedContent):
        return True, unsupported_content_message(attempt.content_type)
    body = attempt.body.text
    if advisory:
        body = f"{body}\n\n{advisory}" if body else advisory
        details.returned_characters = len(body)
    return not attempt.ok, body


def _redirect_chain_text(chain) -> str:
    return "\n".join(f"  {i}. {redact_url_credentials(u)}" for i, u in enumerate(chain))


class WebFetchTool:
    """config 为 None 时每次调用都重新读取环境变量（含私网放行开关）。"""

    name = TOOL_NAME
    description = TOOL_DESCRIPTION

    def __init__(
        self,
        config: Optional[WebFetchConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport

    async def execute(
        self,
        params: Union[WebFetchParams, Mapping[str, Any]],
        token: Optional[CancellationToken] = None,
    ) -> ToolResult:
        started = time.monotonic()
        requested = params.url if isinstance(params, WebFetchParams) else str(params.get("url") or "")
        details = FetchDetails(requested_url=requested)
        is_error, body = await self._execute(params, token, details)
        details.duration_ms = int((time.monotonic() - started) * 1000)
        return create_tool_result(is_error=is_error, body=body, details=details)

    async def _execute(
        self,
        params: Union[WebFetchParams, Mapping[str, Any]],
        token: Optional[CancellationToken],
        details: FetchDetails,
    ) -> Outcome:
        if token is not None and token.cancelled:
            return _error(details, 499, "Cancelled", "Request cancelled before execution.")

        if not isinstance(params, WebFetchParams):
            try:
                params = WebFetchParams.model_validate(dict(params))
            except ValidationError as e:
                return _error(details, 400, "Bad Request", f"Invalid parameters: {e}")
        spec = params.to_request_spec(token)
        details.mode = spec.mode
        details.strategy = spec.strategy

        try:
            target = resolve_url(spec.raw_url)
        except WebInvalidInputError as e:
            return _error(details, e.status, e.status_text, str(e))
        details.resolved_url = target.url
        # 尚未发出请求时，链只有解析后的 URL；后续尝试覆盖
        details.final_url = target.url
        details.redirect_chain = [target.url]

        prepared = prepare_headers(spec.custom_headers, spec.accept_override)
        details.accept_header = prepared.accept
        details.request_headers = prepared.redacted
        details.blocked_request_headers = list(prepared.blocked)

        config = self._config or WebFetchConfig.from_env()
        guard = PrivateNetworkGuard(allow_private_hosts=config.allow_private_hosts)
        logger.info(
            "webfetch start url=%s mode=%s strategy=%s", target.display_url, spec.mode, spec.strategy
        )
        try:
            async with WebfetchClient(guard, config, transport=self._transport) as client:
                if spec.strategy == "smart":
                    outcome = await run_cancellable(
                        SmartStrategy(client).run(
                            target.url,
                            prepared.headers,
                            mode=spec.mode,
                            max_chars=spec.max_chars,
                            token=token,
                        ),
                        token,
                    )
                    _apply_smart(details, outcome)
                    return _attempt_outcome(details, outcome.result, outcome.advisory)

                attempt = await run_cancellable(
                    client.fetch(
                        target.url,
                        prepared.headers,
                        mode=spec.mode,
                        max_chars=spec.max_chars,
                        token=token,
                    ),
                    token,
                )
                _apply_attempt(details, attempt)
                return _attempt_outcome(details, attempt)
        except WebCancelledError:
            return _error(details, 499, "Cancelled", "Request cancelled.")
        except WebRedirectBlockedError as e:
            details.redirect_chain = e.redirect_chain + [e.url]
            details.final_url = e.url
            return _error(
                details,
                e.status,
                e.status_text,
                f"Redirect blocked: {redact_url_credentials(e.url)}. {e.reason}. "
                f"Set {PRIVATE_HOST_OVERRIDE_ENV}=1 to allow private/internal hosts for trusted workflows.",
            )
        except WebSSRFBlockedError as e:
            return _error(
                details,
                e.status,
                e.status_text,
                f"{e}. Set {PRIVATE_HOST_OVERRIDE_ENV}=1 to allow private/internal hosts for trusted workflows.",
            )
        except WebTooManyRedirectsError as e:
            details.redirect_chain = list(e.redirect_chain)
            details.final_url = details.redirect_chain[-1]
            return _error(
                details,
                e.status,
                e.status_text,
                f"{e}. Redirect chain:\n{_redirect_chain_text(e.redirect_chain)}",
            )
        except WebFetchError as e:
            return _error(details, e.status, e.status_text, str(e))
        except httpx.HTTPError as e:
            if token is not None and token.cancelled:
                return _error(details, 499, "Cancelled", "Request cancelled.")
            logger.warning("webfetch request failed url=%s error=%s", target.display_url, e)
            return _error(details, 500, "Request Failed", str(e) or type(e).__name__)
