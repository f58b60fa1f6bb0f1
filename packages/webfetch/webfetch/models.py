"""webfetch 数据模型：RequestSpec / FetchAttemptResult / StreamedText / ToolResult 与 error 枚举。"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

from webfetch.config import DEFAULT_MAX_CHARS

if TYPE_CHECKING:
    from webfetch.cancellation import CancellationToken

FetchMode = Literal["full", "probe"]
FetchStrategy = Literal["direct", "smart"]
CandidateSource = Literal["link-header", "html-alternate", "github-raw", "wordpress-api"]

# 细粒度 error 枚举（与 webfetch.errors 中各异常的 code 对应）
WEB_FETCH_ERROR_CODES = (
    "EmptyUrl",
    "InvalidUrl",
    "UnsupportedScheme",
    "PrivateHostBlocked",
    "RedirectBlocked",
    "TooManyRedirects",
    "UnsupportedContentType",
    "Cancelled",
    "RequestFailed",
)


@dataclass(frozen=True)
class RequestSpec:
    """单次调用的请求描述；构造后不可变。"""

    raw_url: str
    mode: FetchMode = "full"
    strategy: FetchStrategy = "direct"
    accept_override: Optional[str] = None
    custom_headers: Mapping[str, str] = field(default_factory=dict)
    max_chars: int = DEFAULT_MAX_CHARS
    cancellation_token: Optional["CancellationToken"] = None


@dataclass(frozen=True)
class ResolvedTarget:
    """url 保留凭据（用于请求）；display_url 为脱敏后的日志/展示形式。"""

    url: str
    hostname: str

    @property
    def display_url(self) -> str:
        from webfetch.url_utils import redact_url_credentials

        return redact_url_credentials(self.url)


@dataclass
class StreamedText:
    """Capturer 输出。

    head_text: 经 max_chars 截断、未附加提示语的正文（useful 判断）。
    sample_text: max_chars 截断前的 head / probe 采样（JS shell 检测与候选发现），None 时退回 head_text。
    """

    text: str
    head_text: str
    truncated: bool = False
    truncated_by_lines: bool = False
    truncated_by_bytes: bool = False
    truncated_by_max_chars: bool = False
    total_characters: int = 0
    full_output_path: Optional[str] = None
    probe_bytes_read: Optional[int] = None
    probe_byte_limit: Optional[int] = None
    sample_text: Optional[str] = None

    @property
    def detection_text(self) -> str:
        return self.sample_text if self.sample_text is not None else self.head_text


@dataclass(frozen=True)
class JsShellReport:
    detected: bool = False
    signals: Tuple[str, ...] = ()
    script_count: int = 0
    visible_text_length: int = 0


@dataclass
class FetchSuccess:
    status: int
    status_text: str
    content_type: str
    final_url: str
    redirect_chain: List[str]
    body: StreamedText
    js_shell: JsShellReport = field(default_factory=JsShellReport)
    content_length: Optional[int] = None
    link_header: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_useful(self) -> bool:
        """2xx、非 JS shell、正文非空白。"""
        return self.ok and not self.js_shell.detected and bool(self.body.head_text.strip())


@dataclass
class UnsupportedContent:
    status: int
    status_text: str
    content_type: str
    final_url: str
    redirect_chain: List[str]


FetchAttemptResult = Union[FetchSuccess, UnsupportedContent]


@dataclass(frozen=True)
class SmartCandidate:
    url: str
    source: CandidateSource


@dataclass
class FetchDetails:
    """诊断记录；所有 URL 字段在 formatter.create_tool_result 中统一脱敏。"""

    requested_url: str
    mode: FetchMode = "full"
    strategy: FetchStrategy = "direct"
    resolved_url: str = ""
    final_url: str = ""
    redirect_chain: List[str] = field(default_factory=list)
    accept_header: str = ""
    request_headers: Dict[str, str] = field(default_factory=dict)
    blocked_request_headers: List[str] = field(default_factory=list)
    status: int = 0
    status_text: str = ""
    content_type: str = ""
    content_length: Optional[int] = None
    duration_ms: int = 0
    truncated: bool = False
    truncated_by_lines: bool = False
    truncated_by_bytes: bool = False
    truncated_by_max_chars: bool = False
    original_characters: int = 0
    returned_characters: int = 0
    full_output_path: Optional[str] = None
    detected_js_shell: bool = False
    js_shell_signals: List[str] = field(default_factory=list)
    alternate_candidates: List[Dict[str, str]] = field(default_factory=list)
    alternate_url_used: Optional[str] = None
    smart_notes: List[str] = field(default_factory=list)
    probe_bytes_read: Optional[int] = None
    probe_byte_limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ToolResult:
    text: str
    is_error: bool
    details: FetchDetails

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"text": self.text, "details": self.details.to_dict()}
        if self.is_error:
            out["is_error"] = True
        return out
