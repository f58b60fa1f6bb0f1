"""流式读取 body：head 缓冲（行/字节上限后冻结）+ 全量落盘临时文件 + maxChars 截断；probe 模式只采样前 N 字节。"""

from __future__ import annotations

import codecs
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from typing import Optional

import httpx

from webfetch.cancellation import CancellationToken
from webfetch.config import DEFAULT_MAX_BYTES, DEFAULT_MAX_LINES, DEFAULT_PROBE_BYTES
from webfetch.content import charset_of
from webfetch.models import StreamedText

logger = logging.getLogger(__name__)

TEMP_DIR_PREFIX = "webfetch-"
FULL_OUTPUT_NAME = "output.txt"


def format_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes}B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f}KB"
    return f"{num_bytes / (1024 * 1024):.1f}MB"


@dataclass(frozen=True)
class HeadTruncation:
    content: str
    truncated: bool
    truncated_by: Optional[str]  # "lines" | "bytes"
    total_lines: int
    total_bytes: int
    output_lines: int
    output_bytes: int


def truncate_head(text: str, max_lines: int = DEFAULT_MAX_LINES, max_bytes: int = DEFAULT_MAX_BYTES) -> HeadTruncation:
    """保留开头完整的行，直到行数或 UTF-8 字节数先触顶。"""
    total_bytes = len(text.encode("utf-8"))
    lines = text.split("\n")
    total_lines = len(lines)
    if total_lines <= max_lines and total_bytes <= max_bytes:
        return HeadTruncation(text, False, None, total_lines, total_bytes, total_lines, total_bytes)

    kept = []
    kept_bytes = 0
    truncated_by = "lines"
    for index, line in enumerate(lines):
        if index >= max_lines:
            truncated_by = "lines"
            break
        line_bytes = len(line.encode("utf-8")) + (1 if index > 0 else 0)
        if kept_bytes + line_bytes > max_bytes:
            truncated_by = "bytes"
            break
        kept.append(line)
        kept_bytes += line_bytes
    return HeadTruncation("\n".join(kept), True, truncated_by, total_lines, total_bytes, len(kept), kept_bytes)


class _HeadSink:
    """首次触顶即冻结，之后的 chunk 不再追加。"""

    def __init__(self, max_lines: int, max_bytes: int) -> None:
        self.max_lines = max_lines
        self.max_bytes = max_bytes
        self.text = ""
        self.truncation: Optional[HeadTruncation] = None

    def feed(self, chunk_text: str) -> None:
        if self.truncation is not None or not chunk_text:
            return
        result = truncate_head(self.text + chunk_text, self.max_lines, self.max_bytes)
        self.text = result.content
        if result.truncated:
            self.truncation = result


class _FileSink:
    """原始字节原样写入；with 退出即关闭。"""

    def __init__(self, path: str) -> None:
        self.path = path
        self.bytes_written = 0
        self._fh = None

    def __enter__(self) -> "_FileSink":
        self._fh = open(self.path, "wb")
        return self

    def __exit__(self, *exc) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def write(self, chunk: bytes) -> None:
        self._fh.write(chunk)
        self.bytes_written += len(chunk)


def _decoder_for(content_type: str):
    charset = charset_of(content_type) or "utf-8"
    try:
        return codecs.getincrementaldecoder(charset)(errors="replace")
    except LookupError:
        return codecs.getincrementaldecoder("utf-8")(errors="replace")


def build_truncation_notice(
    *,
    head: Optional[HeadTruncation],
    total_lines: int,
    total_bytes: int,
    char_truncated: bool,
    max_chars: int,
    total_characters: int,
    full_output_path: str,
) -> str:
    reasons = []
    if head is not None:
        reasons.append(
            f"showing {head.output_lines} of {total_lines} lines "
            f"({format_size(head.output_bytes)} of {format_size(total_bytes)})"
        )
    if char_truncated:
        reasons.append(f"showing first {max_chars} of {total_characters} characters")
    return f"[Output truncated: {'; '.join(reasons)}. Full output saved to: {full_output_path}]"


async def capture_full(
    response: httpx.Response,
    max_chars: int,
    *,
    max_lines: int = DEFAULT_MAX_LINES,
    max_bytes: int = DEFAULT_MAX_BYTES,
    token: Optional[CancellationToken] = None,
) -> StreamedText:
    """读完整个 body；被截断时保留临时目录并返回路径（清理责任转给调用方），否则立即删除。"""
    temp_dir = tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX)
    full_output_path = os.path.join(temp_dir, FULL_OUTPUT_NAME)
    decoder = _decoder_for(response.headers.get("content-type", ""))
    head = _HeadSink(max_lines, max_bytes)
    total_characters = 0
    newline_count = 0
    keep_temp_dir = False
    try:
        with _FileSink(full_output_path) as sink:
            async for chunk in response.aiter_bytes():
                if token is not None:
                    token.raise_if_cancelled()
                if not chunk:
                    continue
                sink.write(chunk)
                chunk_text = decoder.decode(chunk)
                total_characters += len(chunk_text)
                newline_count += chunk_text.count("\n")
                head.feed(chunk_text)
            trailing = decoder.decode(b"", final=True)
            total_characters += len(trailing)
            newline_count += trailing.count("\n")
            head.feed(trailing)
            total_bytes = sink.bytes_written

        head_text = head.text
        char_truncated = len(head_text) > max_chars
        limited = head_text[:max_chars] if char_truncated else head_text
        truncated = head.truncation is not None or char_truncated
        logger.debug(
            "webfetch capture bytes=%s chars=%s head_chars=%s truncated=%s",
            total_bytes, total_characters, len(head_text), truncated,
        )
        if not truncated:
            return StreamedText(
                text=limited, head_text=limited, total_characters=total_characters, sample_text=head_text
            )

        notice = build_truncation_notice(
            head=head.truncation,
            total_lines=newline_count + 1,
            total_bytes=total_bytes,
            char_truncated=char_truncated,
            max_chars=max_chars,
            total_characters=total_characters,
            full_output_path=full_output_path,
        )
        keep_temp_dir = True
        truncated_by = head.truncation.truncated_by if head.truncation is not None else None
        return StreamedText(
            text=f"{limited}\n\n{notice}",
            head_text=limited,
            truncated=True,
            truncated_by_lines=truncated_by == "lines",
            truncated_by_bytes=truncated_by == "bytes",
            truncated_by_max_chars=char_truncated,
            total_characters=total_characters,
            full_output_path=full_output_path,
            sample_text=head_text,
        )
    finally:
        if not keep_temp_dir:
            shutil.rmtree(temp_dir, ignore_errors=True)


async def capture_probe(
    response: httpx.Response,
    max_chars: int,
    *,
    byte_limit: int = DEFAULT_PROBE_BYTES,
    token: Optional[CancellationToken] = None,
) -> StreamedText:
    """只读前 byte_limit 字节判断内容类型；不落盘，读够即关闭连接。"""
    sample = bytearray()
    async for chunk in response.aiter_bytes():
        if token is not None:
            token.raise_if_cancelled()
        sample.extend(chunk[: byte_limit - len(sample)])
        if len(sample) >= byte_limit:
            break
    await response.aclose()

    decoder = _decoder_for(response.headers.get("content-type", ""))
    text = decoder.decode(bytes(sample), final=True)
    limited = text[:max_chars]
    notes = []
    if len(sample) >= byte_limit:
        notes.append(f"read {format_size(len(sample))} of {format_size(byte_limit)} budget")
    if len(text) > max_chars:
        notes.append(f"showing first {max_chars} of {len(text)} characters")
    out = limited
    if notes:
        out = f"{limited}\n\n[Probe sample: {'; '.join(notes)}. Use mode=full for the complete body.]"
    return StreamedText(
        text=out,
        head_text=limited,
        total_characters=len(text),
        probe_bytes_read=len(sample),
        probe_byte_limit=byte_limit,
        sample_text=text,
    )


def discard_output(streamed: StreamedText) -> None:
    """丢弃不再使用的截断输出（删除其临时目录）。"""
    if streamed.full_output_path:
        shutil.rmtree(os.path.dirname(streamed.full_output_path), ignore_errors=True)
