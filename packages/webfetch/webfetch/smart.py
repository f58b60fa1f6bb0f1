"""smart 策略：probe → 发现候选 → 逐个评估 → 回退主页面重取。每一步决策记入 notes。"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

import httpx

from webfetch.alternates import discover_candidates
from webfetch.cancellation import CancellationToken
from webfetch.capture import discard_output
from webfetch.client import WebfetchClient
from webfetch.errors import WebCancelledError, WebFetchError, WebSSRFBlockedError
from webfetch.models import FetchAttemptResult, FetchMode, FetchSuccess, SmartCandidate, UnsupportedContent
from webfetch.url_utils import host_of, redact_url_credentials

logger = logging.getLogger(__name__)


@dataclass
class SmartOutcome:
    result: FetchAttemptResult
    probe: FetchAttemptResult
    candidates: List[SmartCandidate] = field(default_factory=list)
    alternate_used: Optional[SmartCandidate] = None
    notes: List[str] = field(default_factory=list)
    advisory: Optional[str] = None


def _not_useful_reason(attempt: FetchSuccess) -> str:
    if not attempt.ok:
        return f"status {attempt.status}"
    if attempt.js_shell.detected:
        return f"looks like a JavaScript shell ({', '.join(attempt.js_shell.signals)})"
    return "empty body"


def build_js_shell_advisory(probe: FetchSuccess, candidates_tried: int) -> str:
    signals = ", ".join(probe.js_shell.signals) or "none"
    return (
        "[Smart fetch note: this page looks like a JavaScript-rendered shell "
        f"(signals: {signals}). Could not find a better machine-readable source "
        f"({candidates_tried} alternate candidate(s) tried). The content above may be incomplete; "
        "try a raw file URL, an API endpoint, or a documentation source for this page instead.]"
    )


class SmartStrategy:
    """严格顺序执行；不做并发，第一个 useful 候选即返回。"""

    def __init__(self, client: WebfetchClient) -> None:
        self.client = client

    async def run(
        self,
        url: str,
        headers: Mapping[str, str],
        *,
        mode: FetchMode,
        max_chars: int,
        token: Optional[CancellationToken] = None,
    ) -> SmartOutcome:
        notes: List[str] = []
        probe = await self.client.fetch(url, headers, mode="probe", max_chars=max_chars, token=token)
        if isinstance(probe, UnsupportedContent):
            notes.append(f"probe: unsupported content-type {probe.content_type or '(missing)'}; stopping")
            return SmartOutcome(result=probe, probe=probe, notes=notes)

        if probe.js_shell.detected:
            notes.append(f"probe: JavaScript shell detected ({', '.join(probe.js_shell.signals)})")
        else:
            notes.append("probe: no JavaScript shell detected")

        candidates = discover_candidates(probe)
        notes.append(f"discovered {len(candidates)} alternate candidate(s)")

        for candidate in candidates:
            selected = await self._evaluate(candidate, headers, mode=mode, max_chars=max_chars, token=token, notes=notes)
            if selected is not None:
                return SmartOutcome(
                    result=selected,
                    probe=probe,
                    candidates=candidates,
                    alternate_used=candidate,
                    notes=notes,
                )

        if not probe.js_shell.detected and mode == "probe":
            notes.append("using probe result (requested mode is probe)")
            return SmartOutcome(result=probe, probe=probe, candidates=candidates, notes=notes)

        if token is not None:
            token.raise_if_cancelled()
        primary = await self.client.fetch(probe.final_url, headers, mode=mode, max_chars=max_chars, token=token)
        # 链从最初解析的 URL 开始
        primary.redirect_chain = probe.redirect_chain[:-1] + primary.redirect_chain
        notes.append(f"fetched primary page in {mode} mode")

        advisory = None
        if probe.js_shell.detected and isinstance(primary, FetchSuccess) and not primary.is_useful:
            advisory = build_js_shell_advisory(probe, len(candidates))
            notes.append("primary page is still not useful; returning it with an advisory note")
        return SmartOutcome(
            result=primary,
            probe=probe,
            candidates=candidates,
            notes=notes,
            advisory=advisory,
        )

    async def _evaluate(
        self,
        candidate: SmartCandidate,
        headers: Mapping[str, str],
        *,
        mode: FetchMode,
        max_chars: int,
        token: Optional[CancellationToken],
        notes: List[str],
    ) -> Optional[FetchSuccess]:
        shown = redact_url_credentials(candidate.url)
        reason = self.client.guard.block_reason(host_of(candidate.url))
        if reason:
            notes.append(f"skipped {candidate.source} candidate {shown}: {reason}")
            return None
        if token is not None:
            token.raise_if_cancelled()
        try:
            attempt = await self.client.fetch(candidate.url, headers, mode=mode, max_chars=max_chars, token=token)
        except WebCancelledError:
            raise
        except WebSSRFBlockedError as e:
            notes.append(f"skipped {candidate.source} candidate {shown}: {e}")
            return None
        except (WebFetchError, httpx.HTTPError) as e:
            logger.warning("webfetch smart candidate failed url=%s error=%s", shown, e)
            notes.append(f"skipped {candidate.source} candidate {shown}: {type(e).__name__}: {e}")
            return None

        if isinstance(attempt, UnsupportedContent):
            notes.append(
                f"skipped {candidate.source} candidate {shown}: unsupported content-type "
                f"{attempt.content_type or '(missing)'}"
            )
            return None
        if not attempt.is_useful:
            notes.append(f"skipped {candidate.source} candidate {shown}: {_not_useful_reason(attempt)}")
            discard_output(attempt.body)
            return None

        logger.info("webfetch smart selected source=%s url=%s", candidate.source, shown)
        notes.append(f"selected {candidate.source} candidate {shown}")
        return attempt
