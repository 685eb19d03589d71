"""
Shop Radar — Change Detection

Decides, per poll, whether a freshly fetched body needs extraction.

"Unchanged" holds when:
- both the new and the remembered validator (ETag) exist and are equal, or
- the server sent no validator and the SHA-256 fingerprint matches the last one.

An unchanged page is skipped outright unless a rendering capability exists:
the shop fills its stock client-side, so an identical server document can
still hide new stock. In that case the pipeline is told to go straight to
the rendered path without re-parsing the raw body.
"""

from __future__ import annotations

import hashlib

import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class PollState:
    """
    Caching tokens remembered between polls.

    One instance per process, created at startup and passed by reference
    into the pipeline. Only detect_change() mutates it.
    """

    def __init__(self) -> None:
        self.last_validator: str | None = None
        self.last_fingerprint: str | None = None


class ChangeDecision(BaseModel):
    proceed: bool
    reason: str
    rendered_only: bool = False


def fingerprint(body: str | None) -> str:
    """SHA-256 hex digest of the body text."""
    return hashlib.sha256((body or "").encode("utf-8")).hexdigest()


def detect_change(
    body: str,
    validator: str | None,
    state: PollState,
    force: bool = False,
    rendering_available: bool = False,
) -> ChangeDecision:
    """
    Compare a fetched body against PollState and decide what to do.

    Args:
        body: Response text.
        validator: ETag of the response, if the server sent one.
        state: Process-wide PollState, updated in place when proceeding.
        force: Operator-triggered refresh; never treated as unchanged.
        rendering_available: Whether a headless-browser path is configured.

    Returns:
        ChangeDecision. When proceed is False nothing in state changes.
    """
    digest = fingerprint(body)

    unchanged = False
    if not force:
        validator_unchanged = bool(
            validator and state.last_validator and validator == state.last_validator
        )
        fingerprint_unchanged = bool(
            not validator and state.last_fingerprint and digest == state.last_fingerprint
        )
        unchanged = validator_unchanged or fingerprint_unchanged

    if unchanged and not rendering_available:
        logger.debug("change_detect_skip", validator=validator, source="change_detect")
        return ChangeDecision(proceed=False, reason="unchanged")

    if validator:
        state.last_validator = validator
    state.last_fingerprint = digest

    if unchanged:
        logger.debug("change_detect_rendered_only", validator=validator, source="change_detect")
        return ChangeDecision(proceed=True, reason="unchanged", rendered_only=True)

    reason = "forced" if force else "changed"
    logger.info(
        "change_detect_proceed",
        reason=reason,
        validator=validator,
        fingerprint=digest[:12],
        source="change_detect",
    )
    return ChangeDecision(proceed=True, reason=reason)
