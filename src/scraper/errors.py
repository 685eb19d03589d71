"""
Shop Radar — Scraper Errors

Only two failures ever leave the scraper layer:

- FetchError: the tracked page could not be fetched this tick.
- SessionInitError: the headless browser failed to launch for a reason
  other than a missing browser binary.

Everything else (render timeouts, missing selectors) degrades to
"produced nothing" inside the strategy that hit it.
"""

from __future__ import annotations


class FetchError(Exception):
    """Network failure, timeout or non-success status for the tracked page."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        timeout: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.timeout = timeout


class SessionInitError(Exception):
    """Browser launch failed with an error that is not a missing binary."""
