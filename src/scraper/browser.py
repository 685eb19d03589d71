"""
Shop Radar — Headless Browser Session

Owns the single long-lived Chromium process used by the rendered-DOM path.

States:
    UNINITIALIZED -> LAUNCHING -> READY | UNAVAILABLE

READY is reused by every later poll. UNAVAILABLE sticks for the rest of the
process: there is no automatic relaunch after a failed launch.

Launch failures are split in two:
- bundled browser binary missing: probe operator overrides and well-known
  install paths, retry once with the first that exists, otherwise give up
  quietly (no rendering capability);
- anything else: SessionInitError, surfaced to the caller.
"""

from __future__ import annotations

import asyncio
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import structlog

from src.config import settings
from src.scraper.errors import SessionInitError

try:
    from playwright.async_api import async_playwright
    PLAYWRIGHT_AVAILABLE = True
except ImportError:
    async_playwright = None
    PLAYWRIGHT_AVAILABLE = False

logger = structlog.get_logger(__name__)

# Substrings of launch errors that mean "no browser binary on this host"
_MISSING_BINARY_MARKERS = (
    "Executable doesn't exist",
    "playwright install",
    "Could not find",
    "No such file or directory",
    "ENOENT",
)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LAUNCHING = "launching"
    READY = "ready"
    UNAVAILABLE = "unavailable"


def rendering_supported() -> bool:
    """True when playwright is importable and rendering is not switched off."""
    return PLAYWRIGHT_AVAILABLE and settings.ENABLE_RENDERING


def is_missing_binary_error(error: BaseException) -> bool:
    message = str(error)
    return any(marker in message for marker in _MISSING_BINARY_MARKERS)


def browser_candidates(platform: str | None = None) -> list[str]:
    """Operator overrides first, then well-known install paths for the platform."""
    platform = platform or sys.platform
    candidates = [
        path
        for path in (
            settings.BROWSER_EXECUTABLE_PATH,
            settings.CHROME_PATH,
            settings.CHROMIUM_PATH,
        )
        if path
    ]

    if platform.startswith("win"):
        program_files = os.environ.get("PROGRAMFILES", r"C:\Program Files")
        program_files_x86 = os.environ.get("PROGRAMFILES(X86)", r"C:\Program Files (x86)")
        candidates += [
            str(Path(program_files) / "Google" / "Chrome" / "Application" / "chrome.exe"),
            str(Path(program_files_x86) / "Google" / "Chrome" / "Application" / "chrome.exe"),
            str(Path(program_files) / "Chromium" / "Application" / "chrome.exe"),
        ]
    elif platform == "darwin":
        candidates += [
            "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
            "/Applications/Chromium.app/Contents/MacOS/Chromium",
        ]
    else:
        candidates += [
            "/usr/bin/google-chrome-stable",
            "/usr/bin/google-chrome",
            "/usr/bin/chromium-browser",
            "/usr/bin/chromium",
            "/snap/bin/chromium",
        ]
    return candidates


def find_installed_browser(candidates: list[str] | None = None) -> str | None:
    """Return the first candidate that exists on disk."""
    for candidate in candidates if candidates is not None else browser_candidates():
        if Path(candidate).exists():
            return candidate
    return None


class BrowserSessionManager:
    """
    Lazily launches and caches one headless Chromium for the whole process.

    Usage:
        sessions = BrowserSessionManager()
        browser = await sessions.get_browser()   # None -> no rendering
        ...
        await sessions.close()
    """

    def __init__(self, playwright_factory: Callable[[], Any] | None = None) -> None:
        self._factory = playwright_factory or async_playwright
        self._playwright: Any = None
        self._browser: Any = None
        self._state = SessionState.UNINITIALIZED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    async def get_browser(self) -> Any | None:
        """
        Return the live browser, launching it on first use.

        Returns:
            A Playwright Browser, or None when no browser can be launched.

        Raises:
            SessionInitError: Launch failed for a reason other than a missing binary.
        """
        async with self._lock:
            if self._state is SessionState.READY:
                if self._browser is not None and self._browser.is_connected():
                    return self._browser
                logger.warning("browser_disconnected_relaunching", source="browser")
                await self._release()
                self._state = SessionState.UNINITIALIZED

            if self._state is SessionState.UNAVAILABLE:
                return None

            if self._factory is None:
                logger.warning("browser_playwright_not_installed", source="browser")
                self._state = SessionState.UNAVAILABLE
                return None

            self._state = SessionState.LAUNCHING
            try:
                browser = await self._launch()
            except SessionInitError:
                self._state = SessionState.UNAVAILABLE
                await self._release()
                raise

            if browser is None:
                self._state = SessionState.UNAVAILABLE
                await self._release()
                return None

            self._browser = browser
            self._state = SessionState.READY
            logger.info("browser_ready", source="browser")
            return browser

    async def _launch(self) -> Any | None:
        options: dict[str, Any] = {
            "headless": settings.BROWSER_HEADLESS,
            "args": list(settings.BROWSER_LAUNCH_ARGS),
        }

        try:
            if self._playwright is None:
                self._playwright = await self._factory().start()
            return await self._playwright.chromium.launch(**options)
        except Exception as e:
            if not is_missing_binary_error(e):
                logger.error(
                    "browser_launch_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    source="browser",
                )
                raise SessionInitError(str(e)) from e
            logger.warning("browser_bundled_binary_missing", error=str(e), source="browser")

        if self._playwright is None:
            return None

        executable = find_installed_browser()
        if executable is None:
            logger.error("browser_no_installed_binary_found", source="browser")
            return None

        try:
            browser = await self._playwright.chromium.launch(
                **options, executable_path=executable
            )
        except Exception as e:
            logger.error(
                "browser_system_launch_failed",
                executable=executable,
                error=str(e),
                source="browser",
            )
            return None

        logger.info("browser_launched_system_binary", executable=executable, source="browser")
        return browser

    async def _release(self) -> None:
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None

        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.warning("browser_close_failed", error=str(e), source="browser")

        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.warning("browser_playwright_stop_failed", error=str(e), source="browser")

    async def close(self) -> None:
        """Close the live session. Safe to call repeatedly or with no session."""
        had_browser = self._browser is not None
        await self._release()
        if self._state is SessionState.READY:
            self._state = SessionState.UNINITIALIZED
        if had_browser:
            logger.info("browser_closed", source="browser")
