"""
Shop Radar — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- Shop page HTML fixtures (static and client-rendered variants)
- Mock Playwright browser / context / page
- Async test support via pytest-asyncio
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.config import settings


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

pytest_plugins = ("pytest_asyncio",)

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for anyio tests."""
    return "asyncio"


@pytest.fixture(autouse=True)
def no_render_pause():
    """Skip the fixed pause between the two tile waits."""
    with patch.object(settings, "RENDER_SELECTOR_RETRY_PAUSE_SECONDS", 0):
        yield


# ---------------------------------------------------------------------------
# Fixture Loaders
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def shop_html() -> str:
    """Server HTML with 3 seed tiles and 2 gear tiles."""
    return (FIXTURES / "shop_page.html").read_text(encoding="utf-8")


@pytest.fixture(scope="session")
def unrendered_html() -> str:
    """Server HTML whose containers are filled client-side (no tiles)."""
    return (FIXTURES / "shop_page_unrendered.html").read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Mock Playwright objects
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_page(shop_html: str) -> AsyncMock:
    page = AsyncMock()
    page.on = MagicMock()
    page.goto = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.content = AsyncMock(return_value=shop_html)
    return page


@pytest.fixture
def mock_context(mock_page: AsyncMock) -> AsyncMock:
    context = AsyncMock()
    context.new_page = AsyncMock(return_value=mock_page)
    context.close = AsyncMock()
    return context


@pytest.fixture
def mock_browser(mock_context: AsyncMock) -> MagicMock:
    browser = MagicMock()
    browser.is_connected = MagicMock(return_value=True)
    browser.new_context = AsyncMock(return_value=mock_context)
    browser.close = AsyncMock()
    return browser


@pytest.fixture
def mock_sessions(mock_browser: MagicMock) -> MagicMock:
    """BrowserSessionManager stand-in that always hands out mock_browser."""
    sessions = MagicMock()
    sessions.get_browser = AsyncMock(return_value=mock_browser)
    sessions.close = AsyncMock()
    return sessions
