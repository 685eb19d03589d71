"""
Shop Radar — Configuration & Constants

Every URL, timeout, selector and magic string the poller consults lives here.
No hardcoded values in the pipeline logic.

Usage:
    from src.config import settings
"""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Central configuration for Shop Radar.

    Loads from environment variables with fallback defaults.
    """

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # -----------------------------------------------------------------------
    # Tracked page
    # -----------------------------------------------------------------------
    SOURCE_URL: str = "https://plantsvsbrainrotsstocktracker.com/"

    # -----------------------------------------------------------------------
    # Poll cadence & conditional fetch
    # -----------------------------------------------------------------------
    POLL_INTERVAL_SECONDS: int = 5
    FETCH_TIMEOUT_SECONDS: float = 15.0

    # -----------------------------------------------------------------------
    # Feature Flags
    # -----------------------------------------------------------------------
    ENABLE_RENDERING: bool = True   # Effective only when playwright is importable

    # -----------------------------------------------------------------------
    # Headless browser (Browser Session Manager)
    # Operator overrides are probed first, in this order, when the bundled
    # browser binary is missing.
    # -----------------------------------------------------------------------
    BROWSER_EXECUTABLE_PATH: str = ""
    CHROME_PATH: str = ""
    CHROMIUM_PATH: str = ""
    BROWSER_HEADLESS: bool = True
    BROWSER_LAUNCH_ARGS: list[str] = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
    ]

    # -----------------------------------------------------------------------
    # Rendered-DOM extraction
    # -----------------------------------------------------------------------
    RENDER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    RENDER_VIEWPORT_WIDTH: int = 1200
    RENDER_VIEWPORT_HEIGHT: int = 900
    RENDER_NAVIGATION_TIMEOUT_MS: int = 60000
    RENDER_SELECTOR_TIMEOUT_MS: int = 20000
    RENDER_SELECTOR_RETRY_PAUSE_SECONDS: float = 3.0
    RENDER_SELECTOR_RETRY_TIMEOUT_MS: int = 15000

    # -----------------------------------------------------------------------
    # Page structure
    # -----------------------------------------------------------------------
    SEEDS_CONTAINER_SELECTOR: str = "#seedsList"
    GEAR_CONTAINER_SELECTOR: str = "#gearList"
    ITEM_TILE_SELECTOR: str = ".item-tile"

    # Known item names the salvage scan looks for in raw markup
    SALVAGE_SEED_NAMES: list[str] = ["Mr Carrot", "Cocotank"]

    # -----------------------------------------------------------------------
    # Subscriber fan-out
    # -----------------------------------------------------------------------
    SUBSCRIBER_QUEUE_SIZE: int = 16

    # -----------------------------------------------------------------------
    # Logging
    # -----------------------------------------------------------------------
    LOG_LEVEL: str = "INFO"


# Singleton instance
settings = Settings()
