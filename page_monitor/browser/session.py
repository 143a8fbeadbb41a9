"""Persistent Playwright browser session used to render the monitored page."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Protocol

import structlog
from playwright.async_api import BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError


logger = structlog.get_logger(__name__)


class NavigationError(Exception):
    """Navigation failed: timeout, network failure or a dead browser."""

    def __init__(self, message: str, *, url: str = "", infra: bool = False):
        super().__init__(message)
        self.url = url
        self.infra = infra


class BrowserSession(Protocol):
    """What the monitor needs from a rendering backend."""

    @property
    def acquired(self) -> bool: ...

    async def acquire(self) -> None: ...

    async def navigate(self, url: str, timeout_seconds: float) -> None: ...

    def current_url(self) -> str: ...

    async def extract_visible_text(self) -> str: ...

    async def close(self) -> None: ...


def is_browser_infra_error(exc: BaseException) -> bool:
    name = type(exc).__name__
    msg = str(exc or "").lower()

    if name == "TargetClosedError":
        return True
    if "target page, context or browser has been closed" in msg:
        return True
    if "browser has been closed" in msg:
        return True

    # Renderer crashes are resource pressure on our host, not the page itself.
    if "page crashed" in msg:
        return True
    if "target crashed" in msg:
        return True

    # Playwright driver transport died.
    if "connection closed while reading from the driver" in msg:
        return True
    if "connection closed while writing to the driver" in msg:
        return True
    if "pipe closed by peer" in msg:
        return True

    return False


def find_chromium_executable() -> str | None:
    env_path = os.getenv("CHROMIUM_PATH")
    if env_path and Path(env_path).exists():
        return env_path

    candidates = [
        "/usr/bin/chromium",
        "/usr/bin/chromium-browser",
        "/usr/bin/google-chrome",
        "/usr/bin/google-chrome-stable",
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    ]
    for path in candidates:
        if Path(path).exists():
            return path
    return None


class PlaywrightBrowserSession:
    """
    Chromium persistent context bound to one on-disk profile directory.

    The context is launched lazily on the first ``acquire()`` and reused for
    every later check, so cookies and a completed login survive between checks.
    """

    def __init__(
        self,
        user_data_dir: str | Path,
        headless: bool = True,
        viewport: tuple[int, int] = (1360, 900),
    ):
        self.user_data_dir = Path(user_data_dir)
        self.headless = headless
        self.viewport = {"width": int(viewport[0]), "height": int(viewport[1])}
        self._playwright: Playwright | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def acquired(self) -> bool:
        return self._context is not None and self._page is not None

    async def acquire(self) -> None:
        if self.acquired:
            return

        self.user_data_dir.mkdir(parents=True, exist_ok=True)
        if self._playwright is None:
            self._playwright = await async_playwright().start()

        launch_kwargs: dict[str, Any] = {"headless": self.headless, "viewport": self.viewport}
        chromium_path = find_chromium_executable()
        if chromium_path:
            launch_kwargs["executable_path"] = chromium_path

        logger.info(
            "Launching browser",
            user_data_dir=str(self.user_data_dir),
            headless=self.headless,
            executable=chromium_path or "bundled",
        )
        self._context = await self._playwright.chromium.launch_persistent_context(
            str(self.user_data_dir), **launch_kwargs
        )
        pages = self._context.pages
        self._page = pages[0] if pages else await self._context.new_page()

    async def navigate(self, url: str, timeout_seconds: float) -> None:
        if self._page is None:
            raise NavigationError("browser session is not acquired", url=url, infra=True)

        timeout_ms = int(max(0.0, float(timeout_seconds)) * 1000)
        try:
            await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"navigation timeout after {timeout_ms}ms: {e}", url=url) from e
        except PlaywrightError as e:
            infra = is_browser_infra_error(e)
            if infra:
                await self._discard_context()
            raise NavigationError(f"navigation failed: {e}", url=url, infra=infra) from e

    def current_url(self) -> str:
        if self._page is None:
            return ""
        return self._page.url

    async def extract_visible_text(self) -> str:
        if self._page is None:
            return ""
        return await self._page.locator("body").inner_text()

    async def _discard_context(self) -> None:
        """Drop a crashed context so the next ``acquire()`` relaunches it."""
        context = self._context
        self._context = None
        self._page = None
        if context is None:
            return
        logger.warning("Discarding crashed browser context")
        try:
            await context.close()
        except PlaywrightError as e:
            logger.debug("Crashed context did not close cleanly", error=str(e))

    async def close(self) -> None:
        if self._context is not None:
            logger.info("Closing browser")
            try:
                await self._context.close()
            finally:
                self._context = None
                self._page = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            finally:
                self._playwright = None
