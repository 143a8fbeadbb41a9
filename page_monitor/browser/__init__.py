"""Browser rendering backend for page checks."""

from .session import (
    BrowserSession,
    NavigationError,
    PlaywrightBrowserSession,
    find_chromium_executable,
    is_browser_infra_error,
)

__all__ = [
    "BrowserSession",
    "NavigationError",
    "PlaywrightBrowserSession",
    "find_chromium_executable",
    "is_browser_infra_error",
]
