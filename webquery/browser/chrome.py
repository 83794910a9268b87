"""Chrome session factory.

This module provides:
1. Chrome - explicit factory that starts chromedriver, creates browser sessions
   and runs callbacks against them with failure capture
2. Utility functions for locating chromedriver and building Chrome options

Usage:
    with Chrome() as chrome:
        title = chrome.browse(lambda browser: browser.visit(url).driver.title)

        def compare(first, second):
            first.visit("https://example.com")
            second.visit("https://example.org")

        chrome.browse(compare)
"""

import inspect
import logging
import os
import re
import shutil
import sys
from typing import Any, Callable

from selenium import webdriver
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.chrome.service import Service as ChromeService
from selenium.webdriver.remote.webdriver import WebDriver

from ..config import Settings, settings as default_settings
from ..errors import DriverNotFoundError
from .session import BrowserSession

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Well-known chromedriver locations by platform, checked after PATH
CHROMEDRIVER_PATHS = {
    "win32": [
        r"C:\Program Files\chromedriver\chromedriver.exe",
        os.path.expandvars(r"%LOCALAPPDATA%\chromedriver\chromedriver.exe"),
    ],
    "darwin": [
        "/usr/local/bin/chromedriver",
        "/opt/homebrew/bin/chromedriver",
    ],
    "linux": [
        "/usr/bin/chromedriver",
        "/usr/lib/chromium/chromedriver",
        "/usr/lib/chromium-browser/chromedriver",
        "/snap/bin/chromium.chromedriver",
    ],
}

HEADLESS_ARGS = [
    "--disable-gpu",
    "--headless",
]


# =============================================================================
# Utility Functions
# =============================================================================


def find_chromedriver(explicit_path: str | os.PathLike | None = None) -> str:
    """Find the chromedriver executable.

    Args:
        explicit_path: Configured path, used as-is when it exists

    Returns:
        Path to the chromedriver executable

    Raises:
        DriverNotFoundError: If no chromedriver could be found
    """
    if explicit_path:
        if os.path.exists(explicit_path):
            return str(explicit_path)
        raise DriverNotFoundError(f"chromedriver not found at {explicit_path}")

    on_path = shutil.which("chromedriver")
    if on_path:
        return on_path

    for path in CHROMEDRIVER_PATHS.get(sys.platform, []):
        expanded_path = os.path.expandvars(path)
        if os.path.exists(expanded_path):
            logger.info(f"Found chromedriver: {expanded_path}")
            return expanded_path

    raise DriverNotFoundError(
        "chromedriver not found; install it or set WEBQUERY_CHROMEDRIVER_PATH"
    )


def build_chrome_options(settings: Settings) -> ChromeOptions:
    """Build Chrome options from settings."""
    options = ChromeOptions()

    if settings.start_maximized:
        options.add_argument("--start-maximized")
    else:
        options.add_argument(f"--window-size={settings.window_size}")

    if not settings.headless_disabled:
        for arg in HEADLESS_ARGS:
            options.add_argument(arg)

    return options


def caller_name(callback: Callable[..., Any]) -> str:
    """Name used for artifact files produced while running a callback."""
    name = getattr(callback, "__qualname__", None) or type(callback).__name__
    return re.sub(r"\W+", "_", name).strip("_") or "browse"


def browsers_needed_for(callback: Callable[..., Any]) -> int:
    """Number of browsers a callback asks for through its positional parameters."""
    parameters = inspect.signature(callback).parameters.values()
    positional = [
        p
        for p in parameters
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ]
    return max(len(positional), 1)


# =============================================================================
# Chrome Factory
# =============================================================================


class Chrome:
    """Factory for Chrome browser sessions with explicit lifecycle.

    Features:
    - Optional local chromedriver process started on the configured port
    - Headless or visible, maximized or fixed-size windows from settings
    - One primary session kept across browse() calls, extra ones closed afterwards
    - Screenshots and page sources captured when a callback fails

    Usage:
        chrome = Chrome()
        chrome.start()
        chrome.browse(lambda browser: browser.visit("https://example.com"))
        chrome.shutdown()
    """

    def __init__(self, settings: Settings | None = None):
        """Initialize the factory.

        Args:
            settings: Settings to use (global settings if not provided)
        """
        self.settings = settings or default_settings

        self._service: ChromeService | None = None
        self._browsers: list[BrowserSession] = []
        self._started = False

    @property
    def is_started(self) -> bool:
        """Check if the factory has been started."""
        return self._started

    @property
    def browsers(self) -> list[BrowserSession]:
        """Sessions currently kept open by the factory."""
        return list(self._browsers)

    def start(self) -> None:
        """Start chromedriver if configured to. Calling twice is a no-op."""
        if self._started:
            return

        if self.settings.start_driver:
            path = find_chromedriver(self.settings.chromedriver_path)
            self._service = ChromeService(
                executable_path=path, port=self.settings.driver_port
            )
            self._service.start()
            logger.info(
                f"Started chromedriver {path} on port {self.settings.driver_port}"
            )

        self._started = True

    def shutdown(self) -> None:
        """Close every session and stop chromedriver."""
        for browser in self._browsers:
            try:
                browser.quit()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
        self._browsers = []

        if self._service is not None:
            self._service.stop()
            self._service = None
            logger.info("Stopped chromedriver")

        self._started = False

    def chrome_options(self) -> ChromeOptions:
        """Chrome options for new sessions."""
        return build_chrome_options(self.settings)

    def create_driver(self) -> WebDriver:
        """Create a WebDriver connected to the configured endpoint."""
        driver = webdriver.Remote(
            command_executor=self.settings.driver_url,
            options=self.chrome_options(),
        )
        logger.info(f"Created browser session at {self.settings.driver_url}")
        return driver

    def new_browser(self, driver: WebDriver) -> BrowserSession:
        """Wrap a WebDriver in a browser session."""
        return BrowserSession(driver, self.settings)

    def create_browsers_for(self, callback: Callable[..., Any]) -> list[BrowserSession]:
        """Make sure there is one open session per callback parameter.

        The primary session is reused across calls.
        """
        needed = browsers_needed_for(callback)
        while len(self._browsers) < needed:
            self._browsers.append(self.new_browser(self.create_driver()))
        return self._browsers[:needed]

    def browse(self, callback: Callable[..., Any]) -> Any:
        """Run a callback with as many browser sessions as it has parameters.

        Args:
            callback: Function taking one BrowserSession per positional parameter

        Returns:
            Whatever the callback returns

        Raises:
            Exception: Anything the callback raises, after failure artifacts are stored
        """
        self.start()
        browsers = self.create_browsers_for(callback)
        name = caller_name(callback)

        try:
            return callback(*browsers)
        except Exception:
            self.capture_failures_for(browsers, name)
            self.store_source_logs_for(browsers, name)
            raise
        finally:
            self.store_console_logs_for(browsers, name)
            self._browsers = self.close_all_but_primary(self._browsers)

    def capture_failures_for(self, browsers: list[BrowserSession], name: str) -> None:
        """Screenshot every browser after a failure."""
        for key, browser in enumerate(browsers):
            try:
                browser.screenshot(f"failure-{name}-{key}")
            except Exception as e:
                logger.warning(f"Failed to capture screenshot for browser {key}: {e}")

    def store_source_logs_for(self, browsers: list[BrowserSession], name: str) -> None:
        """Store the page source of every browser."""
        for key, browser in enumerate(browsers):
            try:
                browser.store_source(f"{name}-{key}")
            except Exception as e:
                logger.warning(f"Failed to store page source for browser {key}: {e}")

    def store_console_logs_for(self, browsers: list[BrowserSession], name: str) -> None:
        """Store the console log of every browser."""
        for key, browser in enumerate(browsers):
            try:
                browser.store_console_log(f"{name}-{key}")
            except Exception as e:
                logger.warning(f"Failed to store console log for browser {key}: {e}")

    def close_all_but_primary(
        self, browsers: list[BrowserSession]
    ) -> list[BrowserSession]:
        """Quit every browser except the first one.

        Returns:
            List holding only the primary browser (empty if there was none)
        """
        for browser in browsers[1:]:
            try:
                browser.quit()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")

        if len(browsers) > 1:
            logger.info(f"Closed {len(browsers) - 1} secondary browser(s)")

        return browsers[:1]

    def __enter__(self) -> "Chrome":
        """Context manager entry - start the factory."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close everything."""
        self.shutdown()
