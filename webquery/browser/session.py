"""Browser session handle over a Selenium WebDriver.

This module provides:
1. BrowserSession - value-like handle with window, tab, frame and alert switching
2. Artifact helpers (screenshots, page source, console log) used by the Chrome factory

Every switching operation returns a new BrowserSession bound to the same
driver. The driver is the stateful object; a handle always denotes the
browsing context that had focus when it was created.
"""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from selenium.common.exceptions import NoSuchWindowException, WebDriverException
from selenium.webdriver.remote.webelement import WebElement

from ..config import Settings, settings as default_settings

if TYPE_CHECKING:
    from selenium.webdriver.common.alert import Alert
    from selenium.webdriver.remote.webdriver import WebDriver

logger = logging.getLogger(__name__)


WINDOW_TYPE_TAB = "tab"
WINDOW_TYPE_WINDOW = "window"


class BrowserSession:
    """Handle on the browsing context a WebDriver currently focuses.

    Usage:
        browser = BrowserSession(driver)
        tab = browser.new_tab()
        first = tab.switch_to_first_window()
        frame = first.switch_to_frame("content")
        top = frame.switch_to_top()
    """

    def __init__(self, driver: "WebDriver", settings: Settings | None = None):
        """Initialize the session handle.

        Args:
            driver: Selenium WebDriver to delegate to
            settings: Settings used for artifact paths (global settings if not provided)
        """
        self._driver = driver
        self.settings = settings or default_settings

    @property
    def driver(self) -> "WebDriver":
        """Get the wrapped WebDriver."""
        return self._driver

    def _derive(self) -> "BrowserSession":
        return type(self)(self._driver, self.settings)

    # =========================================================================
    # Windows and tabs
    # =========================================================================

    def new_tab(self) -> "BrowserSession":
        """Create a new browser tab and switch the focus to it."""
        self._driver.switch_to.new_window(WINDOW_TYPE_TAB)
        logger.debug("Opened new tab")
        return self._derive()

    def new_window(self) -> "BrowserSession":
        """Create a new browser window and switch the focus to it."""
        self._driver.switch_to.new_window(WINDOW_TYPE_WINDOW)
        logger.debug("Opened new window")
        return self._derive()

    def window_handle(self) -> str | None:
        """Return the opaque handle of the focused window, or None."""
        return self._driver.current_window_handle or None

    def window_handles(self) -> list[str]:
        """Get all window handles available to the current session.

        The order is whatever the driver reports and may change between calls.
        """
        return list(self._driver.window_handles)

    def switch_to_window(self, handle: str) -> "BrowserSession":
        """Switch the focus to another window by its handle.

        Raises:
            NoSuchWindowException: If no window has that handle
        """
        self._driver.switch_to.window(handle)
        logger.debug(f"Switched to window {handle}")
        return self._derive()

    def switch_to_window_by_index(self, index: int | str) -> "BrowserSession":
        """Switch the focus to another window by its position.

        Args:
            index: Position in window_handles(); numeric strings are accepted and
                negative values count from the end

        Raises:
            NoSuchWindowException: If the index is outside the handle list
        """
        handles = self.window_handles()
        position = int(index)
        try:
            handle = handles[position]
        except IndexError:
            raise NoSuchWindowException(
                f"No window at index {position} ({len(handles)} open)"
            ) from None
        return self.switch_to_window(handle)

    def switch_to_first_window(self) -> "BrowserSession":
        """Switch to the first window."""
        return self.switch_to_window_by_index(0)

    def switch_to_last_window(self) -> "BrowserSession":
        """Switch to the last window."""
        return self.switch_to_window_by_index(-1)

    # =========================================================================
    # Frames, focus and dialogs
    # =========================================================================

    def switch_to_frame(self, frame: int | str | WebElement | None) -> "BrowserSession":
        """Switch into an iframe by index, name/id or element.

        None switches back to the top-level document.
        """
        if frame is None:
            return self.switch_to_top()

        self._driver.switch_to.frame(frame)
        logger.debug(f"Switched to frame {frame!r}")
        return self._derive()

    def switch_to_parent(self) -> "BrowserSession":
        """Switch to the parent frame."""
        self._driver.switch_to.parent_frame()
        return self._derive()

    def switch_to_top(self) -> "BrowserSession":
        """Switch to the top-level document, leaving all frames."""
        self._driver.switch_to.default_content()
        return self._derive()

    def switch_to_active_element(self) -> WebElement:
        """Return the element that has focus in the current document.

        The driver falls back to the body element if focus cannot be detected.
        """
        return self._driver.switch_to.active_element

    def switch_to_alert(self) -> "Alert":
        """Return the currently open modal dialog.

        Raises:
            NoAlertPresentException: If no dialog is open
        """
        return self._driver.switch_to.alert

    # =========================================================================
    # Navigation and artifacts
    # =========================================================================

    def visit(self, url: str) -> "BrowserSession":
        """Navigate the focused window to a URL."""
        self._driver.get(url)
        return self

    def page_source(self) -> str:
        """Get the source of the current page."""
        return self._driver.page_source

    def screenshot(self, name: str) -> Path:
        """Take a screenshot and store it as <screenshots_dir>/<name>.png."""
        path = self.settings.screenshots_dir / f"{name}.png"
        path.parent.mkdir(parents=True, exist_ok=True)
        self._driver.save_screenshot(str(path))
        logger.info(f"Saved screenshot to {path}")
        return path

    def store_source(self, name: str) -> Path:
        """Store the current page source as <source_dir>/<name>.txt."""
        path = self.settings.source_dir / f"{name}.txt"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.page_source(), encoding="utf-8")
        logger.info(f"Saved page source to {path}")
        return path

    def store_console_log(self, name: str) -> Path | None:
        """Store the browser console log as <console_dir>/<name>.log.

        Nothing is written when the log is empty or the driver does not
        expose browser logs.
        """
        # Recent Selenium releases dropped WebDriver.get_log
        try:
            entries = self._driver.get_log("browser")
        except (AttributeError, WebDriverException) as e:
            logger.warning(f"Browser console log unavailable: {e}")
            return None

        if not entries:
            return None

        path = self.settings.console_dir / f"{name}.log"
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=4)
        logger.info(f"Saved console log to {path}")
        return path

    def quit(self) -> None:
        """Close the browser and end the WebDriver session."""
        self._driver.quit()
