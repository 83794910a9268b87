"""Browser module - session handles and the Chrome session factory."""

from .chrome import (
    CHROMEDRIVER_PATHS,
    Chrome,
    build_chrome_options,
    find_chromedriver,
)
from .session import WINDOW_TYPE_TAB, WINDOW_TYPE_WINDOW, BrowserSession

__all__ = [
    # Sessions
    "BrowserSession",
    "WINDOW_TYPE_TAB",
    "WINDOW_TYPE_WINDOW",
    # Factory
    "Chrome",
    "build_chrome_options",
    "find_chromedriver",
    "CHROMEDRIVER_PATHS",
]
