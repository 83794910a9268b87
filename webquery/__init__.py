"""webquery - browser session helpers over Selenium and document querying over lxml.

Usage:
    from webquery import Chrome, Crawler

    with Chrome() as chrome:
        source = chrome.browse(
            lambda browser: browser.visit("https://example.com").page_source()
        )

    heading = Crawler.query(source).filter("h1").text()
"""

from .browser import BrowserSession, Chrome
from .config import Settings, settings
from .dom import Crawler, QueryOptions
from .errors import DriverNotFoundError, EmptyNodeListError, WebQueryError

__version__ = "0.1.0"

__all__ = [
    "BrowserSession",
    "Chrome",
    "Crawler",
    "QueryOptions",
    "Settings",
    "settings",
    "WebQueryError",
    "EmptyNodeListError",
    "DriverNotFoundError",
    "__version__",
]
