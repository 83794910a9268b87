"""Exceptions raised by webquery itself.

Errors reported by Selenium or lxml are never wrapped; they reach the
caller unchanged.
"""


class WebQueryError(Exception):
    """Base exception for all webquery errors."""


class EmptyNodeListError(WebQueryError, ValueError):
    """Raised when an operation needs a node but the node list is empty."""

    def __init__(self, message: str = "The current node list is empty."):
        super().__init__(message)


class DriverNotFoundError(WebQueryError, FileNotFoundError):
    """Raised when the chromedriver binary cannot be located."""
