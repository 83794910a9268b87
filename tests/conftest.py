"""
Pytest configuration and shared fixtures.
"""
from unittest.mock import MagicMock

import pytest
from selenium.webdriver.remote.webdriver import WebDriver

from webquery.config import Settings


@pytest.fixture
def test_settings(tmp_path):
    """Settings with artifacts stored under a temporary directory."""
    return Settings(data_dir=tmp_path, start_driver=False)


@pytest.fixture
def mock_driver():
    """Selenium WebDriver stand-in with three open windows."""
    driver = MagicMock(spec=WebDriver)
    driver.window_handles = ["win-a", "win-b", "win-c"]
    driver.current_window_handle = "win-a"
    driver.page_source = "<html><body>page</body></html>"
    driver.get_log = MagicMock(return_value=[])
    return driver
