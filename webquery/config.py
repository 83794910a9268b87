"""Configuration management for webquery."""

from pathlib import Path
from urllib.parse import urlparse

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DRIVER_PORT = 9515


class Settings(BaseSettings):
    """Library settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="WEBQUERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage paths
    data_dir: Path = Field(
        default=Path.home() / ".webquery",
        description="Base directory for screenshots, console logs and page sources",
    )

    # Driver settings
    driver_url: str = Field(
        default=f"http://localhost:{DEFAULT_DRIVER_PORT}",
        description="WebDriver endpoint new browser sessions are created against",
    )
    start_driver: bool = Field(
        default=True,
        description="Launch a local chromedriver listening on the driver_url port",
    )
    chromedriver_path: Path | None = Field(
        default=None,
        description="Explicit chromedriver binary (looked up on PATH if not set)",
    )

    # Browser settings
    headless_disabled: bool = Field(
        default=False,
        description="Run Chrome with a visible window",
    )
    start_maximized: bool = Field(
        default=False,
        description="Start the browser window maximized",
    )
    window_size: str = Field(
        default="1920,1080",
        description="Window size used when the browser is not maximized",
    )

    @property
    def driver_port(self) -> int:
        """Port of the WebDriver endpoint."""
        return urlparse(self.driver_url).port or DEFAULT_DRIVER_PORT

    @property
    def screenshots_dir(self) -> Path:
        """Directory for failure screenshots."""
        return self.data_dir / "screenshots"

    @property
    def console_dir(self) -> Path:
        """Directory for browser console logs."""
        return self.data_dir / "console"

    @property
    def source_dir(self) -> Path:
        """Directory for page source dumps."""
        return self.data_dir / "source"

    def ensure_dirs(self) -> None:
        """Create all necessary directories."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)
        self.console_dir.mkdir(parents=True, exist_ok=True)
        self.source_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
