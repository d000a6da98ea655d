"""Configuration management for the Commons picture-of-the-day bot."""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_FEED_URL = (
    "https://commons.wikimedia.org/w/api.php"
    "?action=featuredfeed&feed=potd&feedformat=rss&language=en"
)


@dataclass
class BlueskyConfig:
    """Configuration for the Bluesky (AT Protocol) account."""

    identifier: str
    password: str
    service: str = "https://bsky.social"
    timeout: int = 30


@dataclass
class FeedConfig:
    """Configuration for the polled RSS feed."""

    url: str = DEFAULT_FEED_URL
    thumb_width: int = 800
    timeout: int = 30


@dataclass
class CommonsConfig:
    """Configuration for the Wikimedia APIs."""

    api_url: str = "https://commons.wikimedia.org/w/api.php"
    shortener_url: str = "https://meta.wikimedia.org/w/api.php"
    shorten_threshold: int = 150
    timeout: int = 30


@dataclass
class ScheduleConfig:
    """Configuration for the polling loop."""

    interval_seconds: float = 60.0
    shutdown_timeout: float = 2.0


@dataclass
class PostConfig:
    """Fixed metadata attached to every root post."""

    alt_text: str = "Wikimedia Commons image of the day"
    tags: list[str] = field(
        default_factory=lambda: [
            "wikimedia",
            "pictureoftheday",
            "creativecommons",
            "photography",
        ]
    )
    langs: list[str] = field(default_factory=lambda: ["en-US"])


class Config:
    """Main configuration manager."""

    STATE_FILE = "persistent.json"

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.username = os.getenv("ATP_USERNAME", "")
        self.password = os.getenv("ATP_PASSWORD", "")
        self.service = os.getenv("ATP_PROVIDER", "https://bsky.social")
        self.secret_name = os.getenv("ATP_SECRET_NAME", "")
        self.aws_region = os.getenv(
            "AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")
        )
        self.feed_url = os.getenv("RSS_FEED_URL", DEFAULT_FEED_URL)
        self.state_file = Path(os.getenv("STATE_FILE", self.STATE_FILE))
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        update_freq = os.getenv("UPDATE_FREQ", "60")
        try:
            self.interval_seconds = float(update_freq)
        except ValueError:
            raise ValueError(f"Invalid UPDATE_FREQ value: {update_freq!r}")
        if self.interval_seconds <= 0:
            raise ValueError(f"UPDATE_FREQ must be positive, got {update_freq!r}")

    def get_bluesky_config(
        self, identifier: str | None = None, password: str | None = None
    ) -> BlueskyConfig:
        """Get Bluesky configuration.

        Explicit credentials (e.g. from Secrets Manager) take precedence over the
        ATP_USERNAME / ATP_PASSWORD environment variables.
        """
        identifier = identifier or self.username
        password = password or self.password
        if not identifier or not identifier.strip():
            raise ValueError("ATP_USERNAME must be set")
        if not password or not password.strip():
            raise ValueError("ATP_PASSWORD must be set")

        return BlueskyConfig(
            identifier=identifier.strip(),
            password=password.strip(),
            service=self.service.rstrip("/"),
        )

    def get_feed_config(self) -> FeedConfig:
        """Get feed configuration."""
        return FeedConfig(url=self.feed_url)

    def get_commons_config(self) -> CommonsConfig:
        """Get Wikimedia API configuration."""
        return CommonsConfig()

    def get_schedule_config(self) -> ScheduleConfig:
        """Get schedule configuration."""
        return ScheduleConfig(interval_seconds=self.interval_seconds)

    def get_post_config(self) -> PostConfig:
        return PostConfig()
