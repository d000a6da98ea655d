"""RSS Feed Processing module for the Commons picture-of-the-day bot."""

from datetime import UTC, datetime
from urllib.parse import urlparse

import feedparser
import requests
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from .logging_config import create_execution_logger
from .models import EPOCH, FeedItem

BLOCK_TAGS = ["p", "div", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6"]


class FeedProcessor:
    """Fetches the picture-of-the-day feed and picks its newest item."""

    def __init__(
        self,
        feed_url: str,
        timeout: int = 30,
        execution_id: str | None = None,
        session: requests.Session | None = None,
    ):
        """Initialize FeedProcessor with configuration.

        Args:
            feed_url: URL of the RSS feed
            timeout: HTTP request timeout in seconds
            execution_id: Execution ID for logging context
            session: Optional shared HTTP session
        """
        self.feed_url = feed_url
        self.timeout = timeout
        self.logger = create_execution_logger("feed_processor", execution_id)
        self.session = session or requests.Session()
        self.session.headers.update(
            {"User-Agent": "Commons-POTD-Bot/1.0 (Wikimedia Commons to Bluesky)"}
        )

        self.logger.info(
            "FeedProcessor initialized", feed_url=feed_url, timeout=timeout
        )

    def get_latest_item(self) -> FeedItem | None:
        """Fetch the feed and return its newest item by publish date.

        Returns:
            The newest FeedItem, or None if the feed has no usable entries
        """
        items = self.parse_feed()
        if not items:
            self.logger.warning("Feed contains no items", feed_url=self.feed_url)
            return None

        items.sort(key=lambda item: item.published, reverse=True)
        return items[0]

    def parse_feed(self) -> list[FeedItem]:
        """Download and parse the feed.

        Returns:
            List of FeedItem objects from the feed

        Raises:
            ValueError: If feed URL is not HTTPS
            requests.RequestException: If feed download fails
        """
        parsed_url = urlparse(self.feed_url)
        if parsed_url.scheme != "https":
            error_msg = f"Feed URL must use HTTPS protocol: {self.feed_url}"
            self.logger.error(
                error_msg, feed_url=self.feed_url, scheme=parsed_url.scheme
            )
            raise ValueError(error_msg)

        try:
            self.logger.debug("Downloading feed content", feed_url=self.feed_url)
            response = self.session.get(self.feed_url, timeout=self.timeout)
            response.raise_for_status()
            self.logger.debug(
                "Feed downloaded successfully",
                feed_url=self.feed_url,
                status_code=response.status_code,
                content_length=len(response.content),
            )
        except requests.RequestException as e:
            self.logger.error(
                f"Failed to download feed {self.feed_url}: {e}",
                feed_url=self.feed_url,
                error=str(e),
            )
            raise

        feed = feedparser.parse(response.content)

        if feed.bozo and hasattr(feed, "bozo_exception"):
            self.logger.warning(
                f"Feed parsing warning: {feed.bozo_exception}",
                feed_url=self.feed_url,
                bozo_exception=str(feed.bozo_exception),
            )

        items = []
        for entry in feed.entries:
            try:
                items.append(self.normalize_item(entry))
            except Exception as e:
                self.logger.warning(
                    f"Failed to normalize feed entry: {e}",
                    feed_url=self.feed_url,
                    error=str(e),
                )
                continue

        self.logger.debug(
            "Successfully parsed feed",
            feed_url=self.feed_url,
            items_count=len(items),
            total_entries=len(feed.entries),
        )
        return items

    def normalize_item(self, raw_item) -> FeedItem:
        """Normalize a raw feed entry into a FeedItem.

        Args:
            raw_item: Raw feed entry from feedparser

        Returns:
            Normalized FeedItem object
        """
        title = getattr(raw_item, "title", None) or ""
        link = getattr(raw_item, "link", None) or ""

        published = self.parse_published(getattr(raw_item, "published", None))

        # RSS <description> is exposed as summary; Atom feeds use content
        html_content = ""
        if getattr(raw_item, "summary", None):
            html_content = raw_item.summary
        elif getattr(raw_item, "description", None):
            html_content = raw_item.description
        elif getattr(raw_item, "content", None):
            if isinstance(raw_item.content, list):
                html_content = raw_item.content[0].get("value", "")
            else:
                html_content = str(raw_item.content)

        guid = getattr(raw_item, "id", None) or getattr(raw_item, "guid", None)

        return FeedItem(
            title=title,
            link=link,
            published=published,
            html_content=html_content,
            text_snippet=self.html_to_snippet(html_content),
            guid=guid,
        )

    def parse_published(self, published_str: str | None) -> datetime:
        """Parse an RSS pubDate; missing or invalid dates sort as the epoch."""
        if not published_str:
            return EPOCH

        try:
            published = date_parser.parse(published_str)
        except (ValueError, TypeError, OverflowError):
            self.logger.warning(
                f"Unparseable publish date: {published_str}",
                feed_url=self.feed_url,
            )
            return EPOCH

        if published.tzinfo is None:
            published = published.replace(tzinfo=UTC)
        return published

    def html_to_snippet(self, content: str) -> str:
        """Strip HTML tags from content, keeping line structure.

        Args:
            content: Raw content that may contain HTML

        Returns:
            Plain text with one line per block or <br>
        """
        if not content:
            return ""

        if "<" not in content and ">" not in content:
            return content.strip()

        soup = BeautifulSoup(content, "html.parser")

        for script in soup(["script", "style"]):
            script.decompose()
        for br in soup.find_all("br"):
            br.replace_with("\n")
        for block in soup.find_all(BLOCK_TAGS):
            block.append("\n")

        text = soup.get_text()
        lines = (line.strip() for line in text.splitlines())
        return "\n".join(lines).strip()
