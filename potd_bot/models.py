"""Data models for the Commons picture-of-the-day bot."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass
class FeedItem:
    """Represents a single RSS feed item."""

    title: str
    link: str
    published: datetime
    html_content: str
    text_snippet: str
    guid: str | None = None

    @property
    def published_ms(self) -> int:
        """Publish time as epoch milliseconds."""
        published = self.published
        if published.tzinfo is None:
            published = published.replace(tzinfo=UTC)
        return (published - EPOCH) // timedelta(milliseconds=1)


@dataclass(frozen=True)
class Extracted:
    """Result of a pattern-based extraction.

    ``found`` is False when ``value`` is a placeholder default.
    """

    value: str
    found: bool


@dataclass(frozen=True)
class ParsedItem:
    """Image and text data derived from one feed item."""

    image_url: str
    image_source_url: str
    image_id: str
    text_snippet: str
    placeholders: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class AuthorInfo:
    """Image attribution looked up from the file description page."""

    author: str
    source: str
    placeholders: frozenset[str] = field(default_factory=frozenset)

    def attribution(self, image_source_url: str) -> str:
        return f"Author: {self.author}\nSource: {self.source}\nImage: {image_source_url}"


@dataclass(frozen=True)
class PostRef:
    """Strong reference to a created post (AT URI plus content hash)."""

    uri: str
    cid: str

    def as_dict(self) -> dict[str, str]:
        return {"uri": self.uri, "cid": self.cid}
