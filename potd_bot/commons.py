"""Wikimedia API client: image attribution lookup and URL shortening."""

import re

import requests

from .config import CommonsConfig
from .logging_config import create_execution_logger
from .models import AuthorInfo, Extracted

UNKNOWN = "Unknown"
OWN_WORK_MARKER = "{{own}}"
OWN_WORK = "Own work"

AUTHOR_RE = re.compile(r"author[ \t]*=[ \t]*(.+)", re.IGNORECASE)
SOURCE_RE = re.compile(r"source[ \t]*=[ \t]*(.+)", re.IGNORECASE)
MARKUP_CHARS_RE = re.compile(r"[\[\]{}]")


def _strip_markup(value: str) -> str:
    return MARKUP_CHARS_RE.sub("", value).strip()


def extract_author(wikitext: str) -> Extracted:
    """Extract the ``author =`` value from file description markup.

    Links and templates are unwrapped; for ``[[User:Name|Label]]`` style values
    the text after the last pipe is kept.
    """
    match = AUTHOR_RE.search(wikitext or "")
    if not match:
        return Extracted(UNKNOWN, found=False)

    author = _strip_markup(match.group(1))
    if "|" in author:
        author = author.rsplit("|", 1)[1].strip()
    if not author:
        return Extracted(UNKNOWN, found=False)
    return Extracted(author, found=True)


def extract_source(wikitext: str) -> Extracted:
    """Extract the ``source =`` value.

    The own-work template is matched case-insensitively, so ``{{own}}`` and
    ``{{Own}}`` both become "Own work".
    """
    match = SOURCE_RE.search(wikitext or "")
    if not match:
        return Extracted(UNKNOWN, found=False)

    source = match.group(1).strip()
    if source.lower() == OWN_WORK_MARKER:
        source = OWN_WORK
    source = _strip_markup(source)
    if not source:
        return Extracted(UNKNOWN, found=False)
    return Extracted(source, found=True)


def extract_author_info(wikitext: str) -> AuthorInfo:
    author = extract_author(wikitext)
    source = extract_source(wikitext)
    placeholders = frozenset(
        name
        for name, result in (("author", author), ("source", source))
        if not result.found
    )
    return AuthorInfo(
        author=author.value, source=source.value, placeholders=placeholders
    )


class CommonsClient:
    """Client for the Commons parse API and the Meta URL shortener."""

    def __init__(
        self,
        config: CommonsConfig,
        execution_id: str | None = None,
        session: requests.Session | None = None,
    ):
        """Initialize the client.

        Args:
            config: Wikimedia API configuration
            execution_id: Execution ID for logging context
            session: Optional shared HTTP session
        """
        self.config = config
        self.logger = create_execution_logger("commons_client", execution_id)
        self.session = session or requests.Session()
        self.session.headers.update(
            {"User-Agent": "Commons-POTD-Bot/1.0 (Wikimedia Commons to Bluesky)"}
        )

    def fetch_wikitext(self, image_id: str) -> str:
        """Fetch the raw markup of a file description page.

        Raises:
            requests.RequestException: If the request fails
            ValueError: If the response has no ``parse.wikitext`` field
        """
        response = self.session.get(
            self.config.api_url,
            params={
                "action": "parse",
                "page": image_id,
                "prop": "wikitext",
                "format": "json",
                "formatversion": "2",
            },
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        data = response.json()

        try:
            wikitext = data["parse"]["wikitext"]
        except (KeyError, TypeError):
            raise ValueError(
                f"Missing parse.wikitext in response for {image_id}: "
                f"{data.get('error', data) if isinstance(data, dict) else data}"
            )

        # formatversion=1 wraps the text as {"*": ...}
        if isinstance(wikitext, dict):
            wikitext = wikitext.get("*", "")
        return wikitext

    def fetch_author_info(self, image_id: str) -> AuthorInfo:
        """Look up author and source attribution for an image.

        Args:
            image_id: File page title, e.g. ``File:Example.jpg``

        Returns:
            AuthorInfo; missing fields default to "Unknown"
        """
        self.logger.info("Fetching author info", image_id=image_id)
        info = extract_author_info(self.fetch_wikitext(image_id))
        for name in sorted(info.placeholders):
            self.logger.log_placeholder(name, UNKNOWN)
        return info

    def shorten_url(self, url: str) -> str:
        """Shorten a URL with the Wikimedia ``shortenurl`` API.

        Raises:
            requests.RequestException: If the request fails
            ValueError: If the response has no ``shortenurl.shorturl`` field
        """
        response = self.session.post(
            self.config.shortener_url,
            data={"action": "shortenurl", "format": "json", "url": url},
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        data = response.json()

        try:
            short_url = data["shortenurl"]["shorturl"]
        except (KeyError, TypeError):
            raise ValueError(f"Missing shortenurl.shorturl in response for {url}")

        self.logger.info("Shortened URL", original_length=len(url), short_url=short_url)
        return short_url

    def shorten_if_long(self, url: str) -> str:
        """Shorten ``url`` only when it exceeds the configured threshold."""
        if len(url) > self.config.shorten_threshold:
            return self.shorten_url(url)
        return url
