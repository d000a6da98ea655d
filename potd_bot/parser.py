"""Item parsing for the Commons picture-of-the-day feed.

Extracts the image URL, the image description page and the text snippet from a
feed item. Every extraction degrades to a placeholder instead of raising; the
``Extracted`` result records which one happened.
"""

import re
from urllib.parse import unquote

from .logging_config import create_execution_logger
from .models import Extracted, FeedItem, ParsedItem

COMMONS_DOMAIN = "https://commons.wikimedia.org"
MISSING_IMG_REPLACE = (
    "https://upload.wikimedia.org/wikipedia/commons/a/a2/Nuvola_apps_error.svg"
)
MISSING_IMG_ID = "File:Nuvola_apps_error.svg"
MISSING_IMG_SOURCE_REPLACE = f"{COMMONS_DOMAIN}/wiki/{MISSING_IMG_ID}"
MISSING_DESCRIPTION_REPLACE = "No description provided"

IMG_SRC_RE = re.compile(r'src="([^"]+)"')
FILE_HREF_RE = re.compile(r'href="([^"]*File:[^"]*)"')
THUMB_WIDTH_RE = re.compile(r"/\d+px")
# Trailing "purge" link rendered at the end of the description
CACHE_PURGE_RE = re.compile(
    r"^[ \t]*[(\[]?(?:purge|purge server cache)[)\]]?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def extract_image_url(html_content: str | None, thumb_width: int = 800) -> Extracted:
    """Return the first ``src`` URL with its thumbnail width rewritten."""
    match = IMG_SRC_RE.search(html_content or "")
    if not match:
        return Extracted(MISSING_IMG_REPLACE, found=False)
    url = THUMB_WIDTH_RE.sub(f"/{thumb_width}px", match.group(1), count=1)
    return Extracted(url, found=True)


def extract_image_source(html_content: str | None) -> tuple[Extracted, Extracted]:
    """Return the description page URL and the ``File:`` page title."""
    match = FILE_HREF_RE.search(html_content or "")
    if not match:
        return (
            Extracted(MISSING_IMG_SOURCE_REPLACE, found=False),
            Extracted(MISSING_IMG_ID, found=False),
        )

    href = match.group(1)
    if href.startswith("//"):
        source_url = f"https:{href}"
    elif href.startswith("/"):
        source_url = f"{COMMONS_DOMAIN}{href}"
    else:
        source_url = href

    # Drops the leading /wiki/ (or any other path prefix)
    image_id = href[href.index("File:"):]
    image_id = unquote(image_id.split("#", 1)[0].split("?", 1)[0])

    return Extracted(source_url, found=True), Extracted(image_id, found=True)


def extract_text_snippet(text_snippet: str | None) -> Extracted:
    if not text_snippet or not text_snippet.strip():
        return Extracted(MISSING_DESCRIPTION_REPLACE, found=False)
    return Extracted(text_snippet, found=True)


def clean_snippet(text: str) -> str:
    """Drop the cache-purge marker line and collapse runs of blank lines."""
    text = CACHE_PURGE_RE.sub("", text)
    text = EXCESS_NEWLINES_RE.sub("\n\n", text)
    return text.strip()


class ItemParser:
    """Turns a FeedItem into a ParsedItem."""

    def __init__(self, thumb_width: int = 800, execution_id: str | None = None):
        self.thumb_width = thumb_width
        self.logger = create_execution_logger("item_parser", execution_id)

    def parse(self, item: FeedItem) -> ParsedItem:
        """Parse one feed item.

        Args:
            item: The feed item to parse

        Returns:
            ParsedItem; fields that fell back to placeholders are listed in
            ``placeholders``
        """
        fields = {
            "image_url": extract_image_url(item.html_content, self.thumb_width),
            "text_snippet": extract_text_snippet(item.text_snippet),
        }
        fields["image_source_url"], fields["image_id"] = extract_image_source(
            item.html_content
        )

        placeholders = frozenset(
            name for name, result in fields.items() if not result.found
        )
        for name in sorted(placeholders):
            self.logger.log_placeholder(name, fields[name].value)

        parsed = ParsedItem(
            image_url=fields["image_url"].value,
            image_source_url=fields["image_source_url"].value,
            image_id=fields["image_id"].value,
            text_snippet=fields["text_snippet"].value,
            placeholders=placeholders,
        )
        self.logger.debug(
            "Parsed feed item",
            image_id=parsed.image_id,
            image_url=parsed.image_url,
        )
        return parsed
