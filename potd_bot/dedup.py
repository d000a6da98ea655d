"""Deduplication module for the Commons picture-of-the-day bot."""

import json
import os
import tempfile
from pathlib import Path

from .logging_config import create_execution_logger
from .models import FeedItem

STATE_KEY = "lastPublishTimestamp"


class Deduplicator:
    """Tracks the publish time of the last posted item in a JSON state file."""

    def __init__(self, state_file: str | Path, execution_id: str | None = None):
        """Initialize the Deduplicator and load the persisted state.

        Args:
            state_file: Path of the JSON state document
            execution_id: Execution ID for logging context
        """
        self.state_file = Path(state_file)
        self.logger = create_execution_logger("deduplicator", execution_id)
        self.last_publish_timestamp = self.load()

        self.logger.info(
            "Deduplicator initialized",
            state_file=str(self.state_file),
            last_publish_timestamp=self.last_publish_timestamp,
        )

    def load(self) -> int:
        """Read ``lastPublishTimestamp`` (epoch millis) from the state file.

        A missing file starts from 0 so that the current feed item is posted.

        Raises:
            ValueError: If the file exists but is not a valid state document
        """
        if not self.state_file.exists():
            self.logger.warning(
                "State file not found, starting from epoch",
                state_file=str(self.state_file),
            )
            return 0

        try:
            with open(self.state_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            return int(data.get(STATE_KEY, 0))
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid state file {self.state_file}: {e}")

    def is_new(self, item: FeedItem) -> bool:
        """Return True only if the item is strictly newer than the last post."""
        is_new = item.published_ms > self.last_publish_timestamp
        self.logger.debug(
            "Checked item publish date",
            item_title=item.title,
            published_ms=item.published_ms,
            last_publish_timestamp=self.last_publish_timestamp,
            is_new=is_new,
        )
        return is_new

    def mark_published(self, item: FeedItem) -> None:
        """Record the item as posted and persist the state immediately."""
        self.last_publish_timestamp = item.published_ms
        self.save()
        self.logger.info(
            "Stored last publish timestamp",
            item_title=item.title,
            last_publish_timestamp=self.last_publish_timestamp,
        )

    def save(self) -> None:
        """Rewrite the state file in full."""
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.state_file.parent, prefix=".state-", suffix=".json"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({STATE_KEY: self.last_publish_timestamp}, f)
            os.replace(tmp_path, self.state_file)
        except OSError as e:
            self.logger.error(
                f"Error writing state file {self.state_file}: {e}", error=str(e)
            )
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
