"""Property-based tests for logging functionality."""

import json
import logging
from datetime import UTC, datetime
from io import StringIO
from unittest.mock import Mock

from hypothesis import given
from hypothesis import strategies as st

from potd_bot.logging_config import (
    StructuredFormatter,
    create_execution_logger,
)
from potd_bot.models import FeedItem, ParsedItem
from potd_bot.poller import PublishContext, run_cycle


class capture_logs:
    """Route all log records through StructuredFormatter into a buffer."""

    def __enter__(self):
        self.buffer = StringIO()
        self.handler = logging.StreamHandler(self.buffer)
        self.handler.setFormatter(StructuredFormatter())
        self.root_logger = logging.getLogger()
        self.original_level = self.root_logger.level
        self.original_handlers = self.root_logger.handlers[:]
        self.root_logger.handlers.clear()
        self.root_logger.addHandler(self.handler)
        self.root_logger.setLevel(logging.DEBUG)
        return self

    def records(self) -> list[dict]:
        return [
            json.loads(line) for line in self.buffer.getvalue().split("\n") if line
        ]

    def __exit__(self, *exc_info):
        self.root_logger.handlers.clear()
        self.root_logger.handlers.extend(self.original_handlers)
        self.root_logger.setLevel(self.original_level)
        self.handler.close()


class TestLoggingProperties:
    """Property-based tests for structured logging."""

    @given(
        st.text(min_size=1, max_size=200),
        st.text(
            alphabet=st.characters(whitelist_categories=("Ll", "Nd")),
            min_size=1,
            max_size=30,
        ),
        st.sampled_from(["info", "warning", "error", "debug"]),
    )
    def test_structured_log_entry_property(self, message, execution_id, level):
        """Every log line is one JSON object carrying the execution context."""
        with capture_logs() as logs:
            logger = create_execution_logger("poller", execution_id)
            getattr(logger, level)(message, image_id="File:Example.jpg")

        records = logs.records()
        assert len(records) == 1
        entry = records[0]
        assert entry["message"] == message
        assert entry["execution_id"] == execution_id
        assert entry["component"] == "poller"
        assert entry["image_id"] == "File:Example.jpg"
        assert entry["level"] == level.upper()
        assert entry["logger"] == "potd_bot.poller"

    def test_cycle_logging_property(self):
        """A publishing cycle logs its start, its metrics and its end."""
        item = FeedItem(
            title="Picture of the day",
            link="https://commons.wikimedia.org/",
            published=datetime(2024, 6, 2, tzinfo=UTC),
            html_content="",
            text_snippet="A photo of a cat.",
        )
        author_info = Mock(placeholders=frozenset())
        author_info.attribution.return_value = "Author: A\nSource: B\nImage: C"
        context = PublishContext(
            feed_processor=Mock(),
            item_parser=Mock(),
            commons=Mock(),
            bluesky=Mock(),
            deduplicator=Mock(),
            post_config=Mock(alt_text="alt", tags=[], langs=["en-US"]),
        )
        context.feed_processor.get_latest_item.return_value = item
        context.deduplicator.is_new.return_value = True
        context.item_parser.parse.return_value = ParsedItem(
            image_url="https://upload.wikimedia.org/a.jpg",
            image_source_url="https://commons.wikimedia.org/wiki/File:A.jpg",
            image_id="File:A.jpg",
            text_snippet="A photo of a cat.",
        )
        context.commons.shorten_if_long.side_effect = lambda url: url
        context.commons.fetch_author_info.return_value = author_info
        context.bluesky.create_post.return_value = Mock(uri="at://x/1", cid="c")

        with capture_logs() as logs:
            run_cycle(context, execution_id="cycle_test")

        messages = [entry["message"] for entry in logs.records()]
        assert "Starting poller execution" in messages
        assert "Execution metrics" in messages
        assert "Completed poller execution" in messages
        assert all(
            entry["execution_id"] == "cycle_test"
            for entry in logs.records()
            if entry["component"] == "poller"
        )

    def test_cycle_failure_is_logged_with_exception(self):
        context = Mock()
        context.feed_processor.get_latest_item.side_effect = RuntimeError("boom")

        with capture_logs() as logs:
            try:
                run_cycle(context, execution_id="cycle_fail")
            except RuntimeError:
                pass

        errors = [entry for entry in logs.records() if entry["level"] == "ERROR"]
        assert len(errors) == 1
        assert "boom" in errors[0]["message"]
        assert "RuntimeError" in errors[0]["exception"]

    @given(st.booleans())
    def test_execution_end_reports_outcome_property(self, success):
        """The end-of-execution line tells a failed run from a successful one."""
        with capture_logs() as logs:
            logger = create_execution_logger("poller", "cycle_end")
            logger.log_execution_start(item_title="Picture of the day")
            logger.log_execution_end(success=success)

        start, end = logs.records()
        assert start["item_title"] == "Picture of the day"
        assert "execution_start" in start
        assert end["execution_success"] is success
        assert end["execution_duration_seconds"] >= 0

    def test_placeholder_warning_names_field_and_value(self):
        with capture_logs() as logs:
            create_execution_logger("item_parser", "parse_1").log_placeholder(
                "image_url", "https://example.org/missing.svg"
            )

        (entry,) = logs.records()
        assert entry["level"] == "WARNING"
        assert entry["field_name"] == "image_url"
        assert entry["placeholder"] == "https://example.org/missing.svg"
