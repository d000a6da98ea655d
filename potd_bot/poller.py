"""Publish cycle and polling loop for the Commons picture-of-the-day bot."""

import os
import signal
import threading
from dataclasses import dataclass, replace
from typing import Any, Callable

from .bluesky import BlueskySession, image_embed
from .chunker import chunk_text
from .commons import CommonsClient
from .config import PostConfig
from .dedup import Deduplicator
from .logging_config import ExecutionLogger, create_execution_logger, new_execution_id
from .parser import ItemParser, clean_snippet
from .rss import FeedProcessor


@dataclass
class PublishContext:
    """Everything one publish cycle needs, passed explicitly."""

    feed_processor: FeedProcessor
    item_parser: ItemParser
    commons: CommonsClient
    bluesky: BlueskySession
    deduplicator: Deduplicator
    post_config: PostConfig


def run_cycle(context: PublishContext, execution_id: str | None = None) -> dict[str, Any]:
    """
    Run one publish cycle: post the newest feed item if it has not been posted.

    The root post carries the image and the first chunk of the description; the
    remaining description chunks and the attribution follow as a reply thread.
    The last publish timestamp is persisted right after the root post, so a
    failing reply never causes the root post to be repeated.

    Args:
        context: Clients and state for the cycle
        execution_id: Optional execution ID for logging context

    Returns:
        Metrics dictionary for the cycle

    Raises:
        Exception: Any failure is logged and re-raised
    """
    cycle_logger = create_execution_logger(
        "poller", execution_id or new_execution_id("cycle")
    )
    metrics = {
        "items_found": 0,
        "posts_created": 0,
        "replies_created": 0,
        "placeholders_used": [],
        "errors": [],
    }

    try:
        item = context.feed_processor.get_latest_item()
        if item is None:
            return metrics
        metrics["items_found"] = 1

        if not context.deduplicator.is_new(item):
            cycle_logger.debug("No new item", item_title=item.title)
            return metrics

        cycle_logger.log_execution_start(item_title=item.title)

        parsed = context.item_parser.parse(item)
        parsed = replace(
            parsed,
            text_snippet=clean_snippet(parsed.text_snippet),
            image_source_url=context.commons.shorten_if_long(parsed.image_source_url),
        )

        chunks = chunk_text(parsed.text_snippet)

        author_info = context.commons.fetch_author_info(parsed.image_id)
        chunks += chunk_text(author_info.attribution(parsed.image_source_url))
        chunks = [chunk for chunk in chunks if chunk]

        metrics["placeholders_used"] = sorted(
            parsed.placeholders | author_info.placeholders
        )

        bluesky = context.bluesky
        post_config = context.post_config
        bluesky.ensure_session()

        blob = bluesky.upload_image(parsed.image_url)
        root = bluesky.create_post(
            chunks[0],
            embed=image_embed(blob, post_config.alt_text),
            tags=post_config.tags,
            langs=post_config.langs,
        )
        metrics["posts_created"] += 1
        cycle_logger.info("Posted root post", post_uri=root.uri, image_id=parsed.image_id)

        context.deduplicator.mark_published(item)

        parent = root
        for chunk in chunks[1:]:
            parent = bluesky.create_post(
                chunk,
                reply_root=root,
                reply_parent=parent,
                langs=post_config.langs,
            )
            metrics["replies_created"] += 1

        cycle_logger.log_metrics(metrics)
        cycle_logger.log_execution_end(success=True, post_uri=root.uri)
        return metrics

    except Exception as e:
        error_msg = f"Publish cycle failed: {e}"
        metrics["errors"].append(error_msg)
        cycle_logger.error(error_msg, exc_info=True, error=str(e))
        cycle_logger.log_execution_end(success=False, metrics=metrics)
        raise


class Poller:
    """Runs publish cycles on a fixed interval, one at a time."""

    def __init__(
        self,
        context: PublishContext,
        interval_seconds: float = 60.0,
        execution_id: str | None = None,
    ):
        self.context = context
        self.interval_seconds = interval_seconds
        self.logger = create_execution_logger("poller", execution_id)
        self._stop_event = threading.Event()
        # run_forever ticks inline; this guards ticks driven from other threads
        self._busy = threading.Lock()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def tick(self) -> dict[str, Any] | None:
        """Run a cycle unless one is already in progress.

        Returns:
            The cycle metrics, or None if the tick was skipped
        """
        if not self._busy.acquire(blocking=False):
            self.logger.warning("Previous cycle still running, skipping tick")
            return None
        try:
            return run_cycle(self.context)
        finally:
            self._busy.release()

    def run_forever(self) -> None:
        """Tick every ``interval_seconds`` until stopped.

        The first cycle runs after one interval. Cycle errors propagate and end
        the loop.
        """
        self.logger.info(
            "Polling started", interval_seconds=self.interval_seconds
        )
        while not self._stop_event.wait(self.interval_seconds):
            self.tick()
        self.logger.info("Polling stopped")

    def stop(self) -> None:
        self._stop_event.set()


def logout_with_timeout(
    bluesky: BlueskySession, timeout: float, logger: ExecutionLogger
) -> bool:
    """Log out on a daemon thread, waiting at most ``timeout`` seconds.

    Returns:
        True if logout finished cleanly within the timeout
    """
    outcome = {"success": False}

    def _logout() -> None:
        try:
            bluesky.logout()
            outcome["success"] = True
        except Exception as e:
            logger.error(f"Logout failed: {e}", error=str(e))

    thread = threading.Thread(target=_logout, name="bluesky-logout", daemon=True)
    thread.start()
    thread.join(timeout)

    if thread.is_alive():
        logger.warning(f"Logout did not finish within {timeout}s, forcing exit")
        return False
    return outcome["success"]


def graceful_shutdown(
    poller: Poller,
    bluesky: BlueskySession,
    timeout: float = 2.0,
    exit_fn: Callable[[int], None] = os._exit,
    execution_id: str | None = None,
) -> None:
    """Stop polling, end the session and exit the process.

    Exits with 0 after a clean logout and 1 when logout failed or timed out.
    In-flight requests of a running cycle are not cancelled.
    """
    logger = create_execution_logger("main", execution_id)
    logger.info("Shutting down")
    poller.stop()
    clean = logout_with_timeout(bluesky, timeout, logger)
    exit_fn(0 if clean else 1)


def install_signal_handlers(
    poller: Poller,
    bluesky: BlueskySession,
    timeout: float = 2.0,
    execution_id: str | None = None,
) -> None:
    """Route SIGINT and SIGTERM to ``graceful_shutdown``."""

    def _handler(signum, frame) -> None:
        create_execution_logger("main", execution_id).info(
            f"Received {signal.Signals(signum).name}"
        )
        graceful_shutdown(poller, bluesky, timeout, execution_id=execution_id)

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)
