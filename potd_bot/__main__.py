"""Entry point: post the Wikimedia Commons picture of the day to Bluesky."""

import argparse
import os
import sys

import requests

from .bluesky import BlueskySession
from .commons import CommonsClient
from .config import Config
from .credentials import get_bluesky_credentials
from .dedup import Deduplicator
from .logging_config import (
    create_execution_logger,
    new_execution_id,
    setup_structured_logging,
)
from .parser import ItemParser
from .poller import (
    Poller,
    PublishContext,
    install_signal_handlers,
    logout_with_timeout,
    run_cycle,
)
from .rss import FeedProcessor


def build_context(config: Config, execution_id: str) -> PublishContext:
    """Create the clients and load the persisted state."""
    identifier = password = None
    if config.secret_name:
        identifier, password = get_bluesky_credentials(
            config.secret_name, config.aws_region, execution_id
        )
    bluesky_config = config.get_bluesky_config(identifier, password)
    feed_config = config.get_feed_config()

    http = requests.Session()
    return PublishContext(
        feed_processor=FeedProcessor(
            feed_config.url,
            timeout=feed_config.timeout,
            execution_id=execution_id,
            session=http,
        ),
        item_parser=ItemParser(feed_config.thumb_width, execution_id=execution_id),
        commons=CommonsClient(
            config.get_commons_config(), execution_id=execution_id, session=http
        ),
        bluesky=BlueskySession(bluesky_config, execution_id=execution_id),
        deduplicator=Deduplicator(config.state_file, execution_id=execution_id),
        post_config=config.get_post_config(),
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="potd-bot",
        description="Post the Wikimedia Commons picture of the day to Bluesky.",
    )
    parser.add_argument(
        "--once", action="store_true", help="run a single cycle and exit"
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="logging level (default: %(default)s)",
    )
    args = parser.parse_args(argv)

    setup_structured_logging(args.log_level)
    execution_id = new_execution_id("run")
    main_logger = create_execution_logger("main", execution_id)

    config = Config()
    schedule = config.get_schedule_config()
    context = build_context(config, execution_id)
    context.bluesky.login()

    if args.once:
        try:
            run_cycle(context)
        finally:
            logout_with_timeout(
                context.bluesky, schedule.shutdown_timeout, main_logger
            )
        return 0

    poller = Poller(context, schedule.interval_seconds, execution_id=execution_id)
    install_signal_handlers(
        poller, context.bluesky, schedule.shutdown_timeout, execution_id
    )
    try:
        poller.run_forever()
    except Exception as e:
        main_logger.error(f"Stopping after failed cycle: {e}", error=str(e))
        logout_with_timeout(context.bluesky, schedule.shutdown_timeout, main_logger)
        raise
    return 0


if __name__ == "__main__":
    sys.exit(main())
