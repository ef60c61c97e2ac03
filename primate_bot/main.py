"""Main entry point for the review-tracking bot."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError
from slack_bolt.async_app import AsyncApp

from .bot import Bot
from .config import Config, load_config
from .orm import TrackedReviewDocument, UserStatsDocument
from .services import (
    CollectionStore,
    DatabaseService,
    GitLabService,
    ReviewRegistry,
    StatisticsService,
    get_db_service,
    init_db_service,
)
from .slack_client import SlackClient

LEGACY_FILES = {
    "pr_data.json": TrackedReviewDocument,
    "user_stats.json": UserStatsDocument,
}


def setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).expanduser().parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(Path(log_file).expanduser()))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("slack_bolt").setLevel(logging.WARNING)
    logging.getLogger("slack_sdk").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


def create_slack_app(config: Config, socket_mode: bool) -> AsyncApp:
    """Create the Bolt app; HTTP mode verifies requests with the signing secret."""
    if socket_mode:
        return AsyncApp(
            token=config.slack.bot_token.get_secret_value(),
            request_verification_enabled=False,
        )

    signing_secret = config.slack.signing_secret
    if signing_secret is None or not signing_secret.get_secret_value():
        raise ValueError("slack.signing_secret is required in http mode")
    return AsyncApp(
        token=config.slack.bot_token.get_secret_value(),
        signing_secret=signing_secret.get_secret_value(),
    )


async def import_legacy_data(db: DatabaseService, directory: Path, logger) -> int:
    """Copy JSON files from the file-based deployment into the database.

    Returns:
        Number of collections imported.
    """
    imported = 0
    for filename, document_cls in LEGACY_FILES.items():
        path = directory / filename
        if not path.exists():
            logger.warning("Legacy file not found, skipping: %s", path)
            continue
        with path.open() as f:
            records = json.load(f)
        store = CollectionStore(db, document_cls)
        if not await store.save_all(records):
            raise RuntimeError(f"Could not import {path}")
        logger.info("Imported %d record(s) from %s", len(records), path)
        imported += 1
    return imported


async def build_bot(config: Config, db: DatabaseService, slack_app: AsyncApp) -> Bot:
    """Load persisted state and wire the bot's services together."""
    registry = ReviewRegistry(CollectionStore(db, TrackedReviewDocument))
    await registry.load()

    statistics = StatisticsService(CollectionStore(db, UserStatsDocument))
    await statistics.load()

    gitlab = GitLabService(
        host=config.gitlab.host,
        token=config.gitlab.token.get_secret_value(),
        timeout=config.gitlab.timeout,
    )
    bot = Bot(config, SlackClient(slack_app.client), gitlab, registry, statistics)
    bot.register(slack_app)
    return bot


async def serve_socket_mode(config: Config, slack_app: AsyncApp, logger) -> None:
    """Receive events over Slack Socket Mode."""
    from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler

    app_token = config.slack.app_token
    if app_token is None or not app_token.get_secret_value():
        raise ValueError("slack.app_token is required in socket mode")

    logger.info("Starting Slack Socket Mode handler...")
    handler = AsyncSocketModeHandler(slack_app, app_token.get_secret_value())
    await handler.start_async()


async def serve_http(args, slack_app: AsyncApp, logger) -> None:
    """Receive events over HTTP."""
    import uvicorn

    from .http_server import create_http_app

    logger.info("Starting HTTP event server on port %d...", args.port)
    uvicorn_config = uvicorn.Config(
        create_http_app(slack_app),
        host=args.host,
        port=args.port,
        log_level="info" if args.verbose else "warning",
    )
    server = uvicorn.Server(uvicorn_config)
    await server.serve()


async def async_main(args, logger) -> int:
    """Async main function."""
    bot = None
    try:
        logger.info("Loading configuration from %s", args.config)
        config = load_config(args.config)

        logger.info("Initializing database at %s", config.bot.database_path)
        db = await init_db_service(config.bot.database_path)

        if args.import_legacy:
            await import_legacy_data(db, Path(args.import_legacy).expanduser(), logger)

        slack_app = create_slack_app(config, socket_mode=args.mode == "socket")
        bot = await build_bot(config, db, slack_app)

        if args.send_reminders_now:
            logger.info("Running a single reminder sweep...")
            await bot.reminders.send_reminders()
            return 0

        bot.scheduler.start()

        if args.mode == "http":
            await serve_http(args, slack_app, logger)
        else:
            await serve_socket_mode(config, slack_app, logger)

        return 0

    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except (ValidationError, ValueError) as e:
        logger.error("Invalid configuration: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1
    finally:
        if bot is not None:
            await bot.scheduler.stop()
        try:
            db = get_db_service()
            await db.close()
            logger.info("Database connection closed")
        except RuntimeError:
            # Database wasn't initialized (error during startup)
            pass


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Slack bot that tracks GitLab merge request reviews",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Run with default config.yaml (socket mode)
  %(prog)s -c myconfig.yaml             # Run with custom config
  %(prog)s -v                           # Run with verbose logging
  %(prog)s --mode http --port 8080      # Receive events over HTTP
  %(prog)s --send-reminders-now         # Send today's reminders and exit
  %(prog)s --import-legacy ./data       # Import pr_data.json / user_stats.json first
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Also write logs to this file",
    )
    parser.add_argument(
        "--mode",
        choices=["socket", "http"],
        default="socket",
        help="Event delivery: socket (default) or http",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Bind address for http mode (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Port for http mode (default: 3000)",
    )
    parser.add_argument(
        "--send-reminders-now",
        action="store_true",
        help="Run one reminder sweep and exit",
    )
    parser.add_argument(
        "--import-legacy",
        metavar="DIR",
        help="Import pr_data.json and user_stats.json from DIR before starting",
    )

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_file)
    logger = logging.getLogger(__name__)

    return asyncio.run(async_main(args, logger))


if __name__ == "__main__":
    sys.exit(main())
