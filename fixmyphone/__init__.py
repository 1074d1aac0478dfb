"""FixMyPhone offline - offline caching layer for the FixMyPhone web app."""

import argparse
import json
import logging
import signal
import sys
from threading import Event
from typing import Optional

__version__ = "0.1.0"

# Global shutdown event for signal handlers
_shutdown_event: Optional[Event] = None

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def _handle_shutdown(signum: int, frame: object) -> None:
    """Signal handler for graceful shutdown."""
    sig_name = signal.Signals(signum).name
    logger.info("Received %s, initiating shutdown...", sig_name)
    if _shutdown_event is not None:
        _shutdown_event.set()


def _load(args: argparse.Namespace):
    """Load configuration and open the database, exiting on failure."""
    from .config import ConfigError, load_config
    from .database import DatabaseError, init_db

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    try:
        db_conn = init_db(config.database.path)
    except DatabaseError as e:
        logger.error("Database error: %s", e)
        sys.exit(1)

    return config, db_conn


def _build_controller(config, db_conn, fetcher=None):
    from .cache import CacheStorage
    from .controller import OfflineCacheController
    from .database import SubmissionStore
    from .network import RequestsFetcher
    from .notifier import BrowserClients, WebhookNotifier

    if fetcher is None:
        fetcher = RequestsFetcher(config.cache.fetch_timeout)

    origin = config.proxy.origin_url
    return OfflineCacheController(
        config.cache,
        CacheStorage(db_conn),
        fetcher,
        origin,
        submissions=SubmissionStore(db_conn),
        notifier=WebhookNotifier(config.notifications),
        clients=BrowserClients(origin),
        notification_config=config.notifications,
        sync_config=config.sync,
    )


def _require_origin(config) -> None:
    if not config.proxy.origin:
        logger.error("Configuration error: 'proxy.origin' is required")
        sys.exit(1)


def _cmd_run(args: argparse.Namespace) -> None:
    """Execute the run command - start the offline proxy."""
    global _shutdown_event

    _setup_logging(args.verbose)
    logger.info("FixMyPhone offline %s starting...", __version__)

    from .network import RequestsFetcher
    from .proxy import OfflineProxyServer, ProxyError

    config, db_conn = _load(args)
    _require_origin(config)

    if not config.proxy.enabled:
        logger.error("Proxy is disabled in configuration")
        sys.exit(1)

    _shutdown_event = Event()
    signal.signal(signal.SIGTERM, _handle_shutdown)
    signal.signal(signal.SIGINT, _handle_shutdown)

    fetcher = RequestsFetcher(config.cache.fetch_timeout)
    controller = _build_controller(config, db_conn, fetcher)
    proxy = OfflineProxyServer(config.proxy, controller, fetcher)

    try:
        proxy.start()
    except ProxyError as e:
        logger.error("Failed to start proxy: %s", e)
        db_conn.close()
        sys.exit(1)

    try:
        logger.info("Serving %s from cache %s", config.proxy.origin_url, controller.cache_name)
        logger.info("All components started, waiting for shutdown signal...")
        _shutdown_event.wait()
    except KeyboardInterrupt:
        # Backup handler if signal doesn't work
        logger.info("Keyboard interrupt received")
    finally:
        logger.info("Shutting down components...")
        proxy.stop()
        fetcher.close()
        db_conn.close()
        logger.info("Shutdown complete")


def _cmd_install(args: argparse.Namespace) -> None:
    """Execute the install command - precache and activate the configured version."""
    _setup_logging(args.verbose)

    from .controller import InstallError
    from .network import RequestsFetcher

    config, db_conn = _load(args)
    _require_origin(config)

    fetcher = RequestsFetcher(config.cache.fetch_timeout)
    controller = _build_controller(config, db_conn, fetcher)

    try:
        controller.install()
        controller.activate()
        print(f"Installed and activated {controller.cache_name}")
    except InstallError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        fetcher.close()
        db_conn.close()


def _cmd_caches(args: argparse.Namespace) -> None:
    """Execute the caches command - list cache stores."""
    from .cache import CacheStorage

    config, db_conn = _load(args)
    storage = CacheStorage(db_conn)

    names = storage.keys()
    if not names:
        print("No cache stores.")
    for name in names:
        marker = "*" if name == config.cache.cache_name else " "
        print(f"{marker} {name} ({len(storage.open(name).keys())} entries)")

    db_conn.close()


def _cmd_sync(args: argparse.Namespace) -> None:
    """Execute the sync command - send queued offline submissions."""
    _setup_logging(args.verbose)

    config, db_conn = _load(args)
    _require_origin(config)

    controller = _build_controller(config, db_conn)
    report = controller.handle_sync(config.sync.tag)
    db_conn.close()

    print(f"Synced {len(report.synced)}/{report.total} submission(s)")
    if report.failed:
        sys.exit(1)


def _cmd_enqueue(args: argparse.Namespace) -> None:
    """Execute the enqueue command - queue a submission for the next sync."""
    from .database import DatabaseError, enqueue_submission

    config, db_conn = _load(args)

    try:
        with open(args.file, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: Cannot read submission: {e}")
        sys.exit(1)

    if not isinstance(data, dict):
        print("Error: Submission must be a JSON object")
        sys.exit(1)

    try:
        submission_id = enqueue_submission(db_conn, data)
        print(f"Queued submission {submission_id}")
    except DatabaseError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db_conn.close()


def _cmd_push(args: argparse.Namespace) -> None:
    """Execute the push command - deliver a push notification."""
    _setup_logging(args.verbose)

    config, db_conn = _load(args)
    controller = _build_controller(config, db_conn)
    notification = controller.handle_push(args.text)
    db_conn.close()

    print(json.dumps(notification.to_dict(), indent=2))


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )


def _add_verbose_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )


def main() -> None:
    """Main entry point for the fixmyphone package."""
    parser = argparse.ArgumentParser(
        description="FixMyPhone offline - offline caching proxy for the FixMyPhone web app"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"fixmyphone {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser(
        "run",
        help="Start the offline proxy (default)",
    )
    _add_config_argument(run_parser)
    _add_verbose_argument(run_parser)
    run_parser.set_defaults(func=_cmd_run)

    install_parser = subparsers.add_parser(
        "install",
        help="Precache critical resources and activate the configured version",
    )
    _add_config_argument(install_parser)
    _add_verbose_argument(install_parser)
    install_parser.set_defaults(func=_cmd_install)

    caches_parser = subparsers.add_parser(
        "caches",
        help="List cache stores (* marks the current version)",
    )
    _add_config_argument(caches_parser)
    caches_parser.set_defaults(func=_cmd_caches)

    sync_parser = subparsers.add_parser(
        "sync",
        help="Send repair submissions queued while offline",
    )
    _add_config_argument(sync_parser)
    _add_verbose_argument(sync_parser)
    sync_parser.set_defaults(func=_cmd_sync)

    enqueue_parser = subparsers.add_parser(
        "enqueue",
        help="Queue a JSON repair submission for the next sync",
    )
    enqueue_parser.add_argument("file", help="Path to a JSON file with the submission")
    _add_config_argument(enqueue_parser)
    enqueue_parser.set_defaults(func=_cmd_enqueue)

    push_parser = subparsers.add_parser(
        "push",
        help="Deliver a push notification through the configured webhooks",
    )
    push_parser.add_argument("text", nargs="?", default=None, help="Notification text (default: status update)")
    _add_config_argument(push_parser)
    _add_verbose_argument(push_parser)
    push_parser.set_defaults(func=_cmd_push)

    args = parser.parse_args()

    # Default to 'run' if no command specified
    if args.command is None:
        args.config = "config.yaml"
        args.verbose = False
        args.func = _cmd_run

    args.func(args)
