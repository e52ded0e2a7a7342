"""healthwatch - HTTP endpoint health checks with Telegram alerts."""

import argparse
import logging
import signal
import sys
from threading import Event
from typing import Optional

__version__ = "0.1.0"

# Set by the signal handlers to end `run`.
_shutdown_event: Optional[Event] = None

logger = logging.getLogger(__name__)

START_MESSAGE = "Server health check bot started"
STOP_MESSAGE = "Server health check bot stopped"


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    # urllib3 logs every connection at DEBUG, which drowns the probe output.
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _handle_shutdown(signum: int, frame: object) -> None:
    """Signal handler for graceful shutdown."""
    sig_name = signal.Signals(signum).name
    logger.info("Received %s, initiating shutdown...", sig_name)
    if _shutdown_event is not None:
        _shutdown_event.set()


def _full_url(url: str) -> str:
    """Default scheme-less URLs to https."""
    if not url.startswith(("http://", "https://")):
        return "https://" + url
    return url


def _load_config_or_exit(config_path: str):
    from .config import ConfigError, load_config

    try:
        return load_config(config_path)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)


def _open_store(config):
    from .storage import TargetStore

    return TargetStore(config.storage.path)


def _cmd_run(args: argparse.Namespace) -> None:
    """Execute the run command - start the monitoring service."""
    global _shutdown_event

    _setup_logging(args.verbose)

    logger.info("healthwatch %s starting...", __version__)

    # Deferred so logging is configured before the modules log anything
    from .config import ConfigError, load_config
    from .health import HealthServer, HealthServerError
    from .monitor import Monitor
    from .notifier import NotificationError, TelegramNotifier
    from .storage import StorageError, TargetStore

    # Config and storage failures are fatal before the first cycle
    try:
        config = load_config(args.config)
        logger.info("Configuration loaded from %s", args.config)
        logger.info(
            "Checking every %ds, alert threshold %d, HTTP timeout %ds, SSL window %d days",
            config.monitor.interval,
            config.monitor.alert_threshold,
            config.monitor.http_timeout,
            config.monitor.ssl_expiry_alert_days,
        )
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    store = TargetStore(config.storage.path)
    try:
        store.init()
        logger.info("Storage initialized at %s", config.storage.path)
    except StorageError as e:
        logger.error("Storage error: %s", e)
        sys.exit(1)

    # SIGTERM from systemd or docker stop, SIGINT from the terminal
    _shutdown_event = Event()
    signal.signal(signal.SIGTERM, _handle_shutdown)
    signal.signal(signal.SIGINT, _handle_shutdown)

    notifier = TelegramNotifier(config.telegram)
    try:
        notifier.send(START_MESSAGE)
    except NotificationError as e:
        logger.error("Failed to send start message: %s", e)

    monitor = Monitor(config.monitor, store, notifier)
    health_server: Optional[HealthServer] = None

    try:
        monitor.start()

        if config.health.enabled:
            try:
                health_server = HealthServer(config.health, notifier)
                health_server.start()
            except HealthServerError as e:
                logger.error("Failed to start health server: %s", e)
                logger.warning("Continuing without health server")
                health_server = None

        logger.info("All components started, waiting for shutdown signal...")

        _shutdown_event.wait()

    except KeyboardInterrupt:
        # Only reached if the SIGINT handler was not installed
        logger.info("Keyboard interrupt received")
    finally:
        logger.info("Shutting down components...")

        monitor.stop()

        if health_server is not None:
            health_server.stop()

        try:
            notifier.send(STOP_MESSAGE)
        except NotificationError as e:
            logger.error("Failed to send stop message: %s", e)

        logger.info("Shutdown complete")


def _cmd_add(args: argparse.Namespace) -> None:
    """Execute the add command - register a new target."""
    from .models import TargetRecord
    from .storage import StorageError

    config = _load_config_or_exit(args.config)
    store = _open_store(config)

    url = _full_url(args.url)
    if url in ("https://", "http://"):
        print("Error: URL cannot be empty")
        sys.exit(1)
    name = args.name or args.url

    record = TargetRecord(
        name=name,
        url=url,
        response_time_threshold_ms=config.monitor.default_response_time_ms,
    )
    try:
        store.init()
        store.add(record)
    except StorageError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Server {name} [{url}] added")


def _cmd_remove(args: argparse.Namespace) -> None:
    """Execute the remove command - unregister a target."""
    from .storage import StorageError

    store = _open_store(_load_config_or_exit(args.config))
    try:
        store.remove(args.name)
    except StorageError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Server {args.name} removed")


def _cmd_remove_all(args: argparse.Namespace) -> None:
    """Execute the remove-all command."""
    from .storage import StorageError

    store = _open_store(_load_config_or_exit(args.config))
    try:
        store.remove_all()
    except StorageError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print("All servers removed")


def _cmd_list(args: argparse.Namespace) -> None:
    """Execute the list command."""
    from .report import format_target_list

    store = _open_store(_load_config_or_exit(args.config))
    print(format_target_list(store.load()))


def _cmd_stats(args: argparse.Namespace) -> None:
    """Execute the stats command."""
    from .report import format_stats

    store = _open_store(_load_config_or_exit(args.config))
    print(format_stats(store.load()))


def _cmd_details(args: argparse.Namespace) -> None:
    """Execute the details command."""
    from .report import format_details

    config = _load_config_or_exit(args.config)
    record = _open_store(config).load().get(args.name)
    if record is None:
        print(f"Error: Server {args.name} not found")
        sys.exit(1)

    print(format_details(record, config.monitor.ssl_expiry_alert_days))


def _update_target(args: argparse.Namespace, update_fn, success_message: str) -> None:
    """Apply a field update to one stored target and report the outcome."""
    from .storage import StorageError

    store = _open_store(_load_config_or_exit(args.config))
    try:
        store.update(args.name, update_fn)
    except StorageError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(success_message)


def _cmd_set_response_time(args: argparse.Namespace) -> None:
    """Execute the set-response-time command."""

    def apply(record):
        record.response_time_threshold_ms = args.threshold_ms

    _update_target(args, apply, f"Response time threshold for {args.name} set to {args.threshold_ms}ms")


def _cmd_set_content(args: argparse.Namespace) -> None:
    """Execute the set-content command."""
    content = " ".join(args.content)

    def apply(record):
        record.expected_content = content

    _update_target(args, apply, f"Expected content for {args.name} set to: {content}")


def _cmd_set_ssl_threshold(args: argparse.Namespace) -> None:
    """Execute the set-ssl-threshold command."""

    def apply(record):
        record.ssl_expiry_threshold_days = args.days

    _update_target(args, apply, f"SSL expiry threshold for {args.name} set to {args.days} days")


def _cmd_test_alert(args: argparse.Namespace) -> None:
    """Execute the test-alert command - verify Telegram delivery."""
    from .notifier import NotificationError, TelegramNotifier

    config = _load_config_or_exit(args.config)
    notifier = TelegramNotifier(config.telegram)

    try:
        notifier.send("✅ healthwatch test message")
    except NotificationError as e:
        print(f"✗ FAILED: {e}")
        sys.exit(1)

    print(f"✓ SUCCESS: test message sent to chat {config.telegram.chat_id}")


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative, got {number}")
    return number


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )


def main(argv: Optional[list] = None) -> None:
    """Main entry point for the healthwatch package."""
    parser = argparse.ArgumentParser(
        description="healthwatch - HTTP endpoint health checks with Telegram alerts"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"healthwatch {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # run (also used when no subcommand is given)
    run_parser = subparsers.add_parser(
        "run",
        help="Start the monitoring service (default)",
    )
    _add_config_argument(run_parser)
    run_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )
    run_parser.set_defaults(func=_cmd_run)

    add_parser = subparsers.add_parser("add", help="Add server to monitor")
    _add_config_argument(add_parser)
    add_parser.add_argument("url", help="URL to check (https:// is assumed when no scheme is given)")
    add_parser.add_argument("name", nargs="?", help="Unique name (default: the URL as given)")
    add_parser.set_defaults(func=_cmd_add)

    remove_parser = subparsers.add_parser("remove", help="Remove server from monitor")
    _add_config_argument(remove_parser)
    remove_parser.add_argument("name", help="Server name")
    remove_parser.set_defaults(func=_cmd_remove)

    remove_all_parser = subparsers.add_parser("remove-all", help="Remove all servers from monitor")
    _add_config_argument(remove_all_parser)
    remove_all_parser.set_defaults(func=_cmd_remove_all)

    list_parser = subparsers.add_parser("list", help="Show list of monitored servers")
    _add_config_argument(list_parser)
    list_parser.set_defaults(func=_cmd_list)

    stats_parser = subparsers.add_parser("stats", help="Show detailed statistics for all servers")
    _add_config_argument(stats_parser)
    stats_parser.set_defaults(func=_cmd_stats)

    details_parser = subparsers.add_parser("details", help="Show detailed information for a server")
    _add_config_argument(details_parser)
    details_parser.add_argument("name", help="Server name")
    details_parser.set_defaults(func=_cmd_details)

    response_time_parser = subparsers.add_parser("set-response-time", help="Set response time threshold")
    _add_config_argument(response_time_parser)
    response_time_parser.add_argument("name", help="Server name")
    response_time_parser.add_argument("threshold_ms", type=_non_negative_int, help="Threshold in ms (0 disables)")
    response_time_parser.set_defaults(func=_cmd_set_response_time)

    content_parser = subparsers.add_parser("set-content", help="Set expected content in response")
    _add_config_argument(content_parser)
    content_parser.add_argument("name", help="Server name")
    content_parser.add_argument("content", nargs="+", help="Text the response body must contain")
    content_parser.set_defaults(func=_cmd_set_content)

    ssl_parser = subparsers.add_parser("set-ssl-threshold", help="Set SSL expiry threshold for server")
    _add_config_argument(ssl_parser)
    ssl_parser.add_argument("name", help="Server name")
    ssl_parser.add_argument("days", type=_non_negative_int, help="Days before expiry to warn (0 uses global)")
    ssl_parser.set_defaults(func=_cmd_set_ssl_threshold)

    test_alert_parser = subparsers.add_parser("test-alert", help="Send a test message to the Telegram chat")
    _add_config_argument(test_alert_parser)
    test_alert_parser.set_defaults(func=_cmd_test_alert)

    args = parser.parse_args(argv)

    # Default to 'run' if no command specified
    if args.command is None:
        args.config = "config.yaml"
        args.verbose = False
        args.func = _cmd_run

    args.func(args)
