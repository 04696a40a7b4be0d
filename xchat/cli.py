import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import Settings, load_settings
from .errors import ConfigurationError
from .handlers import handler_registry
from .logger import logger, setup_file_logging
from .protocol.prober import StatusProber
from .relay import CrossServerChat, endpoints_from_settings


async def run_relay(settings: Settings) -> None:
    relay = CrossServerChat.from_settings(settings)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C cancels run()
            pass

    await relay.start()
    try:
        await stop_event.wait()
        logger.info("Shutdown requested")
    finally:
        await relay.stop()


async def show_status(settings: Settings) -> int:
    endpoints = endpoints_from_settings(settings)
    prober = StatusProber(timeout=settings.relay.probe_timeout_ms / 1000)
    await asyncio.gather(*(prober.probe(endpoint) for endpoint in endpoints))

    for endpoint in endpoints:
        if not endpoint.active:
            logger.info(f"{endpoint.address}: unreachable")
            continue
        players = ", ".join(endpoint.status.players) or "no players"
        logger.info(f"{endpoint.address}: {endpoint.display_name} ({players})")
    return 0 if all(endpoint.active for endpoint in endpoints) else 2


def list_handlers() -> None:
    for identifier, registration in sorted(handler_registry.get_all().items()):
        send_to = registration.handler_cls.default_send_to.value
        logger.info(f"{identifier} [{send_to}]: {registration.description}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xchat",
        description="Relay chat between game servers through their logs and RCON",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="path to the configuration file (default: $XCHAT_CONFIG or ./config.toml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("start", help="start relaying chat")
    subparsers.add_parser("status", help="query every configured server once")
    subparsers.add_parser("handlers", help="list the available handlers")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "handlers":
        list_handlers()
        return 0

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        logger.error(f"Could not load configuration: {e}")
        return 1
    setup_file_logging(settings.logs_dir)

    try:
        if args.command == "status":
            return asyncio.run(show_status(settings))
        asyncio.run(run_relay(settings))
    except ConfigurationError as e:
        logger.error(f"Could not start cross server chat: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
