"""Command line entry point."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from mqtt2influxdb.bridge import Bridge
from mqtt2influxdb.config import BridgeConfig
from mqtt2influxdb.exceptions import BridgeConfigError, BridgeError

_LOG = logging.getLogger("mqtt2influxdb")

EXIT_CONFIG = 2
EXIT_RUNTIME = 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mqtt2influxdb",
        description="Bridge MQTT topics into InfluxDB. Settings come from the environment.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override the level implied by DEBUG.",
    )
    parser.add_argument(
        "--no-http",
        action="store_true",
        help="Do not start the snapshot/config HTTP server.",
    )
    return parser


def configure_logging(level: int) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _run(config: BridgeConfig, *, serve_http: bool) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    bridge = Bridge(config)
    await bridge.start(serve_http=serve_http)
    try:
        await stop_event.wait()
    finally:
        await bridge.stop()


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        config = BridgeConfig.from_env()
    except BridgeConfigError as exc:
        configure_logging(logging.INFO)
        _LOG.error("%s", exc)
        return EXIT_CONFIG

    level = args.log_level or ("DEBUG" if config.debug else "INFO")
    configure_logging(getattr(logging, level))

    try:
        asyncio.run(_run(config, serve_http=not args.no_http))
    except BridgeConfigError as exc:
        _LOG.error("%s, canceling start", exc)
        return EXIT_CONFIG
    except BridgeError as exc:
        _LOG.error("%s", exc)
        return EXIT_RUNTIME
    return 0


if __name__ == "__main__":
    sys.exit(main())
