"""CLI entry point for netfluss."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from types import FrameType

from netfluss import __version__
from netfluss.aggregator import NetworkMonitor
from netfluss.config import MonitorConfig
from netfluss.ui import NetflussApp


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="netfluss",
        description="Live network adapter throughput, addresses and top applications",
    )
    parser.add_argument(
        "-r",
        "--refresh",
        type=float,
        default=1.0,
        help="Poll interval in seconds, clamped to 0.2-10 (default: 1.0)",
    )
    parser.add_argument(
        "-t",
        "--top-apps",
        action="store_true",
        help="Sample per-application traffic with netstat",
    )
    parser.add_argument(
        "-n",
        "--top-apps-limit",
        type=int,
        default=5,
        help="Number of applications to show (default: 5)",
    )
    parser.add_argument(
        "-b",
        "--bits",
        action="store_true",
        help="Show rates in bits per second",
    )
    parser.add_argument(
        "-a",
        "--all",
        action="store_true",
        help="Show inactive and virtual adapters",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Write log messages to this file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for --log-file (default: INFO)",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"netfluss {__version__}",
    )
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> MonitorConfig:
    return MonitorConfig(
        refresh_interval=args.refresh,
        show_top_apps=args.top_apps,
        top_apps_limit=max(1, args.top_apps_limit),
        use_bits=args.bits,
        show_inactive=args.all,
        show_other_adapters=args.all,
    )


def configure_logging(log_file: str | None, level: str) -> None:
    """Log to a file only; the terminal belongs to the TUI."""
    if log_file is None:
        logging.getLogger("netfluss").addHandler(logging.NullHandler())
        return
    logging.basicConfig(
        filename=log_file,
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    """Main entry point."""
    args = parse_args()
    configure_logging(args.log_file, args.log_level)
    config = config_from_args(args)
    monitor = NetworkMonitor(config=config)

    def shutdown_handler(signum: int, frame: FrameType | None) -> None:
        monitor.close()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)
    try:
        monitor.start(config.refresh_interval)
        app = NetflussApp(monitor=monitor)
        app.run()
    finally:
        monitor.close()


if __name__ == "__main__":
    main()
