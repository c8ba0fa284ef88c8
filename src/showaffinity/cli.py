"""Command-line entry point for showaffinity."""

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from typing import TextIO

from textual.logging import TextualHandler

from showaffinity.config import ReportConfig
from showaffinity.errors import ShowAffinityError
from showaffinity.host import Host, LinuxHost
from showaffinity.report import write_report
from showaffinity.scanner import Scanner

log = logging.getLogger("showaffinity")

SHOW_ALL_TOKEN = "all"
LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _mode(value: str) -> str:
    if value.lower() != SHOW_ALL_TOKEN:
        raise argparse.ArgumentTypeError(f"unknown mode {value!r}, expected '{SHOW_ALL_TOKEN}'")
    return SHOW_ALL_TOKEN


def configure_logging(verbose: bool, tui: bool = False) -> logging.Handler:
    """
    Install the root log handler.

    The viewer owns the terminal, so its records go to the Textual devtools
    console instead of stderr.
    """
    handler: logging.Handler = TextualHandler() if tui else logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, handlers=[handler])
    return handler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="showaffinity",
        description="Show the CPU affinity of your processes' threads.",
    )
    parser.add_argument(
        "mode",
        nargs="?",
        type=_mode,
        help="'all' to include threads that are not running",
    )
    parser.add_argument("--tui", action="store_true", help="open the interactive viewer")
    parser.add_argument("--proc-root", help="proc filesystem mount point (default: /proc)")
    parser.add_argument("-v", "--verbose", action="store_true", help="log skipped entries")
    return parser


def main(
    argv: Sequence[str] | None = None,
    stdout: TextIO | None = None,
    host_factory: Callable[[ReportConfig], Host] | None = None,
) -> int:
    """
    Run showaffinity and return the process exit status.

    Args:
        argv: Command-line arguments, without the program name.
        stdout: Stream the report is written to. Defaults to ``sys.stdout``.
        host_factory: Builds the host from the config. Defaults to LinuxHost.
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.tui)

    try:
        config = ReportConfig.load(show_all=args.mode == SHOW_ALL_TOKEN, proc_root=args.proc_root)
        if host_factory is None:
            host: Host = LinuxHost(config.proc_root, config.max_cpus)
        else:
            host = host_factory(config)

        if args.tui:
            from showaffinity.app import AffinityApp

            app = AffinityApp(host, config)
            app.run()
            return 1 if app.failed else 0

        scanner = Scanner(host, setsize_bits=config.setsize_bits)
        log.debug("host has %d logical CPUs, mask width %d bits", host.cpu_count(), scanner.setsize_bits)
        count = write_report(scanner.scan(config.show_all), stdout or sys.stdout)
    except ShowAffinityError as e:
        log.error("%s", e)
        return 1

    log.debug("reported %d threads", count)
    return 0


if __name__ == "__main__":
    sys.exit(main())
