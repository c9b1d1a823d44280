"""
devloop command-line driver.

Parses the command line, configures logging, wires the Supervisor, the
ChangeWatcher and the Coordinator together, and turns their outcome into the
process exit status: the child's own exit code, or the exit code of the fatal
error that stopped the loop.
"""

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Sequence

from . import __version__
from .config import config
from .coordinator import Coordinator
from .exceptions import DevloopError
from .filters import ChangeFilter
from .process import Supervisor
from .watcher import ChangeWatcher

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def configure_logging(level: str = None):
    """Log to stderr, and to a rotating file when enabled. Stdout belongs to the child."""
    log_formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(log_formatter)
    handlers = [console_handler]

    if config.log_to_file:
        config.ensure_dirs()
        # Rotating file handler (auto-compaction)
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
        )
        file_handler.setFormatter(log_formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=(level or config.log_level).upper(),
        handlers=handlers,
        force=True,
    )


def parse_args(argv: Sequence[str] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="devloop",
        description="Run a program and restart it when source files next to it change.",
    )
    parser.add_argument("target", help="Program to run. Its directory is watched recursively.")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments passed to the target.")
    parser.add_argument(
        "--ext",
        action="append",
        dest="extensions",
        help="File extension that triggers a restart (repeatable, default: %s)."
        % ",".join(config.extensions),
    )
    parser.add_argument(
        "--exclude",
        action="append",
        dest="exclude_dirs",
        help="Directory name whose changes are ignored, e.g. node_modules (repeatable).",
    )
    parser.add_argument(
        "--interpreter",
        default=config.interpreter,
        help="Interpreter used to run the target (default: %(default)s).",
    )
    parser.add_argument(
        "--exec",
        action="store_true",
        dest="direct",
        help="Run the target directly instead of through the interpreter.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: %s)." % config.log_level)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def build_command(args: argparse.Namespace) -> tuple[str, list[str]]:
    """Return (command, arguments) used to launch the target."""
    extra = list(args.args)
    if extra and extra[0] == "--":
        extra = extra[1:]
    if args.direct or not args.interpreter:
        return args.target, extra
    return args.interpreter, [args.target, *extra]


def main(argv: Sequence[str] = None) -> int:
    """Run the development loop. Returns the exit status."""
    args = parse_args(argv)
    configure_logging(args.log_level)

    command, command_args = build_command(args)
    change_filter = ChangeFilter(
        extensions=args.extensions or config.extensions,
        exclude_dirs=args.exclude_dirs or config.exclude_dirs,
    )
    watch_root = Path(args.target).resolve().parent
    logger.info(f"devloop {__version__}: {change_filter!r} on {watch_root}")

    supervisor = Supervisor()
    coordinator = Coordinator(
        supervisor,
        ChangeWatcher(watch_root),
        change_filter,
        command,
        command_args,
    )

    try:
        exit_code = coordinator.run()
    except DevloopError as e:
        logger.error(str(e))
        return e.exit_code
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_INTERRUPTED

    logger.info(f"Exiting with code {exit_code} after {coordinator.restarts} restarts")
    return exit_code if exit_code is not None else 0


def run():
    """Console script entry point."""
    sys.exit(main())
