"""CLI entry point for TUI application.

This module handles command-line argument parsing, logging setup,
signal handling, and the main entry point.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.handlers
import signal
import sys
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console

from ..memory_backend import InMemoryBackend
from ..utils import Config, load_config
from .app import TUIApp
from .exceptions import ConfigError

logger = logging.getLogger(__name__)


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log line
        """
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "event": record.getMessage(),
            "context": {
                "module": record.module,
                "function": record.funcName,
                "line": record.lineno,
            },
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_context"):
            log_data["context"].update(record.extra_context)

        return json.dumps(log_data, default=str)


def _setup_logging(log_file: Path, debug: bool) -> None:
    """Setup structured JSON logging to file.

    Args:
        log_file: Path to log file
        debug: Enable debug level logging
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    # Create rotating file handler (10MB max, 3 backups)
    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(JSONFormatter())
    file_handler.setLevel(logging.DEBUG if debug else logging.INFO)

    root_logger.addHandler(file_handler)

    logger.info(
        "Logging initialized",
        extra={"extra_context": {"log_file": str(log_file), "debug": debug}},
    )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="docsearch-tui",
        description="Terminal UI for searching watched document folders",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=Path("./config.json"),
        help="Path to config.json (default: ./config.json, defaults apply if missing)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--watch",
        nargs="+",
        default=[],
        metavar="DIR",
        help="Folder(s) to watch on startup",
    )

    return parser.parse_args(argv)


# Global TUI app instance for signal handlers
_app_instance: TUIApp | None = None


def _signal_handler(signum: int, frame) -> None:
    """Handle shutdown signals.

    Args:
        signum: Signal number
        frame: Current stack frame
    """
    if _app_instance is None:
        sys.exit(130 if signum == signal.SIGINT else 1)

    logger.info(f"Received signal {signum}, initiating graceful shutdown")
    _app_instance.should_quit = True


async def _run(config: Config, watch_paths: list[str]) -> int:
    global _app_instance

    backend = InMemoryBackend(
        extensions=config.document_extensions,
        channel=config.push_channel,
    )
    try:
        _app_instance = TUIApp(config, backend, watch_paths=watch_paths)
        return await _app_instance.run()
    finally:
        backend.close()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for TUI application.

    Returns:
        Exit code (0=success, 1=error, 130=SIGINT)
    """
    args = _parse_args(argv)

    default_log_file = Config().log_file
    _setup_logging(default_log_file, args.debug)

    logger.info(
        "TUI starting",
        extra={"extra_context": {"config_path": str(args.config), "debug": args.debug}},
    )

    config_path = args.config.resolve()
    try:
        config = load_config(config_path)
    except ConfigError as err:
        console = Console()
        console.print(f"[red]Error loading config: {err}[/red]")
        logger.error(
            "Failed to load config",
            extra={"extra_context": {"error": str(err)}},
        )
        return 1

    if config.log_file != default_log_file:
        _setup_logging(config.log_file, args.debug)
    logger.info(
        "Config loaded successfully",
        extra={
            "extra_context": {
                "config_path": str(config_path),
                "page_size": config.page_size,
                "cache_dir": str(config.cache_dir),
            }
        },
    )

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        exit_code = asyncio.run(_run(config, args.watch))
    except KeyboardInterrupt:
        logger.info("TUI interrupted by user (KeyboardInterrupt)")
        return 130
    except Exception as err:
        logger.error(
            "TUI crashed with unhandled exception",
            extra={"extra_context": {"error": str(err)}},
            exc_info=True,
        )
        console = Console()
        console.print(f"[red]Fatal error: {err}[/red]")
        console.print(f"[dim]Check logs at: {config.log_file}[/dim]")
        return 1

    logger.info(
        "TUI exited",
        extra={"extra_context": {"exit_code": exit_code}},
    )
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
