from __future__ import annotations

import logging
from pathlib import Path


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEBUG_LOGGER = "creditwatch.debug"


def _has_file_handler(logger: logging.Logger, log_path: Path) -> bool:
    target = str(log_path.resolve())
    return any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == target
        for handler in logger.handlers
    )


def setup_debug_logging(base_dir: Path, *, level: int = logging.DEBUG) -> logging.Logger:
    """
    Route the ``creditwatch.debug.*`` event loggers (``store.ingest``,
    ``engine.rule_skipped`` ...) to ``<base_dir>/logs/debug.log``.

    Idempotent per file; the events stay out of the console output.
    """
    log_path = Path(base_dir) / "logs" / "debug.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(DEBUG_LOGGER)
    if not _has_file_handler(logger, log_path):
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def configure_logging(base_dir: Path, *, verbose: bool = False) -> None:
    """Console logging for the CLI plus the debug event file under ``base_dir``."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    setup_debug_logging(base_dir)
