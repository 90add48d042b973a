"""Logging helpers that avoid heavy dependencies."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def setup_operational_logger(
    level: str = "info",
    *,
    log_path: str | None = None,
    logger_name: str = "nativebuild",
) -> logging.Logger:
    """
    Configure the `nativebuild` logger hierarchy for a CLI run.

    Records go to stderr at `level` and, when `log_path` is set, to a UTF-8 file
    at DEBUG. Library modules log through `logging.getLogger(__name__)` and
    propagate here.
    """

    numeric_level = logging.getLevelName(level.strip().upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level!r}")

    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(numeric_level)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_path:
        directory = os.path.dirname(os.path.abspath(log_path))
        os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    logger.debug("Operational logging initialized (level=%s log_path=%s)", level, log_path)
    return logger


def write_graph_log(path: str, payload: dict[str, Any]) -> None:
    """Write a stage graph payload as UTF-8 JSON."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as file:
        json.dump(payload, file, indent=2, ensure_ascii=False)
        file.write("\n")
