"""
Centralized logging configuration for the campaign generator.

Usage:
    from act_generator.logging_config import setup_logging

    logger = setup_logging(__name__)
    logger.info("Generation started")
    logger.warning("Regex rejected")
    logger.error("Invalid job config")
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def setup_logging(
    module_name: str,
    log_level: Optional[str] = None,
    log_dir: Optional[str] = None,
    console_output: Optional[bool] = None,
) -> logging.Logger:
    """
    Set up logging for a module with both file and console output.

    Args:
        module_name: Name of the module (use __name__)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
            Defaults to ACT_GEN_LOG_LEVEL or INFO.
        log_dir: Directory for log files. Defaults to ACT_GEN_LOG_DIR or logs/
        console_output: Whether to output to console.
            Defaults to ACT_GEN_LOG_CONSOLE or True.

    Returns:
        Configured logger instance

    Log Levels:
        DEBUG: Per-row flow (rule matches, skips, variation counts)
        INFO: Batch start/finish with counts
        WARNING: Rejected regexes, unknown operators, duplicate row ids
        ERROR: Invalid job configs

    Log Files:
        Format: {log_dir}/{module}_{date}.log
        Example: logs/orchestrator_2026-02-14.log
    """
    log_level = (log_level or os.getenv("ACT_GEN_LOG_LEVEL") or "INFO").upper()
    log_dir = log_dir or os.getenv("ACT_GEN_LOG_DIR") or "logs"
    if console_output is None:
        console_output = _env_bool("ACT_GEN_LOG_CONSOLE", True)

    logger = logging.getLogger(module_name)
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Prevent duplicate handlers if setup_logging called multiple times
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt='%(asctime)s | %(name)s | %(levelname)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    today = datetime.now().strftime("%Y-%m-%d")
    simple_module = module_name.split('.')[-1]
    log_file = log_path / f"{simple_module}_{today}.log"

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logger.level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logger.level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(module_name: str) -> logging.Logger:
    """
    Get an existing logger or create a new one with default settings.
    """
    logger = logging.getLogger(module_name)
    if not logger.handlers:
        return setup_logging(module_name)
    return logger


def init_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    console_output: Optional[bool] = None,
) -> None:
    """Initialize the package logger (used by the CLI)."""
    setup_logging("act_generator", log_level=log_level, log_dir=log_dir, console_output=console_output)
