"""
Logging Configuration
Sets up file-based logging with a separate rotating log file per subsystem
"""

import os
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

# Log format
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Max log file size (10MB)
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

# logger name -> file name
LOG_FILES = {
    "banb.api": "api.log",
    "banb.gateway": "gateway.log",
    "banb.agent": "agent.log",
    "banb.llm": "llm_client.log",
    "banb.tools": "tools.log",
    "banb.operations": "operations.log",
    "banb.mcp_server": "mcp_server.log",
}


def setup_file_logger(name: str, log_file: Path, level: int = logging.INFO) -> logging.Logger:
    """
    Set up a file-based logger with rotation

    Args:
        name: Logger name
        log_file: Path to log file
        level: Logging level

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    # Only warnings and errors reach the console
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def setup_logging(log_dir: Optional[str] = None, log_level: Optional[str] = None) -> Path:
    """
    Set up all Banb loggers. Returns the directory the log files are written to.
    """
    directory = Path(log_dir or os.getenv("LOG_DIR", "./logs"))
    directory.mkdir(parents=True, exist_ok=True)

    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    for name, file_name in LOG_FILES.items():
        setup_file_logger(name, directory / file_name, level)

    logging.getLogger("banb.api").info("Logging initialized. Log files in: %s", directory)
    return directory


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger by name
    """
    return logging.getLogger(name)
