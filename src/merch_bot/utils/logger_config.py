"""
Logging setup for Merch Bot
Format: YYYY-MM-DD HH:MM:SS - [Module] - [Source] - Description
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = 'merch_bot'

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',     # Cyan
    'INFO': '\033[32m',      # Green
    'WARNING': '\033[33m',   # Yellow
    'ERROR': '\033[31m',     # Red
    'CRITICAL': '\033[35m',  # Magenta
}
_RESET = '\033[0m'


class CheckoutFormatter(logging.Formatter):
    """Formatter with module and source context, coloured for terminals"""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record):
        module = getattr(record, 'module_name', None) or record.name.rsplit('.', 1)[-1].upper()
        source = getattr(record, 'source', 'CORE')
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')

        formatted = f"{timestamp} - [{module}] - [{source}] - {record.getMessage()}"
        if record.exc_info:
            formatted = f"{formatted}\n{self.formatException(record.exc_info)}"

        if not self.use_color:
            return formatted
        color = _LEVEL_COLORS.get(record.levelname, '')
        return f"{color}{formatted}{_RESET}"


def setup_logger(name: str = ROOT_LOGGER_NAME, level: int = logging.INFO) -> logging.Logger:
    """Install the console handler on the package logger (idempotent)"""
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if any(getattr(h, '_merch_bot_console', False) for h in logger.handlers):
        logger.setLevel(level)
        return logger

    logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(CheckoutFormatter())
    console_handler._merch_bot_console = True

    logger.addHandler(console_handler)
    logger.propagate = False

    return logger


def attach_run_log(run_dir: Path, name: str = ROOT_LOGGER_NAME) -> Optional[logging.Handler]:
    """Mirror the package log into <run_dir>/run.log"""
    logger = logging.getLogger(name)
    try:
        run_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(run_dir / 'run.log', encoding='utf-8')
    except OSError as e:
        logger.warning(f"⚠️ Could not open run log in {run_dir}: {e}")
        return None

    file_handler.setFormatter(CheckoutFormatter(use_color=False))
    logger.addHandler(file_handler)
    return file_handler


def log(logger, level, message, module='SYSTEM', source='CORE'):
    """Helper function to log with module and source context"""
    extra = {'module_name': module, 'source': source}
    logger.log(logging.getLevelName(level.upper()), message, extra=extra)
