"""Logging setup, progress tracking and config dumps for archive runs."""

import copy
import logging
import logging.handlers
import time
from typing import Any, Dict, List, Optional

import colorlog

LOGGER_NAME = 'clickup_archiver'
REDACTED = "***REDACTED***"

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

SENSITIVE_KEYS = ('api_token', 'token', 'password', 'secret', 'auth_header')

# Log files rotate at 10MB, five files kept
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _resolve_level(verbosity: int, level: Optional[str]) -> int:
    """An explicit level name wins over the -v count."""
    if level:
        name = level.upper()
        if name not in LOG_LEVELS:
            raise ValueError(f"Invalid log level '{level}'. Must be one of: {', '.join(LOG_LEVELS)}")
        return getattr(logging, name)
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Configure the ``clickup_archiver`` logger.

    Console output is colored through colorlog; ``log_file`` adds a plain
    rotating file handler. Third-party loggers stay at WARNING.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG
        log_file: Optional path to a log file
        log_format: Optional record format
        date_format: Optional date format
        level: Optional level name, overrides verbosity

    Returns:
        The configured package logger

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    log_level = _resolve_level(verbosity, level)
    log_format = log_format or DEFAULT_LOG_FORMAT
    date_format = date_format or DEFAULT_DATE_FORMAT

    logging.basicConfig(level=logging.WARNING, format=log_format, datefmt=date_format)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors=LOG_COLORS
    ))
    handlers: List[logging.Handler] = [console]

    file_error = None
    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding='utf-8'
            )
            file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
            handlers.append(file_handler)
        except OSError as e:
            file_error = e

    for handler in handlers:
        handler.setLevel(log_level)
        logger.addHandler(handler)

    if file_error is not None:
        logger.warning(f"Could not open log file {log_file}: {file_error}")
    logger.info(f"Log level {logging.getLevelName(log_level)}, "
                f"{'file ' + log_file if log_file and file_error is None else 'console only'}")
    return logger


def format_elapsed(seconds: float) -> str:
    """Render a duration as ``4.2s``, ``3m 5s`` or ``1h 2m 5s``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m {secs}s"


class ProgressTracker:
    """
    Counts processed items inside a ``with`` block.

    A progress line is logged every ``log_every`` items and after each
    failure; leaving the block logs a one-line summary whose level reflects
    how many items failed.
    """

    def __init__(self, total_items: int, item_type: str = "items", log_every: int = 10):
        self.total_items = total_items
        self.item_type = item_type
        self.log_every = max(1, log_every)
        self.processed_items = 0
        self.successful_items = 0
        self.failed_items = 0
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(LOGGER_NAME)

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.info(f"Processing {self.total_items} {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return

        if self.failed_items and self.failed_items == self.total_items:
            log = self.logger.error
        elif self.failed_items:
            log = self.logger.warning
        else:
            log = self.logger.info
        log(
            f"{self.item_type.capitalize()}: {self.successful_items}/{self.total_items} succeeded, "
            f"{self.failed_items} failed in {format_elapsed(self.elapsed)}"
        )

    @property
    def elapsed(self) -> float:
        return 0.0 if self.start_time is None else time.time() - self.start_time

    def increment(self, success: bool = True) -> None:
        """Count one processed item."""
        self.processed_items += 1
        if success:
            self.successful_items += 1
        else:
            self.failed_items += 1

        if not success or self.processed_items % self.log_every == 0:
            self.logger.info(
                f"{self.item_type.capitalize()} {self.processed_items}/{self.total_items} done"
                + ("" if success else " (last one failed)")
            )

    def get_stats(self) -> Dict[str, Any]:
        return {
            'total': self.total_items,
            'processed': self.processed_items,
            'successful': self.successful_items,
            'failed': self.failed_items,
            'elapsed_time': self.elapsed,
            'elapsed_time_formatted': format_elapsed(self.elapsed)
        }


def log_section(title: str) -> None:
    """Log a banner line block for a run phase."""
    logger = logging.getLogger(LOGGER_NAME)
    banner = "=" * 60
    for line in (banner, f"  {title.upper()}", banner):
        logger.info(line)


def log_config(config: Dict[str, Any]) -> None:
    """Log the effective configuration with secrets masked."""
    logger = logging.getLogger(LOGGER_NAME)
    masked = _sanitize_config(config)
    clickup = masked.get('clickup', {})
    crawl = masked.get('crawl', {})
    advanced = masked.get('advanced', {})

    log_section("Configuration")
    logger.info(f"API: {clickup.get('base_url', 'Not Set')} (v3: {clickup.get('base_url_v3', 'Not Set')})")
    logger.info(f"API Token: {clickup.get('api_token') or 'Not Set'}")
    if clickup.get('verify_ssl') is False:
        logger.info("SSL Verification: disabled")
    logger.info(f"Workspace: {crawl.get('workspace_id') or 'All Workspaces'}")
    logger.info(f"Space: {crawl.get('space_id') or 'All Spaces'}")
    logger.info(f"Docs: {crawl.get('include_docs', True)}, Tasks: {crawl.get('include_tasks', True)}")
    logger.info(f"Output Directory: {masked.get('export', {}).get('output_directory', './output')}")
    if advanced:
        logger.debug(
            f"Timeout {advanced.get('request_timeout')}s, {advanced.get('max_retries')} retries, "
            f"delays document={advanced.get('document_delay')}s "
            f"task_detail={advanced.get('task_detail_delay')}s space={advanced.get('space_delay')}s"
        )


def _sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Deep copy of ``config`` with every non-empty secret string replaced."""
    def mask(value: Any, key: str = '') -> Any:
        if isinstance(value, dict):
            return {k: mask(v, str(k)) for k, v in value.items()}
        if isinstance(value, list):
            return [mask(item, key) for item in value]
        if value and isinstance(value, str) and any(s in key.lower() for s in SENSITIVE_KEYS):
            return REDACTED
        return value

    return mask(copy.deepcopy(config))


__all__ = [
    'setup_logging',
    'format_elapsed',
    'ProgressTracker',
    'log_section',
    'log_config'
]
