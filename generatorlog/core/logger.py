"""
Logging setup for GeneratorLog.

Modules log through get_logger(__name__); handlers live on the root logger and
are installed once by configure_app_logging() when the app starts.
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_DIR = Path(__file__).parent.parent.parent / "logs"

# RequestLoggingMiddleware already writes one line per request
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_app_logging(
    level: int | str = logging.INFO,
    log_to_file: bool = True,
    log_file: str = "generatorlog.log",
    log_dir: Path = LOG_DIR,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> None:
    """
    Install console (and optionally rotating file) handlers on the root logger.

    Calling it again replaces the handlers instead of stacking them.

    Args:
        level: Root level, as a number or a name such as "DEBUG".
            Unknown names fall back to INFO.
        log_to_file: Also write to log_dir / log_file
        max_bytes: Size at which the file is rotated
        backup_count: Rotated files to keep
    """
    level = _resolve_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_to_file:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_dir / log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        ))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
