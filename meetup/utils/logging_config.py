import logging
import logging.config
import os
from pathlib import Path
from typing import Iterable

_DEFAULT_LOG_DIR = "logs"
_DEFAULT_MAX_BYTES = 5 * 1024 * 1024
_DEFAULT_BACKUP_COUNT = 3


def _prune_backups(log_dir: Path, base_name: str, backup_count: int) -> None:
    if backup_count < 1:
        return
    candidates: Iterable[Path] = sorted(
        log_dir.glob(f"{base_name}.*"),
        key=lambda path: path.stat().st_mtime,
        reverse=True,
    )
    for stale in list(candidates)[backup_count:]:
        try:
            stale.unlink()
        except OSError:
            continue


def _env_int(name: str, fallback: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback


def build_logging_config(log_dir: Path, max_bytes: int, backup_count: int) -> dict:
    app_log = str(log_dir / "meetup.log")
    error_log = str(log_dir / "error.log")
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": "INFO",
            },
            "file_app": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "default",
                "filename": app_log,
                "maxBytes": max_bytes,
                "backupCount": backup_count,
                "level": "INFO",
                "encoding": "utf8",
            },
            "file_error": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "default",
                "filename": error_log,
                "maxBytes": max_bytes,
                "backupCount": backup_count,
                "level": "ERROR",
                "encoding": "utf8",
            },
        },
        "loggers": {
            "": {
                "handlers": ["console", "file_app", "file_error"],
                "level": "INFO",
                "propagate": True,
            },
            "uvicorn": {
                "handlers": ["console", "file_app"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["console", "file_app"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.error": {
                "handlers": ["console", "file_error"],
                "level": "INFO",
                "propagate": False,
            },
            "audit": {
                "handlers": ["console", "file_app"],
                "level": "INFO",
                "propagate": False,
            },
            "database": {
                "handlers": ["console", "file_app", "file_error"],
                "level": "INFO",
                "propagate": False,
            },
            "meetup": {
                "handlers": ["console", "file_app", "file_error"],
                "level": "DEBUG",
                "propagate": False,
            },
        },
    }


def setup_logging():
    """
    Configures logging for the service.
    Logs are written to '<MEETUP_LOG_DIR>/meetup.log' and '<MEETUP_LOG_DIR>/error.log'.
    """
    log_dir = Path(os.getenv("MEETUP_LOG_DIR", _DEFAULT_LOG_DIR))
    log_dir.mkdir(parents=True, exist_ok=True)
    max_bytes = _env_int("LOG_MAX_BYTES", _DEFAULT_MAX_BYTES)
    backup_count = _env_int("LOG_BACKUP_COUNT", _DEFAULT_BACKUP_COUNT)
    _prune_backups(log_dir, "meetup.log", backup_count)
    _prune_backups(log_dir, "error.log", backup_count)

    logging.config.dictConfig(build_logging_config(log_dir, max_bytes, backup_count))
    logging.info("Logging configured successfully.")
