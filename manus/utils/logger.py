"""
Global logger manager built on loguru.

Configuration via environment (or .env file):
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL (default INFO)
- LOG_MODE: development (stderr) or production (rotating files)
- LOG_DIR: where production log files go (default logs)
- LOG_ROTATION / LOG_RETENTION / LOG_COMPRESSION: loguru file sink options
"""

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import BaseModel

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "{extra[name]}:{function}:{line} - {message}"
)


class LogSettings(BaseModel):
    level: str = "INFO"
    # Anything other than "production" logs to the console
    mode: str = "development"
    directory: Path = Path("logs")
    rotation: str = "10 MB"
    retention: str = "7 days"
    compression: str = "zip"

    @classmethod
    def from_env(cls) -> "LogSettings":
        values = {
            "level": os.getenv("LOG_LEVEL"),
            "mode": os.getenv("LOG_MODE"),
            "directory": os.getenv("LOG_DIR"),
            "rotation": os.getenv("LOG_ROTATION"),
            "retention": os.getenv("LOG_RETENTION"),
            "compression": os.getenv("LOG_COMPRESSION"),
        }
        if values["level"]:
            values["level"] = values["level"].upper()
        if values["mode"]:
            values["mode"] = values["mode"].lower()
        return cls(**{k: v for k, v in values.items() if v})


class LoggerManager:
    """Process-wide loguru configuration.

    Only sinks are global; loggers handed out by :meth:`get_logger` are
    cheap ``bind`` views tagged with the calling module name.
    """

    _instance: Optional["LoggerManager"] = None

    def __new__(cls) -> "LoggerManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.settings = LogSettings.from_env()
            cls._instance._configure()
        return cls._instance

    def _configure(self) -> None:
        logger.remove()
        if self.settings.mode == "production":
            self._add_file_sinks()
        else:
            logger.add(
                sys.stderr,
                format=CONSOLE_FORMAT,
                level=self.settings.level,
                colorize=True,
                backtrace=True,
                diagnose=True,
            )

    def _add_file_sinks(self) -> None:
        """Rotating run log plus a separate error log."""
        self.settings.directory.mkdir(parents=True, exist_ok=True)

        for filename, level in (
            ("manus_{time:YYYY-MM-DD}.log", self.settings.level),
            ("manus_error_{time:YYYY-MM-DD}.log", "ERROR"),
        ):
            logger.add(
                self.settings.directory / filename,
                format=FILE_FORMAT,
                level=level,
                rotation=self.settings.rotation,
                retention=self.settings.retention,
                compression=self.settings.compression,
                encoding="utf-8",
                enqueue=True,
            )

    def get_logger(self, name: Optional[str] = None):
        """Return a logger bound to ``name`` (``"root"`` when omitted)."""
        return logger.bind(name=name or "root")

    def set_level(self, level: str) -> None:
        """Change the log level at runtime by rebuilding the sinks."""
        self.settings = self.settings.model_copy(update={"level": level.upper()})
        self._configure()


def get_logger(name: Optional[str] = None):
    """
    Module logger; the usual entry point.

        from manus.utils.logger import get_logger

        log = get_logger(__name__)
        log.info("Agent started")
    """
    return LoggerManager().get_logger(name)


def set_log_level(level: str) -> None:
    LoggerManager().set_level(level)


__all__ = ["LoggerManager", "LogSettings", "get_logger", "set_log_level"]
