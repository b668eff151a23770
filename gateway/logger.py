import logging
import sys
import threading
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from .params import Config


class LoggerManager:
    """Singleton logger manager with lazy initialization."""

    _logger: Optional[logging.Logger] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        raise TypeError(f"{cls.__name__} may not be instantiated")

    @classmethod
    def init(
        cls,
        log_file: Optional[str] = None,
        log_dir: Optional[str] = None,
        level: Optional[int] = None,
        when: str = "midnight",
        interval: int = 1,
        backup_count: int = 7,
    ) -> None:
        if cls._logger is not None:
            return

        with cls._lock:
            if cls._logger is not None:  # Double-check
                return

            log_file = log_file or Config.CG_LOG_FILE
            log_dir = log_dir or Config.CG_LOG_DIR
            if level is None:
                level = logging.getLevelName(Config.CG_LOG_LEVEL.upper())
                if not isinstance(level, int):
                    level = logging.INFO

            root_logger = logging.getLogger()
            root_logger.handlers.clear()
            root_logger.setLevel(level)

            formatter = logging.Formatter(
                "%(asctime)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )

            Path(log_dir).mkdir(parents=True, exist_ok=True)
            file_path = Path(log_dir) / log_file
            file_handler = TimedRotatingFileHandler(
                file_path, when=when, interval=interval, backupCount=backup_count
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)

            cls._logger = logging.getLogger("gateway")

    @classmethod
    def _ensure_logger(cls) -> logging.Logger:
        if cls._logger is None:
            cls.init()
        return cls._logger  # type: ignore

    @classmethod
    def info(cls, msg: str) -> None:
        cls._ensure_logger().info(msg)

    @classmethod
    def warn(cls, msg: str) -> None:
        cls._ensure_logger().warning(msg)

    @classmethod
    def error(cls, msg: str) -> None:
        cls._ensure_logger().error(msg)

    @classmethod
    def debug(cls, msg: str) -> None:
        cls._ensure_logger().debug(msg)
