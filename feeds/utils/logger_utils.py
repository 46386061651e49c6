import logging
import os
from logging.handlers import RotatingFileHandler

from .env import log_dir

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(feed_name: str, level: int | str = logging.INFO) -> logging.Logger:
    """Configure root logging for one feed process and return its logger.

    Messages go to ``stdout`` and to ``logs/<feed_name>.log`` (rotated at 2 MB,
    five backups). Calling it twice for the same process does not duplicate
    handlers.
    """

    directory = log_dir()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / f"{feed_name}.log"

    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    existing = {getattr(handler, "baseFilename", None) for handler in root.handlers}
    if os.path.abspath(log_path) not in existing:
        file_handler = RotatingFileHandler(log_path, maxBytes=2 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if not any(type(handler) is logging.StreamHandler for handler in root.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)

    return logging.getLogger(f"feeds.{feed_name}")


__all__ = ["LOG_FORMAT", "setup_logging"]
