import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict

_LOGGERS: Dict[str, logging.Logger] = {}

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _default_level() -> str:
    override = os.environ.get("ROOMCHAT_LOG_LEVEL", "").strip()
    if override:
        return override.upper()
    env = (os.environ.get("ROOMCHAT_ENV") or os.environ.get("NODE_ENV") or "").strip().lower()
    return "INFO" if env == "production" else "DEBUG"


def get_logger(name: str) -> logging.Logger:
    """
    Create or retrieve a named logger under the ``roomchat.`` namespace.

    Console output is always on. When ROOMCHAT_LOG_DIR is set, records are
    also written to one file per run inside that directory.
    """
    full_name = f"roomchat.{name}"
    if full_name in _LOGGERS:
        return _LOGGERS[full_name]

    logger = logging.getLogger(full_name)
    logger.setLevel(_default_level())

    formatter = logging.Formatter(_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    log_dir = os.environ.get("ROOMCHAT_LOG_DIR", "").strip()
    if log_dir:
        path = Path(log_dir).expanduser()
        path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        file_handler = logging.FileHandler(path / f"roomchat-{timestamp}.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    _LOGGERS[full_name] = logger
    return logger
