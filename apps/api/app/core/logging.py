import logging
from typing import Optional

from app.core.config import get_settings


DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Initialize the root logger once with a single stream handler."""
    resolved_level = getattr(logging, (level or get_settings().log_level).upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(resolved_level)

    # uvicorn --reload 시 핸들러가 중복되지 않도록 초기화
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    if not logging.getLogger().handlers:
        setup_logging()
    return logging.getLogger(name)
