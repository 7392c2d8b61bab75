"""
Order Service — ロギング設定

ルートロガーに標準出力ハンドラを1つだけ付ける。lifespan の開始時に呼ぶ。
"""

import logging
import sys

from . import config


def setup_logging(level: str | None = None, format_string: str | None = None) -> None:
    log_level = level or config.LOG_LEVEL
    log_format = format_string or config.LOG_FORMAT

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(stream_handler)

    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging configured at %s level", log_level)
