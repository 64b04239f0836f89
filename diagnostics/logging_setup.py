from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from .log_buffer import LOG_BUFFER, BufferHandler

LOGGER_NAME = "closurelab"
_FORMAT = "ts=%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)s"

_CONFIGURED = False
_HANDLER: Optional[logging.Handler] = None


def configure_logging(base_dir: Optional[Path] = None, *, to_file: bool = True) -> Dict[str, str]:
    global _CONFIGURED, _HANDLER
    root = base_dir or Path("data/roaming")
    log_dir = root / "logs"
    log_path = log_dir / "closurelab.log"

    logger_name = LOGGER_NAME if base_dir is None else f"{LOGGER_NAME}.test"
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    handlers = ["buffer"]
    if not any(isinstance(h, BufferHandler) for h in logger.handlers):
        logger.addHandler(BufferHandler(LOG_BUFFER))

    if to_file:
        handlers.append("file")
        if base_dir is None and not _CONFIGURED:
            log_dir.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_path, encoding="utf-8")
            handler.setFormatter(logging.Formatter(_FORMAT))
            logger.addHandler(handler)
            _HANDLER = handler
            _CONFIGURED = True
        elif base_dir is not None and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
            log_dir.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_path, encoding="utf-8")
            handler.setFormatter(logging.Formatter(_FORMAT))
            logger.addHandler(handler)

    return {
        "log_path": str(log_path),
        "format": "kv",
        "handlers": ",".join(handlers),
        "logger_name": logger_name,
    }


def get_logger(area: Optional[str] = None) -> logging.Logger:
    if not area:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{area}")
