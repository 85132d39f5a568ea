from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List

from catalog_filters.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
BACKEND_ROOT = Path(__file__).resolve().parents[2]

_configured = False


def configure_logging() -> None:
    """Install the root handlers once. Safe to call from every entrypoint."""
    global _configured
    if _configured:
        return
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file = str(settings.LOG_FILE or "").strip()
    if log_file:
        log_path = BACKEND_ROOT / settings.LOG_DIR / log_file
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    logging.basicConfig(
        level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
