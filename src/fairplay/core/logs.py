from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    root = logging.getLogger("fairplay")
    root.setLevel(level if isinstance(level, int) else level.upper())
    if not any(getattr(h, "_fairplay", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._fairplay = True  # type: ignore[attr-defined]
        root.addHandler(handler)
