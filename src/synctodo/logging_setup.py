from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

_HANDLER_TAG = "_synctodo_handler"


class _NoiseFilter(logging.Filter):
    """
    Keep synctodo logs, but only let third-party records through at WARNING+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == "synctodo" or record.name.startswith("synctodo."):
            return True
        return record.levelno >= logging.WARNING


# PUBLIC_INTERFACE
def setup_logging(
    level: Union[str, int] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """
    Configure logging for the service:
    - Console handler at `level`, filtered for third-party noise
    - Optional file handler capturing DEBUG and up

    Handlers are attached to the root logger and tagged, so calling this more
    than once replaces our handlers without touching anyone else's.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, _HANDLER_TAG, False):
            root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    ch.addFilter(_NoiseFilter())
    setattr(ch, _HANDLER_TAG, True)
    root.addHandler(ch)

    app_logger = logging.getLogger("synctodo")
    app_logger.setLevel(logging.DEBUG if log_file else level)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        setattr(fh, _HANDLER_TAG, True)
        root.addHandler(fh)

    logging.captureWarnings(True)
