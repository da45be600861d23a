from __future__ import annotations

import logging
import sys

from pythonjsonlogger import jsonlogger

_FIELDS = "%(asctime)s %(levelname)s %(name)s %(filename)s %(lineno)d %(message)s"


def setup_logging(level: int | str = logging.INFO, *, json_format: bool = True) -> None:
    """
    Configure the root logger with a single stderr handler.

    JSON lines by default (one object per record, source file and line
    included); ``json_format=False`` gives plain text for local runs.
    Call this ONCE, before the server starts.
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    if json_format:
        fmt = jsonlogger.JsonFormatter(_FIELDS, rename_fields={"levelname": "level", "asctime": "time"})
    else:
        fmt = logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s %(filename)s:%(lineno)d: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    logging.captureWarnings(True)
