from __future__ import annotations

import logging
import logging.handlers
import os

QUIET_LOGGERS = ("sqlalchemy.engine", "urllib3", "multipart")


def configure_logging(*, log_dir: str, level: str = "INFO", filename: str = "cafehoppr.log") -> None:
    """Attach console and rotating file handlers to the root logger once per process.

    The API service and the web frontend call this with their own ``filename`` so
    both can share one ``log_dir``.
    """
    os.makedirs(log_dir, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if root.handlers:
        return

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(formatter)

    file_handler = logging.handlers.RotatingFileHandler(
        filename=os.path.join(log_dir, filename),
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    root.addHandler(console)
    root.addHandler(file_handler)
