# trackmix/utils/log.py
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .settings import config_dir

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(settings: dict, log_path: Path | None = None) -> Path | None:
    """Configure root logging to stderr and to trackmix.log; returns the log file path."""
    level = logging.getLevelName(str(settings.get("log_level", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)
    root = logging.getLogger()
    root.setLevel(level)

    p = log_path or (config_dir() / "trackmix.log")
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(p, maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).warning("File logging disabled: %s", e)
        return None
    fh.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root.addHandler(fh)
    return p
