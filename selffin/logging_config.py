# selffin/logging_config.py
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

_installed_handlers = []


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None):
    """
    Configure root logging for the CLI and the API.
    A rotating file handler is added only when a log directory is given.
    Calling it again replaces the handlers from the previous call.
    """
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in _installed_handlers:
        logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    _installed_handlers.append(console)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        log_file = path / "selffin.log"
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1_000_000,  # 1 MB per file
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s - %(message)s")
        )
        _installed_handlers.append(file_handler)

    for handler in _installed_handlers:
        logger.addHandler(handler)
    if log_dir:
        logger.info("Logging initialized. Log file at %s", log_file)
