import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

DEFAULT_RUNTIME = "relay"

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_LOGGERS: Dict[str, logging.Logger] = {}

# Process-wide output configuration, applied to every logger created
# before or after configure_logging() runs.
_terminal_level: Optional[int] = logging.INFO
_file_level: Optional[int] = None
_log_dir = Path("logs")
_file_stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
_file_handlers: Dict[str, logging.FileHandler] = {}


def _file_handler(runtime: str, formatter: logging.Formatter) -> logging.FileHandler:
    """
    One log file per runtime per process run, shared by all loggers of
    that runtime.
    """
    handler = _file_handlers.get(runtime)
    if handler is None:
        _log_dir.mkdir(parents=True, exist_ok=True)
        logfile = _log_dir / f"{runtime}-{_file_stamp}.log"
        handler = logging.FileHandler(logfile, encoding="utf-8")
        handler.setFormatter(formatter)
        _file_handlers[runtime] = handler
    handler.setLevel(_file_level)
    return handler


def _apply_handlers(logger: logging.Logger, runtime: str) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    # ------------------------------
    # Console handler
    # ------------------------------
    if _terminal_level is not None:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        console.setLevel(_terminal_level)
        logger.addHandler(console)

    # ------------------------------
    # File handler (one per run)
    # ------------------------------
    if _file_level is not None:
        logger.addHandler(_file_handler(runtime, formatter))

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())


def get_logger(
    name: str,
    *,
    runtime: str = DEFAULT_RUNTIME,
) -> logging.Logger:
    """
    Create or retrieve a named logger.

    Parameters:
    - name: logger namespace (e.g. core.dispatch, discord.gateway)
    - runtime: log file prefix (relay | discord)
    """
    cache_key = f"{runtime}:{name}"
    if cache_key in _LOGGERS:
        return _LOGGERS[cache_key]

    logger = logging.getLogger(cache_key)
    logger.setLevel(logging.DEBUG)
    _apply_handlers(logger, runtime)

    logger.propagate = False
    _LOGGERS[cache_key] = logger

    return logger


def configure_logging(
    *,
    terminal_level: Optional[int] = logging.INFO,
    file_level: Optional[int] = None,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Apply output levels to all loggers, including the ones created at
    import time before settings were loaded.

    A level of None disables that backend.
    """
    global _terminal_level, _file_level, _log_dir

    _terminal_level = terminal_level
    _file_level = file_level
    if log_dir is not None:
        _log_dir = Path(log_dir)

    for handler in _file_handlers.values():
        handler.close()
    _file_handlers.clear()

    for cache_key, logger in _LOGGERS.items():
        runtime = cache_key.split(":", 1)[0]
        _apply_handlers(logger, runtime)
