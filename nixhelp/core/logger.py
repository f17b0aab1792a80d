"""Unified logging for nixhelp with console and file output."""
import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)

# Track which file (if any) the nixhelp logger writes to
_file_handler: Optional[logging.FileHandler] = None


def setup_file_logging(log_file: Union[str, Path], verbose: bool = False) -> Path:
    """Set up file logging for nixhelp operations.

    Args:
        log_file: Path to log file (normally <config_dir>/logs/nixhelp.log)
        verbose: Enable debug-level logging

    Returns:
        Path of the log file actually in use

    Note:
        Creates the log directory if it doesn't exist. Calling again with a
        different path moves file logging to the new path.
    """
    global _file_handler

    target_log_file = Path(log_file)
    root_logger = logging.getLogger("nixhelp")
    level = logging.DEBUG if verbose else logging.INFO

    if _file_handler is not None:
        if Path(_file_handler.baseFilename) == target_log_file.resolve():
            _file_handler.setLevel(level)
            root_logger.setLevel(level)
            return target_log_file
        root_logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

    target_log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(target_log_file)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root_logger.addHandler(file_handler)
    root_logger.setLevel(level)
    _file_handler = file_handler

    root_logger.debug(f"nixhelp logging initialized: {target_log_file}")
    return target_log_file


def set_console_level(verbose: bool) -> None:
    """Switch every nixhelp console handler between INFO and DEBUG."""
    level = logging.DEBUG if verbose else logging.INFO
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger) or not name.startswith("nixhelp"):
            continue
        for handler in logger.handlers:
            if isinstance(handler, RichHandler):
                handler.setLevel(level)
        logger.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger instance with console output.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger with Rich console handler

    Note:
        File logging must be enabled separately via setup_file_logging()
    """
    logger = logging.getLogger(name)

    # Only add console handler if not already present
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger
