import logging
import sys
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

from .errors import ConfigError

LOGGER_NAME = "pullchain"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_level(level: Union[str, int]) -> int:
    """Turn a level name or number into a logging level, rejecting unknown names."""
    if isinstance(level, int):
        return level
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ConfigError(f"Unknown log level: {level}")
    return numeric_level


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    force: bool = False,
    rich_console: Optional[bool] = None,
) -> logging.Logger:
    """
    Set up logging for pullchain.

    Pipeline results are written to stdout, so console logs always go to
    stderr. On a terminal they are rendered by rich.

    Args:
        level: Logging level name or number
        log_file: Optional file path for logging output
        format_string: Format for plain (non-rich) handlers
        force: If True, replace handlers installed by an earlier call
        rich_console: Force rich rendering on or off (default: when stderr is a tty)

    Returns:
        Configured "pullchain" logger

    Raises:
        ConfigError: If the level name is unknown
    """
    numeric_level = resolve_level(level)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)

    if force or not logger.handlers:
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

        formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

        if rich_console is None:
            rich_console = sys.stderr.isatty()

        console_handler: logging.Handler
        if rich_console:
            console_handler = RichHandler(console=Console(stderr=True), show_path=False)
        else:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
        console_handler.setLevel(numeric_level)
        logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    logger.propagate = False

    return logger
