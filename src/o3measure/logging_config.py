"""
Logging Configuration
Sets up the 'o3measure' logger for the replay CLI and for embedding hosts.
"""
import logging
import sys
from typing import Optional, Union

FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configures the 'o3measure' namespace: console at `level`, and optionally a
    file that always records DEBUG so every state transition can be traced.

    Args:
        level: Console logging level, as a number or a name ("DEBUG", "info", ...).
        log_file: Optional path to save logs to a file.

    Returns:
        The configured package logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown logging level: {level}")

    logger = logging.getLogger("o3measure")
    logger.setLevel(logging.DEBUG if log_file else level)
    logger.propagate = False

    # Repeated setup (tests, replays) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(FORMAT, datefmt='%H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FORMAT))
        logger.addHandler(file_handler)

    logger.debug(f"Logging initialized (console={logging.getLevelName(level)}, file={log_file})")
    return logger
