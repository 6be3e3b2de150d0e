import logging
import os

LOG_LEVEL = os.environ.get("LOG_LEVEL", "info")

LOGGING_FORMAT = "[{asctime}|{filename}:{funcName}:{lineno:d}]{levelname}  {message}"

_console_handler: logging.Handler | None = None


def setup_logger(level: str | None = None) -> logging.Logger:
    """Attach the console handler to the root logger.

    `level` falls back to the LOG_LEVEL environment variable.
    """
    global _console_handler
    logger = logging.getLogger()

    logging_level = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "critical": logging.CRITICAL,
        "error": logging.ERROR,
    }.get((level or LOG_LEVEL).lower(), logging.INFO)

    formatter = logging.Formatter(LOGGING_FORMAT, style="{", datefmt="%H:%M:%S")

    # Create a handler for console output
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    # Replace the handler of an earlier call so messages aren't printed twice
    if _console_handler is not None:
        logger.removeHandler(_console_handler)
    logger.addHandler(console_handler)
    logger.setLevel(logging_level)
    _console_handler = console_handler

    return logger
