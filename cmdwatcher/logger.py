import logging
import os

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name, log_dir=None, log_filename=None, level=logging.INFO, console=True):
    """
    Set up and return a logger with optional file and console handlers.

    Handlers serialise emission with their own lock, so observer threads for
    different folders can log through the same logger concurrently.

    Args:
        name (str): The logger name.
        log_dir (str): Directory where the log file will be stored. No file
            handler is added when this or log_filename is empty.
        log_filename (str): Log file name.
        level (int): Logging level.
        console (bool): Whether to add a console handler on stderr.

    Returns:
        logging.Logger: The configured logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear out any existing handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(DEFAULT_FORMAT)

    if log_dir and log_filename:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(log_dir, log_filename))
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def parse_level(level_name, default=logging.INFO):
    """Map a level name such as "debug" to its numeric logging level."""
    if isinstance(level_name, int):
        return level_name
    return getattr(logging, str(level_name).upper(), default)
