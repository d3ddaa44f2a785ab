import logging
import os
import sys

# Constants
LOG_DIR = "logs"
LOG_FILE_NAME = "app.log"
LOG_FORMAT = "[%(asctime)s] | %(levelname)-8s | %(name)-15s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str = "mood_journal", level: int = logging.INFO,
                 log_dir: str = LOG_DIR) -> logging.Logger:
    """
    Configures and returns a standardized logger.

    Features:
    - Console Output (StreamHandler)
    - File Output, overwritten on each run
    - Standardized Formatting

    Module loggers created with logging.getLogger(__name__) under the
    mood_journal package propagate here.

    Args:
        name: Name of the logger
        level: Minimum level for both handlers
        log_dir: Directory of the log file (None disables file output)

    Returns:
        Configured Logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers if setup is called multiple times
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(log_dir, LOG_FILE_NAME), mode='w', encoding='utf-8')
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger