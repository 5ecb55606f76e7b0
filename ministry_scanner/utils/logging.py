import logging
from ministry_scanner.config.paths import LOG_FILE

LOGGER_NAME = "MinistryScanner"


def setup_logger(name=LOGGER_NAME):
    """
    Shared file logger for the scanner, camera and stores.
    Handlers are attached on the first call only.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    handler = logging.FileHandler(LOG_FILE)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s"))
    logger.addHandler(handler)
    return logger
