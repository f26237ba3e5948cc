import logging
import sys
from pathlib import Path

from teamboard.core import get_settings

settings = get_settings()

# Directory for log files
log_dir = Path(settings.LOG_DIR)
log_dir.mkdir(parents=True, exist_ok=True)


# Request log: file and console
def setup_logging():
    logger = logging.getLogger("api_logger")
    logger.setLevel(logging.INFO)
    logger.propagate = False

    if logger.handlers:
        return logger

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    file_handler = logging.FileHandler(log_dir / "api_requests.log", encoding="utf-8")
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


api_logger = setup_logging()
