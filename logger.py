# logger.py - Rotating file loggers for the balance audit trail
import os
import logging
from logging.handlers import RotatingFileHandler

DEFAULT_FORMAT = "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"

# One movement per line: timestamp, level, then the CREDIT/DEBIT/REFUND record
LEDGER_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def setup_logger(name, log_file=None, level=logging.INFO, fmt=DEFAULT_FORMAT,
                 max_bytes=10240, backup_count=10):
    """Set up a named logger writing to LOG_DIR/<name>.log with rotation"""
    log_dir = os.environ.get("LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)

    if not log_file:
        log_file = os.path.join(log_dir, f"{name}.log")

    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if not logger.handlers:
        logger.setLevel(level)
        logger.propagate = False

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(fmt))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

        if os.environ.get("FLASK_ENV") != "production":
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.DEBUG)
            console_handler.setFormatter(logging.Formatter(
                "%(name)s - %(levelname)s - %(message)s"
            ))
            logger.addHandler(console_handler)

    return logger


ledger_logger = setup_logger("ledger", fmt=LEDGER_FORMAT, max_bytes=1024 * 1024, backup_count=20)
