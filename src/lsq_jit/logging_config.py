# logging_config.py
import logging
import os

LOG_LEVEL_ENV = "LSQ_JIT_LOG_LEVEL"
LOG_FILE_ENV = "LSQ_JIT_LOG_FILE"


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger with the given name.

    Logs to the console at the level named by $LSQ_JIT_LOG_LEVEL
    (default WARNING) and, if $LSQ_JIT_LOG_FILE is set, at DEBUG to that file.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:  # avoid duplicate handlers on reload
        console_level = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
        log_file = os.environ.get(LOG_FILE_ENV)

        logger.setLevel(logging.DEBUG)

        # --- Console handler ---
        ch = logging.StreamHandler()
        ch.setLevel(console_level)
        console_fmt = logging.Formatter("%(levelname)s: %(name)s: %(message)s")
        ch.setFormatter(console_fmt)
        logger.addHandler(ch)

        # --- File handler ---
        if log_file:
            fh = logging.FileHandler(log_file)
            fh.setLevel(logging.DEBUG)
            file_fmt = logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
            )
            fh.setFormatter(file_fmt)
            logger.addHandler(fh)

    return logger
