import logging
import os

ROOT_NAME = "turfslot"
_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level=None) -> logging.Logger:
    root = logging.getLogger(ROOT_NAME)
    root.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
        root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    root = logging.getLogger(ROOT_NAME)
    if not root.handlers:
        configure_logging()
    return root.getChild(name)
