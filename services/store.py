import time
from contextlib import contextmanager
from functools import wraps

from flask import current_app
from sqlalchemy.exc import DisconnectionError, OperationalError

from models import db
from services.errors import StoreUnavailable
from utils.logger import get_logger

log = get_logger(__name__)


@contextmanager
def store_errors():
    """Translate driver-level failures into StoreUnavailable."""
    try:
        yield
    except (OperationalError, DisconnectionError) as exc:
        db.session.rollback()
        log.warning("store failure: %s", exc.__class__.__name__)
        raise StoreUnavailable("Booking store is temporarily unavailable") from exc


def retry_transient(fn):
    """
    Retry an idempotent store operation on StoreUnavailable with exponential
    backoff. Never wrap reserve() with this.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        attempts = max(1, int(current_app.config.get("STORE_RETRY_ATTEMPTS", 3)))
        backoff = float(current_app.config.get("STORE_RETRY_BACKOFF_SECONDS", 0.2))

        for attempt in range(1, attempts + 1):
            try:
                return fn(*args, **kwargs)
            except StoreUnavailable:
                if attempt == attempts:
                    raise
                delay = backoff * (2 ** (attempt - 1))
                log.info("%s: transient store failure, retry %d/%d in %.2fs",
                         fn.__name__, attempt, attempts - 1, delay)
                time.sleep(delay)
    return wrapper
