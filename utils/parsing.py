from datetime import date, datetime, time

from services.errors import ValidationError
from services.rules import MAX_INT_COLUMN


def parse_date(value, name="date") -> date:
    # Expect "YYYY-MM-DD"
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}. Use YYYY-MM-DD")


def parse_time(value, name="time") -> time:
    # Expect "HH:MM" or "HH:MM:SS"
    if isinstance(value, time):
        parsed = value
    else:
        try:
            parsed = time.fromisoformat(str(value))
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid {name}. Use HH:MM")
    # slot times are wall-clock times at the field
    if parsed.tzinfo is not None:
        raise ValidationError(f"Invalid {name}. Use HH:MM without a UTC offset")
    return parsed


def parse_int(value, name: str, required=True):
    if value is None or value == "":
        if required:
            raise ValidationError(f"{name} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{name} must be a whole number")
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{name} must be an integer")
    if abs(number) > MAX_INT_COLUMN:
        raise ValidationError(f"{name} is out of range")
    return number


def parse_bool(value, name: str):
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no"):
        return False
    raise ValidationError(f"{name} must be a boolean")


def iso_or_none(value):
    if value is None:
        return None
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value
