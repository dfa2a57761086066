from datetime import date, datetime, time
from typing import List

# widest value an Integer column holds on every supported backend
MAX_INT_COLUMN = 2 ** 31 - 1


def pricing_problems(price, deposit_amount) -> List[str]:
    problems = []
    if not isinstance(price, int) or isinstance(price, bool):
        problems.append("price must be an integer")
    if not isinstance(deposit_amount, int) or isinstance(deposit_amount, bool):
        problems.append("deposit_amount must be an integer")
    if problems:
        return problems

    if price < 0:
        problems.append("price must not be negative")
    if deposit_amount < 0:
        problems.append("deposit_amount must not be negative")
    if price > MAX_INT_COLUMN or deposit_amount > MAX_INT_COLUMN:
        problems.append("price and deposit_amount are too large")
    if deposit_amount >= price:
        problems.append("deposit_amount must be less than price")
    return problems


def time_problems(start_time, end_time) -> List[str]:
    if not isinstance(start_time, time) or not isinstance(end_time, time):
        return ["start_time and end_time must be times"]
    if start_time.tzinfo is not None or end_time.tzinfo is not None:
        return ["times must be local, without a UTC offset"]
    if end_time <= start_time:
        return ["end_time must be after start_time"]
    return []


def one_hour_after(start_time: time) -> time:
    """Default end for an hourly slot. The last hour of the day ends at 23:59:59."""
    if start_time.hour >= 23:
        return time(23, 59, 59)
    return start_time.replace(hour=start_time.hour + 1)


def is_row_id(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_INT_COLUMN


def weekday_index(day: date) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def slot_start(day: date, start_time: time) -> datetime:
    return datetime.combine(day, start_time)
