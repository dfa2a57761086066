"""
Weekly schedule expansion.

An owner describes a field's opening hours once as a weekly template
(day of week -> start, end, price, deposit). This module turns that
template into dated availability rows for a rolling window of days.
Generation only ever inserts missing (field, date, start_time) rows, so
it can be re-run as often as needed without touching booked slots.
"""
from dataclasses import dataclass, field as dc_field
from datetime import date, time, timedelta
from typing import Iterator, List, Optional, Sequence

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.availability import Availability
from models.field import Field
from models.schedule import WeeklyScheduleEntry
from services.credentials import Credentials
from services.errors import StoreUnavailable, ValidationError
from services.fields import get_owned_field
from services.rules import pricing_problems, time_problems, weekday_index
from services.store import store_errors
from utils.audit import log_event
from utils.logger import get_logger
from utils.parsing import parse_int, parse_time

log = get_logger(__name__)

# concurrent generators racing on the same keys settle within a few rounds
_INSERT_ROUNDS = 3


@dataclass(frozen=True)
class TemplateEntry:
    day_of_week: int  # 0 = Sunday ... 6 = Saturday
    start_time: time
    end_time: time
    price: int
    deposit_amount: int

    def to_dict(self) -> dict:
        return {
            "day_of_week": self.day_of_week,
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "price": self.price,
            "deposit_amount": self.deposit_amount,
        }


@dataclass(frozen=True)
class SlotDraft:
    field_id: int
    date: date
    start_time: time
    end_time: time
    price: int
    deposit_amount: int
    is_reserved: bool = False

    @property
    def key(self):
        return (self.date, self.start_time)


@dataclass
class GenerationResult:
    created: List[Availability] = dc_field(default_factory=list)
    skipped: int = 0


def parse_template(raw_entries) -> List[TemplateEntry]:
    """Build template entries from JSON-ish dicts, collecting every problem."""
    if not isinstance(raw_entries, list) or not raw_entries:
        raise ValidationError("Weekly template must be a non-empty list")

    entries = []
    problems = []
    for i, raw in enumerate(raw_entries):
        if not isinstance(raw, dict):
            problems.append(f"entry {i}: must be an object")
            continue
        try:
            entries.append(TemplateEntry(
                day_of_week=parse_int(raw.get("day_of_week", raw.get("day")), "day_of_week"),
                start_time=parse_time(raw.get("start_time"), "start_time"),
                end_time=parse_time(raw.get("end_time"), "end_time"),
                price=parse_int(raw.get("price"), "price"),
                deposit_amount=parse_int(raw.get("deposit_amount", raw.get("deposit")), "deposit_amount"),
            ))
        except ValidationError as exc:
            problems.append(f"entry {i}: {exc.message}")

    if problems:
        raise ValidationError("Invalid weekly template", details=problems)
    return entries


def validate_template(entries: Sequence[TemplateEntry]):
    """Reject the whole template if any single entry is invalid."""
    if not entries:
        raise ValidationError("Weekly template must not be empty")

    problems = []
    seen = set()
    for i, entry in enumerate(entries):
        if not isinstance(entry.day_of_week, int) or not 0 <= entry.day_of_week <= 6:
            problems.append(f"entry {i}: day_of_week must be between 0 and 6")
        for problem in time_problems(entry.start_time, entry.end_time):
            problems.append(f"entry {i}: {problem}")
        for problem in pricing_problems(entry.price, entry.deposit_amount):
            problems.append(f"entry {i}: {problem}")

        key = (entry.day_of_week, entry.start_time)
        if key in seen:
            problems.append(f"entry {i}: duplicate day_of_week/start_time")
        seen.add(key)

    if problems:
        raise ValidationError("Invalid weekly template", details=problems)


def window_length(window_days: Optional[int]) -> int:
    if window_days is None:
        window_days = current_app.config.get("SLOT_WINDOW_DAYS", 30)
    max_days = current_app.config.get("MAX_SLOT_WINDOW_DAYS", 90)
    if not isinstance(window_days, int) or isinstance(window_days, bool) or not 1 <= window_days <= max_days:
        raise ValidationError(f"window_days must be between 1 and {max_days}")
    return window_days


def expand_template(field_id: int, entries: Sequence[TemplateEntry], window_days: int, today: date) -> Iterator[SlotDraft]:
    """Yield one draft per matching (day, entry) in [today, today + window_days)."""
    by_day = {}
    for entry in entries:
        by_day.setdefault(entry.day_of_week, []).append(entry)

    for offset in range(window_days):
        day = today + timedelta(days=offset)
        for entry in sorted(by_day.get(weekday_index(day), []), key=lambda e: e.start_time):
            yield SlotDraft(
                field_id=field_id,
                date=day,
                start_time=entry.start_time,
                end_time=entry.end_time,
                price=entry.price,
                deposit_amount=entry.deposit_amount,
            )


def _existing_keys(field_id: int, start: date, end: date):
    rows = (
        db.session.query(Availability.date, Availability.start_time)
        .filter(
            Availability.field_id == field_id,
            Availability.date >= start,
            Availability.date < end,
        )
        .all()
    )
    return {(r.date, r.start_time) for r in rows}


def _insert_missing(field_id: int, drafts: List[SlotDraft], today: date, window_days: int) -> GenerationResult:
    end = today + timedelta(days=window_days)

    for _ in range(_INSERT_ROUNDS):
        existing = _existing_keys(field_id, today, end)
        result = GenerationResult()
        for draft in drafts:
            if draft.key in existing:
                result.skipped += 1
                continue
            slot = Availability(
                field_id=draft.field_id,
                date=draft.date,
                start_time=draft.start_time,
                end_time=draft.end_time,
                price=draft.price,
                deposit_amount=draft.deposit_amount,
                is_reserved=False,
            )
            db.session.add(slot)
            result.created.append(slot)
        try:
            db.session.commit()
            return result
        except IntegrityError:
            # another generator inserted some of the same keys; re-read and retry
            db.session.rollback()
            log.info("field %s: slot keys inserted concurrently, recomputing", field_id)

    raise StoreUnavailable("Slot generation kept conflicting with concurrent writes; try again")


def _generate(field: Field, entries: Sequence[TemplateEntry], window_days: int, today: date) -> GenerationResult:
    drafts = list(expand_template(field.id, entries, window_days, today))
    with store_errors():
        result = _insert_missing(field.id, drafts, today, window_days)

    if result.skipped:
        log.info("field %s: %d slot(s) already present, left untouched", field.id, result.skipped)
    log.info("field %s: generated %d slot(s) for %d day(s) from %s",
             field.id, len(result.created), window_days, today.isoformat())
    return result


def generate_slots(credentials: Credentials, field_id: int, entries: Sequence[TemplateEntry],
                   window_days: Optional[int] = None, today: Optional[date] = None) -> GenerationResult:
    field = get_owned_field(credentials, field_id)
    validate_template(entries)
    window_days = window_length(window_days)
    today = today or date.today()

    result = _generate(field, entries, window_days, today)
    log_event(
        "SLOTS_GENERATE",
        user_id=credentials.account_id,
        entity="field",
        entity_id=field.id,
        field_id=field.id,
        metadata={"created": len(result.created), "skipped": result.skipped, "window_days": window_days},
    )
    return result


def stored_template(field: Field) -> List[TemplateEntry]:
    return [
        TemplateEntry(
            day_of_week=row.day_of_week,
            start_time=row.start_time,
            end_time=row.end_time,
            price=row.price,
            deposit_amount=row.deposit_amount,
        )
        for row in field.schedule
    ]


def set_weekly_schedule(credentials: Credentials, field_id: int, entries: Sequence[TemplateEntry],
                        window_days: Optional[int] = None, today: Optional[date] = None) -> GenerationResult:
    """Replace the field's stored template, then fill the window from it."""
    field = get_owned_field(credentials, field_id)
    validate_template(entries)
    window_days = window_length(window_days)

    with store_errors():
        WeeklyScheduleEntry.query.filter_by(field_id=field.id).delete()
        db.session.flush()
        db.session.add_all([
            WeeklyScheduleEntry(
                field_id=field.id,
                day_of_week=e.day_of_week,
                start_time=e.start_time,
                end_time=e.end_time,
                price=e.price,
                deposit_amount=e.deposit_amount,
            )
            for e in entries
        ])
        db.session.commit()
        db.session.expire(field, ["schedule"])

    log_event(
        "SCHEDULE_SET",
        user_id=credentials.account_id,
        entity="field",
        entity_id=field.id,
        field_id=field.id,
        metadata={"entries": len(entries)},
    )
    return generate_slots(credentials, field.id, entries, window_days=window_days, today=today)


def generate_from_stored(credentials: Credentials, field_id: int, window_days: Optional[int] = None,
                         today: Optional[date] = None) -> GenerationResult:
    field = get_owned_field(credentials, field_id)
    entries = stored_template(field)
    if not entries:
        raise ValidationError("Field has no weekly schedule")
    return generate_slots(credentials, field.id, entries, window_days=window_days, today=today)


def extend_all_schedules(window_days: Optional[int] = None, today: Optional[date] = None) -> dict:
    """System job: roll every stored schedule forward. Returns created counts per field id."""
    window_days = window_length(window_days)
    today = today or date.today()

    with store_errors():
        fields = (
            Field.query
            .filter(Field.schedule.any())
            .order_by(Field.id.asc())
            .all()
        )

    summary = {}
    for field in fields:
        result = _generate(field, stored_template(field), window_days, today)
        summary[field.id] = len(result.created)

    log_event("SLOTS_EXTEND_ALL", entity="field", metadata={"fields": len(fields), "window_days": window_days})
    return summary
