"""
Availability store: the per-slot source of truth for "is this hour on this
field bookable, and for how much".
"""
from dataclasses import dataclass
from datetime import date, time
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from models import db
from models.availability import Availability
from models.city import City
from models.field import Field
from models.reservation import Reservation
from services.credentials import Credentials
from services.errors import BookingError, SlotNotFound, ValidationError
from services.fields import get_owned_field
from services.rules import is_row_id, one_hour_after, pricing_problems, time_problems
from services.store import retry_transient, store_errors
from utils.audit import log_event
from utils.logger import get_logger

log = get_logger(__name__)

SLOT_SORTS = {
    "price_asc": (Availability.price.asc(),),
    "price_desc": (Availability.price.desc(),),
    "name_asc": (Field.name.asc(),),
    "name_desc": (Field.name.desc(),),
}


@dataclass
class SlotListing:
    slot: Availability
    field_name: str
    field_location: str
    city_name: str


def get_slot(slot_id: int) -> Availability:
    if not is_row_id(slot_id):
        raise SlotNotFound("Slot not found")
    with store_errors():
        slot = db.session.get(Availability, slot_id)
    if not slot:
        raise SlotNotFound("Slot not found")
    return slot


def has_live_reservation(slot_id: int) -> bool:
    return (
        Reservation.query
        .filter_by(availability_id=slot_id, status="CONFIRMED")
        .first()
        is not None
    )


def list_for_field_and_date(field_id: int, day: date) -> List[Availability]:
    with store_errors():
        return (
            Availability.query
            .filter_by(field_id=field_id, date=day)
            .order_by(Availability.start_time.asc())
            .all()
        )


def list_for_city(city_id: int, date_from: Optional[date] = None, date_to: Optional[date] = None,
                  min_price: Optional[int] = None, max_price: Optional[int] = None,
                  sort: str = "price_asc", only_free: bool = False) -> List[SlotListing]:
    if sort not in SLOT_SORTS:
        raise ValidationError("Unknown sort", details=sorted(SLOT_SORTS))
    if date_from and date_to and date_to < date_from:
        raise ValidationError("date_to must not be before date_from")
    if min_price is not None and max_price is not None and max_price < min_price:
        raise ValidationError("max_price must not be below min_price")
    if not is_row_id(city_id):
        return []

    q = (
        db.session.query(Availability, Field.name, Field.location, City.name)
        .join(Field, Availability.field_id == Field.id)
        .join(City, Field.city_id == City.id)
        .filter(Field.city_id == city_id)
    )
    if date_from:
        q = q.filter(Availability.date >= date_from)
    if date_to:
        q = q.filter(Availability.date <= date_to)
    if min_price is not None:
        q = q.filter(Availability.price >= min_price)
    if max_price is not None:
        q = q.filter(Availability.price <= max_price)
    if only_free:
        q = q.filter(Availability.is_reserved.is_(False))

    q = q.order_by(*SLOT_SORTS[sort], Availability.date.asc(), Availability.start_time.asc(), Availability.id.asc())

    with store_errors():
        rows = q.all()
    return [
        SlotListing(slot=slot, field_name=name, field_location=location, city_name=city)
        for slot, name, location, city in rows
    ]


def _merge_checks(slot: Optional[Availability], start_time: time, end_time, price, deposit_amount, is_reserved):
    """Resolve the final values for an upsert and validate them together."""
    if slot is None:
        end_time = end_time or one_hour_after(start_time)
        if price is None or deposit_amount is None:
            raise ValidationError("price and deposit_amount are required for a new slot")
        is_reserved = bool(is_reserved) if is_reserved is not None else False
    else:
        end_time = end_time if end_time is not None else slot.end_time
        price = price if price is not None else slot.price
        deposit_amount = deposit_amount if deposit_amount is not None else slot.deposit_amount
        is_reserved = is_reserved if is_reserved is not None else slot.is_reserved

    problems = time_problems(start_time, end_time) + pricing_problems(price, deposit_amount)
    if problems:
        raise ValidationError("Invalid slot", details=problems)

    if slot is not None and slot.is_reserved and not is_reserved and has_live_reservation(slot.id):
        raise ValidationError("Slot has an active reservation; cancel the reservation instead")

    return end_time, price, deposit_amount, is_reserved


def _upsert_one(field_id: int, day: date, start_time: time, end_time=None, price=None,
                deposit_amount=None, is_reserved=None):
    if not isinstance(start_time, time) or start_time.tzinfo is not None:
        raise ValidationError("start_time must be a local time without a UTC offset")
    slot = (
        Availability.query
        .filter_by(field_id=field_id, date=day, start_time=start_time)
        .first()
    )
    end_time, price, deposit_amount, is_reserved = _merge_checks(
        slot, start_time, end_time, price, deposit_amount, is_reserved
    )

    created = slot is None
    if created:
        slot = Availability(field_id=field_id, date=day, start_time=start_time)
        db.session.add(slot)
    slot.end_time = end_time
    slot.price = price
    slot.deposit_amount = deposit_amount
    slot.is_reserved = is_reserved

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Slot conflicts with an existing slot; reload and retry")
    return slot, created


@retry_transient
def upsert_slot(credentials: Credentials, field_id: int, day: date, start_time: time, end_time: time = None,
                price: int = None, deposit_amount: int = None, is_reserved: bool = None) -> Availability:
    field = get_owned_field(credentials, field_id)

    with store_errors():
        slot, created = _upsert_one(field.id, day, start_time, end_time, price, deposit_amount, is_reserved)

    log_event(
        "SLOT_CREATE" if created else "SLOT_UPDATE",
        user_id=credentials.account_id,
        entity="availability",
        entity_id=slot.id,
        field_id=field.id,
        metadata={"price": slot.price, "deposit_amount": slot.deposit_amount, "is_reserved": slot.is_reserved},
    )
    return slot


def upsert_slots(credentials: Credentials, field_id: int, day: date, entries: List[dict]) -> List[dict]:
    """
    Batch form of upsert_slot for one field and date.

    Each entry is committed on its own so one bad hour does not sink the
    others. Returns one result per entry, in input order:
    {"start_time", "ok", "slot_id"} or {"start_time", "ok", "error", "kind"}.
    Entry keys: start_time (time), and optionally end_time, price,
    deposit_amount, is_reserved.
    """
    field = get_owned_field(credentials, field_id)
    if not isinstance(entries, list) or not entries:
        raise ValidationError("entries must be a non-empty list")

    results = []
    ok_count = 0
    for entry in entries:
        start_time = entry.get("start_time")
        label = start_time.strftime("%H:%M") if isinstance(start_time, time) else start_time
        try:
            if not isinstance(start_time, time):
                raise ValidationError("start_time is required")
            with store_errors():
                slot, _ = _upsert_one(
                    field.id, day, start_time,
                    end_time=entry.get("end_time"),
                    price=entry.get("price"),
                    deposit_amount=entry.get("deposit_amount"),
                    is_reserved=entry.get("is_reserved"),
                )
        except BookingError as exc:
            db.session.rollback()
            results.append({"start_time": label, "ok": False, "error": exc.message, "kind": exc.kind})
            continue
        ok_count += 1
        results.append({"start_time": label, "ok": True, "slot_id": slot.id})

    log.info("field %s %s: batch upsert %d/%d ok", field.id, day.isoformat(), ok_count, len(entries))
    log_event(
        "SLOT_BATCH_UPSERT",
        user_id=credentials.account_id,
        entity="field",
        entity_id=field.id,
        field_id=field.id,
        metadata={"date": day.isoformat(), "ok": ok_count, "failed": len(entries) - ok_count},
    )
    return results


@retry_transient
def bulk_set_pricing(credentials: Credentials, field_id: int, day: date, price: int, deposit_amount: int,
                     apply_only_to_unreserved: bool = True) -> int:
    field = get_owned_field(credentials, field_id)

    problems = pricing_problems(price, deposit_amount)
    if problems:
        raise ValidationError("Invalid pricing", details=problems)

    with store_errors():
        q = Availability.query.filter_by(field_id=field.id, date=day)
        if apply_only_to_unreserved:
            q = q.filter(Availability.is_reserved.is_(False))
        updated = q.update(
            {Availability.price: price, Availability.deposit_amount: deposit_amount},
            synchronize_session="fetch",
        )
        db.session.commit()

    log_event(
        "SLOT_PRICING_BULK",
        user_id=credentials.account_id,
        entity="field",
        entity_id=field.id,
        field_id=field.id,
        metadata={
            "date": day.isoformat(),
            "price": price,
            "deposit_amount": deposit_amount,
            "only_unreserved": apply_only_to_unreserved,
            "updated": updated,
        },
    )
    return updated
