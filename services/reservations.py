"""
Reservation engine.

A slot moves FREE -> RESERVED only through reserve(), which flips the
slot's flag with a conditional UPDATE (``WHERE is_reserved = false``) and
inserts the reservation in the same transaction. Whoever's UPDATE touches
the row wins; everybody else sees zero affected rows and gets
SlotAlreadyReserved. The partial unique index on live reservations backs
this up at the schema level.

cancel() is the only way back to FREE. The reservation row is kept with
status CANCELLED so the history survives.
"""
from datetime import datetime, timedelta
from typing import List, Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from models import db
from models.availability import Availability
from models.field import Field
from models.reservation import Reservation
from services.credentials import Credentials, require_customer, require_owner
from services.errors import (
    ReservationNotFound,
    SlotAlreadyReserved,
    SlotNotFound,
    Unauthorized,
    ValidationError,
)
from services.rules import is_row_id, slot_start
from services.store import store_errors
from utils.audit import log_event
from utils.logger import get_logger

log = get_logger(__name__)

CONFIRMED = "CONFIRMED"
CANCELLED = "CANCELLED"
STATUSES = (CONFIRMED, CANCELLED)


def _by_idempotency_key(customer_id: int, key: str) -> Optional[Reservation]:
    return Reservation.query.filter_by(customer_id=customer_id, idempotency_key=key).first()


def _replay(existing: Reservation, slot_id: int) -> Reservation:
    if existing.availability_id != slot_id:
        raise ValidationError("Idempotency-Key already used for a different slot")
    log.info("reservation %s replayed for idempotency key", existing.id)
    return existing


def reserve(credentials: Credentials, slot_id: int, idempotency_key: Optional[str] = None) -> Reservation:
    """
    Book one slot for a customer. Raises Unauthorized, SlotNotFound,
    SlotAlreadyReserved or ValidationError (past slot, reused key).
    Not safe to retry blindly; pass an idempotency key for replays.
    """
    require_customer(credentials)
    if not is_row_id(slot_id):
        raise SlotNotFound("Slot not found")
    if idempotency_key is not None:
        idempotency_key = str(idempotency_key).strip()[:80] or None

    with store_errors():
        if idempotency_key:
            existing = _by_idempotency_key(credentials.account_id, idempotency_key)
            if existing:
                return _replay(existing, slot_id)
            # end the read before the write transaction begins
            db.session.rollback()

        claimed = db.session.execute(
            update(Availability)
            .where(Availability.id == slot_id, Availability.is_reserved.is_(False))
            .values(is_reserved=True, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        ).rowcount

        if claimed != 1:
            db.session.rollback()
            slot = db.session.get(Availability, slot_id)
            if slot is None:
                raise SlotNotFound("Slot not found")
            if idempotency_key:
                existing = _by_idempotency_key(credentials.account_id, idempotency_key)
                if existing:
                    return _replay(existing, slot_id)
            log.info("slot %s: reservation attempt by %s lost, already reserved", slot_id, credentials.account_id)
            _log_lost(credentials, slot)
            raise SlotAlreadyReserved("Slot is no longer available")

        slot = db.session.get(Availability, slot_id)
        db.session.refresh(slot)
        if slot_start(slot.date, slot.start_time) <= datetime.now():
            db.session.rollback()
            raise ValidationError("Cannot reserve a slot that has already started")

        reservation = Reservation(
            customer_id=credentials.account_id,
            availability_id=slot_id,
            deposit_paid=False,
            status=CONFIRMED,
            idempotency_key=idempotency_key,
        )
        db.session.add(reservation)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            _log_lost(credentials, slot)
            raise SlotAlreadyReserved("Slot is no longer available")

    log_event(
        "RESERVATION_CREATE",
        user_id=credentials.account_id,
        entity="reservation",
        entity_id=reservation.id,
        field_id=slot.field_id,
        metadata={"slot_id": slot_id},
    )
    return reservation


def _log_lost(credentials: Credentials, slot: Availability):
    log_event(
        "RESERVATION_FAIL_ALREADY_RESERVED",
        user_id=credentials.account_id,
        entity="availability",
        entity_id=slot.id,
        field_id=slot.field_id,
    )


def _load(reservation_id: int) -> Reservation:
    if not is_row_id(reservation_id):
        raise ReservationNotFound("Reservation not found")
    reservation = db.session.get(Reservation, reservation_id)
    if not reservation:
        raise ReservationNotFound("Reservation not found")
    return reservation


def _field_owner_id(reservation: Reservation) -> int:
    return reservation.slot.field.owner_id


def cancel(credentials: Credentials, reservation_id: int, reason: Optional[str] = None) -> Reservation:
    """
    Customers cancel their own reservations up to CANCEL_CUTOFF_HOURS before
    the slot starts; the field owner may cancel any reservation on the field.
    The slot becomes free again in the same transaction.
    """
    if credentials is None:
        raise Unauthorized("Authentication required")
    reason = str(reason or "").strip()[:120] or None

    with store_errors():
        reservation = _load(reservation_id)
        slot = reservation.slot
        is_owner = credentials.is_owner and _field_owner_id(reservation) == credentials.account_id
        is_holder = credentials.is_customer and reservation.customer_id == credentials.account_id
        if not (is_owner or is_holder):
            # do not reveal other people's reservations
            raise ReservationNotFound("Reservation not found")

        if reservation.status != CONFIRMED:
            raise ValidationError("Reservation is not cancellable")

        if is_holder:
            cutoff_hours = current_app.config.get("CANCEL_CUTOFF_HOURS", 12)
            starts_in = slot_start(slot.date, slot.start_time) - datetime.now()
            if starts_in < timedelta(hours=cutoff_hours):
                raise ValidationError(f"Cancellation not allowed within {cutoff_hours} hours of start")

        now = datetime.utcnow()
        db.session.rollback()
        cancelled = db.session.execute(
            update(Reservation)
            .where(Reservation.id == reservation_id, Reservation.status == CONFIRMED)
            .values(status=CANCELLED, cancelled_at=now, cancel_reason=reason)
            .execution_options(synchronize_session=False)
        ).rowcount
        if cancelled != 1:
            db.session.rollback()
            raise ValidationError("Reservation is not cancellable")

        db.session.execute(
            update(Availability)
            .where(Availability.id == reservation.availability_id)
            .values(is_reserved=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        db.session.refresh(reservation)

    log_event(
        "RESERVATION_CANCEL",
        user_id=credentials.account_id,
        entity="reservation",
        entity_id=reservation.id,
        field_id=slot.field_id,
        metadata={"reason": reason, "by_owner": is_owner},
    )
    return reservation


def confirm_deposit(credentials: Credentials, reservation_id: int) -> Reservation:
    """Owner marks the deposit as received. No money moves through here."""
    require_owner(credentials)
    with store_errors():
        reservation = _load(reservation_id)
        if _field_owner_id(reservation) != credentials.account_id:
            raise ReservationNotFound("Reservation not found")
        if reservation.status != CONFIRMED:
            raise ValidationError("Reservation is not active")
        if reservation.deposit_paid:
            return reservation

        reservation.deposit_paid = True
        db.session.commit()

    log_event(
        "RESERVATION_DEPOSIT_CONFIRM",
        user_id=credentials.account_id,
        entity="reservation",
        entity_id=reservation.id,
        field_id=reservation.slot.field_id,
    )
    return reservation


def _check_status(status: Optional[str]):
    if status and status not in STATUSES:
        raise ValidationError("status must be CONFIRMED or CANCELLED")


def list_for_customer(credentials: Credentials, status: Optional[str] = None) -> List[Reservation]:
    require_customer(credentials)
    _check_status(status)

    q = Reservation.query.filter_by(customer_id=credentials.account_id)
    if status:
        q = q.filter_by(status=status)
    with store_errors():
        return q.order_by(Reservation.reservation_time.desc(), Reservation.id.desc()).all()


def list_for_owner(credentials: Credentials, status: Optional[str] = None, day=None) -> List[Reservation]:
    require_owner(credentials)
    _check_status(status)

    q = (
        Reservation.query
        .join(Availability, Reservation.availability_id == Availability.id)
        .join(Field, Availability.field_id == Field.id)
        .filter(Field.owner_id == credentials.account_id)
    )
    if status:
        q = q.filter(Reservation.status == status)
    if day:
        q = q.filter(Availability.date == day)
    with store_errors():
        return q.order_by(Reservation.reservation_time.desc(), Reservation.id.desc()).limit(200).all()
