import threading
from datetime import date, timedelta

import pytest

from models import db
from models.audit_log import AuditLog
from models.reservation import Reservation
from services.credentials import Credentials, credentials_for
from services.errors import (
    ReservationNotFound,
    SlotAlreadyReserved,
    SlotNotFound,
    Unauthorized,
    ValidationError,
)
from services.reservations import (
    CANCELLED,
    CONFIRMED,
    cancel,
    confirm_deposit,
    list_for_customer,
    list_for_owner,
    reserve,
)


@pytest.fixture
def slot(field, make_slot, future_day):
    return make_slot(field, future_day)


@pytest.fixture
def second_customer(make_user):
    return credentials_for(make_user("keeper@example.com"))


def test_reserve_free_slot(customer_creds, slot):
    reservation = reserve(customer_creds, slot.id)

    assert reservation.status == CONFIRMED
    assert reservation.deposit_paid is False
    assert reservation.customer_id == customer_creds.account_id
    db.session.refresh(slot)
    assert slot.is_reserved is True


def test_second_reservation_is_refused(customer_creds, second_customer, slot):
    reserve(customer_creds, slot.id)

    with pytest.raises(SlotAlreadyReserved):
        reserve(second_customer, slot.id)

    assert Reservation.query.filter_by(availability_id=slot.id).count() == 1
    lost = AuditLog.query.filter_by(action="RESERVATION_FAIL_ALREADY_RESERVED").one()
    assert lost.actor_id == second_customer.account_id


def test_concurrent_reservations_have_exactly_one_winner(app, make_user, slot):
    slot_id = slot.id
    contenders = [credentials_for(make_user(f"player{i}@example.com")) for i in range(8)]
    barrier = threading.Barrier(len(contenders))
    outcomes = []

    def attempt(credentials):
        with app.app_context():
            barrier.wait()
            try:
                reserve(credentials, slot_id)
                outcomes.append("won")
            except SlotAlreadyReserved:
                outcomes.append("lost")
            finally:
                db.session.remove()

    threads = [threading.Thread(target=attempt, args=(c,)) for c in contenders]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["lost"] * 7 + ["won"]
    db.session.expire_all()
    assert Reservation.query.filter_by(availability_id=slot_id, status=CONFIRMED).count() == 1


def test_unknown_slot(customer_creds):
    with pytest.raises(SlotNotFound):
        reserve(customer_creds, 4242)
    with pytest.raises(SlotNotFound):
        reserve(customer_creds, 10 ** 20)


def test_owner_cannot_reserve(owner_creds, slot):
    with pytest.raises(Unauthorized):
        reserve(owner_creds, slot.id)
    with pytest.raises(Unauthorized):
        reserve(None, slot.id)


def test_started_slot_cannot_be_reserved(customer_creds, field, make_slot):
    past = make_slot(field, date.today() - timedelta(days=1))

    with pytest.raises(ValidationError):
        reserve(customer_creds, past.id)

    db.session.refresh(past)
    assert past.is_reserved is False
    assert Reservation.query.count() == 0


def test_idempotency_key_replays_the_same_reservation(customer_creds, slot):
    first = reserve(customer_creds, slot.id, idempotency_key="tap-1")
    replay = reserve(customer_creds, slot.id, idempotency_key="tap-1")

    assert replay.id == first.id
    assert Reservation.query.count() == 1


def test_idempotency_key_bound_to_one_slot(customer_creds, field, make_slot, slot, future_day):
    other = make_slot(field, future_day, start="20:00")
    reserve(customer_creds, slot.id, idempotency_key="tap-1")

    with pytest.raises(ValidationError):
        reserve(customer_creds, other.id, idempotency_key="tap-1")


def test_customer_cancel_frees_slot_for_rebooking(customer_creds, second_customer, slot):
    reservation = reserve(customer_creds, slot.id)

    cancelled = cancel(customer_creds, reservation.id, reason="rain")

    assert cancelled.status == CANCELLED
    assert cancelled.cancel_reason == "rain"
    assert cancelled.cancelled_at is not None
    db.session.refresh(slot)
    assert slot.is_reserved is False

    rebooked = reserve(second_customer, slot.id)
    assert rebooked.status == CONFIRMED
    assert Reservation.query.filter_by(availability_id=slot.id).count() == 2


def test_cancel_twice_refused(customer_creds, slot):
    reservation = reserve(customer_creds, slot.id)
    cancel(customer_creds, reservation.id)

    with pytest.raises(ValidationError):
        cancel(customer_creds, reservation.id)


def test_customer_cutoff_does_not_bind_owner(app, owner_creds, customer_creds, slot):
    reservation = reserve(customer_creds, slot.id)
    app.config["CANCEL_CUTOFF_HOURS"] = 24 * 30

    with pytest.raises(ValidationError):
        cancel(customer_creds, reservation.id)

    cancelled = cancel(owner_creds, reservation.id, reason="pitch maintenance")
    assert cancelled.status == CANCELLED


def test_strangers_cannot_see_or_cancel(make_user, customer_creds, second_customer, slot):
    reservation = reserve(customer_creds, slot.id)
    rival_owner = credentials_for(make_user("rival@example.com", role="ADMIN"))

    with pytest.raises(ReservationNotFound):
        cancel(second_customer, reservation.id)
    with pytest.raises(ReservationNotFound):
        cancel(rival_owner, reservation.id)
    with pytest.raises(ReservationNotFound):
        cancel(customer_creds, 777)


def test_owner_confirms_deposit(owner_creds, customer_creds, slot, make_user):
    reservation = reserve(customer_creds, slot.id)

    with pytest.raises(Unauthorized):
        confirm_deposit(customer_creds, reservation.id)
    rival_owner = credentials_for(make_user("rival@example.com", role="ADMIN"))
    with pytest.raises(ReservationNotFound):
        confirm_deposit(rival_owner, reservation.id)

    assert confirm_deposit(owner_creds, reservation.id).deposit_paid is True
    # already confirmed is a no-op
    assert confirm_deposit(owner_creds, reservation.id).deposit_paid is True


def test_listings(owner_creds, customer_creds, field, make_slot, slot, future_day):
    later = make_slot(field, future_day + timedelta(days=1), start="20:00")
    kept = reserve(customer_creds, slot.id)
    dropped = reserve(customer_creds, later.id)
    cancel(customer_creds, dropped.id)

    assert {r.id for r in list_for_customer(customer_creds)} == {kept.id, dropped.id}
    assert [r.id for r in list_for_customer(customer_creds, status=CONFIRMED)] == [kept.id]
    assert [r.id for r in list_for_owner(owner_creds, day=future_day)] == [kept.id]
    assert [r.id for r in list_for_owner(owner_creds, status=CANCELLED)] == [dropped.id]

    with pytest.raises(ValidationError):
        list_for_customer(customer_creds, status="PENDING")
    with pytest.raises(Unauthorized):
        list_for_owner(Credentials(account_id=customer_creds.account_id, role="CUSTOMER"))
