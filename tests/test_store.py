from datetime import time

import pytest
from sqlalchemy.exc import OperationalError

from models import db
from models.availability import Availability
from models.reservation import Reservation
from services.availability import bulk_set_pricing, upsert_slot
from services.errors import StoreUnavailable
from services.reservations import reserve
from services.store import store_errors


def test_store_errors_translates_driver_failures(app):
    with pytest.raises(StoreUnavailable) as exc:
        with store_errors():
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    assert exc.value.kind == "store_unavailable"
    assert exc.value.status_code == 503
    assert exc.value.to_dict()["kind"] == "store_unavailable"


def test_upsert_slot_retries_transient_failures(owner_creds, field, future_day, failing_commits):
    calls = failing_commits(2)

    slot = upsert_slot(owner_creds, field.id, future_day, time(18), price=400, deposit_amount=100)

    # two failed attempts, the successful one, then the audit row
    assert len(calls) == 4
    assert slot.price == 400
    assert Availability.query.filter_by(field_id=field.id).count() == 1


def test_upsert_slot_gives_up_after_configured_attempts(app, owner_creds, field, future_day, failing_commits):
    calls = failing_commits(100)

    with pytest.raises(StoreUnavailable):
        upsert_slot(owner_creds, field.id, future_day, time(18), price=400, deposit_amount=100)

    assert len(calls) == app.config["STORE_RETRY_ATTEMPTS"]
    assert Availability.query.filter_by(field_id=field.id).count() == 0


def test_bulk_pricing_retries_transient_failures(owner_creds, field, make_slot, future_day, failing_commits):
    slot = make_slot(field, future_day, price=400, deposit=100)
    calls = failing_commits(1)

    assert bulk_set_pricing(owner_creds, field.id, future_day, price=500, deposit_amount=150) == 1

    assert len(calls) == 3
    db.session.refresh(slot)
    assert (slot.price, slot.deposit_amount) == (500, 150)


def test_reserve_is_never_retried(customer_creds, field, make_slot, future_day, failing_commits):
    slot = make_slot(field, future_day)
    calls = failing_commits(100)

    with pytest.raises(StoreUnavailable):
        reserve(customer_creds, slot.id)

    assert len(calls) == 1
    db.session.refresh(slot)
    assert slot.is_reserved is False
    assert Reservation.query.count() == 0


def test_store_failure_is_a_503_over_http(client, field, future_day, monkeypatch):
    def unavailable(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(db.session, "get", unavailable)
    resp = client.get(f"/fields/{field.id}/slots?date={future_day.isoformat()}")

    assert resp.status_code == 503
    assert resp.get_json()["kind"] == "store_unavailable"
