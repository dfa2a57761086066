from services.rules import weekday_index


def register(client, email, role="customer"):
    resp = client.post("/auth/register", json={"email": email, "password": "pitch-side-42", "role": role})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200


def test_register_login_me(client, login):
    register(client, "new.owner@example.com", role="admin")
    login(client, "new.owner@example.com")

    me = client.get("/auth/me").get_json()
    assert me["email"] == "new.owner@example.com"
    assert me["role"] == "ADMIN"


def test_duplicate_registration(client):
    register(client, "twice@example.com")
    resp = client.post("/auth/register", json={"email": "twice@example.com", "password": "pitch-side-42"})
    assert resp.status_code == 409


def test_booking_flow(app, city, login, future_day):
    owner = app.test_client()
    first = app.test_client()
    second = app.test_client()
    register(owner, "pitch.owner@example.com", role="admin")
    register(first, "first@example.com")
    register(second, "second@example.com")
    owner_headers = login(owner, "pitch.owner@example.com")
    first_headers = login(first, "first@example.com")
    second_headers = login(second, "second@example.com")

    resp = owner.post("/fields", headers=owner_headers, json={
        "city_id": city.id, "name": "Kartal Arena", "location": "Kartal", "description": "Indoor 6-a-side",
    })
    assert resp.status_code == 201
    field_id = resp.get_json()["id"]

    resp = owner.put(f"/fields/{field_id}/schedule", headers=owner_headers, json={
        "window_days": 14,
        "entries": [{
            "day_of_week": weekday_index(future_day),
            "start_time": "18:00",
            "end_time": "19:00",
            "price": 400,
            "deposit_amount": 100,
        }],
    })
    assert resp.status_code == 200
    assert resp.get_json()["created"] >= 1

    slots = first.get(f"/fields/{field_id}/slots?date={future_day.isoformat()}").get_json()
    assert len(slots) == 1
    assert slots[0]["start_time"] == "18:00"
    slot_id = slots[0]["id"]

    resp = first.post("/reservations", headers=first_headers, json={"slot_id": slot_id})
    assert resp.status_code == 201
    assert resp.get_json()["status"] == "CONFIRMED"

    resp = second.post("/reservations", headers=second_headers, json={"slot_id": slot_id})
    assert resp.status_code == 409
    assert resp.get_json()["kind"] == "slot_already_reserved"

    owner_view = owner.get(f"/reservations/owner?date={future_day.isoformat()}").get_json()
    assert [r["slot"]["id"] for r in owner_view] == [slot_id]

    slots = second.get(f"/fields/{field_id}/slots?date={future_day.isoformat()}").get_json()
    assert slots[0]["is_reserved"] is True


def test_reservation_needs_login(client, slot_for_api):
    resp = client.post("/reservations", json={"slot_id": slot_for_api})
    assert resp.status_code == 401
    assert resp.get_json()["kind"] == "unauthenticated"


def test_writes_need_csrf_header(client, customer, login, slot_for_api):
    login(client, customer.email)
    resp = client.post("/reservations", json={"slot_id": slot_for_api})
    assert resp.status_code == 403
    assert resp.get_json()["kind"] == "csrf_failed"


def test_customer_cannot_edit_slots(client, customer, login, field, future_day):
    headers = login(client, customer.email)
    resp = client.put(f"/fields/{field.id}/slots", headers=headers, json={
        "date": future_day.isoformat(), "start_time": "18:00", "price": 400, "deposit_amount": 100,
    })
    assert resp.status_code == 403


def test_invalid_slot_pricing_is_a_validation_error(client, owner, login, field, future_day):
    headers = login(client, owner.email)
    resp = client.put(f"/fields/{field.id}/slots", headers=headers, json={
        "date": future_day.isoformat(), "start_time": "18:00", "price": 100, "deposit_amount": 100,
    })
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["kind"] == "validation_error"
    assert body["details"]


def test_batch_with_failures_returns_multi_status(client, owner, login, field, future_day):
    headers = login(client, owner.email)
    resp = client.post(f"/fields/{field.id}/slots/batch", headers=headers, json={
        "date": future_day.isoformat(),
        "slots": [
            {"start_time": "18:00", "price": 400, "deposit_amount": 100},
            {"start_time": "nope", "price": 400, "deposit_amount": 100},
            {"start_time": "20:00", "price": 400, "deposit_amount": 400},
        ],
    })
    assert resp.status_code == 207
    body = resp.get_json()
    assert [r["ok"] for r in body["results"]] == [True, False, False]
    assert (body["ok"], body["failed"]) == (1, 2)


def test_unknown_field_is_not_found(client):
    resp = client.get("/fields/999")
    assert resp.status_code == 404
    assert resp.get_json()["kind"] == "field_not_found"

    resp = client.get(f"/fields/{10 ** 20}")
    assert resp.status_code == 404


def test_field_search_endpoint(client, field, make_slot, future_day):
    make_slot(field, future_day, price=400, deposit=100)
    rows = client.get(f"/fields?city_id={field.city_id}&sort=price_asc").get_json()
    assert [(r["name"], r["min_price"]) for r in rows] == [("Yildiz Halisaha", 400)]


def test_offset_start_time_is_a_validation_error(client, owner, login, field, future_day):
    headers = login(client, owner.email)
    resp = client.put(f"/fields/{field.id}/slots", headers=headers, json={
        "date": future_day.isoformat(), "start_time": "18:00+03:00", "end_time": "19:00",
        "price": 400, "deposit_amount": 100,
    })
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "validation_error"

    resp = client.put(f"/fields/{field.id}/schedule", headers=headers, json={"entries": [{
        "day_of_week": 1, "start_time": "18:00", "end_time": "19:00+03:00", "price": 400, "deposit_amount": 100,
    }]})
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "validation_error"


def test_oversized_slot_id_is_rejected(client, customer, login):
    headers = login(client, customer.email)
    resp = client.post("/reservations", headers=headers, json={"slot_id": 10 ** 20})
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "validation_error"


def test_batch_checks_ownership_before_entries(app, client, field, make_user, login, future_day):
    make_user("rival@example.com", role="ADMIN")
    headers = login(client, "rival@example.com")
    bad_rows = {"date": future_day.isoformat(), "slots": [{"start_time": "nope"}]}

    resp = client.post(f"/fields/{field.id}/slots/batch", headers=headers, json=bad_rows)
    assert resp.status_code == 403
    assert resp.get_json()["kind"] == "unauthorized"

    resp = client.post("/fields/9999/slots/batch", headers=headers, json=bad_rows)
    assert resp.status_code == 404
    assert resp.get_json()["kind"] == "field_not_found"
