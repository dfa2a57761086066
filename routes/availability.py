from flask import Blueprint, request, jsonify, g

from routes.serializers import slot_to_dict
from security.rbac import require_roles
from services import availability as store
from services import slot_generator
from services.fields import get_field, get_owned_field
from services.errors import ValidationError
from utils.parsing import parse_bool, parse_date, parse_int, parse_time

availability_bp = Blueprint("availability", __name__)


def _body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON object body required")
    return data


def _optional_time(data: dict, key: str):
    value = data.get(key)
    return parse_time(value, key) if value not in (None, "") else None


def _generation_json(result) -> dict:
    return {
        "created": len(result.created),
        "skipped": result.skipped,
        "slots": [slot_to_dict(s) for s in result.created],
    }


# ---------- PUBLIC: slots of one field on one day ----------
@availability_bp.get("/fields/<int:field_id>/slots")
def field_slots(field_id: int):
    get_field(field_id)
    day = parse_date(request.args.get("date"))
    return jsonify([slot_to_dict(s) for s in store.list_for_field_and_date(field_id, day)]), 200


# ---------- PUBLIC: browse slots across a city ----------
@availability_bp.get("/cities/<int:city_id>/slots")
def city_slots(city_id: int):
    date_from = request.args.get("date_from")
    date_to = request.args.get("date_to")
    listings = store.list_for_city(
        city_id,
        date_from=parse_date(date_from, "date_from") if date_from else None,
        date_to=parse_date(date_to, "date_to") if date_to else None,
        min_price=parse_int(request.args.get("min_price"), "min_price", required=False),
        max_price=parse_int(request.args.get("max_price"), "max_price", required=False),
        sort=(request.args.get("sort") or "price_asc").strip().lower(),
        only_free=bool(parse_bool(request.args.get("only_free"), "only_free")),
    )
    out = []
    for item in listings:
        row = slot_to_dict(item.slot)
        row.update(field_name=item.field_name, field_location=item.field_location, city_name=item.city_name)
        out.append(row)
    return jsonify(out), 200


# ---------- OWNER: create or edit one slot ----------
@availability_bp.put("/fields/<int:field_id>/slots")
@require_roles("ADMIN")
def upsert_slot(field_id: int):
    data = _body()
    slot = store.upsert_slot(
        g.credentials,
        field_id,
        parse_date(data.get("date")),
        parse_time(data.get("start_time"), "start_time"),
        end_time=_optional_time(data, "end_time"),
        price=parse_int(data.get("price"), "price", required=False),
        deposit_amount=parse_int(data.get("deposit_amount"), "deposit_amount", required=False),
        is_reserved=parse_bool(data.get("is_reserved"), "is_reserved"),
    )
    return jsonify(slot_to_dict(slot)), 200


# ---------- OWNER: save a whole day at once ----------
@availability_bp.post("/fields/<int:field_id>/slots/batch")
@require_roles("ADMIN")
def upsert_slots(field_id: int):
    get_owned_field(g.credentials, field_id)
    data = _body()
    day = parse_date(data.get("date"))
    raw_entries = data.get("slots")
    if not isinstance(raw_entries, list) or not raw_entries:
        raise ValidationError("slots must be a non-empty list")

    # parse everything first; bad rows are reported in place, good rows go to the store
    parsed = []
    for raw in raw_entries:
        raw = raw if isinstance(raw, dict) else {}
        try:
            parsed.append({
                "start_time": parse_time(raw.get("start_time"), "start_time"),
                "end_time": _optional_time(raw, "end_time"),
                "price": parse_int(raw.get("price"), "price", required=False),
                "deposit_amount": parse_int(raw.get("deposit_amount"), "deposit_amount", required=False),
                "is_reserved": parse_bool(raw.get("is_reserved"), "is_reserved"),
            })
        except ValidationError as exc:
            parsed.append({"start_time": raw.get("start_time"), "ok": False, "error": exc.message, "kind": exc.kind})

    entries = [p for p in parsed if "ok" not in p]
    stored = iter(store.upsert_slots(g.credentials, field_id, day, entries) if entries else [])
    results = [p if "ok" in p else next(stored) for p in parsed]
    failed = sum(1 for r in results if not r["ok"])
    return jsonify(results=results, ok=len(results) - failed, failed=failed), 200 if not failed else 207


# ---------- OWNER: reprice a day ----------
@availability_bp.post("/fields/<int:field_id>/slots/pricing")
@require_roles("ADMIN")
def bulk_pricing(field_id: int):
    data = _body()
    only_unreserved = parse_bool(data.get("apply_only_to_unreserved"), "apply_only_to_unreserved")
    updated = store.bulk_set_pricing(
        g.credentials,
        field_id,
        parse_date(data.get("date")),
        parse_int(data.get("price"), "price"),
        parse_int(data.get("deposit_amount"), "deposit_amount"),
        apply_only_to_unreserved=True if only_unreserved is None else only_unreserved,
    )
    return jsonify(updated=updated), 200


# ---------- OWNER: weekly schedule ----------
@availability_bp.get("/fields/<int:field_id>/schedule")
@require_roles("ADMIN")
def get_schedule(field_id: int):
    field = get_owned_field(g.credentials, field_id)
    return jsonify([e.to_dict() for e in slot_generator.stored_template(field)]), 200


@availability_bp.put("/fields/<int:field_id>/schedule")
@require_roles("ADMIN")
def set_schedule(field_id: int):
    data = _body()
    entries = slot_generator.parse_template(data.get("entries"))
    result = slot_generator.set_weekly_schedule(
        g.credentials,
        field_id,
        entries,
        window_days=parse_int(data.get("window_days"), "window_days", required=False),
    )
    return jsonify(_generation_json(result)), 200


@availability_bp.post("/fields/<int:field_id>/schedule/generate")
@require_roles("ADMIN")
def generate(field_id: int):
    data = request.get_json(silent=True) or {}
    result = slot_generator.generate_from_stored(
        g.credentials,
        field_id,
        window_days=parse_int(data.get("window_days"), "window_days", required=False),
    )
    return jsonify(_generation_json(result)), 201 if result.created else 200
