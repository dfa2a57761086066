from flask import Blueprint, request, jsonify, g

from routes.serializers import reservation_to_dict
from security.rbac import require_roles
from services import reservations as engine
from utils.auth_context import login_required
from utils.parsing import parse_date, parse_int

reservations_bp = Blueprint("reservations", __name__, url_prefix="/reservations")


# ---------- CUSTOMER: reserve a slot (DOUBLE-BOOKING SAFE) ----------
@reservations_bp.post("")
@require_roles("CUSTOMER")
def create_reservation():
    data = request.get_json(silent=True) or {}
    slot_id = parse_int(data.get("slot_id"), "slot_id")

    reservation = engine.reserve(
        g.credentials,
        slot_id,
        idempotency_key=request.headers.get("Idempotency-Key"),
    )
    return jsonify(id=reservation.id, status=reservation.status, deposit_paid=reservation.deposit_paid), 201


# ---------- CUSTOMER: my reservations ----------
@reservations_bp.get("/me")
@require_roles("CUSTOMER")
def my_reservations():
    status = (request.args.get("status") or "").strip().upper() or None
    rows = engine.list_for_customer(g.credentials, status=status)
    return jsonify([reservation_to_dict(r) for r in rows]), 200


# ---------- OWNER: reservations on my fields ----------
@reservations_bp.get("/owner")
@require_roles("ADMIN")
def owner_reservations():
    status = (request.args.get("status") or "").strip().upper() or None
    date_str = request.args.get("date")
    rows = engine.list_for_owner(
        g.credentials,
        status=status,
        day=parse_date(date_str) if date_str else None,
    )
    return jsonify([reservation_to_dict(r) for r in rows]), 200


# ---------- CUSTOMER or OWNER: cancel ----------
@reservations_bp.post("/<int:reservation_id>/cancel")
@login_required
def cancel_reservation(reservation_id: int):
    data = request.get_json(silent=True) or {}
    reservation = engine.cancel(g.credentials, reservation_id, reason=data.get("reason"))
    return jsonify(reservation_to_dict(reservation, with_slot=False)), 200


# ---------- OWNER: deposit received ----------
@reservations_bp.post("/<int:reservation_id>/deposit")
@require_roles("ADMIN")
def confirm_deposit(reservation_id: int):
    reservation = engine.confirm_deposit(g.credentials, reservation_id)
    return jsonify(reservation_to_dict(reservation, with_slot=False)), 200
