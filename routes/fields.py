from flask import Blueprint, request, jsonify, g

from routes.serializers import field_to_dict
from security.rbac import require_roles
from services import fields as field_service
from services.search import search_fields
from services.errors import ValidationError
from utils.parsing import parse_int

fields_bp = Blueprint("fields", __name__)


@fields_bp.get("/cities")
def list_cities():
    return jsonify([{"id": c.id, "name": c.name} for c in field_service.list_cities()]), 200


@fields_bp.get("/fields")
def browse_fields():
    listings = search_fields(
        city_id=parse_int(request.args.get("city_id"), "city_id", required=False),
        text=request.args.get("q"),
        min_price=parse_int(request.args.get("min_price"), "min_price", required=False),
        max_price=parse_int(request.args.get("max_price"), "max_price", required=False),
        sort=(request.args.get("sort") or "name_asc").strip().lower(),
    )
    out = []
    for item in listings:
        row = field_to_dict(item.field, city_name=item.city_name)
        row["min_price"] = item.min_price
        row["max_price"] = item.max_price
        out.append(row)
    return jsonify(out), 200


@fields_bp.post("/fields")
@require_roles("ADMIN")
def create_field():
    data = request.get_json(silent=True) or {}
    field = field_service.create_field(
        g.credentials,
        city_id=parse_int(data.get("city_id"), "city_id"),
        name=data.get("name"),
        location=data.get("location"),
        description=data.get("description"),
        image_url=data.get("image_url"),
    )
    return jsonify(field_to_dict(field)), 201


@fields_bp.get("/fields/mine")
@require_roles("ADMIN")
def my_fields():
    return jsonify([field_to_dict(f) for f in field_service.list_owned_fields(g.credentials)]), 200


@fields_bp.get("/fields/<int:field_id>")
def get_field(field_id: int):
    return jsonify(field_to_dict(field_service.get_field(field_id))), 200


@fields_bp.patch("/fields/<int:field_id>")
@require_roles("ADMIN")
def update_field(field_id: int):
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        raise ValidationError("JSON object with changes required")
    if "city_id" in data:
        data["city_id"] = parse_int(data["city_id"], "city_id")

    field = field_service.update_field(g.credentials, field_id, data)
    return jsonify(field_to_dict(field)), 200
