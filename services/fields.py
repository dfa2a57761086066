from models import db
from models.city import City
from models.field import Field
from models.user import User
from services.credentials import Credentials, OWNER, require_owner
from services.errors import FieldNotFound, Unauthorized, ValidationError
from services.rules import is_row_id
from services.store import store_errors
from utils.audit import log_event

_EDITABLE = ("city_id", "name", "location", "description", "image_url")
_LIMITS = {"name": 120, "location": 160, "image_url": 255}


def _clean_text(value, name: str, required: bool):
    if value is None:
        if required:
            raise ValidationError(f"{name} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    value = value.strip()
    if required and not value:
        raise ValidationError(f"{name} is required")
    limit = _LIMITS.get(name)
    if limit and len(value) > limit:
        raise ValidationError(f"{name} must be at most {limit} characters")
    return value


def _require_city(city_id) -> City:
    city = db.session.get(City, city_id) if is_row_id(city_id) else None
    if not city:
        raise ValidationError("Unknown city")
    return city


def list_cities():
    with store_errors():
        return City.query.order_by(City.name.asc()).all()


def get_field(field_id: int) -> Field:
    if not is_row_id(field_id):
        raise FieldNotFound("Field not found")
    with store_errors():
        field = db.session.get(Field, field_id)
    if not field:
        raise FieldNotFound("Field not found")
    return field


def get_owned_field(credentials: Credentials, field_id: int) -> Field:
    """Field lookup for owner-side writes: must exist and belong to the caller."""
    require_owner(credentials)
    field = get_field(field_id)
    if field.owner_id != credentials.account_id:
        raise Unauthorized("You do not own this field")
    return field


def list_owned_fields(credentials: Credentials):
    require_owner(credentials)
    with store_errors():
        return (
            Field.query
            .filter_by(owner_id=credentials.account_id)
            .order_by(Field.name.asc())
            .all()
        )


def create_field(credentials: Credentials, city_id, name, location, description, image_url=None) -> Field:
    require_owner(credentials)

    name = _clean_text(name, "name", required=True)
    location = _clean_text(location, "location", required=True)
    description = _clean_text(description, "description", required=False) or ""
    image_url = _clean_text(image_url, "image_url", required=False) or None

    with store_errors():
        # the stored role is authoritative, not the caller-supplied claim
        owner = db.session.get(User, credentials.account_id)
        if not owner or not owner.has_role(OWNER):
            raise Unauthorized("Field owner role required")
        _require_city(city_id)

        field = Field(
            owner_id=owner.id,
            city_id=city_id,
            name=name,
            location=location,
            description=description,
            image_url=image_url,
        )
        db.session.add(field)
        db.session.commit()

    log_event("FIELD_CREATE", user_id=credentials.account_id, entity="field", entity_id=field.id, field_id=field.id)
    return field


def update_field(credentials: Credentials, field_id: int, changes: dict) -> Field:
    field = get_owned_field(credentials, field_id)

    unknown = set(changes) - set(_EDITABLE)
    if unknown:
        raise ValidationError("Unknown field attribute(s)", details=sorted(unknown))

    cleaned = {}
    for name in ("name", "location"):
        if name in changes:
            cleaned[name] = _clean_text(changes[name], name, required=True)
    if "description" in changes:
        cleaned["description"] = _clean_text(changes["description"], "description", required=False) or ""
    if "image_url" in changes:
        cleaned["image_url"] = _clean_text(changes["image_url"], "image_url", required=False) or None

    with store_errors():
        if "city_id" in changes:
            _require_city(changes["city_id"])
            cleaned["city_id"] = changes["city_id"]
        for name, value in cleaned.items():
            setattr(field, name, value)
        db.session.commit()

    log_event(
        "FIELD_UPDATE",
        user_id=credentials.account_id,
        entity="field",
        entity_id=field.id,
        field_id=field.id,
        metadata={"changed": sorted(cleaned)},
    )
    return field
