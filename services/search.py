from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, or_

from models import db
from models.availability import Availability
from models.city import City
from models.field import Field
from services.errors import ValidationError
from services.store import store_errors

FIELD_SORTS = ("price_asc", "price_desc", "name_asc", "name_desc")


@dataclass
class FieldListing:
    field: Field
    city_name: str
    min_price: Optional[int]
    max_price: Optional[int]


def search_fields(city_id: Optional[int] = None, text: Optional[str] = None,
                  min_price: Optional[int] = None, max_price: Optional[int] = None,
                  sort: str = "name_asc") -> List[FieldListing]:
    """
    Browse fields. A price filter keeps fields whose slot price range
    overlaps [min_price, max_price]; fields without slots drop out once a
    price filter is given.
    """
    if sort not in FIELD_SORTS:
        raise ValidationError("Unknown sort", details=list(FIELD_SORTS))
    if min_price is not None and max_price is not None and max_price < min_price:
        raise ValidationError("max_price must not be below min_price")

    prices = (
        db.session.query(
            Availability.field_id.label("field_id"),
            func.min(Availability.price).label("min_price"),
            func.max(Availability.price).label("max_price"),
        )
        .group_by(Availability.field_id)
        .subquery()
    )

    q = (
        db.session.query(Field, City.name, prices.c.min_price, prices.c.max_price)
        .join(City, Field.city_id == City.id)
        .outerjoin(prices, prices.c.field_id == Field.id)
    )
    if city_id is not None:
        q = q.filter(Field.city_id == city_id)

    text = (text or "").strip()
    if text:
        like = f"%{text}%"
        q = q.filter(or_(Field.name.ilike(like), Field.location.ilike(like)))

    if min_price is not None:
        q = q.filter(prices.c.max_price >= min_price)
    if max_price is not None:
        q = q.filter(prices.c.min_price <= max_price)

    if sort == "price_asc":
        q = q.order_by(prices.c.min_price.is_(None), prices.c.min_price.asc(), Field.name.asc())
    elif sort == "price_desc":
        q = q.order_by(prices.c.min_price.is_(None), prices.c.min_price.desc(), Field.name.asc())
    elif sort == "name_desc":
        q = q.order_by(Field.name.desc(), Field.id.asc())
    else:
        q = q.order_by(Field.name.asc(), Field.id.asc())

    with store_errors():
        rows = q.limit(200).all()

    return [
        FieldListing(field=field, city_name=city, min_price=lo, max_price=hi)
        for field, city, lo, hi in rows
    ]
