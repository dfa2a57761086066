import pytest

from models import db
from models.city import City
from services.errors import ValidationError
from services.search import search_fields


@pytest.fixture
def priced_fields(field, make_field, make_slot, future_day):
    arena = make_field(name="Arena Kadikoy", location="Moda")
    bare = make_field(name="Bare Pitch", location="Uskudar")
    make_slot(field, future_day, start="18:00", price=400, deposit=100)
    make_slot(field, future_day, start="21:00", price=700, deposit=100)
    make_slot(arena, future_day, start="18:00", price=250, deposit=50)
    return field, arena, bare


def test_name_sort_includes_fields_without_slots(priced_fields):
    field, arena, bare = priced_fields
    listings = search_fields()

    assert [item.field.id for item in listings] == [arena.id, bare.id, field.id]
    by_id = {item.field.id: item for item in listings}
    assert (by_id[field.id].min_price, by_id[field.id].max_price) == (400, 700)
    assert by_id[bare.id].min_price is None
    assert by_id[arena.id].city_name == "Istanbul"


def test_price_sort_puts_unpriced_fields_last(priced_fields):
    field, arena, bare = priced_fields

    assert [item.field.id for item in search_fields(sort="price_asc")] == [arena.id, field.id, bare.id]
    assert [item.field.id for item in search_fields(sort="price_desc")] == [field.id, arena.id, bare.id]


def test_price_filter_matches_overlapping_ranges(priced_fields):
    field, arena, _ = priced_fields

    assert [item.field.id for item in search_fields(min_price=500)] == [field.id]
    assert [item.field.id for item in search_fields(max_price=300)] == [arena.id]
    assert {item.field.id for item in search_fields(min_price=300, max_price=450)} == {field.id}


def test_text_matches_name_or_location(priced_fields):
    field, arena, _ = priced_fields

    assert [item.field.id for item in search_fields(text="kadik")] == [arena.id]
    assert [item.field.id for item in search_fields(text="BESIKTAS")] == [field.id]


def test_city_filter(priced_fields, make_field):
    ankara = City(name="Ankara")
    db.session.add(ankara)
    db.session.commit()
    capital = make_field(name="Capital Turf", city_id=ankara.id)

    assert [item.field.id for item in search_fields(city_id=ankara.id)] == [capital.id]
    assert len(search_fields(city_id=priced_fields[0].city_id)) == 3


def test_bad_search_arguments(app):
    with pytest.raises(ValidationError):
        search_fields(sort="rating")
    with pytest.raises(ValidationError):
        search_fields(min_price=10, max_price=5)
