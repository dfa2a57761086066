from models import db
from models.city import City
from models.user import Role

DEFAULT_ROLES = ["CUSTOMER", "ADMIN"]


def seed_roles():
    existing = {r.name for r in Role.query.all()}
    for name in DEFAULT_ROLES:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()


def seed_cities(names) -> int:
    """Insert missing cities by name. Returns how many were added."""
    existing = {c.name for c in City.query.all()}
    added = 0
    for name in names:
        name = (name or "").strip()
        if name and name not in existing:
            db.session.add(City(name=name))
            existing.add(name)
            added += 1
    db.session.commit()
    return added
