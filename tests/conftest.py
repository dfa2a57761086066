from datetime import date, time, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app import create_app
from config import Config
from models import db
from models.availability import Availability
from models.city import City
from models.field import Field
from models.user import Role, User
from security.password import hash_password
from services.credentials import credentials_for

PASSWORD = "pitch-side-42"


@pytest.fixture
def app(tmp_path):
    class TestConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "turfslot-test.db")
        # threads in the concurrency tests share the file; wait on locks instead of failing
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        CREATE_TABLES_ON_STARTUP = True
        SESSION_COOKIE_SECURE = False
        BCRYPT_ROUNDS = 4
        STORE_RETRY_BACKOFF_SECONDS = 0
        LOG_LEVEL = "WARNING"

    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(email, role="CUSTOMER"):
        user = User(email=email, password_hash=hash_password(PASSWORD))
        user.roles.append(Role.query.filter_by(name=role).one())
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def owner(make_user):
    return make_user("owner@example.com", role="ADMIN")


@pytest.fixture
def customer(make_user):
    return make_user("player@example.com")


@pytest.fixture
def owner_creds(owner):
    return credentials_for(owner)


@pytest.fixture
def customer_creds(customer):
    return credentials_for(customer)


@pytest.fixture
def city(app):
    row = City(name="Istanbul")
    db.session.add(row)
    db.session.commit()
    return row


@pytest.fixture
def make_field(owner, city):
    def _make(name="Yildiz Halisaha", location="Besiktas", owner_id=None, city_id=None):
        field = Field(
            owner_id=owner_id or owner.id,
            city_id=city_id or city.id,
            name=name,
            location=location,
            description="Floodlit 7-a-side pitch",
        )
        db.session.add(field)
        db.session.commit()
        return field
    return _make


@pytest.fixture
def field(make_field):
    return make_field()


@pytest.fixture
def future_day():
    return date.today() + timedelta(days=5)


@pytest.fixture
def make_slot(app):
    def _make(field, day, start="18:00", end=None, price=400, deposit=100, reserved=False):
        start_time = time.fromisoformat(start)
        end_time = time.fromisoformat(end) if end else start_time.replace(hour=start_time.hour + 1)
        slot = Availability(
            field_id=field.id,
            date=day,
            start_time=start_time,
            end_time=end_time,
            price=price,
            deposit_amount=deposit,
            is_reserved=reserved,
        )
        db.session.add(slot)
        db.session.commit()
        return slot
    return _make


@pytest.fixture
def login(app):
    """Log a test client in through the API; returns headers carrying the CSRF token."""
    def _login(client, email):
        resp = client.post("/auth/login", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        return {"X-CSRF-Token": client.get_cookie("csrf_token").value}
    return _login


@pytest.fixture
def slot_for_api(field, make_slot, future_day):
    return make_slot(field, future_day).id


@pytest.fixture
def failing_commits(monkeypatch):
    """Make the next `times` session commits raise OperationalError; returns the list of commit calls."""
    def _install(times):
        calls = []
        real_commit = db.session.commit

        def commit():
            calls.append(len(calls) + 1)
            if len(calls) <= times:
                raise OperationalError("COMMIT", {}, Exception("database is locked"))
            return real_commit()

        monkeypatch.setattr(db.session, "commit", commit)
        return calls
    return _install
