from flask import Flask, jsonify
from config import Config
from routes import health_bp, auth_bp, fields_bp, availability_bp, reservations_bp

from models import db
from flask_migrate import Migrate
from sqlalchemy import inspect
from services.errors import BookingError
from utils.seed import seed_roles
from utils.auth_context import load_current_user
from utils.logger import configure_logging, get_logger
from security.csrf import csrf_protect

log = get_logger(__name__)


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    configure_logging(app.config.get("LOG_LEVEL"))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(fields_bp)
    app.register_blueprint(availability_bp)
    app.register_blueprint(reservations_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db, render_as_batch=True)

    with app.app_context():
        if app.config.get("CREATE_TABLES_ON_STARTUP"):
            db.create_all()
        # Seed default roles at startup (safe & idempotent); skipped until `flask db upgrade` ran
        if inspect(db.engine).has_table("roles"):
            seed_roles()

    app.before_request(load_current_user)
    app.before_request(csrf_protect)

    @app.errorhandler(BookingError)
    def _booking_error(exc: BookingError):
        if exc.status_code >= 500:
            log.warning("%s: %s", exc.kind, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
import click
from models.user import User, Role
from services.slot_generator import extend_all_schedules
from utils.seed import seed_cities

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Give an account the field-owner (ADMIN) role."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name="ADMIN").first()
        if not admin_role:
            admin_role = Role(name="ADMIN")
            db.session.add(admin_role)

        # owner and customer are exclusive
        user.roles = [admin_role]
        db.session.commit()
        click.echo(f"{user.email} is now a field owner")

    @app.cli.command("seed-cities")
    @click.argument("names", nargs=-1, required=True)
    def seed_cities_command(names):
        """Add reference cities by name (existing names are skipped)."""
        added = seed_cities(names)
        click.echo(f"{added} city(ies) added")

    @app.cli.command("extend-slots")
    @click.option("--days", type=int, default=None, help="Window length; defaults to SLOT_WINDOW_DAYS.")
    def extend_slots(days):
        """Roll every stored weekly schedule forward (safe to run daily)."""
        summary = extend_all_schedules(window_days=days)
        total = sum(summary.values())
        click.echo(f"{total} slot(s) created across {len(summary)} field(s)")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
