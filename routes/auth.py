from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User, Role
from security.password import hash_password, verify_password
from security.session import create_session, revoke_session, revoke_all_sessions
from security.csrf import issue_csrf_token
from services.credentials import credentials_for
from utils.audit import log_event
from utils.auth_context import login_required

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

# public role names -> stored role
REGISTERABLE_ROLES = {"customer": "CUSTOMER", "admin": "ADMIN"}
MIN_PASSWORD_LEN = 8


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    role_name = REGISTERABLE_ROLES.get((data.get("role") or "customer").strip().lower())

    if not _is_valid_email(email):
        return jsonify(error="Invalid email", kind="validation_error"), 400
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LEN:
        return jsonify(error=f"Password must be at least {MIN_PASSWORD_LEN} characters", kind="validation_error"), 400
    if role_name is None:
        return jsonify(error="role must be customer or admin", kind="validation_error"), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered", kind="validation_error"), 409

    user = User(email=email, password_hash=hash_password(password))
    role = Role.query.filter_by(name=role_name).first()
    if role is None:
        role = Role(name=role_name)
        db.session.add(role)
    user.roles.append(role)
    db.session.add(user)
    db.session.commit()

    log_event("REGISTER_SUCCESS", user_id=user.id, entity="user", entity_id=user.id, metadata={"role": role_name})
    return jsonify(id=user.id, role=role_name), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(error="Invalid credentials", kind="unauthenticated"), 401

    # Rotate: one live session per account
    revoked_count = revoke_all_sessions(user.id)
    raw_token = create_session(user.id)

    resp = jsonify(message="Login OK", role=credentials_for(user).role)
    resp.set_cookie(
        current_app.config.get("AUTH_COOKIE_NAME", "turfslot_session"),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"revoked_sessions": revoked_count})
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(
        id=g.user.id,
        email=g.user.email,
        role=g.credentials.role,
        created_at=g.user.created_at.isoformat(),
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "turfslot_session")
    revoke_session(request.cookies.get(cookie_name))
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200
