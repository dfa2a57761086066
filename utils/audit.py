from flask import has_request_context, request

from models import db
from models.audit_log import AuditLog


def log_event(action: str, user_id=None, entity=None, entity_id=None, field_id=None, metadata=None):
    """Append one row to the audit trail and commit it.

    Call after the business transaction has committed; the audit row is
    written in its own commit. Outside a request (CLI jobs) ip and user agent
    stay empty.
    """
    ip = None
    user_agent = None
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        user_agent = (request.headers.get("User-Agent") or "")[:255] or None

    row = AuditLog(
        actor_id=user_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        field_id=field_id,
        ip=ip,
        user_agent=user_agent,
        details=metadata or None,
    )
    db.session.add(row)
    db.session.commit()
