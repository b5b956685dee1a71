from functools import wraps
from flask import current_app, g, jsonify

def admin_emails():
    raw = current_app.config.get("ADMIN_EMAILS") or []
    if isinstance(raw, str):
        raw = raw.split(",")
    return {e.strip().lower() for e in raw if e and e.strip()}

def is_admin(participant=None) -> bool:
    participant = participant or getattr(g, "participant", None)
    if not participant:
        return False
    return participant.email in admin_emails()

def require_admin(fn):
    """
    Usage: @require_admin
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        participant = getattr(g, "participant", None)
        if participant is None:
            return jsonify(error="Authentication required"), 401
        if not is_admin(participant):
            return jsonify(error="Forbidden"), 403
        return fn(*args, **kwargs)
    return wrapper
