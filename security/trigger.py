import hmac
from functools import wraps
from flask import current_app, jsonify, request

CRON_SECRET_HEADER = "X-Cron-Secret"

def require_cron_secret(fn):
    """The reminder trigger authenticates with a shared secret (query or header)."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        expected = current_app.config.get("CRON_SECRET")
        if not expected:
            return jsonify(error="Cron secret not configured"), 500

        supplied = request.args.get("secret") or request.headers.get(CRON_SECRET_HEADER) or ""
        if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
            return jsonify(error="unauthorized"), 401
        return fn(*args, **kwargs)
    return wrapper
