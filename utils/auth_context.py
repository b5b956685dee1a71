from functools import wraps
from flask import current_app, g, jsonify, request
from sqlalchemy.exc import IntegrityError

from models import db
from models.participant import Participant


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()


def load_current_participant():
    """
    Resolve the participant named by the identity proxy headers.

    Identity is issued and verified upstream; the headers are trusted as given.
    First sight of an e-mail creates the participant row.
    """
    email_header = current_app.config.get("IDENTITY_EMAIL_HEADER", "X-Participant-Email")
    name_header = current_app.config.get("IDENTITY_NAME_HEADER", "X-Participant-Name")

    email = normalize_email(request.headers.get(email_header))
    if not email:
        g.participant = None
        return

    participant = Participant.query.filter_by(email=email).first()
    if participant is None:
        participant = Participant(email=email, full_name=(request.headers.get(name_header) or "").strip() or None)
        db.session.add(participant)
        try:
            db.session.commit()
        except IntegrityError:
            # created by a parallel request
            db.session.rollback()
            participant = Participant.query.filter_by(email=email).first()

    g.participant = participant


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "participant", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
