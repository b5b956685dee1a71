"""
Shared fixtures for the scheduling test suite.

Each test gets a fresh in-memory SQLite database built from the models,
including the partial unique indexes on bookings.
"""

from datetime import datetime, timedelta

import pytest

from app import create_app
from config import Config
from models import db as _db
from models.participant import Participant
from models.service import Service
from models.slot import Slot

NOW = datetime(2026, 3, 2, 8, 0, 0)


class TestingConfig(Config):
    __test__ = False

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    ADMIN_EMAILS = "admin@study.test"
    CRON_SECRET = "test-cron-secret"
    APP_BASE_URL = "https://study.test/"
    LOG_LEVEL = "WARNING"


class FakeMailer:
    """Records messages; addresses can be set to fail or to raise."""

    def __init__(self):
        self.sent = []
        self.attempts = []
        self.fail_for = set()
        self.raise_for = set()
        self.on_send = None

    def send(self, to, subject, body):
        self.attempts.append(to)
        if self.on_send is not None:
            self.on_send(to)
        if to in self.raise_for:
            raise TimeoutError("timed out")
        if to in self.fail_for:
            return False, "rejected by transport"
        self.sent.append((to, subject, body))
        return True, None


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def app(mailer):
    app = create_app(TestingConfig, mailer=mailer)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    return _db.session


@pytest.fixture
def make_service(session):
    def _make(name="Ultrasound (baseline)", modality="US", visit_kind="BASELINE", active=True):
        service = Service(name=name, modality=modality, visit_kind=visit_kind, active=active)
        session.add(service)
        session.commit()
        return service
    return _make


@pytest.fixture
def make_participant(session):
    def _make(email="p1@study.test", full_name=None):
        participant = Participant(email=email, full_name=full_name)
        session.add(participant)
        session.commit()
        return participant
    return _make


@pytest.fixture
def make_slot(session):
    def _make(service, starts_at, capacity=1):
        slot = Slot(
            service_id=service.id,
            starts_at=starts_at,
            ends_at=starts_at + timedelta(hours=1),
            capacity=capacity,
        )
        session.add(slot)
        session.commit()
        return slot
    return _make


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def p1(make_participant):
    return make_participant("p1@study.test", "Participant One")


@pytest.fixture
def p2(make_participant):
    return make_participant("p2@study.test", "Participant Two")


# ---------- apps on a shared database file, for tests with several connections ----------

def make_file_app(db_path, mailer, timeout=30):
    class FileDbConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(db_path)
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": timeout}}

    app = create_app(FileDbConfig, mailer=mailer)
    with app.app_context():
        _db.create_all()
    return app


def dispose_file_app(app):
    with app.app_context():
        _db.session.remove()
        _db.drop_all()
        _db.engine.dispose()


def seed_store(app, participants=1, slots=1):
    """One service with `slots` consecutive capacity-1 slots; returns plain ids."""
    with app.app_context():
        service = Service(name="Ultrasound (baseline)", modality="US", visit_kind="BASELINE")
        _db.session.add(service)
        people = [Participant(email=f"racer{i}@study.test") for i in range(participants)]
        _db.session.add_all(people)
        _db.session.flush()
        rows = [
            Slot(service_id=service.id, starts_at=NOW + timedelta(hours=2 + i),
                 ends_at=NOW + timedelta(hours=3 + i), capacity=1)
            for i in range(slots)
        ]
        _db.session.add_all(rows)
        _db.session.commit()
        return service.id, [p.id for p in people], [s.id for s in rows]


@pytest.fixture
def file_app(tmp_path, mailer):
    app = make_file_app(tmp_path / "race.db", mailer)
    yield app
    dispose_file_app(app)
