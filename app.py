import logging

from flask import Flask, jsonify
from config import Config
from routes import health_bp, services_bp, booking_bp, admin_bp, cron_bp

from models import db
from flask_migrate import Migrate
from scheduling.errors import SchedulingError
from utils.auth_context import load_current_participant
from utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


def create_app(config_object=Config, mailer=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(services_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(cron_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Mail transport override; SMTP from config otherwise
    if mailer is not None:
        app.extensions["mailer"] = mailer

    @app.before_request
    def _load_participant():
        load_current_participant()

    @app.errorhandler(SchedulingError)
    def _scheduling_error(exc):
        # expected outcome the caller acts on (refresh, pick another slot)
        logger.info("%s: %s", exc.code, exc)
        return jsonify(exc.to_dict()), exc.http_status

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
import click
from datetime import timedelta
from models.db import utcnow
from scheduling.reminders import dispatch_reminders
from scheduling.slots import create_slot
from utils.emailer import get_mailer
from utils.seed import seed_services

def register_cli(app):
    @app.cli.command("seed-services")
    def seed_services_command():
        """Create the default study services (idempotent)."""
        created = seed_services()
        click.echo(f"{created} service(s) created")

    @app.cli.command("send-reminders")
    @click.option("--window-hours", type=int, default=None, help="Override the lookahead window.")
    def send_reminders_command(window_hours):
        """Send due appointment reminders once."""
        window = timedelta(hours=window_hours) if window_hours else None
        report = dispatch_reminders(utcnow(), get_mailer(), window=window)
        click.echo(
            f"sent={report.sent} failed={report.failed} stale={report.stale} skipped={report.skipped}"
        )

    @app.cli.command("create-slot")
    @click.argument("service_id", type=int)
    @click.argument("starts_at")
    @click.option("--capacity", type=int, default=1)
    def create_slot_command(service_id, starts_at, capacity):
        """Create a one-hour slot; STARTS_AT is ISO UTC, e.g. 2026-01-20T18:00:00."""
        from routes.admin import parse_iso

        try:
            slot = create_slot(service_id, parse_iso(starts_at), capacity=capacity)
        except (SchedulingError, ValueError) as exc:
            raise click.ClickException(str(exc))
        click.echo(f"slot {slot.id} created: {slot.starts_at.isoformat()} - {slot.ends_at.isoformat()}")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
