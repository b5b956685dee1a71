from flask import Blueprint, jsonify

from models.db import utcnow
from scheduling.reminders import dispatch_reminders
from security.trigger import require_cron_secret
from utils.emailer import get_mailer

cron_bp = Blueprint("cron", __name__, url_prefix="/cron")


@cron_bp.route("/reminders", methods=["GET", "POST"])
@require_cron_secret
def send_reminders():
    report = dispatch_reminders(utcnow(), get_mailer())
    return jsonify(report.to_dict()), 200
