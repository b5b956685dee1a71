from .health import health_bp
from .services import services_bp
from .booking import booking_bp
from .admin import admin_bp
from .cron import cron_bp
