from .db import db
from .participant import Participant
from .audit_log import AuditLog
from .service import Service
from .slot import Slot
from .booking import Booking
