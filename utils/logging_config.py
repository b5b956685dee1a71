import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level="INFO"):
    root = logging.getLogger()
    root.setLevel(str(level).upper())

    # idempotent across repeated create_app() calls (tests build many apps)
    if any(getattr(h, "_studyslot", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    handler._studyslot = True
    root.addHandler(handler)
