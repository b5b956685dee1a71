from models import db


def lock_for_write():
    """
    Open the write transaction before the first read.

    PostgreSQL callers lock rows with SELECT ... FOR UPDATE instead. SQLite
    ignores FOR UPDATE and defers BEGIN until the first INSERT/UPDATE, so the
    checks that precede the write would otherwise run outside the transaction.
    """
    session = db.session
    if session.get_bind().dialect.name != "sqlite":
        return
    raw = session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        session.connection().exec_driver_sql("BEGIN IMMEDIATE")
