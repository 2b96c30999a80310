import logging
from contextlib import contextmanager

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError

from errors import PersistenceFailure

db = SQLAlchemy()
logger = logging.getLogger(__name__)


def init_db(app):
    """Bind SQLAlchemy to the Flask app and create all tables."""
    db.init_app(app)
    with app.app_context():
        import models  # noqa: F401  registers every table on the metadata
        db.create_all()
        logger.info("[DB] All tables created successfully.")


@contextmanager
def atomic():
    """
    Run a block of writes as one transaction.

    Commits when the block exits cleanly. Any exception rolls the whole
    session back; database errors surface as PersistenceFailure so the
    caller sees a single error kind for "the store rejected the write".
    """
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(f"[DB] Transaction rolled back: {exc}")
        raise PersistenceFailure("The database rejected the write.") from exc
    except Exception:
        db.session.rollback()
        raise
