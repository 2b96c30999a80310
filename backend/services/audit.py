"""
audit.py — Append-only admin action log.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from database import db
from models import AuditLog

logger = logging.getLogger(__name__)


def write_audit(performed_by, action, record_type=None, record_id=None, details=None):
    """
    Write an entry to the audit log in its own commit.

    Runs after the audited change has committed; a failure here is logged
    and never undoes or fails the change itself.
    """
    try:
        db.session.add(AuditLog(
            action=action,
            performed_by=performed_by,
            record_type=record_type,
            record_id=record_id,
            details=details,
        ))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning(f"Could not write audit log: {e}")


def serialize_audit(log: AuditLog) -> dict:
    return {
        "log_id":       log.log_id,
        "action":       log.action,
        "performed_by": log.performed_by,
        "admin_name":   log.performed_by_admin.name if log.performed_by_admin else None,
        "record_type":  log.record_type,
        "record_id":    log.record_id,
        "metadata":     log.details,
        "timestamp":    log.timestamp.isoformat() if log.timestamp else None,
    }
