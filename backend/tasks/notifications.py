"""
notifications.py — Background Celery tasks for client email notifications.

Routes call queue_notification(); nothing is queued when
NOTIFICATIONS_ENABLED is off, and a broker outage never fails the request.
"""

import logging
from contextlib import contextmanager

from flask import current_app, has_app_context

from tasks.celery_app import celery

log = logging.getLogger(__name__)


def queue_notification(task, *args) -> bool:
    """Queue `task` with `args`. Returns True if it was handed to the broker."""
    if not current_app.config.get("NOTIFICATIONS_ENABLED", True):
        log.debug(f"Notifications disabled — {task.name} not queued.")
        return False
    try:
        task.delay(*args)
        return True
    except Exception as exc:
        log.warning(f"Could not queue {task.name}: {exc}")
        return False


@contextmanager
def _app_context():
    """Workers run outside Flask; build an app for DB and config access."""
    if has_app_context():
        yield current_app
        return
    from app import create_app
    app = create_app()
    with app.app_context():
        yield app


def _deliver(to_email, subject, html) -> bool:
    """
    Send one email. Returns False when SendGrid is not configured; raises
    when a configured send fails so the task retries.
    """
    from utils.email import send_email
    if not current_app.config.get("SENDGRID_API_KEY"):
        log.info(f"SendGrid not configured, skipping email to {to_email}: {subject!r}")
        return False
    if not send_email(to_email=to_email, subject=subject, html_body=html):
        raise RuntimeError(f"SendGrid send returned False for {to_email}")
    return True


@celery.task(bind=True, name="tasks.send_registration_approved_email", max_retries=3, default_retry_delay=60)
def send_registration_approved_email(self, client_id: str):
    """Tell a newly approved registrant their account is active."""
    try:
        with _app_context() as app:
            from database import db
            from models import Client
            from utils.email import registration_approved_email

            client = db.session.get(Client, client_id)
            if not client or not client.email:
                log.warning(f"send_registration_approved_email: no client or email for {client_id}")
                return

            portal_url = app.config.get("PORTAL_BASE_URL", "").rstrip("/") + "/me"
            subject, html = registration_approved_email(client.full_name, client.email, portal_url)
            _deliver(client.email, subject, html)

    except Exception as exc:
        log.warning(f"send_registration_approved_email failed: {exc}")
        raise self.retry(exc=exc)


@celery.task(bind=True, name="tasks.send_registration_rejected_email", max_retries=3, default_retry_delay=60)
def send_registration_rejected_email(self, to_email: str, client_name: str, reason: str):
    try:
        with _app_context():
            from utils.email import registration_rejected_email
            subject, html = registration_rejected_email(client_name, reason)
            _deliver(to_email, subject, html)

    except Exception as exc:
        log.warning(f"send_registration_rejected_email failed: {exc}")
        raise self.retry(exc=exc)


@celery.task(bind=True, name="tasks.send_status_email", max_retries=3, default_retry_delay=60)
def send_status_email(self, client_id: str, new_status: str):
    """
    Email the client when an admin moves their file to approved, rejected
    or completed.
    """
    try:
        with _app_context():
            from database import db
            from models import Client
            from utils.email import status_update_email

            client = db.session.get(Client, client_id)
            if not client or not client.email:
                return

            subject, html = status_update_email(client.full_name, new_status)
            _deliver(client.email, subject, html)

    except Exception as exc:
        log.warning(f"send_status_email failed: {exc}")
        raise self.retry(exc=exc)


@celery.task(bind=True, name="tasks.send_payment_verified_email", max_retries=3, default_retry_delay=60)
def send_payment_verified_email(self, payment_id: str):
    try:
        with _app_context():
            from database import db
            from models import Payment
            from services.payments import summary_for
            from utils.email import payment_verified_email

            payment = db.session.get(Payment, payment_id)
            if not payment or not payment.client or not payment.client.email:
                return

            summary = summary_for(payment.client)
            subject, html = payment_verified_email(
                payment.client.full_name,
                float(payment.amount),
                float(summary.remaining_amount),
            )
            _deliver(payment.client.email, subject, html)

    except Exception as exc:
        log.warning(f"send_payment_verified_email failed: {exc}")
        raise self.retry(exc=exc)
