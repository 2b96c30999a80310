"""
admin.py — Admin dashboard data routes (stats, registration review, audit).

All routes return JSON and are guarded once by require_admin().
"""

from collections import Counter
from flask import Blueprint, request, g
from sqlalchemy.orm import selectinload

from models import Client, ClientStatus, AuditLog, PendingRegistration, RegistrationStatus
from services import registrations as registration_service
from services.audit import write_audit, serialize_audit
from services.payments import reconcile, DERIVED_PAYMENT_STATUSES
from tasks.notifications import (
    queue_notification, send_registration_approved_email, send_registration_rejected_email,
)
from utils.auth import require_admin
from utils.response import success

admin_bp = Blueprint("admin", __name__)
admin_bp.before_request(require_admin)


# ── Dashboard stats ───────────────────────────────────────
@admin_bp.route("/stats")
def stats():
    """
    GET /admin/stats
    Client totals by case status and by derived payment status, plus the
    number of registrations waiting for review.
    """
    clients = Client.query.options(selectinload(Client.payments)).all()

    by_status = Counter(c.status.value for c in clients)
    by_payment = Counter(reconcile(c.payments).payment_status for c in clients)

    pending_registrations = PendingRegistration.query.filter_by(
        status=RegistrationStatus.pending_verification
    ).count()

    return success(data={
        "total_clients":         len(clients),
        "by_status":             {s.value: by_status.get(s.value, 0) for s in ClientStatus},
        "by_payment_status":     {p: by_payment.get(p, 0) for p in DERIVED_PAYMENT_STATUSES},
        "pending_registrations": pending_registrations,
    })


# ── Registration review ───────────────────────────────────
@admin_bp.route("/registrations")
def list_registrations():
    """
    GET /admin/registrations
    BaridiMob registrations waiting for receipt verification, newest first.
    """
    pending = registration_service.list_pending()
    return success(data={
        "count":         len(pending),
        "registrations": [registration_service.serialize_registration(p) for p in pending],
    })


@admin_bp.route("/registrations/<registration_id>/approve", methods=["POST"])
def approve_registration(registration_id):
    """
    POST /admin/registrations/<registration_id>/approve
    Creates the client with a verified initial payment.
    """
    client = registration_service.approve(registration_id, g.admin_id)
    write_audit(
        g.admin_id,
        f"Registration approved for '{client.full_name}'.",
        "registration", registration_id,
        details={"client_id": client.client_id},
    )
    queue_notification(send_registration_approved_email, client.client_id)
    return success(data={
        "client_id": client.client_id,
        "email":     client.email,
    }, message="Registration approved.")


@admin_bp.route("/registrations/<registration_id>/reject", methods=["POST"])
def reject_registration(registration_id):
    """
    POST /admin/registrations/<registration_id>/reject
    Body: { "reason": str }
    """
    body = request.get_json(silent=True) or {}
    pending = registration_service.reject(registration_id, g.admin_id, body.get("reason"))

    data = pending.registration_data or {}
    name = f"{data.get('first_name', '')} {data.get('last_name', '')}".strip()
    write_audit(
        g.admin_id,
        f"Registration rejected for '{name}': {pending.rejection_reason}",
        "registration", registration_id,
    )
    if data.get("email"):
        queue_notification(send_registration_rejected_email, data["email"], name, pending.rejection_reason)
    return success(message="Registration rejected.")


# ── Audit log ─────────────────────────────────────────────
@admin_bp.route("/audit-data")
def audit_data():
    """
    GET /admin/audit-data?page=1&per_page=50
    Audit log entries, newest first.
    """
    page     = max(1, request.args.get("page", 1, type=int))
    per_page = min(max(1, request.args.get("per_page", 50, type=int)), 200)

    q     = AuditLog.query.order_by(AuditLog.timestamp.desc())
    total = q.count()
    logs  = q.offset((page - 1) * per_page).limit(per_page).all()

    return success(data={
        "logs":  [serialize_audit(log) for log in logs],
        "total": total,
        "page":  page,
        "pages": max(1, -(-total // per_page)),
    })
