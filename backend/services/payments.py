"""
payments.py — Payment ledger: status reconciliation and admin transitions.

The ledger (Payment rows) is the only source of truth for a client's payment
state. Every response that shows a payment status goes through reconcile().
"""

import logging
from dataclasses import dataclass, asdict
from datetime import timezone
from decimal import Decimal

from flask import current_app

from database import db, atomic
from errors import InvalidArgument, NotFound
from models import (
    Client, Payment, PaymentType, PaymentMethod, PaymentState, utcnow,
)

logger = logging.getLogger(__name__)

PAID_STATES = {PaymentState.verified, PaymentState.completed}
PAYMENT_STATUS_TARGETS = ("unpaid", "pending", "paid", "partially_paid", "failed", "refunded")
DERIVED_PAYMENT_STATUSES = ("unpaid", "pending", "partially_paid", "paid")
VERIFIABLE_STATES = {PaymentState.paid, PaymentState.pending}
SECOND_PAYMENT_METHODS = ("baridimob", "cib")

ZERO = Decimal("0")


@dataclass(frozen=True)
class PaymentSummary:
    payment_status: str
    payment_method: str | None
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("total_amount", "paid_amount", "remaining_amount"):
            data[key] = float(data[key])
        return data


# ─── Reconciliation ───────────────────────────────────────────────────────────

def reconcile(payments) -> PaymentSummary:
    """
    Derive the client-level payment status from a ledger.

    Accepts Payment rows or plain dicts with status/amount/payment_method/
    created_at keys. Pure: no database or app access.
    """
    total_paid = ZERO
    total_pending = ZERO
    latest = None
    latest_key = None

    for position, payment in enumerate(payments):
        status = _as_state(_field(payment, "status"))
        amount = _as_decimal(_field(payment, "amount"))

        if status in PAID_STATES:
            total_paid += amount
        elif status == PaymentState.pending:
            total_pending += amount

        # Later list position wins a created_at tie
        key = (_sort_time(_field(payment, "created_at")), position)
        if latest_key is None or key >= latest_key:
            latest, latest_key = payment, key

    if total_paid > 0 and total_pending == 0:
        payment_status = "paid"
    elif total_paid > 0 and total_pending > 0:
        payment_status = "partially_paid"
    elif total_pending > 0:
        payment_status = "pending"
    else:
        payment_status = "unpaid"

    method = _field(latest, "payment_method") if latest is not None else None
    if method is not None:
        method = getattr(method, "value", method)

    return PaymentSummary(
        payment_status=payment_status,
        payment_method=method,
        total_amount=total_paid + total_pending,
        paid_amount=total_paid,
        remaining_amount=total_pending,
    )


def summary_for(client: Client) -> PaymentSummary:
    """Re-read the client's ledger from the database and reconcile it."""
    payments = Payment.query.filter_by(client_id=client.client_id).all()
    return reconcile(payments)


# ─── Pricing ──────────────────────────────────────────────────────────────────

def offer_amount(offer, amounts: dict = None) -> Decimal:
    """Full price of an offer from the configured table (0 for unknown offers)."""
    table = amounts if amounts is not None else current_app.config["OFFER_AMOUNTS"]
    key = getattr(offer, "value", offer)
    return Decimal(str(table.get(key, 0)))


def first_payment_amount(offer, payment_type: str, amounts: dict = None) -> Decimal:
    """Partial registrants pay half up front; full payers get the flat discount."""
    total = offer_amount(offer, amounts)
    if payment_type == "full":
        discount = Decimal(str(current_app.config.get("FULL_PAYMENT_DISCOUNT", 0)))
        return max(total - discount, ZERO)
    return total / 2


# ─── Admin transitions ────────────────────────────────────────────────────────

def apply_payment_status(client_id: str, target: str, admin_id: str = None, amounts: dict = None):
    """
    Translate an admin's target payment status into ledger writes.

    The whole transition commits or rolls back as one unit. Returns the
    client and the reconciled summary of the updated ledger.
    """
    if target not in PAYMENT_STATUS_TARGETS:
        raise InvalidArgument(
            f"Invalid payment status. Must be one of: {', '.join(PAYMENT_STATUS_TARGETS)}"
        )

    client = db.session.get(Client, client_id)
    if client is None:
        raise NotFound.for_resource("Client")

    logger.info(f"[Payments] Admin {admin_id} setting client {client_id} payment status to {target}")
    total = offer_amount(client.selected_offer, amounts)

    with atomic():
        payments = Payment.query.filter_by(client_id=client_id).all()
        _TRANSITIONS[target](client, payments, total, admin_id)

    summary = summary_for(client)
    logger.info(f"[Payments] Client {client_id} now {summary.payment_status}")
    return client, summary


def _to_paid(client, payments, total, admin_id):
    if payments:
        for payment in payments:
            if payment.status in (PaymentState.pending, PaymentState.failed):
                _mark_verified(payment, admin_id)
    else:
        db.session.add(_new_payment(
            client, PaymentType.initial, PaymentMethod.manual, total,
            PaymentState.verified, admin_id,
        ))


def _to_pending(client, payments, total, admin_id):
    if not payments:
        db.session.add(_new_payment(
            client, PaymentType.initial, PaymentMethod.pending, total, PaymentState.pending,
        ))
        return
    for payment in payments:
        if payment.status in (PaymentState.verified, PaymentState.failed):
            payment.status = PaymentState.pending


def _to_unpaid(client, payments, total, admin_id):
    for payment in payments:
        db.session.delete(payment)


def _to_partially_paid(client, payments, total, admin_id):
    # Only 'verified' counts here, not 'completed'
    has_verified = any(p.status == PaymentState.verified for p in payments)
    has_pending = any(p.status == PaymentState.pending for p in payments)
    half = total / 2

    if not has_verified:
        db.session.add(_new_payment(
            client, PaymentType.initial, PaymentMethod.manual, half,
            PaymentState.verified, admin_id,
        ))
    if not has_pending:
        db.session.add(_new_payment(
            client, PaymentType.second, PaymentMethod.pending, half, PaymentState.pending,
        ))


def _to_failed(client, payments, total, admin_id):
    for payment in payments:
        payment.status = PaymentState.failed


def _to_refunded(client, payments, total, admin_id):
    db.session.add(_new_payment(
        client, PaymentType.initial, PaymentMethod.refund, -total,
        PaymentState.verified, admin_id,
    ))


_TRANSITIONS = {
    "paid":           _to_paid,
    "pending":        _to_pending,
    "unpaid":         _to_unpaid,
    "partially_paid": _to_partially_paid,
    "failed":         _to_failed,
    "refunded":       _to_refunded,
}


# ─── Single-payment actions ───────────────────────────────────────────────────

def verify_payment(client_id: str, payment_id: str, admin_id: str):
    """Mark one paid/pending payment as verified. Returns (payment, client, summary)."""
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise NotFound.for_resource("Payment")
    if payment.client_id != client_id:
        raise InvalidArgument("Payment does not belong to this client.")
    if payment.status not in VERIFIABLE_STATES:
        raise InvalidArgument(f"Payment cannot be verified from status '{payment.status.value}'.")

    client = db.session.get(Client, client_id)
    if client is None:
        raise NotFound.for_resource("Client")

    with atomic():
        _mark_verified(payment, admin_id)

    logger.info(f"[Payments] Admin {admin_id} verified payment {payment_id} for client {client_id}")
    return payment, client, summary_for(client)


def submit_second_payment(client: Client, payment_method: str, receipt_url: str = None,
                          amounts: dict = None) -> Payment:
    """
    Record the client's second instalment as pending admin verification.

    Requires an initial payment that is paid, verified or completed. An
    existing second payment is updated in place rather than duplicated.
    """
    if payment_method not in SECOND_PAYMENT_METHODS:
        raise InvalidArgument(f"payment_method must be one of: {', '.join(SECOND_PAYMENT_METHODS)}")

    payments = Payment.query.filter_by(client_id=client.client_id).all()
    first_done = any(
        p.payment_type == PaymentType.initial
        and p.status in (PaymentState.paid, PaymentState.verified, PaymentState.completed)
        for p in payments
    )
    if not first_done:
        raise InvalidArgument("The first payment must be made and verified before the second payment.")

    amount = offer_amount(client.selected_offer, amounts) / 2
    existing = next((p for p in payments if p.payment_type == PaymentType.second), None)

    with atomic():
        if existing:
            existing.payment_method = PaymentMethod[payment_method]
            existing.amount = amount
            existing.status = PaymentState.pending
            existing.receipt_url = receipt_url or existing.receipt_url
            payment = existing
        else:
            payment = _new_payment(
                client, PaymentType.second, PaymentMethod[payment_method], amount,
                PaymentState.pending,
            )
            payment.receipt_url = receipt_url
            db.session.add(payment)

    logger.info(f"[Payments] Client {client.client_id} submitted second payment via {payment_method}")
    return payment


def serialize_payment(payment: Payment) -> dict:
    return {
        "payment_id":     payment.payment_id,
        "client_id":      payment.client_id,
        "payment_type":   payment.payment_type.value,
        "payment_method": payment.payment_method.value,
        "amount":         float(payment.amount),
        "status":         payment.status.value,
        "receipt_url":    payment.receipt_url,
        "verified_by":    payment.verified_by,
        "verified_at":    payment.verified_at.isoformat() if payment.verified_at else None,
        "created_at":     payment.created_at.isoformat() if payment.created_at else None,
    }


# ─── Private helpers ──────────────────────────────────────────────────────────

def _new_payment(client, payment_type, method, amount, status, admin_id=None) -> Payment:
    payment = Payment(
        client_id=client.client_id,
        payment_type=payment_type,
        payment_method=method,
        amount=amount,
        status=status,
    )
    if status == PaymentState.verified:
        payment.verified_by = admin_id
        payment.verified_at = utcnow()
    return payment


def _mark_verified(payment: Payment, admin_id: str):
    payment.status = PaymentState.verified
    payment.verified_by = admin_id
    payment.verified_at = utcnow()


def _field(payment, name):
    if isinstance(payment, dict):
        return payment.get(name)
    return getattr(payment, name, None)


def _as_state(value):
    if isinstance(value, PaymentState):
        return value
    try:
        return PaymentState(value)
    except ValueError:
        return None


def _as_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _sort_time(value):
    # SQLite hands back naive datetimes; treat those as UTC
    if value is None:
        return 0.0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()
