"""
registrations.py — BaridiMob self-registration and admin review.

A registrant's data is held in a PendingRegistration until an admin checks
the transfer receipt. Approval creates the Client together with its first,
already verified, payment.
"""

import re
import logging
from datetime import datetime, timezone

from flask import current_app
from werkzeug.security import generate_password_hash

from database import db, atomic
from errors import InvalidArgument, NotFound
from models import (
    Client, ClientStatus, Offer, Payment, PaymentType, PaymentMethod, PaymentState,
    PendingRegistration, RegistrationStatus, utcnow,
)
from services.payments import first_payment_amount
from utils.reference import generate_password, generate_session_token, registration_expiry

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_RE = re.compile(r"^[0-9+\-\s()]{9,15}$")
RIP_RE = re.compile(r"^\d{20}$")
CCP_RE = re.compile(r"^\d+$")
KEY_RE = re.compile(r"^\d{2}$")


# ─── Validation ───────────────────────────────────────────────────────────────

def validate_registration(body: dict) -> dict:
    """
    Normalise and validate a registration form.
    Raises InvalidArgument listing every problem found.
    """
    problems = []

    def text(name, min_len=2, max_len=None):
        value = _clean(body.get(name))
        if len(value) < min_len or (max_len and len(value) > max_len):
            problems.append(f"{name} is required")
        return value

    data = {
        "first_name": text("first_name", max_len=50),
        "last_name":  text("last_name", max_len=50),
        "wilaya":     text("wilaya"),
        "diploma":    text("diploma"),
    }

    email = _clean(body.get("email")).lower()
    if not EMAIL_RE.match(email):
        problems.append("email is invalid")
    data["email"] = email

    phone = _clean(body.get("phone"))
    if not PHONE_RE.match(phone):
        problems.append("phone is invalid")
    data["phone"] = phone

    offer = body.get("selected_offer")
    if not isinstance(offer, str) or offer not in {o.value for o in Offer}:
        problems.append("selected_offer must be one of: basic, premium, gold")
    data["selected_offer"] = offer

    payment_type = body.get("payment_type") or "partial"
    if payment_type not in ("full", "partial"):
        problems.append("payment_type must be 'full' or 'partial'")
    data["payment_type"] = payment_type

    countries = body.get("selected_countries") or []
    if not isinstance(countries, list) or not all(isinstance(c, str) for c in countries):
        problems.append("selected_countries must be a list of strings")
    data["selected_countries"] = countries

    info = body.get("baridimob_info") or {}
    if not isinstance(info, dict):
        info = {}
    payer = {
        "email": _clean(info.get("email")).lower(),
        "rip":   str(info.get("rip") or "").strip(),
        "ccp":   str(info.get("ccp") or "").strip(),
        "key":   str(info.get("key") or "").strip(),
    }
    if not EMAIL_RE.match(payer["email"]):
        problems.append("baridimob_info.email is invalid")
    if not RIP_RE.match(payer["rip"]):
        problems.append("baridimob_info.rip must be exactly 20 digits")
    if not CCP_RE.match(payer["ccp"]):
        problems.append("baridimob_info.ccp must contain digits only")
    if not KEY_RE.match(payer["key"]):
        problems.append("baridimob_info.key must be exactly 2 digits")
    data["baridimob_info"] = payer

    if problems:
        raise InvalidArgument("Invalid registration data.", details=problems)
    return data


# ─── Registration ─────────────────────────────────────────────────────────────

def register(body: dict, receipt_url: str = None) -> dict:
    """
    Hold a BaridiMob registration for admin verification.

    Returns the pending id, the amount due now and the generated login
    credentials (the password is only ever shown here).
    """
    data = validate_registration(body)

    if Client.query.filter_by(email=data["email"]).first():
        raise InvalidArgument("An account with this email already exists.")

    password = generate_password(data["first_name"], data["last_name"])
    amount = first_payment_amount(data["selected_offer"], data["payment_type"])
    payer = data.pop("baridimob_info")

    pending = PendingRegistration(
        session_token=generate_session_token("baridimob"),
        registration_data={**data, "password_hash": generate_password_hash(password)},
        payment_details={
            "amount":         float(amount),
            "payment_type":   data["payment_type"],
            "payment_method": "baridimob",
            "offer":          data["selected_offer"],
            "baridimob_info": payer,
            "receipt_url":    receipt_url,
        },
        status=RegistrationStatus.pending_verification,
        expires_at=registration_expiry(current_app.config.get("REGISTRATION_EXPIRY_DAYS", 7)),
    )
    with atomic():
        db.session.add(pending)

    logger.info(f"[Registrations] New BaridiMob registration {pending.registration_id} for {data['email']}")
    return {
        "pending_id":  pending.registration_id,
        "amount":      float(amount),
        "credentials": {"email": data["email"], "password": password},
    }


def list_pending() -> list:
    return (
        PendingRegistration.query
        .filter_by(status=RegistrationStatus.pending_verification)
        .order_by(PendingRegistration.created_at.desc())
        .all()
    )


def approve(registration_id: str, admin_id: str) -> Client:
    """
    Turn a verified registration into a Client with a verified initial payment.
    Client, payment and registration status change commit together.
    """
    pending = _get_pending(registration_id)
    data = pending.registration_data or {}
    details = pending.payment_details or {}

    if _is_expired(pending):
        with atomic():
            pending.status = RegistrationStatus.expired
        raise InvalidArgument("This registration has expired.")

    if Client.query.filter_by(email=data.get("email")).first():
        with atomic():
            pending.status = RegistrationStatus.rejected
            pending.rejection_reason = "Email already in use"
            pending.reviewed_by = admin_id
        raise InvalidArgument("An account with this email already exists.")

    with atomic():
        client = Client(
            first_name=data["first_name"],
            last_name=data["last_name"],
            email=data["email"],
            phone=data.get("phone"),
            wilaya=data.get("wilaya"),
            diploma=data.get("diploma"),
            selected_offer=Offer(data["selected_offer"]),
            selected_countries=data.get("selected_countries") or [],
            documents={},
            status=ClientStatus.pending,
            password_hash=data.get("password_hash"),
        )
        db.session.add(client)
        db.session.flush()

        db.session.add(Payment(
            client_id=client.client_id,
            payment_type=PaymentType.initial,
            payment_method=PaymentMethod.baridimob,
            amount=details.get("amount", 0),
            status=PaymentState.verified,
            receipt_url=details.get("receipt_url"),
            verified_by=admin_id,
            verified_at=utcnow(),
        ))
        pending.status = RegistrationStatus.approved
        pending.reviewed_by = admin_id

    logger.info(f"[Registrations] Admin {admin_id} approved {registration_id} → client {client.client_id}")
    return client


def reject(registration_id: str, admin_id: str, reason: str) -> PendingRegistration:
    reason = _clean(reason)
    if not reason:
        raise InvalidArgument("A rejection reason is required.")

    pending = _get_pending(registration_id)
    with atomic():
        pending.status = RegistrationStatus.rejected
        pending.rejection_reason = reason
        pending.reviewed_by = admin_id

    logger.info(f"[Registrations] Admin {admin_id} rejected {registration_id}: {reason}")
    return pending


def serialize_registration(pending: PendingRegistration) -> dict:
    data = pending.registration_data or {}
    details = pending.payment_details or {}
    return {
        "registration_id":  pending.registration_id,
        "status":           pending.status.value,
        "rejection_reason": pending.rejection_reason,
        "created_at":       pending.created_at.isoformat() if pending.created_at else None,
        "expires_at":       pending.expires_at.isoformat() if pending.expires_at else None,
        "client": {
            "first_name":     data.get("first_name"),
            "last_name":      data.get("last_name"),
            "email":          data.get("email"),
            "phone":          data.get("phone"),
            "wilaya":         data.get("wilaya"),
            "selected_offer": data.get("selected_offer"),
        },
        "payment": {
            "amount":         details.get("amount"),
            "payment_type":   details.get("payment_type"),
            "payment_method": "baridimob",
            "baridimob_info": details.get("baridimob_info"),
            "receipt_url":    details.get("receipt_url"),
        },
    }


# ─── Private helpers ──────────────────────────────────────────────────────────

def _clean(value) -> str:
    """Stripped string; anything that is not a string counts as empty."""
    return value.strip() if isinstance(value, str) else ""


def _get_pending(registration_id: str) -> PendingRegistration:
    pending = db.session.get(PendingRegistration, registration_id)
    if pending is None:
        raise NotFound.for_resource("Registration")
    if pending.status != RegistrationStatus.pending_verification:
        raise InvalidArgument("This registration has already been processed.")
    return pending


def _is_expired(pending: PendingRegistration) -> bool:
    expires_at = pending.expires_at
    if expires_at is None:
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc) > expires_at
