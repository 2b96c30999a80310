"""
client.py — Client self-service routes.

Registration is public; everything else needs a client session
(see routes/auth.py) and only ever reads or acts on the logged-in client.
"""

import json
from flask import Blueprint, request, g

from database import db
from models import PendingRegistration, PaymentState, PaymentMethod
from services import payments as payment_service
from services import registrations as registration_service
from services import stages as stage_service
from services.clients import serialize_client
from services.documents import store_receipt, discard_receipt
from services.payments import serialize_payment, summary_for
from services.stages import serialize_stage
from errors import InvalidArgument, NotFound
from utils.auth import client_login_required
from utils.response import success, created

client_bp = Blueprint("client", __name__)


# ════════════════════════════════════════════════════════════
#  Registration  (public)
# ════════════════════════════════════════════════════════════

@client_bp.route("/register", methods=["POST"])
def register():
    """
    POST /client/register
    JSON or multipart form. Fields:
        first_name, last_name, email, phone, wilaya, diploma,
        selected_offer, payment_type ("full" | "partial"),
        selected_countries [str], baridimob_info {email, rip, ccp, key},
        receipt (file, multipart only)

    Holds the registration until an admin verifies the BaridiMob receipt.
    """
    if request.is_json:
        body = request.get_json(silent=True) or {}
    else:
        body = request.form.to_dict()
        for key in ("selected_countries", "baridimob_info"):
            if isinstance(body.get(key), str):
                try:
                    body[key] = json.loads(body[key])
                except ValueError:
                    raise InvalidArgument(f"{key} must be valid JSON.")

    receipt_url = store_receipt(request.files.get("receipt"), "registration")
    try:
        result = registration_service.register(body, receipt_url=receipt_url)
    except Exception:
        discard_receipt(receipt_url)
        raise
    return created(
        data=result,
        message="Registration received. An administrator will verify your payment shortly.",
    )


@client_bp.route("/registration-status", methods=["GET"])
def registration_status():
    """
    GET /client/registration-status?id=<pending_id>
    Lets a registrant poll whether their receipt has been reviewed.
    """
    registration_id = request.args.get("id", "")
    pending = db.session.get(PendingRegistration, registration_id) if registration_id else None
    if pending is None:
        raise NotFound.for_resource("Registration")

    return success(data={
        "status":           pending.status.value,
        "rejection_reason": pending.rejection_reason,
    })


# ════════════════════════════════════════════════════════════
#  Logged-in client
# ════════════════════════════════════════════════════════════

@client_bp.route("/profile", methods=["GET"])
@client_login_required
def profile():
    """
    GET /client/profile
    The client's own record with payment projection and stages.

    second_payment_reminder is true while half the fee is outstanding and
    stage 2 has been completed.
    """
    client = g.client
    summary = summary_for(client)
    stages = stage_service.ensure_stages(client.client_id)

    data = serialize_client(client, summary)
    data["stages"] = [serialize_stage(s) for s in stages]
    data["second_payment_reminder"] = stage_service.second_payment_reminder(
        summary.payment_status, stages
    )
    data["has_pending_verification"] = any(
        p.status == PaymentState.paid and p.payment_method == PaymentMethod.baridimob
        for p in client.payments
    )
    return success(data={"client": data})


@client_bp.route("/stages", methods=["GET"])
@client_login_required
def stages():
    """GET /client/stages — read-only view of the client's checklist."""
    rows = stage_service.ensure_stages(g.client.client_id)
    return success(data={"stages": [serialize_stage(s) for s in rows]})


@client_bp.route("/second-payment", methods=["POST"])
@client_login_required
def second_payment():
    """
    POST /client/second-payment
    Multipart or JSON: payment_method ("baridimob" | "cib"), receipt (file, optional)

    Records the remaining half as a pending payment for admin verification.
    """
    if request.is_json:
        payment_method = (request.get_json(silent=True) or {}).get("payment_method")
    else:
        payment_method = request.form.get("payment_method")

    receipt_url = store_receipt(request.files.get("receipt"), "second_payment")
    try:
        payment = payment_service.submit_second_payment(g.client, payment_method, receipt_url)
    except Exception:
        discard_receipt(receipt_url)
        raise

    message = (
        "Payment recorded. Awaiting verification (24-48h)."
        if payment_method == "baridimob" else "Payment is being processed."
    )
    return created(data={"payment": serialize_payment(payment)}, message=message)
