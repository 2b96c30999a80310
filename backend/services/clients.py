"""
clients.py — Client records and their read projection.

Every client returned by the API is merged with the reconciled payment
summary of its ledger; payment_status is never read from or written to
the client row.
"""

import logging

from sqlalchemy.orm import selectinload
from werkzeug.security import generate_password_hash

from database import db, atomic
from errors import InvalidArgument, NotFound
from models import Client, ClientStatus, Offer
from services.payments import reconcile, summary_for, serialize_payment, DERIVED_PAYMENT_STATUSES

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("first_name", "last_name", "email", "phone", "wilaya", "diploma", "selected_offer")
TEXT_FIELDS = ("first_name", "last_name", "phone", "wilaya", "diploma")
STRING_FIELDS = TEXT_FIELDS + ("email", "password")
SORTABLE_FIELDS = {
    "created_at": Client.created_at,
    "updated_at": Client.updated_at,
    "first_name": Client.first_name,
    "last_name":  Client.last_name,
    "email":      Client.email,
    "status":     Client.status,
    "wilaya":     Client.wilaya,
}
NOTIFY_STATUSES = ("approved", "rejected", "completed")


# ─── Lookup / projection ──────────────────────────────────────────────────────

def get_client(client_id: str) -> Client:
    client = db.session.get(Client, client_id)
    if client is None:
        raise NotFound.for_resource("Client")
    return client


def serialize_client(client: Client, summary=None, include_payments: bool = True) -> dict:
    if summary is None:
        summary = summary_for(client)
    data = {
        "client_id":          client.client_id,
        "first_name":         client.first_name,
        "last_name":          client.last_name,
        "email":              client.email,
        "phone":              client.phone,
        "wilaya":             client.wilaya,
        "diploma":            client.diploma,
        "selected_offer":     client.selected_offer.value,
        "selected_countries": client.selected_countries or [],
        "status":             client.status.value,
        "documents":          client.documents or {},
        "created_at":         client.created_at.isoformat() if client.created_at else None,
        "updated_at":         client.updated_at.isoformat() if client.updated_at else None,
    }
    data.update(summary.to_dict())
    if include_payments:
        payments = sorted(client.payments, key=lambda p: p.created_at, reverse=True)
        data["payments"] = [serialize_payment(p) for p in payments]
    return data


# ─── Listing ──────────────────────────────────────────────────────────────────

def list_clients(page=1, limit=10, search="", status="", payment_status="",
                 sort_by="created_at", sort_order="desc") -> dict:
    """
    Filtered, sorted, paginated client list.

    payment_status filters on the derived projection, so when it is given the
    page is cut after reconciling every matching client.
    """
    page = max(1, int(page or 1))
    limit = min(max(1, int(limit or 10)), 100)

    q = Client.query.options(selectinload(Client.payments))

    if search:
        like = f"%{search}%"
        q = q.filter(db.or_(
            Client.first_name.ilike(like),
            Client.last_name.ilike(like),
            Client.email.ilike(like),
            Client.phone.ilike(like),
            Client.wilaya.ilike(like),
            Client.diploma.ilike(like),
        ))

    if status and status != "all":
        try:
            q = q.filter(Client.status == ClientStatus(status))
        except ValueError:
            raise InvalidArgument(f"Invalid status: {status}")

    column = SORTABLE_FIELDS.get(sort_by, Client.created_at)
    q = q.order_by(column.asc() if sort_order == "asc" else column.desc())

    if payment_status and payment_status != "all":
        if payment_status not in DERIVED_PAYMENT_STATUSES:
            raise InvalidArgument(f"Invalid payment status: {payment_status}")
        rows = [(c, reconcile(c.payments)) for c in q.all()]
        rows = [(c, s) for c, s in rows if s.payment_status == payment_status]
        total = len(rows)
        rows = rows[(page - 1) * limit: page * limit]
    else:
        total = q.count()
        rows = [(c, reconcile(c.payments)) for c in q.offset((page - 1) * limit).limit(limit).all()]

    pages = max(1, -(-total // limit))
    return {
        "clients":       [serialize_client(c, s, include_payments=False) for c, s in rows],
        "total":         total,
        "page":          page,
        "pages":         pages,
        "limit":         limit,
        "has_next_page": page < pages,
        "has_prev_page": page > 1,
    }


# ─── Mutations ────────────────────────────────────────────────────────────────

def create_client(body: dict) -> Client:
    _check_strings(body)
    missing = [f for f in REQUIRED_FIELDS if not body.get(f)]
    if missing:
        raise InvalidArgument(f"Missing required fields: {', '.join(missing)}")

    email = body["email"].strip().lower()
    if Client.query.filter_by(email=email).first():
        raise InvalidArgument("A client with this email already exists.")

    client = Client(email=email)
    _apply_fields(client, body)
    if body.get("password"):
        client.password_hash = generate_password_hash(body["password"])

    with atomic():
        db.session.add(client)

    logger.info(f"[Clients] Created client {client.client_id} ({email})")
    return client


def update_client(client_id: str, body: dict, full: bool = False):
    """
    Update editable client fields. `full` (PUT) requires every required
    field; otherwise only the keys present change. payment_status in the
    body is ignored: it is derived from the ledger.

    Returns (client, previous_status).
    """
    client = get_client(client_id)
    _check_strings(body)

    if full:
        missing = [f for f in REQUIRED_FIELDS if not body.get(f)]
        if missing:
            raise InvalidArgument(f"Missing required fields: {', '.join(missing)}")

    if body.get("email"):
        email = body["email"].strip().lower()
        taken = Client.query.filter(Client.email == email, Client.client_id != client_id).first()
        if taken:
            raise InvalidArgument("A client with this email already exists.")
        client.email = email

    previous_status = client.status.value
    with atomic():
        _apply_fields(client, body)
        if body.get("password"):
            client.password_hash = generate_password_hash(body["password"])

    logger.info(f"[Clients] Updated client {client_id}")
    return client, previous_status


def delete_client(client_id: str) -> Client:
    client = get_client(client_id)
    with atomic():
        db.session.delete(client)
    logger.info(f"[Clients] Deleted client {client_id}")
    return client


def _check_strings(body: dict):
    wrong = [f for f in STRING_FIELDS if body.get(f) is not None and not isinstance(body[f], str)]
    if wrong:
        raise InvalidArgument(f"Fields must be strings: {', '.join(wrong)}")


def _apply_fields(client: Client, body: dict):
    for field in TEXT_FIELDS:
        if field in body and body[field] is not None:
            setattr(client, field, body[field].strip())

    if body.get("selected_offer") is not None:
        try:
            client.selected_offer = Offer(body["selected_offer"])
        except ValueError:
            raise InvalidArgument("selected_offer must be one of: basic, premium, gold")

    if "selected_countries" in body:
        countries = body["selected_countries"] or []
        if not isinstance(countries, list) or not all(isinstance(c, str) for c in countries):
            raise InvalidArgument("selected_countries must be a list of strings.")
        client.selected_countries = countries

    if body.get("status") is not None:
        try:
            client.status = ClientStatus(body["status"])
        except ValueError:
            valid = ", ".join(s.value for s in ClientStatus)
            raise InvalidArgument(f"Invalid status. Must be one of: {valid}")
