"""
clients.py — Admin client, payment-ledger and stage routes.

Every route here is admin-only: require_admin() runs once per request as the
blueprint's before_request hook. Each client in a response carries the
reconciled payment projection (payment_status, payment_method,
total_amount, paid_amount, remaining_amount).
"""

from flask import Blueprint, request, g

from services import clients as client_service
from services import payments as payment_service
from services import stages as stage_service
from services.audit import write_audit
from services.payments import serialize_payment
from services.stages import serialize_stage
from tasks.notifications import queue_notification, send_status_email, send_payment_verified_email
from utils.auth import require_admin
from utils.response import success, created

clients_bp = Blueprint("clients", __name__)
clients_bp.before_request(require_admin)


# ════════════════════════════════════════════════════════════
#  Client records
# ════════════════════════════════════════════════════════════

@clients_bp.route("", methods=["GET"])
def list_clients():
    """
    GET /api/clients
    Query params: page, limit, search, status, payment_status, sort_by, sort_order
    """
    args = request.args
    data = client_service.list_clients(
        page=args.get("page", 1, type=int),
        limit=args.get("limit", 10, type=int),
        search=args.get("search", "").strip(),
        status=args.get("status", ""),
        payment_status=args.get("payment_status", ""),
        sort_by=args.get("sort_by", "created_at"),
        sort_order=args.get("sort_order", "desc"),
    )
    return success(data=data)


@clients_bp.route("", methods=["POST"])
def create_client():
    """
    POST /api/clients
    Body: { first_name, last_name, email, phone, wilaya, diploma,
            selected_offer, selected_countries?, status?, password? }
    """
    body = request.get_json(silent=True) or {}
    client = client_service.create_client(body)
    write_audit(g.admin_id, f"Client '{client.full_name}' created.", "client", client.client_id)
    return created(data={"client": client_service.serialize_client(client)}, message="Client created.")


@clients_bp.route("/<client_id>", methods=["GET"])
def get_client(client_id):
    """
    GET /api/clients/<client_id>
    Returns the client merged with its payment projection.
    """
    client = client_service.get_client(client_id)
    return success(data={"client": client_service.serialize_client(client)})


@clients_bp.route("/<client_id>", methods=["PATCH", "PUT"])
def update_client(client_id):
    """
    PATCH /api/clients/<client_id>  — partial update
    PUT   /api/clients/<client_id>  — full update (required fields must be present)
    """
    body = request.get_json(silent=True) or {}
    client, previous_status = client_service.update_client(
        client_id, body, full=request.method == "PUT"
    )

    new_status = client.status.value
    if new_status != previous_status:
        write_audit(
            g.admin_id,
            f"Client '{client.full_name}' status changed: {previous_status} → {new_status}",
            "client", client_id,
        )
        if new_status in client_service.NOTIFY_STATUSES:
            queue_notification(send_status_email, client_id, new_status)

    return success(data={"client": client_service.serialize_client(client)}, message="Client updated.")


@clients_bp.route("/<client_id>", methods=["DELETE"])
def delete_client(client_id):
    """DELETE /api/clients/<client_id> — removes the client with its payments and stages."""
    client = client_service.delete_client(client_id)
    write_audit(g.admin_id, f"Client '{client.full_name}' deleted.", "client", client_id)
    return success(message="Client deleted.")


# ════════════════════════════════════════════════════════════
#  Payment ledger
# ════════════════════════════════════════════════════════════

@clients_bp.route("/<client_id>/payment-status", methods=["PATCH"])
def set_payment_status(client_id):
    """
    PATCH /api/clients/<client_id>/payment-status
    Body: { "payment_status": "unpaid" | "pending" | "paid" | "partially_paid" | "failed" | "refunded" }

    Rewrites the ledger so that it reflects the target, then returns the
    client with the re-reconciled projection.
    """
    body = request.get_json(silent=True) or {}
    target = body.get("payment_status")

    client, summary = payment_service.apply_payment_status(client_id, target, g.admin_id)
    write_audit(
        g.admin_id,
        f"Payment status for '{client.full_name}' set to {target} (now {summary.payment_status}).",
        "client", client_id,
        details={"target": target, "result": summary.to_dict()},
    )
    return success(
        data={"client": client_service.serialize_client(client, summary)},
        message="Payment status updated.",
    )


@clients_bp.route("/<client_id>/payments/<payment_id>/verify", methods=["PATCH"])
def verify_payment(client_id, payment_id):
    """
    PATCH /api/clients/<client_id>/payments/<payment_id>/verify
    Marks one paid/pending payment as verified.
    """
    payment, client, summary = payment_service.verify_payment(client_id, payment_id, g.admin_id)
    write_audit(
        g.admin_id,
        f"Payment of {float(payment.amount):,.0f} DA verified for '{client.full_name}'.",
        "payment", payment_id,
    )
    queue_notification(send_payment_verified_email, payment_id)
    return success(data={
        "payment": serialize_payment(payment),
        "client":  client_service.serialize_client(client, summary),
    }, message="Payment verified.")


# ════════════════════════════════════════════════════════════
#  Stages
# ════════════════════════════════════════════════════════════

@clients_bp.route("/<client_id>/stages", methods=["GET"])
def get_stages(client_id):
    """
    GET /api/clients/<client_id>/stages
    Initialises the six-stage checklist on first access.
    """
    client_service.get_client(client_id)
    stages = stage_service.ensure_stages(client_id)
    return success(data={"stages": [serialize_stage(s) for s in stages]})


@clients_bp.route("/<client_id>/stages", methods=["PUT"])
def update_stage(client_id):
    """
    PUT /api/clients/<client_id>/stages
    Body: { "stage_number": int, "status": str?, "notes": str?, "required_documents": [str]? }
    """
    client = client_service.get_client(client_id)
    body = request.get_json(silent=True) or {}

    stage = stage_service.update_stage(client_id, body.get("stage_number"), body)
    write_audit(
        g.admin_id,
        f"Stage {stage.stage_number} for '{client.full_name}' set to {stage.status.value}.",
        "stage", stage.stage_id,
    )
    return success(data={"stage": serialize_stage(stage)}, message="Stage updated.")
