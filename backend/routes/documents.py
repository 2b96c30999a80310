"""
documents.py — Admin management of a client's document map.

File naming convention: First_Last_<document_type>.<ext> (utils/naming.py),
stored in the client's own folder under UPLOAD_FOLDER.
"""

import logging
from flask import Blueprint, request, send_file, g

from services import documents as document_service
from services.audit import write_audit
from services.clients import get_client
from utils.auth import require_admin
from utils.response import success, created

documents_bp = Blueprint("documents", __name__)
documents_bp.before_request(require_admin)
logger = logging.getLogger(__name__)


@documents_bp.route("/<client_id>/documents", methods=["GET"])
def list_documents(client_id):
    """GET /api/clients/<client_id>/documents — the client's document map."""
    client = get_client(client_id)
    return success(data={"documents": client.documents or {}})


@documents_bp.route("/<client_id>/documents", methods=["POST"])
def upload_document(client_id):
    """
    POST /api/clients/<client_id>/documents
    Multipart: file=<file>, document_type=<str>
    Replaces any earlier file of the same type.
    """
    client = get_client(client_id)
    document_type = request.form.get("document_type", "")
    entry = document_service.store_document(client, document_type, request.files.get("file"))

    write_audit(
        g.admin_id,
        f"Document '{document_type}' uploaded for '{client.full_name}'.",
        "client", client_id,
        details={"name": entry["name"], "size": entry["size"]},
    )
    return created(data={"document_type": document_type, "document": entry}, message="Document uploaded.")


@documents_bp.route("/<client_id>/documents", methods=["DELETE"])
def delete_document(client_id):
    """DELETE /api/clients/<client_id>/documents?document_type=<str>"""
    client = get_client(client_id)
    document_type = request.args.get("document_type", "")
    document_service.remove_document(client, document_type)

    write_audit(g.admin_id, f"Document '{document_type}' deleted for '{client.full_name}'.",
                "client", client_id)
    return success(message="Document deleted.")


@documents_bp.route("/<client_id>/documents/<document_type>", methods=["GET"])
def download_document(client_id, document_type):
    """GET /api/clients/<client_id>/documents/<document_type> — file download."""
    client = get_client(client_id)
    path, entry = document_service.document_path(client, document_type)
    return send_file(
        path,
        mimetype=entry.get("type") or "application/octet-stream",
        as_attachment=True,
        download_name=entry.get("name"),
    )
