"""
documents.py — Client document map backed by local file storage.

Each client has one folder under UPLOAD_FOLDER; each document type maps to
one file in it. The client's `documents` column records
{url, fileId, name, size, type} per document type.
"""

import os
import uuid
import logging
import mimetypes

from flask import current_app
from werkzeug.utils import secure_filename

from database import atomic
from errors import InvalidArgument, NotFound
from models import Client
from utils.naming import make_client_folder, make_document_filename, file_extension

logger = logging.getLogger(__name__)


def client_folder(client: Client) -> str:
    folder = os.path.join(
        current_app.config["UPLOAD_FOLDER"],
        secure_filename(make_client_folder(client.first_name, client.last_name, client.client_id)),
    )
    os.makedirs(folder, exist_ok=True)
    return folder


def store_document(client: Client, document_type: str, upload) -> dict:
    """
    Save an uploaded file as the client's `document_type` document,
    replacing any previous file of that type.
    """
    document_type = (document_type or "").strip()
    if not document_type:
        raise InvalidArgument("document_type is required.")
    if upload is None or not upload.filename:
        raise InvalidArgument("No file provided.")

    ext = file_extension(upload.filename)
    allowed = current_app.config["ALLOWED_DOCUMENT_EXTENSIONS"]
    if ext not in allowed:
        raise InvalidArgument(f"File type not allowed. Allowed: {', '.join(sorted(allowed))}")

    folder = client_folder(client)
    saved_name = secure_filename(
        make_document_filename(client.first_name, client.last_name, document_type, ext)
    )

    path = os.path.join(folder, saved_name)
    documents = dict(client.documents or {})

    # Distinct types may clean down to the same filename ("id card" / "idcard")
    for other_type, other in documents.items():
        if other_type != document_type and other.get("fileId") == path:
            raise InvalidArgument(
                f"document_type '{document_type}' would overwrite the '{other_type}' document."
            )

    previous = documents.get(document_type)
    if previous:
        _remove_file(previous.get("fileId"))

    upload.save(path)
    mime, _ = mimetypes.guess_type(path)

    entry = {
        "url":    f"/api/clients/{client.client_id}/documents/{document_type}",
        "fileId": path,
        "name":   saved_name,
        "size":   os.path.getsize(path),
        "type":   upload.mimetype or mime or "application/octet-stream",
    }
    documents[document_type] = entry

    with atomic():
        client.documents = documents

    logger.info(f"[Documents] Stored {document_type} for client {client.client_id} ({entry['size']} bytes)")
    return entry


def remove_document(client: Client, document_type: str):
    documents = dict(client.documents or {})
    entry = documents.pop(document_type, None)
    if entry is None:
        raise NotFound.for_resource("Document")

    _remove_file(entry.get("fileId"))
    with atomic():
        client.documents = documents

    logger.info(f"[Documents] Removed {document_type} for client {client.client_id}")


def document_path(client: Client, document_type: str) -> tuple:
    """Return (path, entry) for a stored document or raise NotFound."""
    entry = (client.documents or {}).get(document_type)
    if not entry:
        raise NotFound.for_resource("Document")
    path = entry.get("fileId")
    if not path or not os.path.exists(path):
        logger.warning(f"File missing on disk: {path}")
        raise NotFound("Document file (missing from disk) not found.")
    return path, entry


def store_receipt(upload, prefix: str) -> str | None:
    """
    Save a payment receipt under UPLOAD_FOLDER/receipts and return its
    path relative to UPLOAD_FOLDER. No file → None.
    """
    if upload is None or not upload.filename:
        return None

    ext = file_extension(upload.filename)
    allowed = current_app.config["ALLOWED_DOCUMENT_EXTENSIONS"]
    if ext not in allowed:
        raise InvalidArgument(f"Receipt type not allowed. Allowed: {', '.join(sorted(allowed))}")

    folder = os.path.join(current_app.config["UPLOAD_FOLDER"], "receipts")
    os.makedirs(folder, exist_ok=True)
    name = secure_filename(f"{prefix}_{uuid.uuid4().hex[:12]}.{ext}")
    upload.save(os.path.join(folder, name))
    logger.info(f"[Documents] Stored receipt {name}")
    return f"receipts/{name}"


def discard_receipt(receipt_url):
    """Delete a receipt saved by store_receipt() whose request was then rejected."""
    if receipt_url:
        _remove_file(os.path.join(current_app.config["UPLOAD_FOLDER"], receipt_url))


def _remove_file(path):
    if path and os.path.exists(path):
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(f"Could not delete document file {path}: {e}")
