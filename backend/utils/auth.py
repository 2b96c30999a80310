"""
auth.py — Session-based authorisation guards + helpers.

Admin blueprints install require_admin() once as a before_request hook;
client self-service routes use the client_login_required decorator.
"""

from functools import wraps
from flask import session, g, current_app
from utils.response import unauthorized, forbidden

ADMIN_ROLES = ("admin", "super_admin")


# ─── Guards ───────────────────────────────────────────────────────────────────

def require_admin():
    """
    before_request guard for admin blueprints.
    Returns a 401/403 response to short-circuit the request, None to allow it.
    """
    if not session.get("admin_id"):
        return unauthorized("You must be logged in as an administrator.")
    if session.get("role") not in ADMIN_ROLES:
        return forbidden("Admin access required.")
    g.admin_id = session["admin_id"]
    return None


def super_admin_required(f):
    """Require role == super_admin. Returns 401/403 otherwise."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not session.get("admin_id"):
            return unauthorized("You must be logged in.")
        if session.get("role") != "super_admin":
            return forbidden("Super admin access required.")
        return f(*args, **kwargs)
    return decorated


def client_login_required(f):
    """
    Require a logged-in client session.
    Attaches the Client model instance to flask.g as g.client.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        client_id = session.get("client_id")
        if not client_id:
            return unauthorized("Client login required.")

        from database import db
        from models import Client
        client = db.session.get(Client, client_id)
        if client is None:
            current_app.logger.info(f"Session references missing client {client_id}")
            session.pop("client_id", None)
            return unauthorized("Client login required.")

        g.client = client
        return f(*args, **kwargs)
    return decorated


# ─── Session helpers ──────────────────────────────────────────────────────────

def get_current_admin() -> dict | None:
    """Return current admin dict from session. None if not logged in."""
    if not session.get("admin_id"):
        return None
    return {
        "admin_id": session["admin_id"],
        "role":     session.get("role"),
        "name":     session.get("name"),
        "email":    session.get("email"),
    }


def get_current_admin_id() -> str | None:
    return session.get("admin_id")
