"""
auth.py — Login, logout and session management for admins and clients.
"""

from flask import Blueprint, request, session, current_app
from werkzeug.security import check_password_hash, generate_password_hash
from datetime import datetime, timezone

from database import db, atomic
from models import Admin, AdminRole, Client
from services.audit import write_audit
from utils.auth import super_admin_required, get_current_admin
from utils.response import success, created, error, unauthorized

auth_bp = Blueprint("auth", __name__)


def _credentials():
    # Accept both JSON and form POST
    body = request.get_json(silent=True) if request.is_json else request.form.to_dict()
    body = body or {}
    email, password = body.get("email"), body.get("password")
    if not isinstance(email, str) or not isinstance(password, str):
        return "", ""
    return email.strip().lower(), password


# ─── Admin login ──────────────────────────────────────────────────────────────

@auth_bp.route("/login", methods=["POST"])
def login():
    """
    POST /auth/login
    Body: { "email": str, "password": str }

    On success: sets the admin session and returns the admin.
    On failure: returns 401.
    """
    email, password = _credentials()
    if not email or not password:
        return error("Email and password are required.", 400)

    admin = Admin.query.filter_by(email=email, is_active=True).first()
    if not admin or not check_password_hash(admin.password_hash, password):
        current_app.logger.warning(f"Failed admin login attempt for email: {email}")
        return unauthorized("Invalid email or password.")

    session.clear()
    session.permanent = True
    session["admin_id"] = admin.admin_id
    session["role"] = admin.role.value
    session["name"] = admin.name
    session["email"] = admin.email
    session["logged_in_at"] = datetime.now(timezone.utc).isoformat()

    write_audit(admin.admin_id, f"Admin '{admin.name}' logged in.", "admin", admin.admin_id)

    return success(data={"admin": _admin_dict(admin)}, message="Login successful.")


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """POST /auth/logout — clears the session (admin or client)."""
    admin = get_current_admin()
    if admin:
        write_audit(admin["admin_id"], f"Admin '{admin['name']}' logged out.", "admin", admin["admin_id"])
    session.clear()
    return success(message="Logged out.")


@auth_bp.route("/session", methods=["GET"])
def session_status():
    """
    GET /auth/session
    Returns who is logged in: { "authenticated": bool, "user_type": "admin" | "client", ... }
    """
    if session.get("admin_id"):
        return success(data={"authenticated": True, "user_type": "admin", "admin": get_current_admin()})
    if session.get("client_id"):
        return success(data={
            "authenticated": True,
            "user_type":     "client",
            "client_id":     session["client_id"],
            "email":         session.get("email"),
        })
    return success(data={"authenticated": False})


# ─── Admin accounts (super admin only) ────────────────────────────────────────

@auth_bp.route("/admins", methods=["GET"])
@super_admin_required
def list_admins():
    """GET /auth/admins"""
    admins = Admin.query.order_by(Admin.created_at).all()
    return success(data={"admins": [_admin_dict(a) for a in admins]})


@auth_bp.route("/admins", methods=["POST"])
@super_admin_required
def create_admin():
    """
    POST /auth/admins
    Body: { "name": str, "email": str, "password": str, "role": "admin" | "super_admin" }
    """
    body = request.get_json(silent=True) or {}

    required = ["name", "email", "password"]
    missing = [f for f in required if not body.get(f)]
    if missing:
        return error(f"Missing required fields: {', '.join(missing)}")

    if not all(isinstance(body[f], str) for f in required):
        return error("name, email and password must be strings.")

    role = body.get("role") or "admin"
    if role not in ("admin", "super_admin"):
        return error("role must be 'admin' or 'super_admin'.")

    if len(body["password"]) < 8:
        return error("Password must be at least 8 characters.")

    email = body["email"].strip().lower()
    if Admin.query.filter_by(email=email).first():
        return error("An admin with this email already exists.", 409)

    admin = Admin(
        name=body["name"].strip(),
        email=email,
        password_hash=generate_password_hash(body["password"]),
        role=AdminRole(role),
    )
    with atomic():
        db.session.add(admin)

    write_audit(session.get("admin_id"), f"Admin account created for '{admin.name}' ({role}).",
                "admin", admin.admin_id)
    return created(data={"admin": _admin_dict(admin)}, message="Admin created.")


# ─── Client login ─────────────────────────────────────────────────────────────

@auth_bp.route("/client/login", methods=["POST"])
def client_login():
    """
    POST /auth/client/login
    Body: { "email": str, "password": str }
    """
    email, password = _credentials()
    if not email or not password:
        return error("Email and password are required.", 400)

    client = Client.query.filter_by(email=email).first()
    if not client or not client.password_hash or not check_password_hash(client.password_hash, password):
        current_app.logger.warning(f"Failed client login attempt for email: {email}")
        return unauthorized("Invalid email or password.")

    session.clear()
    session.permanent = True
    session["client_id"] = client.client_id
    session["email"] = client.email

    return success(data={"client_id": client.client_id, "redirect": "/me"}, message="Login successful.")


@auth_bp.route("/client/logout", methods=["POST"])
def client_logout():
    """POST /auth/client/logout"""
    session.pop("client_id", None)
    session.pop("email", None)
    return success(message="Logged out.")


# ─── Private helpers ──────────────────────────────────────────────────────────

def _admin_dict(admin: Admin) -> dict:
    return {
        "admin_id":   admin.admin_id,
        "name":       admin.name,
        "email":      admin.email,
        "role":       admin.role.value,
        "is_active":  admin.is_active,
        "created_at": admin.created_at.isoformat() if admin.created_at else None,
    }
