"""
init_db.py — One-time database initialisation script.

Run this once to:
  1. Create all tables via SQLAlchemy
  2. Seed the first super admin from ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME

Re-running is safe: existing tables and an existing admin are left alone.

Usage:
    python scripts/init_db.py
"""

import sys
import os

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

from flask import Flask
from werkzeug.security import generate_password_hash

from config import get_config
from database import db, init_db
from models import Admin, AdminRole


def create_app():
    app = Flask(__name__)
    app.config.from_object(get_config())
    init_db(app)
    return app


def seed_super_admin():
    email    = os.environ.get("ADMIN_EMAIL", "").strip().lower()
    password = os.environ.get("ADMIN_PASSWORD", "")
    name     = os.environ.get("ADMIN_NAME", "Administrator")

    if not email or not password:
        print("[DB] ADMIN_EMAIL / ADMIN_PASSWORD not set — skipping admin seed.")
        return

    if Admin.query.filter_by(email=email).first():
        print(f"[DB] Admin {email} already exists — skipping.")
        return

    db.session.add(Admin(
        name=name,
        email=email,
        password_hash=generate_password_hash(password),
        role=AdminRole.super_admin,
    ))
    db.session.commit()
    print(f"[DB] Super admin {email} created.")


def main():
    app = create_app()
    with app.app_context():
        seed_super_admin()
    print("[DB] Initialisation complete.")


if __name__ == "__main__":
    main()
