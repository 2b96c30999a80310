"""
conftest.py — Pytest fixtures for the NCH onboarding backend.

Every test gets a fresh application on an in-memory SQLite database, with
one admin and one super admin seeded. Notifications are disabled so no
Redis broker is needed.
"""

import os
import sys
import pytest

# Put backend on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

os.environ.setdefault("FLASK_ENV",        "testing")
os.environ.setdefault("FLASK_SECRET_KEY", "test-secret")
os.environ.setdefault("DATABASE_URL",     "sqlite:///:memory:")
os.environ.setdefault("REDIS_URL",        "redis://localhost:6379/0")
os.environ.setdefault("PORTAL_BASE_URL",  "http://localhost")


@pytest.fixture
def app(tmp_path):
    """Create application with an in-memory SQLite database."""
    from app import create_app
    from config import TestingConfig
    from database import db
    from models import Admin, AdminRole
    from werkzeug.security import generate_password_hash

    class TestConfig(TestingConfig):
        UPLOAD_FOLDER = str(tmp_path / "uploads")

    test_app = create_app(TestConfig)

    with test_app.app_context():
        db.create_all()

        admin = Admin(
            name="Test Admin",
            email="admin@test.dz",
            password_hash=generate_password_hash("testpass1"),
            role=AdminRole.admin,
        )
        owner = Admin(
            name="Test Owner",
            email="owner@test.dz",
            password_hash=generate_password_hash("ownerpass1"),
            role=AdminRole.super_admin,
        )
        db.session.add_all([admin, owner])
        db.session.commit()

        # Store on the app so fixtures can access them
        test_app._test_admin_id = admin.admin_id
        test_app._test_owner_id = owner.admin_id

    yield test_app

    with test_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _login_admin(app, admin_id, role):
    c = app.test_client()
    with c.session_transaction() as sess:
        sess["admin_id"] = admin_id
        sess["role"]     = role
        sess["name"]     = "Test Admin"
    return c


@pytest.fixture
def admin_client(app):
    """Authenticated admin test client."""
    return _login_admin(app, app._test_admin_id, "admin")


@pytest.fixture
def owner_client(app):
    """Authenticated super-admin test client."""
    return _login_admin(app, app._test_owner_id, "super_admin")


@pytest.fixture
def make_client(app):
    """
    Factory: insert a Client (and optional ledger rows) and return its id.

        cid = make_client(offer="basic", payments=[("verified", 12500)])
    """
    from database import db
    from models import Client, Offer, Payment, PaymentType, PaymentMethod, PaymentState
    from werkzeug.security import generate_password_hash

    counter = {"n": 0}

    def _make(offer="basic", payments=(), email=None, password=None, **fields):
        counter["n"] += 1
        with app.app_context():
            c = Client(
                first_name=fields.pop("first_name", "Amina"),
                last_name=fields.pop("last_name", "Benali"),
                email=email or f"client{counter['n']}@test.dz",
                phone=fields.pop("phone", "0555123456"),
                wilaya=fields.pop("wilaya", "Alger"),
                diploma=fields.pop("diploma", "Master"),
                selected_offer=Offer(offer),
                selected_countries=fields.pop("selected_countries", ["Germany"]),
                documents={},
                password_hash=generate_password_hash(password) if password else None,
                **fields,
            )
            db.session.add(c)
            db.session.flush()
            for item in payments:
                status, amount = item[0], item[1]
                payment_type = item[2] if len(item) > 2 else "initial"
                db.session.add(Payment(
                    client_id=c.client_id,
                    payment_type=PaymentType(payment_type),
                    payment_method=PaymentMethod.baridimob,
                    amount=amount,
                    status=PaymentState(status),
                ))
            db.session.commit()
            return c.client_id

    return _make


@pytest.fixture
def login_as_client(app):
    """Return a test client logged in as the given client id."""
    def _login(client_id):
        c = app.test_client()
        with c.session_transaction() as sess:
            sess["client_id"] = client_id
        return c
    return _login
