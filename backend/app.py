"""
app.py — Flask application factory for the NCH onboarding backend.

Blueprints:
    /auth         admin and client sessions
    /admin        dashboard stats, registration review, audit log
    /client       public registration and the logged-in client space
    /api/clients  client records, payment ledger, stages, documents
"""

import os
import logging
from datetime import datetime, timezone
from flask import Flask, jsonify, request, g
from werkzeug.exceptions import HTTPException, NotFound, RequestEntityTooLarge

from config import get_config
from database import db
from errors import DomainError
from utils.response import error, from_exception

VERSION = "0.1.0"


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or get_config())

    _configure_logging(app)
    _init_extensions(app)
    _register_blueprints(app)
    _register_error_handlers(app)
    _register_hooks(app)
    _register_health_check(app)

    app.logger.info(
        f"NCH onboarding {VERSION} started "
        f"(offers: {app.config['OFFER_AMOUNTS']}, notifications: {app.config['NOTIFICATIONS_ENABLED']})"
    )
    return app


# ─── Logging ──────────────────────────────────────────────────────────────────

def _configure_logging(app):
    level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    app.logger.setLevel(level)


# ─── Extensions ───────────────────────────────────────────────────────────────

def _init_extensions(app):
    db.init_app(app)
    # Client folders and receipts live under one root
    os.makedirs(os.path.join(app.config["UPLOAD_FOLDER"], "receipts"), exist_ok=True)


# ─── Blueprints ───────────────────────────────────────────────────────────────

def _register_blueprints(app):
    from routes.auth      import auth_bp
    from routes.admin     import admin_bp
    from routes.client    import client_bp
    from routes.clients   import clients_bp
    from routes.documents import documents_bp

    app.register_blueprint(auth_bp,      url_prefix="/auth")
    app.register_blueprint(admin_bp,     url_prefix="/admin")
    app.register_blueprint(client_bp,    url_prefix="/client")
    app.register_blueprint(clients_bp,   url_prefix="/api/clients")
    app.register_blueprint(documents_bp, url_prefix="/api/clients")


# ─── Error handlers ───────────────────────────────────────────────────────────

def _register_error_handlers(app):

    @app.errorhandler(DomainError)
    def domain_error(e):
        if e.status_code >= 500:
            app.logger.error(f"{type(e).__name__} on {request.method} {request.path}: {e.__cause__ or e}")
        else:
            app.logger.info(f"{type(e).__name__} on {request.method} {request.path}: {e.message}")
        return from_exception(e)

    @app.errorhandler(NotFound)
    def route_not_found(e):
        return error(f"Route not found: {request.path}", status_code=404)

    @app.errorhandler(RequestEntityTooLarge)
    def file_too_large(e):
        limit_mb = (app.config.get("MAX_CONTENT_LENGTH") or 0) // (1024 * 1024)
        return error(f"File too large. Maximum size is {limit_mb} MB.", status_code=413)

    @app.errorhandler(HTTPException)
    def http_error(e):
        return error(e.description or e.name, status_code=e.code)

    @app.errorhandler(500)
    def internal_error(e):
        app.logger.exception("Unhandled server error")
        return jsonify({"success": False, "error": "Internal server error."}), 500


# ─── Request / response hooks ─────────────────────────────────────────────────

def _register_hooks(app):

    @app.before_request
    def log_request():
        g.request_start = datetime.now(timezone.utc)
        app.logger.debug(f"--> {request.method} {request.path}")

    @app.after_request
    def add_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if hasattr(g, "request_start"):
            elapsed = (datetime.now(timezone.utc) - g.request_start).total_seconds() * 1000
            app.logger.debug(f"<-- {request.method} {request.path} {response.status_code}  ({elapsed:.1f}ms)")

        return response


# ─── Health check ─────────────────────────────────────────────────────────────

def _register_health_check(app):

    @app.route("/health")
    def health():
        """
        GET /health
        Database connectivity plus the pricing table the ledger is using.
        """
        try:
            db.session.execute(db.text("SELECT 1"))
            db_status = "ok"
        except Exception as e:
            app.logger.warning(f"Health check database error: {e}")
            db_status = f"error: {e}"

        healthy = db_status == "ok"
        return jsonify({
            "status":        "ok" if healthy else "degraded",
            "database":      db_status,
            "offer_amounts": app.config["OFFER_AMOUNTS"],
            "notifications": app.config["NOTIFICATIONS_ENABLED"],
            "timestamp":     datetime.now(timezone.utc).isoformat(),
            "version":       VERSION,
        }), 200 if healthy else 503


# ─── Entry point ──────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app = create_app()
    app.run(debug=app.config.get("DEBUG", False), port=5000, host="0.0.0.0")
