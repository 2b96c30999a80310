"""
response.py — Consistent JSON envelope helpers used across all routes.

Success: {"success": true,  "message": str, "data": ...}
Failure: {"success": false, "error": str, "details": ...}
"""

from flask import jsonify


def success(data=None, message="OK", status_code=200):
    payload = {"success": True, "message": message}
    if data is not None:
        payload["data"] = data
    return jsonify(payload), status_code


def created(data=None, message="Created"):
    return success(data=data, message=message, status_code=201)


def error(message="An error occurred", status_code=400, details=None):
    payload = {"success": False, "error": message}
    if details:
        payload["details"] = details
    return jsonify(payload), status_code


def from_exception(exc):
    """Render a DomainError (errors.py) with its own status code."""
    return error(exc.message, status_code=exc.status_code, details=exc.details)


def forbidden(message="Access denied."):
    return error(message, status_code=403)


def unauthorized(message="Authentication required."):
    return error(message, status_code=401)
