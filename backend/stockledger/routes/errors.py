# backend/stockledger/routes/errors.py
"""
HTTP boundary for ledger errors.

Engines raise typed LedgerErrors; this module is the only place that picks a
status code for them.
"""
from flask import current_app, g, jsonify
from werkzeug.exceptions import HTTPException

from ..errors import ErrorKind, LedgerError


STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INSUFFICIENT_STOCK: 409,
    ErrorKind.INTERNAL: 500,
}


def register_error_handlers(app):
    @app.errorhandler(LedgerError)
    def handle_ledger_error(exc: LedgerError):
        status = STATUS_BY_KIND.get(exc.kind, 500)
        if status >= 500:
            current_app.logger.error(
                "Ledger failure [request_id=%s]: %s", g.get("request_id"), exc.message
            )
        return jsonify(exc.to_dict()), status

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        current_app.logger.exception("Unhandled error [request_id=%s]", g.get("request_id"))
        return jsonify({"error": "Internal server error"}), 500
