# Overview: Maps service-layer errors onto JSON error responses.

from flask import current_app, jsonify

from ..validation import ConflictError, NotFoundError, StoreError, ValidationError


def json_error(exc: Exception, context: str = "Request failed"):
    """
    ValidationError -> 400, NotFoundError -> 404, ConflictError -> 409.

    Anything else is logged with its traceback and reported as a 500.
    """
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, StoreError):
        current_app.logger.exception(context)
        return jsonify({"error": "Database error"}), 500
    current_app.logger.exception(context)
    return jsonify({"error": "Internal server error"}), 500
