from flask import Blueprint, current_app, jsonify
from werkzeug.exceptions import HTTPException

from .errors import AppError

error_handlers_bp = Blueprint("error_handlers", __name__)


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Map application errors to their status code and message."""
    if error.status_code >= 500:
        current_app.logger.error(f"Application Error: {error.message}")
    else:
        current_app.logger.warning(
            f"{type(error).__name__} ({error.status_code}): {error.message}"
        )
    return jsonify({"message": error.message}), error.status_code


@error_handlers_bp.app_errorhandler(HTTPException)
def handle_http_exception(e):
    """Render werkzeug HTTP errors (404 for unknown routes, 405, ...) as JSON."""
    return jsonify({"message": e.description}), e.code


@error_handlers_bp.app_errorhandler(Exception)
def handle_unexpected_error(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}", exc_info=True)
    # Avoid exposing internal error details to the caller
    return jsonify({"message": "Internal Server Error"}), 500
