from flask import Blueprint, current_app, jsonify
from flask_wtf.csrf import CSRFError

from .errors import AppError, NotFoundError, ValidationError

error_handlers_bp = Blueprint("error_handlers", __name__)


def _error_response(error):
    return jsonify({"error": error.message, "context": error.context}), error.status_code


@error_handlers_bp.app_errorhandler(ValidationError)
def handle_validation_error(error):
    """Handles validation errors, including schedule errors."""
    current_app.logger.warning(f"Validation Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(NotFoundError)
def handle_not_found_error(error):
    """Handles not found errors."""
    current_app.logger.warning(f"Not Found Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Handles rejected state changes and other application errors."""
    current_app.logger.warning(
        f"{type(error).__name__}: {error.message} {error.context}"
    )
    return _error_response(error)


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    """Handles generic 404 errors for routes that don't exist."""
    return jsonify({"error": "Not found."}), 404


@error_handlers_bp.app_errorhandler(405)
def handle_405(e):
    """Handles requests with an unsupported method."""
    return jsonify({"error": "Method not allowed."}), 405


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}")
    return jsonify({"error": "An unexpected error occurred."}), 500


@error_handlers_bp.app_errorhandler(CSRFError)
def handle_csrf_error(e):
    """
    Handles CSRF errors, which usually indicate a session timeout or a missing
    X-CSRFToken header.
    """
    current_app.logger.warning(f"CSRF Error: {e.description}")
    return jsonify({"error": "Your session may have expired. Please try again."}), 400
