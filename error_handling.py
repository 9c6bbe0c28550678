"""
Standardized error handling for the application

Provides:
- Consistent error response format
- Error handler decorator for API routes
- Flask error handlers for common HTTP errors
- Safe error logging (never exposes internal details to users)
"""
import logging
import traceback
from functools import wraps

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


# ============================================================================
# Error Response Format
# ============================================================================


def error_response(message, status_code=400, details=None):
    """
    Create a standardized error response

    Args:
        message: User-friendly error message
        status_code: HTTP status code
        details: Optional additional details (dict)

    Returns:
        tuple: (response, status_code)
    """
    response = {"success": False, "error": message}

    if details:
        response["details"] = details

    return jsonify(response), status_code


# ============================================================================
# Specific Error Classes (for raising)
# ============================================================================


class ResourceNotFoundError(Exception):
    """Raise when a requested resource doesn't exist (404)"""

    pass


class RunInProgressError(Exception):
    """Raise when an availability check run is already in flight (409)"""

    pass


# ============================================================================
# Error Handler Decorator
# ============================================================================


def handle_errors(default_message="An error occurred", log_errors=True, include_traceback_in_dev=False):
    """
    Decorator to handle exceptions in route handlers

    Usage:
        @api_bp.route('/api/resource')
        @handle_errors(default_message="Error fetching resource")
        def my_route():
            ...

    Args:
        default_message: Fallback message if exception has no message
        log_errors: If True, logs errors to logger
        include_traceback_in_dev: If True and app.debug=True, includes traceback

    Returns:
        Decorated function that catches and handles exceptions
    """

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except HTTPException:
                # Let Flask handle HTTP exceptions (abort, get_or_404, etc.)
                raise
            except RunInProgressError as e:
                if log_errors:
                    logger.warning(f"Run already in progress in {f.__name__}: {e}")
                return error_response(str(e) or "A check run is already in progress", 409)

            except ResourceNotFoundError as e:
                if log_errors:
                    logger.warning(f"Resource not found in {f.__name__}: {e}")
                return error_response(str(e) or "Resource not found", 404)

            except ValueError as e:
                # Validation or business logic errors (400)
                if log_errors:
                    logger.warning(f"Value error in {f.__name__}: {e}")
                return error_response(str(e) or default_message, 400)

            except SQLAlchemyError as e:
                message, status_code = handle_db_error(e, operation=f.__name__)
                return error_response(message, status_code)

            except Exception as exc:
                # Unexpected errors (500)
                if log_errors:
                    logger.error(f"Unexpected error in {f.__name__}", exc_info=True)

                from flask import current_app

                if current_app.config.get("DEBUG") and include_traceback_in_dev:
                    details = {"exception_type": type(exc).__name__, "traceback": traceback.format_exc()}
                    return error_response(str(exc), 500, details)

                # Production: generic message
                return error_response(default_message or "An internal error occurred", 500)

        return wrapper

    return decorator


# ============================================================================
# Flask Error Handlers (register these in app.py)
# ============================================================================


def register_error_handlers(app):
    """
    Register global error handlers for the Flask app

    Call this in app.py after creating the Flask app:
        register_error_handlers(app)
    """

    @app.errorhandler(404)
    def not_found(error):
        return error_response("Resource not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response("Method not allowed", 405)

    @app.errorhandler(400)
    def bad_request(error):
        return error_response("Bad request", 400)

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal server error: {error}", exc_info=True)

        # Never expose internal errors in production
        if app.config.get("DEBUG"):
            return error_response(str(error), 500)
        return error_response("An internal error occurred", 500)

    @app.errorhandler(503)
    def service_unavailable(error):
        return error_response("Service temporarily unavailable", 503)


# ============================================================================
# Database Error Helpers
# ============================================================================


def handle_db_error(e, operation="database operation"):
    """
    Handle database errors safely

    Args:
        e: The exception
        operation: Description of what was being attempted

    Returns:
        tuple: (error_message, status_code)
    """
    from sqlalchemy.exc import IntegrityError, OperationalError

    from models import db

    db.session.rollback()

    if isinstance(e, IntegrityError):
        logger.warning(f"Database integrity error during {operation}: {e}")
        return "Database constraint violation. Check for duplicates or invalid references.", 400

    elif isinstance(e, OperationalError):
        logger.error(f"Database operational error during {operation}: {e}", exc_info=True)
        return "Database is temporarily unavailable", 503

    else:
        logger.error(f"Database error during {operation}: {e}", exc_info=True)
        return "A database error occurred", 500
