"""
Tests for error_handling module
"""
from unittest.mock import patch

from flask import Flask
from sqlalchemy.exc import IntegrityError, OperationalError

from error_handling import (
    ResourceNotFoundError,
    RunInProgressError,
    error_response,
    handle_db_error,
    handle_errors,
)


def test_error_response_basic():
    """Test basic error response format"""
    app = Flask(__name__)

    with app.app_context():
        response, status_code = error_response("Test error", 400)
        data = response.get_json()

        assert status_code == 400
        assert data["success"] is False
        assert data["error"] == "Test error"
        assert "details" not in data


def test_error_response_with_details():
    """Test error response with additional details"""
    app = Flask(__name__)

    with app.app_context():
        details = {"field": "months", "reason": "must be positive"}
        response, status_code = error_response("Validation failed", 422, details)
        data = response.get_json()

        assert status_code == 422
        assert data["details"] == details


def test_handle_errors_with_resource_not_found():
    """Test handle_errors decorator catches ResourceNotFoundError"""
    app = Flask(__name__)

    with app.app_context():

        @handle_errors()
        def test_func():
            raise ResourceNotFoundError("Title not found")

        response, status_code = test_func()

        assert status_code == 404
        assert response.get_json()["error"] == "Title not found"


def test_handle_errors_with_run_in_progress():
    """Test handle_errors decorator maps a concurrent run to 409"""
    app = Flask(__name__)

    with app.app_context():

        @handle_errors()
        def test_func():
            raise RunInProgressError()

        response, status_code = test_func()

        assert status_code == 409
        assert "already in progress" in response.get_json()["error"]


def test_handle_errors_with_value_error():
    """Test handle_errors decorator catches ValueError"""
    app = Flask(__name__)

    with app.app_context():

        @handle_errors()
        def test_func():
            raise ValueError("Invalid value")

        response, status_code = test_func()

        assert status_code == 400
        assert "invalid value" in response.get_json()["error"].lower()


def test_handle_errors_with_database_error():
    """Test handle_errors decorator routes SQLAlchemy errors through handle_db_error"""
    app = Flask(__name__)

    with app.app_context():

        @handle_errors()
        def test_func():
            raise OperationalError("SELECT 1", {}, None)

        with patch("error_handling.handle_db_error", return_value=("Database is temporarily unavailable", 503)):
            response, status_code = test_func()

        assert status_code == 503
        assert response.get_json()["error"] == "Database is temporarily unavailable"


def test_handle_errors_generic_exception():
    """Test handle_errors decorator catches generic exceptions"""
    app = Flask(__name__)
    app.config["DEBUG"] = False

    with app.app_context():

        @handle_errors(default_message="Something went wrong")
        def test_func():
            raise Exception("Unexpected error")

        response, status_code = test_func()
        data = response.get_json()

        assert status_code == 500
        assert data["error"] == "Something went wrong"  # Generic message in production


def test_handle_errors_generic_exception_debug_mode():
    """Test handle_errors decorator in debug mode includes traceback"""
    app = Flask(__name__)
    app.config["DEBUG"] = True

    with app.app_context():

        @handle_errors(include_traceback_in_dev=True)
        def test_func():
            raise Exception("Debug error")

        response, status_code = test_func()
        data = response.get_json()

        assert status_code == 500
        assert "debug error" in data["error"].lower()
        assert "traceback" in data["details"]


def test_handle_db_error_status_codes(app):
    """Test database errors map to user-facing messages"""
    assert handle_db_error(IntegrityError("INSERT", {}, None))[1] == 400
    assert handle_db_error(OperationalError("SELECT", {}, None))[1] == 503
    message, status_code = handle_db_error(Exception("other"))
    assert status_code == 500
    assert message == "A database error occurred"


def test_registered_handlers_return_json(client):
    """Test global handlers use the JSON error format"""
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.get_json() == {"success": False, "error": "Resource not found"}


def test_custom_exceptions_are_exceptions():
    """Test custom exceptions inherit from Exception"""
    assert issubclass(ResourceNotFoundError, Exception)
    assert issubclass(RunInProgressError, Exception)
