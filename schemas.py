"""
Marshmallow schemas for input validation

Covers API request parameters, environment configuration, and the raw
offer payloads returned by the JustWatch API.
"""
from functools import wraps

from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load
from marshmallow.validate import Range

# ============================================================================
# Configuration Schemas
# ============================================================================


class CheckConfigSchema(Schema):
    """Availability check settings read from environment variables"""

    tick_interval_minutes = fields.Int(data_key="CHECK_TICK_INTERVAL_MINUTES", validate=Range(min=1, max=1440))
    check_frequency_days = fields.Int(data_key="CHECK_FREQUENCY_DAYS", validate=Range(min=1, max=365))
    api_delay_ms = fields.Int(data_key="CHECK_API_DELAY_MS", validate=Range(min=0))
    rate_limit_backoff_ms = fields.Int(data_key="CHECK_RATE_LIMIT_BACKOFF_MS", validate=Range(min=0))
    never_checked_reserve = fields.Int(data_key="CHECK_NEVER_CHECKED_RESERVE", validate=Range(min=0))
    request_timeout_seconds = fields.Int(data_key="CHECK_REQUEST_TIMEOUT_SECONDS", validate=Range(min=1))
    startup_delay_seconds = fields.Int(data_key="CHECK_STARTUP_DELAY_SECONDS", validate=Range(min=0))

    class Meta:
        unknown = EXCLUDE  # The rest of the process environment


# ============================================================================
# JustWatch Payload Schemas
# ============================================================================


class PackageSchema(Schema):
    """Provider package attached to a JustWatch offer"""

    short_name = fields.Str(data_key="shortName", required=True)
    clear_name = fields.Str(data_key="clearName", load_default=None)

    class Meta:
        unknown = EXCLUDE


class OfferSchema(Schema):
    """
    A single JustWatch offer.

    Loads the GraphQL shape ``{"monetizationType": ..., "package": {"shortName": ...}}``
    into ``{"monetization_type": "FLATRATE", "provider": "nfx"}``.
    """

    monetization_type = fields.Str(data_key="monetizationType", required=True)
    package = fields.Nested(PackageSchema, required=True)

    class Meta:
        unknown = EXCLUDE

    @post_load
    def flatten(self, data, **kwargs):
        return {
            "monetization_type": data["monetization_type"].upper(),
            "provider": data["package"]["short_name"],
        }


# ============================================================================
# API Request Schemas
# ============================================================================


class RecommendationsQuerySchema(Schema):
    """Query parameters for /api/recommendations"""

    months = fields.Int(load_default=3, validate=Range(min=1, max=120))

    class Meta:
        unknown = EXCLUDE


class BackfillRequestSchema(Schema):
    """Body for /api/backfill"""

    limit = fields.Int(load_default=100, validate=Range(min=1, max=500))

    class Meta:
        unknown = EXCLUDE


class TitleListQuerySchema(Schema):
    """Pagination for /api/titles"""

    limit = fields.Int(load_default=None, validate=Range(min=1, max=1000))
    offset = fields.Int(load_default=0, validate=Range(min=0))

    class Meta:
        unknown = EXCLUDE


# ============================================================================
# Validation Helpers
# ============================================================================


def validate_request_data(schema_class, source="json"):
    """
    Decorator to validate request data using a Marshmallow schema

    Usage:
        @api_bp.route('/api/resource', methods=['POST'])
        @validate_request_data(ResourceCreateSchema)
        def create_resource():
            data = request.validated_data  # Access validated data

    Args:
        schema_class: Schema to load the data with
        source: "json" for the request body, "args" for the query string

    Returns 400 Bad Request with validation errors if data is invalid.
    """
    from flask import jsonify, request

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if source == "args":
                payload = request.args.to_dict()
            else:
                payload = request.get_json(silent=True) or {}
            try:
                request.validated_data = schema_class().load(payload)
            except ValidationError as err:
                return (
                    jsonify({"success": False, "error": "Validation failed", "validation_errors": err.messages}),
                    400,
                )
            return f(*args, **kwargs)

        return wrapper

    return decorator
