"""
Read-only routes for titles, availability history and coverage statistics
"""
import logging

from flask import Blueprint, jsonify, request

from error_handling import handle_errors
from schemas import RecommendationsQuerySchema, TitleListQuerySchema, validate_request_data
from services.availability_stats import (
    get_service_stats,
    get_title_history,
    get_titles_with_current_availability,
    get_unavailable_titles,
)

logger = logging.getLogger(__name__)

# Create blueprint
stats_bp = Blueprint("stats", __name__)


@stats_bp.route("/api/titles", methods=["GET"])
@handle_errors(default_message="Error fetching titles")
@validate_request_data(TitleListQuerySchema, source="args")
def list_titles():
    """List titles with their services at the latest check

    Query parameters:
    - limit (optional): Page size
    - offset (optional): Page offset (default: 0)
    """
    params = request.validated_data
    titles = get_titles_with_current_availability(limit=params["limit"], offset=params["offset"])
    return jsonify({"titles": titles, "count": len(titles)})


@stats_bp.route("/api/history/<int:title_id>", methods=["GET"])
@handle_errors(default_message="Error fetching history")
def title_history(title_id):
    """Availability history for a single title"""
    return jsonify(get_title_history(title_id))


@stats_bp.route("/api/stats/services", methods=["GET"])
@handle_errors(default_message="Error fetching service stats")
def service_stats():
    """Catalog coverage per service over time"""
    return jsonify(get_service_stats())


@stats_bp.route("/api/recommendations", methods=["GET"])
@handle_errors(default_message="Error fetching recommendations")
@validate_request_data(RecommendationsQuerySchema, source="args")
def recommendations():
    """Titles that haven't been streaming anywhere for a while

    Query parameters:
    - months (optional): Look-back window in months (default: 3)
    """
    months = request.validated_data["months"]
    titles = get_unavailable_titles(months)
    return jsonify(
        {"months_threshold": months, "titles": [title.to_dict() for title in titles], "count": len(titles)}
    )
