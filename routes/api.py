"""
API routes for availability checks: manual trigger, scheduler control, backfill
"""
import logging

from flask import Blueprint, jsonify, request

from error_handling import error_response, handle_errors
from schemas import BackfillRequestSchema, validate_request_data

logger = logging.getLogger(__name__)

# Create blueprint
api_bp = Blueprint("api", __name__)

# Store scheduler reference (set by app.py)
_scheduler = None


def set_scheduler(scheduler):
    """Set the scheduler instance for use in API routes"""
    global _scheduler
    _scheduler = scheduler


# ============================================================================
# API Routes - Availability Checks
# ============================================================================


@api_bp.route("/api/trigger-check", methods=["POST"])
@handle_errors(default_message="Error running availability check", include_traceback_in_dev=True)
def trigger_check():
    """Run one availability check cycle synchronously (same path as the periodic tick)"""
    if _scheduler is None:
        return error_response("Scheduler not initialized", 500)

    logger.info("Manual availability check triggered")
    summary = _scheduler.run_once()
    return jsonify({"success": True, "message": "Availability check complete", "run": summary})


@api_bp.route("/api/backfill", methods=["POST"])
@handle_errors(default_message="Backfill failed")
@validate_request_data(BackfillRequestSchema)
def backfill_paths():
    """Resolve missing JustWatch full paths by name search (409 while a check run is in progress)"""
    if _scheduler is None:
        return error_response("Scheduler not initialized", 500)

    result = _scheduler.run_backfill(limit=request.validated_data["limit"])
    return jsonify({"success": True, **result})


# ============================================================================
# API Routes - Scheduler
# ============================================================================


@api_bp.route("/api/scheduler/status", methods=["GET"])
def get_scheduler_status():
    """Get scheduler status and configuration"""
    if _scheduler is None:
        return error_response("Scheduler not initialized", 500)

    return jsonify(_scheduler.get_status())


@api_bp.route("/api/scheduler/stop", methods=["POST"])
def stop_scheduler():
    """Stop the scheduler"""
    if _scheduler is None:
        return error_response("Scheduler not initialized", 500)

    if not _scheduler.running:
        return error_response("Scheduler is not running", 400)

    _scheduler.stop()
    logger.info("Scheduler stopped via API")
    return jsonify({"success": True, "message": "Scheduler stopped"})


@api_bp.route("/api/scheduler/start", methods=["POST"])
def start_scheduler():
    """Start the scheduler"""
    if _scheduler is None:
        return error_response("Scheduler not initialized", 500)

    if _scheduler.running:
        return error_response("Scheduler is already running", 400)

    _scheduler.start()
    logger.info("Scheduler started via API")
    return jsonify({"success": True, "message": "Scheduler started"})
