#!/usr/bin/env python3
"""
StreamTrack - tracks which streaming services carry a catalog of titles over time

Application entry point with blueprint registration.
Routes live in blueprints:
  - routes/api.py - Manual check trigger, scheduler control, path backfill
  - routes/stats.py - Titles, availability history and coverage stats
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS

from error_handling import register_error_handlers
from models import Service, db
from services.check_config import load_check_config, verify_tick_interval
from services.scheduler import AvailabilityScheduler

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)
app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL", "sqlite:////app/data/streamtrack.db")
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")

# SQLite configuration for use from the scheduler thread
# - timeout: Wait up to 30 seconds for locks (default is 5)
# - check_same_thread: Allow use across threads (required for scheduler)
app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
    "connect_args": {
        "timeout": 30,
        "check_same_thread": False,
    },
    "pool_pre_ping": True,  # Verify connections before use
}

# Initialize extensions
CORS(app, origins=os.getenv("CORS_ORIGIN", "*"))
db.init_app(app)

# Check configuration is fixed for the life of the process
check_config = load_check_config()

# If an external cron also drives /api/trigger-check, it must match our tick
schedule_cron = os.getenv("CHECK_SCHEDULE_CRON")
if schedule_cron:
    verify_tick_interval(check_config, schedule_cron)

availability_scheduler = AvailabilityScheduler(app, check_config)

# Register error handlers
register_error_handlers(app)

# ============================================================================
# Register Blueprints
# ============================================================================

from routes.api import api_bp, set_scheduler  # noqa: E402
from routes.stats import stats_bp  # noqa: E402

app.register_blueprint(api_bp)
app.register_blueprint(stats_bp)

# Pass scheduler to API blueprint
set_scheduler(availability_scheduler)

# Start scheduler by default (works with both direct run and gunicorn)
if os.getenv("SCHEDULER_ENABLED", "true").lower() == "true":
    availability_scheduler.start()


# ============================================================================
# CLI Commands
# ============================================================================


@app.cli.command("init-db")
def init_db():
    """Initialize the database and seed streaming services"""
    db.create_all()
    added = Service.seed_defaults()
    click.echo(f"Database initialized! ({added} services seeded)")


@app.cli.command("check-now")
def check_now():
    """Run one availability check cycle"""
    summary = availability_scheduler.run_once()
    click.echo(
        f"Checked {summary['checked']} of {summary['selected']} selected titles "
        f"({summary['errors']} errors, {summary['skipped']} skipped)"
    )


@app.cli.command("backfill-paths")
@click.option("--limit", default=100, show_default=True, help="Maximum titles to process")
def backfill_paths(limit):
    """Resolve missing JustWatch full paths by name search"""
    result = availability_scheduler.run_backfill(limit=limit)
    click.echo(result["message"])


# ============================================================================
# Application Entry Point
# ============================================================================


if __name__ == "__main__":
    with app.app_context():
        db.create_all()
        Service.seed_defaults()

    port = int(os.getenv("PORT", 8000))
    debug = os.getenv("DEBUG", "False").lower() == "true"

    logger.info(f"Starting StreamTrack on port {port}")

    try:
        app.run(host="0.0.0.0", port=port, debug=debug)
    finally:
        # Stop scheduler on shutdown
        availability_scheduler.stop()
