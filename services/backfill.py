"""
Backfill canonical JustWatch paths for titles imported without one

Titles with a full path get exact lookups; the rest fall back to name
search on every check. This resolves paths once via search and stores them.
"""

import logging
import time
from typing import Any, Dict, List

from models import Title, db

logger = logging.getLogger(__name__)

STATUS_UPDATED = "updated"
STATUS_NOT_FOUND = "not_found"
STATUS_ERROR = "error"


def backfill_full_paths(client, delay_seconds: float = 0.5, limit: int = 100) -> Dict[str, Any]:
    """
    Look up and store full paths for titles that don't have one.

    Args:
        client: JustWatchClient used for name searches
        delay_seconds: Pause after each lookup
        limit: Maximum titles to process in this call

    Returns:
        Dict with a message and per-title results
    """
    titles = Title.query.filter(Title.full_path.is_(None)).order_by(Title.id).limit(limit).all()
    if not titles:
        return {"message": "No titles need backfilling", "results": []}

    results: List[Dict[str, Any]] = []
    for title in titles:
        result = {"title_id": title.id, "title_name": title.name, "full_path": None}
        try:
            match = client.search_title(title.name, title.type)
        except Exception as e:
            logger.error(f"Error backfilling {title.name}: {e}")
            result["status"] = STATUS_ERROR
            results.append(result)
            time.sleep(delay_seconds)
            continue

        if not match or not match.get("full_path"):
            logger.info(f"Backfill: no full path found for {title.name}")
            result["status"] = STATUS_NOT_FOUND
        else:
            title.full_path = match["full_path"]
            db.session.commit()
            logger.info(f"Backfill: {title.name} -> {title.full_path}")
            result["full_path"] = title.full_path
            result["status"] = STATUS_UPDATED

        results.append(result)
        time.sleep(delay_seconds)

    counts = {
        status: sum(1 for r in results if r["status"] == status)
        for status in (STATUS_UPDATED, STATUS_NOT_FOUND, STATUS_ERROR)
    }
    return {
        "message": (
            f"Backfilled {counts[STATUS_UPDATED]} titles "
            f"({counts[STATUS_NOT_FOUND]} not found, {counts[STATUS_ERROR]} errors)"
        ),
        "results": results,
    }
