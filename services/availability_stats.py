"""
Availability history and coverage statistics

Read-side queries over the append-only availability logs. Because every
check writes a row for every service, a check date with no available rows
means "streaming nowhere", not "not checked".
"""

import calendar
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from error_handling import ResourceNotFoundError
from models import AvailabilityLog, Service, Title, db

logger = logging.getLogger(__name__)


def subtract_months(day: date, months: int) -> date:
    """Same day ``months`` earlier, clamped to the end of shorter months"""
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _percentage(count: int, total: int) -> int:
    # Round half up
    return int(count * 100 / total + 0.5)


def get_title_history(title_id: int) -> Dict[str, Any]:
    """
    Availability history for one title.

    Returns:
        {"title": {...}, "history": [{"date": "YYYY-MM-DD", "services": [names]}]}
        newest date first

    Raises:
        ResourceNotFoundError: if the title doesn't exist
    """
    title = db.session.get(Title, title_id)
    if not title:
        raise ResourceNotFoundError("Title not found")

    dates = (
        db.session.query(AvailabilityLog.check_date)
        .filter(AvailabilityLog.title_id == title_id)
        .distinct()
        .order_by(AvailabilityLog.check_date.desc())
        .all()
    )

    rows = (
        db.session.query(AvailabilityLog.check_date, Service.name)
        .join(Service, AvailabilityLog.service_id == Service.id)
        .filter(AvailabilityLog.title_id == title_id, AvailabilityLog.is_available == True)  # noqa: E712
        .order_by(AvailabilityLog.check_date.desc(), Service.name)
        .all()
    )

    services_by_date: Dict[date, List[str]] = {}
    for check_date, service_name in rows:
        names = services_by_date.setdefault(check_date, [])
        if service_name not in names:
            names.append(service_name)

    history = [
        {"date": check_date.isoformat(), "services": services_by_date.get(check_date, [])} for (check_date,) in dates
    ]
    return {"title": title.to_dict(), "history": history}


def get_service_stats() -> Dict[str, Any]:
    """
    Share of the catalog available on each service, per check date.

    Returns:
        {"services": [{"name": ..., "coverage": [{"date": ..., "percentage": int}]}],
         "total_titles": int}
    """
    total_titles = Title.query.count()
    if total_titles == 0:
        return {"services": [], "total_titles": 0}

    services = Service.query.order_by(Service.id).all()

    rows = (
        db.session.query(
            Service.name,
            AvailabilityLog.check_date,
            db.func.count(db.distinct(AvailabilityLog.title_id)).label("available_count"),
        )
        .join(Service, AvailabilityLog.service_id == Service.id)
        .filter(AvailabilityLog.is_available == True)  # noqa: E712
        .group_by(Service.name, AvailabilityLog.check_date)
        .order_by(AvailabilityLog.check_date.desc())
        .all()
    )

    coverage: Dict[str, List[Dict[str, Any]]] = {service.name: [] for service in services}
    for service_name, check_date, available_count in rows:
        coverage.setdefault(service_name, []).append(
            {"date": check_date.isoformat(), "percentage": _percentage(available_count, total_titles)}
        )

    return {
        "services": [{"name": name, "coverage": points} for name, points in coverage.items()],
        "total_titles": total_titles,
    }


def get_unavailable_titles(months: int, today: Optional[date] = None) -> List[Title]:
    """Titles not seen streaming anywhere within the last ``months`` months"""
    if today is None:
        today = datetime.now(timezone.utc).date()
    threshold = subtract_months(today, months)

    recently_available = db.exists().where(
        db.and_(
            AvailabilityLog.title_id == Title.id,
            AvailabilityLog.is_available == True,  # noqa: E712
            AvailabilityLog.check_date >= threshold,
        )
    )
    return Title.query.filter(~recently_available).order_by(Title.name).all()


def get_titles_with_current_availability(limit: Optional[int] = None, offset: int = 0) -> List[Dict[str, Any]]:
    """Titles (by name) with the services they were on at their latest check"""
    query = Title.query.order_by(Title.name)
    if limit is not None:
        query = query.limit(limit).offset(offset)
    titles = query.all()

    if not titles:
        return []

    title_ids = [title.id for title in titles]
    latest = (
        db.session.query(
            AvailabilityLog.title_id.label("title_id"),
            db.func.max(AvailabilityLog.check_date).label("latest_date"),
        )
        .filter(AvailabilityLog.title_id.in_(title_ids))
        .group_by(AvailabilityLog.title_id)
        .subquery()
    )

    rows = (
        db.session.query(AvailabilityLog.title_id, Service.name)
        .join(Service, AvailabilityLog.service_id == Service.id)
        .join(
            latest,
            db.and_(
                AvailabilityLog.title_id == latest.c.title_id,
                AvailabilityLog.check_date == latest.c.latest_date,
            ),
        )
        .filter(AvailabilityLog.is_available == True)  # noqa: E712
        .distinct()
        .order_by(Service.name)
        .all()
    )

    current: Dict[int, List[str]] = {}
    for title_id, service_name in rows:
        current.setdefault(title_id, []).append(service_name)

    return [{**title.to_dict(), "current_services": current.get(title.id, [])} for title in titles]
