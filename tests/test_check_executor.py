"""
Tests for the check executor
"""
from datetime import date, datetime, timedelta
from unittest.mock import MagicMock, call, patch

import pytest
from sqlalchemy.exc import OperationalError

from models import AvailabilityLog, Service, Title, db
from services.check_config import CheckConfig
from services.check_executor import CheckExecutor
from services.justwatch import AvailabilityLookupError, RateLimitError

RUN_AT = datetime(2025, 6, 1, 12, 0)
CONFIG = CheckConfig(api_delay_ms=500, rate_limit_backoff_ms=5000)


@pytest.fixture
def client():
    client = MagicMock()
    client.get_title_offers.return_value = []
    return client


@pytest.fixture
def executor(client):
    return CheckExecutor(client, CONFIG)


@pytest.fixture(autouse=True)
def mock_sleep():
    with patch("services.check_executor.time.sleep") as sleep:
        yield sleep


def logs_for(title_id):
    return AvailabilityLog.query.filter_by(title_id=title_id).order_by(AvailabilityLog.service_id).all()


class TestProcessBatch:
    """Tests for CheckExecutor.process_batch"""

    def test_writes_one_row_per_known_service(self, app, executor, client, services, make_title):
        """Every known service gets a row, available or not"""
        title = make_title("Inception", full_path="/us/movie/inception")
        client.get_title_offers.return_value = [
            {"provider": "nfx", "monetization_type": "FLATRATE"},
            {"provider": "xyz", "monetization_type": "FLATRATE"},
            {"provider": "amp", "monetization_type": "RENT"},
        ]

        stats = executor.process_batch([title], now=RUN_AT)

        assert stats == {"checked": 1, "errors": 0, "skipped": 0}
        logs = logs_for(title.id)
        assert len(logs) == len(services)
        available = {log.service.slug for log in logs if log.is_available}
        assert available == {"nfx"}
        assert all(log.check_date == date(2025, 6, 1) for log in logs)

    def test_not_streaming_anywhere_still_writes_all_rows(self, app, executor, services, make_title):
        title = make_title("Obscure Film")

        executor.process_batch([title], now=RUN_AT)

        logs = logs_for(title.id)
        assert len(logs) == len(services)
        assert not any(log.is_available for log in logs)

    def test_only_known_service_table_is_used(self, app, executor, client, make_title):
        """With only nfx seeded, exactly one row is written"""
        db.session.add(Service(name="Netflix", slug="nfx"))
        db.session.commit()
        title = make_title("Inception")
        client.get_title_offers.return_value = [
            {"provider": "nfx", "monetization_type": "FLATRATE"},
            {"provider": "xyz", "monetization_type": "RENT"},
        ]

        executor.process_batch([title], now=RUN_AT)

        logs = logs_for(title.id)
        assert len(logs) == 1
        assert logs[0].is_available is True

    def test_updates_last_checked(self, app, executor, services, make_title):
        title = make_title("Inception", last_checked=RUN_AT - timedelta(days=10))

        executor.process_batch([title], now=RUN_AT)

        assert db.session.get(Title, title.id).last_checked == RUN_AT

    def test_skips_unresolved_titles(self, app, executor, client, services, make_title, mock_sleep):
        """No JustWatch ID: no lookup, no logs, last_checked untouched"""
        title = make_title("Unknown", justwatch_id=None)

        for _ in range(3):
            stats = executor.process_batch([title], now=RUN_AT)
            assert stats == {"checked": 0, "errors": 0, "skipped": 1}

        client.get_title_offers.assert_not_called()
        mock_sleep.assert_not_called()
        assert logs_for(title.id) == []
        assert db.session.get(Title, title.id).last_checked is None

    def test_lookup_error_leaves_title_stale(self, app, executor, client, services, make_title, mock_sleep):
        """A failed lookup counts as an error and doesn't stop the batch"""
        failing = make_title("Failing")
        working = make_title("Working")
        client.get_title_offers.side_effect = [AvailabilityLookupError("HTTP 500"), []]

        stats = executor.process_batch([failing, working], now=RUN_AT)

        assert stats == {"checked": 1, "errors": 1, "skipped": 0}
        assert db.session.get(Title, failing.id).last_checked is None
        assert logs_for(failing.id) == []
        assert db.session.get(Title, working.id).last_checked == RUN_AT
        assert mock_sleep.call_args_list == [call(0.5), call(0.5)]

    def test_rate_limit_backs_off(self, app, executor, client, services, make_title, mock_sleep, caplog):
        """A 429 sleeps the longer backoff before the next title"""
        first = make_title("First")
        second = make_title("Second")
        client.get_title_offers.side_effect = [RateLimitError("429", status_code=429), []]

        stats = executor.process_batch([first, second], now=RUN_AT)

        assert stats == {"checked": 1, "errors": 1, "skipped": 0}
        assert mock_sleep.call_args_list == [call(5.0), call(0.5)]
        assert "rate limited" in caplog.text.lower()
        assert db.session.get(Title, first.id).last_checked is None

    def test_unexpected_lookup_exception_counts_as_error(self, app, executor, client, services, make_title):
        title = make_title("Broken")
        client.get_title_offers.side_effect = KeyError("offers")

        stats = executor.process_batch([title], now=RUN_AT)

        assert stats["errors"] == 1
        assert db.session.get(Title, title.id).last_checked is None

    def test_processes_in_given_order(self, app, executor, client, services, make_title):
        titles = [make_title(name) for name in ("C", "A", "B")]

        executor.process_batch(titles, now=RUN_AT)

        looked_up = [c.args[0].name for c in client.get_title_offers.call_args_list]
        assert looked_up == ["C", "A", "B"]

    def test_progress_is_durable_when_run_stops(self, app, executor, services, make_title, mock_sleep):
        """Stopping after title 2 of 4 keeps titles 1-2 and leaves 3-4 untouched"""
        titles = [make_title(f"Title {i}") for i in range(1, 5)]
        mock_sleep.side_effect = [None, SystemExit("stopped")]

        with pytest.raises(SystemExit):
            executor.process_batch(titles, now=RUN_AT)

        db.session.expire_all()
        for t in titles[:2]:
            assert db.session.get(Title, t.id).last_checked == RUN_AT
            assert len(logs_for(t.id)) == len(services)
        for t in titles[2:]:
            assert db.session.get(Title, t.id).last_checked is None
            assert logs_for(t.id) == []

    def test_persistence_failure_propagates(self, app, executor, services, make_title):
        title = make_title("Inception")

        with patch("services.check_executor.db.session.commit", side_effect=OperationalError("INSERT", {}, None)):
            with pytest.raises(OperationalError):
                executor.process_batch([title], now=RUN_AT)

        db.session.expire_all()
        assert db.session.get(Title, title.id).last_checked is None
        assert logs_for(title.id) == []

    def test_aware_run_timestamp_stored_as_utc(self, app, executor, services, make_title):
        from datetime import timezone

        title = make_title("Inception")
        aware = datetime(2025, 6, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

        executor.process_batch([title], now=aware)

        assert db.session.get(Title, title.id).last_checked == datetime(2025, 6, 1, 12, 0)
