"""
Tests for staleness selection
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from services.staleness import count_never_checked, is_stale, select_stale, staleness_cutoff

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def title(id, last_checked=None):
    return SimpleNamespace(id=id, name=f"Title {id}", last_checked=last_checked)


class TestSelectStale:
    """Tests for select_stale"""

    def test_never_checked_first_then_oldest(self):
        """Never-checked titles come before stale ones, stale ones oldest first"""
        catalog = [
            title(1, NOW - timedelta(days=10)),
            title(2, None),
            title(3, NOW - timedelta(days=30)),
            title(4, None),
            title(5, NOW - timedelta(days=8)),
        ]

        selected = select_stale(catalog, limit=10, staleness_days=7, now=NOW)

        assert [t.id for t in selected] == [2, 4, 3, 1, 5]

    def test_ordering_holds_for_any_input_order(self):
        """Result order doesn't depend on catalog order"""
        catalog = [title(i, None if i % 3 == 0 else NOW - timedelta(days=7 + i)) for i in range(1, 13)]

        forward = select_stale(catalog, 20, 7, NOW)
        backward = select_stale(list(reversed(catalog)), 20, 7, NOW)

        assert [t.id for t in forward] == [t.id for t in backward]
        seen_checked = False
        for t in forward:
            if t.last_checked is not None:
                seen_checked = True
            else:
                assert not seen_checked, "never-checked title after a checked one"
        checked = [t.last_checked for t in forward if t.last_checked is not None]
        assert checked == sorted(checked)

    def test_recently_checked_not_selected(self):
        """A title checked one day inside the window is not due"""
        catalog = [title(1, NOW - timedelta(days=6))]
        assert select_stale(catalog, 10, 7, NOW) == []

    def test_stale_title_selected(self):
        """A title checked one day outside the window is due"""
        catalog = [title(1, NOW - timedelta(days=8))]
        assert [t.id for t in select_stale(catalog, 10, 7, NOW)] == [1]

    def test_limit_truncates_with_lowest_ids_on_ties(self):
        """Three never-checked titles with limit 2 gives the two lowest ids"""
        catalog = [title(3), title(1), title(2)]

        selected = select_stale(catalog, limit=2, staleness_days=7, now=NOW)

        assert [t.id for t in selected] == [1, 2]

    def test_fewer_than_limit_returns_all(self):
        catalog = [title(1), title(2, NOW - timedelta(days=1))]
        assert [t.id for t in select_stale(catalog, 50, 7, NOW)] == [1]

    def test_zero_limit_returns_empty(self):
        assert select_stale([title(1)], 0, 7, NOW) == []

    def test_empty_catalog(self):
        assert select_stale([], 5, 7, NOW) == []

    def test_naive_timestamps_treated_as_utc(self):
        """SQLite returns naive datetimes; they compare as UTC"""
        naive_old = (NOW - timedelta(days=9)).replace(tzinfo=None)
        naive_recent = (NOW - timedelta(days=2)).replace(tzinfo=None)
        catalog = [title(1, naive_recent), title(2, naive_old)]

        assert [t.id for t in select_stale(catalog, 5, 7, NOW)] == [2]

    def test_equal_timestamps_break_on_id(self):
        stamp = NOW - timedelta(days=20)
        catalog = [title(9, stamp), title(4, stamp), title(6, stamp)]
        assert [t.id for t in select_stale(catalog, 5, 7, NOW)] == [4, 6, 9]


class TestHelpers:
    """Tests for cutoff and counting helpers"""

    def test_staleness_cutoff(self):
        assert staleness_cutoff(7, NOW) == NOW - timedelta(days=7)

    def test_is_stale_boundary(self):
        """Exactly at the cutoff is not stale (strictly older only)"""
        cutoff = staleness_cutoff(7, NOW)
        assert is_stale(title(1, cutoff), cutoff) is False
        assert is_stale(title(1, cutoff - timedelta(seconds=1)), cutoff) is True
        assert is_stale(title(1, None), cutoff) is True

    def test_count_never_checked(self):
        catalog = [title(1), title(2, NOW), title(3)]
        assert count_never_checked(catalog) == 2
