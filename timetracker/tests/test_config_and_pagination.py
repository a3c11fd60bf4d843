from datetime import date, datetime, timezone

import pytest

from timetracker.core.config import Settings, load_settings
from timetracker.core.pagination import Page, contains_pattern, page_request
from timetracker.core.timeutil import as_utc, day_bounds, isoformat_utc, minutes_between


def test_short_jwt_secret_is_rejected():
    with pytest.raises(ValueError, match="at least 32 characters"):
        Settings(jwt_secret="too-short")


def test_load_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "x" * 40)
    monkeypatch.setenv("MAX_LOGIN_ATTEMPTS", "3")
    monkeypatch.setenv("PAGINATION_MAX_LIMIT", "not-a-number")
    monkeypatch.setenv("ENV", "production")

    settings = load_settings()

    assert settings.max_login_attempts == 3
    assert settings.pagination_max_limit == 100
    assert settings.is_production


def test_page_request_clamps(settings):
    assert page_request(settings, None, None).limit == settings.pagination_default_limit
    assert page_request(settings, 0, 1000).limit == settings.pagination_max_limit
    assert page_request(settings, -3, 5).page == 1
    assert page_request(settings, 3, 10).offset == 20


def test_page_flags():
    empty = Page(current_page=1, limit=20, total_items=0)
    assert empty.total_pages == 0
    assert not empty.has_next and not empty.has_prev

    last = Page(current_page=3, limit=10, total_items=21)
    assert last.total_pages == 3
    assert not last.has_next and last.has_prev


def test_day_bounds_in_zone():
    start, end = day_bounds(date(2026, 7, 1), "America/New_York")

    assert start == datetime(2026, 7, 1, 4, 0, tzinfo=timezone.utc)
    assert end == datetime(2026, 7, 2, 4, 0, tzinfo=timezone.utc)


def test_naive_values_are_taken_as_utc():
    naive = datetime(2026, 3, 2, 9, 0)

    assert as_utc(naive) == datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    assert minutes_between(naive, datetime(2026, 3, 2, 10, 0, 30, tzinfo=timezone.utc)) == 60


def test_contains_pattern_escapes_wildcards():
    assert contains_pattern("  acme ") == "%acme%"
    assert contains_pattern("50%_off") == r"%50\%\_off%"
    assert contains_pattern("a\\b") == r"%a\\b%"


def test_isoformat_utc_uses_z_suffix():
    assert isoformat_utc(datetime(2026, 3, 2, 9, 0)) == "2026-03-02T09:00:00Z"
    assert isoformat_utc(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)) == "2026-03-02T09:00:00Z"
