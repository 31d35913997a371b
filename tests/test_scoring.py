from datetime import datetime, timedelta, timezone

import pytest

from scoring import engagement_score, recency_bonus, score_project, to_utc

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_example_score():
    assert engagement_score(likes=5, views=120, featured=True, created_at=NOW, now=NOW) == 62


def test_caps_apply_per_component():
    score = engagement_score(likes=100, views=10_000, featured=False, created_at=NOW - timedelta(days=1000), now=NOW)
    assert score == 60


def test_clamped_to_100():
    assert engagement_score(likes=50, views=500, featured=True, created_at=NOW, now=NOW) == 100


def test_likes_may_be_a_collection():
    assert engagement_score(likes=["a", "b", "c"], created_at=None, now=NOW) == 6


@pytest.mark.parametrize("likes,views", [(None, None), ("many", "lots"), (-5, -100), (float("nan"), 3)])
def test_bad_numbers_count_as_zero(likes, views):
    assert engagement_score(likes=likes, views=views, now=NOW) == 0


def test_recency_decays_weekly():
    assert recency_bonus(NOW - timedelta(days=7), now=NOW) == pytest.approx(19)
    assert recency_bonus(NOW - timedelta(days=140), now=NOW) == 0
    assert recency_bonus(NOW - timedelta(days=400), now=NOW) == 0


def test_future_creation_date_stays_in_range():
    score = engagement_score(likes=30, views=300, featured=True, created_at=NOW + timedelta(days=365), now=NOW)
    assert 0 <= score <= 100


def test_unparseable_date_gets_no_bonus():
    assert engagement_score(likes=1, created_at="not a date", now=NOW) == 2


def test_naive_and_string_dates():
    assert to_utc(datetime(2024, 1, 1)) == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert to_utc("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert to_utc(42) is None


def test_score_project_reads_document():
    doc = {"likes": ["a", "b"], "views": 35, "featured": False, "created_at": NOW.replace(tzinfo=None)}
    assert score_project(doc, now=NOW) == 27
