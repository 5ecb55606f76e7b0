"""Tests for growth analytics."""

import pytest

from ministry_scanner.analytics.growth import GrowthMetrics
from ministry_scanner.database.models import Member, Minister


def backdate(db_manager, table, first_name, days):
    db_manager.execute_update(
        f"UPDATE {table} SET created_at = datetime('now', ?) WHERE first_name = ?",
        (f"-{days} days", first_name),
    )


@pytest.fixture
def populated(db_manager):
    members = Member(db_manager)
    ministers = Minister(db_manager)
    members.create("Today", "One")
    members.create("Today", "Two")
    members.create("Recent", "Member")
    members.create("Ancient", "Member")
    ministers.create("Recent", "Minister")
    backdate(db_manager, "members", "Recent", 3)
    backdate(db_manager, "members", "Ancient", 60)
    backdate(db_manager, "ministers", "Recent", 1)
    return db_manager


def test_daily_growth_zero_fills_and_accumulates(populated) -> None:
    growth = GrowthMetrics(populated).daily_growth(days=7)

    assert len(growth) == 7
    assert list(growth.columns) == [
        "date", "date_formatted", "members", "members_cumulative", "ministers", "ministers_cumulative",
    ]
    assert growth["members"].tolist() == [0, 0, 0, 1, 0, 0, 2]
    assert growth["members_cumulative"].tolist() == [0, 0, 0, 1, 1, 1, 3]
    assert growth["ministers"].tolist() == [0, 0, 0, 0, 0, 1, 0]
    assert growth["date"].is_monotonic_increasing


def test_daily_growth_single_kind(populated) -> None:
    growth = GrowthMetrics(populated).daily_growth(days=5, kind="ministers")

    assert "members" not in growth.columns
    assert growth["ministers_cumulative"].iloc[-1] == 1


def test_daily_growth_rejects_unknown_kind(populated) -> None:
    with pytest.raises(ValueError):
        GrowthMetrics(populated).daily_growth(kind="visitors")


def test_empty_database_is_all_zero(db_manager) -> None:
    growth = GrowthMetrics(db_manager).daily_growth(days=30)

    assert len(growth) == 30
    assert growth["members"].sum() == 0
    assert growth["ministers_cumulative"].iloc[-1] == 0


def test_forecast_extends_running_totals(populated) -> None:
    metrics = GrowthMetrics(populated)
    growth = metrics.daily_growth(days=7)

    forecast = metrics.forecast(growth, days=3)

    assert len(forecast) == 3
    assert forecast["is_forecast"].all()
    assert forecast["members"].tolist() == [0, 0, 0]
    assert forecast["members_cumulative"].tolist() == [3, 3, 3]
    assert forecast["date"].iloc[0] > growth["date"].iloc[-1]


def test_summary_counts_everything(populated) -> None:
    summary = GrowthMetrics(populated).summary(days=30)

    assert summary["total_members"] == 4
    assert summary["total_ministers"] == 1
    assert summary["period"] == "Last 30 days"
