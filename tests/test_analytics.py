"""Admin analytics aggregation tests."""

import pytest

from conftest import make_user
from errors import PermissionDeniedError
from models import Category, Report, ReportStatus
from services import AnalyticsService


@pytest.fixture()
def analytics(storage):
    return AnalyticsService(storage)


def _add(storage, owner, status=ReportStatus.PENDING, category_id=None):
    return storage.create_report(Report(
        title="t", description="d", user_id=owner.id, status=status, category_id=category_id,
    ))


def test_empty_stats(analytics, admin):
    stats = analytics.stats(admin)
    assert (stats.pending, stats.in_progress, stats.resolved, stats.total) == (0, 0, 0, 0)


def test_missing_statuses_default_to_zero(analytics, storage, admin, citizen):
    _add(storage, citizen, ReportStatus.RESOLVED)
    _add(storage, citizen, ReportStatus.RESOLVED)

    stats = analytics.stats(admin)
    assert stats.resolved == 2
    assert stats.pending == 0
    assert stats.in_progress == 0
    assert stats.total == 2


@pytest.mark.parametrize("population", [
    [],
    [ReportStatus.PENDING],
    [ReportStatus.PENDING, ReportStatus.IN_PROGRESS, ReportStatus.IN_PROGRESS],
    [ReportStatus.RESOLVED] * 4 + [ReportStatus.PENDING] * 3 + [ReportStatus.IN_PROGRESS],
])
def test_total_is_sum_of_groups(analytics, storage, admin, citizen, population):
    for status in population:
        _add(storage, citizen, status)

    stats = analytics.stats(admin)
    assert stats.total == stats.pending + stats.in_progress + stats.resolved == len(population)


def test_stats_reflect_current_data(analytics, storage, admin, citizen):
    assert analytics.stats(admin).total == 0
    _add(storage, citizen)
    assert analytics.stats(admin).total == 1


def test_reports_by_category(analytics, storage, admin, citizen):
    roads = storage.create_category(Category(name="Roads"))
    lights = storage.create_category(Category(name="Street Lights"))
    storage.create_category(Category(name="Unused"))
    _add(storage, citizen, category_id=roads.id)
    _add(storage, citizen, category_id=roads.id)
    _add(storage, citizen, category_id=lights.id)
    _add(storage, citizen)

    rows = {row.category: row.count for row in analytics.reports_by_category(admin)}
    assert rows == {"Roads": 2, "Street Lights": 1, "Uncategorized": 1}


def test_dangling_category_is_uncategorized(analytics, storage, admin, citizen):
    _add(storage, citizen, category_id="deleted-category")

    rows = analytics.reports_by_category(admin)
    assert [(r.category, r.count) for r in rows] == [("Uncategorized", 1)]


def test_admin_only(analytics, storage):
    staff = make_user(storage, "crew")
    with pytest.raises(PermissionDeniedError):
        analytics.stats(staff)
    with pytest.raises(PermissionDeniedError):
        analytics.reports_by_category(staff)
