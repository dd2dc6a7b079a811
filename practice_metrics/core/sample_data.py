"""Deterministic placeholder dashboard for offline and demo use."""

from datetime import date, datetime, timedelta
from typing import Optional, Union

from .models import AttorneyHours, DashboardData, MonthPoint, WeekPoint
from .transformer import as_date, build_month_keys, week_start

SAMPLE_ATTORNEYS = (
    ('Sarah Johnson', 168),
    ('Michael Chen', 152),
    ('Emily Rodriguez', 145),
    ('David Kim', 138),
    ('Jennifer Taylor', 125),
    ('Robert Martinez', 118),
    ('Lisa Anderson', 105),
)

SAMPLE_WEEKLY_REVENUE = (85000, 92000, 78000, 95000, 88000, 91000,
                         105000, 98000, 102000, 96000, 89000, 94000)

SAMPLE_MONTHLY_HOURS = (1250, 1180, 1320, 1290, 1405, 1380,
                        1295, 1350, 1420, 1155, 1310, 1240)

SAMPLE_MONTHLY_REVENUE = (385000, 360000, 425000, 410000, 455000, 440000,
                          395000, 420000, 465000, 425000, 430000, 450000)

SAMPLE_MONTHLY_DEPOSITS = 425000


def get_sample_data(now: Optional[Union[date, datetime]] = None) -> DashboardData:
    """
    Build the sample dashboard.

    Figures are fixed; period labels follow the reference date so the
    sample has the same shape as live data (12 weeks ending this week,
    January through this month).
    """
    today = as_date(now or date.today())

    weekly = []
    for offset, amount in zip(range(11, -1, -1), SAMPLE_WEEKLY_REVENUE):
        start = week_start(today - timedelta(days=7 * offset))
        weekly.append(WeekPoint(f"{start.month}/{start.day}", float(amount)))

    month_keys = build_month_keys(date(today.year, 1, 1), today)

    return DashboardData(
        monthly_deposits=float(SAMPLE_MONTHLY_DEPOSITS),
        attorney_billable_hours=tuple(AttorneyHours(name, float(hours)) for name, hours in SAMPLE_ATTORNEYS),
        weekly_revenue=tuple(weekly),
        ytd_time=tuple(MonthPoint(key, float(SAMPLE_MONTHLY_HOURS[i]), 'hours')
                       for i, key in enumerate(month_keys)),
        ytd_revenue=tuple(MonthPoint(key, float(SAMPLE_MONTHLY_REVENUE[i]), 'amount')
                          for i, key in enumerate(month_keys)),
    )
