#!/usr/bin/env python3
"""
Dashboard Validator - Check an assembled dashboard against its output contract

- Weekly revenue: exactly 12 points labelled "M/D"
- YTD series: one point per month, January through the reference month,
  ascending, no duplicates
- Attorney hours: sorted descending, no blank names
- Warns when every figure is zero (usually an upstream schema change)
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Sequence, Union

from ..core.models import DashboardData, MonthPoint
from ..core.transformer import as_date, build_month_keys

WEEK_LABEL_RE = re.compile(r"^(1[0-2]|[1-9])/([1-9]|[12]\d|3[01])$")


class DashboardValidator:
    """
    Validates dashboard output before it is handed to callers.

    Problems are reported, never raised; the caller decides what to do
    with an invalid dashboard.
    """

    def __init__(self, config):
        """Initialize the dashboard validator."""
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.weekly_points = int(config.get('weekly_points', 12))

    def validate_dashboard(self, dashboard: DashboardData,
                           now: Union[date, datetime]) -> Dict[str, Any]:
        """
        Validate a dashboard.

        Args:
            dashboard: Assembled dashboard
            now: Reference date used to assemble it

        Returns:
            Dict with is_valid, issues and warnings
        """
        today = as_date(now)
        issues: List[str] = []
        warnings: List[str] = []

        weekly = dashboard.weekly_revenue
        if len(weekly) != self.weekly_points:
            issues.append(f"Weekly revenue has {len(weekly)} points, expected {self.weekly_points}")
        bad_labels = [point.week for point in weekly if not WEEK_LABEL_RE.match(point.week)]
        if bad_labels:
            issues.append(f"Invalid week labels: {bad_labels}")

        expected_months = build_month_keys(date(today.year, 1, 1), today)
        issues.extend(self._check_months('ytdTime', dashboard.ytd_time, expected_months))
        issues.extend(self._check_months('ytdRevenue', dashboard.ytd_revenue, expected_months))

        hours = [entry.hours for entry in dashboard.attorney_billable_hours]
        if hours != sorted(hours, reverse=True):
            issues.append("Attorney hours are not sorted descending")
        if any(not entry.name for entry in dashboard.attorney_billable_hours):
            issues.append("Attorney hours contain a blank name")

        if dashboard.is_all_zero():
            warnings.append("Every dashboard figure is zero; upstream columns may not have been recognised")
        elif not dashboard.attorney_billable_hours:
            warnings.append("No attorney billable hours found")

        for issue in issues:
            self.logger.warning(f"⚠️ {issue}")
        for warning in warnings:
            self.logger.warning(f"⚠️ {warning}")

        return {
            'is_valid': len(issues) == 0,
            'issues': issues,
            'warnings': warnings
        }

    @staticmethod
    def _check_months(label: str, points: Sequence[MonthPoint], expected: List[str]) -> List[str]:
        keys = [point.date for point in points]
        if keys == expected:
            return []

        problems = []
        if len(set(keys)) != len(keys):
            problems.append(f"{label} has duplicate months")
        if keys != sorted(keys):
            problems.append(f"{label} months are not ascending")
        missing = sorted(set(expected) - set(keys))
        if missing:
            problems.append(f"{label} is missing months {missing}")
        extra = sorted(set(keys) - set(expected))
        if extra:
            problems.append(f"{label} has unexpected months {extra}")
        return problems or [f"{label} months do not match {expected[0]}..{expected[-1]}"]
