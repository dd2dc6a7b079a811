#!/usr/bin/env python3
"""
Dashboard Transformer - Turn classified records into time series

Buckets records by week (starting Sunday) and by calendar month, totals
the current month, and emits fixed-length series with zero-filled gaps:
- weekly revenue: the last 12 weeks ending with the current week
- year-to-date revenue and time: January through the current month
- attorney billable hours: per-name totals, largest first

All currency and hour figures are rounded to 2 decimals.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .models import AttorneyHours, DateRange, FieldRole, MonthPoint, RawRecord, WeekPoint
from .schema import SchemaInferenceEngine
from ..utils.value_normalizer import parse_amount, parse_date, round_value, to_hours


def as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def week_start(value: date) -> date:
    """Sunday on or before the given date."""
    return value - timedelta(days=(value.weekday() + 1) % 7)


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def build_month_keys(start: date, end: date) -> List[str]:
    """Every "YYYY-MM" key from start's month through end's month."""
    keys = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        keys.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return keys


@dataclass(frozen=True)
class RevenueMetrics:
    monthly_deposits: float
    weekly_revenue: Tuple[WeekPoint, ...]
    ytd_revenue: Tuple[MonthPoint, ...]


class DashboardTransformer:
    """
    Aggregation engine for the dashboard series.

    Column roles are resolved through the schema inference engine; when
    inference finds nothing the series are zero-filled rather than
    failing the dashboard.
    """

    def __init__(self, config, inference: Optional[SchemaInferenceEngine] = None):
        """Initialize the dashboard transformer."""
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.inference = inference or SchemaInferenceEngine(config)

        self.weekly_points = int(config.get('weekly_points', 12))
        self.duration_unit = config.get('duration_unit', 'hours')

    def aggregate_revenue(self, records: Sequence[RawRecord],
                          now: Union[date, datetime]) -> RevenueMetrics:
        """
        Aggregate revenue/payment records.

        Args:
            records: Raw revenue records
            now: Reference "today"

        Returns:
            Current-month deposits, weekly series and YTD monthly series
        """
        today = as_date(now)
        start_of_year = date(today.year, 1, 1)
        start_of_month = today.replace(day=1)
        month_keys = build_month_keys(start_of_year, today)

        if not records:
            return RevenueMetrics(0.0, tuple(self.build_weekly_series({}, today)),
                                  self._zero_months(month_keys, 'amount'))

        date_column = self.inference.infer_column(
            records, FieldRole.DATE, self.inference.revenue_date_preferences)
        revenue_columns = self.inference.infer_columns(records, FieldRole.REVENUE_AMOUNT)

        if not date_column or not revenue_columns:
            self.logger.warning(f"⚠️ Revenue columns not found (date={date_column}, amounts={revenue_columns})")
            return RevenueMetrics(0.0, tuple(self.build_weekly_series({}, today)),
                                  self._zero_months(month_keys, 'amount'))

        self.logger.debug(f"Revenue: date='{date_column}', amounts={revenue_columns}")

        frame = self._dated_amounts(records, date_column, revenue_columns)
        if frame.empty:
            return RevenueMetrics(0.0, tuple(self.build_weekly_series({}, today)),
                                  self._zero_months(month_keys, 'amount'))

        weekly_totals = frame.groupby('week')['amount'].sum().to_dict()
        monthly_totals = frame.groupby('month')['amount'].sum().to_dict()

        in_month = frame[(frame['date'] >= pd.Timestamp(start_of_month)) &
                         (frame['date'] <= pd.Timestamp(today))]
        current_month_total = float(in_month['amount'].sum())
        bucket_total = float(monthly_totals.get(month_key(today), 0.0))
        if in_month.empty and bucket_total:
            current_month_total = bucket_total

        ytd_revenue = tuple(
            MonthPoint(key, round_value(float(monthly_totals.get(key, 0.0))), 'amount')
            for key in month_keys
        )

        return RevenueMetrics(
            monthly_deposits=round_value(current_month_total),
            weekly_revenue=tuple(self.build_weekly_series(weekly_totals, today)),
            ytd_revenue=ytd_revenue,
        )

    def aggregate_hours(self, records: Sequence[RawRecord],
                        name_column: Optional[str] = None,
                        hour_column: Optional[str] = None,
                        window: Optional[DateRange] = None) -> List[AttorneyHours]:
        """
        Total hours per attorney, sorted by hours descending.

        Args:
            records: Raw time or productivity records
            name_column: NAME column; inferred when omitted
            hour_column: Hours column; chosen by variance tie-break when omitted
            window: Optional reporting window applied through the DATE column
        """
        if not records:
            return []

        name_column = name_column or self.inference.infer_column(records, FieldRole.NAME)
        if not name_column:
            self.logger.warning("⚠️ No attorney name column found")
            return []

        if window is not None:
            records = self._filter_window(records, window)
            if not records:
                return []

        if hour_column:
            records = self._convert_durations(records, [hour_column])
            totals = self.inference.totals_by_name(records, name_column, hour_column)
        else:
            candidates = self.inference.infer_columns(records, FieldRole.HOURS_AMOUNT)
            if not candidates:
                self.logger.warning("⚠️ No hours column found for attorney totals")
                return []
            records = self._convert_durations(records, candidates)
            hour_column, totals = self.inference.select_hour_column(records, name_column, candidates)

        self.logger.debug(f"Attorney hours: name='{name_column}', hours='{hour_column}'")

        entries = [AttorneyHours(name, round_value(hours)) for name, hours in totals.items()]
        return sorted(entries, key=lambda entry: entry.hours, reverse=True)

    def aggregate_ytd_time(self, records: Sequence[RawRecord],
                           now: Union[date, datetime]) -> List[MonthPoint]:
        """Monthly hours from January through the current month."""
        today = as_date(now)
        month_keys = build_month_keys(date(today.year, 1, 1), today)

        if not records:
            return list(self._zero_months(month_keys, 'hours'))

        date_column = self.inference.infer_column(
            records, FieldRole.DATE, self.inference.time_date_preferences)
        time_columns = self.inference.infer_columns(records, FieldRole.HOURS_AMOUNT)
        if not date_column or not time_columns:
            self.logger.warning(f"⚠️ Time columns not found (date={date_column}, hours={time_columns})")
            return list(self._zero_months(month_keys, 'hours'))

        records = self._convert_durations(records, time_columns)
        frame = self._dated_amounts(records, date_column, time_columns)
        monthly_totals = frame.groupby('month')['amount'].sum().to_dict() if not frame.empty else {}

        return [
            MonthPoint(key, round_value(float(monthly_totals.get(key, 0.0))), 'hours')
            for key in month_keys
        ]

    def build_weekly_series(self, weekly_totals: Dict[str, float],
                            now: Union[date, datetime]) -> List[WeekPoint]:
        """
        Fixed-length weekly series ending with the current week.

        Args:
            weekly_totals: Totals keyed by week-start date "YYYY-MM-DD"
            now: Reference "today"

        Returns:
            Points labelled "M/D", oldest first
        """
        today = as_date(now)
        points = []
        for offset in range(self.weekly_points - 1, -1, -1):
            start = week_start(today - timedelta(days=7 * offset))
            amount = float(weekly_totals.get(start.isoformat(), 0.0))
            points.append(WeekPoint(f"{start.month}/{start.day}", round_value(amount)))
        return points

    def _dated_amounts(self, records: Sequence[RawRecord], date_column: str,
                       value_columns: Sequence[str]) -> pd.DataFrame:
        rows = []
        for record in records:
            parsed = parse_date(record.get(date_column))
            if parsed is None:
                continue
            amount = sum(parse_amount(record.get(column)) for column in value_columns)
            if not amount:
                continue
            rows.append((parsed, amount))

        if not rows:
            return pd.DataFrame(columns=['date', 'amount', 'week', 'month'])

        frame = pd.DataFrame(rows, columns=['date', 'amount'])
        frame['date'] = pd.to_datetime(frame['date'])
        starts = frame['date'] - pd.to_timedelta((frame['date'].dt.dayofweek + 1) % 7, unit='D')
        frame['week'] = starts.dt.strftime('%Y-%m-%d')
        frame['month'] = frame['date'].dt.strftime('%Y-%m')
        return frame

    def _filter_window(self, records: Sequence[RawRecord], window: DateRange) -> List[RawRecord]:
        date_column = self.inference.infer_column(
            records, FieldRole.DATE, self.inference.time_date_preferences)
        if not date_column:
            return list(records)

        kept = []
        for record in records:
            parsed = parse_date(record.get(date_column))
            if parsed is not None and window.contains(parsed):
                kept.append(record)
        return kept

    def _convert_durations(self, records: Sequence[RawRecord],
                           columns: Sequence[str]) -> List[RawRecord]:
        if self.duration_unit == 'hours':
            return list(records)

        duration_columns = [column for column in columns if self.inference.is_duration_column(column)]
        if not duration_columns:
            return list(records)

        converted = []
        for record in records:
            copy = dict(record)
            for column in duration_columns:
                if column in copy:
                    copy[column] = to_hours(parse_amount(copy[column]), self.duration_unit)
            converted.append(copy)
        return converted

    @staticmethod
    def _zero_months(month_keys: Sequence[str], metric: str) -> Tuple[MonthPoint, ...]:
        return tuple(MonthPoint(key, 0.0, metric) for key in month_keys)
