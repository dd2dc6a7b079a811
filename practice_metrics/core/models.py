"""Typed records produced by the dashboard pipeline."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Tuple

# One upstream row/object; keys vary by endpoint and report configuration.
RawRecord = Dict[str, Any]


class FieldRole(Enum):
    """Semantic meaning assigned to an inferred column."""
    NAME = "name"
    DATE = "date"
    HOURS_AMOUNT = "hours_amount"
    REVENUE_AMOUNT = "revenue_amount"


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


@dataclass(frozen=True)
class WeekPoint:
    week: str
    amount: float

    def to_dict(self) -> Dict[str, Any]:
        return {'week': self.week, 'amount': self.amount}


@dataclass(frozen=True)
class MonthPoint:
    """Monthly value keyed "YYYY-MM"; `metric` is 'hours' or 'amount'."""
    date: str
    value: float
    metric: str = 'amount'

    def to_dict(self) -> Dict[str, Any]:
        return {'date': self.date, self.metric: self.value}


@dataclass(frozen=True)
class AttorneyHours:
    name: str
    hours: float

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'hours': self.hours}


@dataclass(frozen=True)
class DashboardData:
    """
    Final output contract of a dashboard load.

    Series are tuples so an instance cannot be mutated once returned.
    `to_dict` renders the camelCase JSON shape the UI consumes.
    """
    monthly_deposits: float
    attorney_billable_hours: Tuple[AttorneyHours, ...] = field(default_factory=tuple)
    weekly_revenue: Tuple[WeekPoint, ...] = field(default_factory=tuple)
    ytd_time: Tuple[MonthPoint, ...] = field(default_factory=tuple)
    ytd_revenue: Tuple[MonthPoint, ...] = field(default_factory=tuple)

    def is_all_zero(self) -> bool:
        values: List[float] = [self.monthly_deposits]
        values.extend(entry.hours for entry in self.attorney_billable_hours)
        values.extend(point.amount for point in self.weekly_revenue)
        values.extend(point.value for point in self.ytd_time)
        values.extend(point.value for point in self.ytd_revenue)
        return all(abs(value) < 0.005 for value in values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'monthlyDeposits': self.monthly_deposits,
            'attorneyBillableHours': [entry.to_dict() for entry in self.attorney_billable_hours],
            'weeklyRevenue': [point.to_dict() for point in self.weekly_revenue],
            'ytdTime': [point.to_dict() for point in self.ytd_time],
            'ytdRevenue': [point.to_dict() for point in self.ytd_revenue],
        }
