"""
Practice Metrics - Analytics dashboard data for a legal practice-management API

Fetches billing, time and payment records, reconciles their inconsistent
report and collection schemas, and aggregates them into the series behind
the dashboard charts (monthly deposits, attorney billable hours, weekly
revenue, year-to-date time and revenue).
"""

__version__ = "1.0.0"

from .core.orchestrator import DashboardAssembler
from .core.models import DashboardData
from .core.sample_data import get_sample_data
from .exceptions import AuthExpiredError, ConfigurationError, DashboardError, SourceUnavailableError

__all__ = [
    'DashboardAssembler',
    'DashboardData',
    'get_sample_data',
    'AuthExpiredError',
    'ConfigurationError',
    'DashboardError',
    'SourceUnavailableError'
]
