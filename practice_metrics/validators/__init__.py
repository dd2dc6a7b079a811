"""Output validation for assembled dashboards."""

from .dashboard_validator import DashboardValidator

__all__ = ['DashboardValidator']
