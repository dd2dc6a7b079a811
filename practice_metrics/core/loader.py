#!/usr/bin/env python3
"""
Dashboard Loader - Save an assembled dashboard to disk

Writes the JSON output contract, a timestamped backup, one CSV per chart
series and an optional load report.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .models import DashboardData


class DashboardLoader:
    """
    Output writer for dashboard loads.

    Handles the JSON contract file, backups, per-series CSV exports
    and the load report.
    """

    def __init__(self, config, output_dir: Path):
        """Initialize the dashboard loader."""
        self.config = config
        self.output_dir = Path(output_dir)
        self.logger = logging.getLogger(__name__)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.save_metadata = config.get('save_metadata', True)

        self.logger.info(f"💾 Dashboard loader initialized: {self.output_dir}")

    def save_dashboard(self, dashboard: DashboardData,
                       report: Optional[Dict[str, Any]] = None) -> List[str]:
        """
        Save a dashboard and its series exports.

        Args:
            dashboard: Assembled dashboard
            report: Optional load report to save alongside

        Returns:
            List of saved file paths
        """
        saved_files = []
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        payload = dashboard.to_dict()

        main_path = self.output_dir / "dashboard_data.json"
        self._write_json(main_path, payload)
        saved_files.append(str(main_path))
        self.logger.info(f"📄 Saved dashboard: {main_path}")

        backup_path = self.output_dir / f"dashboard_data_{timestamp}.json"
        self._write_json(backup_path, payload)
        saved_files.append(str(backup_path))

        saved_files.extend(self._save_series(dashboard))

        if report is not None and self.save_metadata:
            report_path = self.output_dir / f"load_report_{timestamp}.json"
            self._write_json(report_path, report)
            saved_files.append(str(report_path))
            self.logger.info(f"📋 Saved load report: {report_path}")

        self.logger.info(f"✅ Dashboard saved: {len(saved_files)} files created")
        return saved_files

    def _save_series(self, dashboard: DashboardData) -> List[str]:
        saved = []

        weekly = pd.DataFrame([point.to_dict() for point in dashboard.weekly_revenue],
                              columns=['week', 'amount'])
        weekly_path = self.output_dir / "weekly_revenue.csv"
        weekly.to_csv(weekly_path, index=False)
        saved.append(str(weekly_path))

        hours = pd.DataFrame([(point.date, point.value) for point in dashboard.ytd_time],
                             columns=['month', 'hours'])
        revenue = pd.DataFrame([(point.date, point.value) for point in dashboard.ytd_revenue],
                               columns=['month', 'amount'])
        ytd = hours.merge(revenue, on='month', how='outer').sort_values('month').fillna(0.0)
        ytd_path = self.output_dir / "ytd_series.csv"
        ytd.to_csv(ytd_path, index=False)
        saved.append(str(ytd_path))

        attorneys = pd.DataFrame([entry.to_dict() for entry in dashboard.attorney_billable_hours],
                                 columns=['name', 'hours'])
        attorneys_path = self.output_dir / "attorney_hours.csv"
        attorneys.to_csv(attorneys_path, index=False)
        saved.append(str(attorneys_path))

        self.logger.debug(f"Saved {len(saved)} series exports")
        return saved

    @staticmethod
    def _write_json(path: Path, payload: Dict[str, Any]):
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, default=str)
