#!/usr/bin/env python3
"""
Dashboard Orchestrator - Main entry point for a dashboard load

This orchestrator manages a complete load:
1. Concurrent extraction of revenue, productivity and time records
2. Column inference and aggregation into chart series
3. Output-contract validation
4. Load reporting

Fetch failures are surfaced to the caller; choosing between an error
banner, a retry, re-authentication or sample data is the caller's job.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from .extractor import RecordExtractor
from .models import DashboardData, DateRange, RawRecord
from .sample_data import get_sample_data
from .schema import SchemaInferenceEngine
from .transformer import DashboardTransformer, as_date
from ..exceptions import AuthExpiredError, ConfigurationError, SourceUnavailableError
from ..utils.config_manager import ConfigManager
from ..utils.logger import mask_token, setup_logging
from ..validators.dashboard_validator import DashboardValidator

PIPELINE_VERSION = "1.0.0"


class DashboardAssembler:
    """
    Assembles DashboardData from the practice-management API.

    Coordinates extraction, inference and aggregation for the four
    dashboard charts.
    """

    def __init__(self,
                 access_token: Optional[str] = None,
                 config_path: Optional[str] = None,
                 config: Optional[ConfigManager] = None,
                 client: Optional[httpx.AsyncClient] = None,
                 log_level: Optional[str] = None):
        """
        Initialize the dashboard assembler.

        Args:
            access_token: OAuth2 bearer token for the upstream API
            config_path: Path to a YAML configuration file
            config: Ready ConfigManager (takes precedence over config_path)
            client: Pre-configured HTTP client; one is built per load when omitted
            log_level: When given, configures logging at this level

        Raises:
            ConfigurationError: The configuration fails validation
        """
        if log_level:
            setup_logging(log_level)
        self.logger = logging.getLogger(__name__)

        self.config = config or ConfigManager(config_path)
        self._check_config()
        self.access_token = access_token
        self._client = client

        self.inference = SchemaInferenceEngine(self.config)
        self.transformer = DashboardTransformer(self.config, self.inference)
        self.validator = DashboardValidator(self.config)

        self.load_stats: Dict[str, Any] = {}
        self.last_report: Optional[Dict[str, Any]] = None

        self.logger.debug(f"Dashboard assembler initialized (token {mask_token(access_token)})")

    async def get_dashboard_data(self, now: Optional[Union[date, datetime]] = None) -> DashboardData:
        """
        Fetch, aggregate and validate a fresh dashboard.

        Raises:
            AuthExpiredError: Upstream rejected the token (HTTP 401)
            SourceUnavailableError: A record source could not be fetched
        """
        started = datetime.now()
        today = as_date(now or started)
        year_range = DateRange(date(today.year, 1, 1), today)
        month_range = DateRange(today.replace(day=1), today)

        self.logger.info("🚀 Loading dashboard data")

        owns_client = self._client is None
        client = self._client or self._build_client()
        try:
            extractor = RecordExtractor(self.config, client)
            revenue_rows, productivity_rows, time_rows = await self._fetch_all(
                extractor, year_range, month_range)
        except Exception as e:
            self.logger.error(f"❌ Dashboard load failed: {e}")
            raise
        finally:
            if owns_client:
                await client.aclose()

        dashboard = self.assemble(revenue_rows, productivity_rows, time_rows, today)
        validation = self.validator.validate_dashboard(dashboard, today)

        if dashboard.is_all_zero() and self.config.get('zero_data_policy', 'show') == 'sample':
            self.logger.warning("⚠️ Every figure is zero; substituting sample data")
            dashboard = self.get_sample_data(today)

        self.load_stats = {
            'revenue_records': len(revenue_rows),
            'productivity_records': len(productivity_rows),
            'time_records': len(time_rows),
            'attorneys_found': len(dashboard.attorney_billable_hours),
        }
        self.last_report = self._generate_load_report(started, validation)

        self.logger.info(f"🎉 Dashboard loaded in {datetime.now() - started}")
        return dashboard

    def assemble(self,
                 revenue_rows: Sequence[RawRecord],
                 productivity_rows: Sequence[RawRecord],
                 time_rows: Sequence[RawRecord],
                 now: Union[date, datetime]) -> DashboardData:
        """
        Aggregate already-fetched record sets into a dashboard.

        Attorney hours come from productivity rows, or from time rows
        limited to the current month. YTD time prefers time rows.
        """
        today = as_date(now)
        month_range = DateRange(today.replace(day=1), today)

        revenue = self.transformer.aggregate_revenue(revenue_rows, today)

        if productivity_rows:
            attorney_hours = self.transformer.aggregate_hours(productivity_rows)
        else:
            attorney_hours = self.transformer.aggregate_hours(time_rows, window=month_range)

        ytd_time = self.transformer.aggregate_ytd_time(time_rows or productivity_rows, today)

        return DashboardData(
            monthly_deposits=revenue.monthly_deposits,
            attorney_billable_hours=tuple(attorney_hours),
            weekly_revenue=revenue.weekly_revenue,
            ytd_time=tuple(ytd_time),
            ytd_revenue=revenue.ytd_revenue,
        )

    def get_sample_data(self, now: Optional[Union[date, datetime]] = None) -> DashboardData:
        """Deterministic placeholder dashboard."""
        return get_sample_data(now)

    async def _fetch_all(self, extractor: RecordExtractor, year_range: DateRange,
                         month_range: DateRange) -> List[List[RawRecord]]:
        """Fetch all record sets concurrently; any failure fails the load."""
        kinds = [('revenue', year_range), ('productivity', month_range), ('time', year_range)]
        budget = float(self.config.get('api.fetch_budget_seconds', 120))

        try:
            results = await asyncio.wait_for(
                asyncio.gather(*(extractor.fetch_records(kind, window) for kind, window in kinds),
                               return_exceptions=True),
                timeout=budget,
            )
        except asyncio.TimeoutError as e:
            raise SourceUnavailableError(
                'dashboard data', [kind for kind, _ in kinds],
                reason=f"fetch budget of {budget:g}s exceeded") from e

        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            auth_failure = next((f for f in failures if isinstance(f, AuthExpiredError)), None)
            raise auth_failure or failures[0]

        return list(results)

    def _check_config(self):
        validation = self.config.validate()
        for warning in validation['warnings']:
            self.logger.warning(f"⚠️ {warning}")
        if not validation['is_valid']:
            for issue in validation['issues']:
                self.logger.error(f"❌ {issue}")
            raise ConfigurationError(validation['issues'])

    def _build_client(self) -> httpx.AsyncClient:
        if not self.access_token:
            raise AuthExpiredError(self.config.get('api.base_url', ''), "Missing access token")

        return httpx.AsyncClient(
            base_url=self.config.get('api.base_url'),
            headers={'Authorization': f"Bearer {self.access_token}"},
            timeout=float(self.config.get('api.timeout_seconds', 30)),
        )

    def _generate_load_report(self, started: datetime, validation: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'pipeline_version': PIPELINE_VERSION,
            'execution_time': str(datetime.now() - started),
            'timestamp': datetime.now().isoformat(),
            'source_mode': self.config.get('source_mode', 'reports'),
            'statistics': dict(self.load_stats),
            'validation_summary': validation,
            'success': validation['is_valid']
        }
