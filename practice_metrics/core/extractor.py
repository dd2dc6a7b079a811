#!/usr/bin/env python3
"""
Record Extractor - Fetch raw records from the practice-management API

Two kinds of upstream sources are supported:
- CSV report exports addressed as /reports/{category}/{key}.csv, whose
  exact path and date-range parameter names vary by deployment. Candidate
  combinations are tried in order until one succeeds.
- Paginated JSON collections (time entries, payments, allocations,
  activities) read page by page until the data runs out.

Responses are sniffed: JSON bodies are unwrapped through a chain of known
envelope shapes, anything else is parsed as CSV.
"""

import asyncio
import io
import json
import logging
import math
from datetime import datetime, time
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import httpx
import pandas as pd

from .models import DateRange, RawRecord
from ..exceptions import AuthExpiredError, SourceUnavailableError, UpstreamHTTPError
from ..utils.value_normalizer import parse_amount


KIND_ALIASES = {
    'time': 'time',
    'time_entries': 'time',
    'revenue': 'revenue',
    'revenue-payments': 'revenue',
    'payments': 'revenue',
    'productivity': 'productivity',
}


def parse_csv(text: str) -> List[RawRecord]:
    """
    Parse a CSV report export into one record per data row.

    Handles quoted fields with embedded commas, newlines and doubled
    quotes, and strips a byte-order mark from the first header. Header
    names and cell values are trimmed; blank rows are dropped. Columns
    with a blank header are ignored, and a repeated header keeps the
    value of its last column.
    """
    if not text or not text.strip():
        return []

    # The header row is read as data so pandas does not rename duplicates
    try:
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            index_col=False,
            on_bad_lines='skip',
        )
    except pd.errors.EmptyDataError:
        return []

    rows = df.fillna('').astype(str).apply(lambda column: column.str.strip()).values.tolist()
    if len(rows) < 2:
        return []

    headers = [str(cell).strip() for cell in rows[0]]
    headers[0] = headers[0].lstrip('\ufeff').strip()

    records = []
    for row in rows[1:]:
        record = {header: value for header, value in zip(headers, row) if header}
        if any(record.values()):
            records.append(record)
    return records


def looks_like_json(body: str, content_type: str = '') -> bool:
    """Decide whether a response body should be decoded as JSON."""
    if 'json' in (content_type or '').lower():
        return True
    stripped = (body or '').lstrip('\ufeff').lstrip()
    return stripped.startswith('{') or stripped.startswith('[')


def _data_list(payload: Any) -> Optional[List[Any]]:
    if isinstance(payload, dict) and isinstance(payload.get('data'), list):
        return payload['data']
    return None


def _nested_data_list(payload: Any) -> Optional[List[Any]]:
    if isinstance(payload, dict) and isinstance(payload.get('data'), dict):
        return _data_list(payload['data'])
    return None


def _bare_list(payload: Any) -> Optional[List[Any]]:
    return payload if isinstance(payload, list) else None


def _results_list(payload: Any) -> Optional[List[Any]]:
    if isinstance(payload, dict) and isinstance(payload.get('results'), list):
        return payload['results']
    return None


def _items_list(payload: Any) -> Optional[List[Any]]:
    if isinstance(payload, dict) and isinstance(payload.get('items'), list):
        return payload['items']
    return None


def _odata_list(payload: Any) -> Optional[List[Any]]:
    if isinstance(payload, dict) and isinstance(payload.get('d'), dict):
        return _results_list(payload['d'])
    return None


ENVELOPE_EXTRACTORS: Sequence[Callable[[Any], Optional[List[Any]]]] = (
    _data_list,
    _nested_data_list,
    _bare_list,
    _results_list,
    _items_list,
    _odata_list,
)


def extract_items(payload: Any) -> List[RawRecord]:
    """Unwrap a JSON response using the first envelope shape that fits."""
    for extractor in ENVELOPE_EXTRACTORS:
        items = extractor(payload)
        if items is not None:
            return [item for item in items if isinstance(item, dict)]
    return []


def extract_total_pages(payload: Any, per_page: int) -> Optional[int]:
    """Read a total-page count from pagination metadata, if any is present."""
    if not isinstance(payload, dict):
        return None

    meta = payload.get('meta') if isinstance(payload.get('meta'), dict) else {}
    paging = meta.get('paging') if isinstance(meta.get('paging'), dict) else {}

    for source in (paging, meta, payload):
        for key in ('total_pages', 'pages', 'page_count'):
            value = source.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return int(value)

    for source in (paging, meta):
        for key in ('records', 'total', 'total_records', 'count'):
            value = source.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool) and per_page > 0:
                return int(math.ceil(value / per_page))

    return None


def normalize_payment(item: RawRecord, source: str = 'payments') -> RawRecord:
    """
    Reduce a payment-like collection item to {id, date, total, type}.

    Allocations carry their date in applied_at and their value in amount;
    payments and activities prefer date and total.
    """
    def first_present(*keys):
        for key in keys:
            value = item.get(key)
            if value not in (None, ''):
                return value
        return None

    def first_number(*keys):
        for key in keys:
            value = item.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(value)
            if isinstance(value, str) and value.strip():
                return parse_amount(value)
        cents = item.get('amount_cents')
        if isinstance(cents, (int, float)) and not isinstance(cents, bool):
            return cents / 100
        return 0.0

    if source == 'allocations':
        date_value = first_present('applied_at', 'date', 'created_at')
        total = first_number('amount', 'total')
        kind = 'Payment'
    elif source == 'activities':
        date_value = first_present('date', 'created_at')
        total = first_number('total')
        kind = item.get('type') or 'Payment'
    else:
        date_value = first_present('date', 'applied_at', 'received_at', 'created_at')
        total = first_number('total', 'amount')
        kind = 'Payment'

    return {'id': item.get('id'), 'date': date_value, 'total': total, 'type': kind}


def _dedupe(variants: List[Dict[str, str]]) -> List[Dict[str, str]]:
    seen = set()
    unique = []
    for variant in variants:
        key = tuple(sorted(variant.items()))
        if key in seen:
            continue
        seen.add(key)
        unique.append(variant)
    return unique


class RecordExtractor:
    """
    Fetches raw heterogeneous records for one record kind at a time.

    The HTTP client is expected to carry the base URL and bearer
    authorization; the extractor only adds paths, parameters and Accept
    headers.
    """

    def __init__(self, config, client: httpx.AsyncClient):
        """Initialize the record extractor."""
        self.config = config
        self.client = client
        self.logger = logging.getLogger(__name__)

        self.retryable_statuses = set(config.get('api.retryable_statuses', [400, 404, 422]))
        self.max_retries = int(config.get('api.max_retries', 3))
        self.per_page = int(config.get('pagination.per_page', 200))
        self.max_pages = int(config.get('pagination.max_pages', 50))
        self.source_mode = config.get('source_mode', 'reports')

        self.logger.debug(f"📖 Record extractor initialized ({self.source_mode} mode)")

    async def fetch_records(self, kind: str, date_range: DateRange) -> List[RawRecord]:
        """
        Fetch the raw records for a record kind.

        Args:
            kind: 'time', 'revenue' (alias 'revenue-payments') or 'productivity'
            date_range: Inclusive reporting window

        Returns:
            List of raw records with upstream field names
        """
        canonical = KIND_ALIASES.get(kind)
        if canonical is None:
            raise ValueError(f"Unknown record kind: {kind}")

        if self.source_mode == 'collections':
            records = await self._fetch_collection_kind(canonical, date_range)
        else:
            report = self.config.get(f'reports.{canonical}', {})
            response = await self.fetch_report(
                report.get('label', f'{canonical} report'),
                [tuple(path) for path in report.get('paths', [])],
                date_range,
                report.get('extras') or [{}],
            )
            records = self.parse_body(response.text, response.headers.get('content-type', ''))

        self.logger.info(f"📥 {canonical}: {len(records)} records")
        return records

    def parse_body(self, body: str, content_type: str = '') -> List[RawRecord]:
        """Sniff a response body and turn it into records."""
        if looks_like_json(body, content_type):
            try:
                return extract_items(json.loads(body.lstrip('\ufeff')))
            except ValueError:
                self.logger.warning("⚠️ Response looked like JSON but did not decode; trying CSV")
        return parse_csv(body)

    def build_date_param_variants(self, date_range: DateRange) -> List[Dict[str, str]]:
        """One parameter dict per known date-range naming scheme."""
        start = date_range.start.isoformat()
        end = date_range.end.isoformat()
        variants = [
            {start_key: start, end_key: end}
            for start_key, end_key in self.config.get('date_param_variants', [])
        ]
        return _dedupe(variants)

    def combine_param_variants(self, date_variants: List[Dict[str, str]],
                               extras: List[Dict[str, str]]) -> List[Dict[str, str]]:
        """Cross every date variant with every extra parameter set."""
        combinations = []
        for base in date_variants:
            for extra in extras:
                combined = dict(extra or {})
                combined.update(base)
                combinations.append(combined)
        return _dedupe(combinations)

    def iter_report_variants(self, paths: List[Tuple[str, str]],
                             param_variants: List[Dict[str, str]]
                             ) -> Iterator[Tuple[Tuple[str, str], Dict[str, str]]]:
        """Yield (path, params) candidates lazily, paths outermost."""
        for path in paths:
            for params in param_variants:
                yield path, params

    async def fetch_report(self, label: str, paths: List[Tuple[str, str]],
                           date_range: DateRange,
                           extras: Optional[List[Dict[str, str]]] = None) -> httpx.Response:
        """
        Fetch a report export, trying path and parameter variants in order.

        HTTP 400/404/422 moves on to the next variant; 401 raises
        AuthExpiredError; any other failure stops the search.

        Raises:
            SourceUnavailableError: When no variant succeeds
        """
        date_variants = self.build_date_param_variants(date_range)
        param_variants = self.combine_param_variants(date_variants, extras or [{}])
        attempts: List[str] = []

        for (category, key), params in self.iter_report_variants(paths, param_variants):
            attempt = f"{category}/{key}[{','.join(sorted(params))}]"
            attempts.append(attempt)
            self.logger.debug(f"Trying {label}: {attempt}")

            try:
                response = await self._get(f"reports/{category}/{key}.csv", params, 'text/csv')
            except AuthExpiredError:
                raise
            except UpstreamHTTPError as e:
                if e.status in self.retryable_statuses:
                    continue
                self.logger.error(f"❌ {label} failed with HTTP {e.status} at {attempt}")
                raise SourceUnavailableError(label, attempts, e.status, f"HTTP {e.status}") from e
            except httpx.RequestError as e:
                self.logger.error(f"❌ {label} request failed: {e}")
                raise SourceUnavailableError(label, attempts, reason=str(e)) from e

            self.logger.info(f"✅ {label} fetched from {category}/{key}")
            return response

        self.logger.error(f"❌ {label}: all {len(attempts)} variants rejected")
        raise SourceUnavailableError(label, attempts, reason="every variant was rejected")

    async def fetch_collection(self, endpoint: str, params: Optional[Dict[str, Any]] = None,
                               label: Optional[str] = None) -> List[RawRecord]:
        """
        Read a paginated JSON collection.

        Continues while pages come back full or a total-page count says
        more pages remain. Stops at the configured page cap.
        """
        label = label or endpoint
        records: List[RawRecord] = []
        attempts: List[str] = []
        page = 1

        while True:
            if page > self.max_pages:
                self.logger.warning(f"⚠️ {label}: stopped at page cap ({self.max_pages})")
                break

            query = dict(params or {})
            query.update({'page': page, 'per_page': self.per_page})
            attempts.append(f"{endpoint}[page={page}]")

            try:
                response = await self._get(endpoint, query, 'application/json')
                payload = response.json()
            except AuthExpiredError:
                raise
            except UpstreamHTTPError as e:
                raise SourceUnavailableError(label, attempts, e.status, f"HTTP {e.status}") from e
            except httpx.RequestError as e:
                raise SourceUnavailableError(label, attempts, reason=str(e)) from e
            except ValueError as e:
                raise SourceUnavailableError(label, attempts, reason="response was not JSON") from e

            items = extract_items(payload)
            records.extend(items)
            self.logger.debug(f"{label}: page {page} returned {len(items)} items")

            if not items:
                break

            # Page counts can be stale; a full page always asks for the next one
            total_pages = extract_total_pages(payload, self.per_page)
            has_more = len(items) >= self.per_page or (total_pages is not None and page < total_pages)
            if not has_more:
                break
            page += 1

        return records

    async def _fetch_collection_kind(self, kind: str, date_range: DateRange) -> List[RawRecord]:
        since = datetime.combine(date_range.start, time.min).isoformat() + 'Z'

        if kind in ('time', 'productivity'):
            collection = self.config.get('collections.time_entries', {})
            params = dict(collection.get('params') or {})
            params['since'] = since
            return await self.fetch_collection(collection['endpoint'], params, label=f'{kind} entries')

        source = self.config.get('revenue_collection', 'payments')
        collection = self.config.get(f'collections.{source}', {})
        params = dict(collection.get('params') or {})
        params['since'] = since
        items = await self.fetch_collection(collection['endpoint'], params, label=f'revenue {source}')
        return [normalize_payment(item, source) for item in items]

    async def _get(self, path: str, params: Dict[str, Any], accept: str) -> httpx.Response:
        """GET with 429 back-off; error statuses become exceptions."""
        for attempt in range(self.max_retries + 1):
            response = await self.client.get(path, params=params, headers={'Accept': accept})
            status = response.status_code

            if status == 429 and attempt < self.max_retries:
                wait_seconds = self._retry_after(response)
                self.logger.warning(f"⚠️ Rate limited on {path}, waiting {wait_seconds}s")
                await asyncio.sleep(wait_seconds)
                continue

            if status == 401:
                raise AuthExpiredError(str(response.request.url))
            if status >= 400:
                raise UpstreamHTTPError(status, str(response.request.url))
            return response

        raise UpstreamHTTPError(429, path)

    @staticmethod
    def _retry_after(response: httpx.Response) -> float:
        try:
            return max(0.0, float(response.headers.get('Retry-After', 1)))
        except ValueError:
            return 1.0
