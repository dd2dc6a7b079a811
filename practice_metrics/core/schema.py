#!/usr/bin/env python3
"""
Schema Inference - Decide which upstream column plays which role

Report exports are configurable by the data owner, so the same concept can
arrive as "User", "Timekeeper Name" or "Responsible Attorney". Columns are
picked in three passes:
1. Ordered token-group preferences matched against normalized column names
2. Content sniffing over a small row sample when no name matches
3. For hours columns feeding per-attorney totals, a variance tie-break
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .models import FieldRole, RawRecord
from ..utils.value_normalizer import (
    contains_at_word_start, is_numeric_text, normalize_key, parse_amount, parse_date,
)


def collect_columns(records: Sequence[RawRecord]) -> List[str]:
    """All non-empty keys seen across a batch, in first-seen order."""
    columns: Dict[str, None] = {}
    for record in records:
        for key in record.keys():
            if key:
                columns.setdefault(key, None)
    return list(columns)


def read_name(value) -> str:
    """Text of a NAME cell; nested objects contribute their 'name'."""
    if isinstance(value, dict):
        value = value.get('name')
    if value is None:
        return ''
    return str(value).strip()


class SchemaInferenceEngine:
    """
    Infers column roles for batches of heterogeneous records.

    All keyword and preference tables come from configuration; the
    engine holds no state between calls so inference is deterministic.
    """

    def __init__(self, config):
        """Initialize the schema inference engine."""
        self.config = config
        self.logger = logging.getLogger(__name__)

        inference = config.get_section('inference')
        self.attorney_preferences = inference.get('attorney_preferences', [])
        self.revenue_date_preferences = inference.get('revenue_date_preferences', [])
        self.time_date_preferences = inference.get('time_date_preferences', [])
        self.hours_preferences = inference.get('hours_column_preferences', [])
        self.sample_rows = int(inference.get('sample_rows', 10))
        self.sniff_threshold = float(inference.get('sniff_threshold', 0.7))

        self.keyword_sets = {
            FieldRole.HOURS_AMOUNT: [
                (inference.get('hours_include', []), inference.get('hours_exclude', [])),
                (inference.get('duration_include', []), inference.get('duration_exclude', [])),
            ],
            FieldRole.REVENUE_AMOUNT: [
                (inference.get('revenue_include', []), inference.get('revenue_exclude', [])),
                (inference.get('revenue_fallback_include', []), inference.get('revenue_exclude', [])),
            ],
        }

    def infer_column(self, records: Sequence[RawRecord], role: FieldRole,
                     preferences: Optional[List[List[str]]] = None) -> Optional[str]:
        """
        Pick the single column that best represents a role.

        Args:
            records: Batch of raw records
            role: Role to infer
            preferences: Token groups overriding the role's defaults (NAME/DATE)

        Returns:
            Column name, or None when nothing qualifies
        """
        if not records:
            return None

        if role in (FieldRole.HOURS_AMOUNT, FieldRole.REVENUE_AMOUNT):
            columns = self.infer_columns(records, role)
            return columns[0] if columns else None

        columns = collect_columns(records)
        if preferences is None:
            preferences = self.attorney_preferences if role == FieldRole.NAME else self.time_date_preferences

        match = self.find_first_matching_key(columns, preferences)
        if match:
            return match

        sniffed = self._sniff_column(records, columns, role)
        if sniffed:
            self.logger.debug(f"{role.value}: no name match, content sniff chose '{sniffed}'")
        else:
            self.logger.debug(f"{role.value}: no column found among {columns}")
        return sniffed

    def infer_columns(self, records: Sequence[RawRecord], role: FieldRole) -> List[str]:
        """
        All columns whose names match a role's amount keywords.

        The primary keyword set wins; the fallback set (duration/quantity
        for hours, total/amount for revenue) is used only when the primary
        set matches nothing. Hours columns are ordered by preference.
        """
        if role not in self.keyword_sets:
            raise ValueError(f"{role} is not an amount role")

        columns = collect_columns(records)
        for include, exclude in self.keyword_sets[role]:
            matches = self.find_columns_by_keywords(columns, include, exclude)
            if matches:
                if role == FieldRole.HOURS_AMOUNT:
                    return self.order_columns_by_preference(matches, self.hours_preferences)
                return matches
        return []

    def is_duration_column(self, column: str) -> bool:
        """True when a column matched only through the duration/quantity fallback."""
        inference = self.config.get_section('inference')
        hours_match = self.find_columns_by_keywords(
            [column], inference.get('hours_include', []), inference.get('hours_exclude', []))
        return not hours_match

    @staticmethod
    def find_columns_by_keywords(columns: Sequence[str], include: Sequence[str],
                                 exclude: Sequence[str] = ()) -> List[str]:
        """
        Columns containing any include keyword and no exclude keyword.

        Include keywords match anywhere in the normalized name ("Total
        Payments" has "payment"); exclude keywords must start at a word
        boundary so "Updated" is not excluded by "date".
        """
        include_keys = [normalize_key(keyword) for keyword in include]

        matches = []
        for column in columns:
            normalized = normalize_key(column)
            if not any(keyword in normalized for keyword in include_keys):
                continue
            if any(contains_at_word_start(column, keyword) for keyword in exclude):
                continue
            matches.append(column)
        return matches

    @staticmethod
    def find_first_matching_key(columns: Sequence[str],
                                preferences: Sequence[Sequence[str]]) -> Optional[str]:
        """First column matching the highest-priority token group."""
        normalized = [(column, normalize_key(column)) for column in columns]
        for tokens in preferences:
            token_keys = [normalize_key(token) for token in tokens]
            for column, key in normalized:
                if all(token in key for token in token_keys):
                    return column
        return None

    @staticmethod
    def order_columns_by_preference(columns: Sequence[str],
                                    preferences: Sequence[Sequence[str]]) -> List[str]:
        """Reorder columns so preferred token groups come first."""
        if len(columns) <= 1:
            return list(columns)

        remaining = list(columns)
        ordered = []
        for tokens in preferences:
            token_keys = [normalize_key(token) for token in tokens]
            for index, column in enumerate(remaining):
                if all(token in normalize_key(column) for token in token_keys):
                    ordered.append(remaining.pop(index))
                    break
        ordered.extend(remaining)
        return ordered

    def select_hour_column(self, records: Sequence[RawRecord], name_column: str,
                           hour_columns: Sequence[str]) -> Tuple[Optional[str], Dict[str, float]]:
        """
        Choose the hours column for per-attorney totals.

        Prefers the first column (in preference order) whose per-name
        totals vary, then the first with any non-zero data, then the
        first candidate.

        Returns:
            (column, totals by name)
        """
        ordered = self.order_columns_by_preference(hour_columns, self.hours_preferences)
        if not ordered:
            return None, {}

        evaluations = {}

        def evaluate(column: str):
            if column not in evaluations:
                totals = self.totals_by_name(records, name_column, column)
                values = np.array(list(totals.values()), dtype=float)
                non_zero = values[np.abs(values) > 0.01]
                has_variance = non_zero.size > 1 and float(np.ptp(non_zero)) > 0.01
                evaluations[column] = (totals, non_zero.size > 0, has_variance)
            return evaluations[column]

        for column in ordered:
            totals, _, has_variance = evaluate(column)
            if has_variance:
                return column, totals

        for column in ordered:
            totals, has_data, _ = evaluate(column)
            if has_data:
                return column, totals

        fallback = ordered[0]
        if len(ordered) > 1:
            self.logger.debug(f"No hours column carries data; falling back to '{fallback}'")
        return fallback, evaluate(fallback)[0]

    @staticmethod
    def totals_by_name(records: Sequence[RawRecord], name_column: str,
                       value_column: str) -> Dict[str, float]:
        """Sum one value column per distinct name, skipping blanks and zeros."""
        totals: Dict[str, float] = {}
        for record in records:
            name = read_name(record.get(name_column))
            if not name:
                continue
            value = parse_amount(record.get(value_column))
            if not value:
                continue
            totals[name] = totals.get(name, 0.0) + value
        return totals

    def _sniff_column(self, records: Sequence[RawRecord], columns: Sequence[str],
                      role: FieldRole) -> Optional[str]:
        sample = list(records[:self.sample_rows])
        if not sample:
            return None

        check = self._looks_like_date if role == FieldRole.DATE else self._looks_like_name
        for column in columns:
            hits = sum(1 for record in sample if check(record.get(column)))
            if hits / len(sample) > self.sniff_threshold:
                return column
        return None

    @staticmethod
    def _looks_like_date(value) -> bool:
        return parse_date(value) is not None

    @staticmethod
    def _looks_like_name(value) -> bool:
        text = read_name(value) if isinstance(value, (str, dict)) else ''
        if len(text) <= 2:
            return False
        return not is_numeric_text(text) and parse_date(text) is None
