"""Tests for column role inference."""
from practice_metrics.core.models import FieldRole
from practice_metrics.core.schema import SchemaInferenceEngine, collect_columns, read_name
from practice_metrics.utils.config_manager import ConfigManager


def make_engine():
    return SchemaInferenceEngine(ConfigManager())


def test_revenue_report_columns():
    engine = make_engine()
    records = [{"Payment Date": "2025-01-15", "Amount Collected": "$1,000.00"}]

    assert engine.infer_column(records, FieldRole.DATE, engine.revenue_date_preferences) == "Payment Date"
    assert engine.infer_column(records, FieldRole.REVENUE_AMOUNT) == "Amount Collected"


def test_revenue_columns_skip_balances_and_dates():
    engine = make_engine()
    records = [{
        "Payment Date": "2025-01-15",
        "Amount Collected": "100",
        "Outstanding Balance": "900",
        "Total Payments": "100",
        "Unpaid Amount": "5",
    }]

    assert engine.infer_columns(records, FieldRole.REVENUE_AMOUNT) == ["Amount Collected", "Total Payments"]


def test_revenue_falls_back_to_total_columns():
    engine = make_engine()
    records = [{"id": 1, "date": "2025-01-02", "total": 150.0, "type": "Payment"}]

    assert engine.infer_columns(records, FieldRole.REVENUE_AMOUNT) == ["total"]


def test_name_preference_order():
    engine = make_engine()
    records = [{"Name": "x", "User": "y", "Timekeeper": "z"}]

    assert engine.infer_column(records, FieldRole.NAME) == "Timekeeper"


def test_date_preference_order_for_revenue():
    engine = make_engine()
    records = [{"Invoice Date": "2025-01-01", "Payment Date": "2025-01-05"}]

    assert engine.infer_column(records, FieldRole.DATE, engine.revenue_date_preferences) == "Payment Date"


def test_content_sniffing_when_no_name_matches():
    engine = make_engine()
    records = [
        {"posted": "2025-01-03", "who": "Sarah Johnson", "amount": "100"},
        {"posted": "2025-01-04", "who": "Mike Chen", "amount": "250"},
        {"posted": "1/5/2025", "who": "Sarah Johnson", "amount": "75"},
    ]

    assert engine.infer_column(records, FieldRole.NAME) == "who"
    assert engine.infer_column(records, FieldRole.DATE) == "posted"


def test_sniffing_requires_a_clear_majority():
    engine = make_engine()
    records = [
        {"posted": "2025-01-03"},
        {"posted": "soon"},
        {"posted": "later"},
    ]

    assert engine.infer_column(records, FieldRole.DATE) is None


def test_inference_is_deterministic():
    engine = make_engine()
    records = [{"Responsible Attorney": "A", "User": "B", "Work Date": "2025-02-01", "Hours": "3"}]

    first = [engine.infer_column(records, role) for role in FieldRole]
    second = [engine.infer_column(records, role) for role in FieldRole]

    assert first == second
    assert first[0] == "User"


def test_empty_batch_infers_nothing():
    engine = make_engine()
    for role in FieldRole:
        assert engine.infer_column([], role) is None


def test_hours_columns_ordered_and_filtered():
    engine = make_engine()
    records = [{"Total Hours": "5", "Hourly Rate": "300", "Target Hours": "40", "Billable Hours": "4"}]

    assert engine.infer_columns(records, FieldRole.HOURS_AMOUNT) == ["Billable Hours", "Total Hours"]


def test_hours_fall_back_to_duration_columns():
    engine = make_engine()
    records = [{"user": {"id": 1, "name": "Sarah"}, "quantity": 3600, "price": 300}]

    assert engine.infer_columns(records, FieldRole.HOURS_AMOUNT) == ["quantity"]
    assert engine.is_duration_column("quantity")
    assert not engine.is_duration_column("Billable Hours")


def test_select_hour_column_prefers_varying_totals():
    engine = make_engine()
    records = [
        {"User": "A", "Billable Hours": "40", "Total Hours": "50"},
        {"User": "B", "Billable Hours": "40", "Total Hours": "30"},
    ]

    column, totals = engine.select_hour_column(records, "User", ["Billable Hours", "Total Hours"])

    assert column == "Total Hours"
    assert totals == {"A": 50.0, "B": 30.0}


def test_select_hour_column_falls_back_to_any_data():
    engine = make_engine()
    records = [{"User": "A", "Billable Hours": "0", "Total Hours": "10"}]

    column, totals = engine.select_hour_column(records, "User", ["Billable Hours", "Total Hours"])

    assert column == "Total Hours"
    assert totals == {"A": 10.0}


def test_select_hour_column_without_data_uses_first_preference():
    engine = make_engine()
    records = [{"User": "A", "Total Hours": "", "Billable Hours": "0"}]

    column, totals = engine.select_hour_column(records, "User", ["Total Hours", "Billable Hours"])

    assert column == "Billable Hours"
    assert totals == {}


def test_collect_columns_and_read_name():
    records = [{"a": 1, "": 2}, {"b": 3, "a": 4}]

    assert collect_columns(records) == ["a", "b"]
    assert read_name({"id": 3, "name": " Sarah "}) == "Sarah"
    assert read_name(None) == ""


def test_exclusions_only_match_whole_words():
    engine = make_engine()
    revenue = [{"Payment Date": "2025-01-15", "Amount Collected (Updated)": "100", "Payments Unpaid": "3"}]
    hours = [{"Hours Generated": "6", "Hourly Rate": "300"}]

    assert engine.infer_columns(revenue, FieldRole.REVENUE_AMOUNT) == ["Amount Collected (Updated)"]
    assert engine.infer_columns(hours, FieldRole.HOURS_AMOUNT) == ["Hours Generated"]
