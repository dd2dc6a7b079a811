"""Tests for CSV parsing, envelope sniffing and upstream fetching."""
import asyncio
from datetime import date

import httpx
import pytest

from practice_metrics.core.extractor import (
    RecordExtractor,
    extract_items,
    extract_total_pages,
    normalize_payment,
    parse_csv,
)
from practice_metrics.core.models import DateRange
from practice_metrics.exceptions import AuthExpiredError, SourceUnavailableError
from practice_metrics.utils.config_manager import ConfigManager

BASE_URL = "https://app.test/api/v4"
YEAR = DateRange(date(2025, 1, 1), date(2025, 3, 15))


def make_extractor(handler, config=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    return RecordExtractor(config or ConfigManager(), client)


def csv_response(text):
    return httpx.Response(200, text=text, headers={"content-type": "text/csv"})


# --- parse_csv -------------------------------------------------------------

def test_parse_csv_basic_report():
    text = 'Payment Date,Amount Collected\n2025-01-15,"$1,000.00"\n'
    assert parse_csv(text) == [{"Payment Date": "2025-01-15", "Amount Collected": "$1,000.00"}]


def test_parse_csv_quoted_newlines_and_doubled_quotes():
    text = 'Name,Notes\n"Smith, John","line one\nline two"\nJane,"She said ""hi"""\n'
    rows = parse_csv(text)

    assert rows == [
        {"Name": "Smith, John", "Notes": "line one\nline two"},
        {"Name": "Jane", "Notes": 'She said "hi"'},
    ]


def test_parse_csv_strips_bom_and_whitespace():
    text = "\ufeff User , Hours \n Sarah , 4.5 \n"
    assert parse_csv(text) == [{"User": "Sarah", "Hours": "4.5"}]


def test_parse_csv_drops_blank_rows():
    text = "A,B\n1,2\n,\n\n3,4\n"
    assert parse_csv(text) == [{"A": "1", "B": "2"}, {"A": "3", "B": "4"}]


@pytest.mark.parametrize("text", ["", "   \n", "A,B\n"])
def test_parse_csv_empty_inputs(text):
    assert parse_csv(text) == []


# --- envelope sniffing -----------------------------------------------------

@pytest.mark.parametrize("payload", [
    {"data": [{"id": 1}]},
    {"data": {"data": [{"id": 1}]}},
    [{"id": 1}],
    {"results": [{"id": 1}]},
    {"items": [{"id": 1}]},
    {"d": {"results": [{"id": 1}]}},
])
def test_extract_items_understands_envelopes(payload):
    assert extract_items(payload) == [{"id": 1}]


def test_extract_items_unknown_shape():
    assert extract_items({"unexpected": True}) == []


def test_extract_total_pages_from_meta():
    assert extract_total_pages({"meta": {"paging": {"total_pages": 4}}}, 200) == 4
    assert extract_total_pages({"meta": {"records": 450}}, 200) == 3
    assert extract_total_pages({"data": []}, 200) is None


def test_parse_body_sniffs_json_without_content_type():
    extractor = make_extractor(lambda request: httpx.Response(200))
    assert extractor.parse_body('{"data": [{"a": 1}]}') == [{"a": 1}]
    assert extractor.parse_body("a,b\n1,2\n", "text/csv") == [{"a": "1", "b": "2"}]


def test_normalize_payment_sources():
    assert normalize_payment({"id": 7, "date": "2025-01-02", "total": 150}) == {
        "id": 7, "date": "2025-01-02", "total": 150.0, "type": "Payment"}

    allocation = normalize_payment({"id": 8, "applied_at": "2025-02-03T10:00:00Z", "amount_cents": 12345},
                                   "allocations")
    assert allocation["date"] == "2025-02-03T10:00:00Z"
    assert allocation["total"] == 123.45

    activity = normalize_payment({"id": 9, "date": "2025-03-01", "total": "(50.00)", "type": "Refund"},
                                 "activities")
    assert activity["total"] == -50.0
    assert activity["type"] == "Refund"


# --- report variant fallback -----------------------------------------------

def test_fetch_report_falls_back_through_variants():
    seen = []

    def handler(request):
        seen.append(request)
        if request.url.path.endswith("/billing/revenue.csv") and "start_date" in request.url.params:
            return csv_response("Payment Date,Amount Collected\n2025-01-15,100\n")
        return httpx.Response(404)

    extractor = make_extractor(handler)
    records = asyncio.run(extractor.fetch_records("revenue-payments", YEAR))

    assert records == [{"Payment Date": "2025-01-15", "Amount Collected": "100"}]
    # 14 managed variants, then the 9th billing variant succeeds
    assert len(seen) == 23
    last = seen[-1]
    assert last.url.path == "/api/v4/reports/billing/revenue.csv"
    assert last.url.params["start_date"] == "2025-01-01"
    assert last.url.params["end_date"] == "2025-03-15"
    assert last.headers["accept"] == "text/csv"


def test_fetch_report_auth_failure_stops_immediately():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401)

    extractor = make_extractor(handler)
    with pytest.raises(AuthExpiredError) as excinfo:
        asyncio.run(extractor.fetch_records("productivity", YEAR))

    assert excinfo.value.status == 401
    assert len(calls) == 1


def test_fetch_report_server_error_is_not_retried_as_variant():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    extractor = make_extractor(handler)
    with pytest.raises(SourceUnavailableError) as excinfo:
        asyncio.run(extractor.fetch_records("time", YEAR))

    assert excinfo.value.status == 500
    assert len(calls) == 1


def test_fetch_report_exhausted_variants_lists_attempts():
    extractor = make_extractor(lambda request: httpx.Response(404))

    with pytest.raises(SourceUnavailableError) as excinfo:
        asyncio.run(extractor.fetch_records("productivity", YEAR))

    error = excinfo.value
    assert error.label == "productivity report"
    assert len(error.attempts) == 3 * 7
    assert "Unable to fetch productivity report" in str(error)
    assert "managed/productivity_by_user" in str(error)
    assert "managed/productivity[" in str(error)


def test_fetch_report_retries_after_rate_limit():
    responses = [
        httpx.Response(429, headers={"Retry-After": "0"}),
        csv_response("User,Hours\nSarah,3\n"),
    ]

    extractor = make_extractor(lambda request: responses.pop(0))
    records = asyncio.run(extractor.fetch_records("productivity", YEAR))

    assert records == [{"User": "Sarah", "Hours": "3"}]


def test_fetch_records_rejects_unknown_kind():
    extractor = make_extractor(lambda request: httpx.Response(200))
    with pytest.raises(ValueError):
        asyncio.run(extractor.fetch_records("invoices", YEAR))


def test_date_param_variants_are_unique():
    extractor = make_extractor(lambda request: httpx.Response(200))
    variants = extractor.build_date_param_variants(YEAR)

    assert len(variants) == 7
    assert {"start_date": "2025-01-01", "end_date": "2025-03-15"} in variants

    combined = extractor.combine_param_variants(variants, [{}, {}, {"detail": "true"}])
    assert len(combined) == 14


# --- collections -----------------------------------------------------------

def collections_config(per_page=2, max_pages=50):
    config = ConfigManager()
    config.set("source_mode", "collections")
    config.set("pagination.per_page", per_page)
    config.set("pagination.max_pages", max_pages)
    return config


def test_fetch_collection_stops_on_short_page():
    pages = {
        "1": [{"id": 1}, {"id": 2}],
        "2": [{"id": 3}],
    }
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"data": pages[request.url.params["page"]]})

    extractor = make_extractor(handler, collections_config())
    records = asyncio.run(extractor.fetch_records("time", YEAR))

    assert [record["id"] for record in records] == [1, 2, 3]
    assert len(calls) == 2
    first = calls[0]
    assert first.url.path == "/api/v4/time_entries.json"
    assert first.url.params["since"] == "2025-01-01T00:00:00Z"
    assert first.url.params["per_page"] == "2"


def test_fetch_collection_follows_total_pages():
    calls = []

    def handler(request):
        calls.append(request)
        page = int(request.url.params["page"])
        return httpx.Response(200, json={"data": [{"id": page}], "meta": {"paging": {"total_pages": 3}}})

    extractor = make_extractor(handler, collections_config())
    records = asyncio.run(extractor.fetch_collection("time_entries.json"))

    assert [record["id"] for record in records] == [1, 2, 3]
    assert len(calls) == 3


def test_fetch_collection_stops_at_page_cap():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[{"id": len(calls)}, {"id": -len(calls)}])

    extractor = make_extractor(handler, collections_config(per_page=2, max_pages=2))
    records = asyncio.run(extractor.fetch_collection("payments.json"))

    assert len(calls) == 2
    assert len(records) == 4


def test_fetch_collection_wraps_upstream_errors():
    extractor = make_extractor(lambda request: httpx.Response(503), collections_config())

    with pytest.raises(SourceUnavailableError) as excinfo:
        asyncio.run(extractor.fetch_collection("payments.json", label="revenue payments"))

    assert excinfo.value.status == 503
    assert excinfo.value.attempts == ["payments.json[page=1]"]


def test_revenue_collection_is_normalized():
    def handler(request):
        assert request.url.path == "/api/v4/allocations.json"
        return httpx.Response(200, json={"data": [{"id": 1, "applied_at": "2025-02-01", "amount": "250.00"}]})

    config = collections_config()
    config.set("revenue_collection", "allocations")
    extractor = make_extractor(handler, config)

    records = asyncio.run(extractor.fetch_records("revenue", YEAR))
    assert records == [{"id": 1, "date": "2025-02-01", "total": 250.0, "type": "Payment"}]


def test_fetch_collection_keeps_reading_full_pages_past_stale_page_count():
    pages = {
        "1": [{"id": 1}, {"id": 2}],
        "2": [{"id": 3}, {"id": 4}],
        "3": [{"id": 5}],
    }
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={
            "data": pages[request.url.params["page"]],
            "meta": {"paging": {"total_pages": 1}},
        })

    extractor = make_extractor(handler, collections_config())
    records = asyncio.run(extractor.fetch_collection("time_entries.json"))

    assert len(calls) == 3
    assert [record["id"] for record in records] == [1, 2, 3, 4, 5]


def test_parse_csv_repeated_header_keeps_last_column():
    text = "User,Hours,Hours\nSarah,3,5\n"
    assert parse_csv(text) == [{"User": "Sarah", "Hours": "5"}]


def test_parse_csv_ignores_blank_headers_and_pads_short_rows():
    text = "User,,Hours\nSarah,x,4\nMike\n"
    assert parse_csv(text) == [{"User": "Sarah", "Hours": "4"}, {"User": "Mike", "Hours": ""}]
