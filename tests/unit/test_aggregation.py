from decimal import Decimal

import pytest

from services.collect.aggregation import coerce_amount, storable_amount, summarize


@pytest.mark.parametrize(
    "value,expected",
    [
        (120, Decimal("120")),
        (12.5, Decimal("12.5")),
        ("120", Decimal("120")),
        (" 99.50 ", Decimal("99.50")),
        (Decimal("7.25"), Decimal("7.25")),
        ("abc", Decimal("0")),
        ("", Decimal("0")),
        (None, Decimal("0")),
        (True, Decimal("0")),
        (float("nan"), Decimal("0")),
        ("Infinity", Decimal("0")),
    ],
)
def test_coerce_amount_parses_or_falls_back_to_zero(value, expected):
    assert coerce_amount(value) == expected


@pytest.mark.parametrize(
    "value,expected",
    [
        ("120.505", Decimal("120.50")),
        ("999999999999.99", Decimal("999999999999.99")),
        ("999999999999.999", Decimal("0")),
        ("1e20", Decimal("0")),
        ("-1e20", Decimal("0")),
        ("abc", Decimal("0")),
    ],
)
def test_storable_amount_fits_the_amount_column(value, expected):
    assert storable_amount(value) == expected


GROUPS = [
    {"bucket": "2024-03-14", "pt_status": "success", "count": 2, "amount": Decimal("300")},
    {"bucket": "2024-03-14", "pt_status": "failed", "count": 1, "amount": Decimal("50")},
    {"bucket": "2024-03-15", "pt_status": "retry", "count": 1, "amount": "20"},
    {"bucket": "2024-03-15", "pt_status": None, "count": 1, "amount": "abc"},
]


def test_summarize_totals_and_status_counts():
    stats = summarize(GROUPS)

    assert stats["totalTransactions"] == 5
    assert stats["totalAmount"] == 370.0
    assert stats["totalAmountReceived"] == 300.0
    assert stats["successCount"] == 2
    assert stats["failedCount"] == 1
    assert stats["retryCount"] == 1


def test_unknown_status_is_counted_not_dropped():
    stats = summarize(GROUPS)

    assert stats["statusDistribution"] == [
        {"status": "failed", "count": 1},
        {"status": "retry", "count": 1},
        {"status": "success", "count": 2},
        {"status": "unknown", "count": 1},
    ]


def test_series_is_zero_filled_over_supplied_buckets():
    stats = summarize(GROUPS, ["2024-03-13", "2024-03-14", "2024-03-15"])

    assert stats["series"] == [
        {"label": "2024-03-13", "transactions": 0, "amount": 0.0, "successAmount": 0.0},
        {"label": "2024-03-14", "transactions": 3, "amount": 350.0, "successAmount": 300.0},
        {"label": "2024-03-15", "transactions": 2, "amount": 20.0, "successAmount": 0.0},
    ]


def test_rows_outside_the_buckets_are_kept_at_the_end():
    stats = summarize(GROUPS, ["2024-03-14"])

    assert [b["label"] for b in stats["series"]] == ["2024-03-14", "2024-03-15"]


def test_without_buckets_series_is_sorted_by_label():
    stats = summarize(list(reversed(GROUPS)))

    assert [b["label"] for b in stats["series"]] == ["2024-03-14", "2024-03-15"]


def test_empty_input_has_the_full_shape():
    stats = summarize([])

    assert stats == {
        "totalTransactions": 0,
        "totalAmount": 0.0,
        "totalAmountReceived": 0.0,
        "successCount": 0,
        "failedCount": 0,
        "retryCount": 0,
        "series": [],
        "statusDistribution": [],
    }
