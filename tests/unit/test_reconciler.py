from datetime import date
from decimal import Decimal

from services.collect.reconciler import compute_roi, reconcile, totals


def spend(app_id, day, amount, settlement="yes"):
    return {"app_id": app_id, "date": day, "spend_amount": Decimal(amount), "settlement": settlement}


def received(app_id, day, amount):
    return {"app_id": app_id, "day": day, "amount": Decimal(amount)}


def test_spend_and_payments_on_the_same_day_merge():
    rows = reconcile([spend("12345", date(2024, 3, 14), "500")], [received("12345", "2024-03-14", "300")])

    assert rows == [
        {
            "date": "2024-03-14",
            "appId": "12345",
            "spendAmount": 500.0,
            "settlement": "yes",
            "receivedAmount": 300.0,
            "roi": -40.0,
        }
    ]


def test_payments_without_spend_default_to_zero_and_unsettled():
    rows = reconcile([], [received("12345", "2024-03-15", "250.50")])

    assert rows[0]["spendAmount"] == 0.0
    assert rows[0]["settlement"] == "no"
    assert rows[0]["receivedAmount"] == 250.5
    assert rows[0]["roi"] is None


def test_spend_without_payments_is_kept():
    rows = reconcile([spend("12345", date(2024, 3, 13), "80", settlement="no")], [])

    assert rows[0]["date"] == "2024-03-13"
    assert rows[0]["receivedAmount"] == 0.0
    assert rows[0]["roi"] == -100.0


def test_rows_are_per_app_per_day_newest_first():
    rows = reconcile(
        [spend("22222", date(2024, 3, 14), "10"), spend("11111", date(2024, 3, 13), "10")],
        [received("11111", "2024-03-14", "30"), received("22222", "2024-03-13", "5")],
    )

    assert [(r["date"], r["appId"]) for r in rows] == [
        ("2024-03-14", "11111"),
        ("2024-03-14", "22222"),
        ("2024-03-13", "11111"),
        ("2024-03-13", "22222"),
    ]


def test_compute_roi_needs_positive_spend():
    assert compute_roi(Decimal("0"), Decimal("100")) is None
    assert compute_roi(Decimal("200"), Decimal("300")) == 50.0


def test_totals_over_rows():
    rows = reconcile(
        [spend("12345", date(2024, 3, 14), "500")],
        [received("12345", "2024-03-14", "300"), received("12345", "2024-03-15", "450")],
    )

    assert totals(rows) == {"spendAmount": 500.0, "receivedAmount": 750.0, "roi": 50.0}
