from datetime import date
from decimal import Decimal

import pytest


@pytest.mark.api
@pytest.mark.asyncio
async def test_unknown_filter_is_rejected(client, login_as):
    login_as("admin")

    response = await client.get("/dashboard/overview", params={"filter": "last_fortnight"})

    assert response.status_code == 400
    assert response.json()["fields"] == ["filter"]


@pytest.mark.api
@pytest.mark.asyncio
async def test_date_range_needs_both_ends(client, login_as):
    login_as("admin")

    response = await client.get(
        "/dashboard/overview", params={"filter": "date_range", "startDate": "2024-03-01"}
    )

    assert response.status_code == 400
    assert response.json()["fields"] == ["endDate"]


@pytest.mark.api
@pytest.mark.asyncio
async def test_overview_zero_fills_the_window(client, fake_db, login_as):
    login_as("admin")
    fake_db.on(
        "GROUP BY 1, 2",
        [{"bucket": "2024-03-05", "pt_status": "success", "count": 2, "amount": Decimal("150.00")}],
    )

    response = await client.get(
        "/dashboard/overview",
        params={"filter": "date_range", "startDate": "2024-03-04", "endDate": "2024-03-06"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["granularity"] == "day"
    assert body["totalAmountReceived"] == 150.0
    labels = [point["label"] for point in body["charts"]["sales"]]
    assert "2024-03-05" in labels
    assert body["charts"]["statusDistribution"] == [{"status": "success", "count": 2}]


@pytest.mark.api
@pytest.mark.asyncio
async def test_child_admin_without_grants_sees_zeros(client, fake_db, login_as):
    login_as("child_admin")

    response = await client.get("/dashboard/overview", params={"filter": "yesterday"})

    assert response.status_code == 200
    body = response.json()
    assert body["totalTransactions"] == 0
    assert body["totalAmount"] == 0.0
    assert fake_db.queries("FROM payments") == []


@pytest.mark.api
@pytest.mark.asyncio
async def test_transactions_are_paged(client, fake_db, login_as):
    login_as("admin")
    fake_db.on("COUNT(*) FROM payments", 120)
    fake_db.on("FROM payments", [])

    response = await client.get("/dashboard/transactions", params={"page": 2, "limit": 50})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 120
    assert body["page"] == 2
    assert body["totalPages"] == 3
    (query, _), = [call for call in fake_db.queries("FROM payments") if "LIMIT" in call[0]]
    assert "OFFSET 50" in query


@pytest.mark.api
@pytest.mark.asyncio
async def test_daily_sales_requires_date(client, login_as):
    login_as("admin")

    response = await client.get("/dashboard/daily-sales")

    assert response.status_code == 400
    assert response.json()["fields"] == ["date"]


@pytest.mark.api
@pytest.mark.asyncio
async def test_daily_sales_groups_by_app(client, fake_db, login_as):
    login_as("admin")
    fake_db.on(
        "FROM spends",
        [{"app_id": "12345", "spend_amount": Decimal("100"), "settlement": "yes"}],
    )
    fake_db.on(
        "FROM payments",
        [
            {"uuid": "p1", "app_id": "12345", "pt_status": "success", "amount": Decimal("150")},
            {"uuid": "p2", "app_id": "12345", "pt_status": "failed", "amount": Decimal("50")},
            {"uuid": "p3", "app_id": "67890", "pt_status": "retry", "amount": None},
        ],
    )

    response = await client.get("/dashboard/daily-sales", params={"date": "2024-03-15"})

    assert response.status_code == 200
    body = response.json()
    assert body["date"] == "2024-03-15"
    first, second = body["data"]
    assert first["appId"] == "12345"
    assert first["totalSales"] == 200.0
    assert first["successSales"] == 150.0
    assert first["spend"] == {"amount": 100.0, "settlement": "yes", "roi": 50.0}
    assert first["payments"] == [{"id": "p1", "status": "success"}, {"id": "p2", "status": "failed"}]
    assert second["appId"] == "67890"
    assert second["spend"] is None

    (_, args), = fake_db.queries("FROM spends")
    assert args == (date(2024, 3, 15), date(2024, 3, 15))


@pytest.mark.api
@pytest.mark.asyncio
async def test_performance_joins_spend_and_payments(client, fake_db, login_as):
    login_as("admin")
    fake_db.on(
        "FROM spends",
        [{"app_id": "12345", "date": date(2024, 3, 14), "spend_amount": Decimal("200"), "settlement": "no"}],
    )
    fake_db.on(
        "AS day",
        [
            {"app_id": "12345", "day": "2024-03-14", "amount": Decimal("300")},
            {"app_id": "12345", "day": "2024-03-15", "amount": Decimal("80")},
        ],
    )

    response = await client.get(
        "/dashboard/performance",
        params={"filter": "date_range", "startDate": "2024-03-14", "endDate": "2024-03-15"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    newest, oldest = body["data"]
    assert newest["date"] == "2024-03-15"
    assert newest["spendAmount"] == 0.0
    assert newest["roi"] is None
    assert oldest["roi"] == 50.0
    assert body["totals"]["receivedAmount"] == 380.0


@pytest.mark.api
@pytest.mark.asyncio
async def test_hourly_has_a_bucket_per_hour(client, login_as):
    login_as("admin")

    response = await client.get("/dashboard/performance/hourly", params={"date": "2024-03-15"})

    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 24
    assert body["data"][0]["label"] == "2024-03-15 00:00"
    assert body["totalTransactions"] == 0
