"""
Webhook upsert and spend upsert against a real PostgreSQL.

Run with a database at DATABASE_URL (see tests/conftest.py); skipped otherwise.
"""

import uuid
from decimal import Decimal

import pytest

pytestmark = [pytest.mark.db, pytest.mark.asyncio]


async def test_redelivery_updates_status_and_keeps_amount(db_client, real_db):
    payment_uuid = f"it-{uuid.uuid4().hex}"
    body = {
        "uuid": payment_uuid,
        "appId": "12345",
        "ptStatus": "retry",
        "collectionId": "shop@upi",
        "ant": "75.25",
        "transactionDate": "2024-03-15T10:00:00+05:30",
    }

    try:
        first = await db_client.post("/coinCollect", json=body)
        second = await db_client.post(
            "/coinCollect",
            json={k: v for k, v in body.items() if k not in ("ant", "transactionDate")}
            | {"ptStatus": "success"},
        )

        assert first.status_code == 201
        assert second.status_code == 201

        count = await real_db.fetch_val("SELECT COUNT(*) FROM payments WHERE uuid = $1", payment_uuid)
        assert count == 1
        rows = await real_db.fetch_all("SELECT * FROM payments WHERE uuid = $1", payment_uuid)
        assert rows[0]["pt_status"] == "success"
        assert rows[0]["amount"] == Decimal("75.25")
        assert rows[0]["ant"] == "75.25"
        assert second.json()["data"]["transactionDate"].startswith("2024-03-15T04:30:00")
    finally:
        await real_db.execute("DELETE FROM payments WHERE uuid = $1", payment_uuid)


async def test_spend_upsert_keeps_omitted_settlement(db_client, real_db, login_as):
    login_as("admin")
    app_id = "54321"
    try:
        first = await db_client.post(
            "/spends",
            json={"appId": app_id, "date": "2024-03-14", "spendAmount": 100, "settlement": "yes"},
        )
        second = await db_client.post(
            "/spends", json={"appId": app_id, "date": "2024-03-14", "spendAmount": 120}
        )

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.json()["data"]["spendAmount"] == 120.0
        assert second.json()["data"]["settlement"] == "yes"
        assert first.json()["data"]["id"] == second.json()["data"]["id"]
    finally:
        await real_db.execute("DELETE FROM spends WHERE app_id = $1", app_id)
