import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from shared.json_utils import serialize_record, serialize_records


def test_columns_become_camel_case_json():
    row_id = uuid.uuid4()
    record = {
        "id": row_id,
        "app_logo_url": "https://x/logo.png",
        "transaction_date": datetime(2024, 3, 15, 4, 30, tzinfo=timezone.utc),
        "date": date(2024, 3, 15),
        "spend_amount": Decimal("10.50"),
    }

    assert serialize_record(record) == {
        "id": str(row_id),
        "appLogoUrl": "https://x/logo.png",
        "transactionDate": "2024-03-15T04:30:00+00:00",
        "date": "2024-03-15",
        "spendAmount": 10.5,
    }


def test_excluded_columns_are_dropped():
    rows = [{"id": 1, "uuid": "pay-1", "pt_status": "success"}]

    assert serialize_records(rows, exclude=("id",)) == [{"uuid": "pay-1", "ptStatus": "success"}]


def test_missing_record_stays_none():
    assert serialize_record(None) is None
