"""Tests for SMS transaction API endpoints."""

from datetime import timedelta

from conftest import RECEIVED_AT, make_record


def test_list_empty(client):
    """List should return empty when no transactions."""
    response = client.get("/api/v1/sms-transactions", params={"user_id": "user-1"})
    assert response.status_code == 200
    data = response.json()
    assert data["items"] == []
    assert data["total"] == 0


def test_user_id_required(client):
    response = client.get("/api/v1/sms-transactions")
    assert response.status_code == 422


def test_list_pages(client, ledger_store):
    for i in range(5):
        ledger_store.insert_if_absent(make_record(timestamp=RECEIVED_AT - timedelta(hours=i)))

    first = client.get("/api/v1/sms-transactions", params={"user_id": "user-1", "offset": 0, "limit": 3}).json()
    second = client.get("/api/v1/sms-transactions", params={"user_id": "user-1", "offset": 3, "limit": 3}).json()
    everything = client.get("/api/v1/sms-transactions/all", params={"user_id": "user-1"}).json()

    assert first["total"] == 5
    assert len(first["items"]) == 3
    assert len(second["items"]) == 2
    assert [t["id"] for t in first["items"] + second["items"]] == [t["id"] for t in everything]


def test_response_hides_identity_key(client, ledger_store):
    ledger_store.insert_if_absent(make_record(merchant_name="MERCHANT1"))
    item = client.get("/api/v1/sms-transactions/all", params={"user_id": "user-1"}).json()[0]
    assert item["merchant_name"] == "MERCHANT1"
    assert item["amount"] == "500.00"
    assert "identity_key" not in item


def test_get_transaction(client, ledger_store):
    record = make_record()
    ledger_store.insert_if_absent(record)
    response = client.get(f"/api/v1/sms-transactions/{record.id}", params={"user_id": "user-1"})
    assert response.status_code == 200
    assert response.json()["id"] == record.id


def test_get_transaction_not_found(client, ledger_store):
    """Should return 404 for a missing or foreign transaction."""
    record = make_record()
    ledger_store.insert_if_absent(record)
    response = client.get("/api/v1/sms-transactions/nonexistent-id", params={"user_id": "user-1"})
    assert response.status_code == 404
    response = client.get(f"/api/v1/sms-transactions/{record.id}", params={"user_id": "user-2"})
    assert response.status_code == 404


def test_grouped(client, ledger_store):
    ledger_store.insert_if_absent(make_record(timestamp=RECEIVED_AT))
    ledger_store.insert_if_absent(make_record(timestamp=RECEIVED_AT - timedelta(days=2)))
    response = client.get(
        "/api/v1/sms-transactions/grouped",
        params={"user_id": "user-1", "tz_offset_minutes": 330}
    )
    assert response.status_code == 200
    data = response.json()
    assert [g["date"] for g in data["groups"]] == ["2025-01-05", "2025-01-03"]
    assert data["total"] == 2


def test_storage_failure_is_503(client, ledger_store, engine):
    from sqlalchemy import text
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE sms_transactions"))
    response = client.get("/api/v1/sms-transactions", params={"user_id": "user-1"})
    assert response.status_code == 503
