"""Tests for the local ledger store."""

import pytest
import threading
from datetime import timedelta
from sqlalchemy import text

from smsledger.database import init_db
from smsledger.exceptions import StorageUnavailable
from smsledger.security import decrypt_text
from smsledger.services.ledger_store import InsertResult, LedgerStore

from conftest import RECEIVED_AT, make_record


class TestInsertIfAbsent:
    """Insert-if-absent on (owner, identity key)."""

    def test_insert_then_exists(self, ledger_store):
        assert ledger_store.insert_if_absent(make_record(identity_key="k1")) == InsertResult.inserted
        assert ledger_store.insert_if_absent(make_record(identity_key="k1")) == InsertResult.already_exists
        assert ledger_store.count_for_user("user-1") == 1

    def test_same_key_other_owner(self, ledger_store):
        ledger_store.insert_if_absent(make_record(identity_key="k1"))
        result = ledger_store.insert_if_absent(make_record(owner_user_id="user-2", identity_key="k1"))
        assert result == InsertResult.inserted

    def test_concurrent_inserts_store_once(self, tmp_path):
        """Threads racing on the same key insert exactly one row."""
        store = LedgerStore.from_url(f"sqlite:///{tmp_path / 'ledger.sqlite'}")
        results = []
        lock = threading.Lock()

        def worker():
            result = store.insert_if_absent(make_record(identity_key="race"))
            with lock:
                results.append(result)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(InsertResult.inserted) == 1
        assert results.count(InsertResult.already_exists) == 7
        assert store.count_for_user("user-1") == 1
        store.close()

    def test_storage_failure_raises_storage_unavailable(self, ledger_store, engine):
        with engine.begin() as conn:
            conn.execute(text("DROP TABLE sms_transactions"))
        with pytest.raises(StorageUnavailable):
            ledger_store.insert_if_absent(make_record())

    def test_unusable_path(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        with pytest.raises(StorageUnavailable):
            LedgerStore.from_url(f"sqlite:///{blocker / 'ledger.sqlite'}")


class TestEncryptionAtRest:
    """PII columns never hit the database as plaintext."""

    def test_columns_are_encrypted(self, ledger_store, engine):
        ledger_store.insert_if_absent(make_record(
            merchant_name="MERCHANT1",
            reference_number="123456789",
            upi_id="john@examplebank",
            raw="original text",
        ))
        with engine.connect() as conn:
            row = conn.execute(text(
                "SELECT merchant_name, reference_number, upi_id, raw_message_or_hash FROM sms_transactions"
            )).one()

        assert "MERCHANT1" not in row[0]
        assert "123456789" not in row[1]
        assert "john@examplebank" not in row[2]
        assert "original text" not in row[3]
        assert decrypt_text(row[0]) == "MERCHANT1"

    def test_round_trip_through_store(self, ledger_store):
        ledger_store.insert_if_absent(make_record(merchant_name="MERCHANT1", upi_id="john@examplebank"))
        stored = ledger_store.get_all_for_user("user-1")[0]
        assert stored.merchant_name == "MERCHANT1"
        assert stored.upi_id == "john@examplebank"
        assert stored.timestamp == RECEIVED_AT


class TestReads:
    """Ordering and pagination."""

    @pytest.fixture
    def populated(self, ledger_store):
        # Two pairs share a timestamp so the identity key breaks the tie
        offsets = [0, 1, 1, 2, 3, 3, 4]
        for i, minutes in enumerate(offsets):
            ledger_store.insert_if_absent(make_record(
                timestamp=RECEIVED_AT - timedelta(minutes=minutes),
                identity_key=f"key-{6 - i}",
            ))
        ledger_store.insert_if_absent(make_record(owner_user_id="user-2"))
        return ledger_store

    def test_newest_first_then_key(self, populated):
        records = populated.get_all_for_user("user-1")
        assert len(records) == 7
        order = [(r.timestamp, r.identity_key) for r in records]
        assert order == sorted(order, key=lambda o: (-o[0].timestamp(), o[1]))

    def test_scoped_to_owner(self, populated):
        assert populated.count_for_user("user-2") == 1
        assert all(r.owner_user_id == "user-1" for r in populated.get_all_for_user("user-1"))

    @pytest.mark.parametrize("page_size", [1, 2, 3, 7, 10])
    def test_pages_concatenate_to_all(self, populated, page_size):
        everything = [r.id for r in populated.get_all_for_user("user-1")]
        paged = []
        offset = 0
        while True:
            page = populated.get_page_for_user("user-1", offset, page_size)
            if not page:
                break
            paged.extend(r.id for r in page)
            offset += page_size
        assert paged == everything

    def test_invalid_page_arguments(self, ledger_store):
        with pytest.raises(ValueError):
            ledger_store.get_page_for_user("user-1", -1, 10)
        with pytest.raises(ValueError):
            ledger_store.get_page_for_user("user-1", 0, 0)

    def test_get_for_user(self, ledger_store):
        record = make_record()
        ledger_store.insert_if_absent(record)
        assert ledger_store.get_for_user("user-1", record.id).id == record.id
        assert ledger_store.get_for_user("user-2", record.id) is None


class TestPrivacySnapshot:

    def test_defaults(self, ledger_store):
        snapshot = ledger_store.privacy_snapshot()
        assert snapshot.store_plain_raw_message is False
        assert snapshot.persist_remote_transactions is False

    def test_reflects_persisted_settings(self, ledger_store, set_privacy):
        set_privacy(store_plain_raw_message=True)
        assert ledger_store.privacy_snapshot().store_plain_raw_message is True


def test_init_db_creates_file(tmp_path):
    from smsledger.database import build_engine
    engine = build_engine(f"sqlite:///{tmp_path / 'nested' / 'ledger.sqlite'}")
    init_db(engine)
    assert (tmp_path / "nested" / "ledger.sqlite").exists()
    engine.dispose()
