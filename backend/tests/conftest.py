"""Shared test fixtures."""

import os
import threading
import uuid

from cryptography.fernet import Fernet

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LEDGER_ENCRYPTION_KEY"] = Fernet.generate_key().decode()
os.environ["INBOX_ACCESS_GRANTED"] = "false"
os.environ.pop("PERIODIC_SYNC_USER_ID", None)
os.environ.pop("REMOTE_MIRROR_URL", None)
os.environ.pop("STORE_PLAIN_RAW_MESSAGE", None)
os.environ.pop("PERSIST_REMOTE_TRANSACTIONS", None)

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from datetime import datetime, timezone
from decimal import Decimal

from smsledger.database import Base, build_session_factory
from smsledger.dependencies import (
    get_db,
    get_ledger_store,
    get_sync_coordinator,
)
from smsledger.exceptions import PermissionDenied, RemotePushFailed
from smsledger.main import app
from smsledger.models.privacy_settings import get_or_create_privacy_settings
from smsledger.models.transaction import SmsTransaction, TransactionDirection, TransactionMode
from smsledger.services.inbox import InboxMessage, InboxSource
from smsledger.services.ledger_store import LedgerStore
from smsledger.services.remote_mirror import RemoteMirror
from smsledger.services.sync_service import SyncCoordinator

UPI_DEBIT = "Rs.500.00 debited from A/c XX1234 on 05-01-25 to MERCHANT1 UPI Ref 123456789"
UPI_CREDIT = "You have received INR 1,200 in your account via UPI from john@examplebank"
OTP = "Your OTP for login is 482913"

RECEIVED_AT = datetime(2025, 1, 5, 10, 0, tzinfo=timezone.utc)
FROM_DATE = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_message(body, received_at=RECEIVED_AT, sender="VM-HDFCBK"):
    return InboxMessage(sender=sender, body=body, received_at=received_at)


def make_record(owner_user_id="user-1", timestamp=RECEIVED_AT, amount="500.00", reference_number=None,
                merchant_name="MERCHANT1", identity_key=None, raw="hashed", **extra):
    """Build an unsaved SmsTransaction."""
    values = dict(
        id=str(uuid.uuid4()),
        owner_user_id=owner_user_id,
        identity_key=identity_key or uuid.uuid4().hex,
        timestamp=timestamp,
        amount=Decimal(amount),
        direction=TransactionDirection.debit,
        mode=TransactionMode.upi,
        merchant_name=merchant_name,
        reference_number=reference_number,
        raw_message_or_hash=raw,
        raw_is_hashed=True,
    )
    values.update(extra)
    return SmsTransaction(**values)


class FakeInbox(InboxSource):
    """In-memory inbox; `gate` blocks reads until set."""

    def __init__(self, messages=None, granted=True, grant_on_request=True):
        self.messages = list(messages or [])
        self.granted = granted
        self.grant_on_request = grant_on_request
        self.read_calls = 0
        self.entered = threading.Event()
        self.gate = None

    def has_permission(self):
        return self.granted

    def request_permission(self):
        self.granted = self.granted or self.grant_on_request
        return self.granted

    def read_messages(self, since):
        if not self.granted:
            raise PermissionDenied("denied")
        self.read_calls += 1
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        return [m for m in self.messages if m.received_at >= since]


class FakeMirror(RemoteMirror):
    """Records pushed payloads; fails the first `fail_times` pushes."""

    def __init__(self, fail_times=0, status_code=503):
        self.fail_times = fail_times
        self.status_code = status_code
        self.attempts = 0
        self.pushes = []
        self._lock = threading.Lock()

    def push(self, payload):
        with self._lock:
            self.attempts += 1
            if self.fail_times < 0 or self.attempts <= self.fail_times:
                raise RemotePushFailed("mirror down", payload["identity_key"], self.status_code)
            self.pushes.append(payload)


@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory SQLite database for each test."""
    # Use StaticPool to ensure all connections use the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ledger_store(session_factory):
    return LedgerStore(session_factory)


@pytest.fixture
def inbox():
    return FakeInbox()


@pytest.fixture
def mirror():
    return FakeMirror()


@pytest.fixture
def coordinator(ledger_store, inbox, mirror):
    coordinator = SyncCoordinator(
        ledger_store,
        inbox,
        mirror,
        cooldown_seconds=0,
        wait_timeout_seconds=5,
        push_backoff_seconds=0,
        push_workers=2,
    )
    try:
        yield coordinator
    finally:
        coordinator.close()


@pytest.fixture
def set_privacy(session_factory):
    """Change the persisted privacy settings."""
    def _set(**values):
        db = session_factory()
        try:
            privacy = get_or_create_privacy_settings(db)
            for name, value in values.items():
                setattr(privacy, name, value)
            db.commit()
        finally:
            db.close()
    return _set


@pytest.fixture(scope="function")
def client(db_session, ledger_store, coordinator):
    """Create a test client with database and service overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ledger_store] = lambda: ledger_store
    app.dependency_overrides[get_sync_coordinator] = lambda: coordinator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
