"""
Local ledger store for SMS transactions.

Process-wide: created once at application startup and closed on shutdown.
Writes are serialized per owner; the (owner_user_id, identity_key) unique
constraint backs insert-if-absent when another process writes too.
"""

import enum
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from smsledger.database import build_engine, build_session_factory, init_db
from smsledger.exceptions import StorageUnavailable
from smsledger.models.privacy_settings import get_or_create_privacy_settings
from smsledger.models.sync_run import SyncRun
from smsledger.models.transaction import SmsTransaction
from smsledger.services.deduplication_service import is_duplicate

logger = logging.getLogger(__name__)


class InsertResult(str, enum.Enum):
    inserted = "inserted"
    already_exists = "already_exists"


@dataclass(frozen=True)
class PrivacyConfig:
    """Privacy settings as read at the start of a sync run."""
    store_plain_raw_message: bool
    persist_remote_transactions: bool


class LedgerStore:
    """Encrypted-at-rest, append-only store of SMS transactions."""

    def __init__(self, session_factory: sessionmaker, engine: Optional[Engine] = None):
        self._session_factory = session_factory
        self._engine = engine
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_url(cls, database_url: str) -> "LedgerStore":
        """Open (and create if needed) a store with its own engine."""
        engine = build_engine(database_url)
        try:
            init_db(engine)
        except (SQLAlchemyError, OSError) as e:
            engine.dispose()
            raise StorageUnavailable(f"Ledger database unavailable: {e}") from e
        return cls(build_session_factory(engine), engine)

    def _user_lock(self, user_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.Lock()
            return lock

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Ledger storage error: {e}")
            raise StorageUnavailable(f"Ledger storage error: {e}") from e
        finally:
            db.close()

    def insert_if_absent(self, record: SmsTransaction) -> InsertResult:
        """Insert the record unless its owner already has its identity key."""
        with self._user_lock(record.owner_user_id):
            with self._session() as db:
                if is_duplicate(db, record.owner_user_id, record.identity_key):
                    return InsertResult.already_exists
                db.add(record)
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    if is_duplicate(db, record.owner_user_id, record.identity_key):
                        return InsertResult.already_exists
                    raise
                return InsertResult.inserted

    def _ordered(self, db: Session, user_id: str):
        return db.query(SmsTransaction).filter(
            SmsTransaction.owner_user_id == user_id
        ).order_by(
            SmsTransaction.timestamp.desc(),
            SmsTransaction.identity_key.asc()
        )

    def get_all_for_user(self, user_id: str) -> List[SmsTransaction]:
        """All of a user's records, newest first."""
        with self._session() as db:
            return self._ordered(db, user_id).all()

    def get_page_for_user(self, user_id: str, offset: int, limit: int) -> List[SmsTransaction]:
        """
        One page in the fixed order: timestamp descending, identity key
        ascending. Concatenated pages equal get_all_for_user.
        """
        if offset < 0:
            raise ValueError("offset must be >= 0")
        if limit <= 0:
            raise ValueError("limit must be > 0")
        with self._session() as db:
            return self._ordered(db, user_id).offset(offset).limit(limit).all()

    def count_for_user(self, user_id: str) -> int:
        with self._session() as db:
            return db.query(SmsTransaction).filter(SmsTransaction.owner_user_id == user_id).count()

    def get_for_user(self, user_id: str, record_id: str) -> Optional[SmsTransaction]:
        with self._session() as db:
            return db.query(SmsTransaction).filter(
                SmsTransaction.owner_user_id == user_id,
                SmsTransaction.id == record_id
            ).first()

    def privacy_snapshot(self) -> PrivacyConfig:
        with self._session() as db:
            settings = get_or_create_privacy_settings(db)
            return PrivacyConfig(
                store_plain_raw_message=settings.store_plain_raw_message,
                persist_remote_transactions=settings.persist_remote_transactions,
            )

    def record_sync_run(self, run: SyncRun) -> SyncRun:
        with self._session() as db:
            db.add(run)
            db.commit()
            return run

    def list_sync_runs(self, user_id: str, limit: int = 20) -> List[SyncRun]:
        with self._session() as db:
            return db.query(SyncRun).filter(
                SyncRun.user_id == user_id
            ).order_by(SyncRun.started_at.desc()).limit(limit).all()

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
