"""
Sync coordinator: inbox -> extract -> dedup -> local insert -> remote mirror.

One coordinator per process. It owns the per-user single-flight state, the
debounce window and the background executor for remote pushes.
"""

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Set

from smsledger.config import settings
from smsledger.exceptions import PermissionDenied, RemotePushFailed, StorageUnavailable
from smsledger.models.sync_run import SyncRun, SyncStatus
from smsledger.models.transaction import SmsTransaction
from smsledger.parsers import extract
from smsledger.parsers.base import TransactionCandidate
from smsledger.parsers.fields import as_utc
from smsledger.schemas.sync import RemoteReport, SyncOutcome, SyncProgress
from smsledger.schemas.transaction import MirrorRecord
from smsledger.security import hash_message
from smsledger.services.deduplication_service import build_identity_key
from smsledger.services.inbox import InboxMessage, InboxSource, is_candidate_message
from smsledger.services.ledger_store import InsertResult, LedgerStore, PrivacyConfig
from smsledger.services.remote_mirror import RemoteMirror, push_with_retry

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Flight:
    """One executing run; waiters block on `done` and read `outcome`."""
    done: threading.Event = field(default_factory=threading.Event)
    outcome: Optional[SyncOutcome] = None


@dataclass
class _UserSyncState:
    lock: threading.Lock = field(default_factory=threading.Lock)
    flight: Optional[_Flight] = None
    last_started: Optional[float] = None
    last_outcome: Optional[SyncOutcome] = None
    scanned: int = 0
    total: int = 0
    inserted: int = 0
    remote: RemoteReport = field(default_factory=RemoteReport)


class SyncCoordinator:
    """Single-flight, debounced SMS sync per user."""

    def __init__(
        self,
        store: LedgerStore,
        inbox: InboxSource,
        mirror: Optional[RemoteMirror] = None,
        *,
        cooldown_seconds: Optional[float] = None,
        wait_timeout_seconds: Optional[float] = None,
        lookback_days: Optional[int] = None,
        push_retries: Optional[int] = None,
        push_backoff_seconds: Optional[float] = None,
        push_workers: Optional[int] = None,
        prefilter: bool = True,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow
    ):
        self.store = store
        self.inbox = inbox
        self.mirror = mirror
        self.cooldown_seconds = settings.sync_cooldown_seconds if cooldown_seconds is None else cooldown_seconds
        self.wait_timeout_seconds = (
            settings.sync_wait_timeout_seconds if wait_timeout_seconds is None else wait_timeout_seconds
        )
        self.lookback_days = settings.sync_lookback_days if lookback_days is None else lookback_days
        self.push_retries = settings.remote_push_retries if push_retries is None else push_retries
        self.push_backoff_seconds = (
            settings.remote_push_backoff_seconds if push_backoff_seconds is None else push_backoff_seconds
        )
        self.prefilter = prefilter
        self._clock = clock
        self._now = now

        self._states: Dict[str, _UserSyncState] = {}
        self._states_guard = threading.Lock()

        self._executor: Optional[ThreadPoolExecutor] = None
        if mirror is not None:
            self._executor = ThreadPoolExecutor(
                max_workers=push_workers or settings.remote_push_workers,
                thread_name_prefix="remote-mirror",
            )
        self._pending: Set[Future] = set()
        self._pending_guard = threading.Lock()

        self._stop = threading.Event()
        self._periodic: List[threading.Thread] = []

    def _state(self, user_id: str) -> _UserSyncState:
        with self._states_guard:
            state = self._states.get(user_id)
            if state is None:
                state = self._states[user_id] = _UserSyncState()
            return state

    # Permission passthrough for the API

    def has_permission(self) -> bool:
        return self.inbox.has_permission()

    def request_permission(self) -> bool:
        return self.inbox.request_permission()

    def sync(self, user_id: str, from_date: Optional[datetime] = None, *, manual: bool = True) -> SyncOutcome:
        """
        Run one sync for the user, or join the one already running.

        A manual call inside the cooldown window returns the previous outcome
        marked debounced. A concurrent caller waits for the in-flight run and
        gets its outcome marked coalesced, or status in_progress on timeout.
        """
        if not user_id:
            raise ValueError("user_id is required")
        requested_since = as_utc(from_date) if from_date else None
        state = self._state(user_id)

        with state.lock:
            flight = state.flight
            if flight is None:
                if (
                    manual
                    and state.last_outcome is not None
                    and state.last_started is not None
                    and self._clock() - state.last_started < self.cooldown_seconds
                ):
                    logger.debug(f"Sync for {user_id} debounced")
                    return state.last_outcome.model_copy(update={"debounced": True})
                flight = state.flight = _Flight()
                state.last_started = self._clock()
                state.scanned = state.total = state.inserted = 0
                owner = True
            else:
                owner = False

        if not owner:
            if flight.done.wait(self.wait_timeout_seconds) and flight.outcome is not None:
                return flight.outcome.model_copy(update={"coalesced": True})
            return SyncOutcome(user_id=user_id, status=SyncStatus.in_progress, retryable=True)

        started_at = self._now()
        since = requested_since or started_at - timedelta(days=self.lookback_days)
        outcome = SyncOutcome(user_id=user_id, status=SyncStatus.completed, started_at=started_at)
        try:
            try:
                self._run(outcome, since, state)
            except Exception as e:
                logger.exception(f"Sync for {user_id} aborted after {outcome.inserted_count} inserts")
                outcome.status = SyncStatus.failed
                outcome.retryable = True
                outcome.error = f"Sync aborted by an unexpected error: {e}"
            return self._finish(outcome, since)
        finally:
            with state.lock:
                flight.outcome = outcome
                state.last_outcome = outcome
                state.flight = None
            flight.done.set()

    def _run(self, outcome: SyncOutcome, since: datetime, state: _UserSyncState) -> None:
        """Fill in `outcome`; storage and permission problems end the run early."""
        user_id = outcome.user_id

        if not self.inbox.has_permission() and not self.inbox.request_permission():
            logger.info(f"Inbox permission denied for user {user_id}")
            outcome.status = SyncStatus.permission_denied
            outcome.error = "SMS inbox read permission not granted"
            return

        try:
            privacy = self.store.privacy_snapshot()
            messages = [m for m in self.inbox.read_messages(since) if as_utc(m.received_at) >= since]
        except PermissionDenied as e:
            outcome.status = SyncStatus.permission_denied
            outcome.error = str(e)
            return
        except StorageUnavailable as e:
            outcome.status = SyncStatus.storage_unavailable
            outcome.retryable = True
            outcome.error = str(e)
            return
        except OSError as e:
            logger.error(f"Reading inbox failed for user {user_id}: {e}")
            outcome.status = SyncStatus.failed
            outcome.retryable = True
            outcome.error = f"Inbox unavailable: {e}"
            return

        state.total = len(messages)
        logger.info(f"Sync for {user_id}: {len(messages)} messages since {since.isoformat()}")

        for message in messages:
            state.scanned += 1
            outcome.scanned += 1
            if self.prefilter and not is_candidate_message(message):
                outcome.unparseable += 1
                continue
            candidate = extract(message.body, message.received_at, sender=message.sender)
            if candidate is None:
                outcome.unparseable += 1
                continue

            record = self._build_record(user_id, message, candidate, privacy)
            try:
                result = self.store.insert_if_absent(record)
            except StorageUnavailable as e:
                logger.error(f"Sync for {user_id} stopped after {outcome.inserted_count} inserts: {e}")
                outcome.status = SyncStatus.storage_unavailable
                outcome.retryable = True
                outcome.error = str(e)
                return

            if result is InsertResult.already_exists:
                outcome.skipped_existing += 1
                continue
            outcome.inserted_count += 1
            state.inserted = outcome.inserted_count

            if privacy.persist_remote_transactions and self._executor is not None:
                self._queue_push(user_id, record, state)
                outcome.remote_queued += 1

    def _build_record(
        self,
        user_id: str,
        message: InboxMessage,
        candidate: TransactionCandidate,
        privacy: PrivacyConfig
    ) -> SmsTransaction:
        if privacy.store_plain_raw_message:
            raw = message.body
        else:
            raw = hash_message(message.body)
        return SmsTransaction(
            id=str(uuid.uuid4()),
            owner_user_id=user_id,
            identity_key=build_identity_key(user_id, candidate),
            timestamp=candidate.timestamp,
            amount=candidate.amount,
            direction=candidate.direction,
            mode=candidate.mode,
            merchant_name=candidate.merchant_name,
            bank_name=candidate.bank_name,
            category=candidate.category,
            upi_id=candidate.upi_id,
            reference_number=candidate.reference_number,
            account_last4=candidate.account_last4,
            sender=message.sender or None,
            raw_message_or_hash=raw,
            raw_is_hashed=not privacy.store_plain_raw_message,
            created_at=self._now(),
        )

    def _finish(self, outcome: SyncOutcome, since: datetime) -> SyncOutcome:
        outcome.finished_at = self._now()
        run = SyncRun(
            id=str(uuid.uuid4()),
            user_id=outcome.user_id,
            status=outcome.status,
            from_date=since,
            scanned=outcome.scanned,
            inserted=outcome.inserted_count,
            skipped_existing=outcome.skipped_existing,
            unparseable=outcome.unparseable,
            remote_queued=outcome.remote_queued,
            error_message=outcome.error,
            started_at=outcome.started_at,
            finished_at=outcome.finished_at,
        )
        try:
            self.store.record_sync_run(run)
            outcome.run_id = run.id
        except StorageUnavailable as e:
            logger.warning(f"Could not record sync run for {outcome.user_id}: {e}")
        logger.info(
            f"Sync for {outcome.user_id} {outcome.status.value}: "
            f"{outcome.inserted_count} inserted, {outcome.skipped_existing} existing, "
            f"{outcome.unparseable} unparseable"
        )
        return outcome

    # Remote mirroring

    def _queue_push(self, user_id: str, record: SmsTransaction, state: _UserSyncState) -> None:
        payload = MirrorRecord.model_validate(record).model_dump(mode="json")
        with state.lock:
            state.remote.queued += 1
            state.remote.pending += 1
        future = self._executor.submit(self._push, state, payload)
        with self._pending_guard:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _push(self, state: _UserSyncState, payload: dict) -> None:
        pushed = False
        try:
            push_with_retry(self.mirror, payload, self.push_retries, self.push_backoff_seconds)
            pushed = True
        except RemotePushFailed as e:
            logger.warning(f"Remote push of {e.identity_key} failed: {e}")
        except Exception:
            logger.exception(f"Remote push of {payload.get('identity_key')} failed unexpectedly")
        finally:
            with state.lock:
                state.remote.pending -= 1
                if pushed:
                    state.remote.pushed += 1
                else:
                    state.remote.failed += 1

    def _forget(self, future: Future) -> None:
        with self._pending_guard:
            self._pending.discard(future)

    def remote_report(self, user_id: str) -> RemoteReport:
        state = self._state(user_id)
        with state.lock:
            return state.remote.model_copy()

    def wait_for_remote(self, timeout: Optional[float] = None) -> bool:
        """Block until queued pushes finish; False if some are still running."""
        with self._pending_guard:
            futures = set(self._pending)
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    # Progress

    def progress(self, user_id: str) -> SyncProgress:
        state = self._state(user_id)
        with state.lock:
            return SyncProgress(
                user_id=user_id,
                running=state.flight is not None,
                scanned=state.scanned,
                total=state.total,
                inserted=state.inserted,
            )

    def last_outcome(self, user_id: str) -> Optional[SyncOutcome]:
        state = self._state(user_id)
        with state.lock:
            return state.last_outcome

    # Periodic runs

    def start_periodic(self, user_id: str, interval_seconds: float) -> threading.Thread:
        """Sync the user every `interval_seconds` until close()."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        def loop():
            while not self._stop.is_set():
                try:
                    self.sync(user_id, manual=False)
                except Exception as e:
                    logger.error(f"Periodic sync for {user_id} failed: {e}")
                self._stop.wait(interval_seconds)

        thread = threading.Thread(target=loop, name=f"periodic-sync-{user_id}", daemon=True)
        self._periodic.append(thread)
        thread.start()
        return thread

    def close(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        for thread in self._periodic:
            thread.join(timeout)
        self._periodic.clear()
        if self._executor is not None:
            self.wait_for_remote(timeout)
            self._executor.shutdown(wait=False, cancel_futures=True)
