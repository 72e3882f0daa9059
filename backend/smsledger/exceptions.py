"""
Error taxonomy for the ledger.

Unparseable messages are not represented here: the extractor returns None
for them and the sync coordinator only counts them. A sync that finds
another run in flight is reported through SyncStatus.in_progress.
"""


class LedgerError(Exception):
    """Base class for ledger errors."""

    retryable = False


class StorageUnavailable(LedgerError):
    """Local store I/O failed (database, key file or decryption)."""

    retryable = True


class PermissionDenied(LedgerError):
    """Inbox access was not granted."""


class RemotePushFailed(LedgerError):
    """A best-effort remote mirror write failed."""

    retryable = True

    def __init__(self, message: str, identity_key: str = "", status_code: int = None):
        super().__init__(message)
        self.identity_key = identity_key
        self.status_code = status_code
