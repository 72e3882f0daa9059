"""
Remote mirror for ingested transactions.

Best-effort only: the local ledger is the source of truth and a failed push
never undoes a local insert. Records are written under a deterministic
document id (the identity key), so repeated pushes are idempotent.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import httpx

from smsledger.exceptions import RemotePushFailed

logger = logging.getLogger(__name__)

# Client errors that will not succeed on retry
_PERMANENT_STATUS = frozenset(range(400, 500)) - {408, 425, 429}


class RemoteMirror(ABC):
    """Destination for remote copies of ledger records"""

    @abstractmethod
    def push(self, payload: Dict[str, Any]) -> None:
        """Upsert one record. Raises RemotePushFailed."""
        pass

    def close(self) -> None:
        pass


class HttpRemoteMirror(RemoteMirror):
    """
    Mirror over a JSON document API:
    PUT {base_url}/users/{owner_user_id}/sms_transactions/{identity_key}
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
        )

    def push(self, payload: Dict[str, Any]) -> None:
        identity_key = payload["identity_key"]
        path = f"/users/{quote(payload['owner_user_id'], safe='')}/sms_transactions/{identity_key}"
        try:
            resp = self._client.put(path, json=payload)
        except httpx.HTTPError as e:
            raise RemotePushFailed(f"Remote mirror unreachable: {e}", identity_key) from e
        if resp.status_code >= 400:
            raise RemotePushFailed(
                f"Remote mirror rejected record with HTTP {resp.status_code}",
                identity_key,
                resp.status_code,
            )

    def close(self) -> None:
        self._client.close()


def push_with_retry(
    mirror: RemoteMirror,
    payload: Dict[str, Any],
    retries: int = 3,
    backoff_seconds: float = 0.5,
    sleep: Callable[[float], None] = time.sleep
) -> None:
    """Push with exponential backoff; re-raises the last RemotePushFailed."""
    attempt = 0
    while True:
        try:
            mirror.push(payload)
            return
        except RemotePushFailed as e:
            attempt += 1
            if attempt > retries or e.status_code in _PERMANENT_STATUS:
                raise
            delay = backoff_seconds * (2 ** (attempt - 1))
            logger.debug(f"Retrying remote push of {e.identity_key} in {delay:.2f}s: {e}")
            sleep(delay)
