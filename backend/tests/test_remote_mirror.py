"""Tests for the HTTP remote mirror."""

import httpx
import json
import pytest

from smsledger.exceptions import RemotePushFailed
from smsledger.services.remote_mirror import HttpRemoteMirror, push_with_retry

from conftest import FakeMirror

PAYLOAD = {
    "identity_key": "abc123",
    "owner_user_id": "user-1",
    "amount": "500.00",
    "direction": "debit",
}


def make_mirror(handler):
    client = httpx.Client(
        base_url="https://mirror.test/api",
        transport=httpx.MockTransport(handler),
        headers={"Authorization": "Bearer token"},
    )
    return HttpRemoteMirror("https://mirror.test/api", client=client)


class TestHttpRemoteMirror:

    def test_puts_under_identity_key(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        make_mirror(handler).push(PAYLOAD)

        request = seen[0]
        assert request.method == "PUT"
        assert request.url.path == "/api/users/user-1/sms_transactions/abc123"
        assert request.headers["Authorization"] == "Bearer token"
        assert json.loads(request.content) == PAYLOAD

    def test_error_status_raises(self):
        mirror = make_mirror(lambda request: httpx.Response(503))
        with pytest.raises(RemotePushFailed) as exc_info:
            mirror.push(PAYLOAD)
        assert exc_info.value.status_code == 503
        assert exc_info.value.identity_key == "abc123"
        assert exc_info.value.retryable is True

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(RemotePushFailed) as exc_info:
            make_mirror(handler).push(PAYLOAD)
        assert exc_info.value.status_code is None


class TestPushWithRetry:

    def test_retries_with_backoff(self):
        mirror = FakeMirror(fail_times=2)
        delays = []
        push_with_retry(mirror, PAYLOAD, retries=3, backoff_seconds=0.5, sleep=delays.append)
        assert mirror.attempts == 3
        assert delays == [0.5, 1.0]

    def test_gives_up_after_retries(self):
        mirror = FakeMirror(fail_times=-1)
        with pytest.raises(RemotePushFailed):
            push_with_retry(mirror, PAYLOAD, retries=2, backoff_seconds=0, sleep=lambda s: None)
        assert mirror.attempts == 3

    def test_client_error_not_retried(self):
        mirror = FakeMirror(fail_times=-1, status_code=400)
        with pytest.raises(RemotePushFailed):
            push_with_retry(mirror, PAYLOAD, retries=3, backoff_seconds=0, sleep=lambda s: None)
        assert mirror.attempts == 1

    def test_rate_limit_is_retried(self):
        mirror = FakeMirror(fail_times=1, status_code=429)
        push_with_retry(mirror, PAYLOAD, retries=3, backoff_seconds=0, sleep=lambda s: None)
        assert mirror.attempts == 2
