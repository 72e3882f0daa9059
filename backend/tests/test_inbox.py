"""Tests for inbox sources."""

import json
import pytest
from datetime import datetime, timezone

from smsledger.exceptions import PermissionDenied
from smsledger.services.inbox import (
    JsonlInboxSource,
    is_transaction_sender,
    looks_like_transaction_message,
    message_from_dict,
)

from conftest import OTP, UPI_CREDIT, UPI_DEBIT

SINCE = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def export_file(tmp_path):
    path = tmp_path / "inbox.jsonl"
    lines = [
        json.dumps({"address": "VM-HDFCBK", "body": UPI_DEBIT, "date": 1736071200000}),
        json.dumps({"sender": "AX-PAYTMB", "body": UPI_CREDIT, "date": "2025-01-05T10:00:00Z"}),
        json.dumps({"sender": "AX-OLDMSG", "body": UPI_CREDIT, "date": "2024-06-01T10:00:00+00:00"}),
        "not json",
        json.dumps({"sender": "X", "date": 1736071200000}),
        "",
    ]
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


class TestJsonlInboxSource:

    def test_reads_messages_since(self, export_file):
        source = JsonlInboxSource(str(export_file), access_granted=True)
        assert source.request_permission() is True

        messages = list(source.read_messages(SINCE))
        assert [m.sender for m in messages] == ["VM-HDFCBK", "AX-PAYTMB"]
        assert messages[0].received_at == datetime(2025, 1, 5, 10, 0, tzinfo=timezone.utc)
        assert messages[1].body == UPI_CREDIT

    def test_not_granted_by_config(self, export_file):
        source = JsonlInboxSource(str(export_file), access_granted=False)
        assert source.request_permission() is False
        with pytest.raises(PermissionDenied):
            list(source.read_messages(SINCE))

    def test_missing_export(self, tmp_path):
        source = JsonlInboxSource(str(tmp_path / "missing.jsonl"), access_granted=True)
        assert source.request_permission() is False
        assert source.has_permission() is False


class TestMessageFromDict:

    def test_epoch_millis(self):
        message = message_from_dict({"address": "VM-SBIINB", "body": "hi", "date": 0})
        assert message.received_at == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_missing_fields(self):
        assert message_from_dict({"body": "hi"}) is None
        assert message_from_dict({"date": 0}) is None
        assert message_from_dict({"body": "hi", "date": "yesterday"}) is None


class TestPrefilter:

    def test_transaction_sender(self):
        assert is_transaction_sender("VM-HDFCBK")
        assert is_transaction_sender("JD-PAYTMB")
        assert not is_transaction_sender("VM-SWIGGY")
        assert not is_transaction_sender(None)

    def test_transaction_like_message(self):
        assert looks_like_transaction_message(UPI_DEBIT)
        assert looks_like_transaction_message(UPI_CREDIT)
        assert not looks_like_transaction_message(OTP)
        assert not looks_like_transaction_message("Lunch at 1?")
