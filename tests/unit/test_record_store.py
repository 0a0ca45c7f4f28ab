"""Tests for the RecordStore — first-writer-wins creation, one-shot ack."""

from __future__ import annotations

import pytest

from consignproxy.core.record_store import RecordStore
from consignproxy.models.records import AckResult, AckState, CreateResult

ADDRESS = "sha256:" + "ab" * 32


class TestCreate:
    def test_create_and_find(self, record_store: RecordStore):
        assert record_store.create("utxo-1", ADDRESS) is CreateResult.CREATED
        record = record_store.find_by_token("utxo-1")
        assert record is not None
        assert record.artifact_address == ADDRESS
        assert record.ack_state is AckState.UNSET
        assert record.responded is False
        assert record.responded_at is None

    def test_find_unknown(self, record_store: RecordStore):
        assert record_store.find_by_token("nope") is None

    def test_duplicate_token_conflicts(self, record_store: RecordStore):
        record_store.create("utxo-1", ADDRESS)
        assert record_store.create("utxo-1", "sha256:" + "cd" * 32) is CreateResult.CONFLICT
        assert record_store.find_by_token("utxo-1").artifact_address == ADDRESS

    def test_records_survive_reopen(self, record_store: RecordStore, tmp_dir):
        record_store.create("utxo-1", ADDRESS)
        reopened = RecordStore(tmp_dir / "app.db")
        assert reopened.find_by_token("utxo-1") is not None

    def test_list_and_count(self, record_store: RecordStore):
        for i in range(3):
            record_store.create(f"utxo-{i}", ADDRESS)
        assert record_store.count() == 3
        assert len(record_store.list_records(limit=2)) == 2


class TestSetAckState:
    @pytest.mark.parametrize("state", [AckState.ACKED, AckState.NACKED])
    def test_first_response_wins(self, record_store: RecordStore, state):
        record_store.create("utxo-1", ADDRESS)
        assert record_store.set_ack_state("utxo-1", state) is AckResult.OK
        record = record_store.find_by_token("utxo-1")
        assert record.ack_state is state
        assert record.responded is True
        assert record.responded_at is not None

    def test_second_response_rejected(self, record_store: RecordStore):
        record_store.create("utxo-1", ADDRESS)
        record_store.set_ack_state("utxo-1", AckState.ACKED)
        assert record_store.set_ack_state("utxo-1", AckState.NACKED) is AckResult.ALREADY_RESPONDED
        assert record_store.set_ack_state("utxo-1", AckState.ACKED) is AckResult.ALREADY_RESPONDED
        assert record_store.find_by_token("utxo-1").ack_state is AckState.ACKED

    def test_unknown_token(self, record_store: RecordStore):
        assert record_store.set_ack_state("nope", AckState.ACKED) is AckResult.NOT_FOUND

    def test_cannot_reset_to_unset(self, record_store: RecordStore):
        record_store.create("utxo-1", ADDRESS)
        with pytest.raises(ValueError):
            record_store.set_ack_state("utxo-1", AckState.UNSET)
