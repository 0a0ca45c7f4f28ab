"""Tests for HandshakeService — upload, fetch, acknowledge, query."""

from __future__ import annotations

import io
import sqlite3

import pytest

from consignproxy.config import ProxyConfig
from consignproxy.core.errors import Conflict, InternalError, NotFound, ValidationError
from consignproxy.core.handshake import HandshakeService, build_service
from consignproxy.models.records import AckState, CreateResult


class TestUpload:
    def test_upload_creates_unset_record(self, service: HandshakeService, token, make_consignment):
        record = service.upload(token, make_consignment("a"))
        assert record.token == token
        assert record.ack_state is AckState.UNSET
        assert service.content_store.exists(record.artifact_address)

    def test_upload_from_stream(self, service: HandshakeService, token):
        service.upload(token, io.BytesIO(b"streamed consignment"))
        assert service.fetch(token) == b"streamed consignment"

    def test_missing_file(self, service: HandshakeService, token):
        with pytest.raises(ValidationError, match="Consignment file is missing!"):
            service.upload(token, None)

    def test_file_checked_before_token(self, service: HandshakeService):
        with pytest.raises(ValidationError, match="Consignment file is missing!"):
            service.upload(None, None)

    @pytest.mark.parametrize("missing", [None, ""])
    def test_missing_token(self, service: HandshakeService, missing):
        with pytest.raises(ValidationError, match="blindedutxo missing!"):
            service.upload(missing, b"data")

    def test_same_bytes_same_token_rejected(self, service: HandshakeService, token, uploaded):
        with pytest.raises(Conflict, match="File already uploaded!"):
            service.upload(token, uploaded)

    def test_same_bytes_fresh_token_rejected(self, service: HandshakeService, uploaded):
        # Duplicate detection is keyed on content, not on the token.
        with pytest.raises(Conflict, match="File already uploaded!"):
            service.upload("utxob:a-fresh-token", uploaded)
        assert service.record_store.find_by_token("utxob:a-fresh-token") is None

    def test_lost_record_race_retracts_artifact(self, service: HandshakeService, monkeypatch):
        monkeypatch.setattr(
            service.record_store, "create", lambda token, address: CreateResult.CONFLICT
        )
        with pytest.raises(InternalError):
            service.upload("utxo-a", b"contested bytes")
        assert list(service.content_store.iter_addresses()) == []

        monkeypatch.undo()
        service.upload("utxo-b", b"contested bytes")
        assert service.fetch("utxo-b") == b"contested bytes"

    def test_database_failure_retracts_artifact(self, service: HandshakeService, monkeypatch):
        def _locked(token, address):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(service.record_store, "create", _locked)
        with pytest.raises(InternalError):
            service.upload("utxo-a", b"unlucky bytes")
        assert list(service.content_store.iter_addresses()) == []
        assert list(service.content_store.staging_path.iterdir()) == []

    def test_reused_token_with_new_bytes_fails_without_storing(
        self, service: HandshakeService, token, uploaded, make_consignment
    ):
        other = make_consignment("other")
        with pytest.raises(InternalError):
            service.upload(token, other)
        assert service.fetch(token) == uploaded
        assert len(list(service.content_store.iter_addresses())) == 1

    def test_staging_is_empty_after_every_outcome(
        self, service: HandshakeService, token, uploaded, make_consignment
    ):
        with pytest.raises(Conflict):
            service.upload("another", uploaded)
        with pytest.raises(InternalError):
            service.upload(token, make_consignment("other"))
        service.upload("third", make_consignment("third"))
        assert list(service.content_store.staging_path.iterdir()) == []


class TestFetch:
    def test_round_trip(self, service: HandshakeService, token, uploaded):
        assert service.fetch(token) == uploaded

    def test_fetch_many_times(self, service: HandshakeService, token, uploaded):
        assert service.fetch(token) == service.fetch(token) == uploaded

    def test_unknown_token(self, service: HandshakeService):
        with pytest.raises(NotFound, match="No consignment found!"):
            service.fetch("doesnotexist")

    def test_missing_token(self, service: HandshakeService):
        with pytest.raises(ValidationError):
            service.fetch("")

    def test_missing_backing_bytes(self, service: HandshakeService, record_store):
        record_store.create("orphan", "sha256:" + "00" * 32)
        with pytest.raises(InternalError):
            service.fetch("orphan")


class TestAcknowledge:
    @pytest.mark.parametrize("state", [AckState.ACKED, AckState.NACKED])
    def test_acknowledge(self, service: HandshakeService, token, uploaded, state):
        record = service.acknowledge(token, state)
        assert record.ack_state is state
        assert record.responded is True
        assert record.responded_at is not None
        assert service.query_ack(token).ack_state is state

    def test_second_response_rejected(self, service: HandshakeService, token, uploaded):
        service.acknowledge(token, AckState.ACKED)
        with pytest.raises(Conflict, match="Already responded!"):
            service.acknowledge(token, AckState.NACKED)
        with pytest.raises(Conflict):
            service.acknowledge(token, AckState.ACKED)
        record = service.query_ack(token)
        assert (record.ack, record.nack) == (True, False)

    def test_unknown_token(self, service: HandshakeService):
        with pytest.raises(NotFound):
            service.acknowledge("doesnotexist", AckState.ACKED)

    def test_missing_token(self, service: HandshakeService):
        with pytest.raises(ValidationError, match="blindedutxo missing!"):
            service.acknowledge(None, AckState.NACKED)


class TestQueryAck:
    def test_unset_reports_both_false(self, service: HandshakeService, token, uploaded):
        record = service.query_ack(token)
        assert (record.ack, record.nack) == (False, False)

    def test_unknown_token(self, service: HandshakeService):
        with pytest.raises(NotFound):
            service.query_ack("doesnotexist")


def test_build_service_creates_layout(settings: ProxyConfig):
    service = build_service(settings)
    assert settings.staging_path.is_dir()
    assert settings.artifact_store_path.is_dir()
    assert settings.database_path.exists()
    service.upload("utxo", b"bytes")
    assert service.fetch("utxo") == b"bytes"
