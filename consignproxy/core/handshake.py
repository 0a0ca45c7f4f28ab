"""Consignment handshake — upload once, fetch many times, respond once.

The HandshakeService sits between the HTTP routes and the two stores:

- ``upload``       stage → hash → duplicate check → promote → create record
- ``fetch``        record lookup → artifact read
- ``acknowledge``  record lookup → fast-path check → conditional update
- ``query_ack``    record lookup

Duplicate uploads are detected by content, not by token: sending bytes
that are already stored is rejected even under a token never seen before.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import BinaryIO

from consignproxy.config import ProxyConfig
from consignproxy.core.content_store import ArtifactNotFoundError, ContentAddressedStore
from consignproxy.core.errors import Conflict, InternalError, NotFound, ValidationError
from consignproxy.core.record_store import RecordStore
from consignproxy.models.records import (
    AckResult,
    AckState,
    ConsignmentRecord,
    CreateResult,
    PromoteResult,
)

logger = logging.getLogger(__name__)

MSG_TOKEN_MISSING = "blindedutxo missing!"
MSG_FILE_MISSING = "Consignment file is missing!"
MSG_NOT_FOUND = "No consignment found!"
MSG_ALREADY_UPLOADED = "File already uploaded!"
MSG_ALREADY_RESPONDED = "Already responded!"


class HandshakeService:
    """Orchestrates the consignment handshake over injected stores.

    Parameters
    ----------
    content_store:
        Where consignment bytes are staged and stored.
    record_store:
        Where per-token handshake state lives.
    """

    def __init__(
        self,
        content_store: ContentAddressedStore,
        record_store: RecordStore,
    ) -> None:
        self._content = content_store
        self._records = record_store

    @property
    def content_store(self) -> ContentAddressedStore:
        return self._content

    @property
    def record_store(self) -> RecordStore:
        return self._records

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload(self, token: str | None, source: bytes | BinaryIO | None) -> ConsignmentRecord:
        """Store a consignment and create the record for ``token``.

        Raises
        ------
        ValidationError
            No file, or no token.
        Conflict
            The same bytes are already stored.
        InternalError
            ``token`` already has a record for different content, or
            storage failed.
        """
        if source is None:
            raise ValidationError(MSG_FILE_MISSING)
        if not token:
            raise ValidationError(MSG_TOKEN_MISSING)

        try:
            with self._content.staging(source) as staged:
                address = self._content.address_of(staged)

                if self._content.exists(address):
                    logger.info("Rejected upload for %s: %s already stored", token, address)
                    raise Conflict(MSG_ALREADY_UPLOADED)

                if self._records.find_by_token(token) is not None:
                    raise InternalError(f"Record for {token} already exists")

                if self._content.promote(staged, address) is PromoteResult.ALREADY_EXISTS:
                    logger.info("Rejected upload for %s: %s stored concurrently", token, address)
                    raise Conflict(MSG_ALREADY_UPLOADED)

                try:
                    created = self._records.create(token, address)
                except BaseException:
                    self._content.retract(address)
                    raise
                if created is CreateResult.CONFLICT:
                    self._content.retract(address)
                    raise InternalError(f"Record for {token} created concurrently")
        except InternalError:
            logger.exception("Upload failed for %s", token)
            raise
        except (OSError, sqlite3.Error) as exc:
            logger.exception("Upload failed for %s", token)
            raise InternalError(str(exc)) from exc

        logger.info("Stored consignment %s for %s", address, token)
        record = self._records.find_by_token(token)
        if record is None:
            raise InternalError(f"Record for {token} vanished after creation")
        return record

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    def fetch(self, token: str | None) -> bytes:
        """Return the consignment bytes uploaded for ``token``."""
        record = self._require_record(token)
        try:
            return self._content.read(record.artifact_address)
        except ArtifactNotFoundError as exc:
            logger.exception(
                "Record %s points at missing artifact %s", token, record.artifact_address
            )
            raise InternalError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Acknowledge
    # ------------------------------------------------------------------

    def acknowledge(self, token: str | None, state: AckState) -> ConsignmentRecord:
        """Record an ack or nack for ``token``, exactly once.

        The ``responded`` check on the fetched record is only a fast path;
        the conditional update in the record store decides.
        """
        record = self._require_record(token)
        if record.responded:
            logger.warning(
                "Rejected %s for %s: already %s", state.value, token, record.ack_state.value
            )
            raise Conflict(MSG_ALREADY_RESPONDED)

        result = self._records.set_ack_state(record.token, state)
        if result is AckResult.ALREADY_RESPONDED:
            logger.warning("Rejected %s for %s: lost race to a concurrent response", state.value, token)
            raise Conflict(MSG_ALREADY_RESPONDED)
        if result is AckResult.NOT_FOUND:
            raise NotFound(MSG_NOT_FOUND)

        logger.info("Recorded %s for %s", state.value, token)
        return self._require_record(record.token)

    def query_ack(self, token: str | None) -> ConsignmentRecord:
        """Return the current record so callers can read its ack state."""
        return self._require_record(token)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_record(self, token: str | None) -> ConsignmentRecord:
        if not token:
            raise ValidationError(MSG_TOKEN_MISSING)
        record = self._records.find_by_token(token)
        if record is None:
            raise NotFound(MSG_NOT_FOUND)
        return record


def build_service(config: ProxyConfig) -> HandshakeService:
    """Create the data directory layout and wire up a HandshakeService."""
    config.ensure_directories()
    return HandshakeService(
        content_store=ContentAddressedStore(
            config.artifact_store_path, staging_path=config.staging_path
        ),
        record_store=RecordStore(config.database_path),
    )
