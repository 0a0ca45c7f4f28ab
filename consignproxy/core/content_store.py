"""Content-addressed, immutable artifact store with a private staging area.

Storage layout: {base_path}/{sha256[0:2]}/{sha256[2:4]}/{sha256}.dat
Staging layout: {staging_path}/{uuid}.part

Uploads are written to staging first and only then linked into place, so a
partially written file is never visible under its content address.
Artifacts are immutable once stored. The only removal is :meth:`retract`,
which undoes a promotion the caller could not record.
"""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

from pydantic import BaseModel, ConfigDict

from consignproxy.core.hasher import extract_digest, sha256_file, to_address
from consignproxy.models.records import PromoteResult

logger = logging.getLogger(__name__)


class ArtifactNotFoundError(FileNotFoundError):
    """Raised when no artifact is stored under a content address."""


class StagedArtifact(BaseModel):
    """Handle to bytes sitting in the staging area."""

    model_config = ConfigDict(frozen=True)

    path: Path
    size_bytes: int


class ContentAddressedStore:
    """SHA-256 keyed, immutable artifact store.

    Every artifact is stored under its SHA-256 digest. Publishing the same
    content twice leaves the first copy in place. There is no update or
    delete.

    Parameters
    ----------
    base_path:
        Root directory for artifact storage.
    staging_path:
        Directory for in-flight uploads. Must be on the same filesystem as
        ``base_path``. Defaults to ``{base_path}/.staging``.
    """

    def __init__(self, base_path: Path, staging_path: Path | None = None) -> None:
        self._base = Path(base_path)
        self._staging = Path(staging_path) if staging_path else self._base / ".staging"
        self._base.mkdir(parents=True, exist_ok=True)
        self._staging.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    @property
    def staging_path(self) -> Path:
        return self._staging

    def _artifact_path(self, sha256_digest: str) -> Path:
        """Compute the storage path for a SHA-256 digest.

        Layout: {base}/{sha256[0:2]}/{sha256[2:4]}/{sha256}.dat
        """
        return self._base / sha256_digest[:2] / sha256_digest[2:4] / f"{sha256_digest}.dat"

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    def stage(self, source: bytes | BinaryIO) -> StagedArtifact:
        """Write bytes or a binary stream to a private staging file.

        The file is flushed and fsynced before returning.
        """
        path = self._staging / f"{uuid.uuid4().hex}.part"
        try:
            with path.open("xb") as fh:
                if isinstance(source, (bytes, bytearray, memoryview)):
                    fh.write(source)
                else:
                    shutil.copyfileobj(source, fh)
                fh.flush()
                os.fsync(fh.fileno())
        except BaseException:
            path.unlink(missing_ok=True)
            raise
        staged = StagedArtifact(path=path, size_bytes=path.stat().st_size)
        logger.debug("Staged %d bytes at %s", staged.size_bytes, path)
        return staged

    def address_of(self, staged: StagedArtifact) -> str:
        """Return the content address (``sha256:<hex>``) of staged bytes."""
        return to_address(sha256_file(staged.path))

    def discard(self, staged: StagedArtifact) -> None:
        """Remove a staged file. Safe to call more than once."""
        staged.path.unlink(missing_ok=True)

    @contextmanager
    def staging(self, source: bytes | BinaryIO) -> Iterator[StagedArtifact]:
        """Stage ``source`` for the duration of the block.

        The staging file is removed on every exit path, whether the block
        promoted it, rejected it, or raised.
        """
        staged = self.stage(source)
        try:
            yield staged
        finally:
            self.discard(staged)

    # ------------------------------------------------------------------
    # Promote
    # ------------------------------------------------------------------

    def promote(self, staged: StagedArtifact, content_address: str) -> PromoteResult:
        """Publish staged bytes under ``content_address``.

        Uses a hard link, which fails instead of replacing an existing
        file, so two concurrent promotions of the same content cannot
        clobber each other. The staged file itself is left for the caller
        (or :meth:`staging`) to discard.
        """
        digest = extract_digest(content_address)
        path = self._artifact_path(digest)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            path.hardlink_to(staged.path)
        except FileExistsError:
            logger.debug("Artifact %s already stored", content_address)
            return PromoteResult.ALREADY_EXISTS
        logger.info("Stored artifact %s (%d bytes)", content_address, staged.size_bytes)
        return PromoteResult.CREATED

    def retract(self, content_address: str) -> None:
        """Undo a promotion whose caller failed before recording it.

        Only for artifacts the caller itself just created; stored
        artifacts are otherwise never removed.
        """
        self._artifact_path(extract_digest(content_address)).unlink(missing_ok=True)
        logger.warning("Retracted unrecorded artifact %s", content_address)

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def read(self, content_address: str) -> bytes:
        """Retrieve artifact bytes by content address.

        Parameters
        ----------
        content_address:
            Either "sha256:<hex>" or just the hex digest.
        """
        path = self._artifact_path(extract_digest(content_address))
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise ArtifactNotFoundError(f"Artifact not found: {content_address}") from None

    # ------------------------------------------------------------------
    # Check and verify
    # ------------------------------------------------------------------

    def exists(self, content_address: str) -> bool:
        """Check if an artifact exists in the store."""
        return self._artifact_path(extract_digest(content_address)).exists()

    def verify(self, content_address: str) -> bool:
        """Re-hash stored data and compare against the content address.

        Returns True if the stored bytes match the expected hash.
        """
        digest = extract_digest(content_address)
        path = self._artifact_path(digest)
        if not path.exists():
            return False
        return sha256_file(path) == digest

    def iter_addresses(self) -> Iterator[str]:
        """Yield the address of every stored artifact."""
        for path in sorted(self._base.glob("*/*/*.dat")):
            yield to_address(path.stem)
