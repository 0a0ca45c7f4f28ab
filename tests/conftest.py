"""Shared test fixtures for Consignproxy."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from consignproxy.api.app import create_app
from consignproxy.config import ProxyConfig
from consignproxy.core.content_store import ContentAddressedStore
from consignproxy.core.handshake import HandshakeService
from consignproxy.core.record_store import RecordStore


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def content_store(tmp_dir: Path) -> ContentAddressedStore:
    """Provide a fresh ContentAddressedStore in a temp directory."""
    return ContentAddressedStore(tmp_dir / "consignments", staging_path=tmp_dir / "tmp")


@pytest.fixture
def record_store(tmp_dir: Path) -> RecordStore:
    """Provide a fresh RecordStore backed by a temp SQLite database."""
    return RecordStore(tmp_dir / "app.db")


@pytest.fixture
def service(
    content_store: ContentAddressedStore, record_store: RecordStore
) -> HandshakeService:
    """Provide a HandshakeService wired to the test stores."""
    return HandshakeService(content_store, record_store)


@pytest.fixture
def client(service: HandshakeService) -> TestClient:
    """Provide an HTTP client for an app around the test service."""
    return TestClient(create_app(service))


@pytest.fixture
def settings(tmp_dir: Path) -> ProxyConfig:
    """Provide a ProxyConfig rooted in the temp directory."""
    return ProxyConfig(data_dir=tmp_dir / "data")


@pytest.fixture
def token() -> str:
    """Provide a deterministic test blinded UTXO."""
    return "utxob:test-blinded-utxo-001"


@pytest.fixture
def make_consignment() -> Callable[[str], bytes]:
    """Factory fixture: distinct consignment bytes per label."""

    def _factory(label: str = "default") -> bytes:
        return f"consignment::{label}::".encode() + bytes(range(256))

    return _factory


@pytest.fixture
def uploaded(
    service: HandshakeService, token: str, make_consignment: Callable[[str], bytes]
) -> bytes:
    """Upload a consignment under ``token`` and return its bytes."""
    data = make_consignment("uploaded")
    service.upload(token, data)
    return data
