"""Consignproxy: consignment exchange with a one-shot ack/nack handshake.

A client uploads a consignment under a blinded UTXO, the counterparty
fetches it as often as needed and then acks or nacks it exactly once.
"""

__version__ = "0.1.0"

from consignproxy.core.handshake import HandshakeService, build_service
from consignproxy.api.app import create_app

__all__ = ["HandshakeService", "build_service", "create_app", "__version__"]
