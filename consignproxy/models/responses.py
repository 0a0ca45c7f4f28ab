"""JSON envelopes returned by the HTTP API.

Every response carries ``success``; errors add ``error`` when there is a
message worth showing to the client.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Envelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True


class ErrorEnvelope(Envelope):
    success: bool = False
    error: str | None = None


class ConsignmentEnvelope(Envelope):
    consignment: str  # base64 of the stored artifact bytes


class AckStatusEnvelope(Envelope):
    ack: bool
    nack: bool


class AckRequest(BaseModel):
    """Body of ``POST /ack`` and ``POST /nack``."""

    blindedutxo: str | None = None
