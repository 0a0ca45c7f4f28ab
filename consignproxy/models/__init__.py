"""Consignproxy data models — all Pydantic v2, all frozen (immutable)."""

from consignproxy.models.records import (
    VALID_ACK_TRANSITIONS,
    AckResult,
    AckState,
    ConsignmentRecord,
    CreateResult,
    PromoteResult,
)
from consignproxy.models.responses import (
    AckRequest,
    AckStatusEnvelope,
    ConsignmentEnvelope,
    Envelope,
    ErrorEnvelope,
)

__all__ = [
    # records
    "AckState",
    "VALID_ACK_TRANSITIONS",
    "ConsignmentRecord",
    "PromoteResult",
    "CreateResult",
    "AckResult",
    # responses
    "Envelope",
    "ErrorEnvelope",
    "ConsignmentEnvelope",
    "AckStatusEnvelope",
    "AckRequest",
]
