"""Consignment record models — one record per blinded UTXO.

A record's ack state moves at most once, from UNSET to ACKED or NACKED.
Both terminal states have no outgoing transitions.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AckState(str, Enum):
    """Handshake outcome recorded against a token."""

    UNSET = "unset"
    ACKED = "acked"
    NACKED = "nacked"


# Valid ack transitions — enforced by RecordStore.set_ack_state.
VALID_ACK_TRANSITIONS: dict[AckState, set[AckState]] = {
    AckState.UNSET: {AckState.ACKED, AckState.NACKED},
    AckState.ACKED: set(),  # terminal
    AckState.NACKED: set(),  # terminal
}


class PromoteResult(str, Enum):
    """Outcome of publishing a staged artifact under its content address."""

    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


class CreateResult(str, Enum):
    """Outcome of inserting a record for a token."""

    CREATED = "created"
    CONFLICT = "conflict"


class AckResult(str, Enum):
    """Outcome of the conditional ack/nack update."""

    OK = "ok"
    ALREADY_RESPONDED = "already_responded"
    NOT_FOUND = "not_found"


class ConsignmentRecord(BaseModel):
    """Stored handshake state for a single blinded UTXO.

    The artifact bytes live in the content store; the record only keeps
    their address.
    """

    model_config = ConfigDict(frozen=True)

    token: str
    artifact_address: str  # "sha256:<hex>"
    ack_state: AckState = AckState.UNSET
    responded: bool = False
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    responded_at: datetime | None = None

    @model_validator(mode="after")
    def _responded_matches_state(self) -> ConsignmentRecord:
        if self.responded != (self.ack_state is not AckState.UNSET):
            raise ValueError(
                f"responded={self.responded} is inconsistent with "
                f"ack_state={self.ack_state.value}"
            )
        return self

    @property
    def ack(self) -> bool:
        return self.ack_state is AckState.ACKED

    @property
    def nack(self) -> bool:
        return self.ack_state is AckState.NACKED
