"""HTTP routes for the consignment handshake.

Handlers are plain ``def`` so FastAPI runs them in its threadpool; the
stores do blocking file and SQLite I/O.
"""

from __future__ import annotations

import base64

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from consignproxy.core.errors import ValidationError
from consignproxy.core.handshake import MSG_TOKEN_MISSING, HandshakeService
from consignproxy.models.records import AckState
from consignproxy.models.responses import (
    AckRequest,
    AckStatusEnvelope,
    ConsignmentEnvelope,
    Envelope,
)

router = APIRouter(tags=["consignments"])


def get_service(request: Request) -> HandshakeService:
    return request.app.state.service


@router.get("/consignment/{blindedutxo}", response_model=ConsignmentEnvelope)
def get_consignment(
    blindedutxo: str,
    service: HandshakeService = Depends(get_service),
) -> ConsignmentEnvelope:
    data = service.fetch(blindedutxo)
    return ConsignmentEnvelope(consignment=base64.b64encode(data).decode("ascii"))


@router.post("/consignment", response_model=Envelope)
def post_consignment(
    consignment: UploadFile | None = File(None),
    blindedutxo: str | None = Form(None),
    service: HandshakeService = Depends(get_service),
) -> Envelope:
    # A form submitted without choosing a file still sends a part with
    # filename="" and no content.
    source = consignment.file if consignment is not None and consignment.filename else None
    service.upload(blindedutxo, source)
    return Envelope()


@router.post("/ack", response_model=Envelope)
def post_ack(
    payload: AckRequest,
    service: HandshakeService = Depends(get_service),
) -> Envelope:
    service.acknowledge(payload.blindedutxo, AckState.ACKED)
    return Envelope()


@router.post("/nack", response_model=Envelope)
def post_nack(
    payload: AckRequest,
    service: HandshakeService = Depends(get_service),
) -> Envelope:
    service.acknowledge(payload.blindedutxo, AckState.NACKED)
    return Envelope()


@router.get("/ack/{blindedutxo}", response_model=AckStatusEnvelope)
def get_ack(
    blindedutxo: str,
    service: HandshakeService = Depends(get_service),
) -> AckStatusEnvelope:
    record = service.query_ack(blindedutxo)
    return AckStatusEnvelope(ack=record.ack, nack=record.nack)


# Path parameters cannot be empty, so a bare collection path means the
# token was left out.
@router.get("/consignment", include_in_schema=False)
@router.get("/ack", include_in_schema=False)
def missing_token() -> Envelope:
    raise ValidationError(MSG_TOKEN_MISSING)
