"""Bilateral negotiation REST API routes.

These endpoints provide the HTTP interface for the exchange configuration
lifecycle. The MCP tools in mcp_server/tools.py call the same service
layer, ensuring consistency. Paths are relative to the API prefix (/v1).

Routes:
    POST   /negotiation                 — Open an access request
    GET    /negotiation                 — List the caller's configurations
    GET    /negotiation/{id}            — Get a configuration
    GET    /negotiation/{id}/status     — Status with allowed transitions
    PUT    /negotiation/{id}            — Provider authorizes
    PUT    /negotiation/{id}/accept     — Consumer accepts
    PUT    /negotiation/{id}/negotiate  — Counter-proposal
    PUT    /negotiation/{id}/sign       — Sign
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from exchange_marketplace.api.deps import get_current_participant, get_negotiation_service
from exchange_marketplace.schemas.negotiation import (
    AuthorizeNegotiationRequest,
    CreateNegotiationRequest,
    NegotiatePoliciesRequest,
    NegotiationResponse,
    NegotiationStatusResponse,
    SignNegotiationRequest,
)
from exchange_marketplace.services.negotiation_service import NegotiationService

router = APIRouter(prefix="/negotiation", tags=["Negotiation"])


def _policies(rules: list) -> list[dict]:
    return [rule.model_dump(by_alias=True) for rule in rules]


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=NegotiationResponse,
    status_code=201,
    summary="Open an access request between two service offerings",
)
async def create_negotiation(
    request: CreateNegotiationRequest,
    caller: str = Depends(get_current_participant),
    svc: NegotiationService = Depends(get_negotiation_service),
) -> NegotiationResponse:
    configuration = await svc.create(
        caller=caller,
        provider=request.provider,
        consumer=request.consumer,
        provider_service_offering=request.provider_service_offering,
        consumer_service_offering=request.consumer_service_offering,
    )
    return NegotiationResponse.model_validate(configuration)


@router.get(
    "",
    response_model=list[NegotiationResponse],
    summary="List the exchange configurations the caller is a party of",
)
async def list_negotiations(
    caller: str = Depends(get_current_participant),
    svc: NegotiationService = Depends(get_negotiation_service),
) -> list[NegotiationResponse]:
    configurations = await svc.list_for(caller)
    return [NegotiationResponse.model_validate(c) for c in configurations]


@router.get(
    "/{configuration_id}",
    response_model=NegotiationResponse,
    summary="Get an exchange configuration",
)
async def get_negotiation(
    configuration_id: uuid.UUID,
    caller: str = Depends(get_current_participant),
    svc: NegotiationService = Depends(get_negotiation_service),
) -> NegotiationResponse:
    configuration = await svc.get(configuration_id, caller)
    return NegotiationResponse.model_validate(configuration)


@router.get(
    "/{configuration_id}/status",
    response_model=NegotiationStatusResponse,
    summary="Get the negotiation status and the transitions allowed from it",
)
async def get_negotiation_status(
    configuration_id: uuid.UUID,
    caller: str = Depends(get_current_participant),
    svc: NegotiationService = Depends(get_negotiation_service),
) -> NegotiationStatusResponse:
    status = await svc.get_status(configuration_id, caller)
    return NegotiationStatusResponse.model_validate(status)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@router.put(
    "/{configuration_id}",
    response_model=NegotiationResponse,
    summary="Provider authorizes the access request",
)
async def authorize_negotiation(
    configuration_id: uuid.UUID,
    request: AuthorizeNegotiationRequest,
    caller: str = Depends(get_current_participant),
    svc: NegotiationService = Depends(get_negotiation_service),
) -> NegotiationResponse:
    configuration = await svc.authorize(configuration_id, caller, _policies(request.policy))
    return NegotiationResponse.model_validate(configuration)


@router.put(
    "/{configuration_id}/accept",
    response_model=NegotiationResponse,
    summary="Consumer accepts the provider's terms",
)
async def accept_negotiation(
    configuration_id: uuid.UUID,
    caller: str = Depends(get_current_participant),
    svc: NegotiationService = Depends(get_negotiation_service),
) -> NegotiationResponse:
    configuration = await svc.accept(configuration_id, caller)
    return NegotiationResponse.model_validate(configuration)


@router.put(
    "/{configuration_id}/negotiate",
    response_model=NegotiationResponse,
    summary="Counter-propose the policies",
)
async def negotiate_policies(
    configuration_id: uuid.UUID,
    request: NegotiatePoliciesRequest,
    caller: str = Depends(get_current_participant),
    svc: NegotiationService = Depends(get_negotiation_service),
) -> NegotiationResponse:
    configuration = await svc.negotiate(configuration_id, caller, _policies(request.policy))
    return NegotiationResponse.model_validate(configuration)


@router.put(
    "/{configuration_id}/sign",
    response_model=NegotiationResponse,
    summary="Sign the exchange configuration",
)
async def sign_negotiation(
    configuration_id: uuid.UUID,
    request: SignNegotiationRequest,
    caller: str = Depends(get_current_participant),
    svc: NegotiationService = Depends(get_negotiation_service),
) -> NegotiationResponse:
    configuration = await svc.sign(configuration_id, caller, request.signature)
    return NegotiationResponse.model_validate(configuration)
