"""Ecosystem REST API routes.

Paths are relative to the API prefix (/v1). The caller is always the
participant named by the X-Participant-ID header; orchestrator-only
routes are guarded in the services.

Routes:
    GET    /ecosystems                                  — List ecosystems
    POST   /ecosystems                                  — Create (caller orchestrates)
    GET    /ecosystems/me                               — Ecosystems concerning the caller
    GET    /ecosystems/me/invites                       — Invitations addressed to the caller
    GET    /ecosystems/me/requests                      — Join requests made by the caller
    GET    /ecosystems/{id}                             — Get
    PUT    /ecosystems/{id}                             — Update (orchestrator)
    DELETE /ecosystems/{id}                             — Delete (orchestrator)
    POST   /ecosystems/{id}/requests                    — Request to join
    GET    /ecosystems/{id}/requests                    — List join requests (orchestrator)
    PUT    /ecosystems/{id}/requests/{reqId}/authorize  — Authorize a join request
    PUT    /ecosystems/{id}/requests/{reqId}/reject     — Reject a join request
    POST   /ecosystems/{id}/invites                     — Invite a participant
    GET    /ecosystems/{id}/invites                     — Pending invitations (orchestrator)
    POST   /ecosystems/{id}/invites/accept              — Accept the caller's invitation
    POST   /ecosystems/{id}/invites/deny                — Deny the caller's invitation
    PUT    /ecosystems/{id}/offerings                   — Configure the caller's offerings
    POST   /ecosystems/{id}/signature/orchestrator      — Orchestrator signs the contract
    POST   /ecosystems/{id}/signature/participant       — Participant signs the contract
    GET    /ecosystems/{id}/contract                    — Fetch the ecosystem contract
    POST   /ecosystems/{id}/contract                    — Retry contract generation
"""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from exchange_marketplace.api.deps import (
    get_current_participant,
    get_ecosystem_contract_service,
    get_ecosystem_service,
    get_projection_service,
    require_idempotency_key,
)
from exchange_marketplace.api.middleware import error_response
from exchange_marketplace.domain.exceptions import ContractGatewayError
from exchange_marketplace.logging_config import get_logger
from exchange_marketplace.schemas.common import MessageResponse
from exchange_marketplace.schemas.ecosystem import (
    ConfigureOfferingsRequest,
    CreateEcosystemRequest,
    EcosystemResponse,
    EcosystemSignatureRequest,
    EcosystemSignatureResponse,
    InviteParticipantRequest,
    JoinEcosystemRequest,
    MembershipEntryResponse,
    MyMembershipEntryResponse,
    UpdateEcosystemRequest,
    parse_status_filter,
)
from exchange_marketplace.services.ecosystem_contract_service import EcosystemContractService
from exchange_marketplace.services.ecosystem_service import EcosystemService
from exchange_marketplace.services.projection_service import ProjectionService

router = APIRouter(prefix="/ecosystems", tags=["Ecosystems"])
logger = get_logger(__name__)


def _partial_failure(message: str, error: ContractGatewayError, ecosystem: Any) -> JSONResponse:
    """424 envelope for an operation whose local part was kept."""
    return error_response(
        424,
        error.error_msg,
        message,
        {"status": error.status_code, "message": error.message, "ecosystem": ecosystem},
    )


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.get("", response_model=list[EcosystemResponse], summary="List all ecosystems")
async def list_ecosystems(
    caller: str = Depends(get_current_participant),
    svc: EcosystemService = Depends(get_ecosystem_service),
) -> list[EcosystemResponse]:
    return [EcosystemResponse.model_validate(e) for e in await svc.list_all()]


@router.post(
    "",
    response_model=EcosystemResponse,
    status_code=201,
    summary="Create an ecosystem and generate its contract",
    responses={424: {"description": "Ecosystem created, contract generation failed"}},
    dependencies=[Depends(require_idempotency_key)],
)
async def create_ecosystem(
    request: CreateEcosystemRequest,
    caller: str = Depends(get_current_participant),
    svc: EcosystemContractService = Depends(get_ecosystem_contract_service),
) -> EcosystemResponse | JSONResponse:
    result = await svc.create(caller, request.model_dump())
    if result.contract_error is not None:
        return _partial_failure(
            "Failed to generate ecosystem contract",
            result.contract_error,
            str(result.ecosystem.id),
        )
    return EcosystemResponse.model_validate(result.ecosystem)


# ---------------------------------------------------------------------------
# Caller-centric views
# ---------------------------------------------------------------------------


@router.get(
    "/me",
    response_model=list[EcosystemResponse],
    summary="Ecosystems the caller orchestrates, belongs to, or is joining",
)
async def my_ecosystems(
    caller: str = Depends(get_current_participant),
    projections: ProjectionService = Depends(get_projection_service),
) -> list[EcosystemResponse]:
    return [EcosystemResponse.model_validate(e) for e in await projections.my_ecosystems(caller)]


@router.get(
    "/me/invites",
    response_model=list[MyMembershipEntryResponse],
    summary="Invitations addressed to the caller",
)
async def my_invitations(
    status: str | None = Query(default=None),
    caller: str = Depends(get_current_participant),
    projections: ProjectionService = Depends(get_projection_service),
) -> list[MyMembershipEntryResponse]:
    views = await projections.my_invitations(caller, parse_status_filter(status))
    return [MyMembershipEntryResponse.model_validate(v) for v in views]


@router.get(
    "/me/requests",
    response_model=list[MyMembershipEntryResponse],
    summary="Join requests made by the caller",
)
async def my_join_requests(
    status: str | None = Query(default=None),
    caller: str = Depends(get_current_participant),
    projections: ProjectionService = Depends(get_projection_service),
) -> list[MyMembershipEntryResponse]:
    views = await projections.my_join_requests(caller, parse_status_filter(status))
    return [MyMembershipEntryResponse.model_validate(v) for v in views]


# ---------------------------------------------------------------------------
# Single ecosystem
# ---------------------------------------------------------------------------


@router.get("/{ecosystem_id}", response_model=EcosystemResponse, summary="Get an ecosystem")
async def get_ecosystem(
    ecosystem_id: uuid.UUID,
    caller: str = Depends(get_current_participant),
    svc: EcosystemService = Depends(get_ecosystem_service),
) -> EcosystemResponse:
    return EcosystemResponse.model_validate(await svc.get(ecosystem_id))


@router.put(
    "/{ecosystem_id}",
    response_model=EcosystemResponse,
    summary="Update an ecosystem (orchestrator only)",
    responses={424: {"description": "Ecosystem updated, roles injection failed"}},
)
async def update_ecosystem(
    ecosystem_id: uuid.UUID,
    request: UpdateEcosystemRequest,
    caller: str = Depends(get_current_participant),
    svc: EcosystemContractService = Depends(get_ecosystem_contract_service),
) -> EcosystemResponse | JSONResponse:
    changes = request.model_dump(
        exclude_unset=True,
        exclude={"participant_roles", "roles_and_obligations"},
    )
    participant_roles = (
        [assignment.model_dump() for assignment in request.participant_roles]
        if request.participant_roles
        else None
    )
    roles_and_obligations = (
        [item.model_dump(by_alias=True) for item in request.roles_and_obligations]
        if request.roles_and_obligations is not None
        else None
    )

    result = await svc.update(
        ecosystem_id,
        caller,
        changes,
        participant_roles=participant_roles,
        roles_and_obligations=roles_and_obligations,
    )
    body = EcosystemResponse.model_validate(result.ecosystem)
    if result.injection_error is not None:
        return _partial_failure(
            "Failed to inject roles and obligations in ecosystem contract",
            result.injection_error,
            jsonable_encoder(body.model_dump(by_alias=True)),
        )
    return body


@router.delete(
    "/{ecosystem_id}",
    response_model=MessageResponse,
    summary="Delete an ecosystem (orchestrator only)",
)
async def delete_ecosystem(
    ecosystem_id: uuid.UUID,
    caller: str = Depends(get_current_participant),
    svc: EcosystemService = Depends(get_ecosystem_service),
) -> MessageResponse:
    await svc.delete(ecosystem_id, caller)
    return MessageResponse(message="Ecosystem deleted successfully")


# ---------------------------------------------------------------------------
# Join requests
# ---------------------------------------------------------------------------


@router.post(
    "/{ecosystem_id}/requests",
    response_model=MembershipEntryResponse,
    status_code=201,
    summary="Request to join (accepts a pending invitation instead, if any)",
)
async def request_to_join(
    ecosystem_id: uuid.UUID,
    request: JoinEcosystemRequest,
    response: Response,
    caller: str = Depends(get_current_participant),
    svc: EcosystemService = Depends(get_ecosystem_service),
) -> MembershipEntryResponse:
    entry, created = await svc.request_to_join(ecosystem_id, caller, request.roles)
    if not created:
        response.status_code = 200
    return MembershipEntryResponse.model_validate(entry)


@router.get(
    "/{ecosystem_id}/requests",
    response_model=list[MembershipEntryResponse],
    summary="List join requests, optionally filtered by status (orchestrator only)",
)
async def list_join_requests(
    ecosystem_id: uuid.UUID,
    filter: str | None = Query(default=None),  # noqa: A002
    caller: str = Depends(get_current_participant),
    svc: EcosystemService = Depends(get_ecosystem_service),
) -> list[MembershipEntryResponse]:
    requests = await svc.list_join_requests(ecosystem_id, caller, parse_status_filter(filter))
    return [MembershipEntryResponse.model_validate(r) for r in requests]


@router.put(
    "/{ecosystem_id}/requests/{request_id}/authorize",
    response_model=MembershipEntryResponse,
    summary="Authorize a join request (orchestrator only)",
)
async def authorize_join_request(
    ecosystem_id: uuid.UUID,
    request_id: uuid.UUID,
    caller: str = Depends(get_current_participant),
    svc: EcosystemService = Depends(get_ecosystem_service),
) -> MembershipEntryResponse:
    entry = await svc.authorize_join_request(ecosystem_id, caller, request_id)
    return MembershipEntryResponse.model_validate(entry)


@router.put(
    "/{ecosystem_id}/requests/{request_id}/reject",
    response_model=MembershipEntryResponse,
    summary="Reject a join request (orchestrator only)",
)
async def reject_join_request(
    ecosystem_id: uuid.UUID,
    request_id: uuid.UUID,
    caller: str = Depends(get_current_participant),
    svc: EcosystemService = Depends(get_ecosystem_service),
) -> MembershipEntryResponse:
    entry = await svc.reject_join_request(ecosystem_id, caller, request_id)
    return MembershipEntryResponse.model_validate(entry)


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


@router.post(
    "/{ecosystem_id}/invites",
    response_model=MembershipEntryResponse,
    summary="Invite a participant (authorizes their pending join request instead, if any)",
)
async def invite_participant(
    ecosystem_id: uuid.UUID,
    request: InviteParticipantRequest,
    caller: str = Depends(get_current_participant),
    svc: EcosystemService = Depends(get_ecosystem_service),
) -> MembershipEntryResponse:
    entry = await svc.invite(ecosystem_id, caller, request.participant_id, request.roles)
    return MembershipEntryResponse.model_validate(entry)


@router.get(
    "/{ecosystem_id}/invites",
    response_model=list[MembershipEntryResponse],
    summary="Pending invitations of an ecosystem (orchestrator only)",
)
async def list_pending_invitations(
    ecosystem_id: uuid.UUID,
    caller: str = Depends(get_current_participant),
    svc: EcosystemService = Depends(get_ecosystem_service),
) -> list[MembershipEntryResponse]:
    invitations = await svc.list_pending_invitations(ecosystem_id, caller)
    return [MembershipEntryResponse.model_validate(i) for i in invitations]


@router.post(
    "/{ecosystem_id}/invites/accept",
    response_model=MembershipEntryResponse,
    summary="Accept the caller's pending invitation",
)
async def accept_invitation(
    ecosystem_id: uuid.UUID,
    caller: str = Depends(get_current_participant),
    svc: EcosystemService = Depends(get_ecosystem_service),
) -> MembershipEntryResponse:
    return MembershipEntryResponse.model_validate(await svc.accept_invitation(ecosystem_id, caller))


@router.post(
    "/{ecosystem_id}/invites/deny",
    response_model=MembershipEntryResponse,
    summary="Deny the caller's invitation",
)
async def deny_invitation(
    ecosystem_id: uuid.UUID,
    caller: str = Depends(get_current_participant),
    svc: EcosystemService = Depends(get_ecosystem_service),
) -> MembershipEntryResponse:
    return MembershipEntryResponse.model_validate(await svc.deny_invitation(ecosystem_id, caller))


# ---------------------------------------------------------------------------
# Offerings
# ---------------------------------------------------------------------------


@router.put(
    "/{ecosystem_id}/offerings",
    response_model=EcosystemResponse,
    summary="Configure the offerings the caller brings to the ecosystem",
)
async def configure_offerings(
    ecosystem_id: uuid.UUID,
    request: ConfigureOfferingsRequest,
    caller: str = Depends(get_current_participant),
    svc: EcosystemService = Depends(get_ecosystem_service),
) -> EcosystemResponse:
    offerings = [offering.model_dump(by_alias=True) for offering in request.offerings]
    ecosystem = await svc.configure_offerings(ecosystem_id, caller, offerings)
    return EcosystemResponse.model_validate(ecosystem)


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


@router.post(
    "/{ecosystem_id}/signature/orchestrator",
    response_model=EcosystemSignatureResponse,
    summary="Orchestrator signs the ecosystem contract",
)
async def sign_as_orchestrator(
    ecosystem_id: uuid.UUID,
    request: EcosystemSignatureRequest,
    caller: str = Depends(get_current_participant),
    svc: EcosystemContractService = Depends(get_ecosystem_contract_service),
) -> EcosystemSignatureResponse:
    contract = await svc.sign_as_orchestrator(ecosystem_id, caller, request.signature)
    return EcosystemSignatureResponse(contract=contract)


@router.post(
    "/{ecosystem_id}/signature/participant",
    response_model=EcosystemSignatureResponse,
    summary="Participant signs the ecosystem contract and joins",
)
async def sign_as_participant(
    ecosystem_id: uuid.UUID,
    request: EcosystemSignatureRequest,
    caller: str = Depends(get_current_participant),
    svc: EcosystemContractService = Depends(get_ecosystem_contract_service),
) -> EcosystemSignatureResponse:
    contract = await svc.sign_as_participant(ecosystem_id, caller, request.signature)
    return EcosystemSignatureResponse(contract=contract)


@router.get("/{ecosystem_id}/contract", summary="Fetch the ecosystem contract")
async def get_contract(
    ecosystem_id: uuid.UUID,
    caller: str = Depends(get_current_participant),
    svc: EcosystemContractService = Depends(get_ecosystem_contract_service),
) -> dict:
    return await svc.get_contract(ecosystem_id)


@router.post(
    "/{ecosystem_id}/contract",
    status_code=201,
    summary="Generate the contract after a failed creation-time attempt (orchestrator only)",
)
async def create_contract(
    ecosystem_id: uuid.UUID,
    caller: str = Depends(get_current_participant),
    svc: EcosystemContractService = Depends(get_ecosystem_contract_service),
) -> dict:
    contract = await svc.create_contract(ecosystem_id, caller)
    logger.info("ecosystem.contract_retry_succeeded", ecosystem_id=str(ecosystem_id))
    return contract
