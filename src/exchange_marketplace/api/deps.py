"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
contract gateways and the caller identity. Tests override
get_bilateral_gateway / get_ecosystem_gateway with in-memory gateways.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from exchange_marketplace.domain.contract_gateway import ContractGateway
from exchange_marketplace.domain.enums import ContractKind
from exchange_marketplace.domain.exceptions import DuplicateOperationError
from exchange_marketplace.infrastructure.contract_client import build_contract_gateway
from exchange_marketplace.infrastructure.database.engine import get_async_session
from exchange_marketplace.infrastructure.redis_client import claim_idempotency
from exchange_marketplace.services.ecosystem_contract_service import EcosystemContractService
from exchange_marketplace.services.ecosystem_service import EcosystemService
from exchange_marketplace.services.negotiation_service import NegotiationService
from exchange_marketplace.services.projection_service import ProjectionService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


def get_bilateral_gateway() -> ContractGateway:
    return build_contract_gateway(ContractKind.BILATERAL)


def get_ecosystem_gateway() -> ContractGateway:
    return build_contract_gateway(ContractKind.ECOSYSTEM)


async def get_current_participant(
    participant_id: str | None = Header(default=None, alias="X-Participant-ID"),
) -> str:
    """Caller identity, set by the authenticating gateway in front of this service."""
    if not participant_id:
        raise HTTPException(status_code=401, detail="Missing participant identity")
    return participant_id


async def require_idempotency_key(
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
) -> str | None:
    """Reject a replayed Idempotency-Key header; requests without one pass through."""
    if idempotency_key and not await claim_idempotency(idempotency_key):
        raise DuplicateOperationError(idempotency_key)
    return idempotency_key


def get_negotiation_service(
    session: AsyncSession = Depends(get_db_session),
    gateway: ContractGateway = Depends(get_bilateral_gateway),
) -> NegotiationService:
    return NegotiationService(session, gateway)


def get_ecosystem_service(
    session: AsyncSession = Depends(get_db_session),
    gateway: ContractGateway = Depends(get_ecosystem_gateway),
) -> EcosystemService:
    return EcosystemService(session, gateway)


def get_ecosystem_contract_service(
    session: AsyncSession = Depends(get_db_session),
    gateway: ContractGateway = Depends(get_ecosystem_gateway),
) -> EcosystemContractService:
    return EcosystemContractService(session, gateway)


def get_projection_service(
    session: AsyncSession = Depends(get_db_session),
) -> ProjectionService:
    return ProjectionService(session)
