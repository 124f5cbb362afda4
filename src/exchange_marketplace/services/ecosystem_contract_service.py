"""Ecosystem Contract Service — keeps ecosystems and their contract in step.

Owns every ecosystem operation that talks to the contract service:
creation (best-effort contract generation), the generation retry,
orchestrator and participant signatures, and the injection of roles
and obligations.

Partial failures that must still commit (creation, injection during an
update) are reported through result objects instead of exceptions, so
the request transaction keeps the local changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from exchange_marketplace.domain.enums import ContractRole
from exchange_marketplace.domain.exceptions import (
    ConflictError,
    ContractGatewayError,
    ContractMissingError,
    ContractNotFoundError,
    ExistingParticipantError,
    OwnershipError,
    ResourceNotFoundError,
    UnauthorizedParticipantError,
)
from exchange_marketplace.domain.membership import find_authorized
from exchange_marketplace.domain.state_machine import validate_transition
from exchange_marketplace.infrastructure.database.orm_models import Ecosystem, EcosystemParticipant
from exchange_marketplace.infrastructure.database.repositories import EcosystemRepository
from exchange_marketplace.logging_config import get_logger
from exchange_marketplace.services.ecosystem_service import EcosystemService

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from exchange_marketplace.domain.contract_gateway import ContractGateway, ContractRef

logger = get_logger(__name__)


@dataclass
class EcosystemCreationResult:
    ecosystem: Ecosystem
    contract_error: ContractGatewayError | None = None


@dataclass
class EcosystemUpdateResult:
    ecosystem: Ecosystem
    injection_error: ContractGatewayError | None = None


class EcosystemContractService:
    """Coordinates ecosystem state with the ecosystem contract."""

    def __init__(self, session: AsyncSession, gateway: ContractGateway) -> None:
        self._session = session
        self._gateway = gateway
        self._repo = EcosystemRepository(session)
        self._ecosystems = EcosystemService(session, gateway)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create(self, orchestrator: str, fields: dict[str, Any]) -> EcosystemCreationResult:
        """Persist the ecosystem, then generate its contract.

        A generation failure keeps the ecosystem; the orchestrator retries
        through create_contract once the contract service is back.
        """
        ecosystem = await self._ecosystems.build(orchestrator, fields)

        try:
            ref = await self._generate(ecosystem)
        except ContractGatewayError as exc:
            logger.warning(
                "ecosystem.contract_generation_failed",
                ecosystem_id=str(ecosystem.id),
                status=exc.status_code,
                error=exc.message,
            )
            return EcosystemCreationResult(ecosystem=ecosystem, contract_error=exc)

        ecosystem.contract = ref.contract_id
        await self._repo.save(ecosystem)
        return EcosystemCreationResult(ecosystem=ecosystem)

    async def create_contract(self, ecosystem_id: uuid.UUID, caller: str) -> dict:
        """Generate the contract of an ecosystem whose creation-time generation failed."""
        ecosystem = await self._get_or_raise(ecosystem_id)
        self._require_orchestrator(ecosystem, caller)

        if ecosystem.contract:
            raise ConflictError(
                "The ecosystem already has a contract",
                data={"contract": ecosystem.contract},
            )

        try:
            ref = await self._generate(ecosystem)
        except ContractGatewayError as exc:
            logger.warning(
                "ecosystem.contract_generation_failed",
                ecosystem_id=str(ecosystem.id),
                status=exc.status_code,
                error=exc.message,
            )
            raise ContractGatewayError.wrapping("Failed to generate ecosystem contract", exc) from exc

        ecosystem.contract = ref.contract_id
        await self._repo.save(ecosystem)
        return ref.document

    async def get_contract(self, ecosystem_id: uuid.UUID) -> dict:
        ecosystem = await self._get_or_raise(ecosystem_id)
        if not ecosystem.contract:
            raise ResourceNotFoundError("Contract", str(ecosystem_id))
        try:
            return await self._gateway.get_by_id(ecosystem.contract)
        except ContractNotFoundError as exc:
            raise ResourceNotFoundError("Contract", ecosystem.contract) from exc

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    async def sign_as_orchestrator(
        self, ecosystem_id: uuid.UUID, caller: str, signature: str
    ) -> dict:
        ecosystem = await self._get_or_raise(ecosystem_id)
        self._require_orchestrator(ecosystem, caller)
        if not ecosystem.contract:
            raise ContractMissingError()

        document = await self._sign(ecosystem, caller, signature, ContractRole.ORCHESTRATOR)
        logger.info("ecosystem.orchestrator_signed", ecosystem_id=str(ecosystem.id))
        return document

    async def sign_as_participant(
        self, ecosystem_id: uuid.UUID, caller: str, signature: str
    ) -> dict:
        """Sign as an authorized invitee or requester and become a participant.

        Only an Authorized entry qualifies; a Signed entry has already been used.
        """
        ecosystem = await self._get_or_raise(ecosystem_id)
        if not ecosystem.contract:
            raise ContractMissingError()

        if any(p.participant == caller for p in ecosystem.participants):
            raise ExistingParticipantError(caller)

        entry = find_authorized(ecosystem.invitations, caller) or find_authorized(
            ecosystem.join_requests, caller
        )
        if entry is None:
            raise UnauthorizedParticipantError()

        document = await self._sign(ecosystem, caller, signature, ContractRole.PARTICIPANT)

        entry.status = validate_transition(entry.status, "sign", machine="membership")
        ecosystem.participants.append(
            EcosystemParticipant(
                participant=caller,
                roles=list(entry.roles),
                offerings=[dict(offering) for offering in entry.offerings],
            )
        )
        await self._repo.save(ecosystem)

        logger.info(
            "ecosystem.participant_signed",
            ecosystem_id=str(ecosystem.id),
            participant=caller,
            roles=entry.roles,
        )
        return document

    # ------------------------------------------------------------------
    # Update with roles and obligations
    # ------------------------------------------------------------------

    async def update(
        self,
        ecosystem_id: uuid.UUID,
        caller: str,
        changes: dict[str, Any],
        participant_roles: list[dict] | None = None,
        roles_and_obligations: list[dict] | None = None,
    ) -> EcosystemUpdateResult:
        """Update the ecosystem and inject roles and obligations into its contract.

        A failed injection leaves the other changes in place and the local
        roles_and_obligations untouched.
        """
        ecosystem = await self._get_or_raise(ecosystem_id)
        self._require_orchestrator(ecosystem, caller)
        if roles_and_obligations is not None and not ecosystem.contract:
            raise ContractMissingError()

        ecosystem = await self._ecosystems.update(ecosystem_id, caller, changes, participant_roles)

        if roles_and_obligations is None:
            return EcosystemUpdateResult(ecosystem=ecosystem)

        try:
            await self._gateway.inject_policies(ecosystem.contract, roles_and_obligations)
        except ContractGatewayError as exc:
            logger.warning(
                "ecosystem.roles_injection_failed",
                ecosystem_id=str(ecosystem.id),
                status=exc.status_code,
                error=exc.message,
            )
            return EcosystemUpdateResult(ecosystem=ecosystem, injection_error=exc)

        ecosystem.roles_and_obligations = [dict(item) for item in roles_and_obligations]
        await self._repo.save(ecosystem)

        logger.info(
            "ecosystem.roles_injected",
            ecosystem_id=str(ecosystem.id),
            roles=len(roles_and_obligations),
        )
        return EcosystemUpdateResult(ecosystem=ecosystem)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _generate(self, ecosystem: Ecosystem) -> ContractRef:
        ref = await self._gateway.generate(
            subject_id=str(ecosystem.id),
            initiator_id=ecosystem.orchestrator,
            role=ContractRole.ORCHESTRATOR.value,
            terms={"ecosystem": str(ecosystem.id), "orchestrator": ecosystem.orchestrator},
        )
        logger.info(
            "ecosystem.contract_generated",
            ecosystem_id=str(ecosystem.id),
            contract_id=ref.contract_id,
        )
        return ref

    async def _sign(
        self,
        ecosystem: Ecosystem,
        caller: str,
        signature: str,
        role: ContractRole,
    ) -> dict:
        try:
            return await self._gateway.sign(
                contract_id=ecosystem.contract,
                participant_id=caller,
                signature=signature,
                role=role.value,
            )
        except ContractGatewayError as exc:
            logger.warning(
                "ecosystem.contract_signature_failed",
                ecosystem_id=str(ecosystem.id),
                participant=caller,
                role=role.value,
                error=exc.message,
            )
            raise ContractGatewayError.wrapping("Failed to sign ecosystem contract", exc) from exc

    async def _get_or_raise(self, ecosystem_id: uuid.UUID) -> Ecosystem:
        ecosystem = await self._repo.get_by_id(ecosystem_id)
        if ecosystem is None:
            raise ResourceNotFoundError("Ecosystem", str(ecosystem_id))
        return ecosystem

    @staticmethod
    def _require_orchestrator(ecosystem: Ecosystem, caller: str) -> None:
        if caller != ecosystem.orchestrator:
            raise OwnershipError("Only the ecosystem orchestrator can perform this operation")

