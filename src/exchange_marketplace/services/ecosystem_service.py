"""Ecosystem Service — membership and invitation engine.

Invitations (orchestrator-initiated) and join requests (participant-initiated)
share one MembershipStateMachine. Opening either flow first resolves where
the participant currently stands, so a pending entry on the other side is
accepted instead of duplicated.

All mutations go through the Ecosystem aggregate and end in one
EcosystemRepository.save(), which performs the versioned root UPDATE.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from statemachine.exceptions import TransitionNotAllowed

from exchange_marketplace.domain.enums import (
    ORCHESTRATOR_ROLE,
    MembershipResolution,
    MembershipStatus,
)
from exchange_marketplace.domain.exceptions import (
    ConflictError,
    ContractGatewayError,
    ExistingParticipantError,
    InvalidTransitionError,
    InvitationError,
    JoinRequestNotFoundError,
    OwnershipError,
    ResourceNotFoundError,
    UnauthorizedParticipantError,
)
from exchange_marketplace.domain.membership import find_live, find_pending, resolve_membership
from exchange_marketplace.domain.state_machine import MembershipStateMachine
from exchange_marketplace.infrastructure.database.orm_models import (
    Ecosystem,
    EcosystemInvitation,
    EcosystemJoinRequest,
    EcosystemParticipant,
)
from exchange_marketplace.infrastructure.database.repositories import EcosystemRepository
from exchange_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from exchange_marketplace.domain.contract_gateway import ContractGateway

logger = get_logger(__name__)

DESCRIPTIVE_FIELDS = (
    "name",
    "description",
    "logo",
    "country_or_region",
    "target_audience",
    "main_functionalities_needed",
    "searched_data",
    "searched_services",
    "use_cases",
)

MembershipRow = EcosystemInvitation | EcosystemJoinRequest

_AUTHORIZED_ENTRIES = (
    MembershipResolution.AUTHORIZED_INVITATION,
    MembershipResolution.AUTHORIZED_JOIN_REQUEST,
)


class EcosystemService:
    """Manages ecosystems and their membership entries."""

    def __init__(self, session: AsyncSession, gateway: ContractGateway | None = None) -> None:
        self._session = session
        self._gateway = gateway
        self._repo = EcosystemRepository(session)

    # ------------------------------------------------------------------
    # Ecosystem CRUD
    # ------------------------------------------------------------------

    async def build(self, orchestrator: str, fields: dict[str, Any]) -> Ecosystem:
        """Persist a new ecosystem with its orchestrator seeded as a participant.

        Contract generation is left to EcosystemContractService.create.
        """
        ecosystem = Ecosystem(
            orchestrator=orchestrator,
            **{key: value for key, value in fields.items() if key in DESCRIPTIVE_FIELDS},
        )
        ecosystem.participants = [
            EcosystemParticipant(participant=orchestrator, roles=[ORCHESTRATOR_ROLE], offerings=[])
        ]
        ecosystem.invitations = []
        ecosystem.join_requests = []
        ecosystem = await self._repo.create(ecosystem)

        logger.info("ecosystem.created", ecosystem_id=str(ecosystem.id), orchestrator=orchestrator)
        return ecosystem

    async def get(self, ecosystem_id: uuid.UUID) -> Ecosystem:
        return await self._get_or_raise(ecosystem_id)

    async def list_all(self) -> list[Ecosystem]:
        return await self._repo.list_all()

    async def update(
        self,
        ecosystem_id: uuid.UUID,
        caller: str,
        changes: dict[str, Any],
        participant_roles: list[dict] | None = None,
    ) -> Ecosystem:
        """Apply descriptive changes and role assignments (orchestrator only)."""
        ecosystem = await self._get_or_raise(ecosystem_id)
        self._require_orchestrator(ecosystem, caller)

        for key, value in changes.items():
            if key in DESCRIPTIVE_FIELDS:
                setattr(ecosystem, key, value)

        if participant_roles:
            self._assign_roles(ecosystem, participant_roles)

        await self._repo.save(ecosystem)
        logger.info(
            "ecosystem.updated",
            ecosystem_id=str(ecosystem.id),
            fields=sorted(k for k in changes if k in DESCRIPTIVE_FIELDS),
        )
        return ecosystem

    async def delete(self, ecosystem_id: uuid.UUID, caller: str) -> None:
        """Delete the ecosystem; the contract is removed on a best-effort basis."""
        ecosystem = await self._get_or_raise(ecosystem_id)
        self._require_orchestrator(ecosystem, caller)

        if ecosystem.contract and self._gateway is not None:
            try:
                await self._gateway.delete(ecosystem.contract)
            except ContractGatewayError as exc:
                logger.warning(
                    "ecosystem.contract_delete_failed",
                    ecosystem_id=str(ecosystem.id),
                    contract_id=ecosystem.contract,
                    error=exc.message,
                )

        await self._repo.delete(ecosystem)
        logger.info("ecosystem.deleted", ecosystem_id=str(ecosystem_id))

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def invite(
        self,
        ecosystem_id: uuid.UUID,
        caller: str,
        participant: str,
        roles: list[str],
    ) -> MembershipRow:
        """Invite a participant, or authorize their pending join request on our terms."""
        ecosystem = await self._get_or_raise(ecosystem_id)
        self._require_orchestrator(ecosystem, caller)

        membership = resolve_membership(ecosystem, participant)

        if membership.resolution == MembershipResolution.PARTICIPANT:
            raise ExistingParticipantError(participant)

        if membership.resolution == MembershipResolution.PENDING_JOIN_REQUEST:
            join_request = membership.entry
            self._fire_transition(join_request, "authorize")
            join_request.status = MembershipStatus.AUTHORIZED.value
            join_request.roles = list(roles)
            await self._repo.save(ecosystem)
            logger.info(
                "ecosystem.join_request_authorized_by_invite",
                ecosystem_id=str(ecosystem.id),
                participant=participant,
            )
            return join_request

        if membership.resolution == MembershipResolution.PENDING_INVITATION:
            raise ConflictError(
                "A pending invitation already exists for this participant",
                data={"id": str(membership.entry.id)},
            )

        if membership.resolution in _AUTHORIZED_ENTRIES:
            raise ConflictError(
                "Participant already holds an authorized membership entry",
                data={"id": str(membership.entry.id)},
            )

        invitation = EcosystemInvitation(
            id=uuid.uuid4(),
            participant=participant,
            roles=list(roles),
            offerings=[],
            status=MembershipStatus.PENDING.value,
        )
        ecosystem.invitations.append(invitation)
        await self._repo.save(ecosystem)

        logger.info("ecosystem.invited", ecosystem_id=str(ecosystem.id), participant=participant)
        return invitation

    async def accept_invitation(self, ecosystem_id: uuid.UUID, caller: str) -> EcosystemInvitation:
        """Accept the caller's pending invitation; offerings are configured afterwards."""
        ecosystem = await self._get_or_raise(ecosystem_id)

        invitation = find_pending(ecosystem.invitations, caller)
        if invitation is None:
            raise InvitationError("An error occurred when trying to accept the invitation")

        self._accept(invitation)
        await self._repo.save(ecosystem)

        logger.info("ecosystem.invitation_accepted", ecosystem_id=str(ecosystem.id), participant=caller)
        return invitation

    async def deny_invitation(self, ecosystem_id: uuid.UUID, caller: str) -> EcosystemInvitation:
        ecosystem = await self._get_or_raise(ecosystem_id)

        invitation = next(
            (
                inv
                for inv in ecosystem.invitations
                if inv.participant == caller
                and inv.status in (MembershipStatus.PENDING, MembershipStatus.AUTHORIZED)
            ),
            None,
        )
        if invitation is None:
            raise InvitationError("No pending invitation to deny")

        self._fire_transition(invitation, "reject")
        invitation.status = MembershipStatus.REJECTED.value
        await self._repo.save(ecosystem)

        logger.info("ecosystem.invitation_denied", ecosystem_id=str(ecosystem.id), participant=caller)
        return invitation

    async def list_pending_invitations(
        self, ecosystem_id: uuid.UUID, caller: str
    ) -> list[EcosystemInvitation]:
        ecosystem = await self._get_or_raise(ecosystem_id)
        self._require_orchestrator(ecosystem, caller)
        return [inv for inv in ecosystem.invitations if inv.status == MembershipStatus.PENDING]

    # ------------------------------------------------------------------
    # Join requests
    # ------------------------------------------------------------------

    async def request_to_join(
        self,
        ecosystem_id: uuid.UUID,
        caller: str,
        roles: list[str],
    ) -> tuple[MembershipRow, bool]:
        """Ask to join, or accept the caller's pending invitation.

        Returns the entry and whether a new join request was created.
        """
        ecosystem = await self._get_or_raise(ecosystem_id)
        membership = resolve_membership(ecosystem, caller)

        if membership.resolution == MembershipResolution.PARTICIPANT:
            raise ExistingParticipantError(caller)

        if membership.resolution == MembershipResolution.PENDING_INVITATION:
            invitation = membership.entry
            self._accept(invitation)
            await self._repo.save(ecosystem)
            logger.info(
                "ecosystem.invitation_accepted_by_request",
                ecosystem_id=str(ecosystem.id),
                participant=caller,
            )
            return invitation, False

        if membership.resolution == MembershipResolution.PENDING_JOIN_REQUEST:
            raise ConflictError(
                "A pending join request already exists for this participant",
                data={"id": str(membership.entry.id)},
            )

        if membership.resolution in _AUTHORIZED_ENTRIES:
            raise ConflictError(
                "Participant already holds an authorized membership entry",
                data={"id": str(membership.entry.id)},
            )

        join_request = EcosystemJoinRequest(
            id=uuid.uuid4(),
            participant=caller,
            roles=list(roles),
            offerings=[],
            status=MembershipStatus.PENDING.value,
        )
        ecosystem.join_requests.append(join_request)
        await self._repo.save(ecosystem)

        logger.info("ecosystem.join_requested", ecosystem_id=str(ecosystem.id), participant=caller)
        return join_request, True

    async def authorize_join_request(
        self, ecosystem_id: uuid.UUID, caller: str, request_id: uuid.UUID
    ) -> EcosystemJoinRequest:
        return await self._decide_join_request(ecosystem_id, caller, request_id, "authorize")

    async def reject_join_request(
        self, ecosystem_id: uuid.UUID, caller: str, request_id: uuid.UUID
    ) -> EcosystemJoinRequest:
        return await self._decide_join_request(ecosystem_id, caller, request_id, "reject")

    async def list_join_requests(
        self,
        ecosystem_id: uuid.UUID,
        caller: str,
        status: MembershipStatus | None = None,
    ) -> list[EcosystemJoinRequest]:
        """List the join requests, optionally filtered by status (orchestrator only)."""
        ecosystem = await self._get_or_raise(ecosystem_id)
        self._require_orchestrator(ecosystem, caller)
        if status is None:
            return list(ecosystem.join_requests)
        return [jr for jr in ecosystem.join_requests if jr.status == status]

    # ------------------------------------------------------------------
    # Offerings and roles
    # ------------------------------------------------------------------

    async def configure_offerings(
        self,
        ecosystem_id: uuid.UUID,
        caller: str,
        offerings: list[dict],
    ) -> Ecosystem:
        """Set the caller's offerings on every live entry they hold."""
        ecosystem = await self._get_or_raise(ecosystem_id)

        entries: list[Any] = [
            *find_live(ecosystem.invitations, caller),
            *find_live(ecosystem.join_requests, caller),
            *(p for p in ecosystem.participants if p.participant == caller),
        ]
        if not entries:
            raise UnauthorizedParticipantError()

        for entry in entries:
            entry.offerings = [dict(offering) for offering in offerings]
        await self._repo.save(ecosystem)

        logger.info(
            "ecosystem.offerings_configured",
            ecosystem_id=str(ecosystem.id),
            participant=caller,
            offerings=len(offerings),
        )
        return ecosystem

    async def set_participant_roles(
        self,
        ecosystem_id: uuid.UUID,
        caller: str,
        assignments: list[dict],
    ) -> Ecosystem:
        """Bulk-replace roles on invitations and join requests (orchestrator only)."""
        ecosystem = await self._get_or_raise(ecosystem_id)
        self._require_orchestrator(ecosystem, caller)
        self._assign_roles(ecosystem, assignments)
        await self._repo.save(ecosystem)
        return ecosystem

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_or_raise(self, ecosystem_id: uuid.UUID) -> Ecosystem:
        ecosystem = await self._repo.get_by_id(ecosystem_id)
        if ecosystem is None:
            raise ResourceNotFoundError("Ecosystem", str(ecosystem_id))
        return ecosystem

    @staticmethod
    def _require_orchestrator(ecosystem: Ecosystem, caller: str) -> None:
        if caller != ecosystem.orchestrator:
            raise OwnershipError("Only the ecosystem orchestrator can perform this operation")

    async def _decide_join_request(
        self,
        ecosystem_id: uuid.UUID,
        caller: str,
        request_id: uuid.UUID,
        event_name: str,
    ) -> EcosystemJoinRequest:
        ecosystem = await self._get_or_raise(ecosystem_id)
        self._require_orchestrator(ecosystem, caller)

        join_request = next((jr for jr in ecosystem.join_requests if jr.id == request_id), None)
        if join_request is None:
            raise JoinRequestNotFoundError(str(request_id))

        join_request.status = self._fire_transition(join_request, event_name)
        await self._repo.save(ecosystem)

        logger.info(
            "ecosystem.join_request_decided",
            decision=event_name,
            ecosystem_id=str(ecosystem.id),
            request_id=str(request_id),
            participant=join_request.participant,
        )
        return join_request

    def _accept(self, invitation: EcosystemInvitation) -> None:
        self._fire_transition(invitation, "authorize")
        invitation.status = MembershipStatus.AUTHORIZED.value
        invitation.offerings = []

    @staticmethod
    def _assign_roles(ecosystem: Ecosystem, assignments: list[dict]) -> None:
        roles_by_participant = {a["participant_id"]: list(a["roles"]) for a in assignments}
        for entry in (*ecosystem.invitations, *ecosystem.join_requests):
            roles = roles_by_participant.get(entry.participant)
            if roles is not None:
                entry.roles = list(roles)

    @staticmethod
    def _fire_transition(entry: MembershipRow, event_name: str) -> str:
        """Fire a membership transition and return the new status."""
        sm = MembershipStateMachine(current_status=entry.status)
        try:
            getattr(sm, event_name)()
        except TransitionNotAllowed as err:
            raise InvalidTransitionError(
                entry.status,
                event_name,
                f"Cannot {event_name} a membership entry that is {entry.status}",
            ) from err
        return sm.status
