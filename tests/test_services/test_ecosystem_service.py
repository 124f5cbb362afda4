"""Tests for ecosystem membership: invitations, join requests, offerings and roles."""

from __future__ import annotations

import uuid

import pytest
import pytest_asyncio

from conftest import MEMBER, ORCHESTRATOR, OUTSIDER
from exchange_marketplace.domain.enums import MembershipStatus
from exchange_marketplace.domain.exceptions import (
    ConflictError,
    ExistingParticipantError,
    InvalidTransitionError,
    InvitationError,
    JoinRequestNotFoundError,
    OwnershipError,
    ResourceNotFoundError,
    UnauthorizedParticipantError,
)
from exchange_marketplace.infrastructure.database.orm_models import EcosystemParticipant
from exchange_marketplace.services.ecosystem_service import EcosystemService

OFFERINGS = [{"serviceOffering": "offering-soil-sensors", "policy": []}]


@pytest.fixture
def svc(session, ecosystem_gateway) -> EcosystemService:
    return EcosystemService(session, ecosystem_gateway)


@pytest_asyncio.fixture
async def ecosystem(svc, ecosystem_fields):
    return await svc.build(ORCHESTRATOR, ecosystem_fields)


class TestBuildAndUpdate:
    @pytest.mark.asyncio
    async def test_orchestrator_is_seeded_as_participant(self, ecosystem) -> None:
        assert ecosystem.orchestrator == ORCHESTRATOR
        assert [(p.participant, p.roles) for p in ecosystem.participants] == [
            (ORCHESTRATOR, ["Orchestrator"])
        ]
        assert ecosystem.contract is None
        assert ecosystem.invitations == []

    @pytest.mark.asyncio
    async def test_unknown_fields_are_ignored(self, svc) -> None:
        ecosystem = await svc.build(ORCHESTRATOR, {"name": "X", "orchestrator": OUTSIDER})
        assert ecosystem.orchestrator == ORCHESTRATOR

    @pytest.mark.asyncio
    async def test_update_descriptive_fields(self, svc, ecosystem) -> None:
        updated = await svc.update(ecosystem.id, ORCHESTRATOR, {"name": "Renamed", "contract": "x"})
        assert updated.name == "Renamed"
        assert updated.contract is None

    @pytest.mark.asyncio
    async def test_update_requires_orchestrator(self, svc, ecosystem) -> None:
        with pytest.raises(OwnershipError, match="Only the ecosystem orchestrator"):
            await svc.update(ecosystem.id, MEMBER, {"name": "Hijacked"})

    @pytest.mark.asyncio
    async def test_get_unknown(self, svc) -> None:
        with pytest.raises(ResourceNotFoundError):
            await svc.get(uuid.uuid4())


class TestInvitations:
    @pytest.mark.asyncio
    async def test_invite_then_accept(self, svc, ecosystem) -> None:
        invitation = await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, ["data-provider"])
        assert invitation.status == MembershipStatus.PENDING
        assert invitation.roles == ["data-provider"]

        accepted = await svc.accept_invitation(ecosystem.id, MEMBER)
        assert accepted is invitation
        assert accepted.status == MembershipStatus.AUTHORIZED
        assert accepted.offerings == []

    @pytest.mark.asyncio
    async def test_only_orchestrator_invites(self, svc, ecosystem) -> None:
        with pytest.raises(OwnershipError):
            await svc.invite(ecosystem.id, MEMBER, OUTSIDER, [])

    @pytest.mark.asyncio
    async def test_second_pending_invitation_conflicts(self, svc, ecosystem) -> None:
        invitation = await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, [])
        with pytest.raises(ConflictError) as exc_info:
            await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, [])
        assert exc_info.value.data == {"id": str(invitation.id)}

    @pytest.mark.asyncio
    async def test_cannot_invite_participant(self, svc, ecosystem) -> None:
        with pytest.raises(ExistingParticipantError):
            await svc.invite(ecosystem.id, ORCHESTRATOR, ORCHESTRATOR, [])

    @pytest.mark.asyncio
    async def test_invite_authorizes_pending_join_request(self, svc, ecosystem) -> None:
        join_request, _ = await svc.request_to_join(ecosystem.id, MEMBER, ["consumer"])

        entry = await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, ["data-provider"])

        assert entry is join_request
        assert entry.status == MembershipStatus.AUTHORIZED
        assert entry.roles == ["data-provider"]
        assert ecosystem.invitations == []

    @pytest.mark.asyncio
    async def test_invite_after_authorized_join_request_conflicts(self, svc, ecosystem) -> None:
        join_request, _ = await svc.request_to_join(ecosystem.id, MEMBER, ["consumer"])
        await svc.authorize_join_request(ecosystem.id, ORCHESTRATOR, join_request.id)

        with pytest.raises(ConflictError) as exc_info:
            await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, ["data-provider"])

        assert exc_info.value.data == {"id": str(join_request.id)}
        assert ecosystem.invitations == []

    @pytest.mark.asyncio
    async def test_accept_without_invitation(self, svc, ecosystem) -> None:
        with pytest.raises(InvitationError, match="trying to accept the invitation"):
            await svc.accept_invitation(ecosystem.id, MEMBER)

    @pytest.mark.asyncio
    async def test_deny_pending_and_authorized(self, svc, ecosystem) -> None:
        await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, [])
        denied = await svc.deny_invitation(ecosystem.id, MEMBER)
        assert denied.status == MembershipStatus.REJECTED

        await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, [])
        await svc.accept_invitation(ecosystem.id, MEMBER)
        denied = await svc.deny_invitation(ecosystem.id, MEMBER)
        assert denied.status == MembershipStatus.REJECTED

        with pytest.raises(InvitationError, match="No pending invitation"):
            await svc.deny_invitation(ecosystem.id, MEMBER)

    @pytest.mark.asyncio
    async def test_list_pending_invitations(self, svc, ecosystem) -> None:
        await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, [])
        await svc.invite(ecosystem.id, ORCHESTRATOR, OUTSIDER, [])
        await svc.accept_invitation(ecosystem.id, OUTSIDER)

        pending = await svc.list_pending_invitations(ecosystem.id, ORCHESTRATOR)

        assert [i.participant for i in pending] == [MEMBER]


class TestJoinRequests:
    @pytest.mark.asyncio
    async def test_request_then_authorize(self, svc, ecosystem) -> None:
        join_request, created = await svc.request_to_join(ecosystem.id, MEMBER, ["consumer"])
        assert created is True
        assert join_request.status == MembershipStatus.PENDING

        authorized = await svc.authorize_join_request(ecosystem.id, ORCHESTRATOR, join_request.id)
        assert authorized.status == MembershipStatus.AUTHORIZED

    @pytest.mark.asyncio
    async def test_request_accepts_pending_invitation(self, svc, ecosystem) -> None:
        invitation = await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, ["data-provider"])

        entry, created = await svc.request_to_join(ecosystem.id, MEMBER, ["consumer"])

        assert created is False
        assert entry is invitation
        assert entry.status == MembershipStatus.AUTHORIZED
        assert entry.roles == ["data-provider"]
        assert ecosystem.join_requests == []

    @pytest.mark.asyncio
    async def test_request_after_accepted_invitation_conflicts(self, svc, ecosystem) -> None:
        invitation = await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, ["data-provider"])
        await svc.accept_invitation(ecosystem.id, MEMBER)

        with pytest.raises(ConflictError) as exc_info:
            await svc.request_to_join(ecosystem.id, MEMBER, ["consumer"])

        assert exc_info.value.data == {"id": str(invitation.id)}
        assert ecosystem.join_requests == []

    @pytest.mark.asyncio
    async def test_duplicate_pending_request(self, svc, ecosystem) -> None:
        await svc.request_to_join(ecosystem.id, MEMBER, [])
        with pytest.raises(ConflictError):
            await svc.request_to_join(ecosystem.id, MEMBER, [])

    @pytest.mark.asyncio
    async def test_participant_cannot_request(self, svc, ecosystem) -> None:
        with pytest.raises(ExistingParticipantError):
            await svc.request_to_join(ecosystem.id, ORCHESTRATOR, [])

    @pytest.mark.asyncio
    async def test_reject_then_request_again(self, svc, ecosystem) -> None:
        join_request, _ = await svc.request_to_join(ecosystem.id, MEMBER, [])
        rejected = await svc.reject_join_request(ecosystem.id, ORCHESTRATOR, join_request.id)
        assert rejected.status == MembershipStatus.REJECTED

        again, created = await svc.request_to_join(ecosystem.id, MEMBER, [])
        assert created is True
        assert again.id != join_request.id

    @pytest.mark.asyncio
    async def test_rejected_request_cannot_be_authorized(self, svc, ecosystem) -> None:
        join_request, _ = await svc.request_to_join(ecosystem.id, MEMBER, [])
        await svc.reject_join_request(ecosystem.id, ORCHESTRATOR, join_request.id)

        with pytest.raises(InvalidTransitionError):
            await svc.authorize_join_request(ecosystem.id, ORCHESTRATOR, join_request.id)

    @pytest.mark.asyncio
    async def test_unknown_request_id(self, svc, ecosystem) -> None:
        with pytest.raises(JoinRequestNotFoundError):
            await svc.authorize_join_request(ecosystem.id, ORCHESTRATOR, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_only_orchestrator_decides(self, svc, ecosystem) -> None:
        join_request, _ = await svc.request_to_join(ecosystem.id, MEMBER, [])
        with pytest.raises(OwnershipError):
            await svc.authorize_join_request(ecosystem.id, MEMBER, join_request.id)

    @pytest.mark.asyncio
    async def test_list_with_filter(self, svc, ecosystem) -> None:
        first, _ = await svc.request_to_join(ecosystem.id, MEMBER, [])
        await svc.request_to_join(ecosystem.id, OUTSIDER, [])
        await svc.authorize_join_request(ecosystem.id, ORCHESTRATOR, first.id)

        everything = await svc.list_join_requests(ecosystem.id, ORCHESTRATOR)
        pending = await svc.list_join_requests(ecosystem.id, ORCHESTRATOR, MembershipStatus.PENDING)

        assert len(everything) == 2
        assert [jr.participant for jr in pending] == [OUTSIDER]


class TestOfferingsAndRoles:
    @pytest.mark.asyncio
    async def test_configure_on_live_entries(self, svc, ecosystem) -> None:
        invitation = await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, [])
        await svc.accept_invitation(ecosystem.id, MEMBER)

        await svc.configure_offerings(ecosystem.id, MEMBER, OFFERINGS)

        assert invitation.offerings == OFFERINGS

    @pytest.mark.asyncio
    async def test_configure_on_participant_row(self, svc, ecosystem) -> None:
        await svc.configure_offerings(ecosystem.id, ORCHESTRATOR, OFFERINGS)
        assert ecosystem.participants[0].offerings == OFFERINGS

    @pytest.mark.asyncio
    async def test_configure_without_membership(self, svc, ecosystem) -> None:
        with pytest.raises(UnauthorizedParticipantError):
            await svc.configure_offerings(ecosystem.id, OUTSIDER, OFFERINGS)

    @pytest.mark.asyncio
    async def test_roles_replaced_on_every_matching_entry(self, svc, ecosystem) -> None:
        invitation = await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, ["old"])
        join_request, _ = await svc.request_to_join(ecosystem.id, OUTSIDER, ["old"])
        await svc.reject_join_request(ecosystem.id, ORCHESTRATOR, join_request.id)

        await svc.set_participant_roles(
            ecosystem.id,
            ORCHESTRATOR,
            [
                {"participant_id": MEMBER, "roles": ["new"]},
                {"participant_id": OUTSIDER, "roles": ["new"]},
            ],
        )

        assert invitation.roles == ["new"]
        assert join_request.roles == ["new"]


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_contract(self, svc, ecosystem, ecosystem_gateway) -> None:
        ref = await ecosystem_gateway.generate(str(ecosystem.id), ORCHESTRATOR)
        ecosystem.contract = ref.contract_id

        await svc.delete(ecosystem.id, ORCHESTRATOR)

        assert ref.contract_id not in ecosystem_gateway.contracts
        with pytest.raises(ResourceNotFoundError):
            await svc.get(ecosystem.id)

    @pytest.mark.asyncio
    async def test_delete_survives_gateway_failure(self, svc, ecosystem, ecosystem_gateway) -> None:
        ecosystem.contract = "contract-1"
        ecosystem_gateway.available = False

        await svc.delete(ecosystem.id, ORCHESTRATOR)

        with pytest.raises(ResourceNotFoundError):
            await svc.get(ecosystem.id)

    @pytest.mark.asyncio
    async def test_only_orchestrator_deletes(self, svc, ecosystem) -> None:
        ecosystem.participants.append(
            EcosystemParticipant(participant=MEMBER, roles=[], offerings=[])
        )
        with pytest.raises(OwnershipError):
            await svc.delete(ecosystem.id, MEMBER)
