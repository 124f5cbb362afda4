"""Tests for ecosystem creation, signatures and roles injection against the contract."""

from __future__ import annotations

import uuid

import pytest
import pytest_asyncio

from conftest import MEMBER, ORCHESTRATOR, OUTSIDER
from exchange_marketplace.domain.enums import MembershipStatus
from exchange_marketplace.domain.exceptions import (
    ConflictError,
    ContractGatewayError,
    ContractMissingError,
    ExistingParticipantError,
    OwnershipError,
    ResourceNotFoundError,
    UnauthorizedParticipantError,
)
from exchange_marketplace.services.ecosystem_contract_service import EcosystemContractService
from exchange_marketplace.services.ecosystem_service import EcosystemService

ROLES = [{"role": "data-provider", "policies": [{"ruleId": "rule-access-1", "values": {}}]}]


@pytest.fixture
def contracts(session, ecosystem_gateway) -> EcosystemContractService:
    return EcosystemContractService(session, ecosystem_gateway)


@pytest.fixture
def ecosystems(session, ecosystem_gateway) -> EcosystemService:
    return EcosystemService(session, ecosystem_gateway)


@pytest_asyncio.fixture
async def ecosystem(contracts, ecosystem_fields):
    result = await contracts.create(ORCHESTRATOR, ecosystem_fields)
    return result.ecosystem


async def _authorized_member(ecosystems: EcosystemService, ecosystem_id: uuid.UUID):
    await ecosystems.invite(ecosystem_id, ORCHESTRATOR, MEMBER, ["data-provider"])
    return await ecosystems.accept_invitation(ecosystem_id, MEMBER)


class TestCreate:
    @pytest.mark.asyncio
    async def test_contract_generated_with_ecosystem(
        self, contracts, ecosystem_fields, ecosystem_gateway
    ) -> None:
        result = await contracts.create(ORCHESTRATOR, ecosystem_fields)

        assert result.contract_error is None
        contract = ecosystem_gateway.contracts[result.ecosystem.contract]
        assert contract["ecosystem"] == str(result.ecosystem.id)
        assert contract["orchestrator"] == ORCHESTRATOR

    @pytest.mark.asyncio
    async def test_generation_failure_keeps_ecosystem(
        self, contracts, ecosystems, ecosystem_fields, ecosystem_gateway
    ) -> None:
        ecosystem_gateway.available = False

        result = await contracts.create(ORCHESTRATOR, ecosystem_fields)

        assert result.ecosystem.contract is None
        assert result.contract_error.status_code == 500
        assert await ecosystems.get(result.ecosystem.id) is result.ecosystem

    @pytest.mark.asyncio
    async def test_retry_after_failure(
        self, contracts, ecosystem_fields, ecosystem_gateway
    ) -> None:
        ecosystem_gateway.available = False
        result = await contracts.create(ORCHESTRATOR, ecosystem_fields)

        with pytest.raises(ContractGatewayError, match="Failed to generate ecosystem contract"):
            await contracts.create_contract(result.ecosystem.id, ORCHESTRATOR)

        ecosystem_gateway.available = True
        document = await contracts.create_contract(result.ecosystem.id, ORCHESTRATOR)

        assert result.ecosystem.contract == document["_id"]

    @pytest.mark.asyncio
    async def test_retry_when_contract_exists(self, contracts, ecosystem) -> None:
        with pytest.raises(ConflictError, match="already has a contract"):
            await contracts.create_contract(ecosystem.id, ORCHESTRATOR)

    @pytest.mark.asyncio
    async def test_retry_requires_orchestrator(self, contracts, ecosystem) -> None:
        with pytest.raises(OwnershipError):
            await contracts.create_contract(ecosystem.id, MEMBER)


class TestGetContract:
    @pytest.mark.asyncio
    async def test_fetches_document(self, contracts, ecosystem) -> None:
        document = await contracts.get_contract(ecosystem.id)
        assert document["_id"] == ecosystem.contract

    @pytest.mark.asyncio
    async def test_missing_contract(self, contracts, ecosystem, ecosystem_gateway) -> None:
        ecosystem_gateway.contracts.clear()
        with pytest.raises(ResourceNotFoundError):
            await contracts.get_contract(ecosystem.id)


class TestSignatures:
    @pytest.mark.asyncio
    async def test_full_onboarding(
        self, contracts, ecosystems, ecosystem, ecosystem_gateway
    ) -> None:
        invitation = await _authorized_member(ecosystems, ecosystem.id)
        await ecosystems.configure_offerings(
            ecosystem.id, MEMBER, [{"serviceOffering": "offering-soil-sensors", "policy": []}]
        )

        await contracts.sign_as_orchestrator(ecosystem.id, ORCHESTRATOR, "orchestrator-signature")
        document = await contracts.sign_as_participant(ecosystem.id, MEMBER, "member-signature")

        assert document["status"] == "signed"
        assert invitation.status == MembershipStatus.SIGNED
        member = ecosystem.participants[-1]
        assert member.participant == MEMBER
        assert member.roles == ["data-provider"]
        assert member.offerings == [{"serviceOffering": "offering-soil-sensors", "policy": []}]
        roles = {s["participant"]: s["role"] for s in document["signatures"]}
        assert roles == {ORCHESTRATOR: "orchestrator", MEMBER: "participant"}

    @pytest.mark.asyncio
    async def test_authorized_join_request_can_sign(self, contracts, ecosystems, ecosystem) -> None:
        join_request, _ = await ecosystems.request_to_join(ecosystem.id, MEMBER, ["consumer"])
        await ecosystems.authorize_join_request(ecosystem.id, ORCHESTRATOR, join_request.id)

        await contracts.sign_as_participant(ecosystem.id, MEMBER, "member-signature")

        assert join_request.status == MembershipStatus.SIGNED
        assert ecosystem.participants[-1].roles == ["consumer"]

    @pytest.mark.asyncio
    async def test_pending_entry_cannot_sign(self, contracts, ecosystems, ecosystem) -> None:
        await ecosystems.invite(ecosystem.id, ORCHESTRATOR, MEMBER, [])
        with pytest.raises(UnauthorizedParticipantError):
            await contracts.sign_as_participant(ecosystem.id, MEMBER, "s")

    @pytest.mark.asyncio
    async def test_participant_cannot_sign_again(
        self, contracts, ecosystems, ecosystem, ecosystem_gateway
    ) -> None:
        await _authorized_member(ecosystems, ecosystem.id)
        await contracts.sign_as_participant(ecosystem.id, MEMBER, "first")

        with pytest.raises(ExistingParticipantError):
            await contracts.sign_as_participant(ecosystem.id, MEMBER, "second")

        signatures = ecosystem_gateway.contracts[ecosystem.contract]["signatures"]
        assert [s["signature"] for s in signatures if s["participant"] == MEMBER] == ["first"]
        assert [p.participant for p in ecosystem.participants].count(MEMBER) == 1

    @pytest.mark.asyncio
    async def test_join_request_then_invite_signs_once(
        self, contracts, ecosystems, ecosystem, ecosystem_gateway
    ) -> None:
        join_request, _ = await ecosystems.request_to_join(ecosystem.id, MEMBER, ["consumer"])
        await ecosystems.authorize_join_request(ecosystem.id, ORCHESTRATOR, join_request.id)
        with pytest.raises(ConflictError):
            await ecosystems.invite(ecosystem.id, ORCHESTRATOR, MEMBER, ["data-provider"])

        await contracts.sign_as_participant(ecosystem.id, MEMBER, "s")
        with pytest.raises(ExistingParticipantError):
            await contracts.sign_as_participant(ecosystem.id, MEMBER, "s")

        assert ecosystem.invitations == []
        assert [p.participant for p in ecosystem.participants] == [ORCHESTRATOR, MEMBER]

    @pytest.mark.asyncio
    async def test_only_orchestrator_signs_as_orchestrator(self, contracts, ecosystem) -> None:
        with pytest.raises(OwnershipError):
            await contracts.sign_as_orchestrator(ecosystem.id, OUTSIDER, "s")

    @pytest.mark.asyncio
    async def test_sign_without_contract(
        self, contracts, ecosystems, ecosystem_fields, ecosystem_gateway
    ) -> None:
        ecosystem_gateway.available = False
        result = await contracts.create(ORCHESTRATOR, ecosystem_fields)
        ecosystem_gateway.available = True

        with pytest.raises(ContractMissingError):
            await contracts.sign_as_orchestrator(result.ecosystem.id, ORCHESTRATOR, "s")
        with pytest.raises(ContractMissingError):
            await contracts.sign_as_participant(result.ecosystem.id, MEMBER, "s")

    @pytest.mark.asyncio
    async def test_gateway_failure_does_not_admit_participant(
        self, contracts, ecosystems, ecosystem, ecosystem_gateway
    ) -> None:
        invitation = await _authorized_member(ecosystems, ecosystem.id)
        ecosystem_gateway.failing = {"sign"}

        with pytest.raises(ContractGatewayError, match="Failed to sign ecosystem contract") as exc_info:
            await contracts.sign_as_participant(ecosystem.id, MEMBER, "s")

        assert exc_info.value.data == {"status": 500, "message": "Internal Server Error"}
        assert invitation.status == MembershipStatus.AUTHORIZED
        assert [p.participant for p in ecosystem.participants] == [ORCHESTRATOR]


class TestUpdateWithRoles:
    @pytest.mark.asyncio
    async def test_roles_injected_and_mirrored(self, contracts, ecosystem, ecosystem_gateway) -> None:
        result = await contracts.update(
            ecosystem.id, ORCHESTRATOR, {"name": "Renamed"}, roles_and_obligations=ROLES
        )

        assert result.injection_error is None
        assert result.ecosystem.name == "Renamed"
        assert result.ecosystem.roles_and_obligations == ROLES
        assert ecosystem_gateway.contracts[ecosystem.contract]["policy"] == ROLES

    @pytest.mark.asyncio
    async def test_injection_failure_keeps_other_changes(
        self, contracts, ecosystem, ecosystem_gateway
    ) -> None:
        ecosystem_gateway.failing = {"inject_policies"}

        result = await contracts.update(
            ecosystem.id, ORCHESTRATOR, {"name": "Renamed"}, roles_and_obligations=ROLES
        )

        assert result.injection_error is not None
        assert result.ecosystem.name == "Renamed"
        assert result.ecosystem.roles_and_obligations == []

    @pytest.mark.asyncio
    async def test_participant_roles_applied(self, contracts, ecosystems, ecosystem) -> None:
        invitation = await ecosystems.invite(ecosystem.id, ORCHESTRATOR, MEMBER, ["old"])

        await contracts.update(
            ecosystem.id,
            ORCHESTRATOR,
            {},
            participant_roles=[{"participant_id": MEMBER, "roles": ["new"]}],
        )

        assert invitation.roles == ["new"]

    @pytest.mark.asyncio
    async def test_roles_need_a_contract(
        self, contracts, ecosystem_fields, ecosystem_gateway
    ) -> None:
        ecosystem_gateway.available = False
        result = await contracts.create(ORCHESTRATOR, ecosystem_fields)

        with pytest.raises(ContractMissingError):
            await contracts.update(
                result.ecosystem.id, ORCHESTRATOR, {}, roles_and_obligations=ROLES
            )

    @pytest.mark.asyncio
    async def test_update_requires_orchestrator(self, contracts, ecosystem) -> None:
        with pytest.raises(OwnershipError):
            await contracts.update(ecosystem.id, MEMBER, {"name": "x"}, roles_and_obligations=[])
