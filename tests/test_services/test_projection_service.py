"""Tests for participant-centric read views."""

from __future__ import annotations

import pytest

from conftest import MEMBER, ORCHESTRATOR, OUTSIDER
from exchange_marketplace.domain.enums import MembershipStatus
from exchange_marketplace.services.ecosystem_service import EcosystemService
from exchange_marketplace.services.negotiation_service import NegotiationService
from exchange_marketplace.services.projection_service import ProjectionService


class TestProjections:
    @pytest.mark.asyncio
    async def test_my_ecosystems_and_entries(self, session, ecosystem_gateway) -> None:
        ecosystems = EcosystemService(session, ecosystem_gateway)
        invited = await ecosystems.build(ORCHESTRATOR, {"name": "Invited"})
        requested = await ecosystems.build(ORCHESTRATOR, {"name": "Requested"})
        await ecosystems.build(ORCHESTRATOR, {"name": "Unrelated"})
        await ecosystems.invite(invited.id, ORCHESTRATOR, MEMBER, ["data-provider"])
        await ecosystems.request_to_join(requested.id, MEMBER, ["consumer"])

        projections = ProjectionService(session)

        names = {e.name for e in await projections.my_ecosystems(MEMBER)}
        assert names == {"Invited", "Requested"}
        assert len(await projections.my_ecosystems(ORCHESTRATOR)) == 3

        invitations = await projections.my_invitations(MEMBER)
        assert invitations == [
            {
                "ecosystem": invited.id,
                "ecosystem_name": "Invited",
                "id": invited.invitations[0].id,
                "participant": MEMBER,
                "roles": ["data-provider"],
                "offerings": [],
                "status": "Pending",
            }
        ]
        assert await projections.my_invitations(MEMBER, MembershipStatus.AUTHORIZED) == []

        requests = await projections.my_join_requests(MEMBER, MembershipStatus.PENDING)
        assert [r["ecosystem_name"] for r in requests] == ["Requested"]

    @pytest.mark.asyncio
    async def test_negotiations_for(self, session, bilateral_gateway, negotiation_data) -> None:
        await NegotiationService(session, bilateral_gateway).create(**negotiation_data)
        projections = ProjectionService(session)

        assert len(await projections.negotiations_for(negotiation_data["provider"])) == 1
        assert await projections.negotiations_for(OUTSIDER) == []
