"""MCP tools called directly, with their session source pointed at the test database."""

from __future__ import annotations

import uuid

import pytest

from conftest import CONSUMER, MEMBER, ORCHESTRATOR, OUTSIDER, PROVIDER
from exchange_marketplace.domain.enums import ContractKind
from exchange_marketplace.mcp_server import tools
from exchange_marketplace.services.ecosystem_service import EcosystemService
from exchange_marketplace.services.negotiation_service import NegotiationService


@pytest.fixture(autouse=True)
def _tool_sessions(monkeypatch, session_factory, bilateral_gateway) -> None:
    from exchange_marketplace.infrastructure import contract_client

    monkeypatch.setattr(tools, "_get_session", session_factory)
    monkeypatch.setattr(
        contract_client,
        "build_contract_gateway",
        lambda kind: bilateral_gateway if kind == ContractKind.BILATERAL else None,
    )


class TestNegotiationTools:
    @pytest.mark.asyncio
    async def test_list_and_status(self, session_factory, bilateral_gateway, negotiation_data) -> None:
        async with session_factory() as session:
            svc = NegotiationService(session, bilateral_gateway)
            configuration = await svc.create(**negotiation_data)
            await svc.authorize(configuration.id, PROVIDER, [])
            await session.commit()

        listing = await tools.list_my_negotiations(CONSUMER)
        assert listing["negotiations"][0]["role"] == "consumer"
        assert listing["negotiations"][0]["negotiation_status"] == "Authorized"

        status = await tools.negotiation_status(CONSUMER, str(configuration.id))
        assert status["id"] == str(configuration.id)
        assert set(status["allowed_events"]) == {"accept", "negotiate"}

    @pytest.mark.asyncio
    async def test_errors_are_returned_not_raised(self) -> None:
        missing = await tools.negotiation_status(CONSUMER, str(uuid.uuid4()))
        malformed = await tools.negotiation_status(CONSUMER, "not-a-uuid")

        assert missing == {"error": "Resource not found", "message": "Exchange configuration not found"}
        assert "error" in malformed


class TestEcosystemTools:
    @pytest.mark.asyncio
    async def test_membership_resolution(self, session_factory) -> None:
        async with session_factory() as session:
            svc = EcosystemService(session)
            ecosystem = await svc.build(ORCHESTRATOR, {"name": "Data space"})
            await svc.invite(ecosystem.id, ORCHESTRATOR, MEMBER, [])
            await session.commit()

        orchestrator_view = await tools.list_my_ecosystems(ORCHESTRATOR)
        member_view = await tools.list_my_ecosystems(MEMBER)
        outsider_view = await tools.list_my_ecosystems(OUTSIDER)

        assert orchestrator_view["ecosystems"][0]["membership"] == "participant"
        assert member_view["ecosystems"][0]["membership"] == "pending_invitation"
        assert outsider_view["ecosystems"] == []
