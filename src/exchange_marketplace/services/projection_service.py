"""Projection Service — participant-centric read views.

Read-only: nothing here mutates an aggregate, so these queries are safe
to expose through the MCP tool surface as well as the REST routes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from exchange_marketplace.infrastructure.database.repositories import (
    EcosystemRepository,
    NegotiationRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from exchange_marketplace.domain.enums import MembershipStatus
    from exchange_marketplace.infrastructure.database.orm_models import (
        Ecosystem,
        ExchangeConfiguration,
    )


def _entry_view(entry, ecosystem_name: str) -> dict:  # noqa: ANN001
    return {
        "ecosystem": entry.ecosystem_id,
        "ecosystem_name": ecosystem_name,
        "id": entry.id,
        "participant": entry.participant,
        "roles": list(entry.roles),
        "offerings": list(entry.offerings),
        "status": entry.status,
    }


class ProjectionService:
    """Answers "what concerns me" queries for a participant."""

    def __init__(self, session: AsyncSession) -> None:
        self._ecosystems = EcosystemRepository(session)
        self._negotiations = NegotiationRepository(session)

    async def my_ecosystems(self, participant: str) -> list[Ecosystem]:
        """Ecosystems the participant orchestrates, belongs to, or is joining."""
        return await self._ecosystems.list_for_participant(participant)

    async def my_invitations(
        self, participant: str, status: MembershipStatus | None = None
    ) -> list[dict]:
        rows = await self._ecosystems.invitations_for_participant(participant, status)
        return [_entry_view(entry, name) for entry, name in rows]

    async def my_join_requests(
        self, participant: str, status: MembershipStatus | None = None
    ) -> list[dict]:
        rows = await self._ecosystems.join_requests_for_participant(participant, status)
        return [_entry_view(entry, name) for entry, name in rows]

    async def negotiations_for(self, participant: str) -> list[ExchangeConfiguration]:
        return await self._negotiations.list_for_participant(participant)
