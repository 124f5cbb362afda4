"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).

Every write ends in save(), which flushes a versioned UPDATE of the
aggregate root. A concurrent writer that got there first makes the
UPDATE match zero rows, surfaced as ConcurrentModificationError.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from exchange_marketplace.domain.enums import MembershipStatus
from exchange_marketplace.domain.exceptions import (
    ConcurrentModificationError,
    ConflictError,
    DuplicateNegotiationError,
)
from exchange_marketplace.infrastructure.database.orm_models import (
    Ecosystem,
    EcosystemInvitation,
    EcosystemJoinRequest,
    EcosystemParticipant,
    ExchangeConfiguration,
)
from exchange_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class NegotiationRepository:
    """Data access for bilateral exchange configurations."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, configuration: ExchangeConfiguration) -> ExchangeConfiguration:
        """Insert a new exchange configuration.

        The unique constraint on the party/offering tuple backs up the
        service-level duplicate check when two creations race. The insert
        runs in a savepoint so the winner can still be looked up afterwards.
        """
        key = (
            configuration.provider,
            configuration.provider_service_offering,
            configuration.consumer,
            configuration.consumer_service_offering,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(configuration)
        except IntegrityError as exc:
            logger.warning("negotiation.duplicate_insert", error=str(exc.orig))
            existing = await self.find_by_tuple(*key)
            if existing is None:
                raise ConflictError(
                    "An access request for this configuration already exists"
                ) from exc
            raise DuplicateNegotiationError(str(existing.id)) from exc
        return configuration

    async def get_by_id(self, configuration_id: uuid.UUID) -> ExchangeConfiguration | None:
        result = await self._session.execute(
            select(ExchangeConfiguration).where(ExchangeConfiguration.id == configuration_id)
        )
        return result.scalar_one_or_none()

    async def find_by_tuple(
        self,
        provider: str,
        provider_service_offering: str,
        consumer: str,
        consumer_service_offering: str,
    ) -> ExchangeConfiguration | None:
        """Fetch the configuration for a party/offering tuple, if one exists."""
        result = await self._session.execute(
            select(ExchangeConfiguration).where(
                ExchangeConfiguration.provider == provider,
                ExchangeConfiguration.provider_service_offering == provider_service_offering,
                ExchangeConfiguration.consumer == consumer,
                ExchangeConfiguration.consumer_service_offering == consumer_service_offering,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_participant(self, participant: str) -> list[ExchangeConfiguration]:
        """Fetch all configurations where the participant is a party, newest first."""
        result = await self._session.execute(
            select(ExchangeConfiguration)
            .where(
                or_(
                    ExchangeConfiguration.provider == participant,
                    ExchangeConfiguration.consumer == participant,
                )
            )
            .order_by(ExchangeConfiguration.created_at.desc())
        )
        return list(result.scalars().all())

    async def save(self, configuration: ExchangeConfiguration) -> ExchangeConfiguration:
        """Flush pending changes with a version check."""
        configuration.updated_at = datetime.now(UTC)
        try:
            await self._session.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError("Exchange configuration", str(configuration.id)) from exc
        return configuration


class EcosystemRepository:
    """Data access for the ecosystem aggregate and its membership entries."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, ecosystem: Ecosystem) -> Ecosystem:
        """Insert a new ecosystem together with its seeded children."""
        self._session.add(ecosystem)
        await self._session.flush()
        return ecosystem

    async def get_by_id(self, ecosystem_id: uuid.UUID) -> Ecosystem | None:
        """Fetch an ecosystem; participants, invitations and join requests load with it."""
        result = await self._session.execute(select(Ecosystem).where(Ecosystem.id == ecosystem_id))
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Ecosystem]:
        result = await self._session.execute(select(Ecosystem).order_by(Ecosystem.created_at.desc()))
        return list(result.scalars().all())

    async def list_for_participant(self, participant: str) -> list[Ecosystem]:
        """Ecosystems the participant orchestrates, belongs to, or has a live entry in."""
        as_participant = select(EcosystemParticipant.ecosystem_id).where(
            EcosystemParticipant.participant == participant
        )
        as_invitee = select(EcosystemInvitation.ecosystem_id).where(
            EcosystemInvitation.participant == participant,
            EcosystemInvitation.status != MembershipStatus.REJECTED.value,
        )
        as_requester = select(EcosystemJoinRequest.ecosystem_id).where(
            EcosystemJoinRequest.participant == participant,
            EcosystemJoinRequest.status != MembershipStatus.REJECTED.value,
        )
        result = await self._session.execute(
            select(Ecosystem)
            .where(
                or_(
                    Ecosystem.orchestrator == participant,
                    Ecosystem.id.in_(as_participant),
                    Ecosystem.id.in_(as_invitee),
                    Ecosystem.id.in_(as_requester),
                )
            )
            .order_by(Ecosystem.created_at.desc())
        )
        return list(result.scalars().all())

    async def invitations_for_participant(
        self,
        participant: str,
        status: MembershipStatus | None = None,
    ) -> list[tuple[EcosystemInvitation, str]]:
        """Invitations addressed to the participant, with the ecosystem name."""
        query = (
            select(EcosystemInvitation, Ecosystem.name)
            .join(Ecosystem, EcosystemInvitation.ecosystem_id == Ecosystem.id)
            .where(EcosystemInvitation.participant == participant)
            .order_by(EcosystemInvitation.created_at.asc())
        )
        if status is not None:
            query = query.where(EcosystemInvitation.status == status.value)
        result = await self._session.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def join_requests_for_participant(
        self,
        participant: str,
        status: MembershipStatus | None = None,
    ) -> list[tuple[EcosystemJoinRequest, str]]:
        """Join requests made by the participant, with the ecosystem name."""
        query = (
            select(EcosystemJoinRequest, Ecosystem.name)
            .join(Ecosystem, EcosystemJoinRequest.ecosystem_id == Ecosystem.id)
            .where(EcosystemJoinRequest.participant == participant)
            .order_by(EcosystemJoinRequest.created_at.asc())
        )
        if status is not None:
            query = query.where(EcosystemJoinRequest.status == status.value)
        result = await self._session.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def save(self, ecosystem: Ecosystem) -> Ecosystem:
        """Flush the aggregate with a versioned UPDATE of the root row.

        Touching updated_at guarantees the root is dirty even when only a
        child collection changed, so the version check always runs.
        """
        ecosystem.updated_at = datetime.now(UTC)
        try:
            await self._session.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError("Ecosystem", str(ecosystem.id)) from exc
        return ecosystem

    async def delete(self, ecosystem: Ecosystem) -> None:
        await self._session.delete(ecosystem)
        try:
            await self._session.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError("Ecosystem", str(ecosystem.id)) from exc
