"""Database infrastructure — engine, ORM models, and repositories."""

from exchange_marketplace.infrastructure.database.engine import (
    close_db,
    get_async_session,
    get_session_factory,
    init_db,
)
from exchange_marketplace.infrastructure.database.orm_models import (
    Base,
    Ecosystem,
    EcosystemInvitation,
    EcosystemJoinRequest,
    EcosystemParticipant,
    ExchangeConfiguration,
)
from exchange_marketplace.infrastructure.database.repositories import (
    EcosystemRepository,
    NegotiationRepository,
)

__all__ = [
    "Base",
    "Ecosystem",
    "EcosystemInvitation",
    "EcosystemJoinRequest",
    "EcosystemParticipant",
    "ExchangeConfiguration",
    "EcosystemRepository",
    "NegotiationRepository",
    "get_async_session",
    "get_session_factory",
    "init_db",
    "close_db",
]
