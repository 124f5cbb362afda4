"""SQLAlchemy 2.0 ORM models for the Exchange Marketplace.

Five tables:
    1. exchange_configurations  — Bilateral negotiations between a provider and a consumer.
    2. ecosystems               — Multi-party ecosystems (aggregate root).
    3. ecosystem_participants   — Signed members of an ecosystem.
    4. ecosystem_invitations    — Orchestrator-initiated membership entries.
    5. ecosystem_join_requests  — Participant-initiated membership entries.

Design decisions:
    - UUIDs as primary keys, participant ids are opaque strings from the auth layer.
    - Generic Uuid / JSON types (JSONB on PostgreSQL) so the same models run on SQLite.
    - CHECK constraints on status columns to prevent invalid enum values at DB level.
    - Optimistic concurrency: exchange_configurations and ecosystems carry a
      version column (version_id_col). Child rows of an ecosystem are only ever
      written together with a versioned UPDATE of the root (see EcosystemRepository.save).
    - JSON list columns are replaced, never mutated in place, so changes are tracked.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONType = JSON().with_variant(JSONB(), "postgresql")

_NEGOTIATION_STATUSES = "'Requested', 'Authorized', 'SignatureReady', 'Negotiation', 'Signed'"
_MEMBERSHIP_STATUSES = "'Pending', 'Authorized', 'Rejected', 'Signed'"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# 1. exchange_configurations
# ---------------------------------------------------------------------------
class ExchangeConfiguration(Base):
    """A bilateral negotiation over one provider offering and one consumer offering."""

    __tablename__ = "exchange_configurations"

    # --- Primary Key ---
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # --- Parties (immutable after creation) ---
    provider: Mapped[str] = mapped_column(String(255), nullable=False)
    consumer: Mapped[str] = mapped_column(String(255), nullable=False)
    provider_service_offering: Mapped[str] = mapped_column(String(255), nullable=False)
    consumer_service_offering: Mapped[str] = mapped_column(String(255), nullable=False)

    # --- Status (guarded by NegotiationStateMachine) ---
    negotiation_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="Requested",
    )

    # --- Negotiated terms ---
    provider_policies: Mapped[list] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Ordered list of {ruleId, values} policy objects",
    )
    latest_negotiator: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        default=None,
        comment="Participant who last changed the policies",
    )

    # --- Signatures ---
    provider_signature: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    consumer_signature: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)

    # --- External contract ---
    contract_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        default=None,
        comment="Bilateral contract id in the contract service (set on authorize)",
    )

    # --- Timestamps / concurrency ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint(
            "provider",
            "provider_service_offering",
            "consumer",
            "consumer_service_offering",
            name="uq_exchange_configuration_tuple",
        ),
        CheckConstraint(
            f"negotiation_status IN ({_NEGOTIATION_STATUSES})",
            name="ck_exchange_configuration_status",
        ),
        Index("idx_exchange_configuration_provider", "provider"),
        Index("idx_exchange_configuration_consumer", "consumer"),
    )

    @property
    def signatures(self) -> dict:
        return {"provider": self.provider_signature, "consumer": self.consumer_signature}

    def party_of(self, participant: str) -> str | None:
        """Return "provider" or "consumer" for a party of this configuration."""
        if participant == self.provider:
            return "provider"
        if participant == self.consumer:
            return "consumer"
        return None

    def __repr__(self) -> str:
        return (
            f"<ExchangeConfiguration id={self.id} status={self.negotiation_status} "
            f"provider={self.provider} consumer={self.consumer}>"
        )


# ---------------------------------------------------------------------------
# 2. ecosystems (aggregate root)
# ---------------------------------------------------------------------------
class Ecosystem(Base):
    """A multi-party ecosystem administered by its orchestrator."""

    __tablename__ = "ecosystems"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # --- Descriptive fields ---
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo: Mapped[str | None] = mapped_column(String(512), nullable=True)
    country_or_region: Mapped[str | None] = mapped_column(String(255), nullable=True)
    target_audience: Mapped[str | None] = mapped_column(String(255), nullable=True)
    main_functionalities_needed: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list
    )
    searched_data: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    searched_services: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    use_cases: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # --- Governance ---
    orchestrator: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Creator and administrator of the ecosystem",
    )
    contract: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        default=None,
        comment="Ecosystem contract id in the contract service",
    )
    roles_and_obligations: Mapped[list] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Local mirror, written only after a successful injection",
    )

    # --- Timestamps / concurrency ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # --- Owned collections ---
    participants: Mapped[list[EcosystemParticipant]] = relationship(
        "EcosystemParticipant",
        back_populates="ecosystem",
        cascade="all, delete-orphan",
        order_by="EcosystemParticipant.created_at.asc()",
        lazy="selectin",
    )
    invitations: Mapped[list[EcosystemInvitation]] = relationship(
        "EcosystemInvitation",
        back_populates="ecosystem",
        cascade="all, delete-orphan",
        order_by="EcosystemInvitation.created_at.asc()",
        lazy="selectin",
    )
    join_requests: Mapped[list[EcosystemJoinRequest]] = relationship(
        "EcosystemJoinRequest",
        back_populates="ecosystem",
        cascade="all, delete-orphan",
        order_by="EcosystemJoinRequest.created_at.asc()",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (Index("idx_ecosystem_orchestrator", "orchestrator"),)

    def __repr__(self) -> str:
        return f"<Ecosystem id={self.id} name={self.name!r} orchestrator={self.orchestrator}>"


# ---------------------------------------------------------------------------
# 3. ecosystem_participants
# ---------------------------------------------------------------------------
class EcosystemParticipant(Base):
    """A participant that signed the ecosystem contract (or its orchestrator)."""

    __tablename__ = "ecosystem_participants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ecosystem_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("ecosystems.id", ondelete="CASCADE"),
        nullable=False,
    )
    participant: Mapped[str] = mapped_column(String(255), nullable=False)
    roles: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    offerings: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    ecosystem: Mapped[Ecosystem] = relationship("Ecosystem", back_populates="participants")

    __table_args__ = (
        UniqueConstraint("ecosystem_id", "participant", name="uq_ecosystem_participant"),
        Index("idx_ecosystem_participant", "participant"),
    )

    def __repr__(self) -> str:
        return f"<EcosystemParticipant ecosystem={self.ecosystem_id} participant={self.participant}>"


# ---------------------------------------------------------------------------
# 4./5. membership entries
# ---------------------------------------------------------------------------
class _MembershipEntryMixin:
    """Columns shared by invitations and join requests."""

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    participant: Mapped[str] = mapped_column(String(255), nullable=False)
    roles: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    offerings: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )


class EcosystemInvitation(_MembershipEntryMixin, Base):
    """An invitation sent by the orchestrator to a participant."""

    __tablename__ = "ecosystem_invitations"

    ecosystem_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("ecosystems.id", ondelete="CASCADE"),
        nullable=False,
    )
    ecosystem: Mapped[Ecosystem] = relationship("Ecosystem", back_populates="invitations")

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_MEMBERSHIP_STATUSES})",
            name="ck_ecosystem_invitation_status",
        ),
        Index("idx_ecosystem_invitation_participant", "participant"),
    )

    def __repr__(self) -> str:
        return f"<EcosystemInvitation id={self.id} participant={self.participant} status={self.status}>"


class EcosystemJoinRequest(_MembershipEntryMixin, Base):
    """A request from a participant to join an ecosystem."""

    __tablename__ = "ecosystem_join_requests"

    ecosystem_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("ecosystems.id", ondelete="CASCADE"),
        nullable=False,
    )
    ecosystem: Mapped[Ecosystem] = relationship("Ecosystem", back_populates="join_requests")

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_MEMBERSHIP_STATUSES})",
            name="ck_ecosystem_join_request_status",
        ),
        Index("idx_ecosystem_join_request_participant", "participant"),
    )

    def __repr__(self) -> str:
        return f"<EcosystemJoinRequest id={self.id} participant={self.participant} status={self.status}>"
