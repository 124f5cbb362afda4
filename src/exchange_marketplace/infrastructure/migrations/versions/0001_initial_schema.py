"""initial marketplace schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSONType = sa.JSON().with_variant(JSONB(), "postgresql")

_NEGOTIATION_STATUSES = "'Requested', 'Authorized', 'SignatureReady', 'Negotiation', 'Signed'"
_MEMBERSHIP_STATUSES = "'Pending', 'Authorized', 'Rejected', 'Signed'"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    ]


def _membership_table(name: str, check_name: str, index_name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "ecosystem_id",
            sa.Uuid(),
            sa.ForeignKey("ecosystems.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("participant", sa.String(255), nullable=False),
        sa.Column("roles", JSONType, nullable=False),
        sa.Column("offerings", JSONType, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(f"status IN ({_MEMBERSHIP_STATUSES})", name=check_name),
    )
    op.create_index(index_name, name, ["participant"])


def upgrade() -> None:
    op.create_table(
        "exchange_configurations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("provider", sa.String(255), nullable=False),
        sa.Column("consumer", sa.String(255), nullable=False),
        sa.Column("provider_service_offering", sa.String(255), nullable=False),
        sa.Column("consumer_service_offering", sa.String(255), nullable=False),
        sa.Column("negotiation_status", sa.String(20), nullable=False),
        sa.Column("provider_policies", JSONType, nullable=False),
        sa.Column("latest_negotiator", sa.String(255), nullable=True),
        sa.Column("provider_signature", sa.Text(), nullable=True),
        sa.Column("consumer_signature", sa.Text(), nullable=True),
        sa.Column("contract_id", sa.String(64), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "provider",
            "provider_service_offering",
            "consumer",
            "consumer_service_offering",
            name="uq_exchange_configuration_tuple",
        ),
        sa.CheckConstraint(
            f"negotiation_status IN ({_NEGOTIATION_STATUSES})",
            name="ck_exchange_configuration_status",
        ),
    )
    op.create_index("idx_exchange_configuration_provider", "exchange_configurations", ["provider"])
    op.create_index("idx_exchange_configuration_consumer", "exchange_configurations", ["consumer"])

    op.create_table(
        "ecosystems",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("logo", sa.String(512), nullable=True),
        sa.Column("country_or_region", sa.String(255), nullable=True),
        sa.Column("target_audience", sa.String(255), nullable=True),
        sa.Column("main_functionalities_needed", JSONType, nullable=False),
        sa.Column("searched_data", JSONType, nullable=False),
        sa.Column("searched_services", JSONType, nullable=False),
        sa.Column("use_cases", JSONType, nullable=False),
        sa.Column("orchestrator", sa.String(255), nullable=False),
        sa.Column("contract", sa.String(64), nullable=True),
        sa.Column("roles_and_obligations", JSONType, nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_ecosystem_orchestrator", "ecosystems", ["orchestrator"])

    op.create_table(
        "ecosystem_participants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "ecosystem_id",
            sa.Uuid(),
            sa.ForeignKey("ecosystems.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("participant", sa.String(255), nullable=False),
        sa.Column("roles", JSONType, nullable=False),
        sa.Column("offerings", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("ecosystem_id", "participant", name="uq_ecosystem_participant"),
    )
    op.create_index("idx_ecosystem_participant", "ecosystem_participants", ["participant"])

    _membership_table(
        "ecosystem_invitations",
        "ck_ecosystem_invitation_status",
        "idx_ecosystem_invitation_participant",
    )
    _membership_table(
        "ecosystem_join_requests",
        "ck_ecosystem_join_request_status",
        "idx_ecosystem_join_request_participant",
    )


def downgrade() -> None:
    op.drop_table("ecosystem_join_requests")
    op.drop_table("ecosystem_invitations")
    op.drop_table("ecosystem_participants")
    op.drop_table("ecosystems")
    op.drop_table("exchange_configurations")
