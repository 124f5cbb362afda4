"""Pydantic schemas for the ecosystem API."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import ConfigDict, Field, field_validator

from exchange_marketplace.domain.enums import MembershipStatus
from exchange_marketplace.schemas.common import CamelModel

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class Offering(CamelModel):
    """A service offering a participant brings to the ecosystem, with its policies."""

    model_config = ConfigDict(extra="allow")

    service_offering: str = Field(..., min_length=1)
    policy: list[dict[str, Any]] = Field(default_factory=list)


class ParticipantRoles(CamelModel):
    participant_id: str = Field(..., min_length=1)
    roles: list[str]


class RoleObligations(CamelModel):
    """Obligations attached to a role, injected into the ecosystem contract."""

    model_config = ConfigDict(extra="allow")

    role: str = Field(..., min_length=1)
    policies: list[dict[str, Any]] = Field(default_factory=list)


class CreateEcosystemRequest(CamelModel):
    """Request body for creating an ecosystem. The caller becomes its orchestrator."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    logo: str | None = None
    country_or_region: str | None = None
    target_audience: str | None = None
    main_functionalities_needed: list[str] = Field(default_factory=list)
    searched_data: list[str] = Field(default_factory=list)
    searched_services: list[str] = Field(default_factory=list)
    use_cases: list[str] = Field(default_factory=list)


class UpdateEcosystemRequest(CamelModel):
    """Partial update. Only the fields present in the body are applied."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    logo: str | None = None
    country_or_region: str | None = None
    target_audience: str | None = None
    main_functionalities_needed: list[str] | None = None
    searched_data: list[str] | None = None
    searched_services: list[str] | None = None
    use_cases: list[str] | None = None
    participant_roles: list[ParticipantRoles] | None = None
    roles_and_obligations: list[RoleObligations] | None = None

    @field_validator(
        "name",
        "main_functionalities_needed",
        "searched_data",
        "searched_services",
        "use_cases",
    )
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        # Omit the field to leave it unchanged; these columns cannot be cleared.
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class InviteParticipantRequest(CamelModel):
    participant_id: str = Field(..., min_length=1)
    roles: list[str] = Field(default_factory=list)


class JoinEcosystemRequest(CamelModel):
    roles: list[str] = Field(default_factory=list)


class ConfigureOfferingsRequest(CamelModel):
    offerings: list[Offering]


class EcosystemSignatureRequest(CamelModel):
    signature: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class ParticipantResponse(CamelModel):
    participant: str
    roles: list[str]
    offerings: list[dict[str, Any]]


class MembershipEntryResponse(CamelModel):
    """An invitation or a join request."""

    id: uuid.UUID
    participant: str
    roles: list[str]
    offerings: list[dict[str, Any]]
    status: MembershipStatus


class MyMembershipEntryResponse(MembershipEntryResponse):
    """An invitation or join request seen from the participant's side."""

    ecosystem: uuid.UUID
    ecosystem_name: str


class EcosystemResponse(CamelModel):
    """Response schema for an ecosystem with its membership collections."""

    id: uuid.UUID
    name: str
    description: str | None
    logo: str | None
    country_or_region: str | None
    target_audience: str | None
    main_functionalities_needed: list[str]
    searched_data: list[str]
    searched_services: list[str]
    use_cases: list[str]
    orchestrator: str
    contract: str | None
    roles_and_obligations: list[dict[str, Any]]
    participants: list[ParticipantResponse]
    invitations: list[MembershipEntryResponse]
    join_requests: list[MembershipEntryResponse]
    created_at: datetime
    updated_at: datetime


class EcosystemSignatureResponse(CamelModel):
    message: str = "successfully signed contract"
    contract: dict[str, Any]


def parse_status_filter(value: str | None) -> MembershipStatus | None:
    """Map a query filter to a status; anything unrecognized means no filter."""
    if value is None:
        return None
    try:
        return MembershipStatus(value)
    except ValueError:
        return None
