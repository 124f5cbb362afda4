"""Pydantic schemas for the bilateral negotiation API.

These schemas define the request/response shapes for the REST API and
MCP tools. They are separate from the ORM models to maintain clean
boundaries between the API and database layers.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import ConfigDict, Field

from exchange_marketplace.schemas.common import CamelModel

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class PolicyRule(CamelModel):
    """A policy rule reference with its parameter values. Extra keys are kept."""

    model_config = ConfigDict(extra="allow")

    rule_id: str = Field(..., min_length=1, examples=["rule-access-5"])
    values: dict[str, Any] = Field(
        default_factory=dict,
        examples=[{"dateBegin": "2024-01-01", "dateEnd": "2026-01-01"}],
    )


class CreateNegotiationRequest(CamelModel):
    """Request body for opening an access request between two offerings."""

    provider: str = Field(..., min_length=1, description="Participant id of the data provider")
    consumer: str = Field(..., min_length=1, description="Participant id of the data consumer")
    provider_service_offering: str = Field(..., min_length=1)
    consumer_service_offering: str = Field(..., min_length=1)


class AuthorizeNegotiationRequest(CamelModel):
    """Request body for the provider authorizing an access request."""

    policy: list[PolicyRule] = Field(
        default_factory=list,
        description="Policies the provider proposes as the starting terms",
    )


class NegotiatePoliciesRequest(CamelModel):
    """Request body for a counter-proposal."""

    policy: list[PolicyRule] = Field(..., description="Replacement policy list")


class SignNegotiationRequest(CamelModel):
    signature: str = Field(..., min_length=1, description="Opaque signature value")


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class SignaturesResponse(CamelModel):
    provider: str | None = None
    consumer: str | None = None


class NegotiationResponse(CamelModel):
    """Response schema for an exchange configuration."""

    id: uuid.UUID
    provider: str
    consumer: str
    provider_service_offering: str
    consumer_service_offering: str
    negotiation_status: str
    provider_policies: list[dict[str, Any]]
    latest_negotiator: str | None
    signatures: SignaturesResponse
    contract_id: str | None
    created_at: datetime
    updated_at: datetime


class NegotiationStatusResponse(CamelModel):
    """Lightweight status check response."""

    id: uuid.UUID
    negotiation_status: str
    latest_negotiator: str | None
    signatures: SignaturesResponse
    allowed_events: list[str] = Field(
        description="State machine events that can fire from the current status"
    )
