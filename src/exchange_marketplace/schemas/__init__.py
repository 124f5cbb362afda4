"""Pydantic API schemas."""

from exchange_marketplace.schemas.common import (
    CamelModel,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
)
from exchange_marketplace.schemas.ecosystem import (
    ConfigureOfferingsRequest,
    CreateEcosystemRequest,
    EcosystemResponse,
    EcosystemSignatureRequest,
    EcosystemSignatureResponse,
    InviteParticipantRequest,
    JoinEcosystemRequest,
    MembershipEntryResponse,
    MyMembershipEntryResponse,
    UpdateEcosystemRequest,
)
from exchange_marketplace.schemas.negotiation import (
    AuthorizeNegotiationRequest,
    CreateNegotiationRequest,
    NegotiatePoliciesRequest,
    NegotiationResponse,
    NegotiationStatusResponse,
    SignNegotiationRequest,
)

__all__ = [
    "AuthorizeNegotiationRequest",
    "CamelModel",
    "ConfigureOfferingsRequest",
    "CreateEcosystemRequest",
    "CreateNegotiationRequest",
    "EcosystemResponse",
    "EcosystemSignatureRequest",
    "EcosystemSignatureResponse",
    "ErrorResponse",
    "HealthResponse",
    "InviteParticipantRequest",
    "JoinEcosystemRequest",
    "MembershipEntryResponse",
    "MessageResponse",
    "MyMembershipEntryResponse",
    "NegotiatePoliciesRequest",
    "NegotiationResponse",
    "NegotiationStatusResponse",
    "SignNegotiationRequest",
    "UpdateEcosystemRequest",
]
