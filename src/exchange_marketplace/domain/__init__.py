"""Domain layer — pure business logic with zero framework dependencies."""

from exchange_marketplace.domain.contract_gateway import ContractGateway, ContractRef
from exchange_marketplace.domain.enums import (
    ContractKind,
    ContractRole,
    MembershipResolution,
    MembershipStatus,
    NegotiationParty,
    NegotiationStatus,
)
from exchange_marketplace.domain.exceptions import (
    ConflictError,
    ContractGatewayError,
    InvalidTransitionError,
    MarketplaceError,
    ResourceNotFoundError,
)
from exchange_marketplace.domain.membership import resolve_membership
from exchange_marketplace.domain.state_machine import (
    MembershipStateMachine,
    NegotiationStateMachine,
    validate_transition,
)

__all__ = [
    "ContractGateway",
    "ContractRef",
    "ContractKind",
    "ContractRole",
    "MembershipResolution",
    "MembershipStatus",
    "NegotiationParty",
    "NegotiationStatus",
    "ConflictError",
    "ContractGatewayError",
    "InvalidTransitionError",
    "MarketplaceError",
    "ResourceNotFoundError",
    "resolve_membership",
    "MembershipStateMachine",
    "NegotiationStateMachine",
    "validate_transition",
]
