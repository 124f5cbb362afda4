"""Domain enumerations for the Exchange Marketplace.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class NegotiationStatus(enum.StrEnum):
    """Lifecycle states of a bilateral exchange configuration.

    Transitions are enforced by NegotiationStateMachine.
    See domain/state_machine.py for the transition table.
    """

    REQUESTED = "Requested"
    AUTHORIZED = "Authorized"
    SIGNATURE_READY = "SignatureReady"
    NEGOTIATION = "Negotiation"
    SIGNED = "Signed"


class MembershipStatus(enum.StrEnum):
    """Lifecycle states of an ecosystem invitation or join request."""

    PENDING = "Pending"
    AUTHORIZED = "Authorized"
    REJECTED = "Rejected"
    SIGNED = "Signed"


class NegotiationParty(enum.StrEnum):
    """The two sides of an exchange configuration."""

    PROVIDER = "provider"
    CONSUMER = "consumer"


class ContractKind(enum.StrEnum):
    """Contract families held by the contract service.

    Each kind lives in its own resource collection with its own id space.
    """

    BILATERAL = "bilateral"
    ECOSYSTEM = "ecosystem"


class ContractRole(enum.StrEnum):
    """Signing roles understood by the ecosystem contract service."""

    ORCHESTRATOR = "orchestrator"
    PARTICIPANT = "participant"


class MembershipResolution(enum.StrEnum):
    """Where a participant currently stands in an ecosystem.

    Computed by domain.membership.resolve_membership before any invitation
    or join request is created.
    """

    NONE = "none"
    PARTICIPANT = "participant"
    PENDING_INVITATION = "pending_invitation"
    PENDING_JOIN_REQUEST = "pending_join_request"
    AUTHORIZED_INVITATION = "authorized_invitation"
    AUTHORIZED_JOIN_REQUEST = "authorized_join_request"


ORCHESTRATOR_ROLE = "Orchestrator"
