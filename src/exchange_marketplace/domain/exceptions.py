"""Domain exceptions for the Exchange Marketplace.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.

Every error carries:
    - message:   human readable explanation
    - error_msg: stable machine-readable tag clients branch on
    - data:      optional structured context (existing ids, upstream status)
"""

from __future__ import annotations


class MarketplaceError(Exception):
    """Base exception for all domain errors."""

    def __init__(
        self,
        message: str,
        error_msg: str = "Invalid operation",
        data: dict | None = None,
    ) -> None:
        self.message = message
        self.error_msg = error_msg
        self.data = data
        super().__init__(self.message)


# --- Resource Errors ---


class ResourceNotFoundError(MarketplaceError):
    """Raised when a referenced aggregate does not exist."""

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(
            message=f"{resource} not found",
            error_msg="Resource not found",
        )
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(MarketplaceError):
    """Raised when an existing resource blocks the operation."""

    def __init__(self, message: str, data: dict | None = None) -> None:
        super().__init__(message=message, error_msg="conflicting resource", data=data)


class DuplicateNegotiationError(ConflictError):
    """Raised when an exchange configuration already exists for the same parties and offerings."""

    def __init__(self, existing_id: str) -> None:
        super().__init__(
            message=(
                "An access request for this configuration already exists with id: "
                f"{existing_id}"
            ),
            data={"id": existing_id},
        )
        self.existing_id = existing_id


class ConcurrentModificationError(ConflictError):
    """Raised when an aggregate was changed by another request since it was read."""

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(
            message=f"{resource} {resource_id} was modified concurrently, retry the operation",
            data={"id": resource_id},
        )


class DuplicateOperationError(ConflictError):
    """Raised when a duplicate idempotency key is detected."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            message=f"Duplicate operation detected for key: {idempotency_key}",
            data={"idempotencyKey": idempotency_key},
        )


# --- State Machine Errors ---


class InvalidTransitionError(MarketplaceError):
    """Raised when a state machine guard rejects the attempted action.

    Example: authorizing an exchange configuration that is already Authorized.
    """

    def __init__(self, current_state: str, action: str, message: str | None = None) -> None:
        super().__init__(
            message=message or f"Cannot {action} from state {current_state}",
            error_msg="Invalid operation",
        )
        self.current_state = current_state
        self.action = action


class ExistingParticipantError(MarketplaceError):
    """Raised when a participant of an ecosystem tries to join it again."""

    def __init__(self, participant: str) -> None:
        super().__init__(
            message="Service is already a participant in this ecosystem",
            error_msg="existing participant",
            data={"participant": participant},
        )


class InvitationError(MarketplaceError):
    """Raised when the caller has no invitation in a state that allows the action."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, error_msg="ecosystem invitation accept error")


class JoinRequestNotFoundError(MarketplaceError):
    """Raised when a join request id is unknown within an existing ecosystem.

    Reported as a client error: the ecosystem exists, the request id is wrong.
    """

    def __init__(self, request_id: str) -> None:
        super().__init__(
            message=f"Join request {request_id} does not exist in this ecosystem",
            error_msg="join request not found",
        )
        self.request_id = request_id


# --- Ownership Errors ---


class OwnershipError(MarketplaceError):
    """Raised when the caller has no rights over the resource."""

    def __init__(self, message: str, error_msg: str = "Resource error") -> None:
        super().__init__(message=message, error_msg=error_msg)


class UnauthorizedParticipantError(OwnershipError):
    """Raised when a participant holds no live invitation, join request or membership."""

    def __init__(
        self,
        message: str = "The participant does not have an authorized join request or invitation",
    ) -> None:
        super().__init__(message=message, error_msg="unauthorized participant in ecosystem")


# --- Contract Errors ---


class ContractMissingError(MarketplaceError):
    """Raised when an ecosystem operation needs a contract that was never generated."""

    def __init__(self) -> None:
        super().__init__(
            message="The ecosystem contract was not properly generated",
            error_msg="Contract does not exist",
        )


class ContractSynchronizationError(ConflictError):
    """Raised when the bilateral contract could not follow a negotiation transition.

    The negotiation is left in the state it had before the call.
    """

    def __init__(self, message: str, error_msg: str, upstream: ContractGatewayError) -> None:
        super().__init__(
            message=message,
            data={"status": upstream.status_code, "message": upstream.message},
        )
        self.error_msg = error_msg
        self.upstream = upstream


# --- Contract Gateway Errors ---


class ContractGatewayError(MarketplaceError):
    """Raised when a call to the external contract service fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: object = None,
    ) -> None:
        super().__init__(
            message=message,
            error_msg="third party api failure",
            data={"status": status_code, "message": message},
        )
        self.status_code = status_code
        self.detail = detail

    @classmethod
    def wrapping(cls, message: str, upstream: ContractGatewayError) -> ContractGatewayError:
        """Restate an upstream failure under an operation-specific message."""
        error = cls(message, status_code=upstream.status_code, detail=upstream.detail)
        error.data = {"status": upstream.status_code, "message": upstream.message}
        return error


class GatewayUnavailableError(ContractGatewayError):
    """Transport failure, timeout or 5xx from the contract service."""


class ContractNotFoundError(ContractGatewayError):
    """The contract service has no contract with the requested id."""

    def __init__(self, contract_id: str, detail: object = None) -> None:
        super().__init__(
            message=f"Contract not found: {contract_id}",
            status_code=404,
            detail=detail,
        )
        self.contract_id = contract_id
