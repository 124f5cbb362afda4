"""Negotiation and membership state machine guards.

Uses python-statemachine to enforce legal transitions at the domain level.
Services build a machine from the persisted status, fire the named event,
and only then write the new status. An illegal transition (e.g. signing a
configuration that is still Requested) raises TransitionNotAllowed.

Negotiation transition table:
    Requested       -> Authorized       (authorize)
    Authorized      -> SignatureReady   (accept)
    Authorized      -> Negotiation      (negotiate)
    SignatureReady  -> Negotiation      (negotiate)
    Negotiation     -> Negotiation      (negotiate)
    SignatureReady  -> SignatureReady   (sign_partial)
    Negotiation     -> Negotiation      (sign_partial)
    SignatureReady  -> Signed           (sign_final)
    Negotiation     -> Signed           (sign_final)

Membership transition table (invitations and join requests):
    Pending         -> Authorized       (authorize)
    Pending         -> Rejected         (reject)
    Authorized      -> Rejected         (reject)
    Authorized      -> Signed           (sign)
"""

from __future__ import annotations

from statemachine import State, StateMachine


class _GuardMixin:
    """Shared construction from a persisted status string."""

    def _check_status(self, current_status: str) -> None:
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches the status enum)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return a list of event names that can fire from the current state."""
        return [_event_id(event) for event in self.allowed_events]

    def get_all_events(self) -> list[str]:
        """Return every event name the machine declares."""
        return [_event_id(event) for event in self.events]


def _event_id(event) -> str:  # noqa: ANN001
    # Newer python-statemachine releases separate the event id from its display name
    return getattr(event, "id", None) or event.name


class NegotiationStateMachine(_GuardMixin, StateMachine):
    """State machine that guards the bilateral exchange configuration lifecycle.

    Usage:
        sm = NegotiationStateMachine(current_status="Authorized")
        sm.accept()      # transitions to SignatureReady
        sm.status        # "SignatureReady"
    """

    # --- States ---
    REQUESTED = State("Requested", value="Requested", initial=True)
    AUTHORIZED = State("Authorized", value="Authorized")
    SIGNATURE_READY = State("SignatureReady", value="SignatureReady")
    NEGOTIATION = State("Negotiation", value="Negotiation")
    SIGNED = State("Signed", value="Signed", final=True)

    # --- Events / Transitions ---
    authorize = REQUESTED.to(AUTHORIZED)
    accept = AUTHORIZED.to(SIGNATURE_READY)
    negotiate = (
        AUTHORIZED.to(NEGOTIATION)
        | SIGNATURE_READY.to(NEGOTIATION)
        | NEGOTIATION.to.itself()
    )

    # One party signed, waiting for the other
    sign_partial = SIGNATURE_READY.to.itself() | NEGOTIATION.to.itself()
    # Second signature recorded
    sign_final = SIGNATURE_READY.to(SIGNED) | NEGOTIATION.to(SIGNED)

    def __init__(self, current_status: str = "Requested") -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The current NegotiationStatus value (e.g., "Authorized").
        """
        self._check_status(current_status)
        super().__init__(start_value=current_status)


class MembershipStateMachine(_GuardMixin, StateMachine):
    """State machine for a single ecosystem invitation or join request."""

    PENDING = State("Pending", value="Pending", initial=True)
    AUTHORIZED = State("Authorized", value="Authorized")
    REJECTED = State("Rejected", value="Rejected", final=True)
    SIGNED = State("Signed", value="Signed", final=True)

    authorize = PENDING.to(AUTHORIZED)
    reject = PENDING.to(REJECTED) | AUTHORIZED.to(REJECTED)
    sign = AUTHORIZED.to(SIGNED)

    def __init__(self, current_status: str = "Pending") -> None:
        self._check_status(current_status)
        super().__init__(start_value=current_status)


_MACHINES: dict[str, type[StateMachine]] = {
    "negotiation": NegotiationStateMachine,
    "membership": MembershipStateMachine,
}


def validate_transition(current_status: str, event_name: str, machine: str = "negotiation") -> str:
    """Validate a state transition and return the new status.

    Creates a temporary state machine, fires the named event, and returns
    the resulting status string.

    Args:
        current_status: Current status value.
        event_name: The event to fire (e.g., "accept").
        machine: "negotiation" or "membership".

    Returns:
        The new status string after the transition.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the machine, status or event name is invalid.
    """
    machine_class = _MACHINES.get(machine)
    if machine_class is None:
        raise ValueError(f"Unknown machine '{machine}'. Valid: {sorted(_MACHINES)}")

    sm = machine_class(current_status=current_status)

    event_method = getattr(sm, event_name, None)
    if event_name not in sm.get_all_events() or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status
