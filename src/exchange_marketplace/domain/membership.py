"""Membership resolution for ecosystems.

Invitations (orchestrator-initiated) and join requests (participant-initiated)
converge on the same outcome. When one side opens a flow while the other side
already has a pending one, the pending entry is accepted instead of creating a
duplicate. Both `invite` and `request_to_join` call resolve_membership first so
that rule lives in exactly one place.

Works on any objects exposing `participant` and `status` attributes, so it is
usable on ORM rows and plain test doubles alike.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from exchange_marketplace.domain.enums import MembershipResolution, MembershipStatus

if TYPE_CHECKING:
    from collections.abc import Iterable


class MembershipEntry(Protocol):
    participant: str
    status: str


class EcosystemMembers(Protocol):
    participants: Iterable[Any]
    invitations: Iterable[MembershipEntry]
    join_requests: Iterable[MembershipEntry]


@dataclass(frozen=True)
class Membership:
    resolution: MembershipResolution
    entry: Any = None


def find_pending(entries: Iterable[MembershipEntry], participant: str) -> MembershipEntry | None:
    """Return the participant's Pending entry, if any."""
    for entry in entries:
        if entry.participant == participant and entry.status == MembershipStatus.PENDING:
            return entry
    return None


def find_live(entries: Iterable[MembershipEntry], participant: str) -> list[MembershipEntry]:
    """Return every non-rejected entry belonging to the participant."""
    return [
        entry
        for entry in entries
        if entry.participant == participant and entry.status != MembershipStatus.REJECTED
    ]


def find_authorized(entries: Iterable[MembershipEntry], participant: str) -> MembershipEntry | None:
    for entry in entries:
        if entry.participant == participant and entry.status == MembershipStatus.AUTHORIZED:
            return entry
    return None


def resolve_membership(ecosystem: EcosystemMembers, participant: str) -> Membership:
    """Classify where `participant` stands in `ecosystem`.

    Any non-rejected entry occupies the participant, so at most one of
    participants, live invitation and live join request ever holds them.
    Precedence: an existing membership wins over any entry, and a join
    request wins over an invitation.
    """
    for member in ecosystem.participants:
        if member.participant == participant:
            return Membership(MembershipResolution.PARTICIPANT, member)

    candidates = (
        (
            ecosystem.join_requests,
            MembershipResolution.PENDING_JOIN_REQUEST,
            MembershipResolution.AUTHORIZED_JOIN_REQUEST,
        ),
        (
            ecosystem.invitations,
            MembershipResolution.PENDING_INVITATION,
            MembershipResolution.AUTHORIZED_INVITATION,
        ),
    )
    for entries, pending, authorized in candidates:
        live = find_live(entries, participant)
        if not live:
            continue
        entry = live[0]
        if entry.status == MembershipStatus.PENDING:
            return Membership(pending, entry)
        return Membership(authorized, entry)

    return Membership(MembershipResolution.NONE)
