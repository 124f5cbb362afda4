"""Contract Gateway Protocol.

Defines the interface to the external contract service. This is a Protocol
(structural subtyping) so the HTTP client and the in-memory double don't
need to inherit from a base class — they just need to match the shape.

One gateway instance serves one ContractKind: bilateral contracts and
ecosystem contracts live in separate resource collections and never share ids.

The domain layer has ZERO imports from httpx or any transport library.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from exchange_marketplace.domain.enums import ContractKind


@dataclass(frozen=True)
class ContractRef:
    """Reference returned by contract generation.

    Attributes:
        contract_id: Opaque id assigned by the contract service.
        kind: Which contract family the id belongs to.
        document: The full contract document as returned by the service.
    """

    contract_id: str
    kind: ContractKind
    document: dict = field(default_factory=dict)


@runtime_checkable
class ContractGateway(Protocol):
    """Protocol that every contract service client must satisfy.

    Implementations:
        - infrastructure/contract_client.py  HttpContractGateway (httpx)
        - infrastructure/contract_client.py  InMemoryContractGateway

    Every method raises ContractGatewayError (or a subclass) on failure,
    never returns a partial result.
    """

    kind: ContractKind

    async def generate(
        self,
        subject_id: str,
        initiator_id: str,
        role: str | None = None,
        terms: dict | None = None,
    ) -> ContractRef:
        """Create the contract backing a negotiation or ecosystem."""
        ...

    async def get_by_id(self, contract_id: str) -> dict:
        """Fetch a contract document."""
        ...

    async def sign(
        self,
        contract_id: str,
        participant_id: str,
        signature: str,
        role: str,
    ) -> dict:
        """Record a participant's signature on the contract."""
        ...

    async def inject_policies(self, contract_id: str, policies: list[dict]) -> dict:
        """Inject policy rules (bilateral) or roles and obligations (ecosystem)."""
        ...

    async def delete(self, contract_id: str) -> dict:
        """Delete the contract."""
        ...
