"""Application services — use case orchestration."""

from exchange_marketplace.services.ecosystem_contract_service import (
    EcosystemContractService,
    EcosystemCreationResult,
    EcosystemUpdateResult,
)
from exchange_marketplace.services.ecosystem_service import EcosystemService
from exchange_marketplace.services.negotiation_service import NegotiationService
from exchange_marketplace.services.projection_service import ProjectionService

__all__ = [
    "EcosystemContractService",
    "EcosystemCreationResult",
    "EcosystemUpdateResult",
    "EcosystemService",
    "NegotiationService",
    "ProjectionService",
]
