"""MCP Tool definitions for the Exchange Marketplace.

These tools expose read-only marketplace views via the Model Context Protocol,
allowing agents acting for a participant to discover and call them.

Tools:
    - list_my_negotiations: Exchange configurations a participant is a party of
    - negotiation_status: Status of one configuration with its allowed transitions
    - list_my_ecosystems: Ecosystems a participant orchestrates, belongs to, or is joining

The MCP server is mounted into FastAPI at /mcp via app.mount().
Each tool manages its own database session (no FastAPI Depends available).
"""

from __future__ import annotations

import uuid

from mcp.server.fastmcp import FastMCP

from exchange_marketplace.domain.enums import ContractKind
from exchange_marketplace.domain.exceptions import MarketplaceError
from exchange_marketplace.logging_config import get_logger

logger = get_logger(__name__)

# Initialize the MCP server
# This will be mounted into the FastAPI app in main.py
mcp = FastMCP(
    "Exchange Marketplace",
    json_response=True,
)


def _get_session():
    """Create a database session for MCP tool context (not in FastAPI request)."""
    from exchange_marketplace.infrastructure.database.engine import get_session_factory

    return get_session_factory()()


def _error(exc: Exception) -> dict:
    if isinstance(exc, MarketplaceError):
        return {"error": exc.error_msg, "message": exc.message}
    return {"error": str(exc)}


@mcp.tool()
async def list_my_negotiations(participant_id: str) -> dict:
    """List the exchange configurations you are a party of, newest first.

    Args:
        participant_id: Your participant id.

    Returns:
        One summary per configuration: id, counterpart, status and signatures.
    """
    from exchange_marketplace.services.projection_service import ProjectionService

    try:
        async with _get_session() as session:
            configurations = await ProjectionService(session).negotiations_for(participant_id)
            return {
                "participant": participant_id,
                "negotiations": [
                    {
                        "id": str(c.id),
                        "role": c.party_of(participant_id),
                        "provider": c.provider,
                        "consumer": c.consumer,
                        "negotiation_status": c.negotiation_status,
                        "latest_negotiator": c.latest_negotiator,
                        "signatures": c.signatures,
                    }
                    for c in configurations
                ],
            }
    except Exception as exc:
        logger.exception("mcp.list_my_negotiations.error")
        return _error(exc)


@mcp.tool()
async def negotiation_status(participant_id: str, negotiation_id: str) -> dict:
    """Check where a negotiation stands and what can happen next.

    Args:
        participant_id: Your participant id (must be the provider or the consumer).
        negotiation_id: UUID of the exchange configuration.

    Returns:
        Current status, latest negotiator, signatures and the allowed events.
    """
    from exchange_marketplace.infrastructure.contract_client import build_contract_gateway
    from exchange_marketplace.services.negotiation_service import NegotiationService

    try:
        async with _get_session() as session:
            svc = NegotiationService(session, build_contract_gateway(ContractKind.BILATERAL))
            status = await svc.get_status(uuid.UUID(negotiation_id), participant_id)
            return {**status, "id": str(status["id"])}
    except Exception as exc:
        logger.exception("mcp.negotiation_status.error")
        return _error(exc)


@mcp.tool()
async def list_my_ecosystems(participant_id: str) -> dict:
    """List the ecosystems you orchestrate, belong to, or have a pending entry in.

    Args:
        participant_id: Your participant id.

    Returns:
        One summary per ecosystem with your standing in it.
    """
    from exchange_marketplace.domain.membership import resolve_membership
    from exchange_marketplace.services.projection_service import ProjectionService

    try:
        async with _get_session() as session:
            ecosystems = await ProjectionService(session).my_ecosystems(participant_id)
            return {
                "participant": participant_id,
                "ecosystems": [
                    {
                        "id": str(e.id),
                        "name": e.name,
                        "orchestrator": e.orchestrator,
                        "contract": e.contract,
                        "membership": resolve_membership(e, participant_id).resolution.value,
                    }
                    for e in ecosystems
                ],
            }
    except Exception as exc:
        logger.exception("mcp.list_my_ecosystems.error")
        return _error(exc)


if __name__ == "__main__":
    from exchange_marketplace.config import get_settings

    mcp.run(transport=get_settings().mcp_transport)
