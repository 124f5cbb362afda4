#!/usr/bin/env python3
"""Exchange Marketplace — End-to-End Simulation.

Drives the service layer through two scenarios against an in-memory
contract service:

    Scenario 1: Bilateral negotiation
        - Consumer opens an access request on a provider offering
        - Provider authorizes with a policy, consumer counter-proposes
        - Provider accepts the counter-proposal terms, both parties sign -> Signed

    Scenario 2: Ecosystem with a contract outage
        - Orchestrator creates an ecosystem while the contract service is down
        - Contract generation is retried once the service is back
        - A participant is invited, accepts, configures offerings
        - Orchestrator and participant sign -> participant joins

Usage:
    # Option A: With Docker (PostgreSQL):
    docker compose up -d
    uv run python simulation.py

    # Option B: Without Docker (SQLite in-memory):
    uv run python simulation.py --sqlite

    # Run a specific scenario:
    uv run python simulation.py --sqlite --scenario 1
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Any

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from exchange_marketplace.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

from exchange_marketplace.domain.enums import ContractKind  # noqa: E402
from exchange_marketplace.domain.exceptions import ContractGatewayError  # noqa: E402
from exchange_marketplace.infrastructure.contract_client import (  # noqa: E402
    InMemoryContractGateway,
)

PROVIDER = "participant-provider"
CONSUMER = "participant-consumer"
ORCHESTRATOR = "participant-orchestrator"
MEMBER = "participant-member"

# Module-level state
_sqlite_engine = None
_sqlite_session_factory = None


# ---------------------------------------------------------------------------
# Database lifecycle helpers
# ---------------------------------------------------------------------------
async def init_database(use_sqlite: bool = False):
    """Initialize database engine and create tables."""
    global _sqlite_engine, _sqlite_session_factory

    if use_sqlite:
        from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

        from exchange_marketplace.infrastructure.database.orm_models import Base

        _sqlite_engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
        _sqlite_session_factory = async_sessionmaker(
            bind=_sqlite_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        async with _sqlite_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.sqlite_initialized")
    else:
        from exchange_marketplace.infrastructure.database.engine import init_db

        await init_db()


def get_session():
    """Get a fresh database session."""
    if _sqlite_session_factory is not None:
        return _sqlite_session_factory()

    from exchange_marketplace.infrastructure.database.engine import get_session_factory

    return get_session_factory()()


async def shutdown_database():
    """Close database connections."""
    global _sqlite_engine, _sqlite_session_factory

    if _sqlite_engine is not None:
        await _sqlite_engine.dispose()
        _sqlite_engine = None
        _sqlite_session_factory = None
    else:
        from exchange_marketplace.infrastructure.database.engine import close_db

        await close_db()


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------
def banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70 + "\n")


def section(title: str) -> None:
    print(f"\n--- {title} ---")


def show(label: str, value: Any) -> None:
    print(f"  {label:<24} {value}")


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------
async def scenario_1_bilateral_negotiation() -> None:
    """Request, authorize, counter-propose, accept and sign an exchange configuration."""
    from exchange_marketplace.services.negotiation_service import NegotiationService

    banner("SCENARIO 1: Bilateral negotiation")
    gateway = InMemoryContractGateway(ContractKind.BILATERAL)

    async with get_session() as session:
        svc = NegotiationService(session, gateway)

        section("Consumer opens an access request")
        configuration = await svc.create(
            caller=CONSUMER,
            provider=PROVIDER,
            consumer=CONSUMER,
            provider_service_offering="offering-weather-feed",
            consumer_service_offering="offering-crop-planner",
        )
        await session.commit()
        configuration_id = configuration.id
        show("configuration", configuration_id)
        show("status", configuration.negotiation_status)

        section("Provider authorizes with a usage-count policy")
        configuration = await svc.authorize(
            configuration_id,
            PROVIDER,
            [{"ruleId": "rule-access-1", "values": {"target": "offering-weather-feed"}}],
        )
        await session.commit()
        show("status", configuration.negotiation_status)
        show("contract", configuration.contract_id)

        section("Consumer counter-proposes")
        configuration = await svc.negotiate(
            configuration_id,
            CONSUMER,
            [{"ruleId": "rule-access-4", "values": {"value": 100}}],
        )
        await session.commit()
        show("status", configuration.negotiation_status)
        show("latest negotiator", configuration.latest_negotiator)

        section("Provider accepts the counter-proposal")
        configuration = await svc.negotiate(
            configuration_id,
            PROVIDER,
            configuration.provider_policies,
        )
        await session.commit()
        status = await svc.get_status(configuration_id, CONSUMER)
        show("allowed events", ", ".join(status["allowed_events"]))

        section("Both parties sign")
        await svc.sign(configuration_id, PROVIDER, "provider-signature")
        await session.commit()
        configuration = await svc.sign(configuration_id, CONSUMER, "consumer-signature")
        await session.commit()
        show("status", configuration.negotiation_status)
        show("signatures", configuration.signatures)
        show("gateway calls", [op for op, _ in gateway.calls])


async def scenario_2_ecosystem_with_outage() -> None:
    """Create an ecosystem while the contract service is down, then complete onboarding."""
    from exchange_marketplace.services.ecosystem_contract_service import (
        EcosystemContractService,
    )
    from exchange_marketplace.services.ecosystem_service import EcosystemService

    banner("SCENARIO 2: Ecosystem with a contract outage")
    gateway = InMemoryContractGateway(ContractKind.ECOSYSTEM)
    gateway.available = False

    async with get_session() as session:
        contracts = EcosystemContractService(session, gateway)
        ecosystems = EcosystemService(session, gateway)

        section("Orchestrator creates the ecosystem (contract service down)")
        result = await contracts.create(
            ORCHESTRATOR,
            {
                "name": "Regional agriculture data space",
                "description": "Weather and soil data shared between farms",
                "use_cases": ["crop planning"],
            },
        )
        await session.commit()
        ecosystem_id = result.ecosystem.id
        show("ecosystem", ecosystem_id)
        show("contract", result.ecosystem.contract)
        show("generation error", result.contract_error.message if result.contract_error else None)

        section("Contract service is back, orchestrator retries")
        gateway.available = True
        document = await contracts.create_contract(ecosystem_id, ORCHESTRATOR)
        await session.commit()
        show("contract", document["_id"])

        section("Orchestrator invites a member, member accepts")
        await ecosystems.invite(ecosystem_id, ORCHESTRATOR, MEMBER, ["data-provider"])
        await session.commit()
        invitation = await ecosystems.accept_invitation(ecosystem_id, MEMBER)
        await session.commit()
        show("invitation status", invitation.status)

        section("Member configures offerings")
        await ecosystems.configure_offerings(
            ecosystem_id,
            MEMBER,
            [{"serviceOffering": "offering-soil-sensors", "policy": []}],
        )
        await session.commit()

        section("Orchestrator and member sign")
        await contracts.sign_as_orchestrator(ecosystem_id, ORCHESTRATOR, "orchestrator-signature")
        await session.commit()
        try:
            document = await contracts.sign_as_participant(ecosystem_id, MEMBER, "member-signature")
        except ContractGatewayError as exc:
            logger.error("simulation.sign_failed", error=exc.message)
            raise
        await session.commit()

        ecosystem = await ecosystems.get(ecosystem_id)
        show("contract status", document["status"])
        show("participants", [p.participant for p in ecosystem.participants])
        show("invitation status", ecosystem.invitations[0].status)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------
SCENARIOS = {
    1: scenario_1_bilateral_negotiation,
    2: scenario_2_ecosystem_with_outage,
}


async def run(scenario: int = 0, use_sqlite: bool = False) -> None:
    """Run one scenario, or all of them when scenario is 0."""
    await init_database(use_sqlite=use_sqlite)

    try:
        if scenario == 0:
            for run_scenario in SCENARIOS.values():
                await run_scenario()
            banner("ALL SCENARIOS COMPLETED SUCCESSFULLY")
        elif scenario in SCENARIOS:
            await SCENARIOS[scenario]()
        else:
            print(f"Unknown scenario {scenario}. Available: {', '.join(map(str, SCENARIOS))}")
    finally:
        await shutdown_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Exchange Marketplace Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1 or 2). Default: run all.",
    )
    parser.add_argument(
        "--sqlite",
        action="store_true",
        help="Use SQLite in-memory instead of PostgreSQL (no Docker needed).",
    )
    args = parser.parse_args()

    asyncio.run(run(args.scenario, use_sqlite=args.sqlite))
