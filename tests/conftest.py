"""Shared test fixtures for the Exchange Marketplace test suite.

Provides:
    - An in-memory SQLite database (aiosqlite) with the full schema
    - In-memory contract gateways for both contract kinds
    - An HTTP client bound to the app with the session and gateways overridden
    - Factory helpers for creating negotiations and ecosystems
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from exchange_marketplace.domain.enums import ContractKind
from exchange_marketplace.infrastructure.contract_client import InMemoryContractGateway
from exchange_marketplace.infrastructure.database.orm_models import Base

PROVIDER = "participant-provider"
CONSUMER = "participant-consumer"
ORCHESTRATOR = "participant-orchestrator"
MEMBER = "participant-member"
OUTSIDER = "participant-outsider"

# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine():
    """A fresh in-memory database per test; StaticPool keeps one shared connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Contract Gateway Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def bilateral_gateway() -> InMemoryContractGateway:
    return InMemoryContractGateway(ContractKind.BILATERAL)


@pytest.fixture
def ecosystem_gateway() -> InMemoryContractGateway:
    return InMemoryContractGateway(ContractKind.ECOSYSTEM)


# ---------------------------------------------------------------------------
# API Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(session_factory, bilateral_gateway, ecosystem_gateway):
    """HTTP client against the app, one committed transaction per request."""
    from exchange_marketplace.api.deps import (
        get_bilateral_gateway,
        get_db_session,
        get_ecosystem_gateway,
    )
    from exchange_marketplace.main import create_app

    app = create_app(with_lifespan=False)

    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_bilateral_gateway] = lambda: bilateral_gateway
    app.dependency_overrides[get_ecosystem_gateway] = lambda: ecosystem_gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http


def as_participant(participant: str) -> dict[str, str]:
    """Headers identifying the caller."""
    return {"X-Participant-ID": participant}


# ---------------------------------------------------------------------------
# Domain Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def negotiation_data() -> dict:
    """Return valid arguments for NegotiationService.create."""
    return {
        "caller": CONSUMER,
        "provider": PROVIDER,
        "consumer": CONSUMER,
        "provider_service_offering": "offering-weather-feed",
        "consumer_service_offering": "offering-crop-planner",
    }


@pytest.fixture
def ecosystem_fields() -> dict:
    """Return descriptive fields for a new ecosystem."""
    return {
        "name": "Regional agriculture data space",
        "description": "Weather and soil data shared between farms",
        "country_or_region": "Occitanie",
        "use_cases": ["crop planning"],
    }


@pytest.fixture
def policy() -> list[dict]:
    return [{"ruleId": "rule-access-1", "values": {"target": "offering-weather-feed"}}]
