"""Negotiation Service — bilateral exchange configuration lifecycle.

Coordinates between:
    - Domain state machine (transition guard)
    - Repository (data access, optimistic concurrency)
    - Contract gateway (bilateral contract generation, signing, policy injection)

Both REST routes and MCP tools call into this service, ensuring a single
source of truth for the negotiation rules. Every guard runs before any
field is written; gateway failures abort the operation without advancing
the configuration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from statemachine.exceptions import TransitionNotAllowed

from exchange_marketplace.domain.enums import NegotiationStatus
from exchange_marketplace.domain.exceptions import (
    ContractGatewayError,
    ContractSynchronizationError,
    DuplicateNegotiationError,
    InvalidTransitionError,
    MarketplaceError,
    OwnershipError,
    ResourceNotFoundError,
)
from exchange_marketplace.domain.state_machine import NegotiationStateMachine
from exchange_marketplace.infrastructure.database.orm_models import ExchangeConfiguration
from exchange_marketplace.infrastructure.database.repositories import NegotiationRepository
from exchange_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from exchange_marketplace.domain.contract_gateway import ContractGateway

logger = get_logger(__name__)


class NegotiationService:
    """Manages the bilateral negotiation lifecycle."""

    def __init__(self, session: AsyncSession, gateway: ContractGateway) -> None:
        self._session = session
        self._gateway = gateway
        self._repo = NegotiationRepository(session)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create(
        self,
        caller: str,
        provider: str,
        consumer: str,
        provider_service_offering: str,
        consumer_service_offering: str,
    ) -> ExchangeConfiguration:
        """Open an access request in Requested state.

        Either party may open it. A second request for the same parties and
        offerings is rejected with the id of the first one.
        """
        if caller not in (provider, consumer):
            raise OwnershipError("Exchange Configuration could not be created")
        if provider == consumer:
            raise MarketplaceError("Provider and consumer must be different participants")

        existing = await self._repo.find_by_tuple(
            provider, provider_service_offering, consumer, consumer_service_offering
        )
        if existing is not None:
            raise DuplicateNegotiationError(str(existing.id))

        configuration = ExchangeConfiguration(
            provider=provider,
            consumer=consumer,
            provider_service_offering=provider_service_offering,
            consumer_service_offering=consumer_service_offering,
            negotiation_status=NegotiationStatus.REQUESTED.value,
            provider_policies=[],
        )
        configuration = await self._repo.create(configuration)

        logger.info(
            "negotiation.created",
            configuration_id=str(configuration.id),
            provider=provider,
            consumer=consumer,
            by=caller,
        )
        return configuration

    # ------------------------------------------------------------------
    # Provider authorization
    # ------------------------------------------------------------------

    async def authorize(
        self,
        configuration_id: uuid.UUID,
        caller: str,
        policies: list[dict],
    ) -> ExchangeConfiguration:
        """Provider authorizes the request, seeds the policies and generates the contract."""
        configuration = await self._get_or_raise(configuration_id)

        if caller != configuration.provider:
            raise OwnershipError("Exchange Configuration could not be authorized")

        self._fire_transition(
            configuration,
            "authorize",
            "Exchange configuration has already been authorized",
        )

        try:
            contract = await self._gateway.generate(
                subject_id=str(configuration.id),
                initiator_id=configuration.provider,
                terms={
                    "provider": configuration.provider,
                    "consumer": configuration.consumer,
                    "providerServiceOffering": configuration.provider_service_offering,
                    "consumerServiceOffering": configuration.consumer_service_offering,
                    "policy": policies,
                },
            )
        except ContractGatewayError as exc:
            logger.warning(
                "negotiation.contract_generation_failed",
                configuration_id=str(configuration.id),
                error=exc.message,
            )
            raise ContractSynchronizationError(
                "Failed to generate bilateral contract",
                error_msg="Failed to generate contract",
                upstream=exc,
            ) from exc

        configuration.provider_policies = list(policies)
        configuration.latest_negotiator = configuration.provider
        configuration.contract_id = contract.contract_id
        configuration.negotiation_status = NegotiationStatus.AUTHORIZED.value
        await self._repo.save(configuration)

        logger.info(
            "negotiation.authorized",
            configuration_id=str(configuration.id),
            contract_id=contract.contract_id,
        )
        return configuration

    # ------------------------------------------------------------------
    # Consumer acceptance
    # ------------------------------------------------------------------

    async def accept(self, configuration_id: uuid.UUID, caller: str) -> ExchangeConfiguration:
        """Consumer accepts the provider's terms, opening the signature phase."""
        configuration = await self._get_or_raise(configuration_id)

        if caller != configuration.consumer:
            raise OwnershipError("Exchange Configuration could not be accepted")

        if configuration.negotiation_status == NegotiationStatus.REQUESTED:
            message = "Exchange configuration has not yet been authorized by the provider"
        else:
            message = "Exchange configuration has already been validated and is pending signatures"
        self._fire_transition(configuration, "accept", message)

        configuration.negotiation_status = NegotiationStatus.SIGNATURE_READY.value
        await self._repo.save(configuration)

        logger.info("negotiation.accepted", configuration_id=str(configuration.id))
        return configuration

    # ------------------------------------------------------------------
    # Counter-proposals
    # ------------------------------------------------------------------

    async def negotiate(
        self,
        configuration_id: uuid.UUID,
        caller: str,
        policies: list[dict],
    ) -> ExchangeConfiguration:
        """Replace the policies with a counter-proposal.

        Parties alternate: the caller must not be the latest negotiator.
        Once anyone has signed, the terms are frozen.
        """
        configuration = await self._get_or_raise(configuration_id)

        if configuration.party_of(caller) is None:
            raise OwnershipError("Exchange Configuration could not be negotiated")

        if configuration.provider_signature or configuration.consumer_signature:
            raise InvalidTransitionError(
                configuration.negotiation_status,
                "negotiate",
                "Exchange configuration is pending signatures and can no longer be negotiated",
            )

        self._fire_transition(
            configuration,
            "negotiate",
            "Exchange configuration is not open for negotiation",
        )

        if caller == configuration.latest_negotiator:
            raise InvalidTransitionError(
                configuration.negotiation_status,
                "negotiate",
                "Waiting for the other party to answer the latest proposal",
            )

        configuration.provider_policies = list(policies)
        configuration.latest_negotiator = caller
        configuration.negotiation_status = NegotiationStatus.NEGOTIATION.value
        await self._repo.save(configuration)

        logger.info(
            "negotiation.negotiated",
            configuration_id=str(configuration.id),
            by=caller,
            policies=len(policies),
        )
        return configuration

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    async def sign(
        self,
        configuration_id: uuid.UUID,
        caller: str,
        signature: str,
    ) -> ExchangeConfiguration:
        """Record the caller's signature; the second signature finalizes the contract.

        The signature is only stored once the contract service accepted it,
        and on the final signature only once the policies were injected.
        """
        configuration = await self._get_or_raise(configuration_id)

        sm = NegotiationStateMachine(current_status=configuration.negotiation_status)
        if "sign_partial" not in sm.get_allowed_events():
            raise InvalidTransitionError(
                configuration.negotiation_status,
                "sign",
                "Exchange configuration is not ready for signature",
            )

        party = configuration.party_of(caller)
        if party is None:
            raise OwnershipError("Exchange Configuration could not be signed")

        signatures = configuration.signatures
        if signatures[party] is not None:
            raise InvalidTransitionError(
                configuration.negotiation_status,
                "sign",
                "Exchange configuration has already been signed by this participant",
            )

        try:
            await self._gateway.sign(
                contract_id=configuration.contract_id,
                participant_id=caller,
                signature=signature,
                role=party,
            )
        except ContractGatewayError as exc:
            logger.warning(
                "negotiation.contract_signature_failed",
                configuration_id=str(configuration.id),
                party=party,
                error=exc.message,
            )
            raise ContractSynchronizationError(
                "Failed to sign bilateral contract",
                error_msg="Failed to sign contract",
                upstream=exc,
            ) from exc

        signatures[party] = signature
        completed = all(value is not None for value in signatures.values())

        if completed:
            try:
                await self._gateway.inject_policies(
                    configuration.contract_id, list(configuration.provider_policies)
                )
            except ContractGatewayError as exc:
                logger.warning(
                    "negotiation.policy_injection_failed",
                    configuration_id=str(configuration.id),
                    error=exc.message,
                )
                raise ContractSynchronizationError(
                    "Failed to inject policies in bilateral contract",
                    error_msg="Failed to inject policies",
                    upstream=exc,
                ) from exc
            self._fire_transition(configuration, "sign_final", "Exchange configuration could not be signed")
            configuration.negotiation_status = NegotiationStatus.SIGNED.value
        else:
            self._fire_transition(configuration, "sign_partial", "Exchange configuration could not be signed")

        if party == "provider":
            configuration.provider_signature = signature
        else:
            configuration.consumer_signature = signature
        await self._repo.save(configuration)

        logger.info(
            "negotiation.signed",
            configuration_id=str(configuration.id),
            party=party,
            completed=completed,
        )
        return configuration

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get(self, configuration_id: uuid.UUID, caller: str) -> ExchangeConfiguration:
        """Get a configuration the caller is a party of."""
        configuration = await self._get_or_raise(configuration_id)
        if configuration.party_of(caller) is None:
            raise OwnershipError("Exchange Configuration could not be retrieved")
        return configuration

    async def list_for(self, participant: str) -> list[ExchangeConfiguration]:
        return await self._repo.list_for_participant(participant)

    async def get_status(self, configuration_id: uuid.UUID, caller: str) -> dict:
        """Get the negotiation status with the events allowed from it."""
        configuration = await self.get(configuration_id, caller)
        sm = NegotiationStateMachine(current_status=configuration.negotiation_status)
        return {
            "id": configuration.id,
            "negotiation_status": configuration.negotiation_status,
            "latest_negotiator": configuration.latest_negotiator,
            "signatures": configuration.signatures,
            "allowed_events": sm.get_allowed_events(),
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_or_raise(self, configuration_id: uuid.UUID) -> ExchangeConfiguration:
        configuration = await self._repo.get_by_id(configuration_id)
        if configuration is None:
            raise ResourceNotFoundError("Exchange configuration", str(configuration_id))
        return configuration

    def _fire_transition(
        self,
        configuration: ExchangeConfiguration,
        event_name: str,
        message: str,
    ) -> None:
        """Validate and fire a state machine transition.

        Raises InvalidTransitionError with `message` if the transition is illegal.
        """
        sm = NegotiationStateMachine(current_status=configuration.negotiation_status)
        try:
            getattr(sm, event_name)()
        except TransitionNotAllowed as err:
            raise InvalidTransitionError(
                configuration.negotiation_status, event_name, message
            ) from err
