"""Contract service clients.

Two implementations of the ContractGateway protocol:
    - HttpContractGateway:      talks to the contract microservice over HTTP (httpx)
    - InMemoryContractGateway:  in-process contract store for dry runs and tests

Wire format of the contract service (per resource collection):
    POST   {base}{resource}                 -> create, body {"contract": {...}, "role": ...}
    GET    {base}{resource}/{id}            -> fetch
    PUT    {base}{resource}/sign/{id}       -> sign
    PUT    {base}{resource}/policies/{id}   -> inject policies / roles and obligations
    DELETE {base}{resource}/{id}            -> delete

Failure mapping:
    transport error, timeout, 5xx  -> GatewayUnavailableError (retried, except on create)
    404                            -> ContractNotFoundError
    any other non-2xx              -> ContractGatewayError
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from exchange_marketplace.config import get_settings
from exchange_marketplace.domain.contract_gateway import ContractRef
from exchange_marketplace.domain.enums import ContractKind
from exchange_marketplace.domain.exceptions import (
    ContractGatewayError,
    ContractNotFoundError,
    GatewayUnavailableError,
)
from exchange_marketplace.logging_config import contract_context, get_logger

logger = get_logger(__name__)


def _unwrap(payload: Any) -> dict:
    """Sign and policy endpoints answer {"contract": {...}}, the others answer the contract."""
    if isinstance(payload, dict) and isinstance(payload.get("contract"), dict):
        return payload["contract"]
    return payload if isinstance(payload, dict) else {"result": payload}


def _contract_id(document: dict) -> str | None:
    value = document.get("_id") or document.get("id")
    return str(value) if value else None


class HttpContractGateway:
    """HTTP client for one contract resource collection."""

    def __init__(
        self,
        kind: ContractKind,
        base_url: str,
        resource_path: str,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            kind: Contract family served by this client.
            base_url: Root URL of the contract service.
            resource_path: Collection path, e.g. "/bilaterals" or "/contracts".
            timeout_seconds: Bound applied to every request.
            max_attempts: Attempts for idempotent calls on transient failures.
            backoff_seconds: Multiplier of the exponential backoff between attempts.
            transport: Optional httpx transport (used by tests to mock the service).
        """
        self.kind = kind
        self._base_url = base_url.rstrip("/") + "/" + resource_path.strip("/")
        self._timeout = timeout_seconds
        self._max_attempts = max(1, max_attempts)
        self._backoff = backoff_seconds
        self._transport = transport

    # ------------------------------------------------------------------
    # ContractGateway protocol
    # ------------------------------------------------------------------

    async def generate(
        self,
        subject_id: str,
        initiator_id: str,
        role: str | None = None,
        terms: dict | None = None,
    ) -> ContractRef:
        """Create a contract. Not retried: a lost response could otherwise create two."""
        contract: dict = {**(terms or {})}
        if self.kind == ContractKind.ECOSYSTEM:
            contract.setdefault("ecosystem", subject_id)
            contract.setdefault("orchestrator", initiator_id)
        else:
            contract.setdefault("exchangeConfiguration", subject_id)
            contract.setdefault("initiator", initiator_id)

        body: dict = {"contract": contract}
        if role:
            body["role"] = role

        document = _unwrap(await self._request("POST", "", json=body))
        contract_id = _contract_id(document)
        if contract_id is None:
            raise ContractGatewayError(
                "Contract service response did not include a contract id",
                detail=document,
            )

        logger.info(
            "contract_gateway.generated",
            kind=self.kind.value,
            contract_id=contract_id,
            subject_id=subject_id,
        )
        return ContractRef(contract_id=contract_id, kind=self.kind, document=document)

    async def get_by_id(self, contract_id: str) -> dict:
        payload = await self._request_with_retry("GET", f"/{contract_id}", contract_id=contract_id)
        return _unwrap(payload)

    async def sign(
        self,
        contract_id: str,
        participant_id: str,
        signature: str,
        role: str,
    ) -> dict:
        if self.kind == ContractKind.BILATERAL:
            body = {"party": participant_id, "value": signature, "role": role}
        else:
            body = {"participant": participant_id, "signature": signature, "role": role}

        payload = await self._request_with_retry(
            "PUT", f"/sign/{contract_id}", json=body, contract_id=contract_id
        )
        logger.info(
            "contract_gateway.signed",
            kind=self.kind.value,
            contract_id=contract_id,
            participant=participant_id,
            role=role,
        )
        return _unwrap(payload)

    async def inject_policies(self, contract_id: str, policies: list[dict]) -> dict:
        payload = await self._request_with_retry(
            "PUT", f"/policies/{contract_id}", json=policies, contract_id=contract_id
        )
        logger.info(
            "contract_gateway.policies_injected",
            kind=self.kind.value,
            contract_id=contract_id,
            count=len(policies),
        )
        return _unwrap(payload)

    async def delete(self, contract_id: str) -> dict:
        payload = await self._request_with_retry(
            "DELETE", f"/{contract_id}", contract_id=contract_id
        )
        logger.info("contract_gateway.deleted", kind=self.kind.value, contract_id=contract_id)
        return _unwrap(payload)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        json: Any = None,
        contract_id: str | None = None,
    ) -> Any:
        """Run an idempotent request, retrying on GatewayUnavailableError."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(GatewayUnavailableError),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff, max=self._backoff * 8),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "contract_gateway.retrying",
                        method=method,
                        path=path,
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await self._request(method, path, json=json, contract_id=contract_id)
        raise GatewayUnavailableError("Contract service retries exhausted")  # pragma: no cover

    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        contract_id: str | None = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        with contract_context(self.kind.value):
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                try:
                    response = await client.request(method, url, json=json)
                except httpx.TimeoutException as exc:
                    logger.warning("contract_gateway.timeout", method=method, url=url)
                    raise GatewayUnavailableError(
                        f"Contract service timed out after {self._timeout}s"
                    ) from exc
                except httpx.RequestError as exc:
                    logger.warning(
                        "contract_gateway.unreachable", method=method, url=url, error=str(exc)
                    )
                    raise GatewayUnavailableError(
                        f"Contract service request failed: {exc}"
                    ) from exc

            return self._handle_response(response, contract_id)

    def _handle_response(self, response: httpx.Response, contract_id: str | None) -> Any:
        status = response.status_code

        try:
            detail = response.json()
        except ValueError:
            detail = response.text

        if 200 <= status < 300:
            return detail

        logger.warning(
            "contract_gateway.error_response",
            status=status,
            detail=detail,
        )

        if status == 404:
            raise ContractNotFoundError(contract_id or "unknown", detail=detail)

        upstream_message = (
            detail.get("error") or detail.get("message")
            if isinstance(detail, dict)
            else None
        ) or f"Contract service answered {status}"

        if status >= 500:
            raise GatewayUnavailableError(upstream_message, status_code=status, detail=detail)

        raise ContractGatewayError(upstream_message, status_code=status, detail=detail)


class InMemoryContractGateway:
    """In-process contract store for dry runs and tests.

    Mirrors the contract service semantics closely enough for the lifecycle
    engine: signatures are upserted per participant, injected policies are
    appended. Failures are configured per instance:

        gateway.available = False              -> every call raises GatewayUnavailableError
        gateway.failing = {"inject_policies"}  -> only those operations fail
    """

    def __init__(self, kind: ContractKind) -> None:
        self.kind = kind
        self.available = True
        self.failing: set[str] = set()
        self.contracts: dict[str, dict] = {}
        self.calls: list[tuple[str, str | None]] = []

    def _check(self, operation: str, contract_id: str | None = None) -> None:
        self.calls.append((operation, contract_id))
        if not self.available or operation in self.failing:
            raise GatewayUnavailableError(
                "Internal Server Error",
                status_code=500,
                detail={"error": "Internal Server Error"},
            )

    def _get(self, contract_id: str) -> dict:
        contract = self.contracts.get(contract_id)
        if contract is None:
            raise ContractNotFoundError(contract_id)
        return contract

    async def generate(
        self,
        subject_id: str,
        initiator_id: str,
        role: str | None = None,
        terms: dict | None = None,
    ) -> ContractRef:
        self._check("generate")
        contract_id = uuid.uuid4().hex[:24]
        now = datetime.now(UTC).isoformat()
        contract = {
            **(terms or {}),
            "_id": contract_id,
            "subject": subject_id,
            "initiator": initiator_id,
            "status": "pending",
            "signatures": [],
            "policy": [],
            "createdAt": now,
            "updatedAt": now,
        }
        if role:
            contract["rolesAndObligations"] = [{"role": role, "policies": []}]
        self.contracts[contract_id] = contract
        return ContractRef(contract_id=contract_id, kind=self.kind, document=dict(contract))

    async def get_by_id(self, contract_id: str) -> dict:
        self._check("get_by_id", contract_id)
        return dict(self._get(contract_id))

    async def sign(
        self,
        contract_id: str,
        participant_id: str,
        signature: str,
        role: str,
    ) -> dict:
        self._check("sign", contract_id)
        contract = self._get(contract_id)
        signatures = contract["signatures"]
        existing = next((s for s in signatures if s["participant"] == participant_id), None)
        if existing is not None:
            existing["signature"] = signature
        else:
            signatures.append({"participant": participant_id, "signature": signature, "role": role})
        if len(signatures) >= 2:
            contract["status"] = "signed"
        return dict(contract)

    async def inject_policies(self, contract_id: str, policies: list[dict]) -> dict:
        self._check("inject_policies", contract_id)
        contract = self._get(contract_id)
        contract["policy"].extend(policies)
        return dict(contract)

    async def delete(self, contract_id: str) -> dict:
        self._check("delete", contract_id)
        self._get(contract_id)
        del self.contracts[contract_id]
        return {"message": "Contract deleted successfully."}


@lru_cache(maxsize=2)
def build_contract_gateway(kind: ContractKind) -> HttpContractGateway | InMemoryContractGateway:
    """Return the process-wide gateway for a contract kind, as configured."""
    settings = get_settings()
    if settings.contract_gateway_mode == "memory":
        logger.info("contract_gateway.in_memory", kind=kind.value)
        return InMemoryContractGateway(kind)

    resource_path = (
        settings.bilateral_contract_path
        if kind == ContractKind.BILATERAL
        else settings.ecosystem_contract_path
    )
    return HttpContractGateway(
        kind=kind,
        base_url=settings.contract_service_url,
        resource_path=resource_path,
        timeout_seconds=settings.contract_gateway_timeout_seconds,
        max_attempts=settings.contract_gateway_max_attempts,
    )
