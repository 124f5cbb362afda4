"""HTTP tests for the negotiation routes: status codes, envelope, camelCase bodies."""

from __future__ import annotations

import uuid

import pytest

from conftest import CONSUMER, OUTSIDER, PROVIDER, as_participant

CREATE_BODY = {
    "provider": PROVIDER,
    "consumer": CONSUMER,
    "providerServiceOffering": "offering-weather-feed",
    "consumerServiceOffering": "offering-crop-planner",
}
POLICY = [{"ruleId": "rule-access-1", "values": {"target": "offering-weather-feed"}}]


async def _create(client) -> str:
    response = await client.post("/v1/negotiation", json=CREATE_BODY, headers=as_participant(CONSUMER))
    assert response.status_code == 201
    return response.json()["id"]


class TestNegotiationRoutes:
    @pytest.mark.asyncio
    async def test_full_lifecycle(self, client) -> None:
        negotiation_id = await _create(client)

        response = await client.put(
            f"/v1/negotiation/{negotiation_id}",
            json={"policy": POLICY},
            headers=as_participant(PROVIDER),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["negotiationStatus"] == "Authorized"
        assert body["providerPolicies"] == POLICY
        assert body["contractId"]

        response = await client.put(
            f"/v1/negotiation/{negotiation_id}/accept", headers=as_participant(CONSUMER)
        )
        assert response.json()["negotiationStatus"] == "SignatureReady"

        for party in (PROVIDER, CONSUMER):
            response = await client.put(
                f"/v1/negotiation/{negotiation_id}/sign",
                json={"signature": f"{party}-signature"},
                headers=as_participant(party),
            )
            assert response.status_code == 200

        body = response.json()
        assert body["negotiationStatus"] == "Signed"
        assert body["signatures"] == {
            "provider": f"{PROVIDER}-signature",
            "consumer": f"{CONSUMER}-signature",
        }

    @pytest.mark.asyncio
    async def test_counter_proposal_and_status(self, client) -> None:
        negotiation_id = await _create(client)
        await client.put(
            f"/v1/negotiation/{negotiation_id}", json={"policy": POLICY}, headers=as_participant(PROVIDER)
        )

        response = await client.put(
            f"/v1/negotiation/{negotiation_id}/negotiate",
            json={"policy": [{"ruleId": "rule-access-4", "values": {"value": 3}}]},
            headers=as_participant(CONSUMER),
        )
        assert response.status_code == 200
        assert response.json()["latestNegotiator"] == CONSUMER

        response = await client.get(
            f"/v1/negotiation/{negotiation_id}/status", headers=as_participant(PROVIDER)
        )
        body = response.json()
        assert body["negotiationStatus"] == "Negotiation"
        assert set(body["allowedEvents"]) == {"negotiate", "sign_partial", "sign_final"}

    @pytest.mark.asyncio
    async def test_duplicate_is_409_with_existing_id(self, client) -> None:
        negotiation_id = await _create(client)

        response = await client.post(
            "/v1/negotiation", json=CREATE_BODY, headers=as_participant(PROVIDER)
        )

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == 409
        assert body["errorMsg"] == "conflicting resource"
        assert body["data"] == {"id": negotiation_id}

    @pytest.mark.asyncio
    async def test_guard_violation_is_400(self, client) -> None:
        negotiation_id = await _create(client)

        response = await client.put(
            f"/v1/negotiation/{negotiation_id}/accept", headers=as_participant(CONSUMER)
        )

        assert response.status_code == 400
        assert response.json()["message"] == (
            "Exchange configuration has not yet been authorized by the provider"
        )

    @pytest.mark.asyncio
    async def test_contract_failure_rolls_back(self, client, bilateral_gateway) -> None:
        negotiation_id = await _create(client)
        bilateral_gateway.available = False

        response = await client.put(
            f"/v1/negotiation/{negotiation_id}", json={"policy": POLICY}, headers=as_participant(PROVIDER)
        )
        assert response.status_code == 409
        assert response.json()["errorMsg"] == "Failed to generate contract"

        response = await client.get(f"/v1/negotiation/{negotiation_id}", headers=as_participant(PROVIDER))
        assert response.json()["negotiationStatus"] == "Requested"

    @pytest.mark.asyncio
    async def test_outsider_cannot_read(self, client) -> None:
        negotiation_id = await _create(client)
        response = await client.get(f"/v1/negotiation/{negotiation_id}", headers=as_participant(OUTSIDER))
        assert response.status_code == 400
        assert response.json()["errorMsg"] == "Resource error"

    @pytest.mark.asyncio
    async def test_unknown_is_404(self, client) -> None:
        response = await client.get(f"/v1/negotiation/{uuid.uuid4()}", headers=as_participant(PROVIDER))
        assert response.status_code == 404
        assert response.json()["errorMsg"] == "Resource not found"

    @pytest.mark.asyncio
    async def test_list_for_caller(self, client) -> None:
        await _create(client)

        mine = await client.get("/v1/negotiation", headers=as_participant(PROVIDER))
        theirs = await client.get("/v1/negotiation", headers=as_participant(OUTSIDER))

        assert len(mine.json()) == 1
        assert theirs.json() == []


class TestRequestValidation:
    @pytest.mark.asyncio
    async def test_missing_identity_is_401(self, client) -> None:
        response = await client.post("/v1/negotiation", json=CREATE_BODY)
        assert response.status_code == 401
        assert response.json() == {
            "code": 401,
            "errorMsg": "unauthenticated",
            "message": "Missing participant identity",
        }

    @pytest.mark.asyncio
    async def test_invalid_body_is_422(self, client) -> None:
        response = await client.post(
            "/v1/negotiation", json={"provider": PROVIDER}, headers=as_participant(PROVIDER)
        )
        body = response.json()
        assert response.status_code == 422
        assert body["errorMsg"] == "validation error"
        assert body["data"]

    @pytest.mark.asyncio
    async def test_policy_rule_requires_rule_id(self, client) -> None:
        negotiation_id = await _create(client)
        response = await client.put(
            f"/v1/negotiation/{negotiation_id}",
            json={"policy": [{"values": {}}]},
            headers=as_participant(PROVIDER),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client) -> None:
        response = await client.get(
            "/v1/negotiation", headers={**as_participant(PROVIDER), "X-Request-ID": "req-42"}
        )
        assert response.headers["X-Request-ID"] == "req-42"
