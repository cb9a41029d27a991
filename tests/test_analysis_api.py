from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Depends
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from georise.analysis.query_generator import generate_queries
from georise.api.v1.analysis import get_orchestrator
from georise.collectors.llm_base import BaseLlmCollector, LlmResponse
from georise.db.postgres import get_db
from georise.main import app
from georise.models.brand import Brand
from georise.services.analysis_service import AnalysisOrchestrator

MENTIONED = set(generate_queries("project management software", "Acme")[:10])


class FakeCollector(BaseLlmCollector):
    provider = "fake"

    async def query_llm(self, prompt):
        if prompt in MENTIONED:
            return LlmResponse(text="Acme comes first.", model="fake", cited_urls=["https://acme.example"])
        return LlmResponse(text="No match here.", model="fake")


@pytest.fixture
def fake_orchestrator():
    def _override(db: AsyncSession = Depends(get_db)) -> AnalysisOrchestrator:
        return AnalysisOrchestrator(db, lambda api_key: FakeCollector(api_key), delay=0)

    app.dependency_overrides[get_orchestrator] = _override
    yield
    app.dependency_overrides.pop(get_orchestrator, None)


def _body(brand, user):
    return {"brandId": str(brand.id), "brandName": brand.name, "topic": brand.topic, "userId": str(user.id)}


@pytest.mark.asyncio
async def test_run_and_poll(client: AsyncClient, auth_headers, user, brand, fake_orchestrator):
    response = await client.post("/api/v1/analysis/run", headers=auth_headers, json=_body(brand, user))
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["mentions"] == 10
    assert data["totalQueries"] == 20
    # 10/20 * 70 + min(30, 10 * 1.5)
    assert data["score"] == 50

    status = await client.get(f"/api/v1/analysis/runs/{data['runId']}", headers=auth_headers)
    assert status.status_code == 200
    assert status.json()["status"] == "completed"
    assert status.json()["progress"] == 100
    assert status.json()["citationCount"] == 10

    results = await client.get(f"/api/v1/analysis/runs/{data['runId']}/results", headers=auth_headers)
    assert results.status_code == 200
    rows = results.json()
    assert [r["queryIndex"] for r in rows] == list(range(20))
    assert rows[0]["mentioned"] is True
    assert rows[0]["mentionType"] == "citation"
    assert rows[0]["url"] == "https://acme.example"

    brand_resp = await client.get(f"/api/v1/brands/{brand.id}", headers=auth_headers)
    assert brand_resp.json()["visibility_score"] == 50
    assert brand_resp.json()["last_run"] is not None


@pytest.mark.asyncio
async def test_run_by_service_role(client: AsyncClient, service_headers, user, brand, fake_orchestrator):
    response = await client.post("/api/v1/analysis/run", headers=service_headers, json=_body(brand, user))
    assert response.status_code == 200

    status = await client.get(f"/api/v1/analysis/runs/{response.json()['runId']}", headers=service_headers)
    assert status.status_code == 200


@pytest.mark.asyncio
async def test_run_requires_auth(client: AsyncClient, user, brand, fake_orchestrator):
    response = await client.post("/api/v1/analysis/run", json=_body(brand, user))
    assert response.status_code == 401
    assert response.json()["error"] == "No authorization header"


@pytest.mark.asyncio
async def test_run_missing_fields(client: AsyncClient, auth_headers, user, brand, fake_orchestrator):
    body = _body(brand, user)
    del body["topic"]
    response = await client.post("/api/v1/analysis/run", headers=auth_headers, json=body)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_run_for_other_user_forbidden(client: AsyncClient, free_user, headers_for, user, brand, fake_orchestrator):
    response = await client.post("/api/v1/analysis/run", headers=headers_for(free_user), json=_body(brand, user))
    assert response.status_code == 403
    assert response.json()["error"] == "Unauthorized"


@pytest.mark.asyncio
async def test_run_rate_limited(client: AsyncClient, db, free_user, headers_for, fake_orchestrator):
    brand = Brand(
        user_id=free_user.id,
        name="Acme",
        topic="project management software",
        last_run=datetime.now(timezone.utc) - timedelta(days=2),
    )
    db.add(brand)
    await db.commit()

    response = await client.post("/api/v1/analysis/run", headers=headers_for(free_user), json=_body(brand, free_user))
    assert response.status_code == 429
    assert response.json()["error"] == "Rate limit exceeded. Upgrade your plan for more frequent analyses."


@pytest.mark.asyncio
async def test_run_hidden_from_other_users(
    client: AsyncClient, auth_headers, free_user, headers_for, user, brand, fake_orchestrator
):
    response = await client.post("/api/v1/analysis/run", headers=auth_headers, json=_body(brand, user))
    run_id = response.json()["runId"]

    status = await client.get(f"/api/v1/analysis/runs/{run_id}", headers=headers_for(free_user))
    assert status.status_code == 404
