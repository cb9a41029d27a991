import pytest
from httpx import AsyncClient
from sqlalchemy import select

from georise.models.credit import AllowancePeriod, LlmUsageEvent


@pytest.mark.asyncio
async def test_ensure_own_allowance(client: AsyncClient, auth_headers, user):
    response = await client.post("/api/v1/credits/allowance", headers=auth_headers, json={})
    assert response.status_code == 200
    period = response.json()["period"]
    assert period["user_id"] == str(user.id)
    assert period["tokens_granted"] == 300_000
    assert period["source"] == "subscription"
    assert period["metadata"]["base_tokens"] == 300_000

    again = await client.post("/api/v1/credits/allowance", headers=auth_headers, json={})
    assert again.json()["period"]["id"] == period["id"]


@pytest.mark.asyncio
async def test_other_users_allowance_needs_admin(client: AsyncClient, auth_headers, free_user):
    response = await client.post(
        "/api/v1/credits/allowance", headers=auth_headers, json={"user_id": str(free_user.id)}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_manages_other_users_allowance(client: AsyncClient, admin_user, headers_for, free_user):
    response = await client.post(
        "/api/v1/credits/allowance", headers=headers_for(admin_user), json={"user_id": str(free_user.id)}
    )
    assert response.status_code == 200
    assert response.json()["period"]["source"] == "free_tier"


@pytest.mark.asyncio
async def test_batch_init_requires_admin(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/credits/allowance", headers=auth_headers, json={"batch_init": True})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_batch_init_by_service_role(client: AsyncClient, db, service_headers, user, free_user):
    response = await client.post("/api/v1/credits/allowance", headers=service_headers, json={"batch_init": True})
    assert response.status_code == 200
    assert response.json() == {"initialized": 2, "skipped": 0, "errors": []}

    periods = (await db.execute(select(AllowancePeriod))).scalars().all()
    assert len(periods) == 2


@pytest.mark.asyncio
async def test_service_role_needs_user_id(client: AsyncClient, service_headers):
    response = await client.post("/api/v1/credits/allowance", headers=service_headers, json={})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_my_credits(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/credits/me", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["tokens_per_credit"] == 200
    assert data["credits_granted"] == 1500
    assert data["remaining_credits"] == 1500
    assert data["plan_base_credits"] == 1500


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_admin_endpoints_reject_users(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/admin/users", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_lists_users(client: AsyncClient, admin_user, headers_for, user):
    response = await client.get("/api/v1/admin/users", headers=headers_for(admin_user))
    assert response.status_code == 200
    assert {u["email"] for u in response.json()} == {"admin@example.com", "test@example.com"}


@pytest.mark.asyncio
async def test_admin_sets_plan(client: AsyncClient, admin_user, headers_for, free_user):
    response = await client.put(
        f"/api/v1/admin/users/{free_user.id}/plan", headers=headers_for(admin_user), params={"plan": "giftedPro"}
    )
    assert response.status_code == 200
    assert response.json()["plan"] == "giftedPro"

    bad = await client.put(
        f"/api/v1/admin/users/{free_user.id}/plan", headers=headers_for(admin_user), params={"plan": "platinum"}
    )
    assert bad.status_code == 400


@pytest.mark.asyncio
async def test_admin_credit_settings(client: AsyncClient, admin_user, headers_for):
    headers = headers_for(admin_user)
    current = await client.get("/api/v1/admin/credit-settings", headers=headers)
    assert current.json()["credits_pro_per_month"] == 1500

    payload = dict(current.json(), credits_pro_per_month=2000)
    updated = await client.put("/api/v1/admin/credit-settings", headers=headers, json=payload)
    assert updated.status_code == 200
    assert updated.json()["credits_pro_per_month"] == 2000


@pytest.mark.asyncio
async def test_admin_adjusts_allowance(client: AsyncClient, db, admin_user, headers_for, user):
    response = await client.put(
        f"/api/v1/admin/users/{user.id}/allowance",
        headers=headers_for(admin_user),
        json={"tokens_used": 5000},
    )
    assert response.status_code == 200
    assert response.json()["tokens_used"] == 5000

    event = (await db.execute(select(LlmUsageEvent))).scalar_one()
    assert event.feature == "admin_balance_adjustment"


@pytest.mark.asyncio
async def test_service_role_adjusts_allowance(client: AsyncClient, service_headers, user):
    response = await client.put(
        f"/api/v1/admin/users/{user.id}/allowance", headers=service_headers, json={"tokens_granted": 1000}
    )
    assert response.status_code == 200
    assert response.json()["tokens_granted"] == 1000


@pytest.mark.asyncio
async def test_adjust_requires_a_field(client: AsyncClient, admin_user, headers_for, user):
    response = await client.put(
        f"/api/v1/admin/users/{user.id}/allowance", headers=headers_for(admin_user), json={}
    )
    assert response.status_code == 400
