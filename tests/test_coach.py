"""Tests for the chat coach."""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from sqlalchemy import select

from georise.collectors.ai_gateway import GatewayReply
from georise.core.exceptions import ForbiddenError, GatewayError, RateLimitedError
from georise.models.analysis_result import AnalysisResult
from georise.models.brand import Brand
from georise.models.coach import CoachMessage
from georise.models.credit import AllowancePeriod, LlmUsageEvent
from georise.services.coach_service import (
    build_system_prompt,
    check_coach_access,
    get_history,
)


def _gateway(reply=None, side_effect=None):
    gateway = MagicMock()
    gateway.chat = AsyncMock(return_value=reply, side_effect=side_effect)
    return gateway


def _reply(text="Publish a comparison page."):
    return GatewayReply(
        text=text,
        model="google/gemini-2.5-flash",
        usage={"prompt_tokens": 300, "completion_tokens": 100, "total_tokens": 400},
    )


async def _add_user_messages(db, user, brand, count, when=None):
    when = when or datetime.now(timezone.utc)
    for i in range(count):
        db.add(CoachMessage(user_id=user.id, brand_id=brand.id, role="user", message=f"m{i}", created_at=when))
    await db.commit()


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_free_plan_has_no_coach(db, free_user):
    with pytest.raises(ForbiddenError, match="Pro plan required"):
        await check_coach_access(db, free_user)


@pytest.mark.asyncio
async def test_pro_daily_limit(db, user, brand):
    await _add_user_messages(db, user, brand, 49)
    await check_coach_access(db, user)

    await _add_user_messages(db, user, brand, 1)
    with pytest.raises(RateLimitedError, match=r"Daily message limit reached \(50/day\)"):
        await check_coach_access(db, user)


@pytest.mark.asyncio
async def test_old_messages_do_not_count(db, user, brand):
    await _add_user_messages(db, user, brand, 60, when=datetime.now(timezone.utc) - timedelta(days=2))
    await check_coach_access(db, user)


@pytest.mark.asyncio
async def test_business_plan_uncapped(db, admin_user):
    brand = Brand(user_id=admin_user.id, name="Acme", topic="SEO")
    db.add(brand)
    await db.commit()
    await _add_user_messages(db, admin_user, brand, 60)
    await check_coach_access(db, admin_user)


# ---------------------------------------------------------------------------
# Prompt and history
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_system_prompt_without_data(db, brand):
    prompt = await build_system_prompt(db, brand)
    assert "- Brand: Acme" in prompt
    assert "- Mentioned on: None yet" in prompt
    assert "- Missing from queries like: N/A" in prompt
    assert "- Recent insights: No insights yet" in prompt


@pytest.mark.asyncio
async def test_system_prompt_with_results(db, brand):
    run_id = uuid.uuid4()
    db.add(AnalysisResult(brand_id=brand.id, run_id=run_id, ai_engine="perplexity", query="q1", mentioned=True, position=1))
    db.add(AnalysisResult(brand_id=brand.id, run_id=run_id, ai_engine="perplexity", query="q2", mentioned=False))
    await db.commit()

    prompt = await build_system_prompt(db, brand)
    assert "- Mentioned on: perplexity" in prompt
    assert "- Total queries tested: 2" in prompt
    assert "- Mention rate: 50%" in prompt
    assert "- Missing from queries like: q2" in prompt


@pytest.mark.asyncio
async def test_history_keeps_latest_oldest_first(db, user, brand):
    start = datetime.now(timezone.utc) - timedelta(hours=1)
    for i in range(25):
        db.add(
            CoachMessage(
                user_id=user.id,
                brand_id=brand.id,
                role="user" if i % 2 == 0 else "assistant",
                message=f"m{i}",
                created_at=start + timedelta(seconds=i),
            )
        )
    await db.commit()

    history = await get_history(db, brand.id)
    assert [m.message for m in history] == [f"m{i}" for i in range(5, 25)]


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_send_message(client, db, auth_headers, user, brand):
    gateway = _gateway(reply=_reply())
    with patch("georise.services.coach_service.AiGatewayClient", return_value=gateway):
        response = await client.post(
            "/api/v1/coach/messages",
            headers=auth_headers,
            json={"message": "How do I improve?", "brandId": str(brand.id)},
        )

    assert response.status_code == 200
    assert response.json() == {"reply": "Publish a comparison page."}

    call = gateway.chat.call_args
    messages = call.args[0]
    assert messages[0]["role"] == "system"
    assert messages[-1] == {"role": "user", "content": "How do I improve?"}
    assert call.kwargs["temperature"] == 0.7
    assert call.kwargs["max_tokens"] == 400

    stored = (await db.execute(select(CoachMessage.role, CoachMessage.message).order_by(CoachMessage.id))).all()
    assert [tuple(r) for r in stored] == [("user", "How do I improve?"), ("assistant", "Publish a comparison page.")]

    # Usage is tracked after the response
    event = (await db.execute(select(LlmUsageEvent))).scalar_one()
    assert event.feature == "chat_coach"
    assert event.provider == "lovable"
    assert event.total_tokens == 400
    assert event.metadata_["brand_name"] == "Acme"
    tokens_used = (
        await db.execute(select(AllowancePeriod.tokens_used).where(AllowancePeriod.user_id == user.id))
    ).scalar()
    assert tokens_used == 400

    listing = await client.get(f"/api/v1/coach/{brand.id}/messages", headers=auth_headers)
    assert [m["role"] for m in listing.json()] == ["user", "assistant"]


@pytest.mark.asyncio
async def test_history_is_sent_to_gateway(client, db, auth_headers, user, brand):
    db.add(CoachMessage(user_id=user.id, brand_id=brand.id, role="user", message="earlier question"))
    await db.commit()

    gateway = _gateway(reply=_reply())
    with patch("georise.services.coach_service.AiGatewayClient", return_value=gateway):
        await client.post(
            "/api/v1/coach/messages",
            headers=auth_headers,
            json={"message": "follow-up", "brandId": str(brand.id)},
        )

    messages = gateway.chat.call_args.args[0]
    assert messages[1] == {"role": "user", "content": "earlier question"}


@pytest.mark.asyncio
async def test_free_user_forbidden(client, free_user, headers_for, brand):
    response = await client.post(
        "/api/v1/coach/messages",
        headers=headers_for(free_user),
        json={"message": "hi", "brandId": str(brand.id)},
    )
    assert response.status_code == 403
    assert response.json()["error"] == "Pro plan required"


@pytest.mark.asyncio
async def test_foreign_brand_not_found(client, db, auth_headers, free_user):
    brand = Brand(user_id=free_user.id, name="Other", topic="SEO")
    db.add(brand)
    await db.commit()

    with patch("georise.services.coach_service.AiGatewayClient", return_value=_gateway(reply=_reply())):
        response = await client.post(
            "/api/v1/coach/messages", headers=auth_headers, json={"message": "hi", "brandId": str(brand.id)}
        )
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,expected,message",
    [
        (429, 429, "AI service rate limit reached. Please try again later."),
        (402, 402, "AI credits depleted. Please contact support."),
        (500, 502, "AI gateway error: 500"),
    ],
)
async def test_gateway_errors_are_mapped(client, db, auth_headers, brand, status, expected, message):
    gateway = _gateway(side_effect=GatewayError(status, "upstream"))
    with patch("georise.services.coach_service.AiGatewayClient", return_value=gateway):
        response = await client.post(
            "/api/v1/coach/messages", headers=auth_headers, json={"message": "hi", "brandId": str(brand.id)}
        )

    assert response.status_code == expected
    assert response.json()["error"] == message
    assert (await db.execute(select(CoachMessage))).scalars().all() == []


@pytest.mark.asyncio
async def test_gateway_unreachable(client, auth_headers, brand):
    gateway = _gateway(side_effect=httpx.ConnectError("refused"))
    with patch("georise.services.coach_service.AiGatewayClient", return_value=gateway):
        response = await client.post(
            "/api/v1/coach/messages", headers=auth_headers, json={"message": "hi", "brandId": str(brand.id)}
        )
    assert response.status_code == 502


@pytest.mark.asyncio
async def test_usage_tracking_failure_does_not_fail_request(client, auth_headers, brand, monkeypatch):
    async def broken_record_usage(*args, **kwargs):
        raise RuntimeError("ledger down")

    monkeypatch.setattr("georise.services.coach_service.record_usage", broken_record_usage)
    with patch("georise.services.coach_service.AiGatewayClient", return_value=_gateway(reply=_reply())):
        response = await client.post(
            "/api/v1/coach/messages", headers=auth_headers, json={"message": "hi", "brandId": str(brand.id)}
        )
    assert response.status_code == 200
