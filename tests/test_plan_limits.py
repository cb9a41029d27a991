from datetime import datetime, timedelta, timezone

import pytest

from georise.core.exceptions import PlanLimitError
from georise.core.plan_limits import as_utc, can_run, check_brand_limit, credit_plan_tier, next_run_at
from georise.models.brand import Brand

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_first_run_always_allowed():
    for plan in ("free", "pro", "giftedPro", "business", "giftedAgency"):
        assert can_run(plan, None, NOW) is True


def test_free_plan_weekly():
    assert can_run("free", NOW - timedelta(hours=167), NOW) is False
    assert can_run("free", NOW - timedelta(hours=168), NOW) is True


def test_paid_plans_daily():
    for plan in ("pro", "giftedPro", "business", "giftedAgency"):
        assert can_run(plan, NOW - timedelta(hours=23), NOW) is False
        assert can_run(plan, NOW - timedelta(hours=24), NOW) is True


def test_unknown_plan_denied_after_first_run():
    assert can_run("enterprise", None, NOW) is True
    assert can_run("enterprise", NOW - timedelta(days=365), NOW) is False


def test_naive_timestamps_treated_as_utc():
    naive = (NOW - timedelta(hours=25)).replace(tzinfo=None)
    assert can_run("pro", naive, NOW) is True
    assert as_utc(naive).tzinfo is timezone.utc


def test_next_run_at():
    assert next_run_at("pro", NOW) == NOW + timedelta(hours=24)
    assert next_run_at("pro", None) is None


def test_credit_plan_tier():
    assert credit_plan_tier("giftedPro") == "pro"
    assert credit_plan_tier("giftedAgency") == "business"
    assert credit_plan_tier("free") == "free"
    assert credit_plan_tier("whatever") == "free"


@pytest.mark.asyncio
async def test_check_brand_limit(db, free_user):
    await check_brand_limit(db, free_user.id, "free")
    db.add(Brand(user_id=free_user.id, name="One", topic="SEO"))
    await db.commit()

    with pytest.raises(PlanLimitError):
        await check_brand_limit(db, free_user.id, "free")
    await check_brand_limit(db, free_user.id, "pro")
