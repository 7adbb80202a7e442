import json
from types import SimpleNamespace

import pytest

from models.risk import CustomerData, OrderRiskData, PaymentMethodType, Recommendation, RiskLevel
from services.risk_assessment import (
    AIRiskScoringService,
    RuleBasedRiskAssessor,
    build_assessment,
    clamp_score,
    level_for_score,
)


@pytest.mark.parametrize(
    "score, level",
    [
        (0, RiskLevel.LOW),
        (25, RiskLevel.LOW),
        (26, RiskLevel.MEDIUM),
        (50, RiskLevel.MEDIUM),
        (51, RiskLevel.HIGH),
        (75, RiskLevel.HIGH),
        (76, RiskLevel.CRITICAL),
        (100, RiskLevel.CRITICAL),
    ],
)
def test_level_boundaries(score, level):
    assert level_for_score(score) == level


def test_review_starts_at_high():
    assert not build_assessment(50, []).requires_review
    high = build_assessment(51, [])
    assert high.requires_review
    assert high.recommendation == Recommendation.VERIFY


def test_out_of_range_scores_are_clamped():
    over = build_assessment(140, [])
    assert over.risk_score == 100
    assert over.risk_level == RiskLevel.CRITICAL
    assert over.recommendation == Recommendation.DECLINE
    assert over.requires_review

    under = build_assessment(-12, [])
    assert under.risk_score == 0
    assert under.risk_level == RiskLevel.LOW
    assert under.recommendation == Recommendation.APPROVE


def test_clamp_score_coerces_and_rejects_nan():
    assert clamp_score("42.6") == 43
    assert clamp_score(float("inf")) == 100
    with pytest.raises(ValueError):
        clamp_score(float("nan"))


@pytest.mark.asyncio
async def test_clean_customer_scores_low():
    customer = CustomerData(email="owner@acme.com", phone="555-0100", account_age_days=400)
    order = OrderRiskData(amount=225, services=["LLC_FORMATION"])

    assessment = await RuleBasedRiskAssessor().assess(customer, order)

    assert assessment.risk_score == 0
    assert assessment.risk_level == RiskLevel.LOW
    assert assessment.risk_factors == []
    assert not assessment.requires_review


@pytest.mark.asyncio
async def test_rules_add_up():
    customer = CustomerData(email="someone@Mailinator.com", account_age_days=0, previous_chargebacks=2)
    order = OrderRiskData(
        amount=1500,
        services=["LLC_FORMATION"] * 6,
        is_rush_order=True,
        payment_method=PaymentMethodType.PREPAID_CARD,
    )

    assessment = await RuleBasedRiskAssessor().assess(customer, order)

    factors = {f.factor for f in assessment.risk_factors}
    assert factors == {
        "temporary_email",
        "prepaid_card",
        "new_customer_large_order",
        "rush_order",
        "previous_chargebacks",
        "no_phone",
        "large_order",
        "multiple_services",
    }
    # 25 + 15 + 20 + 10 + 40 + 5 + 10 + 15 = 140, clamped
    assert assessment.risk_score == 100
    assert assessment.risk_level == RiskLevel.CRITICAL


def fake_openai(content=None, error=None):
    async def create(**kwargs):
        create.calls.append(kwargs)
        if error:
            raise error
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    create.calls = []
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create))), create


@pytest.mark.asyncio
async def test_model_score_is_clamped_and_level_rederived():
    content = json.dumps({
        "riskScore": 130,
        "riskLevel": "LOW",
        "additionalRiskFactors": [
            {"factor": "ip_mismatch", "severity": "high", "description": "IP far from address", "points": 30}
        ],
        "reasoning": "Several signals",
    })
    client, create = fake_openai(content)
    service = AIRiskScoringService(client=client, model="test-model")

    assessment = await service.assess(CustomerData(email="a@b.com", phone="1"), OrderRiskData(amount=100))

    assert assessment.risk_score == 100
    assert assessment.risk_level == RiskLevel.CRITICAL
    assert assessment.recommendation == Recommendation.DECLINE
    assert assessment.reasoning == "Several signals"
    assert [f.factor for f in assessment.risk_factors] == ["ip_mismatch"]
    assert create.calls[0]["model"] == "test-model"
    assert create.calls[0]["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content, error",
    [
        (None, RuntimeError("rate limited")),
        ("not json", None),
        (json.dumps({"reasoning": "no score"}), None),
    ],
)
async def test_model_failures_fall_back_to_rules(content, error):
    client, _ = fake_openai(content, error)
    service = AIRiskScoringService(client=client)

    assessment = await service.assess(CustomerData(email="a@b.com"), OrderRiskData(amount=100, is_rush_order=True))

    # no_phone (5) + rush_order (10)
    assert assessment.risk_score == 15
    assert assessment.risk_level == RiskLevel.LOW


@pytest.mark.asyncio
async def test_without_client_uses_rules_only():
    assessment = await AIRiskScoringService().assess(
        CustomerData(email="x@yopmail.com", phone="1"), OrderRiskData(amount=100)
    )
    assert assessment.risk_score == 25
