"""
Fraud risk scoring for new orders.

A fixed set of weighted rules produces a 0-100 score. When an OpenAI client
is configured the model is asked to refine the assessment; its score is
clamped and the level/recommendation are always re-derived from it, never
taken from the model's own answer. Any model failure falls back to the
rule-based assessment.
"""

import json
import logging
import math
from typing import Any, List, Optional, Protocol

from openai import AsyncOpenAI

from models.risk import (
    CustomerData,
    OrderRiskData,
    PaymentMethodType,
    Recommendation,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    RiskSeverity,
)
from utils.config import Settings

logger = logging.getLogger(__name__)

REVIEW_THRESHOLD = 51

TEMP_EMAIL_DOMAINS = frozenset({
    "tempmail.com",
    "guerrillamail.com",
    "10minutemail.com",
    "throwaway.email",
    "mailinator.com",
    "trashmail.com",
    "yopmail.com",
    "maildrop.cc",
})

_RECOMMENDATIONS = {
    RiskLevel.LOW: Recommendation.APPROVE,
    RiskLevel.MEDIUM: Recommendation.REVIEW,
    RiskLevel.HIGH: Recommendation.VERIFY,
    RiskLevel.CRITICAL: Recommendation.DECLINE,
}


class RiskAssessor(Protocol):
    async def assess(self, customer: CustomerData, order: OrderRiskData) -> RiskAssessment: ...


def clamp_score(raw: Any) -> int:
    """Coerce an externally supplied score into an int in [0, 100]."""
    score = float(raw)
    if math.isnan(score):
        raise ValueError("risk score is NaN")
    return int(round(min(100.0, max(0.0, score))))


def level_for_score(score: int) -> RiskLevel:
    if score >= 76:
        return RiskLevel.CRITICAL
    if score >= 51:
        return RiskLevel.HIGH
    if score >= 26:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def recommendation_for_level(level: RiskLevel) -> Recommendation:
    return _RECOMMENDATIONS[level]


def build_assessment(raw_score: Any, factors: List[RiskFactor], reasoning: Optional[str] = None) -> RiskAssessment:
    score = clamp_score(raw_score)
    level = level_for_score(score)
    if reasoning is None:
        reasoning = (
            f"Detected {len(factors)} risk factor(s): {', '.join(f.factor for f in factors)}"
            if factors
            else "No significant risk factors detected."
        )
    return RiskAssessment(
        risk_score=score,
        risk_level=level,
        risk_factors=factors,
        recommendation=recommendation_for_level(level),
        reasoning=reasoning,
        requires_review=score >= REVIEW_THRESHOLD,
    )


class RuleBasedRiskAssessor:
    """Scores an order from the weighted rules alone."""

    async def assess(self, customer: CustomerData, order: OrderRiskData) -> RiskAssessment:
        factors = self.basic_checks(customer, order)
        return build_assessment(sum(f.points for f in factors), factors)

    def basic_checks(self, customer: CustomerData, order: OrderRiskData) -> List[RiskFactor]:
        factors: List[RiskFactor] = []

        domain = customer.email.rsplit("@", 1)[-1].lower() if "@" in customer.email else None
        if domain in TEMP_EMAIL_DOMAINS:
            factors.append(RiskFactor(
                factor="temporary_email",
                severity=RiskSeverity.HIGH,
                description=f"Customer is using a temporary/disposable email address ({domain})",
                points=25,
            ))

        if order.payment_method == PaymentMethodType.PREPAID_CARD:
            factors.append(RiskFactor(
                factor="prepaid_card",
                severity=RiskSeverity.MEDIUM,
                description="Prepaid cards are commonly used in fraud",
                points=15,
            ))

        if (not customer.account_age_days or customer.account_age_days < 1) and order.amount > 500:
            factors.append(RiskFactor(
                factor="new_customer_large_order",
                severity=RiskSeverity.HIGH,
                description=(
                    f"New customer (account age: {customer.account_age_days or 0} days) "
                    f"with large order (${order.amount:.2f})"
                ),
                points=20,
            ))

        if order.is_rush_order:
            factors.append(RiskFactor(
                factor="rush_order",
                severity=RiskSeverity.LOW,
                description="Rush order requested",
                points=10,
            ))

        if customer.previous_chargebacks and customer.previous_chargebacks > 0:
            factors.append(RiskFactor(
                factor="previous_chargebacks",
                severity=RiskSeverity.CRITICAL,
                description=f"Customer has {customer.previous_chargebacks} previous chargeback(s)",
                points=40,
            ))

        if not customer.phone:
            factors.append(RiskFactor(
                factor="no_phone",
                severity=RiskSeverity.LOW,
                description="No phone number provided",
                points=5,
            ))

        if order.amount > 1000:
            factors.append(RiskFactor(
                factor="large_order",
                severity=RiskSeverity.MEDIUM,
                description=f"Large order amount (${order.amount:.2f})",
                points=10,
            ))

        if len(order.services) > 5:
            factors.append(RiskFactor(
                factor="multiple_services",
                severity=RiskSeverity.MEDIUM,
                description=f"Ordering {len(order.services)} services at once",
                points=15,
            ))

        return factors


SYSTEM_PROMPT = "You are a fraud detection and risk assessment expert. Always respond with valid JSON only."

ANALYSIS_PROMPT = """You are a fraud detection expert for a legal services company.

CUSTOMER DATA:
{customer}

ORDER DATA:
{order}

BASIC RISK FACTORS DETECTED:
{factors}

Calculate a risk score from 0 to 100:
- 0-25: low risk, 26-50: medium risk, 51-75: high risk, 76-100: critical risk

Return ONLY valid JSON with this structure:
{{
  "riskScore": number,
  "additionalRiskFactors": [
    {{"factor": string, "severity": "low" | "medium" | "high" | "critical", "description": string, "points": number}}
  ],
  "reasoning": string
}}
"""


class AIRiskScoringService(RuleBasedRiskAssessor):
    """Rule-based scoring refined by an OpenAI chat model when one is configured."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: str = "gpt-4-turbo"):
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "AIRiskScoringService":
        client = AsyncOpenAI(api_key=settings.openai_api_key) if settings.openai_api_key else None
        return cls(client=client, model=settings.risk_model)

    async def assess(self, customer: CustomerData, order: OrderRiskData) -> RiskAssessment:
        factors = self.basic_checks(customer, order)
        basic_score = sum(f.points for f in factors)

        if self.client is None:
            return build_assessment(basic_score, factors)

        try:
            return await self._analyze(customer, order, factors)
        except Exception as e:
            logger.warning(f"AI risk assessment failed, falling back to rule-based assessment: {e}")
            return build_assessment(basic_score, factors)

    async def _analyze(
        self,
        customer: CustomerData,
        order: OrderRiskData,
        factors: List[RiskFactor],
    ) -> RiskAssessment:
        prompt = ANALYSIS_PROMPT.format(
            customer=customer.model_dump_json(indent=2),
            order=order.model_dump_json(indent=2),
            factors=json.dumps([f.model_dump(mode="json") for f in factors], indent=2),
        )
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=0.3,
        )
        result = json.loads(response.choices[0].message.content or "{}")
        if "riskScore" not in result:
            raise ValueError("model response has no riskScore")

        extra = [RiskFactor.model_validate(f) for f in result.get("additionalRiskFactors") or []]
        return build_assessment(result["riskScore"], factors + extra, result.get("reasoning"))
