from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Recommendation(str, Enum):
    APPROVE = "APPROVE"
    REVIEW = "REVIEW"
    VERIFY = "VERIFY"
    DECLINE = "DECLINE"


class RiskSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PaymentMethodType(str, Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PREPAID_CARD = "prepaid_card"
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"
    STRIPE = "stripe"


class RiskFactor(BaseModel):
    factor: str
    severity: RiskSeverity
    description: str
    points: int


class CustomerData(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    email: str = ""
    phone: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    account_age_days: Optional[int] = None
    previous_orders: Optional[int] = None
    previous_chargebacks: Optional[int] = None


class OrderRiskData(BaseModel):
    amount: float
    services: List[str] = Field(default_factory=list)
    is_rush_order: bool = False
    payment_method: PaymentMethodType = PaymentMethodType.STRIPE


class RiskAssessment(BaseModel):
    risk_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    risk_factors: List[RiskFactor] = Field(default_factory=list)
    recommendation: Recommendation
    reasoning: str = ""
    requires_review: bool
