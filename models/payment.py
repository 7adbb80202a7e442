from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentVerification(BaseModel):
    """What the payment gateway reports for a payment reference."""
    reference: str
    verified: bool
    amount: Decimal
    gateway_status: Optional[str] = None
