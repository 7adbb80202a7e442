from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
import uuid

from models.payment import PaymentStatus
from models.risk import RiskLevel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    PAID = "PAID"
    IN_REVIEW = "IN_REVIEW"
    SUBMITTED_TO_STATE = "SUBMITTED_TO_STATE"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ServiceType(str, Enum):
    LLC_FORMATION = "LLC_FORMATION"
    CORPORATION_FORMATION = "CORPORATION_FORMATION"
    DBA_REGISTRATION = "DBA_REGISTRATION"
    ANNUAL_REPORT = "ANNUAL_REPORT"
    REGISTERED_AGENT = "REGISTERED_AGENT"
    CERTIFIED_COPY = "CERTIFIED_COPY"
    CERTIFICATE_OF_STATUS = "CERTIFICATE_OF_STATUS"
    REINSTATEMENT = "REINSTATEMENT"
    OTHER = "OTHER"


class OrderItemInput(BaseModel):
    service_type: ServiceType
    description: str
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)
    total_price: Decimal = Field(ge=0)


class OrderItem(OrderItemInput):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    order_id: str
    position: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class Order(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    order_number: str

    # Ownership: a registered user or a guest, never both
    user_id: Optional[str] = None
    is_guest_order: bool = False
    guest_email: Optional[str] = None
    guest_first_name: Optional[str] = None
    guest_last_name: Optional[str] = None
    guest_phone: Optional[str] = None

    subtotal: Decimal
    tax: Decimal
    total: Decimal

    order_status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_reference: Optional[str] = None

    risk_score: Optional[int] = Field(default=None, ge=0, le=100)
    risk_level: Optional[RiskLevel] = None
    requires_review: bool = False

    package_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    is_rush_order: bool = False

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    paid_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Bumped on every write; used to detect concurrent transitions
    version: int = 1

    items: List[OrderItem] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


class CreateOrderRequest(BaseModel):
    user_id: Optional[str] = None
    is_guest_order: bool = False
    guest_email: Optional[str] = None
    guest_first_name: Optional[str] = None
    guest_last_name: Optional[str] = None
    guest_phone: Optional[str] = None
    order_number: Optional[str] = None
    subtotal: Decimal
    tax: Decimal = Decimal("0")
    total: Decimal
    package_id: Optional[str] = None
    items: List[OrderItemInput] = Field(default_factory=list)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    is_rush_order: bool = False

    @field_validator("guest_email")
    @classmethod
    def normalize_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().lower()
        return value or None


class UpdateOrderRequest(BaseModel):
    order_status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    payment_reference: Optional[str] = None
