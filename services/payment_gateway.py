"""
In-process payment gateway.

Stands in for the card processor when running the worker locally: charges
are recorded in memory and can later be looked up by reference, the same
way the processor's "retrieve payment" call works.
"""

import asyncio
import logging
import random
from decimal import Decimal
from typing import Dict, Optional, Protocol

from utils.result import AppError, ErrorCode

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
DECLINED = "declined"
PROCESSING = "processing"


class PaymentGateway(Protocol):
    async def retrieve(self, reference: str) -> Optional[dict]: ...


class SimulatedPaymentGateway:
    def __init__(self, latency_seconds: float = 0.0, transient_failures: int = 0):
        self.latency_seconds = latency_seconds
        # Number of upcoming retrieve() calls that fail as if the gateway were down
        self.transient_failures = transient_failures
        self._payments: Dict[str, dict] = {}

    async def charge(self, amount: Decimal, status: str = SUCCEEDED, reference: Optional[str] = None) -> str:
        reference = reference or f"TXN-{random.randint(100000, 999999)}"
        await asyncio.sleep(self.latency_seconds)
        self._payments[reference] = {"reference": reference, "status": status, "amount": Decimal(amount)}
        logger.info(f"Payment gateway recorded {status} transaction {reference} for ${Decimal(amount):.2f}")
        return reference

    async def retrieve(self, reference: str) -> Optional[dict]:
        await asyncio.sleep(self.latency_seconds)
        if self.transient_failures > 0:
            self.transient_failures -= 1
            logger.warning(f"Payment gateway unavailable while retrieving {reference}")
            raise AppError("Payment gateway unavailable", ErrorCode.SERVICE_UNAVAILABLE, 503)
        payment = self._payments.get(reference)
        return dict(payment) if payment else None
