"""
Confirms that a payment reference actually cleared with the gateway.

Transient gateway failures are retried here; the order service treats any
non-success from ``verify_payment`` as final.
"""

import logging
from decimal import Decimal
from typing import Optional, Protocol

from models.payment import PaymentVerification
from services.payment_gateway import PaymentGateway, SUCCEEDED
from utils.result import AppError, ErrorCode, Result, err, ok
from utils.retry import RetryOptions, with_retry

logger = logging.getLogger(__name__)

VERIFIED_STATUSES = frozenset({SUCCEEDED, "paid"})


class PaymentVerifier(Protocol):
    async def verify_payment(self, reference: str) -> Result[PaymentVerification]: ...


class GatewayPaymentVerifier:
    def __init__(self, gateway: PaymentGateway, retry_options: Optional[RetryOptions] = None):
        self.gateway = gateway
        self.retry_options = retry_options or RetryOptions()

    async def verify_payment(self, reference: str) -> Result[PaymentVerification]:
        logger.info(f"Verifying payment {reference}")
        try:
            payment = await with_retry(lambda: self.gateway.retrieve(reference), self.retry_options)
        except Exception as e:
            logger.error(f"Could not verify payment {reference}: {e}")
            return err(AppError(
                "Payment gateway error during verification",
                ErrorCode.PAYMENT_VERIFICATION_FAILED,
                500,
                {"payment_reference": reference, "original_error": str(e)},
            ))

        if payment is None:
            return err(AppError(
                "Unknown payment reference",
                ErrorCode.PAYMENT_VERIFICATION_FAILED,
                400,
                {"payment_reference": reference},
            ))

        status = str(payment.get("status", "")).lower()
        verification = PaymentVerification(
            reference=reference,
            verified=status in VERIFIED_STATUSES,
            amount=Decimal(str(payment.get("amount", 0))),
            gateway_status=status,
        )
        logger.info(f"Payment {reference} verification result: {status}")
        return ok(verification)
