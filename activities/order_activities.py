from pydantic import ValidationError
from temporalio import activity
from temporalio.exceptions import ApplicationError

from models.order import UpdateOrderRequest
from services.order_service import OrderService
from utils.result import ErrorCode, Result


def _unwrap(result: Result, operation: str) -> dict:
    """Return the order as a dict or raise the error for Temporal.

    Client errors (4xx) are never retried; server-side failures are left
    to the activity retry policy.
    """
    if result.success:
        return result.data.to_dict()

    error = result.error
    activity.logger.warning(f"{operation} failed with {error.code}: {error.message}")
    raise ApplicationError(
        error.message,
        error.to_dict(),
        type=error.code,
        non_retryable=error.status_code < 500,
    )


class OrderActivities:
    """Order lifecycle operations exposed as Temporal activities."""

    def __init__(self, order_service: OrderService):
        self.order_service = order_service

    @activity.defn
    async def create_order(self, order_data: dict) -> dict:
        activity.logger.info(f"Creating order {order_data.get('order_number') or '(new)'}")
        result = await self.order_service.create_order(order_data)
        return _unwrap(result, "create_order")

    @activity.defn
    async def get_order(self, order_id: str) -> dict:
        result = await self.order_service.get_order(order_id)
        return _unwrap(result, "get_order")

    @activity.defn
    async def update_order_status(self, update: dict) -> dict:
        order_id = update["order_id"]
        try:
            request = UpdateOrderRequest.model_validate(
                {k: v for k, v in update.items() if k != "order_id"}
            )
        except ValidationError as e:
            raise ApplicationError(str(e), type=ErrorCode.VALIDATION_ERROR.value, non_retryable=True)

        activity.logger.info(
            f"Updating order {order_id}: order_status={request.order_status}, "
            f"payment_status={request.payment_status}"
        )
        result = await self.order_service.update_status(
            order_id,
            order_status=request.order_status,
            payment_status=request.payment_status,
            payment_reference=request.payment_reference,
        )
        return _unwrap(result, "update_order_status")

    @activity.defn
    async def process_payment(self, order_id: str, payment_reference: str) -> dict:
        activity.logger.info(f"Processing payment {payment_reference} for order {order_id}")
        result = await self.order_service.process_payment(order_id, payment_reference)
        return _unwrap(result, "process_payment")

    @activity.defn
    async def complete_order(self, order_id: str) -> dict:
        activity.logger.info(f"Completing order {order_id}")
        result = await self.order_service.complete_order(order_id)
        return _unwrap(result, "complete_order")

    @activity.defn
    async def cancel_order(self, order_id: str, reason: str) -> dict:
        activity.logger.info(f"Cancelling order {order_id}: {reason}")
        result = await self.order_service.cancel_order(order_id, reason or None)
        return _unwrap(result, "cancel_order")

    def all(self) -> list:
        return [
            self.create_order,
            self.get_order,
            self.update_order_status,
            self.process_payment,
            self.complete_order,
            self.cancel_order,
        ]
