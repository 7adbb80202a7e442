from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError, ApplicationError
from datetime import timedelta

with workflow.unsafe.imports_passed_through():
    from activities.order_activities import OrderActivities


@workflow.defn(name="OrderLifecycleWorkflow")
class OrderLifecycleWorkflow:
    """Drives one order from creation through payment to completion.

    The order is created as soon as the workflow starts. It then waits for a
    ``submit_payment`` or ``cancel_order`` signal; a rejected payment puts it
    back to waiting for another reference. Once paid it waits for
    ``mark_completed`` (or a cancellation).
    """

    def __init__(self):
        self._order: dict | None = None
        self._payment_reference: str | None = None
        self._cancel_reason: str | None = None
        self._is_cancelled: bool = False
        self._completion_requested: bool = False
        self._last_error: str | None = None
        # Errors raised as non-retryable ApplicationErrors (4xx) are never retried
        self._retry_policy = RetryPolicy(
            initial_interval=timedelta(seconds=2),
            backoff_coefficient=2.0,
            maximum_interval=timedelta(seconds=30),
            maximum_attempts=3,
        )

    @workflow.run
    async def run(self, order_input: dict) -> dict:
        workflow.logger.info(f"Starting OrderLifecycleWorkflow for order {order_input.get('order_number') or '(new)'}")

        try:
            self._order = await workflow.execute_activity_method(
                OrderActivities.create_order,
                order_input,
                retry_policy=self._retry_policy,
                start_to_close_timeout=timedelta(minutes=1),
            )
        except ActivityError as e:
            workflow.logger.error(f"Order creation failed: {e.cause}")
            raise ApplicationError(f"Order creation failed: {e.cause}", non_retryable=True)

        order_id = self._order["id"]
        workflow.logger.info(f"Order {order_id} created, waiting for payment")

        # 1. Wait for a payment that verifies, or a cancellation
        while self._order["payment_status"] != "PAID":
            await workflow.wait_condition(lambda: self._payment_reference is not None or self._is_cancelled)
            if self._is_cancelled:
                return await self._cancel(order_id)

            reference = self._payment_reference
            try:
                self._order = await workflow.execute_activity_method(
                    OrderActivities.process_payment,
                    args=[order_id, reference],
                    retry_policy=self._retry_policy,
                    start_to_close_timeout=timedelta(seconds=30),
                )
                self._last_error = None
            except ActivityError as e:
                workflow.logger.warning(f"Payment {reference} rejected for order {order_id}: {e.cause}")
                self._last_error = str(e.cause)
                self._payment_reference = None

        # 2. Wait for fulfilment
        await workflow.wait_condition(lambda: self._completion_requested or self._is_cancelled)
        if self._is_cancelled:
            return await self._cancel(order_id)

        self._order = await workflow.execute_activity_method(
            OrderActivities.complete_order,
            order_id,
            retry_policy=self._retry_policy,
            start_to_close_timeout=timedelta(seconds=30),
        )
        workflow.logger.info(f"Workflow finished for order {order_id} with status {self._order['order_status']}")
        return self._order

    async def _cancel(self, order_id: str) -> dict:
        try:
            self._order = await workflow.execute_activity_method(
                OrderActivities.cancel_order,
                args=[order_id, self._cancel_reason or ""],
                retry_policy=self._retry_policy,
                start_to_close_timeout=timedelta(seconds=30),
            )
        except ActivityError as e:
            workflow.logger.warning(f"Cancellation rejected for order {order_id}: {e.cause}")
            self._last_error = str(e.cause)
        return self._order

    @workflow.query
    def get_status(self) -> str:
        """Returns the current order status."""
        if not self._order:
            return "UNKNOWN"
        return self._order["order_status"]

    @workflow.query
    def get_payment_status(self) -> str:
        if not self._order:
            return "UNKNOWN"
        return self._order["payment_status"]

    @workflow.query
    def get_details(self) -> dict | None:
        """Returns the full order state and the last rejected operation, if any."""
        if not self._order:
            return None
        return {**self._order, "last_error": self._last_error}

    @workflow.signal
    async def submit_payment(self, payment_reference: str):
        if self._payment_reference is None:
            workflow.logger.info(f"Received payment reference {payment_reference}")
            self._payment_reference = payment_reference
        else:
            workflow.logger.warning(f"Payment {self._payment_reference} already being processed. Ignoring {payment_reference}.")

    @workflow.signal
    async def cancel_order(self, reason: str = ""):
        if not self._is_cancelled:
            workflow.logger.info(f"Received cancellation signal: {reason}")
            self._cancel_reason = reason
            self._is_cancelled = True

    @workflow.signal
    async def mark_completed(self):
        workflow.logger.info("Received completion signal")
        self._completion_requested = True
