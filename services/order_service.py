"""
Order Service

Owns the order lifecycle: creation (with risk assessment), status
transitions for both the order and its payment, payment processing and
cancellation. Every public method returns a ``Result``; no exception
crosses this boundary.
"""

import secrets
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from models.order import (
    CreateOrderRequest,
    Order,
    OrderItem,
    OrderStatus,
    utcnow,
)
from models.payment import PaymentStatus
from models.risk import CustomerData, OrderRiskData, RiskAssessment
from repositories.order_repository import OrderRepository
from repositories.store import ConcurrentModificationError, DuplicateKeyError, RecordNotFoundError
from services.base import BaseService
from services.payment_verifier import PaymentVerifier
from services.risk_assessment import RiskAssessor
from services.transitions import is_valid_order_transition, is_valid_payment_transition, requires_payment
from utils.pagination import CursorPage
from utils.result import AppError, ErrorCode, Result, err, ok

MAX_PAGE_SIZE = 100


def generate_order_number(now: datetime) -> str:
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


class OrderService(BaseService):
    name = "OrderService"

    def __init__(
        self,
        repository: OrderRepository,
        payment_verifier: PaymentVerifier,
        risk_assessor: Optional[RiskAssessor] = None,
        clock: Callable[[], datetime] = utcnow,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.repository = repository
        self.payment_verifier = payment_verifier
        self.risk_assessor = risk_assessor
        self.clock = clock

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_order(self, data: Union[CreateOrderRequest, Dict[str, Any]]) -> Result[Order]:
        """Validate, risk-assess and persist a new order together with its items."""
        if not isinstance(data, CreateOrderRequest):
            try:
                data = CreateOrderRequest.model_validate(data)
            except ValidationError as e:
                return err(self.create_error(
                    "Invalid order data",
                    ErrorCode.VALIDATION_ERROR,
                    400,
                    {"errors": [f"{'.'.join(map(str, x['loc']))}: {x['msg']}" for x in e.errors()]},
                ))

        order_number = data.order_number or generate_order_number(self.clock())
        self.log_info("Creating new order", {
            "user_id": data.user_id,
            "is_guest_order": data.is_guest_order,
            "order_number": order_number,
        })

        validation_error = self._validate_create(data)
        if validation_error:
            return err(validation_error)

        risk = await self._assess_risk(data, order_number)

        try:
            now = self.clock()
            order = Order(
                order_number=order_number,
                user_id=data.user_id,
                is_guest_order=data.is_guest_order,
                guest_email=data.guest_email,
                guest_first_name=data.guest_first_name,
                guest_last_name=data.guest_last_name,
                guest_phone=data.guest_phone,
                subtotal=data.subtotal,
                tax=data.tax,
                total=data.total,
                order_status=OrderStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                risk_score=risk.risk_score if risk else None,
                risk_level=risk.risk_level if risk else None,
                requires_review=risk.requires_review if risk else False,
                package_id=data.package_id,
                ip_address=data.ip_address,
                user_agent=data.user_agent,
                is_rush_order=data.is_rush_order,
                created_at=now,
                updated_at=now,
            )
            items = [
                OrderItem(order_id=order.id, position=index, created_at=now, **item.model_dump())
                for index, item in enumerate(data.items)
            ]
            created = await self.repository.create_with_items(order, items)
        except Exception as e:
            return err(self.handle_error(
                e,
                "Failed to create order",
                ErrorCode.ORDER_CREATION_FAILED,
                500,
                {"order_number": order_number},
            ))

        self.log_info("Order created successfully", {
            "order_id": created.id,
            "order_number": created.order_number,
            "total": created.total,
        })
        return ok(created)

    def _validate_create(self, data: CreateOrderRequest) -> Optional[AppError]:
        def invalid(message: str, **context) -> AppError:
            return self.create_error(message, ErrorCode.VALIDATION_ERROR, 400, context or None)

        if data.is_guest_order:
            if not data.guest_email:
                return invalid("Guest email is required for guest orders")
            if data.user_id:
                return invalid("Guest orders cannot reference a registered user", user_id=data.user_id)
        else:
            if not data.user_id:
                return invalid("User ID is required for non-guest orders")
            if data.guest_email:
                return invalid("Registered-user orders cannot carry a guest email")

        if not data.items:
            return invalid("At least one item is required")

        if data.total <= 0:
            return invalid("Order total must be greater than zero", total=str(data.total))

        if data.subtotal < 0 or data.tax < 0:
            return invalid("Subtotal and tax cannot be negative")

        if data.total != data.subtotal + data.tax:
            return invalid(
                "Order total must equal subtotal plus tax",
                subtotal=str(data.subtotal),
                tax=str(data.tax),
                total=str(data.total),
            )

        for index, item in enumerate(data.items):
            if item.total_price != item.unit_price * item.quantity:
                return invalid(
                    "Item total price must equal unit price times quantity",
                    item_index=index,
                    total_price=str(item.total_price),
                )
        return None

    async def _assess_risk(self, data: CreateOrderRequest, order_number: str) -> Optional[RiskAssessment]:
        """Run the risk assessor if there is one; its failures never block creation."""
        if self.risk_assessor is None:
            return None

        try:
            previous_orders = await self.repository.count_by_user_id(data.user_id) if data.user_id else 0
            customer = CustomerData(
                id=data.user_id,
                name=" ".join(filter(None, [data.guest_first_name, data.guest_last_name])) or None,
                email=data.guest_email or "",
                phone=data.guest_phone,
                ip_address=data.ip_address,
                user_agent=data.user_agent,
                previous_orders=previous_orders,
            )
            order_data = OrderRiskData(
                amount=float(data.total),
                services=[item.service_type.value for item in data.items],
                is_rush_order=data.is_rush_order,
            )
            assessment = await self.risk_assessor.assess(customer, order_data)
        except Exception as e:
            self.log_warn("Risk assessment failed, proceeding without risk data", {
                "order_number": order_number,
                "error": e,
            })
            return None

        if assessment.requires_review:
            self.log_warn("Order requires manual review", {
                "order_number": order_number,
                "risk_score": assessment.risk_score,
                "risk_level": assessment.risk_level.value,
            })
        return assessment

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order(self, order_id: str, user_id: Optional[str] = None) -> Result[Order]:
        try:
            self.log_debug("Fetching order", {"order_id": order_id, "user_id": user_id})
            order = await self.repository.find_by_id_with_items(order_id)
        except Exception as e:
            return err(self.handle_error(
                e, "Failed to fetch order", ErrorCode.ORDER_FETCH_FAILED, 500, {"order_id": order_id}
            ))

        if order is None:
            return err(self._not_found(order_id))

        if user_id and order.user_id and order.user_id != user_id:
            return err(self.create_error(
                "Not authorized to access this order",
                ErrorCode.UNAUTHORIZED,
                403,
                {"order_id": order_id},
            ))
        return ok(order)

    async def get_user_orders(self, user_id: str, limit: int = 50) -> Result[List[Order]]:
        try:
            return ok(await self.repository.find_by_user_id(user_id, limit=limit))
        except Exception as e:
            return err(self.handle_error(
                e, "Failed to fetch user orders", ErrorCode.ORDER_FETCH_FAILED, 500, {"user_id": user_id}
            ))

    async def list_orders(
        self,
        cursor: Optional[str] = None,
        limit: int = 20,
        order_status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
    ) -> Result[CursorPage]:
        if not 1 <= limit <= MAX_PAGE_SIZE:
            return err(self.create_error(
                f"Page size must be between 1 and {MAX_PAGE_SIZE}",
                ErrorCode.VALIDATION_ERROR,
                400,
                {"limit": limit},
            ))

        criteria: Dict[str, Any] = {}
        if order_status is not None:
            criteria["order_status"] = order_status
        if payment_status is not None:
            criteria["payment_status"] = payment_status

        try:
            return ok(await self.repository.find_page(cursor, limit, criteria))
        except Exception as e:
            return err(self.handle_error(
                e, "Failed to list orders", ErrorCode.ORDER_FETCH_FAILED, 500, {"cursor": cursor}
            ))

    async def get_orders_requiring_review(self, limit: int = 50) -> Result[List[Order]]:
        try:
            return ok(await self.repository.find_requiring_review(limit=limit))
        except Exception as e:
            return err(self.handle_error(
                e, "Failed to fetch orders requiring review", ErrorCode.ORDER_FETCH_FAILED, 500
            ))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def update_status(
        self,
        order_id: str,
        order_status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        payment_reference: Optional[str] = None,
    ) -> Result[Order]:
        """Move the order and/or its payment to a new status.

        Both requested transitions are validated before anything is written.
        The write only succeeds if nobody else changed the order since it
        was read; otherwise CONCURRENT_MODIFICATION is returned.
        """
        self.log_info("Updating order", {
            "order_id": order_id,
            "order_status": order_status,
            "payment_status": payment_status,
        })

        if order_status is None and payment_status is None and payment_reference is None:
            return err(self.create_error(
                "No changes requested", ErrorCode.VALIDATION_ERROR, 400, {"order_id": order_id}
            ))

        try:
            order_status = OrderStatus(order_status) if order_status is not None else None
            payment_status = PaymentStatus(payment_status) if payment_status is not None else None
        except ValueError as e:
            return err(self.create_error(
                f"Unknown status: {e}",
                ErrorCode.VALIDATION_ERROR,
                400,
                {"order_id": order_id, "order_status": order_status, "payment_status": payment_status},
            ))

        try:
            current = await self.repository.find_by_id(order_id)
            if current is None:
                return err(self._not_found(order_id))

            now = self.clock()
            changes: Dict[str, Any] = {"updated_at": now}

            if payment_status is not None:
                if not is_valid_payment_transition(current.payment_status, payment_status):
                    return err(self._invalid_transition("payment", order_id, current.payment_status, payment_status))
                changes["payment_status"] = payment_status
                if payment_status == PaymentStatus.PAID and current.paid_at is None:
                    changes["paid_at"] = now

            if order_status is not None:
                if order_status == OrderStatus.CANCELLED and current.order_status == OrderStatus.COMPLETED:
                    return err(self._cannot_cancel_completed(order_id))
                if not is_valid_order_transition(current.order_status, order_status):
                    return err(self._invalid_transition("order", order_id, current.order_status, order_status))
                resulting_payment = payment_status or current.payment_status
                if requires_payment(order_status) and resulting_payment != PaymentStatus.PAID:
                    return err(self._payment_required(order_id, current.order_status, order_status, resulting_payment))
                changes["order_status"] = order_status
                if order_status == OrderStatus.COMPLETED and current.completed_at is None:
                    changes["completed_at"] = now

            if payment_reference is not None:
                changes["payment_reference"] = payment_reference

            order = await self.repository.update_order(order_id, changes, expected_version=current.version)
        except ConcurrentModificationError as e:
            self.log_warn("Order changed while it was being updated", {"order_id": order_id})
            return err(self.create_error(
                "Order was modified concurrently, retry with fresh state",
                ErrorCode.CONCURRENT_MODIFICATION,
                409,
                {
                    "order_id": order_id,
                    "expected_version": e.expected_version,
                    "actual_version": e.actual_version,
                },
            ))
        except DuplicateKeyError as e:
            return err(self._reference_in_use(order_id, e.value))
        except RecordNotFoundError:
            return err(self._not_found(order_id))
        except Exception as e:
            return err(self.handle_error(
                e, "Failed to update order", ErrorCode.ORDER_UPDATE_FAILED, 500, {"order_id": order_id}
            ))

        self.log_info("Order updated successfully", {"order_id": order_id, "version": order.version})
        return ok(order)

    async def process_payment(self, order_id: str, payment_reference: str) -> Result[Order]:
        """Verify ``payment_reference`` with the gateway, then mark the order paid."""
        self.log_info("Processing payment", {"order_id": order_id, "payment_reference": payment_reference})
        context = {"order_id": order_id, "payment_reference": payment_reference}

        try:
            order = await self.repository.find_by_id(order_id)
            if order is None:
                return err(self._not_found(order_id))

            paid_order = await self.repository.find_by_payment_reference(payment_reference)
            if paid_order is not None and paid_order.id != order_id:
                self.log_warn("Payment reference already used by another order", {
                    **context, "other_order_id": paid_order.id,
                })
                return err(self._reference_in_use(order_id, payment_reference))

            verification = await self.payment_verifier.verify_payment(payment_reference)
        except Exception as e:
            return err(self.handle_error(
                e, "Failed to process payment", ErrorCode.PAYMENT_PROCESSING_FAILED, 500, context
            ))

        if not verification.success:
            cause = verification.error
            # Explicit rejections keep their 4xx; anything unexpected is a 500
            status_code = (
                cause.status_code
                if cause.code == ErrorCode.PAYMENT_VERIFICATION_FAILED.value
                else 500
            )
            self.log_warn("Payment verification failed", {**context, "reason": cause.message})
            return err(self.create_error(
                "Payment verification failed",
                ErrorCode.PAYMENT_VERIFICATION_FAILED,
                status_code,
                {**context, "reason": cause.message, "cause_code": cause.code},
            ))

        payment = verification.data
        if not payment.verified:
            self.log_warn("Payment not verified by gateway", {**context, "gateway_status": payment.gateway_status})
            return err(self.create_error(
                "Payment verification failed",
                ErrorCode.PAYMENT_VERIFICATION_FAILED,
                400,
                {**context, "gateway_status": payment.gateway_status},
            ))

        if payment.amount != order.total:
            self.log_warn("Verified amount does not match order total", context)
            return err(self.create_error(
                "Paid amount does not match order total",
                ErrorCode.PAYMENT_VERIFICATION_FAILED,
                400,
                {**context, "expected_amount": str(order.total), "paid_amount": str(payment.amount)},
            ))

        result = await self.update_status(
            order_id,
            order_status=OrderStatus.PAID,
            payment_status=PaymentStatus.PAID,
            payment_reference=payment_reference,
        )
        if result.success:
            self.log_info("Payment processed successfully", context)
        return result

    async def complete_order(self, order_id: str) -> Result[Order]:
        self.log_info("Completing order", {"order_id": order_id})
        return await self.update_status(order_id, order_status=OrderStatus.COMPLETED)

    async def cancel_order(self, order_id: str, reason: Optional[str] = None) -> Result[Order]:
        """Cancel an order that has not been completed.

        The payment status is left alone; a paid order has to be refunded
        explicitly with ``update_status(payment_status=REFUNDED)``.
        """
        self.log_info("Cancelling order", {"order_id": order_id, "reason": reason})

        try:
            order = await self.repository.find_by_id(order_id)
        except Exception as e:
            return err(self.handle_error(
                e, "Failed to cancel order", ErrorCode.ORDER_CANCELLATION_FAILED, 500, {"order_id": order_id}
            ))

        if order is None:
            return err(self._not_found(order_id))

        if order.order_status == OrderStatus.COMPLETED:
            return err(self._cannot_cancel_completed(order_id))

        if order.order_status == OrderStatus.CANCELLED:
            return err(self.create_error(
                "Order is already cancelled",
                ErrorCode.INVALID_OPERATION,
                400,
                {"order_id": order_id, "current_status": order.order_status.value},
            ))

        if order.payment_status == PaymentStatus.PAID:
            self.log_warn("Cancelling a paid order; the payment must be refunded separately", {
                "order_id": order_id,
                "payment_reference": order.payment_reference,
            })

        result = await self.update_status(order_id, order_status=OrderStatus.CANCELLED)
        if result.success:
            self.log_info("Order cancelled successfully", {"order_id": order_id, "reason": reason})
        return result

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def _not_found(self, order_id: str) -> AppError:
        return self.create_error("Order not found", ErrorCode.ORDER_NOT_FOUND, 404, {"order_id": order_id})

    def _cannot_cancel_completed(self, order_id: str) -> AppError:
        return self.create_error(
            "Cannot cancel completed order",
            ErrorCode.INVALID_OPERATION,
            400,
            {"order_id": order_id, "current_status": OrderStatus.COMPLETED.value},
        )

    def _payment_required(self, order_id: str, current, requested, payment_status) -> AppError:
        return self.create_error(
            f"Order cannot move to {requested.value} while payment is {payment_status.value}",
            ErrorCode.INVALID_STATE_TRANSITION,
            400,
            {
                "order_id": order_id,
                "current_status": current.value,
                "requested_status": requested.value,
                "payment_status": payment_status.value,
            },
        )

    def _reference_in_use(self, order_id: str, payment_reference: str) -> AppError:
        return self.create_error(
            "Payment reference has already been applied to another order",
            ErrorCode.PAYMENT_VERIFICATION_FAILED,
            409,
            {"order_id": order_id, "payment_reference": payment_reference},
        )

    def _invalid_transition(self, kind: str, order_id: str, current, requested) -> AppError:
        return self.create_error(
            f"Invalid {kind} status transition from {current.value} to {requested.value}",
            ErrorCode.INVALID_STATE_TRANSITION,
            400,
            {
                "order_id": order_id,
                "current_status": current.value,
                "requested_status": requested.value,
            },
        )
