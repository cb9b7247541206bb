"""Payment-to-enrollment bridge.

Two triggers confirm a payment: the client calling verify after checkout,
and the gateway's server-to-server webhook.  They can arrive in either
order and either can repeat.  Both converge on one completed Payment and
one Enrollment per order:

- each path checks the payment's current status before moving it
- enrollment creation goes through the ledger, whose uniqueness
  constraint settles a race between the two paths
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from lms.core.errors import (
    AlreadyCompleted,
    AlreadyEnrolled,
    CourseIsFree,
    CourseNotFound,
    GatewayNotConfigured,
    InvalidPaymentTransition,
    InvalidSignature,
    InvalidWebhookSignature,
    PaymentNotFound,
    UserNotFound,
)
from lms.core.metrics import PAYMENT_EVENTS
from lms.models.course import Course
from lms.models.enrollment import Enrollment, EnrollmentMode
from lms.models.payment import Payment, PaymentStatus, can_transition
from lms.repos.bundle import Repos
from lms.services.enrollment_ledger import EnrollmentLedger
from lms.services.payment_gateway import RazorpayGateway

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def to_minor_units(amount: Decimal) -> int:
    """Major to minor currency units, halves rounded away from zero."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True, slots=True)
class CheckoutOrder:
    order_id: str
    amount: int
    currency: str
    receipt: str
    key_id: str
    course: Course
    price: Decimal


@dataclass(frozen=True, slots=True)
class PaymentConfig:
    enabled: bool
    test_mode: bool
    key_id: str
    key_id_prefix: str


class PaymentBridge:
    def __init__(
        self,
        repos: Repos,
        gateway: RazorpayGateway | None,
        *,
        currency: str = "INR",
        test_mode: bool = True,
        now: Callable[[], datetime] = _utcnow,
        epoch_ms: Callable[[], int] = _epoch_ms,
    ) -> None:
        self._repos = repos
        self._gateway = gateway
        self._currency = currency
        self._test_mode = test_mode
        self._now = now
        self._epoch_ms = epoch_ms
        self._ledger = EnrollmentLedger(repos, now=now)

    def _require_gateway(self) -> RazorpayGateway:
        if self._gateway is None:
            raise GatewayNotConfigured()
        return self._gateway

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def create_order(self, course_id: UUID, user_id: UUID) -> CheckoutOrder:
        gateway = self._require_gateway()

        course = await self._repos.courses.get(course_id)
        if course is None:
            raise CourseNotFound(course_id=str(course_id))
        user = await self._repos.users.get_by_id(user_id)
        if user is None:
            raise UserNotFound(user_id=str(user_id))
        if await self._repos.enrollments.get(course_id, user_id) is not None:
            raise AlreadyEnrolled(course_id=str(course_id), already_enrolled=True)

        price = course.effective_price
        if price <= 0:
            raise CourseIsFree(course_id=str(course_id))

        order = await gateway.create_order(
            amount=to_minor_units(price),
            currency=self._currency,
            receipt=f"course_{course_id}_user_{user_id}_{self._epoch_ms()}",
            notes={
                "course_id": str(course_id),
                "user_id": str(user_id),
                "course_title": course.title,
            },
        )
        await self._repos.payments.add(
            Payment.new(
                order_id=order.id,
                user_id=user_id,
                course_id=course_id,
                amount=order.amount,
                currency=order.currency,
                receipt=order.receipt,
                now=self._now(),
            )
        )
        PAYMENT_EVENTS.labels(source="order", outcome="created").inc()
        logger.info(
            "Opened order for course=%s user=%s amount=%d %s",
            course_id,
            user_id,
            order.amount,
            order.currency,
            extra={"order_id": order.id, "course_id": str(course_id)},
        )
        return CheckoutOrder(
            order_id=order.id,
            amount=order.amount,
            currency=order.currency,
            receipt=order.receipt,
            key_id=gateway.key_id,
            course=course,
            price=price,
        )

    # ------------------------------------------------------------------
    # Client-side verification
    # ------------------------------------------------------------------

    async def verify_payment(
        self, user_id: UUID, order_id: str, payment_id: str, signature: str
    ) -> Enrollment:
        """Confirm a checkout and enroll the payer.

        A bad signature fails the caller's pending payment for the order
        and raises InvalidSignature; the failed status is meant to persist.
        """
        gateway = self._require_gateway()
        log_extra = {"order_id": order_id, "user_id": str(user_id)}

        if not gateway.verify_payment_signature(order_id, payment_id, signature):
            payment = await self._repos.payments.get_by_order_id(order_id)
            if (
                payment is not None
                and payment.user_id == user_id
                and payment.status is PaymentStatus.PENDING
            ):
                await self._repos.payments.update(
                    replace(
                        payment,
                        status=PaymentStatus.FAILED,
                        error_message="Invalid signature",
                    )
                )
            PAYMENT_EVENTS.labels(source="verify", outcome="invalid_signature").inc()
            logger.warning("Payment signature mismatch", extra=log_extra)
            raise InvalidSignature()

        payment = await self._repos.payments.get_by_order_id(order_id)
        if payment is None or payment.user_id != user_id:
            raise PaymentNotFound(order_id=order_id)
        if payment.status is PaymentStatus.COMPLETED:
            PAYMENT_EVENTS.labels(source="verify", outcome="already_completed").inc()
            raise AlreadyCompleted(order_id=order_id)
        if payment.status is not PaymentStatus.PENDING:
            # Only a verified capture webhook may revive a failed payment
            raise InvalidPaymentTransition(order_id=order_id, status=payment.status.value)

        await self._repos.payments.update(
            replace(
                payment,
                status=PaymentStatus.COMPLETED,
                payment_id=payment_id,
                signature=signature,
                error_message=None,
            )
        )
        enrollment = await self._enroll_payer(payment)
        PAYMENT_EVENTS.labels(source="verify", outcome="completed").inc()
        logger.info("Payment verified and student enrolled", extra=log_extra)
        return enrollment

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    async def handle_webhook(self, raw_body: bytes, signature: str | None) -> str:
        """Apply a signed gateway event.  Returns a short outcome string."""
        gateway = self._require_gateway()
        if not gateway.verify_webhook_signature(raw_body, signature):
            PAYMENT_EVENTS.labels(source="webhook", outcome="invalid_signature").inc()
            logger.warning("Rejected webhook with bad or missing signature")
            raise InvalidWebhookSignature()

        try:
            event = json.loads(raw_body)
        except ValueError:
            logger.warning("Signed webhook body is not JSON")
            return "ignored"
        if not isinstance(event, dict):
            logger.warning("Signed webhook body is not a JSON object")
            return "ignored"

        name = event.get("event")
        payload = event.get("payload")
        if not isinstance(payload, dict):
            payload = {}
        logger.info("Webhook event %s", name)

        if name == "payment.captured":
            outcome = await self._on_captured(_entity(payload, "payment"))
        elif name == "payment.failed":
            outcome = await self._on_failed(_entity(payload, "payment"))
        elif name == "refund.processed":
            outcome = await self._on_refunded(_entity(payload, "refund"))
        else:
            logger.info("Unhandled webhook event %s", name)
            outcome = "ignored"

        PAYMENT_EVENTS.labels(source="webhook", outcome=outcome).inc()
        return outcome

    async def _on_captured(self, entity: dict) -> str:
        order_id = entity.get("order_id")
        if not order_id:
            logger.warning("Captured event without an order id")
            return "ignored"
        payment = await self._repos.payments.get_by_order_id(order_id)
        if payment is None:
            logger.warning("Captured payment for unknown order", extra={"order_id": order_id})
            return "ignored"
        if payment.status is PaymentStatus.COMPLETED:
            return "duplicate"
        if not can_transition(payment.status, PaymentStatus.COMPLETED):
            logger.warning(
                "Captured event for %s payment ignored",
                payment.status.value,
                extra={"order_id": order_id},
            )
            return "ignored"

        await self._repos.payments.update(
            replace(
                payment,
                status=PaymentStatus.COMPLETED,
                payment_id=entity.get("id") or payment.payment_id,
                error_message=None,
            )
        )
        await self._enroll_payer(payment)
        logger.info("Payment captured", extra={"order_id": order_id})
        return "completed"

    async def _on_failed(self, entity: dict) -> str:
        order_id = entity.get("order_id")
        if not order_id:
            return "ignored"
        payment = await self._repos.payments.get_by_order_id(order_id)
        if payment is None:
            return "ignored"
        if not can_transition(payment.status, PaymentStatus.FAILED):
            logger.info(
                "Failure event for %s payment ignored",
                payment.status.value,
                extra={"order_id": order_id},
            )
            return "ignored"
        await self._repos.payments.update(
            replace(
                payment,
                status=PaymentStatus.FAILED,
                error_message=entity.get("error_description") or "Payment failed",
            )
        )
        return "failed"

    async def _on_refunded(self, entity: dict) -> str:
        payment_id = entity.get("payment_id")
        payment = (
            await self._repos.payments.get_by_payment_id(payment_id)
            if payment_id
            else None
        )
        if payment is None:
            return "ignored"
        if not can_transition(payment.status, PaymentStatus.REFUNDED):
            return "ignored"
        await self._repos.payments.update(replace(payment, status=PaymentStatus.REFUNDED))
        logger.info("Payment refunded", extra={"order_id": payment.order_id})
        return "refunded"

    async def _enroll_payer(self, payment: Payment) -> Enrollment:
        """Enroll via the ledger; an enrollment from the other path wins."""
        try:
            return await self._ledger.enroll(
                payment.course_id, payment.user_id, EnrollmentMode.PAYMENT
            )
        except AlreadyEnrolled:
            existing = await self._repos.enrollments.get(
                payment.course_id, payment.user_id
            )
            if existing is None:
                raise
            return existing

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def payment_history(self, user_id: UUID) -> list[tuple[Payment, Course | None]]:
        payments = await self._repos.payments.list_for_user(user_id)
        courses = await self._repos.courses.get_many(
            list({p.course_id for p in payments})
        )
        return [(p, courses.get(p.course_id)) for p in payments]

    def payment_config(self) -> PaymentConfig:
        key_id = self._gateway.key_id if self._gateway is not None else ""
        return PaymentConfig(
            enabled=self._gateway is not None,
            test_mode=self._test_mode,
            key_id=key_id,
            key_id_prefix=f"{key_id[:10]}..." if key_id else "",
        )


def _entity(payload: dict, kind: str) -> dict:
    wrapper = payload.get(kind)
    entity = wrapper.get("entity") if isinstance(wrapper, dict) else None
    return entity if isinstance(entity, dict) else {}
