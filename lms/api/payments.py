"""Checkout, verification and gateway webhook endpoints.

The webhook is the only unauthenticated route here: the gateway signs
the raw body with the shared webhook secret instead.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, Field

from lms.api.dependencies import get_payment_bridge, require_capability, require_user
from lms.api.enrollments import EnrollmentOut
from lms.models.principal import Capability, Principal
from lms.services.payment_bridge import PaymentBridge

router = APIRouter(prefix="/v1/payments", tags=["payments"])

_student = require_capability(Capability.SELF_ENROLL)


class CheckoutCourseOut(BaseModel):
    id: str
    title: str
    price: float


class OrderOut(BaseModel):
    order_id: str
    amount: int
    currency: str
    receipt: str
    key_id: str
    course: CheckoutCourseOut


class VerifyIn(BaseModel):
    order_id: str = Field(min_length=1)
    payment_id: str = Field(min_length=1)
    signature: str = Field(min_length=1)


class VerifyOut(BaseModel):
    verified: bool
    enrollment: EnrollmentOut


class WebhookOut(BaseModel):
    received: bool
    outcome: str


class PaymentOut(BaseModel):
    id: str
    order_id: str
    payment_id: str | None
    course_id: str
    course_title: str | None
    amount: int
    currency: str
    status: str
    error_message: str | None
    created_at: datetime


class PaymentConfigOut(BaseModel):
    enabled: bool
    test_mode: bool
    key_id: str
    key_id_prefix: str


@router.post("/orders/{course_id}", response_model=OrderOut)
async def create_order(
    course_id: UUID,
    principal: Annotated[Principal, Depends(_student)],
    bridge: Annotated[PaymentBridge, Depends(get_payment_bridge)],
) -> OrderOut:
    order = await bridge.create_order(course_id, principal.user_uuid)
    return OrderOut(
        order_id=order.order_id,
        amount=order.amount,
        currency=order.currency,
        receipt=order.receipt,
        key_id=order.key_id,
        course=CheckoutCourseOut(
            id=str(order.course.id),
            title=order.course.title,
            price=float(order.price),
        ),
    )


@router.post("/verify", response_model=VerifyOut)
async def verify_payment(
    body: VerifyIn,
    principal: Annotated[Principal, Depends(_student)],
    bridge: Annotated[PaymentBridge, Depends(get_payment_bridge)],
) -> VerifyOut:
    enrollment = await bridge.verify_payment(
        principal.user_uuid, body.order_id, body.payment_id, body.signature
    )
    return VerifyOut(verified=True, enrollment=EnrollmentOut.from_domain(enrollment))


@router.post("/webhook", response_model=WebhookOut)
async def webhook(
    request: Request,
    bridge: Annotated[PaymentBridge, Depends(get_payment_bridge)],
    x_razorpay_signature: Annotated[str | None, Header()] = None,
) -> WebhookOut:
    raw_body = await request.body()
    outcome = await bridge.handle_webhook(raw_body, x_razorpay_signature)
    return WebhookOut(received=True, outcome=outcome)


@router.get("/history", response_model=list[PaymentOut])
async def payment_history(
    principal: Annotated[Principal, Depends(require_user)],
    bridge: Annotated[PaymentBridge, Depends(get_payment_bridge)],
) -> list[PaymentOut]:
    rows = await bridge.payment_history(principal.user_uuid)
    return [
        PaymentOut(
            id=str(p.id),
            order_id=p.order_id,
            payment_id=p.payment_id,
            course_id=str(p.course_id),
            course_title=course.title if course else None,
            amount=p.amount,
            currency=p.currency,
            status=p.status.value,
            error_message=p.error_message,
            created_at=p.created_at,
        )
        for p, course in rows
    ]


@router.get("/config", response_model=PaymentConfigOut)
async def payment_config(
    _principal: Annotated[Principal, Depends(require_user)],
    bridge: Annotated[PaymentBridge, Depends(get_payment_bridge)],
) -> PaymentConfigOut:
    config = bridge.payment_config()
    return PaymentConfigOut(
        enabled=config.enabled,
        test_mode=config.test_mode,
        key_id=config.key_id,
        key_id_prefix=config.key_id_prefix,
    )
