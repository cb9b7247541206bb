from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4


class PaymentStatus(enum.StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


# failed -> completed is the recovery edge: a verified payment.captured
# webhook wins over an earlier client-side signature failure.
_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.COMPLETED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in _TRANSITIONS[current]


@dataclass(frozen=True, slots=True)
class Payment:
    id: UUID
    order_id: str
    user_id: UUID
    course_id: UUID
    amount: int  # minor currency units
    currency: str
    status: PaymentStatus
    created_at: datetime
    payment_id: str | None = None
    receipt: str | None = None
    signature: str | None = None
    error_message: str | None = None

    @staticmethod
    def new(
        *,
        order_id: str,
        user_id: UUID,
        course_id: UUID,
        amount: int,
        currency: str,
        receipt: str | None,
        now: datetime,
    ) -> Payment:
        return Payment(
            id=uuid4(),
            order_id=order_id,
            user_id=user_id,
            course_id=course_id,
            amount=amount,
            currency=currency,
            status=PaymentStatus.PENDING,
            created_at=now,
            receipt=receipt,
        )
