"""PostgreSQL implementation of PaymentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.tables import PaymentRow
from lms.models.payment import Payment, PaymentStatus
from lms.repos.errors import DuplicateKeyError


class PgPaymentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, payment: Payment) -> None:
        row = PaymentRow(
            id=payment.id,
            order_id=payment.order_id,
            payment_id=payment.payment_id,
            user_id=payment.user_id,
            course_id=payment.course_id,
            amount=payment.amount,
            currency=payment.currency,
            status=payment.status.value,
            receipt=payment.receipt,
            signature=payment.signature,
            error_message=payment.error_message,
            created_at=payment.created_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError as exc:
            raise DuplicateKeyError("order already recorded") from exc

    async def update(self, payment: Payment) -> None:
        stmt = (
            update(PaymentRow)
            .where(PaymentRow.id == payment.id)
            .values(
                payment_id=payment.payment_id,
                status=payment.status.value,
                signature=payment.signature,
                error_message=payment.error_message,
            )
        )
        await self._session.execute(stmt)

    async def get_by_order_id(self, order_id: str) -> Payment | None:
        stmt = select(PaymentRow).where(PaymentRow.order_id == order_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_payment(row)

    async def get_by_payment_id(self, payment_id: str) -> Payment | None:
        stmt = select(PaymentRow).where(PaymentRow.payment_id == payment_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_payment(row)

    async def list_for_user(self, user_id: UUID) -> list[Payment]:
        stmt = (
            select(PaymentRow)
            .where(PaymentRow.user_id == user_id)
            .order_by(PaymentRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_payment(row) for row in rows]


def _row_to_payment(row: PaymentRow) -> Payment:
    return Payment(
        id=row.id,
        order_id=row.order_id,
        payment_id=row.payment_id,
        user_id=row.user_id,
        course_id=row.course_id,
        amount=row.amount,
        currency=row.currency,
        status=PaymentStatus(row.status),
        receipt=row.receipt,
        signature=row.signature,
        error_message=row.error_message,
        created_at=row.created_at,
    )
