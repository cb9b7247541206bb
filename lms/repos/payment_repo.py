from __future__ import annotations

from typing import Protocol
from uuid import UUID

from lms.models.payment import Payment
from lms.repos.errors import DuplicateKeyError


class PaymentRepo(Protocol):
    async def add(self, payment: Payment) -> None: ...
    async def update(self, payment: Payment) -> None: ...
    async def get_by_order_id(self, order_id: str) -> Payment | None: ...
    async def get_by_payment_id(self, payment_id: str) -> Payment | None: ...
    async def list_for_user(self, user_id: UUID) -> list[Payment]: ...


class InMemoryPaymentRepo:
    def __init__(self) -> None:
        self._by_order: dict[str, Payment] = {}

    async def add(self, payment: Payment) -> None:
        if payment.order_id in self._by_order:
            raise DuplicateKeyError("order already recorded")
        self._by_order[payment.order_id] = payment

    async def update(self, payment: Payment) -> None:
        if payment.order_id not in self._by_order:
            raise KeyError("payment not found")
        self._by_order[payment.order_id] = payment

    async def get_by_order_id(self, order_id: str) -> Payment | None:
        return self._by_order.get(order_id)

    async def get_by_payment_id(self, payment_id: str) -> Payment | None:
        for payment in self._by_order.values():
            if payment.payment_id == payment_id:
                return payment
        return None

    async def list_for_user(self, user_id: UUID) -> list[Payment]:
        rows = [p for p in self._by_order.values() if p.user_id == user_id]
        return sorted(rows, key=lambda p: p.created_at, reverse=True)
