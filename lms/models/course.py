from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    slug: str
    title: str
    price: Decimal = Decimal("0")
    discounted_price: Decimal | None = None
    enrollment_limit: int | None = None
    total_enrollments: int = 0  # cached counter, maintained by the ledger
    status: str = "draft"  # draft|published|archived
    created_by: UUID | None = None

    @property
    def effective_price(self) -> Decimal:
        """What a student pays: the discounted price when one is set."""
        if self.discounted_price is not None and self.discounted_price > 0:
            return self.discounted_price
        return self.price

    @property
    def has_enrollment_limit(self) -> bool:
        return self.enrollment_limit is not None and self.enrollment_limit > 0

    @staticmethod
    def new(
        *,
        slug: str,
        title: str,
        price: Decimal = Decimal("0"),
        discounted_price: Decimal | None = None,
        enrollment_limit: int | None = None,
        status: str = "draft",
        created_by: UUID | None = None,
    ) -> Course:
        return Course(
            id=uuid4(),
            slug=slug,
            title=title,
            price=price,
            discounted_price=discounted_price,
            enrollment_limit=enrollment_limit,
            status=status,
            created_by=created_by,
        )


@dataclass(frozen=True, slots=True)
class Section:
    id: UUID
    course_id: UUID
    title: str
    position: int = 0

    @staticmethod
    def new(*, course_id: UUID, title: str, position: int = 0) -> Section:
        return Section(id=uuid4(), course_id=course_id, title=title, position=position)


@dataclass(frozen=True, slots=True)
class Lesson:
    """A lesson belongs to a course through its section."""

    id: UUID
    section_id: UUID
    course_id: UUID
    title: str
    position: int = 0

    @staticmethod
    def new(
        *, section_id: UUID, course_id: UUID, title: str, position: int = 0
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            section_id=section_id,
            course_id=course_id,
            title=title,
            position=position,
        )
