from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str
    price: Decimal = Decimal("0")
    is_published: bool = False
    owner_id: UUID | None = None

    @property
    def is_free(self) -> bool:
        return self.price <= 0

    @staticmethod
    def new(
        *,
        title: str,
        price: Decimal = Decimal("0"),
        is_published: bool = False,
        owner_id: UUID | None = None,
    ) -> Course:
        return Course(
            id=uuid4(),
            title=title,
            price=price,
            is_published=is_published,
            owner_id=owner_id,
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    course_id: UUID
    title: str
    position: int
    is_published: bool = False

    @staticmethod
    def new(
        *, course_id: UUID, title: str, position: int, is_published: bool = False
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            course_id=course_id,
            title=title,
            position=position,
            is_published=is_published,
        )


@dataclass(frozen=True, slots=True)
class LessonCompletion:
    user_id: UUID
    lesson_id: UUID
    completed_at: int


class ContentKind(str, Enum):
    LESSON = "lesson"
    QUIZ = "quiz"


@dataclass(frozen=True, slots=True)
class ContentItem:
    """A lesson or a quiz as it appears in the merged course sequence."""

    kind: ContentKind
    id: UUID
    position: int
    title: str = ""
