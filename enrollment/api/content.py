"""Course sequence, navigation, reordering, lesson completion and progress."""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from enrollment.api.dependencies import get_store, require_user
from enrollment.api.errors import to_http_exception
from enrollment.models.course import ContentItem, ContentKind
from enrollment.models.principal import Principal
from enrollment.repos.unit_of_work import Store
from enrollment.services import content_ordering, progress_service
from enrollment.services.content_ordering import ReorderEntry, ReorderMode
from enrollment.services.errors import EnrollmentError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/courses", tags=["content"])


class ContentItemOut(BaseModel):
    kind: ContentKind
    id: UUID
    position: int
    title: str


class NavigationOut(BaseModel):
    current: ContentItemOut
    previous: ContentItemOut | None
    next: ContentItemOut | None


class ReorderItemIn(BaseModel):
    kind: ContentKind
    id: UUID
    position: int


class ReorderIn(BaseModel):
    items: list[ReorderItemIn]
    mode: ReorderMode = ReorderMode.ATOMIC


class ReorderFailureOut(BaseModel):
    item: ReorderItemIn
    code: str


class ReorderOut(BaseModel):
    applied: list[ReorderItemIn]
    failed: list[ReorderFailureOut]


class CompletionOut(BaseModel):
    lesson_id: UUID
    completed_at: int


class ProgressOut(BaseModel):
    course_id: UUID
    progress: int


def _item(i: ContentItem | None) -> ContentItemOut | None:
    if i is None:
        return None
    return ContentItemOut(kind=i.kind, id=i.id, position=i.position, title=i.title)


def _entry(e: ReorderEntry) -> ReorderItemIn:
    return ReorderItemIn(kind=e.kind, id=e.id, position=e.position)


@router.get("/{course_id}/content", response_model=list[ContentItemOut])
async def get_content(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> list[ContentItemOut]:
    try:
        items = await content_ordering.ordered_content(store, principal, course_id)
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return [_item(i) for i in items]


@router.get(
    "/{course_id}/content/{kind}/{item_id}/navigation", response_model=NavigationOut
)
async def get_navigation(
    course_id: UUID,
    kind: ContentKind,
    item_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> NavigationOut:
    try:
        nav = await content_ordering.navigation(
            store, principal, course_id, kind, item_id
        )
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return NavigationOut(
        current=_item(nav.current), previous=_item(nav.previous), next=_item(nav.next)
    )


@router.put("/{course_id}/content/order", response_model=ReorderOut)
async def reorder_content(
    course_id: UUID,
    payload: ReorderIn,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> ReorderOut:
    entries = [ReorderEntry(kind=i.kind, id=i.id, position=i.position) for i in payload.items]
    try:
        result = await content_ordering.reorder(
            store, principal, course_id, entries, payload.mode
        )
    except EnrollmentError as e:
        logger.warning(
            "Reorder rejected user=%s course=%s code=%s",
            principal.user_id,
            course_id,
            e.code,
        )
        raise to_http_exception(e) from None
    return ReorderOut(
        applied=[_entry(e) for e in result.applied],
        failed=[ReorderFailureOut(item=_entry(f.entry), code=f.code) for f in result.failed],
    )


@router.put("/{course_id}/lessons/{lesson_id}/completion", response_model=CompletionOut)
async def complete_lesson(
    course_id: UUID,
    lesson_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> CompletionOut:
    try:
        completion = await progress_service.mark_lesson_complete(
            store, principal, course_id, lesson_id
        )
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return CompletionOut(lesson_id=completion.lesson_id, completed_at=completion.completed_at)


@router.delete(
    "/{course_id}/lessons/{lesson_id}/completion",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def uncomplete_lesson(
    course_id: UUID,
    lesson_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> Response:
    try:
        await progress_service.unmark_lesson_complete(
            store, principal, course_id, lesson_id
        )
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{course_id}/progress", response_model=ProgressOut)
async def get_progress(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> ProgressOut:
    try:
        value = await progress_service.compute_progress(store, principal, course_id)
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return ProgressOut(course_id=course_id, progress=value)
