from __future__ import annotations

import asyncio
from uuid import uuid4

from fastapi.testclient import TestClient

from enrollment.db.store import store
from enrollment.models.principal import Role
from tests.conftest import (
    auth,
    seed_account,
    seed_course,
    seed_lesson,
    seed_purchase,
    seed_quiz,
)


def _course_with_content(price: str = "0"):
    teacher = asyncio.run(seed_account(store, role=Role.TEACHER))
    course = asyncio.run(seed_course(store, price=price, owner_id=teacher.id))
    l1 = asyncio.run(seed_lesson(store, course.id, 1))
    q2, _ = asyncio.run(seed_quiz(store, course.id, 2))
    l3 = asyncio.run(seed_lesson(store, course.id, 3))
    q4, _ = asyncio.run(seed_quiz(store, course.id, 4))
    asyncio.run(seed_lesson(store, course.id, 5, is_published=False))
    return teacher, course, [l1, q2, l3, q4]


def test_content_is_merged_in_position_order(client: TestClient) -> None:
    _teacher, course, items = _course_with_content()
    resp = client.get(f"/v1/courses/{course.id}/content", headers=auth(uuid4()))
    assert resp.status_code == 200
    data = resp.json()
    assert [i["id"] for i in data] == [str(i.id) for i in items]
    assert [i["kind"] for i in data] == ["lesson", "quiz", "lesson", "quiz"]


def test_navigation_crosses_kinds(client: TestClient) -> None:
    _teacher, course, (l1, q2, _l3, _q4) = _course_with_content()
    resp = client.get(
        f"/v1/courses/{course.id}/content/lesson/{l1.id}/navigation",
        headers=auth(uuid4()),
    )
    assert resp.status_code == 200
    nav = resp.json()
    assert nav["previous"] is None
    assert nav["next"]["id"] == str(q2.id)
    assert nav["next"]["kind"] == "quiz"


def test_owner_reorders_atomically(client: TestClient) -> None:
    teacher, course, (l1, q2, _l3, _q4) = _course_with_content()
    resp = client.put(
        f"/v1/courses/{course.id}/content/order",
        json={
            "items": [
                {"kind": "lesson", "id": str(l1.id), "position": 10},
                {"kind": "quiz", "id": str(q2.id), "position": 0},
            ]
        },
        headers=auth(teacher.id, Role.TEACHER),
    )
    assert resp.status_code == 200
    assert len(resp.json()["applied"]) == 2

    order = client.get(f"/v1/courses/{course.id}/content", headers=auth(uuid4())).json()
    assert order[0]["id"] == str(q2.id)
    assert order[-1]["id"] == str(l1.id)


def test_atomic_reorder_with_unknown_item_changes_nothing(client: TestClient) -> None:
    teacher, course, items = _course_with_content()
    resp = client.put(
        f"/v1/courses/{course.id}/content/order",
        json={
            "items": [
                {"kind": "lesson", "id": str(items[0].id), "position": 10},
                {"kind": "quiz", "id": str(uuid4()), "position": 0},
            ]
        },
        headers=auth(teacher.id, Role.TEACHER),
    )
    assert resp.status_code == 404
    order = client.get(f"/v1/courses/{course.id}/content", headers=auth(uuid4())).json()
    assert [i["id"] for i in order] == [str(i.id) for i in items]


def test_best_effort_reorder_reports_failures(client: TestClient) -> None:
    teacher, course, (l1, _q2, _l3, _q4) = _course_with_content()
    missing = uuid4()
    resp = client.put(
        f"/v1/courses/{course.id}/content/order",
        json={
            "mode": "best_effort",
            "items": [
                {"kind": "lesson", "id": str(l1.id), "position": 9},
                {"kind": "quiz", "id": str(missing), "position": 0},
            ],
        },
        headers=auth(teacher.id, Role.TEACHER),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert [a["id"] for a in data["applied"]] == [str(l1.id)]
    assert data["failed"] == [
        {
            "item": {"kind": "quiz", "id": str(missing), "position": 0},
            "code": "NOT_FOUND",
        }
    ]


def test_other_teacher_cannot_reorder(client: TestClient) -> None:
    _teacher, course, items = _course_with_content()
    resp = client.put(
        f"/v1/courses/{course.id}/content/order",
        json={"items": [{"kind": "lesson", "id": str(items[0].id), "position": 3}]},
        headers=auth(uuid4(), Role.TEACHER),
    )
    assert resp.status_code == 403


def test_completion_moves_progress(client: TestClient) -> None:
    student = asyncio.run(seed_account(store))
    _teacher, course, (l1, _q2, l3, _q4) = _course_with_content(price="15")
    asyncio.run(seed_purchase(store, student.id, course.id))
    headers = auth(student.id)
    base = f"/v1/courses/{course.id}"

    assert client.get(f"{base}/progress", headers=headers).json()["progress"] == 0

    done = client.put(f"{base}/lessons/{l1.id}/completion", headers=headers)
    assert done.status_code == 200
    assert done.json()["lesson_id"] == str(l1.id)
    # Marking twice keeps a single completion.
    assert client.put(f"{base}/lessons/{l1.id}/completion", headers=headers).status_code == 200
    client.put(f"{base}/lessons/{l3.id}/completion", headers=headers)
    assert client.get(f"{base}/progress", headers=headers).json()["progress"] == 50

    undone = client.delete(f"{base}/lessons/{l3.id}/completion", headers=headers)
    assert undone.status_code == 204
    assert client.get(f"{base}/progress", headers=headers).json()["progress"] == 25

    again = client.delete(f"{base}/lessons/{l3.id}/completion", headers=headers)
    assert again.status_code == 404


def test_completion_without_access_is_403(client: TestClient) -> None:
    _teacher, course, (l1, *_rest) = _course_with_content(price="15")
    resp = client.put(
        f"/v1/courses/{course.id}/lessons/{l1.id}/completion",
        headers=auth(asyncio.run(seed_account(store)).id),
    )
    assert resp.status_code == 403


def test_teacher_authors_a_course(client: TestClient) -> None:
    teacher = asyncio.run(seed_account(store, role=Role.TEACHER))
    headers = auth(teacher.id, Role.TEACHER)

    course = client.post(
        "/v1/courses", json={"title": "Algebra", "price": "12.5"}, headers=headers
    )
    assert course.status_code == 201
    assert course.json()["price"] == "12.50"
    assert course.json()["owner_id"] == str(teacher.id)
    course_id = course.json()["id"]

    lesson = client.post(
        f"/v1/courses/{course_id}/lessons",
        json={"title": "Intro", "position": 1, "is_published": True},
        headers=headers,
    )
    assert lesson.status_code == 201

    quiz = client.post(
        f"/v1/courses/{course_id}/quizzes",
        json={
            "title": "Check",
            "position": 2,
            "questions": [
                {
                    "text": "Pick",
                    "type": "MULTIPLE_CHOICE",
                    "correct_answer": "b",
                    "points": 3,
                    "options": ["a", "b"],
                }
            ],
        },
        headers=headers,
    )
    assert quiz.status_code == 201
    assert quiz.json()["questions"][0]["options"] == ["a", "b"]

    bad = client.post(
        f"/v1/courses/{course_id}/quizzes",
        json={"title": "Empty", "position": 3, "questions": []},
        headers=headers,
    )
    assert bad.status_code == 422


def test_students_cannot_author(client: TestClient) -> None:
    resp = client.post("/v1/courses", json={"title": "Nope"}, headers=auth(uuid4()))
    assert resp.status_code == 403
