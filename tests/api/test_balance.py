from __future__ import annotations

import asyncio
from uuid import uuid4

from fastapi.testclient import TestClient

from enrollment.db.store import store
from enrollment.models.principal import Role
from tests.conftest import auth, seed_account


def test_balance_of_unknown_account_is_404(client: TestClient) -> None:
    resp = client.get("/v1/balance", headers=auth(uuid4()))
    assert resp.status_code == 404


def test_teacher_credits_a_student(client: TestClient) -> None:
    teacher = asyncio.run(seed_account(store, role=Role.TEACHER))
    student = asyncio.run(seed_account(store, balance="1.50"))

    resp = client.post(
        "/v1/balance/credit",
        json={"amount": "20", "account_id": str(student.id)},
        headers=auth(teacher.id, Role.TEACHER),
    )
    assert resp.status_code == 200
    assert resp.json()["balance"] == "21.50"

    ledger = client.get("/v1/balance", headers=auth(student.id)).json()
    assert ledger["transactions"][0]["type"] == "DEPOSIT"
    assert ledger["transactions"][0]["amount"] == "20.00"


def test_credit_defaults_to_own_account(client: TestClient) -> None:
    admin = asyncio.run(seed_account(store, role=Role.ADMIN))
    resp = client.post(
        "/v1/balance/credit", json={"amount": "5"}, headers=auth(admin.id, Role.ADMIN)
    )
    assert resp.status_code == 200
    assert resp.json()["account_id"] == str(admin.id)


def test_student_cannot_credit(client: TestClient) -> None:
    student = asyncio.run(seed_account(store))
    resp = client.post(
        "/v1/balance/credit", json={"amount": "5"}, headers=auth(student.id)
    )
    assert resp.status_code == 403
    assert client.get("/v1/balance", headers=auth(student.id)).json()["balance"] == "0.00"


def test_credit_rejects_bad_amounts(client: TestClient) -> None:
    teacher = asyncio.run(seed_account(store, role=Role.TEACHER))
    headers = auth(teacher.id, Role.TEACHER)
    for amount in ("0", "-3", "1.005"):
        resp = client.post("/v1/balance/credit", json={"amount": amount}, headers=headers)
        assert resp.status_code == 422, amount


def test_credit_to_missing_account_is_404(client: TestClient) -> None:
    resp = client.post(
        "/v1/balance/credit",
        json={"amount": "5", "account_id": str(uuid4())},
        headers=auth(uuid4(), Role.ADMIN),
    )
    assert resp.status_code == 404
