from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from main import app, get_db

USER = {"X-User-Id": "1"}
OTHER_USER = {"X-User-Id": "2"}


@pytest.fixture
def client():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _payload(**overrides) -> dict:
    payload = {
        "title": "Salary",
        "value": "100.00",
        "type": "income",
        "category": "Salary",
        "date": "2025-01-05",
    }
    payload.update(overrides)
    return payload


def test_requests_without_user_are_rejected(client) -> None:
    assert client.get("/transactions").status_code == 401


def test_create_and_get_transaction(client) -> None:
    resp = client.post("/transactions", json=_payload(), headers=USER)
    assert resp.status_code == 201
    body = resp.json()
    assert body["kind"] == "simple"
    assert Decimal(body["value"]) == Decimal("100.00")

    fetched = client.get(f"/transactions/{body['id']}", headers=USER)
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Salary"

    foreign = client.get(f"/transactions/{body['id']}", headers=OTHER_USER)
    assert foreign.status_code == 404


def test_create_installment_plan(client) -> None:
    resp = client.post(
        "/transactions",
        json=_payload(
            title="Sofa",
            value="100.00",
            type="expense",
            category="Home",
            is_installment=True,
            installment_total=3,
        ),
        headers=USER,
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["parent"]["is_hidden"] is True
    assert [item["installment_index"] for item in body["installments"]] == [1, 2, 3]
    assert sum(Decimal(item["value"]) for item in body["installments"]) == Decimal(
        "100.00"
    )

    listed = client.get("/transactions", headers=USER).json()
    assert body["parent"]["id"] not in [item["id"] for item in listed]
    assert len(listed) == 3


@pytest.mark.parametrize(
    "overrides",
    [
        {"is_fixed": True, "is_installment": True, "installment_total": 2},
        {"parent_id": 1},
        {"is_installment": True, "installment_total": 1},
        {"is_fixed": True, "origin_id": 999},
    ],
)
def test_invalid_classification_is_a_client_error(client, overrides) -> None:
    resp = client.post("/transactions", json=_payload(**overrides), headers=USER)
    assert resp.status_code == 400


def test_request_shape_errors_are_unprocessable(client) -> None:
    resp = client.post("/transactions", json=_payload(value="-5"), headers=USER)
    assert resp.status_code == 422
    resp = client.post("/transactions", json=_payload(date="05/01/2025"), headers=USER)
    assert resp.status_code == 422


def test_paginated_listing(client) -> None:
    for day in range(1, 4):
        client.post(
            "/transactions", json=_payload(date=f"2025-01-0{day}"), headers=USER
        )

    resp = client.get("/transactions?page=1&limit=100", headers=USER)
    assert resp.status_code == 200
    body = resp.json()
    assert body["limit"] == 50
    assert body["total"] == 3
    assert body["total_pages"] == 1
    assert [item["date"] for item in body["data"]] == [
        "2025-01-03",
        "2025-01-02",
        "2025-01-01",
    ]

    assert client.get("/transactions?page=0", headers=USER).status_code == 400
    assert client.get("/transactions?page=-2&limit=5", headers=USER).status_code == 400
    assert client.get("/transactions?limit=0", headers=USER).status_code == 400


def test_dashboard_projection_and_ranking(client) -> None:
    client.post("/transactions", json=_payload(), headers=USER)
    client.post(
        "/transactions",
        json=_payload(
            title="Rent",
            value="50.00",
            type="expense",
            category="Housing",
            date="2025-03-01",
            is_fixed=True,
        ),
        headers=USER,
    )

    dashboard = client.get("/transactions/dashboard/2025/1", headers=USER).json()
    assert Decimal(dashboard["total_income"]) == Decimal("100")
    assert Decimal(dashboard["total_expense"]) == Decimal("0")
    assert Decimal(dashboard["total_balance"]) == Decimal("100")

    projection = client.get(
        "/transactions/projection-monthly/2025/1", headers=USER
    ).json()
    assert Decimal(projection["income_projected"]) == Decimal("100")
    assert Decimal(projection["expense_projected"]) == Decimal("50")
    assert Decimal(projection["balance_projected"]) == Decimal("50")

    ranking = client.get("/transactions/category-most-expensive", headers=USER)
    assert ranking.status_code == 200
    assert ranking.json()["category"] == "Housing"

    empty = client.get("/transactions/category-most-expensive", headers=OTHER_USER)
    assert empty.status_code == 200
    assert empty.json() is None

    summary = client.get("/transactions/summary/2025/1", headers=USER).json()
    assert summary == dashboard

    bad = client.get("/transactions/dashboard/2025/13", headers=USER)
    assert bad.status_code == 400


def test_update_and_delete(client) -> None:
    created = client.post("/transactions", json=_payload(), headers=USER).json()

    resp = client.patch(
        f"/transactions/{created['id']}", json={"value": "120.00"}, headers=USER
    )
    assert resp.status_code == 200
    assert Decimal(resp.json()["value"]) == Decimal("120.00")

    resp = client.patch(
        f"/transactions/{created['id']}", json={"is_fixed": True}, headers=USER
    )
    assert resp.status_code == 422

    url = f"/transactions/{created['id']}"
    assert client.delete(url, headers=OTHER_USER).status_code == 404
    assert client.delete(url, headers=USER).status_code == 204
    assert client.delete(url, headers=USER).status_code == 404


def test_installment_plan_past_year_9999_is_a_client_error(client) -> None:
    plan = _payload(
        type="expense",
        date="9999-12-01",
        is_installment=True,
        installment_total=2,
    )
    resp = client.post("/transactions", json=plan, headers=USER)
    assert resp.status_code == 400
    assert client.get("/transactions", headers=USER).json() == []


def test_installment_total_above_cap_is_unprocessable(client) -> None:
    plan = _payload(type="expense", is_installment=True, installment_total=361)
    resp = client.post("/transactions", json=plan, headers=USER)
    assert resp.status_code == 422
