from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

import pwned
from auth import issue_session_token
from category_suggest import CategorySuggester
from database import get_db
from main import app
from models import Expense, RecurrenceType, UserCategory
from store import ExpenseStore, StoreError


@pytest.fixture
def client(session_factory, settings_env):
    settings_env(scheduler_key="cron-key", session_secret="test-secret")

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _seed_template(session_factory):
    with session_factory() as session:
        session.add(
            Expense(
                user_id="u1",
                amount=Decimal("500"),
                title="Gym",
                date=date(2024, 1, 1),
                is_recurring=True,
                recurrence_type=RecurrenceType.monthly,
            )
        )
        session.commit()


def test_generate_rejects_missing_credentials(client, session_factory):
    _seed_template(session_factory)
    resp = client.post("/api/recurring/generate", params={"as_of": "2024-01-31"})
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "Authentication required"}

    resp = client.post(
        "/api/recurring/generate",
        params={"as_of": "2024-01-31"},
        headers={"Authorization": "Bearer wrong"},
    )
    assert resp.status_code == 401

    with session_factory() as session:
        assert session.scalars(
            select(Expense).where(Expense.is_recurring.is_(False))
        ).all() == []


def test_generate_with_scheduler_key(client, session_factory):
    _seed_template(session_factory)
    resp = client.post(
        "/api/recurring/generate",
        params={"as_of": "2024-01-31"},
        headers={"Authorization": "Bearer cron-key"},
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "generated": 1,
        "entries": ["Gym"],
        "failed": [],
        "date": "2024-01-31",
    }


def test_generate_with_user_session(client, session_factory):
    _seed_template(session_factory)
    token = issue_session_token("u1")
    headers = {"Authorization": f"Bearer {token}"}

    first = client.post(
        "/api/recurring/generate", params={"as_of": "2024-01-31"}, headers=headers
    )
    again = client.post(
        "/api/recurring/generate", params={"as_of": "2024-01-31"}, headers=headers
    )
    assert first.json()["generated"] == 1
    assert again.json()["generated"] == 0


def test_generate_reports_hard_failure(client, monkeypatch):
    def fail(self):
        raise StoreError("store unavailable")

    monkeypatch.setattr(ExpenseStore, "find_templates", fail)
    resp = client.post(
        "/api/recurring/generate", headers={"Authorization": "Bearer cron-key"}
    )
    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert "store unavailable" in body["error"]


def test_password_leak_endpoint(client, monkeypatch):
    monkeypatch.setattr(pwned, "_fetch_range", lambda prefix, **kw: "")
    resp = client.post("/api/password-leak", json={"password": "hunter2"})
    assert resp.status_code == 200
    assert resp.json() == {"is_leaked": False}

    resp = client.post("/api/password-leak", json={"password": ""})
    assert resp.status_code == 400


def test_password_leak_upstream_failure(client, monkeypatch):
    def fail(prefix, **kw):
        raise pwned.PwnedLookupError("down")

    monkeypatch.setattr(pwned, "_fetch_range", fail)
    resp = client.post("/api/password-leak", json={"password": "hunter2"})
    assert resp.status_code == 502


def test_suggest_category_requires_user_session(client):
    resp = client.post(
        "/api/suggest-category",
        json={"title": "Aldi"},
        headers={"Authorization": "Bearer cron-key"},
    )
    assert resp.status_code == 401


def test_suggest_category_for_user(client, session_factory, settings_env, monkeypatch):
    settings_env(llm_api_key="k")
    with session_factory() as session:
        session.add(UserCategory(user_id="u1", name="Groceries"))
        session.commit()
    monkeypatch.setattr(CategorySuggester, "_complete", lambda self, p: "Groceries")

    resp = client.post(
        "/api/suggest-category",
        json={"title": "Aldi"},
        headers={"Authorization": f"Bearer {issue_session_token('u1')}"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"suggested_category": "Groceries"}
