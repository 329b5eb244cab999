"""
Tests for the transaction, budget and goal endpoints
"""
import pytest
from conftest import register


def add_transaction(client, headers, **overrides):
    payload = {
        "title": "Groceries",
        "amount": 25.5,
        "type": "expense",
        "category": "food",
        "date": "2025-03-10",
    }
    payload.update(overrides)
    return client.post("/api/finance/transactions", json=payload, headers=headers)


def test_free_plan_is_capped_at_five_transactions(client, auth):
    for _ in range(5):
        assert add_transaction(client, auth["headers"]).status_code == 201

    response = add_transaction(client, auth["headers"])

    assert response.status_code == 403
    assert "Upgrade to premium" in response.json()["detail"]
    assert len(client.get("/api/finance/transactions", headers=auth["headers"]).json()) == 5


def test_premium_users_are_not_capped(client, auth):
    client.post("/api/subscription/trial", headers=auth["headers"])

    for _ in range(6):
        assert add_transaction(client, auth["headers"]).status_code == 201


def test_cap_returns_after_trial_expires(client, auth, clock):
    client.post("/api/subscription/trial", headers=auth["headers"])
    for _ in range(6):
        add_transaction(client, auth["headers"])

    clock.advance(days=8)

    assert add_transaction(client, auth["headers"]).status_code == 403


def test_recurring_transaction_gets_next_occurrence(client, auth):
    response = add_transaction(
        client,
        auth["headers"],
        title="Rent",
        amount=900,
        date="2025-01-31",
        recurrence_type="monthly",
    )

    assert response.status_code == 201
    body = response.json()
    assert body["is_recurring"] is True
    assert body["next_occurrence"] == "2025-03-28"


def test_transaction_validation(client, auth):
    assert add_transaction(client, auth["headers"], amount=0).status_code == 422
    assert add_transaction(client, auth["headers"], title="   ").status_code == 400
    assert (
        add_transaction(client, auth["headers"], recurrence_type="weekly", end_date="2025-01-01").status_code
        == 400
    )


def test_delete_transaction(client, auth):
    created = add_transaction(client, auth["headers"]).json()

    assert client.delete(f"/api/finance/transactions/{created['id']}", headers=auth["headers"]).status_code == 204
    assert client.delete(f"/api/finance/transactions/{created['id']}", headers=auth["headers"]).status_code == 404


def test_transactions_are_private(client, auth):
    created = add_transaction(client, auth["headers"]).json()
    other = register(client, email="other@mindplan.io")

    assert client.get("/api/finance/transactions", headers=other["headers"]).json() == []
    assert client.delete(f"/api/finance/transactions/{created['id']}", headers=other["headers"]).status_code == 404


def test_budget_summary(client, auth):
    created = client.post(
        "/api/finance/budgets",
        json={"category": "food", "amount": 100, "period": "monthly"},
        headers=auth["headers"],
    )
    assert created.status_code == 201
    assert created.json()["status"] == "good"

    add_transaction(client, auth["headers"], amount=60)
    add_transaction(client, auth["headers"], amount=500, date="2025-02-10")

    budgets = client.get("/api/finance/budgets", headers=auth["headers"]).json()
    assert budgets[0]["spent"] == 60
    assert budgets[0]["remaining"] == 40
    assert budgets[0]["percentage"] == 60.0
    assert budgets[0]["status"] == "moderate"


def test_update_and_delete_budget(client, auth):
    budget_id = client.post(
        "/api/finance/budgets", json={"category": "fun", "amount": 50}, headers=auth["headers"]
    ).json()["id"]

    updated = client.patch(f"/api/finance/budgets/{budget_id}", json={"amount": 80}, headers=auth["headers"])
    assert updated.status_code == 200
    assert updated.json()["amount"] == 80
    assert updated.json()["period"] == "monthly"

    assert client.delete(f"/api/finance/budgets/{budget_id}", headers=auth["headers"]).status_code == 204
    assert (
        client.patch(f"/api/finance/budgets/{budget_id}", json={"amount": 80}, headers=auth["headers"]).status_code
        == 404
    )


def test_goal_lifecycle(client, auth):
    created = client.post(
        "/api/finance/goals",
        json={"title": "Emergency fund", "target_amount": 1000, "target_date": "2025-12-31"},
        headers=auth["headers"],
    )
    assert created.status_code == 201
    goal = created.json()
    assert goal["progress"] == 0
    assert goal["display_status"] == "active"

    progressed = client.put(
        f"/api/finance/goals/{goal['id']}/progress",
        json={"current_amount": 1000},
        headers=auth["headers"],
    ).json()
    assert progressed["status"] == "completed"
    assert progressed["progress"] == 100

    renamed = client.patch(
        f"/api/finance/goals/{goal['id']}", json={"title": "Rainy day"}, headers=auth["headers"]
    ).json()
    assert renamed["title"] == "Rainy day"

    assert client.delete(f"/api/finance/goals/{goal['id']}", headers=auth["headers"]).status_code == 204
    assert client.get("/api/finance/goals", headers=auth["headers"]).json() == []


@pytest.mark.parametrize("path", ["/api/finance/goals/999", "/api/finance/goals/999/progress"])
def test_unknown_goal(client, auth, path):
    if path.endswith("progress"):
        response = client.put(path, json={"current_amount": 10}, headers=auth["headers"])
    else:
        response = client.patch(path, json={"title": "x"}, headers=auth["headers"])

    assert response.status_code == 404


def test_goal_created_at_target_is_completed(client, auth):
    goal = client.post(
        "/api/finance/goals",
        json={"title": "Done already", "target_amount": 100, "current_amount": 150},
        headers=auth["headers"],
    ).json()

    assert goal["status"] == "completed"
    assert goal["display_status"] == "completed"


def test_monthly_stats(client, auth):
    add_transaction(client, auth["headers"])
    add_transaction(client, auth["headers"], title="Bus pass", amount=14.5, category="transport", date="2025-03-02")
    add_transaction(client, auth["headers"], title="Salary", amount=2000, type="income", category="salary", date="2025-03-01")
    add_transaction(client, auth["headers"], amount=500, date="2025-02-10")
    for category, period in (("food", "monthly"), ("fun", "monthly"), ("travel", "weekly")):
        client.post(
            "/api/finance/budgets",
            json={"category": category, "amount": 100, "period": period},
            headers=auth["headers"],
        )

    response = client.get("/api/finance/stats", headers=auth["headers"])

    assert response.status_code == 200
    stats = response.json()
    assert stats["period_start"] == "2025-03-01"
    assert stats["period_end"] == "2025-03-31"
    assert stats["income"] == 2000
    assert stats["expenses"] == 40
    assert stats["balance"] == 1960
    assert stats["budget_total"] == 200
    assert stats["budget_used"] == 20.0
    assert stats["income_by_category"] == {"salary": 2000}
    assert stats["expenses_by_category"] == {"food": 25.5, "transport": 14.5}


def test_monthly_stats_without_activity(client, auth):
    stats = client.get("/api/finance/stats", headers=auth["headers"]).json()

    assert stats["income"] == 0
    assert stats["balance"] == 0
    assert stats["budget_used"] is None
    assert stats["expenses_by_category"] == {}
