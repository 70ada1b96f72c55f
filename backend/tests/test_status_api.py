from __future__ import annotations

from fastapi.testclient import TestClient

from lifecoach.main import app
from lifecoach.services.budget_governor import BudgetGovernor
from lifecoach.services.credential_pool import AUTH_ERROR_COOLDOWN_SECONDS, CredentialPool
from lifecoach.services.intervention_service import InterventionStore
from lifecoach.services.runtime import AssistantRuntime, get_runtime


class _Provider:
    model = "status-model"

    def complete(self, secret, messages, max_tokens):  # pragma: no cover - not used
        raise AssertionError("status must not call the provider")


def _client(runtime: AssistantRuntime) -> TestClient:
    app.dependency_overrides[get_runtime] = lambda: runtime
    return TestClient(app)


def test_status_reports_pool_budget_and_model() -> None:
    pool = CredentialPool(["secret-one", "secret-two"])
    pool.report_auth_error(pool.acquire())
    budget = BudgetGovernor(5000)
    budget.record(300, 200)
    runtime = AssistantRuntime(pool=pool, budget=budget, provider=_Provider(), interventions=InterventionStore())

    try:
        response = _client(runtime).get("/ai/status", headers={"X-Request-Id": "status-1"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    body = response.json()
    assert body["model"] == "status-model"
    assert body["request_id"] == "status-1"
    assert body["pool"]["totalKeys"] == 2
    assert body["pool"]["availableKeys"] == 1
    first = body["pool"]["keys"][0]
    assert first["index"] == 1
    assert first["available"] is False
    assert first["consecutiveErrors"] == 1
    assert 0 < first["cooldownRemaining"] <= AUTH_ERROR_COOLDOWN_SECONDS
    assert body["budget"]["used"] == 500
    assert body["budget"]["remaining"] == 4500
    assert body["budget"]["promptTokens"] == 300
    assert "secret-one" not in response.text


def test_status_with_empty_pool() -> None:
    runtime = AssistantRuntime(
        pool=CredentialPool([]),
        budget=BudgetGovernor(100),
        provider=_Provider(),
        interventions=InterventionStore(),
    )

    try:
        response = _client(runtime).get("/ai/status")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json()["pool"] == {"totalKeys": 0, "availableKeys": 0, "keys": []}
