"""Tests for the Flask front end."""

from __future__ import annotations

import importlib
import logging

import pytest

import payoff_calc_web.app as app_module
from payoff_calc_web.scenario_store import ScenarioStore


@pytest.fixture
def store(monkeypatch):
    store = ScenarioStore("sqlite://")
    monkeypatch.setattr(app_module, "scenario_store", store)
    return store


@pytest.fixture
def client(store):
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as client:
        yield client


def _form(**overrides):
    data = {"balance": "1200", "rate": "24", "currency": "USD", "payment_type": "fixed",
            "payment": "120", "action": "run"}
    data.update(overrides)
    return data


def _user_token(client):
    with client.session_transaction() as sess:
        return sess["user_token"]


class TestIndexPage:
    def test_get_renders_form(self, client):
        response = client.get("/")
        assert response.status_code == 200
        text = response.get_data(as_text=True)
        assert "Debt Payoff Simulator" in text
        assert "No saved scenarios yet." in text

    def test_fixed_plan_summary(self, client):
        text = client.post("/", data=_form()).get_data(as_text=True)
        assert "1 yr" in text
        assert "$152.44" in text
        assert "$47.08" in text

    def test_payment_too_low(self, client):
        text = client.post("/", data=_form(payment="20")).get_data(as_text=True)
        assert "Payment too low" in text
        assert "Never" in text

    def test_invalid_rate_shows_error(self, client):
        response = client.post("/", data=_form(rate="abc"))
        assert response.status_code == 200
        assert "Invalid numeric value" in response.get_data(as_text=True)

    def test_minimum_baseline_shows_savings(self, client):
        text = client.post(
            "/", data=_form(min_payment_type="flat", min_payment_value="35")
        ).get_data(as_text=True)
        assert "Interest saved" in text
        assert "Baseline payoff time" in text

    def test_variable_plan(self, client):
        form = _form(balance="1000", rate="0", payment_type="variable", default_payment="100",
                     month_1="500", month_2="0")
        text = client.post("/", data=form).get_data(as_text=True)
        assert "7 mo" in text

    def test_breakdown_is_truncated(self, client):
        text = client.post(
            "/", data=_form(balance="10000", rate="0", payment="100")
        ).get_data(as_text=True)
        assert "40 more rows truncated." in text

    def test_full_breakdown(self, client):
        text = client.post(
            "/", data=_form(balance="10000", rate="0", payment="100", show_full_breakdown="1")
        ).get_data(as_text=True)
        assert "more rows truncated" not in text


class TestSavedScenarios:
    def test_save_favorite_delete(self, client, store):
        client.post("/", data=_form(action="save", scenario_name="Aggressive"))
        token = _user_token(client)
        scenarios = store.list_scenarios(token)
        assert [s["name"] for s in scenarios] == ["Aggressive"]
        assert scenarios[0]["months_to_payoff"] == 12
        assert "Aggressive" in client.get("/").get_data(as_text=True)

        scenario_id = scenarios[0]["id"]
        response = client.post(f"/scenarios/{scenario_id}/favorite")
        assert response.status_code == 302
        assert store.list_scenarios(token)[0]["is_favorite"] is True

        client.post(f"/scenarios/{scenario_id}/delete")
        assert store.list_scenarios(token) == []

    def test_unbounded_plan_is_saved_without_totals(self, client, store):
        client.post("/", data=_form(action="save", payment="20"))
        saved = store.list_scenarios(_user_token(client))[0]
        assert saved["months_to_payoff"] is None
        assert saved["total_interest"] is None
        assert saved["name"] == "Scenario"

    def test_clear(self, client, store):
        client.post("/", data=_form(action="save"))
        client.post("/", data=_form(action="save", payment="200"))
        token = _user_token(client)
        assert len(store.list_scenarios(token)) == 2
        client.post("/scenarios/clear")
        assert store.list_scenarios(token) == []


class TestSimulateApi:
    def test_fixed(self, client):
        response = client.post("/api/simulate", json={"balance": 1200, "annual_rate": 24, "payment": 120})
        assert response.status_code == 200
        data = response.get_json()
        assert data["months"] == 12
        assert data["converged"] is True
        assert data["payoff_time"] == "1 yr"
        assert data["chart"][-1] == {"month": 12, "balance": 0.0}

    def test_payment_too_low(self, client):
        data = client.post(
            "/api/simulate", json={"balance": 1200, "annual_rate": 24, "payment": 20}
        ).get_json()
        assert data["months"] is None
        assert data["total_interest"] is None
        assert data["converged"] is False
        assert data["payoff_time"] == "Never"

    def test_variable(self, client):
        data = client.post(
            "/api/simulate",
            json={"balance": 1000, "annual_rate": 0, "payment_type": "variable",
                  "default_payment": 100, "overrides": {"1": 500, "2": 0}},
        ).get_json()
        assert data["months"] == 7
        assert data["breakdown"][1]["payment"] == 0.0

    def test_savings_against_minimum(self, client):
        data = client.post(
            "/api/simulate",
            json={"balance": 1200, "annual_rate": 24, "payment": 120,
                  "minimum_payment": {"type": "flat", "value": 35}},
        ).get_json()
        assert data["savings"]["interest_saved"] > 0
        assert data["savings"]["months_saved"] > 0

    def test_chart_is_sampled(self, client):
        data = client.post(
            "/api/simulate", json={"balance": 10000, "annual_rate": 0, "payment": 100}
        ).get_json()
        assert data["months"] == 100
        assert len(data["chart"]) == app_module.CHART_POINTS
        assert data["chart"][0]["month"] == 1
        assert data["chart"][-1]["month"] == 100

    @pytest.mark.parametrize("max_months", [0, 300000])
    def test_max_months_outside_configured_horizon_rejected(self, client, max_months):
        response = client.post(
            "/api/simulate",
            json={"balance": 5000, "annual_rate": 0.24, "payment": 200,
                  "minimum_payment": {"type": "flat", "value": 10}, "max_months": max_months},
        )
        assert response.status_code == 400
        assert "max_months" in response.get_json()["error"]

    def test_shorter_horizon_accepted(self, client):
        data = client.post(
            "/api/simulate",
            json={"balance": 1200, "annual_rate": 24, "payment": 120, "max_months": 11},
        ).get_json()
        assert data["converged"] is False

    def test_negative_balance_rejected(self, client):
        response = client.post("/api/simulate", json={"balance": -5, "annual_rate": 24, "payment": 120})
        assert response.status_code == 400
        assert "Balance" in response.get_json()["error"]


class TestPortfolioApi:
    DEBTS = [
        {"id": "visa", "name": "Visa", "balance": 1200, "annual_rate": 24,
         "declared_monthly_payment": 120, "minimum_payment": {"type": "flat", "value": 35}},
        {"id": "car", "name": "Car", "kind": "loan", "balance": 10000, "annual_rate": 6,
         "declared_monthly_payment": 250, "currency": "EUR"},
    ]

    def test_totals_by_currency(self, client):
        response = client.post("/api/portfolio", json={"debts": self.DEBTS, "payments": {"visa": 200}})
        assert response.status_code == 200
        data = response.get_json()
        assert data["balance_by_currency"] == {"USD": 1200.0, "EUR": 10000.0}
        assert data["longest_months"] > 7
        assert data["savings"]["visa"]["interest_saved"] > 0
        assert data["savings"]["car"]["interest_saved"] == 0.0

    def test_never_paid_off(self, client):
        data = client.post(
            "/api/portfolio", json={"debts": self.DEBTS, "payments": {"visa": 10}}
        ).get_json()
        assert data["longest_months"] is None
        assert data["payoff_time"] == "Never"
        assert data["total_interest"] is None
        assert data["savings"]["visa"]["interest_saved"] is None

    def test_bad_entry(self, client):
        response = client.post("/api/portfolio", json={"debts": [{"name": "x"}]})
        assert response.status_code == 400


def test_importing_app_leaves_logging_alone():
    package_logger = logging.getLogger("payoff_calc")
    sentinel = logging.NullHandler()
    package_logger.addHandler(sentinel)
    try:
        importlib.reload(app_module)
        assert sentinel in package_logger.handlers
    finally:
        package_logger.removeHandler(sentinel)
