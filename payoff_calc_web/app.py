import os
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import uuid4

from flask import Flask, jsonify, redirect, render_template, request, session, url_for

from payoff_calc.data_models import FixedPlan, MinimumPaymentPolicy, TimelineResult, VariablePlan
from payoff_calc.engine import (
    DEFAULT_MAX_MONTHS,
    compare_to_baseline,
    monthly_interest,
    payment_for_3_year_payoff,
    simulate_fixed,
    simulate_minimum_payment,
    simulate_variable,
)
from payoff_calc.formatter import (
    KNOWN_CURRENCIES,
    format_currency,
    format_months_to_years,
    utilization_background_tier,
    utilization_color_tier,
)
from payoff_calc.logging_config import get_logger, setup_logging
from payoff_calc.main import debt_from_dict, policy_from_dict, result_to_dict
from payoff_calc.portfolio import project_portfolio
from payoff_calc.utils import decimal_from_str, parse_month_amounts, rate_from_str
from payoff_calc_web.scenario_store import create_store_from_env

logger = get_logger("web")

app = Flask(__name__)
app.config["ASSET_VERSION"] = os.environ.get("ASSET_VERSION", "1")
app.config["MAX_MONTHS"] = int(os.environ.get("PAYOFF_MAX_MONTHS", DEFAULT_MAX_MONTHS))
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
app.jinja_env.filters["currency"] = format_currency
app.jinja_env.filters["duration"] = format_months_to_years
app.jinja_env.filters["utilization_color"] = utilization_color_tier
app.jinja_env.filters["utilization_bg"] = utilization_background_tier
scenario_store = create_store_from_env(os.environ.get("SCENARIO_DATABASE_URL"))

CHART_POINTS = 24
BREAKDOWN_PREVIEW_ROWS = 60
OVERRIDE_MONTHS = 12


def _ensure_user_token() -> str:
    token = session.get("user_token")
    if not token:
        token = uuid4().hex
        session["user_token"] = token
        session.modified = True
    return token


def _normalized_currency(value: Optional[str]) -> str:
    return (value or "USD").strip().upper() or "USD"


def parse_form_list(value: str) -> List[str]:
    """Parse a comma or newline separated list of entries from a form field."""
    if not value:
        return []
    parts = [p.strip() for p in value.replace("\n", ",").split(",")]
    return [p for p in parts if p]


def _optional_amount(value: Optional[str]) -> Optional[Decimal]:
    """Empty fields are absent, so ``"0"`` and ``""`` stay different."""
    if value is None or not str(value).strip():
        return None
    return decimal_from_str(str(value))


def _form_policy(form) -> Optional[MinimumPaymentPolicy]:
    kind = form.get("min_payment_type", "flat")
    value = _optional_amount(form.get("min_payment_value"))
    if value is None:
        return None
    if kind == "percentage":
        floor = _optional_amount(form.get("min_payment_floor"))
        return MinimumPaymentPolicy.percentage(value, floor if floor is not None else 25)
    return MinimumPaymentPolicy.flat(value)


def _form_plan(form):
    if form.get("payment_type", "fixed") == "variable":
        overrides = {}
        for month in range(1, OVERRIDE_MONTHS + 1):
            amount = _optional_amount(form.get(f"month_{month}"))
            if amount is not None:
                overrides[month] = amount
        default = _optional_amount(form.get("default_payment")) or Decimal("0")
        return VariablePlan(overrides=overrides, default_amount=default)
    return FixedPlan(amount=_optional_amount(form.get("payment")) or Decimal("0"))


def _form_to_inputs(form) -> Dict[str, Any]:
    return {
        "balance": decimal_from_str(form.get("balance", "").strip() or "0"),
        "annual_rate": rate_from_str(form.get("rate", "").strip() or "0"),
        "plan": _form_plan(form),
        "policy": _form_policy(form),
        "regular_payment": _optional_amount(form.get("regular_payment")),
        "purchases": parse_month_amounts(parse_form_list(form.get("purchases", ""))),
    }


def _json_to_inputs(data: Mapping[str, Any]) -> Dict[str, Any]:
    if data.get("payment_type", "fixed") == "variable":
        overrides = {
            int(month): decimal_from_str(str(amount))
            for month, amount in (data.get("overrides") or {}).items()
        }
        plan = VariablePlan(
            overrides=overrides,
            default_amount=decimal_from_str(str(data.get("default_payment", 0))),
        )
    else:
        plan = FixedPlan(amount=decimal_from_str(str(data.get("payment", 0))))
    regular = data.get("regular_payment")
    return {
        "balance": decimal_from_str(str(data.get("balance", 0))),
        "annual_rate": rate_from_str(str(data.get("annual_rate", 0))),
        "plan": plan,
        "policy": policy_from_dict(data.get("minimum_payment")),
        "regular_payment": decimal_from_str(str(regular)) if regular is not None else None,
        "purchases": {
            int(month): decimal_from_str(str(amount))
            for month, amount in (data.get("purchases") or {}).items()
        },
    }


def sample_for_chart(result: TimelineResult, points: int = CHART_POINTS) -> List[Dict[str, Any]]:
    """Pick at most ``points`` evenly spaced rows, always keeping the last one."""
    rows = result.breakdown
    if len(rows) <= points:
        picked = rows
    else:
        last = len(rows) - 1
        indices = sorted({round(i * last / (points - 1)) for i in range(points)})
        picked = [rows[i] for i in indices]
    return [{"month": row.month, "balance": float(row.balance)} for row in picked]


def run_simulation(inputs: Mapping[str, Any], max_months: int) -> Tuple[TimelineResult, Optional[TimelineResult]]:
    """Run the chosen plan and its comparison baseline.

    The baseline is the minimum-payment run when a policy is given, otherwise
    the regular (declared) payment when one is given.
    """
    balance = inputs["balance"]
    rate = inputs["annual_rate"]
    plan = inputs["plan"]
    if isinstance(plan, FixedPlan):
        result = simulate_fixed(balance, rate, plan.amount, max_months=max_months,
                                purchases=inputs["purchases"])
    else:
        result = simulate_variable(balance, rate, plan, max_months=max_months,
                                   purchases=inputs["purchases"])

    baseline = None
    if inputs["policy"] is not None:
        baseline = simulate_minimum_payment(balance, rate, inputs["policy"], max_months=max_months)
    elif inputs["regular_payment"] is not None:
        baseline = simulate_fixed(balance, rate, inputs["regular_payment"], max_months=max_months)
    return result, baseline


def _plan_record(plan) -> Dict[str, Any]:
    if isinstance(plan, FixedPlan):
        return {"fixed_payment": str(plan.amount)}
    return {
        "default_payment": str(plan.default_amount),
        "variable_payments": [
            {"month": month, "amount": str(amount)} for month, amount in sorted(plan.overrides.items())
        ],
    }


def _handle_save_action(user_token: str, form, inputs: Mapping[str, Any], result: TimelineResult,
                        currency: str) -> None:
    scenario_name = form.get("scenario_name", "").strip() or "Scenario"
    plan = inputs["plan"]
    scenario_store.add_scenario(
        user_token,
        uuid4().hex,
        scenario_name,
        payment_type=plan.payment_type,
        plan=_plan_record(plan),
        starting_balance=str(inputs["balance"]),
        total_interest=str(result.total_interest) if result.converged else None,
        months_to_payoff=int(result.months) if result.converged else None,
        currency=currency,
    )


@app.route("/", methods=["GET", "POST"])
def index():
    result = None
    baseline = None
    savings = None
    breakdown = []
    chart_points = []
    quick_picks = None
    error = None
    show_full_breakdown = False
    currency_code = "USD"

    user_token = _ensure_user_token()

    if request.method == "POST":
        action = request.form.get("action", "run")
        currency_code = _normalized_currency(request.form.get("currency"))
        show_full_breakdown = request.form.get("show_full_breakdown") == "1"
        try:
            inputs = _form_to_inputs(request.form)
            result, baseline = run_simulation(inputs, app.config["MAX_MONTHS"])
            if baseline is not None:
                savings = compare_to_baseline(baseline, result)
            breakdown = result.breakdown if show_full_breakdown else result.breakdown[:BREAKDOWN_PREVIEW_ROWS]
            chart_points = sample_for_chart(result)
            quick_picks = {
                "monthly_interest": monthly_interest(inputs["balance"], inputs["annual_rate"]),
                "three_year": payment_for_3_year_payoff(inputs["balance"], inputs["annual_rate"]),
            }
            if action == "save":
                _handle_save_action(user_token, request.form, inputs, result, currency_code)
        except ValueError as exc:
            logger.info("Rejected simulation input: %s", exc)
            error = str(exc)

    return render_template(
        "index.html",
        result=result,
        baseline=baseline,
        savings=savings,
        breakdown=breakdown,
        chart_points=chart_points,
        quick_picks=quick_picks,
        show_full_breakdown=show_full_breakdown,
        truncated=(len(result.breakdown) - len(breakdown)) if result else 0,
        error=error,
        form=request.form,
        currency_code=currency_code,
        currency_options=sorted(KNOWN_CURRENCIES),
        override_months=range(1, OVERRIDE_MONTHS + 1),
        asset_version=app.config["ASSET_VERSION"],
        scenarios=scenario_store.list_scenarios(user_token),
    )


@app.post("/api/simulate")
def api_simulate():
    data = request.get_json(silent=True) or {}
    try:
        max_months = int(data.get("max_months", app.config["MAX_MONTHS"]))
        if not 1 <= max_months <= app.config["MAX_MONTHS"]:
            raise ValueError(
                f"max_months must be between 1 and {app.config['MAX_MONTHS']}; got {max_months}"
            )
        inputs = _json_to_inputs(data)
        result, baseline = run_simulation(inputs, max_months)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    savings = compare_to_baseline(baseline, result) if baseline is not None else None
    payload = result_to_dict(result, savings)
    payload["chart"] = sample_for_chart(result)
    payload["payoff_time"] = format_months_to_years(result.months)
    return jsonify(payload)


@app.post("/api/portfolio")
def api_portfolio():
    data = request.get_json(silent=True) or {}
    try:
        debts = [debt_from_dict(entry) for entry in data.get("debts", [])]
        payments = {
            str(key): decimal_from_str(str(value)) for key, value in (data.get("payments") or {}).items()
        }
        summary = project_portfolio(debts, payments, max_months=app.config["MAX_MONTHS"])
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    def _number(value):
        return float(value) if isinstance(value, Decimal) and value.is_finite() else None

    return jsonify(
        {
            "longest_months": None if summary.longest_months == float("inf") else summary.longest_months,
            "payoff_time": format_months_to_years(summary.longest_months),
            "total_interest": _number(summary.total_interest),
            "balance_by_currency": {k: float(v) for k, v in summary.balance_by_currency.items()},
            "interest_by_currency": {k: _number(v) for k, v in summary.interest_by_currency.items()},
            "savings": {
                debt_id: {
                    "interest_saved": _number(s.interest_saved),
                    "months_saved": None if s.months_saved in (None, float("inf")) else s.months_saved,
                }
                for debt_id, s in summary.per_debt_savings.items()
            },
        }
    )


@app.post("/scenarios/<scenario_id>/favorite")
def toggle_favorite(scenario_id: str):
    scenario_store.toggle_favorite(session.get("user_token"), scenario_id)
    return redirect(url_for("index"))


@app.post("/scenarios/<scenario_id>/delete")
def remove_scenario(scenario_id: str):
    scenario_store.remove_scenario(session.get("user_token"), scenario_id)
    return redirect(url_for("index"))


@app.post("/scenarios/clear")
def clear_scenarios():
    scenario_store.clear_scenarios(session.get("user_token"))
    return redirect(url_for("index"))


if __name__ == "__main__":
    setup_logging(os.environ.get("PAYOFF_LOG_LEVEL", "WARNING"))
    print("Starting payoff calculator web app...")
    app.run(host="0.0.0.0", port=8710, debug=True)
