"""Tests for multi-debt projections and portfolio totals."""

from __future__ import annotations

import math
from decimal import Decimal

from payoff_calc.data_models import DebtProjection, MinimumPaymentPolicy, TimelineResult
from payoff_calc.engine import simulate_fixed, simulate_minimum_payment
from payoff_calc.portfolio import aggregate, baseline_for, project_debt, project_portfolio


class TestAggregate:
    """Tests for folding per-debt results into totals."""

    def test_empty_portfolio(self):
        summary = aggregate([])
        assert summary.total_balance == 0
        assert summary.total_interest == 0
        assert summary.longest_months == 0
        assert summary.per_debt_savings == {}

    def test_totals_for_single_currency(self, converged_result):
        summary = aggregate(
            [
                DebtProjection("a", "USD", converged_result(10, "50.5", "1000")),
                DebtProjection("b", "USD", converged_result(24, "300", "2500")),
            ]
        )
        assert summary.total_balance == Decimal("3500")
        assert summary.total_interest == Decimal("350.5")
        assert summary.longest_months == 24
        assert summary.balance_by_currency == {"USD": Decimal("3500")}

    def test_currencies_are_grouped(self, converged_result):
        summary = aggregate(
            [
                DebtProjection("a", "USD", converged_result(10, "50", "1000")),
                DebtProjection("b", "EUR", converged_result(5, "20", "800")),
                DebtProjection("c", "USD", converged_result(3, "5", "200")),
            ]
        )
        assert summary.balance_by_currency == {"USD": Decimal("1200"), "EUR": Decimal("800")}
        assert summary.interest_by_currency == {"USD": Decimal("55"), "EUR": Decimal("20")}
        assert summary.currencies == ["EUR", "USD"]

    def test_non_convergent_plan_makes_totals_unbounded(self, converged_result):
        summary = aggregate(
            [
                DebtProjection("a", "USD", converged_result(10, "50")),
                DebtProjection("b", "USD", TimelineResult.non_convergent(5000)),
            ]
        )
        assert summary.longest_months == math.inf
        assert summary.total_interest == Decimal("Infinity")
        assert summary.total_balance == Decimal("6000")

    def test_non_convergent_first_is_not_dropped(self, converged_result):
        summary = aggregate(
            [
                DebtProjection("b", "USD", TimelineResult.non_convergent(5000)),
                DebtProjection("a", "USD", converged_result(10, "50")),
            ]
        )
        assert summary.longest_months == math.inf

    def test_savings_are_per_debt(self):
        policy = MinimumPaymentPolicy.flat(60)
        fast = DebtProjection(
            "fast", "USD",
            plan=simulate_fixed(3000, "0.2", 300),
            baseline=simulate_minimum_payment(3000, "0.2", policy),
        )
        slow = DebtProjection(
            "slow", "USD",
            plan=simulate_fixed(3000, "0.05", 100),
            baseline=simulate_fixed(3000, "0.05", 100),
        )
        summary = aggregate([fast, slow])
        assert summary.per_debt_savings["fast"].interest_saved > 0
        assert summary.per_debt_savings["slow"].interest_saved == 0
        assert summary.per_debt_savings["slow"].months_saved == 0

    def test_projection_without_baseline_has_no_savings(self, converged_result):
        summary = aggregate([DebtProjection("a", "USD", converged_result(3, "1"))])
        assert "a" not in summary.per_debt_savings


class TestProjectDebt:
    """Tests for single-debt projections."""

    def test_card_baseline_is_minimum_payment(self, card_factory):
        card = card_factory(minimum_payment_policy=MinimumPaymentPolicy.percentage(3, 25))
        expected = simulate_minimum_payment(card.balance, card.annual_rate, card.minimum_payment_policy)
        assert baseline_for(card) == expected

    def test_loan_baseline_is_declared_payment(self, loan_factory):
        loan = loan_factory()
        assert baseline_for(loan) == simulate_fixed(loan.balance, loan.annual_rate, 250)

    def test_default_payment_is_declared_payment(self, card_factory):
        card = card_factory()
        projection = project_debt(card)
        assert projection.monthly_payment == Decimal("120")
        assert projection.plan.months == 12

    def test_payment_below_interest_short_circuits(self, card_factory):
        projection = project_debt(card_factory(), payment=24)
        assert not projection.plan.converged
        assert projection.plan.starting_balance == Decimal("1200")

    def test_extra_payment_saves_against_loan_baseline(self, loan_factory):
        loan = loan_factory()
        projection = project_debt(loan, payment=400)
        summary = aggregate([projection])
        savings = summary.per_debt_savings[loan.key]
        assert savings.interest_saved > 0
        assert savings.months_saved > 0


class TestProjectPortfolio:
    """Tests for projecting several debts at once."""

    def test_payments_are_keyed_by_debt(self, card_factory, loan_factory):
        card = card_factory(debt_id="visa")
        loan = loan_factory(debt_id="car", currency="EUR")
        summary = project_portfolio([card, loan], {"visa": Decimal("300")})
        by_id = {p.debt_id: p for p in summary.projections}
        assert by_id["visa"].monthly_payment == Decimal("300")
        assert by_id["car"].monthly_payment == Decimal("250")
        assert summary.total_monthly_payment == Decimal("550")
        assert summary.longest_months == by_id["car"].plan.months
        assert set(summary.per_debt_savings) == {"visa", "car"}

    def test_zero_balance_debt_is_already_paid(self, card_factory):
        summary = project_portfolio([card_factory(balance=Decimal("0"))])
        assert summary.longest_months == 0
        assert summary.total_interest == 0
