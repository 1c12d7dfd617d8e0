"""
Tests for FormPilot Condition Evaluator

Tests cover:
- The loan amount guard (and / !== / >) on present, small and absent values
- Strict equality and numeric coercion
- Ordering against missing and blank values
- Membership
- Failure policies and depth limits
"""
from decimal import Decimal

import pytest

from formpilot.engine.condition_evaluator import (
    ConditionEvaluator,
    compare_values,
    evaluate_condition,
    is_member,
    strict_equals,
    truthy,
)
from formpilot.exceptions import EvaluationFault
from formpilot.models import (
    AND,
    EQ,
    GT,
    IN,
    LTE,
    NE,
    OR,
    ConditionOperator,
    FailurePolicy,
    Literal,
)
from formpilot.packs.logic import parse_condition
from formpilot.paths import ABSENT


LOAN_GUARD = {
    "and": [
        {"!==": [{"var": "loanAmount"}, ""]},
        {">": [{"var": "loanAmount"}, 100000]},
    ]
}


@pytest.fixture
def evaluator():
    return ConditionEvaluator()


# =============================================================================
# Loan Guard Tests
# =============================================================================

class TestLoanGuard:
    """The and / !== / > guard parsed from its JSON form."""

    @pytest.fixture
    def guard(self):
        return parse_condition(LOAN_GUARD)

    def test_large_amount(self, evaluator, guard):
        assert evaluator.evaluate(guard, {"loanAmount": 150000}) is True

    def test_small_amount(self, evaluator, guard):
        assert evaluator.evaluate(guard, {"loanAmount": 50000}) is False

    def test_absent_amount(self, evaluator, guard):
        assert evaluator.evaluate(guard, {}) is False

    def test_blank_amount(self, evaluator, guard):
        assert evaluator.evaluate(guard, {"loanAmount": ""}) is False

    def test_numeric_string_amount(self, evaluator, guard):
        assert evaluator.evaluate(guard, {"loanAmount": "150000"}) is True

    def test_decimal_amount(self, evaluator, guard):
        assert evaluator.evaluate(guard, {"loanAmount": Decimal("100000.01")}) is True

    def test_no_faults_recorded(self, evaluator, guard):
        evaluator.evaluate(guard, {})
        assert evaluator.fault_count == 0


# =============================================================================
# Equality Tests
# =============================================================================

class TestStrictEquals:
    """Tests for === semantics."""

    @pytest.mark.parametrize("left,right,expected", [
        ("joint", "joint", True),
        ("joint", "Joint", False),
        (2, 2.0, True),
        ("2", 2, True),
        (2, " 2 ", True),
        ("abc", 2, False),
        (True, 1, False),
        (False, 0, False),
        (True, True, True),
        (None, None, True),
        ("", None, False),
        (0, None, False),
        ([1, "a"], (1, "a"), True),
        ([1], [1, 2], False),
        ({"a": 1}, {"a": 1}, True),
    ])
    def test_strict_equals(self, left, right, expected):
        assert strict_equals(left, right) is expected

    def test_not_equal_is_negation(self):
        assert compare_values(ConditionOperator.NE, "a", "b") is True
        assert compare_values(ConditionOperator.NE, "2", 2) is False


# =============================================================================
# Ordering Tests
# =============================================================================

class TestOrdering:
    """Tests for >, <, >=, <=."""

    @pytest.mark.parametrize("op,left,right,expected", [
        (ConditionOperator.GT, 5, 3, True),
        (ConditionOperator.GT, 3, 5, False),
        (ConditionOperator.GTE, 5, 5, True),
        (ConditionOperator.LT, "1,000", 2000, True),
        (ConditionOperator.LTE, 2.5, Decimal("2.5"), True),
        (ConditionOperator.GT, "b", "a", True),
    ])
    def test_ordering(self, op, left, right, expected):
        assert compare_values(op, left, right) is expected

    @pytest.mark.parametrize("left,right", [
        (None, 5),
        (5, None),
        ("", 5),
        ("   ", 5),
    ])
    def test_missing_or_blank_is_false(self, left, right):
        assert compare_values(ConditionOperator.GT, left, right) is False
        assert compare_values(ConditionOperator.LTE, left, right) is False

    def test_incompatible_types_fault(self):
        with pytest.raises(EvaluationFault) as exc_info:
            compare_values(ConditionOperator.GT, "abc", 5)
        assert exc_info.value.code == "FP_EVALUATION_FAULT"
        assert exc_info.value.details["operator"] == ">"


# =============================================================================
# Membership Tests
# =============================================================================

class TestMembership:
    """Tests for `in`."""

    def test_list_membership(self, evaluator):
        condition = IN("propertyType", ["condo", "townhouse"])
        assert evaluator.evaluate(condition, {"propertyType": "condo"}) is True
        assert evaluator.evaluate(condition, {"propertyType": "farm"}) is False

    def test_membership_is_strict(self):
        assert is_member(1, [True, "1x"]) is False
        assert is_member("2", [1, 2]) is True

    def test_substring_membership(self):
        assert is_member("TX", "TX,CA") is True
        assert is_member(5, "12345") is False

    def test_none_options(self):
        assert is_member("a", None) is False

    def test_bad_options_fault(self):
        with pytest.raises(EvaluationFault):
            is_member("a", 5)


# =============================================================================
# Evaluator Behavior Tests
# =============================================================================

class TestEvaluator:
    """Tests for tree evaluation."""

    def test_no_condition_holds(self, evaluator):
        assert evaluator.evaluate(None, {}) is True

    def test_absent_marker_reads_as_none(self, evaluator):
        assert evaluator.evaluate(EQ("city", None), {"city": ABSENT}) is True

    def test_or(self, evaluator):
        condition = OR(EQ("state", "CA"), EQ("state", "TX"))
        assert evaluator.evaluate(condition, {"state": "TX"}) is True
        assert evaluator.evaluate(condition, {"state": "NY"}) is False

    def test_and_short_circuits(self, evaluator):
        condition = AND(EQ("hasLoan", "yes"), GT("loanAmount", 5))
        assert evaluator.evaluate(condition, {"hasLoan": "no", "loanAmount": "abc"}) is False
        assert evaluator.fault_count == 0

    def test_or_short_circuits(self, evaluator):
        condition = OR(EQ("hasLoan", "no"), GT("loanAmount", 5))
        assert evaluator.evaluate(condition, {"hasLoan": "no", "loanAmount": "abc"}) is True
        assert evaluator.fault_count == 0

    @pytest.mark.parametrize("value,expected", [
        (Literal(0), False),
        (Literal("x"), True),
        (Literal(()), False),
        (Literal(None), False),
    ])
    def test_literal_truthiness(self, evaluator, value, expected):
        assert evaluator.evaluate(value, {}) is expected

    def test_evaluate_all(self, evaluator):
        values = {"state": "TX", "loanAmount": 10}
        assert evaluator.evaluate_all([], values) is True
        assert evaluator.evaluate_all([EQ("state", "TX"), LTE("loanAmount", 10)], values) is True
        assert evaluator.evaluate_all([EQ("state", "TX"), NE("loanAmount", 10)], values) is False

    def test_repeatable(self, evaluator):
        condition = GT("loanAmount", 100)
        values = {"loanAmount": 150}
        assert evaluator.evaluate(condition, values) == evaluator.evaluate(condition, values)

    def test_truthy(self):
        assert truthy([]) is False
        assert truthy([0]) is True
        assert truthy(ABSENT) is False


class TestFailurePolicy:
    """Faults are absorbed according to the failure policy."""

    condition = GT("loanAmount", 5)
    values = {"loanAmount": "abc"}

    def test_open_keeps_visible(self):
        evaluator = ConditionEvaluator(failure_policy=FailurePolicy.OPEN)
        assert evaluator.evaluate(self.condition, self.values) is True
        assert evaluator.fault_count == 1

    def test_closed_hides(self):
        evaluator = ConditionEvaluator(failure_policy=FailurePolicy.CLOSED)
        assert evaluator.evaluate(self.condition, self.values) is False

    def test_raise_propagates(self):
        evaluator = ConditionEvaluator(failure_policy=FailurePolicy.RAISE)
        with pytest.raises(EvaluationFault):
            evaluator.evaluate(self.condition, self.values)

    def test_fault_is_logged(self, caplog):
        with caplog.at_level("WARNING", logger="formpilot.engine.condition_evaluator"):
            ConditionEvaluator().evaluate(self.condition, self.values)
        assert "policy=open" in caplog.text

    def test_module_function(self):
        assert evaluate_condition(self.condition, self.values) is True
        assert evaluate_condition(self.condition, self.values, FailurePolicy.CLOSED) is False

    def test_depth_limit(self):
        condition = AND(AND(AND(EQ("a", 1))))
        shallow = ConditionEvaluator(failure_policy=FailurePolicy.CLOSED, max_depth=3)
        assert shallow.evaluate(condition, {"a": 1}) is False
        assert shallow.fault_count == 1

        deep = ConditionEvaluator(failure_policy=FailurePolicy.CLOSED, max_depth=5)
        assert deep.evaluate(condition, {"a": 1}) is True
