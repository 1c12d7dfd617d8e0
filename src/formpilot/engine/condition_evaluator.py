"""
FormPilot Condition Evaluator

Evaluates condition trees against the current flat form values.

Key features:
- Short-circuiting and/or
- Missing variables evaluate to None; ordering against None (or a
  blank string) is False, equality with None is explicit
- === / !== are strict: booleans never equal numbers, but numeric
  strings are coerced when compared with numbers ("2" === 2)
- in: sequence membership or substring membership
- Internal faults (incompatible types, excessive depth) follow the
  configured FailurePolicy; the default keeps the step/field visible
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from ..exceptions import EvaluationFault
from ..models import (
    And,
    Compare,
    ConditionNode,
    ConditionOperator,
    FailurePolicy,
    In,
    Literal,
    Or,
    Var,
)
from ..paths import ABSENT

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32


# =============================================================================
# Value Semantics
# =============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_number(text: str) -> Optional[Decimal]:
    try:
        number = Decimal(text.strip().replace(",", ""))
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _coerce_pair(left: Any, right: Any) -> tuple[Any, Any]:
    """Coerce a numeric string to a number when the other side is a number."""
    if _is_number(left) and isinstance(right, str):
        number = _as_number(right)
        if number is not None:
            right = number
    elif _is_number(right) and isinstance(left, str):
        number = _as_number(left)
        if number is not None:
            left = number
    return left, right


def strict_equals(left: Any, right: Any) -> bool:
    """
    Strict equality.

    Booleans only equal booleans. Numbers compare numerically, including
    numeric strings compared against numbers. Sequences compare element-wise.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    left, right = _coerce_pair(left, right)
    if _is_number(left) and _is_number(right):
        return Decimal(str(left)) == Decimal(str(right))
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(
            strict_equals(a, b) for a, b in zip(left, right)
        )
    if type(left) is not type(right) and not (
        isinstance(left, str) and isinstance(right, str)
    ):
        return False
    return left == right


def compare_values(op: ConditionOperator, left: Any, right: Any) -> bool:
    """
    Apply a comparison operator.

    Raises:
        EvaluationFault: Ordering between incompatible types
    """
    if op == ConditionOperator.EQ:
        return strict_equals(left, right)
    if op == ConditionOperator.NE:
        return not strict_equals(left, right)

    if _is_blank(left) or _is_blank(right):
        return False
    left, right = _coerce_pair(left, right)
    if _is_number(left) and _is_number(right):
        left, right = Decimal(str(left)), Decimal(str(right))

    try:
        if op == ConditionOperator.GT:
            return left > right
        if op == ConditionOperator.GTE:
            return left >= right
        if op == ConditionOperator.LT:
            return left < right
        if op == ConditionOperator.LTE:
            return left <= right
    except TypeError as exc:
        raise EvaluationFault(
            message=f"Cannot compare {type(left).__name__} {op.value} {type(right).__name__}",
            details={"operator": op.value, "left": repr(left), "right": repr(right)},
        ) from exc

    raise EvaluationFault(
        message=f"Unknown comparison operator: {op.value}",
        details={"operator": op.value},
    )


def is_member(value: Any, options: Any) -> bool:
    """
    Membership test used by `in`.

    Raises:
        EvaluationFault: If options is neither a sequence nor a string
    """
    if options is None:
        return False
    if isinstance(options, str):
        return isinstance(value, str) and value in options
    if isinstance(options, (list, tuple, set, frozenset)):
        return any(strict_equals(value, option) for option in options)
    raise EvaluationFault(
        message=f"'in' needs a sequence or string, got {type(options).__name__}",
        details={"options": repr(options)},
    )


def truthy(value: Any) -> bool:
    """Truthiness of a condition result; empty sequences are false."""
    if value is ABSENT or value is None:
        return False
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    return bool(value)


# =============================================================================
# Condition Evaluator
# =============================================================================

@dataclass
class ConditionEvaluator:
    """
    Evaluates condition trees against flat form values.

    Evaluation is pure: calling evaluate() twice with the same values
    returns the same result.

    Usage:
        evaluator = ConditionEvaluator(failure_policy=FailurePolicy.OPEN)
        visible = evaluator.evaluate(step.visible_when, values)
    """

    failure_policy: FailurePolicy = FailurePolicy.OPEN
    max_depth: int = DEFAULT_MAX_DEPTH
    fault_count: int = field(default=0, compare=False)

    def evaluate(self, node: Optional[ConditionNode], values: Mapping[str, Any]) -> bool:
        """
        Evaluate a condition tree.

        A missing condition (None) holds.

        Raises:
            EvaluationFault: Only under FailurePolicy.RAISE
        """
        if node is None:
            return True
        try:
            return truthy(self._eval(node, values, 1))
        except EvaluationFault as fault:
            return self._on_fault(fault)
        except (TypeError, ValueError, ArithmeticError) as exc:
            return self._on_fault(EvaluationFault(
                message=f"Condition evaluation failed: {exc}",
                details={"error": type(exc).__name__},
            ))

    def evaluate_all(
        self,
        nodes: Iterable[Optional[ConditionNode]],
        values: Mapping[str, Any],
    ) -> bool:
        """AND of a condition list; an empty list holds."""
        return all(self.evaluate(node, values) for node in nodes)

    def _on_fault(self, fault: EvaluationFault) -> bool:
        self.fault_count += 1
        logger.warning(
            "Condition evaluation fault (policy=%s): %s",
            self.failure_policy.value, fault.message,
        )
        if self.failure_policy == FailurePolicy.RAISE:
            raise fault
        return self.failure_policy == FailurePolicy.OPEN

    def _eval(self, node: ConditionNode, values: Mapping[str, Any], depth: int) -> Any:
        if depth > self.max_depth:
            raise EvaluationFault(
                message=f"Condition deeper than {self.max_depth} levels",
                details={"max_depth": self.max_depth},
            )

        if isinstance(node, Var):
            value = values.get(node.name)
            return None if value is ABSENT else value

        if isinstance(node, Literal):
            return node.value

        if isinstance(node, And):
            for child in node.children:
                if not truthy(self._eval(child, values, depth + 1)):
                    return False
            return True

        if isinstance(node, Or):
            for child in node.children:
                if truthy(self._eval(child, values, depth + 1)):
                    return True
            return False

        if isinstance(node, Compare):
            left = self._eval(node.left, values, depth + 1)
            right = self._eval(node.right, values, depth + 1)
            return compare_values(node.op, left, right)

        if isinstance(node, In):
            value = self._eval(node.value, values, depth + 1)
            options = self._eval(node.options, values, depth + 1)
            return is_member(value, options)

        raise EvaluationFault(
            message=f"Unknown condition node: {type(node).__name__}",
            details={"node": repr(node)},
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def evaluate_condition(
    node: Optional[ConditionNode],
    values: Mapping[str, Any],
    failure_policy: FailurePolicy = FailurePolicy.OPEN,
) -> bool:
    """Evaluate a condition with a temporary evaluator."""
    return ConditionEvaluator(failure_policy=failure_policy).evaluate(node, values)
