"""
FormPilot Condition Grammar

Parses the JSON-logic style condition documents found in form packs
into condition trees, and serializes trees back.

Grammar:
    {"var": "name"}  or  {"var": ["name"]}     field lookup
    {"===": [a, b]}  {"!==": [a, b]}            strict (in)equality
    {">": [a, b]}  {"<": ...}  {">=": ...}  {"<=": ...}
    {"and": [c, ...]}  {"or": [c, ...]}
    {"in": [value, options]}
    scalars and lists of scalars                literals

A list of conditions on a step or field means all of them must hold.
"""
from __future__ import annotations

from typing import Any, Optional

from ..exceptions import InvalidConditionError
from ..models import (
    COMPARISON_OPERATORS,
    And,
    Compare,
    ConditionNode,
    ConditionOperator,
    In,
    Literal,
    Or,
    Var,
    tree_depth,
)

DEFAULT_MAX_DEPTH = 32

_SCALARS = (str, int, float, bool, type(None))


def _invalid(message: str, raw: Any) -> InvalidConditionError:
    return InvalidConditionError(message=message, details={"condition": raw})


def _parse_var(arg: Any, raw: Any) -> Var:
    if isinstance(arg, list):
        if len(arg) != 1:
            raise _invalid("'var' takes exactly one field name", raw)
        arg = arg[0]
    if not isinstance(arg, str) or not arg:
        raise _invalid("'var' requires a non-empty field name", raw)
    return Var(arg)


def _args(arg: Any, count: Optional[int], op: str, raw: Any) -> list[Any]:
    if not isinstance(arg, list):
        raise _invalid(f"'{op}' expects a list of operands", raw)
    if count is not None and len(arg) != count:
        raise _invalid(f"'{op}' expects {count} operands, got {len(arg)}", raw)
    if count is None and not arg:
        raise _invalid(f"'{op}' requires at least one operand", raw)
    return arg


def _parse_node(raw: Any) -> ConditionNode:
    if isinstance(raw, _SCALARS):
        return Literal(raw)

    if isinstance(raw, list):
        if not all(isinstance(item, _SCALARS) for item in raw):
            raise _invalid("list literals may only hold scalars", raw)
        return Literal(tuple(raw))

    if not isinstance(raw, dict) or len(raw) != 1:
        raise _invalid("condition must be an object with exactly one operator", raw)

    key, arg = next(iter(raw.items()))
    try:
        op = ConditionOperator(key)
    except ValueError:
        raise _invalid(f"unknown operator '{key}'", raw) from None

    if op == ConditionOperator.VAR:
        return _parse_var(arg, raw)

    if op in COMPARISON_OPERATORS:
        left, right = _args(arg, 2, key, raw)
        return Compare(op, _parse_node(left), _parse_node(right))

    if op == ConditionOperator.IN:
        value, options = _args(arg, 2, key, raw)
        return In(_parse_node(value), _parse_node(options))

    if op == ConditionOperator.AND:
        return And(tuple(_parse_node(c) for c in _args(arg, None, key, raw)))

    if op == ConditionOperator.OR:
        return Or(tuple(_parse_node(c) for c in _args(arg, None, key, raw)))

    raise _invalid(f"operator '{key}' cannot appear in a pack", raw)


def parse_condition(raw: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> ConditionNode:
    """
    Parse one condition document.

    Args:
        raw: Decoded YAML/JSON condition
        max_depth: Deepest tree accepted

    Raises:
        InvalidConditionError: If the document is malformed or too deep
    """
    node = _parse_node(raw)
    depth = tree_depth(node)
    if depth > max_depth:
        raise InvalidConditionError(
            message=f"Condition depth {depth} exceeds the maximum of {max_depth}",
            details={"depth": depth, "max_depth": max_depth},
        )
    return node


def parse_conditions(raw: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> Optional[ConditionNode]:
    """
    Parse the conditions attached to a step or field.

    None or an empty list means unconditional; a list is combined with AND.
    """
    if raw is None:
        return None
    if isinstance(raw, list) and all(isinstance(c, dict) for c in raw):
        nodes = [parse_condition(c, max_depth) for c in raw]
        if not nodes:
            return None
        if len(nodes) == 1:
            return nodes[0]
        combined = And(tuple(nodes))
        if tree_depth(combined) > max_depth:
            raise InvalidConditionError(
                message=f"Condition list exceeds the maximum depth of {max_depth}",
                details={"max_depth": max_depth},
            )
        return combined
    return parse_condition(raw, max_depth)


def to_logic(node: ConditionNode) -> Any:
    """Serialize a condition tree back into the pack grammar."""
    if isinstance(node, Var):
        return {"var": node.name}
    if isinstance(node, Literal):
        if isinstance(node.value, tuple):
            return list(node.value)
        return node.value
    if isinstance(node, Compare):
        return {node.op.value: [to_logic(node.left), to_logic(node.right)]}
    if isinstance(node, (And, Or)):
        return {node.op.value: [to_logic(c) for c in node.children]}
    if isinstance(node, In):
        return {"in": [to_logic(node.value), to_logic(node.options)]}
    raise TypeError(f"Not a condition node: {node!r}")
