"""
FormPilot Condition Trees

Immutable expression trees used for step/field visibility and
requiredness.

Key components:
- Var / Literal: leaves (form value lookup, constant)
- Compare: strict equality, inequality and ordering
- And / Or: short-circuiting logical composition
- In: set membership (or substring membership for strings)
- Helper functions: VAR(), EQ(), GT(), AND(), OR(), IN() ... for building trees

Trees are parsed and validated once when a form pack is loaded
(see formpilot.packs.logic); evaluation never re-validates them.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Iterator, Union

from .enums import COMPARISON_OPERATORS, ConditionOperator


# =============================================================================
# Leaves
# =============================================================================

@dataclass(frozen=True)
class Var:
    """Lookup of a flat form value by field name."""
    name: str
    op: ClassVar[ConditionOperator] = ConditionOperator.VAR

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Var requires a non-empty field name")


@dataclass(frozen=True)
class Literal:
    """Constant value. Sequences are stored as tuples."""
    value: Any
    op: ClassVar[ConditionOperator] = ConditionOperator.LITERAL


# =============================================================================
# Composite Nodes
# =============================================================================

@dataclass(frozen=True)
class Compare:
    """
    Binary comparison.

    Attributes:
        op: One of ===, !==, >, <, >=, <=
        left: Left operand
        right: Right operand
    """
    op: ConditionOperator
    left: "ConditionNode"
    right: "ConditionNode"

    def __post_init__(self) -> None:
        if self.op not in COMPARISON_OPERATORS:
            raise ValueError(f"Compare cannot use operator '{self.op.value}'")


@dataclass(frozen=True)
class And:
    """All children must hold. Evaluation stops at the first false child."""
    children: tuple["ConditionNode", ...]
    op: ClassVar[ConditionOperator] = ConditionOperator.AND

    def __post_init__(self) -> None:
        if not self.children:
            raise ValueError("'and' requires at least one child")


@dataclass(frozen=True)
class Or:
    """Any child must hold. Evaluation stops at the first true child."""
    children: tuple["ConditionNode", ...]
    op: ClassVar[ConditionOperator] = ConditionOperator.OR

    def __post_init__(self) -> None:
        if not self.children:
            raise ValueError("'or' requires at least one child")


@dataclass(frozen=True)
class In:
    """Membership of value in options."""
    value: "ConditionNode"
    options: "ConditionNode"
    op: ClassVar[ConditionOperator] = ConditionOperator.IN


ConditionNode = Union[Var, Literal, Compare, And, Or, In]


# =============================================================================
# Tree Walking
# =============================================================================

def children_of(node: ConditionNode) -> tuple[ConditionNode, ...]:
    """Direct children of a node (empty for leaves)."""
    if isinstance(node, (And, Or)):
        return node.children
    if isinstance(node, Compare):
        return (node.left, node.right)
    if isinstance(node, In):
        return (node.value, node.options)
    return ()


def iter_nodes(node: ConditionNode) -> Iterator[ConditionNode]:
    """Depth-first iteration over every node in a tree."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(children_of(current)))


def tree_depth(node: ConditionNode) -> int:
    """Depth of a tree; a single leaf has depth 1."""
    kids = children_of(node)
    if not kids:
        return 1
    return 1 + max(tree_depth(k) for k in kids)


def map_vars(node: ConditionNode, rename: Callable[[str], str]) -> ConditionNode:
    """
    Return a copy of the tree with every Var name passed through rename.

    Used by array expansion to point template conditions at the
    matching instance's fields.
    """
    if isinstance(node, Var):
        return Var(rename(node.name))
    if isinstance(node, Literal):
        return node
    if isinstance(node, Compare):
        return Compare(node.op, map_vars(node.left, rename), map_vars(node.right, rename))
    if isinstance(node, And):
        return And(tuple(map_vars(c, rename) for c in node.children))
    if isinstance(node, Or):
        return Or(tuple(map_vars(c, rename) for c in node.children))
    if isinstance(node, In):
        return In(map_vars(node.value, rename), map_vars(node.options, rename))
    raise TypeError(f"Not a condition node: {node!r}")


# =============================================================================
# Helper Functions for Building Conditions
# =============================================================================

_NODE_TYPES = (Var, Literal, Compare, And, Or, In)


def _literal(value: Any) -> ConditionNode:
    if isinstance(value, _NODE_TYPES):
        return value
    if isinstance(value, list):
        value = tuple(value)
    return Literal(value)


def _operand(value: Any) -> ConditionNode:
    """Strings on the left of a builder name a field."""
    if isinstance(value, str):
        return Var(value)
    return _literal(value)


def VAR(name: str) -> Var:
    """Create a field lookup."""
    return Var(name)


def EQ(left: Any, right: Any) -> Compare:
    """
    Strict equality.

    Example:
        condition = EQ("applicationType", "joint")
    """
    return Compare(ConditionOperator.EQ, _operand(left), _literal(right))


def NE(left: Any, right: Any) -> Compare:
    """Strict inequality."""
    return Compare(ConditionOperator.NE, _operand(left), _literal(right))


def GT(left: Any, right: Any) -> Compare:
    """
    Greater than.

    Example:
        condition = GT("loanAmount", 100000)
    """
    return Compare(ConditionOperator.GT, _operand(left), _literal(right))


def GTE(left: Any, right: Any) -> Compare:
    return Compare(ConditionOperator.GTE, _operand(left), _literal(right))


def LT(left: Any, right: Any) -> Compare:
    return Compare(ConditionOperator.LT, _operand(left), _literal(right))


def LTE(left: Any, right: Any) -> Compare:
    return Compare(ConditionOperator.LTE, _operand(left), _literal(right))


def AND(*conditions: ConditionNode) -> And:
    """
    Create an AND condition from multiple child conditions.

    Example:
        condition = AND(
            NE("loanAmount", ""),
            GT("loanAmount", 100000),
        )
    """
    return And(tuple(conditions))


def OR(*conditions: ConditionNode) -> Or:
    """Create an OR condition from multiple child conditions."""
    return Or(tuple(conditions))


def IN(value: Any, options: Any) -> In:
    """
    Membership test.

    Example:
        condition = IN("propertyType", ["condo", "townhouse"])
    """
    return In(_operand(value), _literal(options))
