"""
FormPilot Dependency Tracker

Static analysis of condition trees: which form values can change the
outcome of any condition.

The tracked names drive selective recomputation. A dependency signature
is the canonical JSON of the sorted (name, value) pairs of every tracked
variable; two value maps with the same signature produce the same
visibility, so the full pass can be skipped.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from ..canon import canonical_json
from ..models import ConditionNode, Var, iter_nodes
from ..paths import ABSENT


def extract_vars(nodes: Iterable[Optional[ConditionNode]]) -> frozenset[str]:
    """
    Every Var name referenced anywhere in the given trees.

    Example:
        >>> extract_vars([AND(GT("loanAmount", 0), EQ("state", "CA"))])
        frozenset({'loanAmount', 'state'})
    """
    names: set[str] = set()
    for node in nodes:
        if node is None:
            continue
        for current in iter_nodes(node):
            if isinstance(current, Var):
                names.add(current.name)
    return frozenset(names)


class DependencyTracker:
    """
    Tracked variable set with signature computation.

    Args:
        nodes: Condition trees to analyze
        extra: Additional names to track (e.g. template count fields)
    """

    def __init__(
        self,
        nodes: Iterable[Optional[ConditionNode]] = (),
        extra: Iterable[str] = (),
    ) -> None:
        self.tracked: frozenset[str] = extract_vars(nodes) | frozenset(extra)

    def __contains__(self, name: object) -> bool:
        return name in self.tracked

    def __len__(self) -> int:
        return len(self.tracked)

    def extend(
        self,
        nodes: Iterable[Optional[ConditionNode]] = (),
        extra: Iterable[str] = (),
    ) -> "DependencyTracker":
        """New tracker covering this one plus more trees/names."""
        return DependencyTracker(nodes, self.tracked | frozenset(extra))

    def snapshot(self, values: Mapping[str, Any]) -> list[tuple[str, Any]]:
        """Sorted (name, value) pairs; missing values are None."""
        pairs = []
        for name in sorted(self.tracked):
            value = values.get(name)
            pairs.append((name, None if value is ABSENT else value))
        return pairs

    def signature(self, values: Mapping[str, Any]) -> str:
        """Memoization key for the current values."""
        return canonical_json(self.snapshot(values))

    def affects(self, name: str) -> bool:
        """True if changing this value may change some condition."""
        return name in self.tracked
