"""
FormPilot Source Resolution

The candidate-chain walk shared by the inbound and outbound mappers.

For one MappingRule, candidates are tried in declared order:
1. A candidate carrying a default returns it immediately.
2. Otherwise its path is resolved against the source document
   (or the context document, for context-scoped candidates).
3. Its named condition is checked against the resolved value.
4. The first accepted value is transformed and returned.

No accepted candidate means the rule resolves to ABSENT. That is a
normal outcome, never an exception.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..models import (
    INDEX_MARKER,
    WILDCARD_MARKER,
    MappingRule,
    SourceCandidate,
    SourceCondition,
    SourceScope,
    bind_expression,
    index_of,
)
from ..paths import ABSENT, CompiledPath, PathCache, SegmentKind
from .transforms import TransformContext, TransformRegistry, is_blank


# A lookup reads a compiled path out of a root document
Lookup = Callable[[CompiledPath, Any], Any]


# =============================================================================
# Named Source Conditions
# =============================================================================

def check_source_condition(value: Any, condition: Optional[SourceCondition]) -> bool:
    """
    Check a resolved value against a candidate's named condition.

    No condition accepts anything that is neither ABSENT nor None.
    """
    if condition is None or condition == SourceCondition.EXISTS:
        return value is not ABSENT and value is not None

    if condition == SourceCondition.NOT_EMPTY:
        return not is_blank(value)

    if condition == SourceCondition.ARRAY_NOT_EMPTY:
        return isinstance(value, (list, tuple)) and len(value) > 0

    if condition == SourceCondition.OBJECT_NOT_EMPTY:
        return isinstance(value, Mapping) and len(value) > 0

    return False


# =============================================================================
# Lookups
# =============================================================================

def path_lookup(path: CompiledPath, root: Any) -> Any:
    """Plain path resolution."""
    return path.get(root)


def flat_lookup(path: CompiledPath, values: Any) -> Any:
    """
    Resolution against a flat value map.

    The path text is tried as a literal key first ("borrowers[0].firstName"
    is a flat key for an expanded template field), then as a path.
    """
    if isinstance(values, Mapping) and path.expression in values:
        return values[path.expression]
    return path.get(values)


def wildcard_sequence(path: CompiledPath, root: Any) -> Any:
    """
    The sequence a [*] path iterates over.

    Returns ABSENT when the value before the first wildcard is missing
    or is not a sequence.
    """
    prefix_len = next(
        i for i, s in enumerate(path.segments) if s.kind is SegmentKind.WILDCARD
    )
    if prefix_len:
        prefix_text = path.expression.split(WILDCARD_MARKER, 1)[0]
        sequence = CompiledPath(prefix_text, path.segments[:prefix_len]).get(root)
    else:
        sequence = root
    return sequence if isinstance(sequence, (list, tuple)) else ABSENT


def collect_wildcard(path: CompiledPath, root: Any) -> Any:
    """
    Resolve an unbound [*] path into a list, one entry per element.

    Returns ABSENT when the sequence before the wildcard is missing.
    """
    sequence = wildcard_sequence(path, root)
    if sequence is ABSENT:
        return ABSENT

    collected = []
    for i in range(len(sequence)):
        item = path.bind(i).get(root)
        collected.append(None if item is ABSENT else item)
    return collected


def _bound_indices(expression: str, container: Mapping) -> list[int]:
    """Indices of the keys in container that are bindings of expression."""
    indices = []
    for key in container:
        if isinstance(key, str):
            index = index_of(expression, key)
            if index is not None:
                indices.append(index)
    return indices


# =============================================================================
# Resolver
# =============================================================================

@dataclass(frozen=True)
class Resolution:
    """
    Outcome of resolving one rule.

    Attributes:
        value: Resolved value, or ABSENT
        candidate_index: Position of the winning candidate (None if absent)
        defaulted: True if the winner was a literal default
    """
    value: Any
    candidate_index: Optional[int] = None
    defaulted: bool = False

    @property
    def found(self) -> bool:
        return self.value is not ABSENT


NOT_FOUND = Resolution(ABSENT)


class SourceResolver:
    """
    Walks candidate chains for one transformation spec.

    Args:
        transforms: Registry used to apply candidate transforms
        paths: Path cache of the owning configuration, used for
            index-bound candidate paths
        lookup: How source-scoped paths are read (flat_lookup for outbound)
    """

    def __init__(
        self,
        transforms: TransformRegistry,
        paths: Optional[PathCache] = None,
        lookup: Lookup = path_lookup,
    ) -> None:
        self.transforms = transforms
        self.paths = paths if paths is not None else PathCache()
        self.lookup = lookup

    def read(
        self,
        candidate: SourceCandidate,
        document: Any,
        context: Any = None,
        index: Optional[int] = None,
    ) -> Any:
        """Resolve a candidate's path without checking its condition."""
        path = candidate.path
        if path is None:
            return ABSENT
        if index is not None and candidate.is_repeated:
            path = self.paths.compile(bind_expression(path.expression, index))

        if candidate.scope == SourceScope.CONTEXT:
            root, lookup = context, path_lookup
        else:
            root, lookup = document, self.lookup
        if root is None:
            return ABSENT

        if path.has_wildcard:
            return collect_wildcard(path, root)
        return lookup(path, root)

    def index_bound(
        self,
        candidate: SourceCandidate,
        document: Any,
        context: Any = None,
    ) -> int:
        """
        One past the highest index at which an index-bound candidate has data.

        Consults the expanded flat keys of a flat value map, the sequence
        behind a [*] segment, and the "{index}" keys of the container the
        path ends in. Gaps below the bound are not detected here.
        """
        path = candidate.path
        if path is None or not candidate.is_repeated:
            return 0

        if candidate.scope == SourceScope.CONTEXT:
            root, flat = context, False
        else:
            root, flat = document, self.lookup is flat_lookup
        if root is None:
            return 0

        indices: list[int] = []
        if flat and isinstance(root, Mapping):
            indices.extend(_bound_indices(path.expression, root))

        if path.has_wildcard:
            sequence = wildcard_sequence(path, root)
            if sequence is not ABSENT:
                indices.append(len(sequence) - 1)
        else:
            last = path.segments[-1]
            if isinstance(last.key, str) and INDEX_MARKER in last.key:
                parent = (
                    CompiledPath(path.expression, path.segments[:-1]).get(root)
                    if len(path.segments) > 1 else root
                )
                if isinstance(parent, Mapping):
                    indices.extend(_bound_indices(last.key, parent))

        return max(indices) + 1 if indices else 0

    def resolve(
        self,
        rule: MappingRule,
        document: Any,
        context: Any = None,
        index: Optional[int] = None,
        target: Optional[str] = None,
    ) -> Resolution:
        """
        Resolve a rule to its first accepted candidate.

        Args:
            rule: The rule to resolve
            document: Source document (inbound) or flat values (outbound)
            context: Auxiliary context document
            index: Repetition index for repeated rules
            target: Concrete target name passed to transforms

        Returns:
            Resolution (value is ABSENT when nothing matched)
        """
        target = target or rule.target
        for position, candidate in enumerate(rule.candidates):
            if candidate.has_default:
                return Resolution(candidate.default, position, defaulted=True)

            value = self.read(candidate, document, context, index)
            if not check_source_condition(value, candidate.condition):
                continue

            if candidate.transform:
                value = self.transforms.apply(
                    candidate.transform,
                    value,
                    TransformContext(
                        target=target,
                        options=candidate.options,
                        document=document,
                        context=context,
                    ),
                )
            return Resolution(value, position)

        return NOT_FOUND
