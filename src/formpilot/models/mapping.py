"""
FormPilot Mapping Models

Declarative data-mapping rules shared by the inbound (source -> form)
and outbound (form -> target) directions.

Key components:
- SourceCandidate: one possible source for a value (path, condition,
  transform, or literal default)
- MappingRule: ordered candidates for one target, first match wins
- TransformationSpec: inbound and outbound rule lists
- MappingResult: per-call output with provenance and collected errors

Repetition markers in targets and candidate paths:
- "[*]"      zero-based index  (borrowers[*].firstName -> borrowers[0].firstName)
- "{index}"  one-based index   (borrowerName{index}   -> borrowerName1)
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from ..exceptions import RequiredFieldMissing
from ..paths import ABSENT, CompiledPath, PathCache
from .enums import MappingDirection, SourceCondition, SourceScope


WILDCARD_MARKER = "[*]"
INDEX_MARKER = "{index}"


def has_repetition_marker(expression: str) -> bool:
    """Check whether a target or path carries a repetition marker."""
    return WILDCARD_MARKER in expression or INDEX_MARKER in expression


def bind_expression(expression: str, index: int) -> str:
    """
    Substitute repetition markers with a concrete zero-based index.

    Example:
        >>> bind_expression("borrowers[*].phone{index}", 1)
        'borrowers[1].phone2'
    """
    return (
        expression
        .replace(WILDCARD_MARKER, f"[{index}]")
        .replace(INDEX_MARKER, str(index + 1))
    )


_MARKER_SPLIT = re.compile(r"(\[\*\]|\{index\})")


def index_of(expression: str, name: str) -> Optional[int]:
    """
    Zero-based index at which a marked expression binds to a concrete name.

    Inverse of bind_expression. Returns None when the name is not a binding
    of the expression, or when its markers disagree on the index.

    Example:
        >>> index_of("borrowers[*].phone{index}", "borrowers[1].phone2")
        1
    """
    pattern = []
    offsets = []
    for piece in _MARKER_SPLIT.split(expression):
        if piece == WILDCARD_MARKER:
            pattern.append(r"\[(\d+)\]")
            offsets.append(0)
        elif piece == INDEX_MARKER:
            pattern.append(r"(\d+)")
            offsets.append(1)
        else:
            pattern.append(re.escape(piece))

    match = re.fullmatch("".join(pattern), name) if offsets else None
    if match is None:
        return None
    found = {int(g) - o for g, o in zip(match.groups(), offsets)}
    if len(found) != 1:
        return None
    index = found.pop()
    return index if index >= 0 else None


# =============================================================================
# Source Candidate
# =============================================================================

@dataclass(frozen=True)
class SourceCandidate:
    """
    One possible source for a mapped value.

    A candidate carrying a default returns it as soon as it is reached;
    by convention defaults are the last candidate of a rule.

    Attributes:
        path: Compiled source path (None for pure defaults)
        scope: Which input document the path is resolved against
        condition: Named gate on the resolved value (None = not absent/None)
        transform: Registered transform name applied to the accepted value
        options: Transform arguments (e.g. {"field": "firstName"})
        default: Literal default value, ABSENT when not declared
        required: Outbound: the rule must resolve
    """
    path: Optional[CompiledPath] = None
    scope: SourceScope = SourceScope.SOURCE
    condition: Optional[SourceCondition] = None
    transform: Optional[str] = None
    options: dict[str, Any] = field(default_factory=dict)
    default: Any = ABSENT
    required: bool = False

    def __post_init__(self) -> None:
        if self.path is None and self.default is ABSENT:
            raise ValueError("SourceCandidate requires a path or a default")

    @property
    def has_default(self) -> bool:
        return self.default is not ABSENT

    @property
    def is_repeated(self) -> bool:
        """True if the candidate path carries a repetition marker."""
        return self.path is not None and has_repetition_marker(self.path.expression)

    def describe(self) -> str:
        """Short human-readable form used in logs and CLI output."""
        if self.path is None:
            return f"default={self.default!r}"
        parts = [f"{self.scope.value}:{self.path.expression}"]
        if self.condition:
            parts.append(f"if {self.condition.value}")
        if self.transform:
            parts.append(f"| {self.transform}")
        return " ".join(parts)


# =============================================================================
# Mapping Rule
# =============================================================================

@dataclass(frozen=True)
class MappingRule:
    """
    Ordered candidate chain for one target.

    Attributes:
        target: Flat field name (inbound) or target document path (outbound)
        candidates: Candidates in priority order
        required_flag: Rule-level required marker
    """
    target: str
    candidates: tuple[SourceCandidate, ...]
    required_flag: bool = False

    def __post_init__(self) -> None:
        if not self.target:
            raise ValueError("MappingRule requires a target")
        if not self.candidates:
            raise ValueError(f"MappingRule '{self.target}' has no candidates")

    @property
    def required(self) -> bool:
        return self.required_flag or any(c.required for c in self.candidates)

    @property
    def is_repeated(self) -> bool:
        return has_repetition_marker(self.target)

    def target_for(self, index: int) -> str:
        """Concrete target name for one repetition."""
        return bind_expression(self.target, index)


# =============================================================================
# Transformation Spec
# =============================================================================

@dataclass(frozen=True)
class TransformationSpec:
    """
    Inbound and outbound mapping rules of one form configuration.

    The path cache is owned by this spec and is used to compile
    index-bound candidate paths for repeated rules.
    """
    inbound: tuple[MappingRule, ...] = ()
    outbound: tuple[MappingRule, ...] = ()
    paths: PathCache = field(default_factory=PathCache, compare=False, repr=False)

    def rules(self, direction: MappingDirection) -> tuple[MappingRule, ...]:
        if direction == MappingDirection.INBOUND:
            return self.inbound
        return self.outbound

    def get_rule(self, direction: MappingDirection, target: str) -> Optional[MappingRule]:
        for rule in self.rules(direction):
            if rule.target == target:
                return rule
        return None

    @property
    def transform_names(self) -> set[str]:
        """All transform names referenced by either direction."""
        return {
            c.transform
            for rule in self.inbound + self.outbound
            for c in rule.candidates
            if c.transform
        }


# =============================================================================
# Mapping Result
# =============================================================================

@dataclass
class MappingResult:
    """
    Result of one inbound or outbound mapping pass.

    Attributes:
        direction: Which way the pass ran
        data: Flat value map (inbound) or nested target document (outbound)
        resolved_from: Concrete target -> index of the winning candidate
        defaulted: Targets filled from a literal default
        absent: Targets with no satisfied candidate
        errors: Required targets that could not be filled (collect mode only)
    """
    direction: MappingDirection
    data: dict[str, Any] = field(default_factory=dict)
    resolved_from: dict[str, int] = field(default_factory=dict)
    defaulted: list[str] = field(default_factory=list)
    absent: list[str] = field(default_factory=list)
    errors: list[RequiredFieldMissing] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_summary(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "resolved": len(self.resolved_from),
            "defaulted": len(self.defaulted),
            "absent": len(self.absent),
            "error_count": len(self.errors),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "summary": self.to_summary(),
            "absent": list(self.absent),
            "errors": [e.to_dict() for e in self.errors],
        }
