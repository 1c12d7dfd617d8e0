"""
FormPilot Models

All configuration models of the FormPilot engine.

    from formpilot.models import (
        # Enums
        FieldType, ConditionOperator, SourceCondition, FailurePolicy,
        # Conditions
        Var, Literal, Compare, And, Or, In, EQ, GT, AND, OR, IN,
        # Mapping
        SourceCandidate, MappingRule, TransformationSpec, MappingResult,
        # Form
        FieldSpec, StepSpec, ArrayTemplateSpec, FormDefinition, VisibilityState,
    )
"""
from __future__ import annotations

# =============================================================================
# Enums
# =============================================================================
from .enums import (
    COMPARISON_OPERATORS,
    FIELD_TYPE_ALIASES,
    LOGICAL_OPERATORS,
    ORDERING_OPERATORS,
    ConditionOperator,
    FailurePolicy,
    FieldType,
    MappingDirection,
    SourceCondition,
    SourceScope,
    ValidationRuleType,
)

# =============================================================================
# Conditions
# =============================================================================
from .conditions import (
    AND,
    EQ,
    GT,
    GTE,
    IN,
    LT,
    LTE,
    NE,
    OR,
    VAR,
    And,
    Compare,
    ConditionNode,
    In,
    Literal,
    Or,
    Var,
    children_of,
    iter_nodes,
    map_vars,
    tree_depth,
)

# =============================================================================
# Mapping
# =============================================================================
from .mapping import (
    INDEX_MARKER,
    WILDCARD_MARKER,
    MappingResult,
    MappingRule,
    SourceCandidate,
    TransformationSpec,
    bind_expression,
    has_repetition_marker,
    index_of,
)

# =============================================================================
# Form
# =============================================================================
from .form import (
    ArrayTemplateSpec,
    FieldSpec,
    FormDefinition,
    FormMetadata,
    StepSpec,
    ValidationRule,
    VisibilityState,
)

__all__ = [
    # Enums
    "ConditionOperator",
    "FailurePolicy",
    "FieldType",
    "FIELD_TYPE_ALIASES",
    "MappingDirection",
    "SourceCondition",
    "SourceScope",
    "ValidationRuleType",
    "COMPARISON_OPERATORS",
    "ORDERING_OPERATORS",
    "LOGICAL_OPERATORS",
    # Conditions
    "ConditionNode",
    "Var",
    "Literal",
    "Compare",
    "And",
    "Or",
    "In",
    "VAR",
    "EQ",
    "NE",
    "GT",
    "GTE",
    "LT",
    "LTE",
    "AND",
    "OR",
    "IN",
    "children_of",
    "iter_nodes",
    "map_vars",
    "tree_depth",
    # Mapping
    "SourceCandidate",
    "MappingRule",
    "TransformationSpec",
    "MappingResult",
    "WILDCARD_MARKER",
    "INDEX_MARKER",
    "bind_expression",
    "index_of",
    "has_repetition_marker",
    # Form
    "ValidationRule",
    "FieldSpec",
    "StepSpec",
    "ArrayTemplateSpec",
    "FormMetadata",
    "FormDefinition",
    "VisibilityState",
]
