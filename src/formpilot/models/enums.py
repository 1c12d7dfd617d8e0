"""
FormPilot Enumerations

All enumeration types used throughout the FormPilot engine.

All enums inherit from (str, Enum) for JSON serialization compatibility.
"""
from __future__ import annotations

from enum import Enum


# =============================================================================
# Field Types
# =============================================================================

class FieldType(str, Enum):
    """Type tag of a form field."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    CURRENCY = "currency"
    CHOICE = "choice"          # dropdown / radio
    BOOLEAN = "boolean"        # checkbox
    EMAIL = "email"
    PHONE = "phone"
    LABEL = "label"            # display-only, never required or validated
    HIDDEN = "hidden"


# Widget names accepted in packs and what they mean to the engine
FIELD_TYPE_ALIASES: dict[str, FieldType] = {
    "dropdown": FieldType.CHOICE,
    "select": FieldType.CHOICE,
    "radio": FieldType.CHOICE,
    "checkbox": FieldType.BOOLEAN,
    "textarea": FieldType.TEXT,
    "tel": FieldType.PHONE,
}


# =============================================================================
# Condition Operators
# =============================================================================

class ConditionOperator(str, Enum):
    """
    Operators of the condition expression grammar.

    Tag values are the keys used in configuration documents.
    """
    # Leaves
    VAR = "var"
    LITERAL = "literal"

    # Comparison
    EQ = "==="
    NE = "!=="
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="

    # Membership
    IN = "in"

    # Logical
    AND = "and"
    OR = "or"


COMPARISON_OPERATORS = frozenset({
    ConditionOperator.EQ,
    ConditionOperator.NE,
    ConditionOperator.GT,
    ConditionOperator.LT,
    ConditionOperator.GTE,
    ConditionOperator.LTE,
})

ORDERING_OPERATORS = frozenset({
    ConditionOperator.GT,
    ConditionOperator.LT,
    ConditionOperator.GTE,
    ConditionOperator.LTE,
})

LOGICAL_OPERATORS = frozenset({ConditionOperator.AND, ConditionOperator.OR})


# =============================================================================
# Source Candidates
# =============================================================================

class SourceCondition(str, Enum):
    """Named conditions gating a source candidate."""
    NOT_EMPTY = "notEmpty"              # truthy and not ""
    ARRAY_NOT_EMPTY = "arrayNotEmpty"   # non-empty sequence
    EXISTS = "exists"                   # not None / not absent
    OBJECT_NOT_EMPTY = "objectNotEmpty" # mapping with at least one key


class SourceScope(str, Enum):
    """Which input document a candidate path is resolved against."""
    SOURCE = "source"
    CONTEXT = "context"


class MappingDirection(str, Enum):
    """Direction of a mapping pass."""
    INBOUND = "inbound"      # source document -> flat values
    OUTBOUND = "outbound"    # flat values -> target document


# =============================================================================
# Evaluation Policy
# =============================================================================

class FailurePolicy(str, Enum):
    """
    What to do when a condition raises an internal fault.

    OPEN keeps the step/field visible, CLOSED hides it,
    RAISE propagates the EvaluationFault to the caller.
    """
    OPEN = "open"
    CLOSED = "closed"
    RAISE = "raise"


# =============================================================================
# Validation
# =============================================================================

class ValidationRuleType(str, Enum):
    """Field-level validation rules checked on step submission."""
    REQUIRED = "required"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    EMAIL = "email"
    PHONE_US = "phoneUS"
    ZIP_CODE = "zipCode"
    SSN_FORMAT = "ssnFormat"
    MIN = "min"
    MAX = "max"
