"""
FormPilot Field Validator

Field-level validation of submitted values. Only fields that are
currently visible are checked; requiredness comes from the current
VisibilityState, so conditionally required fields are enforced only
while their condition holds.

Rules:
- required, minLength, maxLength
- email, phoneUS, zipCode, ssnFormat (pattern checks)
- min, max (numeric bounds)
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from ..models import FieldSpec, ValidationRule, ValidationRuleType, VisibilityState


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_US_PATTERN = re.compile(
    r"^(\+1|1)?[-.\s]?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}$"
)
ZIP_CODE_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")
SSN_PATTERN = re.compile(r"^\d{3}-?\d{2}-?\d{4}$")

_PATTERNS = {
    ValidationRuleType.EMAIL: (EMAIL_PATTERN, "Please enter a valid email address"),
    ValidationRuleType.PHONE_US: (PHONE_US_PATTERN, "Please enter a valid US phone number"),
    ValidationRuleType.ZIP_CODE: (ZIP_CODE_PATTERN, "Please enter a valid ZIP code"),
    ValidationRuleType.SSN_FORMAT: (SSN_PATTERN, "Please enter a valid SSN"),
}

DEFAULT_REQUIRED_MESSAGE = "This field is required"


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class FieldError:
    """One failed rule on one field."""
    field_id: str
    rule: ValidationRuleType
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field_id, "rule": self.rule.value, "message": self.message}


@dataclass
class ValidationReport:
    """
    Outcome of validating a set of fields.

    Attributes:
        errors: Every failed rule, in field order
        checked: Ids of the fields that were checked
    """
    errors: list[FieldError] = field(default_factory=list)
    checked: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def errors_for(self, field_id: str) -> list[FieldError]:
        return [e for e in self.errors if e.field_id == field_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
        }


# =============================================================================
# Validator
# =============================================================================

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _as_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    text = str(value).replace("$", "").replace(",", "").strip()
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


class FieldValidator:
    """
    Validates visible field values against their rules.

    Usage:
        validator = FieldValidator()
        report = validator.validate(fields, values, state)
        if not report.is_valid:
            ...
    """

    def check_rule(self, rule: ValidationRule, value: Any) -> Optional[str]:
        """
        Check one rule against a non-blank value.

        Returns:
            The failure message, or None when the rule passes
        """
        kind = rule.rule

        if kind == ValidationRuleType.REQUIRED:
            return None

        if kind in (ValidationRuleType.MIN_LENGTH, ValidationRuleType.MAX_LENGTH):
            length = len(str(value))
            limit = int(rule.value)
            if kind == ValidationRuleType.MIN_LENGTH and length < limit:
                return rule.message or f"Minimum length is {limit}"
            if kind == ValidationRuleType.MAX_LENGTH and length > limit:
                return rule.message or f"Maximum length is {limit}"
            return None

        if kind in _PATTERNS:
            pattern, default_message = _PATTERNS[kind]
            if not pattern.match(str(value).strip()):
                return rule.message or default_message
            return None

        if kind in (ValidationRuleType.MIN, ValidationRuleType.MAX):
            number = _as_decimal(value)
            bound = _as_decimal(rule.value)
            if number is None:
                return rule.message or "Please enter a number"
            if kind == ValidationRuleType.MIN and number < bound:
                return rule.message or f"Must be at least {rule.value}"
            if kind == ValidationRuleType.MAX and number > bound:
                return rule.message or f"Must be at most {rule.value}"
            return None

        return None

    def validate_field(self, spec: FieldSpec, value: Any, required: bool) -> list[FieldError]:
        """Validate one field's value."""
        if _is_blank(value):
            if not required:
                return []
            message = next(
                (r.message for r in spec.validation
                 if r.rule == ValidationRuleType.REQUIRED and r.message),
                DEFAULT_REQUIRED_MESSAGE,
            )
            return [FieldError(spec.id, ValidationRuleType.REQUIRED, message)]

        errors = []
        for rule in spec.validation:
            message = self.check_rule(rule, value)
            if message:
                errors.append(FieldError(spec.id, rule.rule, message))
        return errors

    def validate(
        self,
        fields: Iterable[FieldSpec],
        values: Mapping[str, Any],
        state: VisibilityState,
    ) -> ValidationReport:
        """
        Validate every visible, non-label field.

        Args:
            fields: Candidate fields (static and expanded)
            values: Current flat form values
            state: Visibility state for the same values
        """
        report = ValidationReport()
        for spec in fields:
            if spec.is_label or not state.is_field_visible(spec.id):
                continue
            report.checked.append(spec.id)
            report.errors.extend(
                self.validate_field(spec, values.get(spec.id), state.is_required(spec.id))
            )
        return report
