"""
FormPilot Exception Hierarchy

Domain-specific exceptions for the form mapping and rule engine.
All exceptions include error codes for tracking and logging.

Exception codes follow the pattern: FP_<CATEGORY>_<SPECIFIC>

Categories:
- Configuration errors are raised once, while a form pack is loaded.
  The engine refuses to serve a configuration that raised one.
- RequiredFieldMissing is raised at submission time and is recoverable
  (re-prompt the user).
- EvaluationFault is raised inside condition evaluation and is normally
  absorbed by the configured failure policy.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class FormPilotError(Exception):
    """
    Base exception for all FormPilot errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (FP_*)
        details: Additional context about the error
        form_id: Associated form configuration ID if applicable
    """
    message: str
    code: str = "FP_INTERNAL_ERROR"
    details: dict[str, Any] = field(default_factory=dict)
    form_id: Optional[str] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.form_id:
            parts.append(f"(form: {self.form_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/API responses."""
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.form_id:
            result["form_id"] = self.form_id
        return result


# =============================================================================
# Configuration Errors (load time)
# =============================================================================

@dataclass
class ConfigurationError(FormPilotError):
    """Form configuration is invalid and cannot be served."""
    code: str = "FP_CONFIGURATION_ERROR"


@dataclass
class PackLoadError(ConfigurationError):
    """Failed to read a form pack from file."""
    code: str = "FP_PACK_LOAD_ERROR"


@dataclass
class PackValidationError(ConfigurationError):
    """Form pack schema validation failed."""
    code: str = "FP_PACK_VALIDATION_ERROR"


@dataclass
class PackVersionMismatch(ConfigurationError):
    """Form pack schema version doesn't match the supported version."""
    code: str = "FP_PACK_VERSION_MISMATCH"


@dataclass
class PathSyntaxError(ConfigurationError):
    """A path expression could not be compiled."""
    code: str = "FP_PATH_SYNTAX_ERROR"


@dataclass
class UnknownTransformError(ConfigurationError):
    """A mapping rule names a transform that is not registered."""
    code: str = "FP_UNKNOWN_TRANSFORM"


@dataclass
class UnknownPatternError(ConfigurationError):
    """An engine names a data preparation pattern that is not registered."""
    code: str = "FP_UNKNOWN_PATTERN"


@dataclass
class UnknownSourceConditionError(ConfigurationError):
    """A source candidate names a condition that does not exist."""
    code: str = "FP_UNKNOWN_SOURCE_CONDITION"


@dataclass
class InvalidConditionError(ConfigurationError):
    """A condition expression is malformed or too deep."""
    code: str = "FP_INVALID_CONDITION"


@dataclass
class DanglingReferenceError(ConfigurationError):
    """Configuration references a field that is not declared."""
    code: str = "FP_DANGLING_REFERENCE"


@dataclass
class TargetConflictError(ConfigurationError):
    """Two outbound targets need different shapes at the same location."""
    code: str = "FP_TARGET_CONFLICT"


# =============================================================================
# Lookup Errors
# =============================================================================

@dataclass
class FormNotFoundError(FormPilotError):
    """Requested form configuration has not been loaded."""
    code: str = "FP_FORM_NOT_FOUND"


@dataclass
class UnknownFieldError(FormPilotError):
    """A session was asked to set a value for an undeclared field."""
    code: str = "FP_UNKNOWN_FIELD"


# =============================================================================
# Submission Errors
# =============================================================================

@dataclass
class RequiredFieldMissing(FormPilotError):
    """
    A required outbound target resolved to nothing.

    Attributes:
        target_path: Path in the target document that could not be filled
    """
    code: str = "FP_REQUIRED_FIELD_MISSING"
    target_path: str = ""

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["target_path"] = self.target_path
        return result


# =============================================================================
# Evaluation Errors
# =============================================================================

@dataclass
class EvaluationFault(FormPilotError):
    """Condition evaluation failed internally (e.g. incompatible types)."""
    code: str = "FP_EVALUATION_FAULT"


@dataclass
class SessionClosedError(FormPilotError):
    """A closed form session was used."""
    code: str = "FP_SESSION_CLOSED"


@dataclass
class FormValidationError(FormPilotError):
    """
    Submission blocked by field validation errors.

    Attributes:
        errors: Serialized field errors ({"field", "rule", "message"})
    """
    code: str = "FP_FORM_INVALID"
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errors"] = self.errors
        return result
