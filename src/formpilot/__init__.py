"""
FormPilot - Declarative Data-Mapping and Conditional-Rule Engine

FormPilot drives multi-step forms from configuration: it prefills form
values from an arbitrarily shaped source record, decides which steps
and fields are visible or required as values change, and builds the
nested target document on submission.

Key Features:
- Prioritized, conditional, multi-source field mappings (first match wins)
- Outbound mapping back into nested documents, with required targets
- Repeated entity templates (borrower / co-borrower)
- Condition trees with selective recomputation on value changes
- Form packs in YAML or JSON, validated once at load

Quick Start:
    from formpilot import FormEngine, load_form_pack

    form = load_form_pack("packs/simplified_application.yaml")
    engine = FormEngine(form)

    session = engine.open_session(document=loan_record)
    state = session.set_field_value("applicationType", "joint")
    payload = session.submit().data

Version: 0.1.0
"""
from __future__ import annotations

__version__ = "0.1.0"

# =============================================================================
# Models (Re-exported for convenience)
# =============================================================================
from .models import (
    AND,
    EQ,
    GT,
    IN,
    NE,
    OR,
    ArrayTemplateSpec,
    FailurePolicy,
    FieldSpec,
    FieldType,
    FormDefinition,
    MappingResult,
    MappingRule,
    SourceCandidate,
    StepSpec,
    TransformationSpec,
    VisibilityState,
)

# =============================================================================
# Engine
# =============================================================================
from .config import EngineOptions
from .engine import (
    FormCatalog,
    FormEngine,
    FormSession,
    InboundMapper,
    OutboundMapper,
    PatternRegistry,
    TransformRegistry,
    VisibilityResolver,
)
from .packs import FormPackLoader, load_form_pack, load_form_pack_from_string
from .paths import ABSENT, compile_path, get_path, set_path

# =============================================================================
# Exceptions
# =============================================================================
from .exceptions import (
    ConfigurationError,
    EvaluationFault,
    FormNotFoundError,
    FormPilotError,
    FormValidationError,
    RequiredFieldMissing,
    UnknownFieldError,
)

__all__ = [
    "__version__",
    # Models
    "FieldType",
    "FailurePolicy",
    "FieldSpec",
    "StepSpec",
    "ArrayTemplateSpec",
    "FormDefinition",
    "SourceCandidate",
    "MappingRule",
    "TransformationSpec",
    "MappingResult",
    "VisibilityState",
    "EQ",
    "NE",
    "GT",
    "IN",
    "AND",
    "OR",
    # Engine
    "EngineOptions",
    "FormEngine",
    "FormCatalog",
    "FormSession",
    "InboundMapper",
    "OutboundMapper",
    "PatternRegistry",
    "TransformRegistry",
    "VisibilityResolver",
    # Packs
    "FormPackLoader",
    "load_form_pack",
    "load_form_pack_from_string",
    # Paths
    "ABSENT",
    "compile_path",
    "get_path",
    "set_path",
    # Exceptions
    "FormPilotError",
    "ConfigurationError",
    "RequiredFieldMissing",
    "EvaluationFault",
    "UnknownFieldError",
    "FormNotFoundError",
    "FormValidationError",
]
