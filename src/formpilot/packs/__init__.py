"""
FormPilot Form Packs

Schema validation and loading for form packs.

Form packs are YAML or JSON files that define the steps, fields,
repeated entity templates, visibility conditions and data-mapping
rules of one multi-step form.

Usage:
    from formpilot.packs import load_form_pack, FormPackLoader

    # Load a single form pack
    form = load_form_pack("packs/simplified_application.yaml")

    # Use a loader for multiple packs (caches loaded forms)
    loader = FormPackLoader(transforms={"upper": my_upper})
    form = loader.load("packs/simplified_application.yaml")
"""
from __future__ import annotations

from .loader import (
    FormPackLoader,
    load_form_pack,
    load_form_pack_from_string,
    check_target_conflicts,
    validate_reference_integrity,
)
from .logic import parse_condition, parse_conditions, to_logic
from .schema import (
    SCHEMA_VERSION,
    ArrayTemplateSchema,
    CandidateSchema,
    FieldSchema,
    FormPackSchema,
    MappingRuleSchema,
    StepSchema,
    TransformationsSchema,
    check_schema_version,
    validate_form_pack,
)

__all__ = [
    # Version
    "SCHEMA_VERSION",
    # Loader
    "FormPackLoader",
    "load_form_pack",
    "load_form_pack_from_string",
    # Validation
    "validate_form_pack",
    "validate_reference_integrity",
    "check_target_conflicts",
    "check_schema_version",
    # Condition grammar
    "parse_condition",
    "parse_conditions",
    "to_logic",
    # Schemas (for advanced usage)
    "FormPackSchema",
    "StepSchema",
    "FieldSchema",
    "ArrayTemplateSchema",
    "TransformationsSchema",
    "MappingRuleSchema",
    "CandidateSchema",
]
