"""
FormPilot Engine

Core services for data mapping and conditional form rules.

Services:
- FormEngine: Serve one loaded form (prefill, build, sessions)
- FormCatalog: Load form packs and look engines up by form id
- InboundMapper / OutboundMapper: Source document <-> flat form values
- PatternRegistry: Reshape loan records before inbound mapping
- ArrayExpander: Expand repeated entity templates
- ConditionEvaluator: Evaluate condition trees against form values
- DependencyTracker: Decide when visibility must be recomputed
- VisibilityResolver: Visible steps/fields and required fields
- FieldValidator: Field-level validation on submission
- FormSession: One user's value store

Usage:
    from formpilot.engine import FormCatalog

    catalog = FormCatalog()
    engine = catalog.load("packs/simplified_application.yaml")
    session = engine.open_session(document=loan_record)
"""
from __future__ import annotations

from .array_expander import ArrayExpander, extract_indexed
from .condition_evaluator import (
    ConditionEvaluator,
    compare_values,
    evaluate_condition,
    is_member,
    strict_equals,
    truthy,
)
from .dependency_tracker import DependencyTracker, extract_vars
from .field_validator import FieldError, FieldValidator, ValidationReport
from .form_engine import FormCatalog, FormEngine
from .form_session import FormSession
from .inbound_mapper import InboundMapper, resolve_all, resolve_field
from .outbound_mapper import OutboundMapper, build
from .patterns import (
    BUILTIN_PATTERNS,
    PatternFn,
    PatternRegistry,
    PreparationPattern,
    select_primary_borrower,
)
from .source_resolver import (
    Resolution,
    SourceResolver,
    check_source_condition,
    collect_wildcard,
    flat_lookup,
    path_lookup,
)
from .transforms import (
    BUILTIN_TRANSFORMS,
    TransformContext,
    TransformFn,
    TransformRegistry,
)
from .visibility_resolver import VisibilityResolver

__all__ = [
    # Facade
    "FormEngine",
    "FormCatalog",
    "FormSession",
    # Mapping
    "InboundMapper",
    "OutboundMapper",
    "SourceResolver",
    "Resolution",
    "resolve_field",
    "resolve_all",
    "build",
    "check_source_condition",
    "path_lookup",
    "flat_lookup",
    "collect_wildcard",
    # Transforms
    "TransformRegistry",
    "TransformContext",
    "TransformFn",
    "BUILTIN_TRANSFORMS",
    # Data preparation
    "PatternRegistry",
    "PreparationPattern",
    "PatternFn",
    "BUILTIN_PATTERNS",
    "select_primary_borrower",
    # Arrays
    "ArrayExpander",
    "extract_indexed",
    # Conditions
    "ConditionEvaluator",
    "evaluate_condition",
    "compare_values",
    "strict_equals",
    "is_member",
    "truthy",
    "DependencyTracker",
    "extract_vars",
    # Visibility and validation
    "VisibilityResolver",
    "FieldValidator",
    "FieldError",
    "ValidationReport",
]
