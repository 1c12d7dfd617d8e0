"""
FormPilot Form Pack Loader

Loads and validates form packs from YAML or JSON files.

Converts Pydantic schema models to FormPilot configuration models and
runs every load-time check, so a FormDefinition that comes out of the
loader never fails structurally while it is served.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from ..canon import compute_form_pack_hash
from ..exceptions import (
    ConfigurationError,
    DanglingReferenceError,
    PackLoadError,
    PackValidationError,
    PackVersionMismatch,
    TargetConflictError,
    UnknownSourceConditionError,
)
from ..models import (
    FIELD_TYPE_ALIASES,
    ArrayTemplateSpec,
    FieldSpec,
    FieldType,
    FormDefinition,
    FormMetadata,
    MappingRule,
    SourceCandidate,
    SourceCondition,
    SourceScope,
    StepSpec,
    TransformationSpec,
    ValidationRule,
    ValidationRuleType,
    Var,
    iter_nodes,
)
from ..paths import ABSENT, PathCache, PathSegment, SegmentKind
from ..engine.transforms import TransformFn, TransformRegistry
from .logic import DEFAULT_MAX_DEPTH, parse_conditions
from .schema import (
    SCHEMA_VERSION,
    ArrayTemplateSchema,
    CandidateSchema,
    FieldSchema,
    FormPackSchema,
    RuleValue,
    StepSchema,
    check_schema_version,
    normalize_rule,
    validate_form_pack,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Reference Integrity Validation
# =============================================================================

def validate_reference_integrity(form: FormDefinition, path: str = "") -> None:
    """
    Validate internal references are consistent.

    Catches:
    - Duplicate step IDs and field IDs
    - Array templates whose count field or host step is not declared
    - Conditions referring to fields that do not exist

    Args:
        form: The form definition to validate
        path: File path for error messages

    Raises:
        DanglingReferenceError: Listing every error found
    """
    errors = []

    seen_steps: set[str] = set()
    for step in form.steps:
        if step.id in seen_steps:
            errors.append(f"Duplicate step ID: '{step.id}'")
        seen_steps.add(step.id)

    seen_fields: set[str] = set()
    for _, f in form.iter_fields():
        if f.id in seen_fields:
            errors.append(f"Duplicate field ID: '{f.id}'")
        seen_fields.add(f.id)

    declared = set(form.field_ids)
    for template in form.array_templates:
        if template.count_field not in declared:
            errors.append(
                f"Array template '{template.name}' counts by undeclared field "
                f"'{template.count_field}'"
            )
        if template.step_id and form.get_step(template.step_id) is None:
            errors.append(
                f"Array template '{template.name}' is hosted by undeclared step "
                f"'{template.step_id}'"
            )
        local_ids = template.field_ids
        if len(set(local_ids)) != len(local_ids):
            errors.append(f"Array template '{template.name}' has duplicate field IDs")

    legal = form.legal_names()
    owners: list[tuple[str, Any, frozenset[str]]] = [
        (f"step '{s.id}'", s.visible_when, legal) for s in form.steps
    ]
    for _, f in form.iter_fields():
        owners.extend((f"field '{f.id}'", c, legal) for c in f.conditions)
    for template in form.array_templates:
        local_legal = form.legal_names(template)
        for f in template.fields:
            owners.extend(
                (f"template field '{template.name}.{f.id}'", c, local_legal)
                for c in f.conditions
            )

    for owner, node, names in owners:
        if node is None:
            continue
        for item in iter_nodes(node):
            if isinstance(item, Var) and item.name not in names:
                errors.append(f"Condition on {owner} references unknown field '{item.name}'")

    if errors:
        path_str = f" in {path}" if path else ""
        raise DanglingReferenceError(
            message=f"Reference integrity errors{path_str}: {len(errors)} found",
            details={"errors": errors, "path": path},
            form_id=form.id,
        )


def _location(segments: tuple[PathSegment, ...]) -> tuple[tuple[str, Any], ...]:
    return tuple(
        ("index" if s.kind is SegmentKind.INDEX else "key", s.key) for s in segments
    )


def _shape_needed(segment: PathSegment) -> Optional[str]:
    """Container a segment writes into: 'list', 'dict', or None for either."""
    if segment.kind is SegmentKind.INDEX:
        return "list"
    if segment.kind is SegmentKind.KEY and segment.key.isdigit():
        return None
    return "dict"


def check_target_conflicts(rules: tuple[MappingRule, ...], paths: PathCache) -> None:
    """
    Reject outbound targets that cannot live in the same document.

    Catches:
    - An index segment and a key segment under the same parent
      ("items[0]" and "items.name")
    - A target that is a parent of another target
      ("borrower" and "borrower.name")

    Repeated targets are checked at index 0.

    Raises:
        TargetConflictError: Listing every conflict found
    """
    errors = []
    shapes: dict[tuple, tuple[str, str]] = {}
    leaves: dict[tuple, str] = {}
    parents: dict[tuple, str] = {}

    for rule in rules:
        segments = paths.compile(rule.target_for(0)).segments
        for i, segment in enumerate(segments):
            shape = _shape_needed(segment)
            if shape is None:
                continue
            parent = _location(segments[:i])
            seen = shapes.setdefault(parent, (shape, rule.target))
            if seen[0] != shape:
                errors.append(
                    f"Targets '{seen[1]}' and '{rule.target}' need a {seen[0]} and "
                    f"a {shape} at the same location"
                )

        leaf = _location(segments)
        for i in range(1, len(segments)):
            prefix = _location(segments[:i])
            if prefix in leaves:
                errors.append(f"Target '{leaves[prefix]}' is a parent of '{rule.target}'")
            parents.setdefault(prefix, rule.target)
        if leaf in parents:
            errors.append(f"Target '{rule.target}' is a parent of '{parents[leaf]}'")
        leaves.setdefault(leaf, rule.target)

    if errors:
        raise TargetConflictError(
            message=f"Outbound target conflicts: {len(errors)} found",
            details={"errors": errors},
        )


# =============================================================================
# Schema to Model Converters
# =============================================================================

def _convert_field_type(raw: str) -> FieldType:
    key = raw.strip()
    if key.lower() in FIELD_TYPE_ALIASES:
        return FIELD_TYPE_ALIASES[key.lower()]
    try:
        return FieldType(key.lower())
    except ValueError:
        raise PackValidationError(
            message=f"Unknown field type: {raw}",
            details={"type": raw, "available": [t.value for t in FieldType]},
        ) from None


def _convert_field(schema: FieldSchema, max_depth: int) -> FieldSpec:
    """Convert FieldSchema to FieldSpec."""
    rules = tuple(
        ValidationRule(
            rule=ValidationRuleType(r.rule),
            value=r.value,
            message=r.message,
        )
        for r in schema.validation
    )
    required = schema.required or any(r.rule == ValidationRuleType.REQUIRED for r in rules)
    return FieldSpec(
        id=schema.id,
        field_type=_convert_field_type(schema.type),
        name=schema.name or schema.id,
        label=schema.label,
        required=required,
        validation=rules,
        visible_when=parse_conditions(schema.conditions, max_depth),
        required_when=parse_conditions(schema.required_when, max_depth),
        default_value=schema.default_value,
        options=tuple(schema.options),
    )


def _convert_step(schema: StepSchema, max_depth: int) -> StepSpec:
    """Convert StepSchema to StepSpec."""
    return StepSpec(
        id=schema.id,
        name=schema.name or schema.id,
        order=schema.order,
        fields=tuple(_convert_field(f, max_depth) for f in schema.fields),
        visible_when=parse_conditions(schema.conditions, max_depth),
    )


def _convert_template(name: str, schema: ArrayTemplateSchema, max_depth: int) -> ArrayTemplateSpec:
    """Convert ArrayTemplateSchema to ArrayTemplateSpec."""
    return ArrayTemplateSpec(
        name=name,
        fields=tuple(_convert_field(f, max_depth) for f in schema.field_template),
        count_field=schema.count_field,
        min_count=schema.min_count,
        max_count=schema.max_count,
        default_count=schema.default_count,
        count_map=dict(schema.count_map),
        label_prefix=schema.label_prefix,
        step_id=schema.step,
    )


def _convert_source_condition(raw: Optional[str]) -> Optional[SourceCondition]:
    if raw is None:
        return None
    try:
        return SourceCondition(raw)
    except ValueError:
        raise UnknownSourceConditionError(
            message=f"Unknown source condition: {raw}",
            details={"condition": raw, "available": [c.value for c in SourceCondition]},
        ) from None


def _convert_candidate(schema: CandidateSchema, paths: PathCache) -> SourceCandidate:
    """Convert CandidateSchema to SourceCandidate, compiling its path."""
    return SourceCandidate(
        path=paths.compile(schema.path) if schema.path is not None else None,
        scope=SourceScope(schema.scope),
        condition=_convert_source_condition(schema.condition),
        transform=schema.transform,
        options=schema.options,
        default=schema.default if schema.has_default else ABSENT,
        required=schema.required,
    )


def _convert_rules(
    table: Mapping[str, RuleValue],
    paths: PathCache,
    compile_targets: bool,
) -> tuple[MappingRule, ...]:
    """Convert one direction's rule table, in declared order."""
    rules = []
    for target, raw in table.items():
        normalized = normalize_rule(raw)
        candidates = tuple(_convert_candidate(c, paths) for c in normalized.sources)

        for position, candidate in enumerate(candidates[:-1]):
            if candidate.has_default:
                logger.warning(
                    "Rule '%s': default at position %d shadows %d later candidate(s)",
                    target, position, len(candidates) - position - 1,
                )

        rule = MappingRule(target=target, candidates=candidates, required_flag=normalized.required)
        if compile_targets:
            # Syntax check; repetition markers are bound to index 0
            paths.compile(rule.target_for(0))
        rules.append(rule)
    return tuple(rules)


def _convert_form_pack(schema: FormPackSchema, max_depth: int) -> FormDefinition:
    """Convert FormPackSchema to FormDefinition."""
    paths = PathCache()
    steps = sorted(
        (_convert_step(s, max_depth) for s in schema.steps),
        key=lambda s: s.order,
    )
    transformations = TransformationSpec(
        inbound=_convert_rules(schema.transformations.inbound, paths, compile_targets=False),
        outbound=_convert_rules(schema.transformations.outbound, paths, compile_targets=True),
        paths=paths,
    )
    check_target_conflicts(transformations.outbound, paths)
    return FormDefinition(
        metadata=FormMetadata(
            id=schema.metadata.id,
            name=schema.metadata.name,
            version=schema.metadata.version,
            description=schema.metadata.description,
        ),
        steps=tuple(steps),
        array_templates=tuple(
            _convert_template(name, t, max_depth)
            for name, t in schema.array_templates.items()
        ),
        transformations=transformations,
    )


# =============================================================================
# Form Pack Loader
# =============================================================================

class FormPackLoader:
    """
    Loads form packs from YAML or JSON files.

    Usage:
        loader = FormPackLoader()
        form = loader.load("packs/simplified_application.yaml")
    """

    def __init__(
        self,
        strict_version: bool = True,
        max_condition_depth: int = DEFAULT_MAX_DEPTH,
        transforms: Union[TransformRegistry, Mapping[str, TransformFn], None] = None,
    ):
        """
        Initialize the loader.

        Args:
            strict_version: If True, reject packs with incompatible schema versions
            max_condition_depth: Deepest condition tree accepted
            transforms: Registry (or custom transforms) transform names are checked against
        """
        self.strict_version = strict_version
        self.max_condition_depth = max_condition_depth
        if isinstance(transforms, TransformRegistry):
            self.transforms = transforms
        else:
            self.transforms = TransformRegistry(transforms)

        self._forms: dict[str, FormDefinition] = {}

    def load(self, path: Union[str, Path]) -> FormDefinition:
        """
        Load a form pack from a file.

        Args:
            path: Path to YAML or JSON file

        Returns:
            Loaded FormDefinition

        Raises:
            PackLoadError: If file cannot be read
            PackValidationError: If validation fails
            PackVersionMismatch: If schema version incompatible
            ConfigurationError: For any other load-time check
        """
        path = Path(path)

        try:
            data = self._load_file(path)
        except (OSError, yaml.YAMLError, ValueError) as e:
            raise PackLoadError(
                message=f"Failed to load form pack: {e}",
                details={"path": str(path), "error": str(e)},
            ) from e

        return self.load_dict(data, source=str(path))

    def load_dict(self, data: Any, source: str = "") -> FormDefinition:
        """
        Load a form pack from an already decoded document.

        Args:
            data: Decoded YAML/JSON document
            source: Origin used in error details (file path)
        """
        if not isinstance(data, dict):
            raise PackLoadError(
                message="Form pack must be a mapping at the top level",
                details={"path": source, "type": type(data).__name__},
            )

        if self.strict_version and not check_schema_version(data):
            pack_version = data.get("schema_version", "unknown")
            raise PackVersionMismatch(
                message=f"Schema version mismatch: pack has {pack_version}, expected {SCHEMA_VERSION}",
                details={
                    "pack_version": pack_version,
                    "expected_version": SCHEMA_VERSION,
                    "path": source,
                },
            )

        try:
            schema = validate_form_pack(data)
        except ValidationError as e:
            raise PackValidationError(
                message=f"Form pack validation failed: {e.error_count()} errors",
                details={
                    "errors": e.errors(include_url=False, include_context=False),
                    "path": source,
                },
            ) from e

        form_id = schema.metadata.id
        try:
            form = _convert_form_pack(schema, self.max_condition_depth)
        except ConfigurationError as e:
            e.form_id = e.form_id or form_id
            e.details.setdefault("path", source)
            raise
        except ValueError as e:
            raise PackValidationError(
                message=f"Form pack validation failed: {e}",
                details={"path": source},
                form_id=form_id,
            ) from e

        validate_reference_integrity(form, source)
        self.transforms.check(form.transformations.transform_names, form_id=form_id)

        form = FormDefinition(
            metadata=form.metadata,
            steps=form.steps,
            array_templates=form.array_templates,
            transformations=form.transformations,
            pack_hash=compute_form_pack_hash(data),
        )

        self._forms[form.id] = form
        logger.info(
            "Loaded form pack %s v%s (%d steps, %d inbound, %d outbound rules)",
            form.id, form.metadata.version, len(form.steps),
            len(form.transformations.inbound), len(form.transformations.outbound),
            extra={"form_id": form.id, "pack_hash_short": form.pack_hash[:12]},
        )
        return form

    def _load_file(self, path: Path) -> Any:
        """Load data from YAML or JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in {".yaml", ".yml"}:
                return yaml.safe_load(f)
            elif path.suffix.lower() == ".json":
                return json.load(f)
            else:
                # JSON is a subset of YAML
                return yaml.safe_load(f)

    def get_form(self, form_id: str) -> Optional[FormDefinition]:
        """Get a cached form by ID."""
        return self._forms.get(form_id)

    def list_forms(self) -> list[str]:
        """List IDs of all loaded forms."""
        return list(self._forms.keys())


# =============================================================================
# Convenience Functions
# =============================================================================

def load_form_pack(path: Union[str, Path]) -> FormDefinition:
    """
    Load a form pack from a file.

    Convenience function that creates a temporary loader.
    """
    loader = FormPackLoader()
    return loader.load(path)


def load_form_pack_from_string(
    content: str,
    format: str = "yaml",
) -> FormDefinition:
    """
    Load a form pack from a string.

    Args:
        content: YAML or JSON string
        format: "yaml" or "json"

    Returns:
        Loaded FormDefinition
    """
    try:
        if format.lower() == "json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (yaml.YAMLError, ValueError) as e:
        raise PackLoadError(
            message=f"Failed to parse form pack: {e}",
            details={"format": format, "error": str(e)},
        ) from e
    return FormPackLoader().load_dict(data, source="<string>")
