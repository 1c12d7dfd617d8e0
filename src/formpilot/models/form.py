"""
FormPilot Form Models

Immutable configuration of a multi-step form: fields, steps, repeated
entity templates and the loaded form definition that ties them to
the mapping rules.

Flat form values are keyed by field id. Fields expanded from an array
template are keyed "<template>[<i>].<fieldId>".
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from .conditions import ConditionNode
from .enums import FieldType, ValidationRuleType
from .mapping import TransformationSpec


# =============================================================================
# Fields
# =============================================================================

@dataclass(frozen=True)
class ValidationRule:
    """
    One field-level validation rule.

    Attributes:
        rule: Rule type
        value: Rule argument (length or bound), if the rule takes one
        message: Message shown when the rule fails
    """
    rule: ValidationRuleType
    value: Any = None
    message: Optional[str] = None


@dataclass(frozen=True)
class FieldSpec:
    """
    A single form field.

    Attributes:
        id: Unique identifier, also the flat value key
        field_type: Type tag
        name: Data name (defaults to id)
        label: Display label
        required: Static required flag
        validation: Validation rules checked on submission
        visible_when: Visibility condition (None = always visible)
        required_when: Requiredness condition (None = use static flag)
        default_value: Initial value for new sessions
        options: Allowed values for choice fields
        template: Array template name, for expanded instances
        index: Instance index, for expanded instances
    """
    id: str
    field_type: FieldType = FieldType.TEXT
    name: str = ""
    label: str = ""
    required: bool = False
    validation: tuple[ValidationRule, ...] = ()
    visible_when: Optional[ConditionNode] = None
    required_when: Optional[ConditionNode] = None
    default_value: Any = None
    options: tuple[Any, ...] = ()
    template: Optional[str] = None
    index: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("FieldSpec requires an id")
        if not self.name:
            object.__setattr__(self, "name", self.id)

    @property
    def is_label(self) -> bool:
        return self.field_type == FieldType.LABEL

    @property
    def conditions(self) -> tuple[ConditionNode, ...]:
        """Every condition tree attached to this field."""
        return tuple(c for c in (self.visible_when, self.required_when) if c is not None)


# =============================================================================
# Steps
# =============================================================================

@dataclass(frozen=True)
class StepSpec:
    """
    An ordered group of fields shown together.

    Attributes:
        id: Unique step identifier
        name: Display name
        order: Sort key among steps
        fields: Fields in display order
        visible_when: Step visibility condition (None = always visible)
    """
    id: str
    name: str = ""
    order: int = 0
    fields: tuple[FieldSpec, ...] = ()
    visible_when: Optional[ConditionNode] = None

    @property
    def field_ids(self) -> tuple[str, ...]:
        return tuple(f.id for f in self.fields)


# =============================================================================
# Array Templates
# =============================================================================

@dataclass(frozen=True)
class ArrayTemplateSpec:
    """
    A field set repeated once per instance of an entity (e.g. borrower).

    Attributes:
        name: Template name, prefix of instance ids
        fields: Template fields (ids are template-local)
        count_field: Form value controlling the instance count
        min_count: Lower bound on instances
        max_count: Upper bound on instances
        default_count: Fallback when the count value is unusable
        count_map: External value -> count (e.g. {"joint": 2})
        label_prefix: Prefix for labels of instances after the first
        step_id: Host step (None = the step declaring count_field)
    """
    name: str
    fields: tuple[FieldSpec, ...]
    count_field: str
    min_count: int = 1
    max_count: int = 1
    default_count: int = 1
    count_map: dict[str, int] = field(default_factory=dict)
    label_prefix: str = ""
    step_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.min_count < 0:
            raise ValueError(f"Template '{self.name}': minCount must be >= 0")
        if not self.min_count <= self.default_count <= self.max_count:
            raise ValueError(
                f"Template '{self.name}': expected minCount <= defaultCount <= maxCount, "
                f"got {self.min_count}/{self.default_count}/{self.max_count}"
            )

    @property
    def field_ids(self) -> tuple[str, ...]:
        return tuple(f.id for f in self.fields)

    def instance_id(self, index: int, field_id: str) -> str:
        return f"{self.name}[{index}].{field_id}"

    def instance_ids(self, upto: Optional[int] = None) -> list[str]:
        """Every instance id for indices below upto (default max_count)."""
        limit = self.max_count if upto is None else upto
        return [
            self.instance_id(i, fid)
            for i in range(limit)
            for fid in self.field_ids
        ]


# =============================================================================
# Form Definition
# =============================================================================

@dataclass(frozen=True)
class FormMetadata:
    """Identification of a form configuration."""
    id: str
    name: str = ""
    version: str = "1.0.0"
    description: str = ""


@dataclass(frozen=True)
class FormDefinition:
    """
    A loaded, validated form configuration.

    Immutable and safe to share across sessions.
    """
    metadata: FormMetadata
    steps: tuple[StepSpec, ...]
    array_templates: tuple[ArrayTemplateSpec, ...] = ()
    transformations: TransformationSpec = field(default_factory=TransformationSpec)
    pack_hash: str = ""

    @property
    def id(self) -> str:
        return self.metadata.id

    def iter_fields(self) -> Iterator[tuple[StepSpec, FieldSpec]]:
        """Every statically declared field with its step, in order."""
        for step in self.steps:
            for f in step.fields:
                yield step, f

    @property
    def field_ids(self) -> tuple[str, ...]:
        return tuple(f.id for _, f in self.iter_fields())

    def get_step(self, step_id: str) -> Optional[StepSpec]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def get_field(self, field_id: str) -> Optional[FieldSpec]:
        for _, f in self.iter_fields():
            if f.id == field_id:
                return f
        return None

    def get_template(self, name: str) -> Optional[ArrayTemplateSpec]:
        for template in self.array_templates:
            if template.name == name:
                return template
        return None

    def step_of(self, field_id: str) -> Optional[StepSpec]:
        for step, f in self.iter_fields():
            if f.id == field_id:
                return step
        return None

    def host_step(self, template: ArrayTemplateSpec) -> Optional[StepSpec]:
        """Step that shows a template's instances."""
        if template.step_id:
            return self.get_step(template.step_id)
        return self.step_of(template.count_field)

    def legal_names(self, template: Optional[ArrayTemplateSpec] = None) -> frozenset[str]:
        """
        Every name a condition or session may refer to.

        Declared field ids and every instance id below each template's
        max_count. Bare template-local ids are added only for the given
        template, whose own conditions may use them.
        """
        names = set(self.field_ids)
        for t in self.array_templates:
            names.update(t.instance_ids())
        if template is not None:
            names.update(template.field_ids)
        return frozenset(names)


# =============================================================================
# Visibility State
# =============================================================================

@dataclass(frozen=True)
class VisibilityState:
    """
    Visible and required sets for one set of form values.

    Identifiers are kept in declaration order.
    """
    visible_steps: tuple[str, ...] = ()
    visible_fields: tuple[str, ...] = ()
    required_fields: tuple[str, ...] = ()
    signature: str = ""

    def is_step_visible(self, step_id: str) -> bool:
        return step_id in self.visible_steps

    def is_field_visible(self, field_id: str) -> bool:
        return field_id in self.visible_fields

    def is_required(self, field_id: str) -> bool:
        return field_id in self.required_fields

    def to_dict(self) -> dict[str, Any]:
        return {
            "visible_steps": list(self.visible_steps),
            "visible_fields": list(self.visible_fields),
            "required_fields": list(self.required_fields),
        }
