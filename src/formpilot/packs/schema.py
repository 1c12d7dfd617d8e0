"""
FormPilot Form Pack Schemas

Pydantic models for validating form pack YAML/JSON files.

These schemas define the structure of form packs that can be loaded
at runtime. They map to the configuration models in formpilot.models.

Schema versioning:
- schema_version field tracks breaking changes
- Loaders should check version compatibility

Rendering hints on steps and fields (grid, placeholder, style, ...)
are accepted and ignored. Unknown top-level keys are rejected.
"""
from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# Schema Version
# =============================================================================

SCHEMA_VERSION = "1.0.0"


# =============================================================================
# Enums as Literals (for YAML validation)
# =============================================================================

SourceScopeValue = Literal["source", "context"]

ValidationRuleValue = Literal[
    "required", "minLength", "maxLength", "email",
    "phoneUS", "zipCode", "ssnFormat", "min", "max",
]

# Rules whose value must be numeric
NUMERIC_RULES = frozenset({"minLength", "maxLength", "min", "max"})


# =============================================================================
# Field and Step Schemas
# =============================================================================

class ValidationRuleSchema(BaseModel):
    """Schema for one field validation rule."""
    rule: ValidationRuleValue = Field(
        ..., validation_alias=AliasChoices("rule", "type"), description="Rule name"
    )
    value: Optional[Union[int, float, str]] = Field(None, description="Rule argument")
    message: Optional[str] = Field(None, description="Failure message")

    @model_validator(mode="after")
    def validate_value(self) -> "ValidationRuleSchema":
        if self.rule in NUMERIC_RULES:
            if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
                raise ValueError(f"Rule '{self.rule}' requires a numeric value")
        return self


class FieldSchema(BaseModel):
    """Schema for a form field (also used for array template fields)."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., min_length=1, description="Unique field identifier")
    name: Optional[str] = Field(None, description="Data name (defaults to id)")
    type: str = Field("text", description="Field type or widget name")
    label: str = Field(
        "", validation_alias=AliasChoices("label", "text"), description="Display label"
    )
    required: bool = Field(False, description="Static required flag")
    validation: list[ValidationRuleSchema] = Field(default_factory=list)
    conditions: Optional[Any] = Field(None, description="Visibility condition(s)")
    required_when: Optional[Any] = Field(None, alias="requiredWhen")
    default_value: Optional[Any] = Field(None, alias="defaultValue")
    options: list[Any] = Field(default_factory=list, description="Choice options")

    @field_validator("options")
    @classmethod
    def option_values(cls, v: list[Any]) -> list[Any]:
        """Options may be plain values or {value, label} objects."""
        return [o["value"] if isinstance(o, dict) and "value" in o else o for o in v]


class StepSchema(BaseModel):
    """Schema for one form step."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Unique step identifier")
    name: str = Field("", description="Display name")
    order: int = Field(0, description="Sort key")
    conditions: Optional[Any] = Field(None, description="Visibility condition(s)")
    fields: list[FieldSchema] = Field(default_factory=list)


class ArrayTemplateSchema(BaseModel):
    """Schema for a repeated entity template."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    min_count: int = Field(1, alias="minCount", ge=0)
    max_count: int = Field(1, alias="maxCount", ge=0)
    default_count: int = Field(1, alias="defaultCount", ge=0)
    count_field: str = Field(..., alias="countField", min_length=1)
    count_map: dict[str, int] = Field(default_factory=dict, alias="countMap")
    label_prefix: str = Field("", alias="labelPrefix")
    step: Optional[str] = Field(None, description="Host step id")
    field_template: list[FieldSchema] = Field(..., alias="fieldTemplate", min_length=1)

    @model_validator(mode="after")
    def validate_bounds(self) -> "ArrayTemplateSchema":
        if not self.min_count <= self.default_count <= self.max_count:
            raise ValueError(
                "expected minCount <= defaultCount <= maxCount, got "
                f"{self.min_count}/{self.default_count}/{self.max_count}"
            )
        return self


# =============================================================================
# Transformation Schemas
# =============================================================================

class CandidateSchema(BaseModel):
    """
    Schema for one source candidate.

    Keys other than the ones declared here are transform options
    (e.g. `field` for sequenceField).
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    path: Optional[str] = Field(None, description="Source path")
    scope: SourceScopeValue = Field("source", alias="from")
    condition: Optional[str] = Field(None, description="Named source condition")
    transform: Optional[str] = Field(
        None, validation_alias=AliasChoices("transform", "type")
    )
    default: Optional[Any] = Field(None, description="Literal default")
    required: bool = Field(False)

    @property
    def has_default(self) -> bool:
        """True when the pack declared a default (null included)."""
        return "default" in self.model_fields_set

    @property
    def options(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    @model_validator(mode="after")
    def validate_source(self) -> "CandidateSchema":
        if self.path is None and not self.has_default:
            raise ValueError("candidate requires a 'path' or a 'default'")
        return self


class MappingRuleSchema(BaseModel):
    """Schema for the `{required, sources}` rule form."""
    model_config = ConfigDict(extra="forbid")

    required: bool = False
    sources: list[CandidateSchema] = Field(..., min_length=1)


RuleValue = Union[str, list[CandidateSchema], MappingRuleSchema]


def normalize_rule(raw: RuleValue) -> MappingRuleSchema:
    """Bring the three rule forms to the `{required, sources}` form."""
    if isinstance(raw, MappingRuleSchema):
        return raw
    if isinstance(raw, str):
        return MappingRuleSchema(sources=[CandidateSchema(path=raw)])
    return MappingRuleSchema(sources=raw)


class TransformationsSchema(BaseModel):
    """Schema for the inbound and outbound rule tables."""
    model_config = ConfigDict(extra="forbid")

    inbound: dict[str, RuleValue] = Field(default_factory=dict)
    outbound: dict[str, RuleValue] = Field(default_factory=dict)


# =============================================================================
# Form Pack Schema
# =============================================================================

class MetadataSchema(BaseModel):
    """Schema for form identification."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    name: str = ""
    version: str = "1.0.0"
    description: str = ""


class FormPackSchema(BaseModel):
    """
    Schema for a complete form pack.

    A form pack contains:
    - Metadata (id, name, version)
    - Steps with their fields and visibility conditions
    - Array templates for repeated entities
    - Inbound and outbound transformation rules
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    schema_version: str = Field(SCHEMA_VERSION, description="Pack schema version")
    metadata: MetadataSchema
    steps: list[StepSchema] = Field(..., min_length=1)
    array_templates: dict[str, ArrayTemplateSchema] = Field(
        default_factory=dict, alias="arrayTemplates"
    )
    transformations: TransformationsSchema = Field(default_factory=TransformationsSchema)


# =============================================================================
# Validation Helpers
# =============================================================================

def validate_form_pack(data: dict[str, Any]) -> FormPackSchema:
    """
    Validate a form pack dictionary against the schema.

    Raises:
        pydantic.ValidationError: If validation fails
    """
    return FormPackSchema.model_validate(data)


def check_schema_version(data: dict[str, Any]) -> bool:
    """
    Check if a form pack's schema version is compatible.

    Only the major version has to match.
    """
    pack_version = str(data.get("schema_version", SCHEMA_VERSION))
    return pack_version.split(".")[0] == SCHEMA_VERSION.split(".")[0]
