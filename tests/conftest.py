"""
Pytest configuration and fixtures for FormPilot tests.

Provides helper factories and common fixtures matching actual model definitions.
"""
from pathlib import Path

import pytest

from formpilot.engine import FormEngine
from formpilot.models import (
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
)
from formpilot.packs import FormPackLoader
from formpilot.paths import ABSENT, PathCache


PACKS_DIR = Path(__file__).resolve().parent.parent / "packs"
APPLICATION_PACK = PACKS_DIR / "simplified_application.yaml"


# =============================================================================
# Factory Helpers
# =============================================================================

_paths = PathCache()


def make_field(
    field_id: str,
    field_type: FieldType = FieldType.TEXT,
    label: str = "",
    required: bool = False,
    validation: list = None,
    visible_when=None,
    required_when=None,
    default_value=None,
    options: tuple = (),
) -> FieldSpec:
    """Create a FieldSpec with sensible defaults."""
    return FieldSpec(
        id=field_id,
        field_type=field_type,
        label=label or field_id,
        required=required,
        validation=tuple(validation or ()),
        visible_when=visible_when,
        required_when=required_when,
        default_value=default_value,
        options=options,
    )


def make_rule_spec(rule: str, value=None, message: str = None) -> ValidationRule:
    """Create a ValidationRule from its pack name."""
    return ValidationRule(rule=ValidationRuleType(rule), value=value, message=message)


def make_step(
    step_id: str,
    fields: list,
    visible_when=None,
    order: int = 0,
) -> StepSpec:
    """Create a StepSpec."""
    return StepSpec(
        id=step_id,
        name=step_id,
        order=order,
        fields=tuple(fields),
        visible_when=visible_when,
    )


def make_template(
    name: str = "borrowers",
    fields: list = None,
    count_field: str = "applicationType",
    min_count: int = 1,
    max_count: int = 2,
    default_count: int = 1,
    count_map: dict = None,
    label_prefix: str = "Co-",
    step_id: str = None,
) -> ArrayTemplateSpec:
    """Create an ArrayTemplateSpec (borrower / co-borrower by default)."""
    if fields is None:
        fields = [make_field("firstName", label="First Name", required=True)]
    if count_map is None:
        count_map = {"individual": 1, "joint": 2}
    return ArrayTemplateSpec(
        name=name,
        fields=tuple(fields),
        count_field=count_field,
        min_count=min_count,
        max_count=max_count,
        default_count=default_count,
        count_map=count_map,
        label_prefix=label_prefix,
        step_id=step_id,
    )


def make_candidate(
    path: str = None,
    scope: SourceScope = SourceScope.SOURCE,
    condition: SourceCondition = None,
    transform: str = None,
    default=ABSENT,
    required: bool = False,
    **options,
) -> SourceCandidate:
    """Create a SourceCandidate; extra keyword arguments become transform options."""
    return SourceCandidate(
        path=_paths.compile(path) if path is not None else None,
        scope=scope,
        condition=condition,
        transform=transform,
        options=options,
        default=default,
        required=required,
    )


def make_rule(target: str, *candidates: SourceCandidate, required: bool = False) -> MappingRule:
    """Create a MappingRule from candidates in priority order."""
    return MappingRule(target=target, candidates=tuple(candidates), required_flag=required)


def make_spec(inbound: list = None, outbound: list = None) -> TransformationSpec:
    """Create a TransformationSpec with its own path cache."""
    return TransformationSpec(
        inbound=tuple(inbound or ()),
        outbound=tuple(outbound or ()),
        paths=PathCache(),
    )


def make_form(
    steps: list,
    templates: list = None,
    transformations: TransformationSpec = None,
    form_id: str = "test-form",
) -> FormDefinition:
    """Create a FormDefinition."""
    return FormDefinition(
        metadata=FormMetadata(id=form_id, name=form_id),
        steps=tuple(steps),
        array_templates=tuple(templates or ()),
        transformations=transformations or make_spec(),
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def application_form() -> FormDefinition:
    """The example loan application pack."""
    return FormPackLoader().load(APPLICATION_PACK)


@pytest.fixture
def application_engine(application_form) -> FormEngine:
    """Engine serving the example loan application pack."""
    return FormEngine(application_form)


@pytest.fixture
def loan_record() -> dict:
    """Source document shaped like an upstream loan record."""
    return {
        "primaryBorrower": {"firstName": "", "lastName": "Rivera"},
        "applicant": {"firstName": "Ana", "lastName": "Lopez"},
        "borrower": {"personal": {"email": "  ana@example.com ", "mobile": "+1 (555) 010-2030"}},
        "application": {"type": "joint"},
        "property": {
            "current": {"city": "Austin", "state": "TX", "zip": "73301"},
            "residencyInfo": {"livedMoreThan2Years": "no"},
            "previous": {"city": "Dallas", "state": "TX"},
        },
        "loan": {"amount": "$250,000"},
        "borrowers": [
            {"fullName": "Ana Lopez", "ssn": "123-45-6789"},
            {"fullName": "Ben Lopez", "ssn": "987-65-4321"},
        ],
        "jointBorrower": {
            "property": {
                "current": {"city": "Round Rock"},
                "residencyInfo": {"livedMoreThan2Years": "yes"},
            }
        },
    }


@pytest.fixture
def saaf_loan_record() -> dict:
    """Retail loan record carrying borrowers in the SAAF deal extension."""
    return {"DEAL": {"EXTENSION": {"OTHER": {"saaf:DEAL_EXTENSION": {
        "saaf:ApplicationData": {
            "loanAmount": "$300,000",
            "borrowers": [
                {"firstName": "Cara", "lastName": "Diaz", "fullName": "Cara Diaz", "ssn": "111-22-3333"},
                {"firstName": "Dan", "lastName": "Diaz", "fullName": "Dan Diaz",
                 "ssn": "444-55-6666", "borrowerType": "primary"},
            ],
        },
    }}}}}
