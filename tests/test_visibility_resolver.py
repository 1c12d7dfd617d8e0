"""
Tests for FormPilot Visibility Resolver

Tests cover:
- Step and field visibility
- Static and conditional requiredness
- Template instances shown in their host step
- Selective recomputation (memoized by dependency signature)
"""
import pytest

from formpilot.engine.visibility_resolver import VisibilityResolver
from formpilot.models import EQ, GT, FieldType

from tests.conftest import make_field, make_form, make_step, make_template


@pytest.fixture
def form():
    """Two-step form with a conditional joint step and a borrower template."""
    personal = make_step("personal", [
        make_field("applicationType", FieldType.CHOICE, required=True),
        make_field("lived", FieldType.CHOICE, required=True),
        make_field("previousLabel", FieldType.LABEL, required=True,
                   visible_when=EQ("lived", "no")),
        make_field("previousCity", required=True, visible_when=EQ("lived", "no")),
        make_field("loanAmount", FieldType.CURRENCY),
        make_field("downPayment", FieldType.CURRENCY, required=True,
                   required_when=GT("loanAmount", 500000)),
    ], order=1)
    joint = make_step("joint", [
        make_field("jointCity", required=True),
    ], visible_when=EQ("applicationType", "joint"), order=2)
    borrowers = make_template(fields=[
        make_field("firstName", label="First Name", required=True),
        make_field("ownsOther"),
        make_field("otherCount", visible_when=EQ("ownsOther", "yes"),
                   required_when=EQ("ownsOther", "yes")),
    ])
    return make_form([personal, joint], templates=[borrowers])


@pytest.fixture
def resolver(form):
    return VisibilityResolver(form)


# =============================================================================
# Visibility Tests
# =============================================================================

class TestVisibility:
    """Tests for visible steps and fields."""

    def test_individual(self, resolver):
        state = resolver.recompute({"applicationType": "individual", "lived": "yes"})
        assert state.visible_steps == ("personal",)
        assert state.visible_fields == (
            "applicationType",
            "lived",
            "loanAmount",
            "downPayment",
            "borrowers[0].firstName",
            "borrowers[0].ownsOther",
        )

    def test_joint_shows_step_and_second_instance(self, resolver):
        state = resolver.recompute({"applicationType": "joint", "lived": "yes"})
        assert state.visible_steps == ("personal", "joint")
        assert state.is_field_visible("borrowers[1].firstName")
        assert state.is_field_visible("jointCity")
        assert state.is_required("jointCity")

    def test_hidden_step_hides_its_fields(self, resolver):
        state = resolver.recompute({"applicationType": "individual"})
        assert not state.is_step_visible("joint")
        assert not state.is_field_visible("jointCity")
        assert not state.is_required("jointCity")

    def test_field_condition(self, resolver):
        state = resolver.recompute({"lived": "no"})
        assert state.is_field_visible("previousCity")
        assert state.is_field_visible("previousLabel")

    def test_instance_condition_uses_own_instance(self, resolver):
        state = resolver.recompute({
            "applicationType": "joint",
            "borrowers[0].ownsOther": "no",
            "borrowers[1].ownsOther": "yes",
        })
        assert not state.is_field_visible("borrowers[0].otherCount")
        assert state.is_field_visible("borrowers[1].otherCount")
        assert state.is_required("borrowers[1].otherCount")

    def test_to_dict(self, resolver):
        payload = resolver.recompute({}).to_dict()
        assert set(payload) == {"visible_steps", "visible_fields", "required_fields"}


# =============================================================================
# Requiredness Tests
# =============================================================================

class TestRequiredness:
    """Tests for required fields."""

    def test_static_required(self, resolver):
        state = resolver.recompute({"applicationType": "individual"})
        assert state.required_fields == (
            "applicationType",
            "lived",
            "borrowers[0].firstName",
        )

    def test_label_never_required(self, resolver):
        state = resolver.recompute({"lived": "no"})
        assert state.is_field_visible("previousLabel")
        assert not state.is_required("previousLabel")
        assert state.is_required("previousCity")

    def test_required_when_overrides_static_flag(self, resolver):
        assert not resolver.recompute({"loanAmount": 250000}).is_required("downPayment")
        assert resolver.recompute({"loanAmount": 750000}).is_required("downPayment")

    def test_required_when_on_missing_value(self, resolver):
        assert not resolver.recompute({}).is_required("downPayment")


# =============================================================================
# Selective Recomputation Tests
# =============================================================================

class TestSelectiveRecompute:
    """Full passes run only when a tracked value changes."""

    def test_untracked_change_reuses_state(self, resolver):
        first = resolver.recompute({"applicationType": "joint", "jointCity": "Austin"})
        second = resolver.recompute({"applicationType": "joint", "jointCity": "Dallas"})
        assert second is first
        assert resolver.recompute_count == 1

    def test_tracked_change_recomputes(self, resolver):
        resolver.recompute({"applicationType": "individual"})
        state = resolver.recompute({"applicationType": "joint"})
        assert resolver.recompute_count == 2
        assert state.is_step_visible("joint")

    def test_instance_fields_are_tracked(self, resolver):
        values = {"applicationType": "joint", "borrowers[1].ownsOther": "no"}
        resolver.recompute(values)
        state = resolver.recompute({**values, "borrowers[1].ownsOther": "yes"})
        assert resolver.recompute_count == 2
        assert state.is_field_visible("borrowers[1].otherCount")

    def test_tracked_names(self, resolver):
        assert resolver.tracked == frozenset({
            "applicationType", "lived", "loanAmount",
        })

    def test_invalidate(self, resolver):
        values = {"applicationType": "individual"}
        resolver.recompute(values)
        resolver.invalidate()
        resolver.recompute(values)
        assert resolver.recompute_count == 2

    def test_same_result_as_fresh_pass(self, form, resolver):
        values = {"applicationType": "joint", "lived": "no", "loanAmount": 600000}
        resolver.recompute({"applicationType": "individual"})
        incremental = resolver.recompute(values)
        fresh = VisibilityResolver(form).recompute(values)
        assert incremental == fresh


class TestFieldSpecs:
    """Tests for current field lookup."""

    def test_includes_instances(self, resolver):
        specs = resolver.field_specs({"applicationType": "joint"})
        assert "borrowers[1].otherCount" in specs
        assert specs["borrowers[1].firstName"].label == "Co-First Name"

    def test_step_fields_appends_instances_to_host(self, form, resolver):
        step = form.get_step("personal")
        ids = [f.id for f in resolver.step_fields(step, {})]
        assert ids[-3:] == [
            "borrowers[0].firstName",
            "borrowers[0].ownsOther",
            "borrowers[0].otherCount",
        ]
