"""
Tests for FormPilot Inbound Mapper

Tests cover:
- Single-path resolution
- First-match-wins candidate chains with named conditions
- Literal defaults and context-scoped candidates
- resolve_all: absent fields, provenance and repeated targets
"""
from decimal import Decimal

import pytest

from formpilot.engine.inbound_mapper import InboundMapper, resolve_all, resolve_field
from formpilot.engine.source_resolver import check_source_condition
from formpilot.models import SourceCondition, SourceScope
from formpilot.paths import ABSENT

from tests.conftest import make_candidate, make_rule, make_spec


@pytest.fixture
def mapper():
    """Create an inbound mapper with built-in transforms."""
    return InboundMapper()


# =============================================================================
# Named Source Condition Tests
# =============================================================================

class TestSourceConditions:
    """Tests for check_source_condition."""

    @pytest.mark.parametrize("condition,value,expected", [
        (SourceCondition.NOT_EMPTY, "joint", True),
        (SourceCondition.NOT_EMPTY, "", False),
        (SourceCondition.NOT_EMPTY, 0, False),
        (SourceCondition.NOT_EMPTY, ABSENT, False),
        (SourceCondition.NOT_EMPTY, [], True),
        (SourceCondition.ARRAY_NOT_EMPTY, [1], True),
        (SourceCondition.ARRAY_NOT_EMPTY, [], False),
        (SourceCondition.ARRAY_NOT_EMPTY, "abc", False),
        (SourceCondition.EXISTS, "", True),
        (SourceCondition.EXISTS, None, False),
        (SourceCondition.OBJECT_NOT_EMPTY, {"a": 1}, True),
        (SourceCondition.OBJECT_NOT_EMPTY, {}, False),
        (SourceCondition.OBJECT_NOT_EMPTY, [1], False),
    ])
    def test_named_conditions(self, condition, value, expected):
        assert check_source_condition(value, condition) is expected

    def test_no_condition_accepts_any_present_value(self):
        assert check_source_condition("", None) is True
        assert check_source_condition(False, None) is True
        assert check_source_condition(None, None) is False
        assert check_source_condition(ABSENT, None) is False


# =============================================================================
# resolve_field Tests
# =============================================================================

class TestResolveField:
    """Tests for single-rule resolution."""

    def test_single_path(self, mapper):
        """A plain path reads the nested value."""
        rule = make_rule("b", make_candidate("a.b"))
        assert mapper.resolve_field(rule, {"a": {"b": "x"}}) == "x"

    def test_first_satisfied_candidate_wins(self, mapper):
        """Earlier candidates failing their condition fall through."""
        rule = make_rule(
            "applicationType",
            make_candidate("p1", condition=SourceCondition.NOT_EMPTY),
            make_candidate("p2", condition=SourceCondition.NOT_EMPTY),
            make_candidate(default=""),
        )
        assert mapper.resolve_field(rule, {"p2": "joint"}) == "joint"

    def test_earlier_candidate_preferred(self, mapper):
        rule = make_rule(
            "name",
            make_candidate("p1", condition=SourceCondition.NOT_EMPTY),
            make_candidate("p2", condition=SourceCondition.NOT_EMPTY),
        )
        assert mapper.resolve_field(rule, {"p1": "first", "p2": "second"}) == "first"

    def test_default_returned_exactly(self, mapper):
        """A reached default is returned as declared, without transforms."""
        rule = make_rule(
            "firstName",
            make_candidate("p1", condition=SourceCondition.NOT_EMPTY),
            make_candidate(default=""),
        )
        assert mapper.resolve_field(rule, {"p1": ""}) == ""

    def test_default_none_is_a_value(self, mapper):
        rule = make_rule("x", make_candidate(default=None))
        assert mapper.resolve_field(rule, {}) is None

    def test_no_match_is_absent(self, mapper):
        rule = make_rule("x", make_candidate("missing.path"))
        assert mapper.resolve_field(rule, {"other": 1}) is ABSENT

    def test_stored_none_skipped_without_condition(self, mapper):
        rule = make_rule("x", make_candidate("a"), make_candidate("b"))
        assert mapper.resolve_field(rule, {"a": None, "b": "fallback"}) == "fallback"

    def test_transform_applied_to_accepted_value(self, mapper):
        rule = make_rule("mobile", make_candidate("phone", transform="formatPhone"))
        assert mapper.resolve_field(rule, {"phone": "(555) 010-2030"}) == "5550102030"

    def test_transform_options(self, mapper):
        rule = make_rule(
            "names",
            make_candidate("borrowers", transform="sequenceField", field="firstName"),
        )
        document = {"borrowers": [{"firstName": "Ana"}, {"firstName": "Ben"}]}
        assert mapper.resolve_field(rule, document) == ["Ana", "Ben"]

    def test_context_scope(self, mapper):
        """Context-scoped candidates read the auxiliary document."""
        rule = make_rule(
            "channel",
            make_candidate("channel", condition=SourceCondition.NOT_EMPTY),
            make_candidate("session.channel", scope=SourceScope.CONTEXT),
        )
        context = {"session": {"channel": "broker"}}
        assert mapper.resolve_field(rule, {}, context) == "broker"

    def test_context_scope_without_context(self, mapper):
        rule = make_rule("channel", make_candidate("channel", scope=SourceScope.CONTEXT))
        assert mapper.resolve_field(rule, {"channel": "web"}) is ABSENT

    def test_module_function(self):
        rule = make_rule("b", make_candidate("a.b"))
        assert resolve_field(rule, {"a": {"b": "x"}}) == "x"


# =============================================================================
# resolve_all Tests
# =============================================================================

class TestResolveAll:
    """Tests for resolving a whole inbound spec."""

    @pytest.fixture
    def spec(self):
        return make_spec(inbound=[
            make_rule(
                "firstName",
                make_candidate("primaryBorrower.firstName", condition=SourceCondition.NOT_EMPTY),
                make_candidate("applicant.firstName", condition=SourceCondition.NOT_EMPTY),
                make_candidate(default=""),
            ),
            make_rule("city", make_candidate("property.current.city")),
            make_rule(
                "loanAmount",
                make_candidate("loan.amount", transform="formatCurrency"),
            ),
        ])

    def test_values_and_provenance(self, mapper, spec):
        document = {
            "applicant": {"firstName": "Ana"},
            "loan": {"amount": "$250,000"},
        }
        result = mapper.resolve_all(spec, document)

        assert result.data == {
            "firstName": "Ana",
            "city": None,
            "loanAmount": Decimal("250000"),
        }
        assert result.resolved_from == {"firstName": 1, "loanAmount": 0}
        assert result.absent == ["city"]
        assert result.defaulted == []

    def test_defaults_recorded(self, mapper, spec):
        result = mapper.resolve_all(spec, {})
        assert result.data["firstName"] == ""
        assert result.defaulted == ["firstName"]
        assert result.absent == ["city", "loanAmount"]

    def test_targets_in_declared_order(self, mapper, spec):
        result = mapper.resolve_all(spec, {})
        assert list(result.data) == ["firstName", "city", "loanAmount"]

    def test_repeated_target_fans_out(self, mapper):
        """A sequence fills one flat key per element."""
        spec = make_spec(inbound=[
            make_rule("borrowers[*].firstName", make_candidate("borrowers[*].firstName")),
            make_rule("phone{index}", make_candidate("phones")),
        ])
        document = {
            "borrowers": [{"firstName": "Ana"}, {"firstName": "Ben"}],
            "phones": ["111", "222"],
        }
        result = mapper.resolve_all(spec, document)
        assert result.data == {
            "borrowers[0].firstName": "Ana",
            "borrowers[1].firstName": "Ben",
            "phone1": "111",
            "phone2": "222",
        }

    def test_repeated_target_scalar_goes_to_first_index(self, mapper):
        spec = make_spec(inbound=[make_rule("phone{index}", make_candidate("phone"))])
        result = mapper.resolve_all(spec, {"phone": "111"})
        assert result.data == {"phone1": "111"}

    def test_absent_repeated_target_stores_nothing(self, mapper):
        spec = make_spec(inbound=[
            make_rule("borrowers[*].firstName", make_candidate("borrowers[*].firstName")),
        ])
        result = mapper.resolve_all(spec, {})
        assert result.data == {}
        assert result.absent == ["borrowers[*].firstName"]

    def test_summary(self, mapper, spec):
        summary = mapper.resolve_all(spec, {}).to_summary()
        assert summary == {
            "direction": "inbound",
            "resolved": 1,
            "defaulted": 1,
            "absent": 2,
            "error_count": 0,
        }

    def test_module_function(self, spec):
        assert resolve_all(spec, {"property": {"current": {"city": "Austin"}}}).data["city"] == "Austin"
