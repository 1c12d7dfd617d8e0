"""
Tests for FormPilot Form Engine, Sessions and Catalog

Tests cover:
- Prefill and build against the example loan application pack
- Session initial values, mutation and validation
- Submission (field validation, required targets)
- Catalog loading and lookup
- Data preparation patterns applied before prefill
"""
from decimal import Decimal

import pytest

from formpilot.config import EngineOptions
from formpilot.engine import FormCatalog, FormEngine
from formpilot.exceptions import (
    FormNotFoundError,
    FormValidationError,
    RequiredFieldMissing,
    SessionClosedError,
    UnknownFieldError,
    UnknownPatternError,
    UnknownTransformError,
)
from formpilot.models import FailurePolicy

from tests.conftest import (
    APPLICATION_PACK,
    PACKS_DIR,
    make_candidate,
    make_field,
    make_form,
    make_rule,
    make_spec,
    make_step,
)


# =============================================================================
# Engine Tests
# =============================================================================

class TestPrefill:
    """Tests for inbound mapping through the engine."""

    def test_prefill_loan_record(self, application_engine, loan_record):
        data = application_engine.prefill(loan_record).data
        assert data["firstName"] == "Ana"
        assert data["lastName"] == "Rivera"
        assert data["email"] == "ana@example.com"
        assert data["mobile"] == "5550102030"
        assert data["applicationType"] == "joint"
        assert data["loanAmount"] == Decimal("250000")
        assert data["borrowers[0].legalName"] == "Ana Lopez"
        assert data["borrowers[1].legalName"] == "Ben Lopez"
        assert data["borrowers[1].ssn"] == "987-65-4321"
        assert data["jointPropertyCity"] == "Round Rock"

    def test_prefill_context_fallback(self, application_engine):
        result = application_engine.prefill({}, {"applicationType": "joint"})
        assert result.data["applicationType"] == "joint"
        assert result.data["firstName"] == ""

    def test_prefill_quoted_extension_path(self, application_engine):
        document = {
            "loanData": {"DEAL": {"EXTENSION": {"OTHER": {
                "saaf:DEAL_EXTENSION": {"saaf:ApplicationData": {"loanAmount": "1,500"}},
            }}}},
            "loan": {"amount": "$99"},
        }
        result = application_engine.prefill(document)
        assert result.data["loanAmount"] == Decimal("1500")

    def test_prefill_through_retail_pattern(self, application_form, saaf_loan_record):
        engine = FormEngine(application_form, pattern="retail")
        data = engine.prefill(saaf_loan_record).data
        assert data["firstName"] == "Dan"
        assert data["lastName"] == "Diaz"
        assert data["loanAmount"] == Decimal("300000")
        assert data["borrowers[0].legalName"] == "Cara Diaz"
        assert data["borrowers[1].legalName"] == "Dan Diaz"

    def test_session_opens_through_pattern(self, application_form, saaf_loan_record):
        engine = FormEngine(application_form, pattern="retail")
        session = engine.open_session(document=saaf_loan_record)
        assert session.get("firstName") == "Dan"

    def test_without_pattern_record_used_as_is(self, application_engine, saaf_loan_record):
        assert application_engine.prepare(saaf_loan_record) is saaf_loan_record
        assert application_engine.prefill(saaf_loan_record).data["firstName"] == ""


class TestBuild:
    """Tests for outbound mapping through the engine."""

    def test_missing_first_name(self, application_engine):
        with pytest.raises(RequiredFieldMissing) as exc_info:
            application_engine.build({"lastName": "Lopez", "loanAmount": 5000})
        assert exc_info.value.target_path == "borrower.personal.firstName"
        assert exc_info.value.form_id == "simplified-application"

    def test_build_target_document(self, application_engine):
        values = {
            "firstName": "Ana",
            "lastName": "Lopez",
            "applicationType": "joint",
            "loanAmount": Decimal("250000"),
            "borrowers[0].legalName": "Ana Lopez",
            "borrowers[1].legalName": "Ben Lopez",
        }
        result = application_engine.build(values, {"channel": "broker"})
        data = result.data
        assert data["borrower"]["personal"] == {"firstName": "Ana", "lastName": "Lopez"}
        assert data["application"] == {"type": "joint", "channel": "broker"}
        assert data["loan"] == {"amount": Decimal("250000")}
        assert data["borrowers"] == [{"fullName": "Ana Lopez"}, {"fullName": "Ben Lopez"}]

    def test_co_borrower_kept_when_first_name_missing(self, application_engine):
        values = {
            "firstName": "Ana",
            "lastName": "Lopez",
            "loanAmount": Decimal("250000"),
            "borrowers[0].ssn": "123-45-6789",
            "borrowers[1].legalName": "Ben Lopez",
        }
        data = application_engine.build(values).data
        assert data["borrowers"] == [
            {"ssn": "123-45-6789"},
            {"fullName": "Ben Lopez"},
        ]

    def test_collect_mode(self, application_engine):
        result = application_engine.build({}, raise_on_missing=False)
        assert [e.target_path for e in result.errors] == [
            "borrower.personal.firstName",
            "borrower.personal.lastName",
            "loan.amount",
        ]


class TestEngineSetup:
    """Tests for engine construction and one-shot helpers."""

    def test_unknown_transform_rejected(self):
        spec = make_spec(inbound=[make_rule("a", make_candidate("a", transform="shout"))])
        form = make_form([make_step("s", [make_field("a")])], transformations=spec)
        with pytest.raises(UnknownTransformError):
            FormEngine(form)

    def test_unknown_pattern_rejected(self, application_form):
        with pytest.raises(UnknownPatternError) as exc_info:
            FormEngine(application_form, pattern="wholesale")
        assert exc_info.value.form_id == "simplified-application"

    def test_custom_pattern(self, application_form):
        engine = FormEngine(
            application_form,
            pattern="nested",
            patterns={"nested": lambda record, ctx: record["payload"]},
        )
        data = engine.prefill({"payload": {"applicant": {"firstName": "Ana"}}}).data
        assert data["firstName"] == "Ana"

    def test_custom_transform(self):
        spec = make_spec(inbound=[make_rule("a", make_candidate("a", transform="shout"))])
        form = make_form([make_step("s", [make_field("a")])], transformations=spec)
        engine = FormEngine(form, transforms={"shout": lambda v, ctx: v.upper()})
        assert engine.prefill({"a": "hi"}).data == {"a": "HI"}

    def test_options_reach_evaluator(self, application_form):
        options = EngineOptions(failure_policy=FailurePolicy.CLOSED, max_condition_depth=8)
        evaluator = FormEngine(application_form, options).new_evaluator()
        assert evaluator.failure_policy == FailurePolicy.CLOSED
        assert evaluator.max_depth == 8

    def test_expand_templates(self, application_engine):
        instances = application_engine.expand_templates({"applicationType": "joint"})
        assert len(instances["borrowers"]) == 8

    def test_visibility(self, application_engine):
        state = application_engine.visibility({"applicationType": "individual"})
        assert not state.is_step_visible("jointProperty")
        assert state.is_field_visible("borrowers[0].legalName")
        assert state.is_required("borrowers[0].ssn")

    def test_legal_names(self, application_engine):
        assert application_engine.is_legal_name("borrowers[1].ssn")
        assert not application_engine.is_legal_name("borrowers[2].ssn")
        assert not application_engine.is_legal_name("nickname")
        assert not application_engine.is_legal_name("legalName")


# =============================================================================
# Session Tests
# =============================================================================

class TestSessionValues:
    """Tests for session initial values and mutation."""

    def test_defaults_only(self, application_engine):
        session = application_engine.open_session()
        assert dict(session.values) == {"applicationType": "individual"}
        assert not session.state.is_step_visible("jointProperty")

    def test_prefill_overrides_defaults(self, application_engine, loan_record):
        session = application_engine.open_session(document=loan_record)
        assert session.get("applicationType") == "joint"
        assert session.state.is_step_visible("jointProperty")

    def test_prefilled_none_keeps_default(self, application_engine):
        session = application_engine.open_session(document={"application": {}})
        assert session.get("applicationType") == "individual"
        assert "propertyCity" not in session.values

    def test_explicit_values_win(self, application_engine, loan_record):
        session = application_engine.open_session(
            initial_values={"applicationType": "individual"}, document=loan_record,
        )
        assert session.get("applicationType") == "individual"

    def test_set_field_value_returns_state(self, application_engine):
        session = application_engine.open_session()
        state = session.set_field_value("applicationType", "joint")
        assert state.is_step_visible("jointProperty")
        assert state.is_field_visible("borrowers[1].legalName")
        assert session.state is state

    def test_untracked_change_skips_recompute(self, application_engine):
        session = application_engine.open_session()
        before = session.resolver.recompute_count
        session.set_field_value("firstName", "Ana")
        assert session.resolver.recompute_count == before

    def test_set_values_and_clear(self, application_engine):
        session = application_engine.open_session()
        session.set_values({"livedMoreThan2Years": "no", "previousCity": "Dallas"})
        assert session.state.is_field_visible("previousCity")
        state = session.clear_field_value("livedMoreThan2Years")
        assert not state.is_field_visible("previousCity")

    def test_unknown_field(self, application_engine):
        session = application_engine.open_session()
        with pytest.raises(UnknownFieldError) as exc_info:
            session.set_field_value("nickname", "Annie")
        assert exc_info.value.details == {"field": "nickname"}
        assert "nickname" not in session.values

    def test_bare_template_field_id_rejected(self, application_engine):
        """Only instance ids name template values in a session."""
        session = application_engine.open_session()
        with pytest.raises(UnknownFieldError):
            session.set_field_value("legalName", "Ana Lopez")
        session.set_field_value("borrowers[0].legalName", "Ana Lopez")
        assert session.get("borrowers[0].legalName") == "Ana Lopez"

    def test_unknown_initial_value(self, application_engine):
        with pytest.raises(UnknownFieldError):
            application_engine.open_session(initial_values={"nickname": "Annie"})

    def test_values_are_read_only(self, application_engine):
        session = application_engine.open_session()
        with pytest.raises(TypeError):
            session.values["firstName"] = "Ana"

    def test_close(self, application_engine):
        session = application_engine.open_session()
        session.close()
        assert session.closed
        assert dict(session.values) == {}
        with pytest.raises(SessionClosedError):
            session.set_field_value("firstName", "Ana")


class TestSessionValidation:
    """Tests for per-step validation."""

    def test_step_validation(self, application_engine):
        session = application_engine.open_session()
        session.set_values({"firstName": "", "email": "not-an-email"})
        report = session.validate("personalInfo")
        failed = {(e.field_id, e.rule.value) for e in report.errors}
        assert ("firstName", "required") in failed
        assert ("lastName", "required") in failed
        assert ("email", "email") in failed
        assert "propertyCity" not in report.checked

    def test_borrower_instances_validated_in_host_step(self, application_engine):
        session = application_engine.open_session(initial_values={"applicationType": "joint"})
        session.set_values({
            "borrowers[0].legalName": "Ana Lopez",
            "borrowers[0].ssn": "123-45-6789",
            "borrowers[1].legalName": "Ben Lopez",
            "borrowers[1].ssn": "12345",
        })
        report = session.validate("borrowerDetails")
        assert [(e.field_id, e.rule.value) for e in report.errors] == [
            ("borrowers[1].ssn", "ssnFormat"),
        ]

    def test_hidden_step_reports_nothing(self, application_engine):
        session = application_engine.open_session()
        assert session.validate("jointProperty").is_valid

    def test_unknown_step(self, application_engine):
        session = application_engine.open_session()
        with pytest.raises(UnknownFieldError):
            session.validate("summary")


class TestSessionSubmit:
    """Tests for submission."""

    def test_submit_prefilled_record(self, application_engine, loan_record):
        session = application_engine.open_session(document=loan_record)
        result = session.submit()
        data = result.data
        assert data["borrower"]["personal"]["firstName"] == "Ana"
        assert data["borrower"]["personal"]["mobile"] == "5550102030"
        assert data["application"] == {"type": "joint", "channel": "web"}
        assert data["borrowers"] == [
            {"fullName": "Ana Lopez", "ssn": "123-45-6789"},
            {"fullName": "Ben Lopez", "ssn": "987-65-4321"},
        ]
        assert data["jointBorrower"]["property"]["current"]["city"] == "Round Rock"
        assert "downPayment" not in data["loan"]

    def test_submit_blocked_by_field_errors(self, application_engine):
        session = application_engine.open_session()
        with pytest.raises(FormValidationError) as exc_info:
            session.submit()
        fields = {e["field"] for e in exc_info.value.errors}
        assert {"firstName", "lastName", "loanAmount"} <= fields
        assert exc_info.value.to_dict()["code"] == "FP_FORM_INVALID"

    def test_submit_without_field_checks(self, application_engine):
        session = application_engine.open_session()
        with pytest.raises(RequiredFieldMissing):
            session.submit(check_fields=False)

    def test_submit_after_close(self, application_engine):
        session = application_engine.open_session()
        session.close()
        with pytest.raises(SessionClosedError):
            session.submit()


# =============================================================================
# Catalog Tests
# =============================================================================

class TestFormCatalog:
    """Tests for loading packs into a catalog."""

    def test_load_and_get(self):
        catalog = FormCatalog()
        engine = catalog.load(APPLICATION_PACK)
        assert catalog.get_engine("simplified-application") is engine
        assert catalog.list_forms() == ["simplified-application"]

    def test_load_directory(self):
        catalog = FormCatalog()
        engines = catalog.load_directory(PACKS_DIR)
        assert [e.form.id for e in engines] == ["simplified-application"]

    def test_form_not_found(self):
        catalog = FormCatalog()
        catalog.load(APPLICATION_PACK)
        with pytest.raises(FormNotFoundError) as exc_info:
            catalog.get_engine("refinance")
        assert exc_info.value.details["available"] == ["simplified-application"]

    def test_replacing_form_warns(self, application_form, caplog):
        catalog = FormCatalog()
        catalog.add(application_form)
        with caplog.at_level("WARNING", logger="formpilot.engine.form_engine"):
            catalog.add(application_form)
        assert "Replacing loaded form simplified-application" in caplog.text

    def test_load_with_pattern(self, saaf_loan_record):
        catalog = FormCatalog()
        engine = catalog.load(APPLICATION_PACK, pattern="retail")
        assert engine.pattern == "retail"
        assert engine.prefill(saaf_loan_record).data["firstName"] == "Dan"
