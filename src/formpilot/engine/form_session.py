"""
FormPilot Form Session

Owns the single mutable piece of state in the engine: the flat value
store of one user's form. Every mutation goes through
set_field_value(), which returns the visibility state for the new
values (recomputed only when a tracked value changed).

Sessions are single-writer. A host that accepts concurrent requests for
one session must serialize them itself.
"""
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, Optional

from ..exceptions import FormValidationError, SessionClosedError, UnknownFieldError
from ..models import MappingResult, VisibilityState
from .field_validator import ValidationReport
from .visibility_resolver import VisibilityResolver

if TYPE_CHECKING:
    from .form_engine import FormEngine

logger = logging.getLogger(__name__)


class FormSession:
    """
    One user's in-progress form.

    Usage:
        session = engine.open_session(document=loan_record)
        state = session.set_field_value("applicationType", "joint")
        if state.is_step_visible("jointProperty"):
            ...
        report = session.validate("jointProperty")
        payload = session.submit().data
    """

    def __init__(
        self,
        engine: "FormEngine",
        initial_values: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.engine = engine
        self.resolver: VisibilityResolver = engine.new_resolver()
        self._values: dict[str, Any] = {}
        self._closed = False
        for name, value in (initial_values or {}).items():
            self._check_name(name)
            self._values[name] = value
        self._state = self.resolver.recompute(self._values)

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def form_id(self) -> str:
        return self.engine.form.id

    @property
    def values(self) -> Mapping[str, Any]:
        """Read-only view of the current values."""
        return MappingProxyType(self._values)

    @property
    def state(self) -> VisibilityState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise SessionClosedError(message="Form session is closed", form_id=self.form_id)

    def _check_name(self, name: str) -> None:
        if not self.engine.is_legal_name(name):
            raise UnknownFieldError(
                message=f"Unknown field: {name}",
                details={"field": name},
                form_id=self.engine.form.id,
            )

    def set_field_value(self, name: str, value: Any) -> VisibilityState:
        """
        Set one value and return the resulting visibility state.

        Raises:
            UnknownFieldError: If name is not a field of this form
        """
        self._check_open()
        self._check_name(name)
        self._values[name] = value
        self._state = self.resolver.recompute(self._values)
        return self._state

    def set_values(self, values: Mapping[str, Any]) -> VisibilityState:
        """Set several values, recomputing visibility once."""
        self._check_open()
        for name in values:
            self._check_name(name)
        self._values.update(values)
        self._state = self.resolver.recompute(self._values)
        return self._state

    def clear_field_value(self, name: str) -> VisibilityState:
        self._check_open()
        self._check_name(name)
        self._values.pop(name, None)
        self._state = self.resolver.recompute(self._values)
        return self._state

    # -------------------------------------------------------------------------
    # Validation and submission
    # -------------------------------------------------------------------------

    def validate(self, step_id: Optional[str] = None) -> ValidationReport:
        """
        Validate visible fields of one step, or of every visible step.

        Raises:
            UnknownFieldError: If step_id names no step of this form
        """
        self._check_open()
        return self.engine.validate(self._values, step_id=step_id, state=self._state,
                                    resolver=self.resolver)

    def submit(
        self,
        context: Any = None,
        raise_on_missing: bool = True,
        check_fields: bool = True,
    ) -> MappingResult:
        """
        Validate every visible field, then build the target document.

        Args:
            context: Auxiliary context document for outbound candidates
            raise_on_missing: See OutboundMapper.build
            check_fields: Run field validation first

        Raises:
            FormValidationError: If field validation fails
            RequiredFieldMissing: If a required target cannot be filled
        """
        self._check_open()
        if check_fields:
            report = self.validate()
            if not report.is_valid:
                raise FormValidationError(
                    message=f"{len(report.errors)} field(s) failed validation",
                    errors=[e.to_dict() for e in report.errors],
                    form_id=self.form_id,
                )
        result = self.engine.build(self._values, context, raise_on_missing=raise_on_missing)
        logger.info(
            "Form %s submitted: %d targets written",
            self.form_id, len(result.resolved_from),
        )
        return result

    def close(self) -> None:
        """Discard the value store. Further use raises SessionClosedError."""
        self._values.clear()
        self._closed = True
