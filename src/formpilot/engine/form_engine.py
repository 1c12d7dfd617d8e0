"""
FormPilot Form Engine

Facade over one loaded form configuration, plus a catalog of engines
loaded from form packs.

Key features:
- Inbound prefill and outbound build with the engine's transform registry
- Optional data preparation pattern reshaping records before prefill
- Template expansion and one-shot visibility/validation
- Session factory: defaults, then prefill output, then explicit values
- FormCatalog: load packs from files or directories, look engines up by id
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from ..config import EngineOptions
from ..exceptions import FormNotFoundError, UnknownFieldError, UnknownPatternError
from ..models import FieldSpec, FormDefinition, MappingResult, VisibilityState
from .array_expander import ArrayExpander
from .condition_evaluator import ConditionEvaluator
from .field_validator import FieldValidator, ValidationReport
from .form_session import FormSession
from .inbound_mapper import InboundMapper
from .outbound_mapper import OutboundMapper
from .patterns import PatternFn, PatternRegistry
from .transforms import TransformFn, TransformRegistry
from .visibility_resolver import VisibilityResolver

logger = logging.getLogger(__name__)


class FormEngine:
    """
    Serves one form configuration.

    The engine holds no per-user state and may be shared by any number
    of sessions.

    Usage:
        engine = FormEngine(load_form_pack("packs/simplified_application.yaml"))
        prefill = engine.prefill(loan_record, context)
        session = engine.open_session(document=loan_record, context=context)
    """

    def __init__(
        self,
        form: FormDefinition,
        options: Optional[EngineOptions] = None,
        transforms: Union[TransformRegistry, Mapping[str, TransformFn], None] = None,
        pattern: Optional[str] = None,
        patterns: Union[PatternRegistry, Mapping[str, PatternFn], None] = None,
    ) -> None:
        """
        Args:
            form: Loaded form configuration
            options: Engine settings (defaults if omitted)
            transforms: Registry, or custom transforms added to the built-ins
            pattern: Data preparation pattern applied before prefill
            patterns: Registry, or custom patterns added to the built-ins

        Raises:
            UnknownTransformError: If the form uses an unregistered transform
            UnknownPatternError: If pattern is not registered
        """
        self.form = form
        self.options = options or EngineOptions()
        if isinstance(transforms, TransformRegistry):
            self.transforms = transforms
        else:
            self.transforms = TransformRegistry(transforms)
        self.transforms.check(form.transformations.transform_names, form_id=form.id)

        if isinstance(patterns, PatternRegistry):
            self.patterns = patterns
        else:
            self.patterns = PatternRegistry(patterns)
        if pattern is not None and pattern not in self.patterns:
            raise UnknownPatternError(
                message=f"Unknown pattern: {pattern}",
                details={"pattern": pattern, "available": self.patterns.names},
                form_id=form.id,
            )
        self.pattern = pattern

        self.inbound = InboundMapper(self.transforms)
        self.outbound = OutboundMapper(self.transforms)
        self.expander = ArrayExpander()
        self.validator = FieldValidator()
        self._legal_names = form.legal_names()

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    def new_evaluator(self) -> ConditionEvaluator:
        return ConditionEvaluator(
            failure_policy=self.options.failure_policy,
            max_depth=self.options.max_condition_depth,
        )

    def new_resolver(self) -> VisibilityResolver:
        return VisibilityResolver(self.form, self.new_evaluator(), self.expander)

    def is_legal_name(self, name: str) -> bool:
        return name in self._legal_names

    # -------------------------------------------------------------------------
    # Mapping
    # -------------------------------------------------------------------------

    def prepare(self, document: Any, context: Any = None) -> Any:
        """The document inbound candidates resolve against."""
        if self.pattern is None:
            return document
        return self.patterns.prepare(self.pattern, document, context)

    def prefill(self, document: Any, context: Any = None) -> MappingResult:
        """Map a source document (and context) into flat form values."""
        return self.inbound.resolve_all(
            self.form.transformations, self.prepare(document, context), context
        )

    def build(
        self,
        values: Mapping[str, Any],
        context: Any = None,
        raise_on_missing: bool = True,
    ) -> MappingResult:
        """
        Map flat form values into the target document.

        Raises:
            RequiredFieldMissing: If a required target cannot be filled
        """
        return self.outbound.build(
            self.form.transformations,
            values,
            context,
            raise_on_missing=raise_on_missing,
            form_id=self.form.id,
        )

    def expand_templates(self, values: Mapping[str, Any]) -> dict[str, list[FieldSpec]]:
        """Concrete instances of every array template for the given values."""
        return self.expander.expand_all(self.form.array_templates, values)

    # -------------------------------------------------------------------------
    # Visibility and validation
    # -------------------------------------------------------------------------

    def visibility(self, values: Mapping[str, Any]) -> VisibilityState:
        """One-shot visibility state (no memoization across calls)."""
        return self.new_resolver().recompute(values)

    def validate(
        self,
        values: Mapping[str, Any],
        step_id: Optional[str] = None,
        state: Optional[VisibilityState] = None,
        resolver: Optional[VisibilityResolver] = None,
    ) -> ValidationReport:
        """
        Validate visible fields of one step, or of every visible step.

        Raises:
            UnknownFieldError: If step_id names no step of this form
        """
        resolver = resolver or self.new_resolver()
        state = state or resolver.recompute(values)

        if step_id is None:
            fields = list(resolver.field_specs(values).values())
        else:
            step = self.form.get_step(step_id)
            if step is None:
                raise UnknownFieldError(
                    message=f"Unknown step: {step_id}",
                    details={"step": step_id},
                    form_id=self.form.id,
                )
            if not state.is_step_visible(step_id):
                return ValidationReport()
            fields = resolver.step_fields(step, values)

        return self.validator.validate(fields, values, state)

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def initial_values(
        self,
        initial_values: Optional[Mapping[str, Any]] = None,
        document: Any = None,
        context: Any = None,
    ) -> dict[str, Any]:
        """
        Starting values of a new session.

        Field defaults, overlaid by prefill output (when a document or
        context is given), overlaid by explicit values. Prefilled None
        values do not erase defaults, and prefill keys that are not
        fields of this form are dropped.
        """
        values: dict[str, Any] = {}
        for _, spec in self.form.iter_fields():
            if spec.default_value is not None:
                values[spec.id] = spec.default_value

        if document is not None or context is not None:
            prefilled = self.prefill(document, context).data
            for name, value in prefilled.items():
                if value is None or not self.is_legal_name(name):
                    continue
                values[name] = value

        if initial_values:
            values.update(initial_values)
        return values

    def open_session(
        self,
        initial_values: Optional[Mapping[str, Any]] = None,
        document: Any = None,
        context: Any = None,
    ) -> FormSession:
        """Start a new session for one user."""
        values = self.initial_values(initial_values, document, context)
        session = FormSession(self, values)
        logger.debug("Opened session for form %s with %d values", self.form.id, len(values))
        return session


# =============================================================================
# Form Catalog
# =============================================================================

@dataclass
class FormCatalog:
    """
    Loads form packs and serves an engine per form id.

    Usage:
        catalog = FormCatalog()
        catalog.load_directory("packs/")
        engine = catalog.get_engine("simplified-application")
    """

    options: EngineOptions = field(default_factory=EngineOptions)
    transforms: Optional[Mapping[str, TransformFn]] = None
    patterns: Optional[Mapping[str, PatternFn]] = None
    _engines: dict[str, FormEngine] = field(default_factory=dict)

    def add(self, form: FormDefinition, pattern: Optional[str] = None) -> FormEngine:
        engine = FormEngine(
            form, self.options, self.transforms, pattern=pattern, patterns=self.patterns
        )
        if form.id in self._engines:
            logger.warning("Replacing loaded form %s", form.id)
        self._engines[form.id] = engine
        return engine

    def load(self, path: Union[str, Path], pattern: Optional[str] = None) -> FormEngine:
        """
        Load one pack file and register its engine.

        Raises:
            ConfigurationError: If the pack is invalid
        """
        from ..packs import FormPackLoader

        loader = FormPackLoader(
            strict_version=self.options.strict_version,
            max_condition_depth=self.options.max_condition_depth,
            transforms=self.transforms,
        )
        return self.add(loader.load(path), pattern=pattern)

    def load_directory(self, directory: Union[str, Path]) -> list[FormEngine]:
        """Load every .yaml/.yml/.json pack in a directory (sorted by name)."""
        directory = Path(directory)
        paths = sorted(
            p for p in directory.iterdir()
            if p.suffix.lower() in {".yaml", ".yml", ".json"}
        )
        return [self.load(p) for p in paths]

    def get_engine(self, form_id: str) -> FormEngine:
        """
        Look up a loaded form's engine.

        Raises:
            FormNotFoundError: If no form with this id is loaded
        """
        engine = self._engines.get(form_id)
        if engine is None:
            raise FormNotFoundError(
                message=f"Form not found: {form_id}",
                details={"form_id": form_id, "available": self.list_forms()},
            )
        return engine

    def list_forms(self) -> list[str]:
        return sorted(self._engines)
