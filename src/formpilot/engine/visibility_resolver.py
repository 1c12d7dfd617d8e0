"""
FormPilot Visibility/Requiredness Resolver

Decides which steps and fields are visible and which fields are
required for the current form values.

Key features:
- Step visible: its condition holds
- Field visible: its host step is visible and its condition holds
- Field required: visible, not a label, and requiredWhen holds
  (or the static required flag when no requiredWhen is declared)
- Array template instances are shown in their host step, after
  the step's own fields
- Selective recomputation: the last dependency signature and state are
  memoized, and a full pass only runs when the signature changes
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..models import FieldSpec, FormDefinition, StepSpec, VisibilityState
from .array_expander import ArrayExpander
from .condition_evaluator import ConditionEvaluator
from .dependency_tracker import DependencyTracker

logger = logging.getLogger(__name__)


class VisibilityResolver:
    """
    Visibility state for one form configuration.

    Holds memoization state, so each session owns its own resolver;
    the form definition itself is shared.

    Usage:
        resolver = VisibilityResolver(form)
        state = resolver.recompute(values)
        state.is_field_visible("previousCity")
    """

    def __init__(
        self,
        form: FormDefinition,
        evaluator: Optional[ConditionEvaluator] = None,
        expander: Optional[ArrayExpander] = None,
    ) -> None:
        self.form = form
        self.evaluator = evaluator or ConditionEvaluator()
        self.expander = expander or ArrayExpander()

        static_nodes = [step.visible_when for step in form.steps]
        static_nodes.extend(c for _, f in form.iter_fields() for c in f.conditions)
        self._base_tracker = DependencyTracker(
            static_nodes,
            extra=[t.count_field for t in form.array_templates],
        )
        self._trackers: dict[tuple[int, ...], DependencyTracker] = {}
        self._last_signature: Optional[str] = None
        self._last_state: Optional[VisibilityState] = None
        self.recompute_count = 0

    # -------------------------------------------------------------------------
    # Dependencies
    # -------------------------------------------------------------------------

    def instance_counts(self, values: Mapping[str, Any]) -> tuple[int, ...]:
        return tuple(
            self.expander.resolve_count(t, values) for t in self.form.array_templates
        )

    def tracker_for(self, values: Mapping[str, Any]) -> DependencyTracker:
        """
        Tracker for the template instances current values produce.

        Instance conditions are analyzed once per distinct count tuple.
        """
        counts = self.instance_counts(values)
        tracker = self._trackers.get(counts)
        if tracker is None:
            nodes = [
                c
                for template, count in zip(self.form.array_templates, counts)
                for f in self.expander.expand_count(template, count)
                for c in f.conditions
            ]
            tracker = self._base_tracker.extend(nodes)
            self._trackers[counts] = tracker
        return tracker

    @property
    def tracked(self) -> frozenset[str]:
        """Names tracked regardless of instance counts."""
        return self._base_tracker.tracked

    def signature(self, values: Mapping[str, Any]) -> str:
        return self.tracker_for(values).signature(values)

    # -------------------------------------------------------------------------
    # Fields
    # -------------------------------------------------------------------------

    def instances_by_step(self, values: Mapping[str, Any]) -> dict[str, list[FieldSpec]]:
        """Current template instances grouped by host step id."""
        grouped: dict[str, list[FieldSpec]] = {}
        for template in self.form.array_templates:
            host = self.form.host_step(template)
            if host is None:
                continue
            grouped.setdefault(host.id, []).extend(self.expander.expand(template, values))
        return grouped

    def step_fields(
        self,
        step: StepSpec,
        values: Mapping[str, Any],
        instances: Optional[dict[str, list[FieldSpec]]] = None,
    ) -> list[FieldSpec]:
        """A step's own fields followed by its template instances."""
        if instances is None:
            instances = self.instances_by_step(values)
        return list(step.fields) + instances.get(step.id, [])

    def field_specs(self, values: Mapping[str, Any]) -> dict[str, FieldSpec]:
        """Every current field (static and expanded), keyed by id."""
        instances = self.instances_by_step(values)
        return {
            f.id: f
            for step in self.form.steps
            for f in self.step_fields(step, values, instances)
        }

    # -------------------------------------------------------------------------
    # Recompute
    # -------------------------------------------------------------------------

    def invalidate(self) -> None:
        """Drop the memoized state so the next call runs a full pass."""
        self._last_signature = None
        self._last_state = None

    def recompute(
        self,
        values: Mapping[str, Any],
        dependency_signature: Optional[str] = None,
    ) -> VisibilityState:
        """
        Visible/required sets for the given values.

        Args:
            values: Current flat form values
            dependency_signature: Precomputed signature (computed if omitted)

        Returns:
            The memoized state when the signature is unchanged,
            otherwise a freshly computed one
        """
        signature = dependency_signature or self.signature(values)
        if self._last_state is not None and signature == self._last_signature:
            return self._last_state

        state = self._full_pass(values, signature)
        self._last_signature = signature
        self._last_state = state
        self.recompute_count += 1
        logger.debug(
            "Visibility recomputed for form %s: %d steps, %d fields, %d required",
            self.form.id, len(state.visible_steps),
            len(state.visible_fields), len(state.required_fields),
        )
        return state

    def _full_pass(self, values: Mapping[str, Any], signature: str) -> VisibilityState:
        evaluate = self.evaluator.evaluate
        instances = self.instances_by_step(values)

        visible_steps: list[str] = []
        visible_fields: list[str] = []
        required_fields: list[str] = []

        for step in self.form.steps:
            if not evaluate(step.visible_when, values):
                continue
            visible_steps.append(step.id)

            for f in self.step_fields(step, values, instances):
                if not evaluate(f.visible_when, values):
                    continue
                visible_fields.append(f.id)
                if f.is_label:
                    continue
                if f.required_when is not None:
                    required = evaluate(f.required_when, values)
                else:
                    required = f.required
                if required:
                    required_fields.append(f.id)

        return VisibilityState(
            visible_steps=tuple(visible_steps),
            visible_fields=tuple(visible_fields),
            required_fields=tuple(required_fields),
            signature=signature,
        )
