"""
FormPilot Array Expansion Engine

Expands an array template (e.g. a borrower field set) into concrete
field instances, one set per entity.

Key features:
- Instance count resolved from a controlling form value, via the
  template's count_map first and numeric coercion second
- Missing, non-numeric or out-of-range counts fall back to default_count
- Instance ids "<template>[<i>].<fieldId>"
- Label prefix (e.g. "Co-") on instances after the first
- Template-local Var references rewritten to the same instance's ids
"""
from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from ..models import ArrayTemplateSpec, FieldSpec, map_vars
from ..paths import ABSENT, compile_path

logger = logging.getLogger(__name__)


def _coerce_count(raw: Any) -> Optional[int]:
    """Integer value of a count, or None when it is not a whole number."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, (float, Decimal)):
        try:
            whole = int(raw)
        except (ValueError, ArithmeticError):
            return None
        return whole if raw == whole else None
    if isinstance(raw, str):
        text = raw.strip()
        if text.isdigit():
            return int(text)
    return None


def extract_indexed(sequence: Any, index: int, field: str) -> Any:
    """
    Pull one field out of one element of a source sequence.

    Example:
        >>> extract_indexed([{"firstName": "Ana"}, {"firstName": "Ben"}], 1, "firstName")
        'Ben'

    Returns:
        The field value, or ABSENT when the element or field is missing
    """
    if not isinstance(sequence, (list, tuple)) or not 0 <= index < len(sequence):
        return ABSENT
    return compile_path(field).get(sequence[index])


class ArrayExpander:
    """
    Expands array templates for one form configuration.

    Expanded instances are memoized per (template, count); the memo
    lives on this expander, which is owned by a single engine.
    """

    def __init__(self) -> None:
        self._instances: dict[tuple[str, int], tuple[FieldSpec, ...]] = {}

    def resolve_count(self, template: ArrayTemplateSpec, values: Mapping[str, Any]) -> int:
        """
        Number of instances to emit for the current values.

        Always within [min_count, max_count].
        """
        raw = values.get(template.count_field, ABSENT) if values else ABSENT
        if raw is ABSENT or raw is None or raw == "":
            return template.default_count

        if isinstance(raw, str) and raw in template.count_map:
            count: Optional[int] = template.count_map[raw]
        else:
            count = _coerce_count(raw)

        if count is None or not template.min_count <= count <= template.max_count:
            logger.debug(
                "Template '%s': count value %r unusable, using default %d",
                template.name, raw, template.default_count,
            )
            return template.default_count
        return count

    def instance(self, template: ArrayTemplateSpec, index: int, spec: FieldSpec) -> FieldSpec:
        """One concrete instance of a template field."""
        local = set(template.field_ids)

        def rename(name: str) -> str:
            return template.instance_id(index, name) if name in local else name

        label = spec.label
        if index > 0 and template.label_prefix and label:
            label = f"{template.label_prefix}{label}"

        instance_id = template.instance_id(index, spec.id)
        return replace(
            spec,
            id=instance_id,
            name=instance_id,
            label=label,
            visible_when=map_vars(spec.visible_when, rename) if spec.visible_when else None,
            required_when=map_vars(spec.required_when, rename) if spec.required_when else None,
            template=template.name,
            index=index,
        )

    def expand_count(self, template: ArrayTemplateSpec, count: int) -> tuple[FieldSpec, ...]:
        """Instances for an explicit count (memoized)."""
        key = (template.name, count)
        instances = self._instances.get(key)
        if instances is None:
            instances = tuple(
                self.instance(template, i, spec)
                for i in range(count)
                for spec in template.fields
            )
            self._instances[key] = instances
        return instances

    def expand(self, template: ArrayTemplateSpec, values: Mapping[str, Any]) -> list[FieldSpec]:
        """
        Expand a template for the current values.

        Returns:
            count * len(template.fields) field instances, grouped by index
        """
        return list(self.expand_count(template, self.resolve_count(template, values)))

    def expand_all(
        self,
        templates: Sequence[ArrayTemplateSpec],
        values: Mapping[str, Any],
    ) -> dict[str, list[FieldSpec]]:
        """Expand every template, keyed by template name."""
        return {t.name: self.expand(t, values) for t in templates}
