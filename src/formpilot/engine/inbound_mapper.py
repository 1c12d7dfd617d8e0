"""
FormPilot Inbound Mapper

Source document + context -> flat form value map.

Key features:
- Prioritized, conditional, multi-source resolution (first match wins)
- Literal defaults
- Repeated targets ("borrowerFirstName{index}", "names[*]") fanned out
  across one flat key per element of the resolved sequence
- Absent fields stored as None and listed in the result
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from ..models import MappingDirection, MappingResult, MappingRule, TransformationSpec
from ..paths import ABSENT
from .source_resolver import SourceResolver
from .transforms import TransformRegistry

logger = logging.getLogger(__name__)


class InboundMapper:
    """
    Maps a source document into flat form values.

    Usage:
        mapper = InboundMapper()
        result = mapper.resolve_all(form.transformations, loan_record, context)
        values = result.data
    """

    def __init__(self, transforms: Optional[TransformRegistry] = None) -> None:
        self.transforms = transforms or TransformRegistry()

    def _resolver(self, spec: Optional[TransformationSpec]) -> SourceResolver:
        return SourceResolver(self.transforms, spec.paths if spec is not None else None)

    def resolve_field(
        self,
        rule: MappingRule,
        document: Any,
        context: Any = None,
        spec: Optional[TransformationSpec] = None,
    ) -> Any:
        """
        Resolve one rule against a source document.

        Returns:
            The first accepted (transformed) candidate value, the default,
            or ABSENT.
        """
        return self._resolver(spec).resolve(rule, document, context).value

    def resolve_all(
        self,
        spec: TransformationSpec,
        document: Any,
        context: Any = None,
    ) -> MappingResult:
        """
        Resolve every inbound rule in declared order.

        Args:
            spec: Transformation spec holding the inbound rules
            document: Source document
            context: Auxiliary context document

        Returns:
            MappingResult whose data is the flat value map
        """
        resolver = self._resolver(spec)
        result = MappingResult(direction=MappingDirection.INBOUND)

        for rule in spec.inbound:
            resolution = resolver.resolve(rule, document, context)

            if not resolution.found:
                result.absent.append(rule.target)
                if not rule.is_repeated:
                    result.data[rule.target] = None
                continue

            if rule.is_repeated:
                targets = self._fan_out(rule, resolution.value, result.data)
            else:
                result.data[rule.target] = resolution.value
                targets = [rule.target]

            for target in targets:
                result.resolved_from[target] = resolution.candidate_index
                if resolution.defaulted:
                    result.defaulted.append(target)

        logger.debug(
            "Inbound mapping: %d resolved, %d defaulted, %d absent",
            len(result.resolved_from), len(result.defaulted), len(result.absent),
        )
        return result

    @staticmethod
    def _fan_out(rule: MappingRule, value: Any, data: dict[str, Any]) -> list[str]:
        """Spread a resolved sequence over index-bound target names."""
        items = list(value) if isinstance(value, (list, tuple)) else [value]
        targets = []
        for index, item in enumerate(items):
            target = rule.target_for(index)
            data[target] = None if item is ABSENT else item
            targets.append(target)
        return targets


# =============================================================================
# Convenience Functions
# =============================================================================

def resolve_field(
    rule: MappingRule,
    document: Any,
    context: Any = None,
    transforms: Optional[TransformRegistry] = None,
) -> Any:
    """Resolve one rule with a temporary mapper."""
    return InboundMapper(transforms).resolve_field(rule, document, context)


def resolve_all(
    spec: TransformationSpec,
    document: Any,
    context: Any = None,
    transforms: Optional[TransformRegistry] = None,
) -> MappingResult:
    """Resolve every inbound rule with a temporary mapper."""
    return InboundMapper(transforms).resolve_all(spec, document, context)
