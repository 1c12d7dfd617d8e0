"""
FormPilot Outbound Mapper

Flat form values -> nested target document, on submission.

Mirrors the inbound resolution order. Candidate paths are looked up in
the flat value map by exact key first, then as a path; results are
written with the path resolver's set(), which creates intermediate
containers.

A rule flagged required that resolves to nothing raises
RequiredFieldMissing naming the target path, or, with
raise_on_missing=False, every such error is collected on the result.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..exceptions import RequiredFieldMissing
from ..models import MappingDirection, MappingResult, MappingRule, TransformationSpec
from .source_resolver import (
    Resolution,
    SourceResolver,
    check_source_condition,
    flat_lookup,
)
from .transforms import TransformRegistry

logger = logging.getLogger(__name__)


class OutboundMapper:
    """
    Builds target documents from flat form values.

    Usage:
        mapper = OutboundMapper()
        result = mapper.build(form.transformations, session.values)
        payload = result.data
    """

    def __init__(self, transforms: Optional[TransformRegistry] = None) -> None:
        self.transforms = transforms or TransformRegistry()

    def build(
        self,
        spec: TransformationSpec,
        values: Mapping[str, Any],
        context: Any = None,
        raise_on_missing: bool = True,
        form_id: Optional[str] = None,
    ) -> MappingResult:
        """
        Build the target document.

        Args:
            spec: Transformation spec holding the outbound rules
            values: Flat form values
            context: Auxiliary context document
            raise_on_missing: Raise on the first missing required target
                (False collects all of them in result.errors)
            form_id: Form id attached to raised errors

        Returns:
            MappingResult whose data is the nested target document

        Raises:
            RequiredFieldMissing: If a required target resolves to nothing
        """
        resolver = SourceResolver(self.transforms, spec.paths, lookup=flat_lookup)
        result = MappingResult(direction=MappingDirection.OUTBOUND)

        for rule in spec.outbound:
            if rule.is_repeated:
                written = self._build_repeated(spec, rule, resolver, values, context, result)
            else:
                resolution = resolver.resolve(rule, values, context)
                written = 0
                if resolution.found:
                    self._write(spec, rule.target, resolution, result)
                    written = 1

            if written:
                continue

            target = rule.target_for(0) if rule.is_repeated else rule.target
            result.absent.append(target)
            if rule.required:
                error = RequiredFieldMissing(
                    message=f"Required field missing: {target}",
                    target_path=target,
                    details={"candidates": [c.describe() for c in rule.candidates]},
                    form_id=form_id,
                )
                if raise_on_missing:
                    logger.info("Submission rejected: %s", error)
                    raise error
                result.errors.append(error)

        logger.debug(
            "Outbound mapping: %d written, %d absent, %d errors",
            len(result.resolved_from), len(result.absent), len(result.errors),
        )
        return result

    def _build_repeated(
        self,
        spec: TransformationSpec,
        rule: MappingRule,
        resolver: SourceResolver,
        values: Mapping[str, Any],
        context: Any,
        result: MappingResult,
    ) -> int:
        """
        Fill a repeated target index by index.

        Every index below the highest one any index-bound candidate has
        data for is tried. Indices where none of those candidates resolves
        are skipped, so a gap at one entry keeps the later entries.
        Without index-bound candidates only index 0 is filled.
        """
        bound = [c for c in rule.candidates if c.is_repeated]
        if bound:
            count = max(resolver.index_bound(c, values, context) for c in bound)
        else:
            count = 1

        written = 0
        for index in range(count):
            if bound and not any(
                check_source_condition(
                    resolver.read(c, values, context, index), c.condition
                )
                for c in bound
            ):
                continue

            target = rule.target_for(index)
            resolution = resolver.resolve(rule, values, context, index=index, target=target)
            if resolution.found:
                self._write(spec, target, resolution, result)
                written += 1
        return written

    @staticmethod
    def _write(
        spec: TransformationSpec,
        target: str,
        resolution: Resolution,
        result: MappingResult,
    ) -> None:
        spec.paths.compile(target).set(result.data, resolution.value)
        result.resolved_from[target] = resolution.candidate_index
        if resolution.defaulted:
            result.defaulted.append(target)


# =============================================================================
# Convenience Functions
# =============================================================================

def build(
    spec: TransformationSpec,
    values: Mapping[str, Any],
    context: Any = None,
    raise_on_missing: bool = True,
    transforms: Optional[TransformRegistry] = None,
) -> MappingResult:
    """Build a target document with a temporary mapper."""
    return OutboundMapper(transforms).build(
        spec, values, context, raise_on_missing=raise_on_missing
    )
