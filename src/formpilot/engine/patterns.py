"""
FormPilot Data Preparation Patterns

A pattern reshapes a raw loan record (plus context) into the document
that inbound candidates resolve against. Each lender integration ships
records in its own envelope; the pattern lifts the interesting parts
(borrowers, the primary borrower, the property address) to the top so
one form pack can read them with short paths.

Built-in patterns:
- retail: borrowers from the SAAF application data, primary borrower
  picked by borrowerType
- ppfBroker: broker submissions, falling back to context.additionalInfo
- oaktree: loan record plus every context key at the top level

Patterns are selected per engine. An engine without one resolves
candidates against the raw record.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..exceptions import UnknownPatternError
from ..paths import ABSENT, compile_path

logger = logging.getLogger(__name__)


PatternFn = Callable[[Any, Mapping[str, Any]], dict[str, Any]]

APPLICATION_DATA_PATH = compile_path(
    "DEAL.EXTENSION.OTHER['saaf:DEAL_EXTENSION']['saaf:ApplicationData']"
)


@dataclass(frozen=True)
class PreparationPattern:
    """
    A named data preparation step.

    Attributes:
        name: Registry key (e.g. "retail")
        description: One line shown by describe()
        process: fn(loan_record, context) -> prepared document
    """
    name: str
    description: str
    process: PatternFn

    def __post_init__(self) -> None:
        if not self.name:
            raise UnknownPatternError(message="Pattern must have a name")
        if not callable(self.process):
            raise UnknownPatternError(
                message=f"Pattern '{self.name}' has no process function",
                details={"pattern": self.name},
            )


# =============================================================================
# Helpers
# =============================================================================

def _get(document: Any, key: str, default: Any = None) -> Any:
    if isinstance(document, Mapping) and key in document:
        return document[key]
    return default


def _application_data(loan_record: Any) -> Any:
    value = APPLICATION_DATA_PATH.get(loan_record)
    return {} if value is ABSENT else value


def select_primary_borrower(borrowers: Any, fallback: Any = None) -> Any:
    """
    First borrower marked borrowerType "primary", else the first borrower,
    else the fallback.
    """
    if not isinstance(borrowers, list) or not borrowers:
        return fallback
    for borrower in borrowers:
        if _get(borrower, "borrowerType") == "primary":
            return borrower
    return borrowers[0] or fallback


# =============================================================================
# Built-in Patterns
# =============================================================================

def retail(loan_record: Any, context: Mapping[str, Any]) -> dict[str, Any]:
    application = _application_data(loan_record)
    borrowers = _get(application, "borrowers", [])
    return {
        "loanData": loan_record,
        "context": context,
        "borrowers": borrowers,
        "primaryBorrower": select_primary_borrower(
            borrowers, _get(context, "primaryBorrower")
        ),
        "propertyAddress": _get(application, "propertyAddress", {}),
        "applicationData": _get(application, "applicationData", {}),
    }


def ppf_broker(loan_record: Any, context: Mapping[str, Any]) -> dict[str, Any]:
    """
    Broker submissions carry most of the deal under
    applicationData.additionalInfo; when the record has none, the
    context's additionalInfo is used instead.
    """
    application = _application_data(loan_record)
    application_data = _get(application, "applicationData") or {}
    additional_info = (
        _get(application_data, "additionalInfo")
        or _get(context, "additionalInfo")
        or {}
    )
    return {
        "loanData": loan_record,
        "context": context,
        "applicationData": application_data,
        "additionalInfo": additional_info,
        "borrowers": (
            _get(application, "borrowers")
            or _get(additional_info, "borrowers")
            or []
        ),
        "propertyAddress": (
            _get(application, "propertyAddress")
            or _get(additional_info, "propertyAddress")
            or {}
        ),
        "loanInformation": _get(additional_info, "loanInformation", {}),
        # key spelling follows the broker payload
        "rentAndExpanses": _get(additional_info, "rentAndExpanses", {}),
        "repairAndRehab": _get(additional_info, "repairAndRehab", {}),
        "pricing": _get(additional_info, "pricing", {}),
        "primaryBorrower": _get(context, "primaryBorrower") or {},
    }


def oaktree(loan_record: Any, context: Mapping[str, Any]) -> dict[str, Any]:
    return {"loanData": loan_record, "context": context, **context}


BUILTIN_PATTERNS: dict[str, PreparationPattern] = {
    p.name: p for p in (
        PreparationPattern(
            "retail",
            "Retail loans: borrowers and primary borrower from the application data",
            retail,
        ),
        PreparationPattern(
            "ppfBroker",
            "Broker submissions: deal sections from additionalInfo",
            ppf_broker,
        ),
        PreparationPattern(
            "oaktree",
            "Loan record with context keys at the top level",
            oaktree,
        ),
    )
}


# =============================================================================
# Registry
# =============================================================================

class PatternRegistry:
    """
    Name -> preparation pattern lookup for one engine instance.

    Usage:
        registry = PatternRegistry()
        registry.register(PreparationPattern("mine", "Custom", fn))
        document = registry.prepare("retail", loan_record, context)
    """

    def __init__(self, custom: Optional[Mapping[str, PatternFn]] = None) -> None:
        self._patterns: dict[str, PreparationPattern] = dict(BUILTIN_PATTERNS)
        for name, fn in (custom or {}).items():
            self.register(PreparationPattern(name, "", fn))

    def register(self, pattern: PreparationPattern) -> None:
        if pattern.name in self._patterns:
            logger.info("Pattern '%s' replaced", pattern.name)
        self._patterns[pattern.name] = pattern

    def __contains__(self, name: object) -> bool:
        return name in self._patterns

    @property
    def names(self) -> list[str]:
        return sorted(self._patterns)

    def get(self, name: str) -> PreparationPattern:
        try:
            return self._patterns[name]
        except KeyError:
            raise UnknownPatternError(
                message=f"Unknown pattern: {name}",
                details={"pattern": name, "available": self.names},
            ) from None

    def describe(self) -> list[dict[str, str]]:
        return [
            {"name": p.name, "description": p.description}
            for _, p in sorted(self._patterns.items())
        ]

    def prepare(self, name: str, loan_record: Any, context: Any = None) -> dict[str, Any]:
        """
        Run a pattern over a loan record.

        A missing or non-mapping context is treated as empty.

        Raises:
            UnknownPatternError: If no pattern has this name
        """
        pattern = self.get(name)
        if not isinstance(context, Mapping):
            context = {}
        return pattern.process(loan_record, context)
