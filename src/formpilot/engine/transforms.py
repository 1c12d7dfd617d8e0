"""
FormPilot Transform Registry

Named, pure value transformations applied to an accepted source value
before it is stored (inbound) or written (outbound).

Built-in transforms:
- singleToSequence (alias singleToArray): wrap one value in a list
- sequenceField (alias arrayField): project one field out of each element
- formatPhone: digits only, last 10
- formatDate: ISO YYYY-MM-DD truncation
- formatCurrency (alias formatAmount): numeric coercion to Decimal
- calculatePercentage: ratio of two document paths, scaled and rounded
- trim: strip surrounding whitespace
- camelCaseKeys: snake_case mapping keys to camelCase

Transforms never raise on odd input: values they cannot handle are
returned unchanged. Unknown names are rejected when a pack is loaded.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Optional

from ..exceptions import UnknownTransformError
from ..paths import ABSENT, compile_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransformContext:
    """
    What a transform may see besides the value itself.

    Attributes:
        target: Target field/path being filled
        options: Extra candidate keys (e.g. {"field": "firstName"})
        document: Source document (inbound) or flat values (outbound)
        context: Auxiliary context document
    """
    target: str = ""
    options: Mapping[str, Any] = field(default_factory=dict)
    document: Any = None
    context: Any = None

    def option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


TransformFn = Callable[[Any, TransformContext], Any]


# =============================================================================
# Helpers
# =============================================================================

_SNAKE_PART = re.compile(r"_([a-z])")
_NON_DIGIT = re.compile(r"\D")
_ISO_DATE_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})")
_DATE_FORMATS = ("%m/%d/%Y", "%m-%d-%Y", "%Y/%m/%d", "%B %d, %Y", "%b %d, %Y")
_ZERO_PERCENT = Decimal("0.00")


def is_blank(value: Any) -> bool:
    """
    Loose emptiness: absent, None, False, zero or "".

    Containers count as present even when empty.
    """
    if value is ABSENT or value is None:
        return True
    if isinstance(value, (str, bool, int, float, Decimal)):
        return not value
    return False


def to_camel_case(key: str) -> str:
    """
    Convert a snake_case key to camelCase.

    Example:
        >>> to_camel_case("first_name")
        'firstName'
    """
    return _SNAKE_PART.sub(lambda m: m.group(1).upper(), key)


# =============================================================================
# Built-in Transforms
# =============================================================================

def camel_case_keys(value: Any, context: Optional[TransformContext] = None) -> Any:
    if not isinstance(value, Mapping):
        return value
    return {
        to_camel_case(k) if isinstance(k, str) else k: v
        for k, v in value.items()
    }


def single_to_sequence(value: Any, context: TransformContext) -> list[Any]:
    """
    Wrap a single value in a one-element list.

    Empty values give an empty list; lists pass through as a copy.
    Mapping keys are camelCased unless the camelCaseKeys option is false.
    """
    if is_blank(value):
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if context.option("camelCaseKeys", True):
        value = camel_case_keys(value)
    return [value]


def sequence_field(value: Any, context: TransformContext) -> list[Any]:
    """Project the `field` option out of each element of a sequence."""
    if not isinstance(value, (list, tuple)):
        return []
    field_name = context.option("field")
    if not field_name:
        return list(value)
    path = compile_path(field_name)
    projected = []
    for item in value:
        item_value = path.get(item)
        projected.append(None if item_value is ABSENT else item_value)
    return projected


def format_phone(value: Any, context: Optional[TransformContext] = None) -> Any:
    """Keep digits only, last 10 (drops a leading country code)."""
    if is_blank(value):
        return ""
    if not isinstance(value, (str, int)):
        return value
    return _NON_DIGIT.sub("", str(value))[-10:]


def format_date(value: Any, context: Optional[TransformContext] = None) -> Any:
    """
    Normalize to an ISO date string (YYYY-MM-DD).

    Accepts date/datetime objects, ISO strings (time part dropped),
    a few US-style formats and epoch milliseconds. Anything else is
    returned unchanged.
    """
    if is_blank(value):
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date().isoformat()
        except (OverflowError, OSError, ValueError):
            return value
    if not isinstance(value, str):
        return value

    text = value.strip()
    match = _ISO_DATE_PREFIX.match(text)
    if match:
        try:
            return date.fromisoformat(match.group(1)).isoformat()
        except ValueError:
            return value
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return value


def format_currency(value: Any, context: Optional[TransformContext] = None) -> Any:
    """
    Coerce a currency amount to Decimal.

    "$1,250.50" -> Decimal("1250.50"). Empty input gives "".
    Non-numeric input is returned unchanged (not an error).
    """
    if value is ABSENT or value is None or value == "":
        return ""
    if isinstance(value, bool):
        return value
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if not isinstance(value, str):
        return value
    cleaned = value.replace("$", "").replace(",", "").replace(" ", "")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return value
    if not amount.is_finite():
        return value
    return amount


def _to_decimal(value: Any) -> Optional[Decimal]:
    amount = format_currency(value)
    if isinstance(amount, Decimal) and amount.is_finite():
        return amount
    return None


def calculate_percentage(value: Any, context: TransformContext) -> Decimal:
    """
    numerator / denominator * multiplier, rounded to two places.

    Options:
        numerator: Path to the numerator (defaults to the value itself)
        denominator: Path to the denominator
        multiplier: Scale factor (default 100)

    Paths are read from the transform's document. A missing, zero or
    non-numeric operand gives Decimal("0.00").
    """
    numerator_path = context.option("numerator")
    if numerator_path:
        value = compile_path(numerator_path).get(context.document)
    denominator_path = context.option("denominator")
    denominator = (
        compile_path(denominator_path).get(context.document)
        if denominator_path else ABSENT
    )

    numerator = _to_decimal(value)
    denominator = _to_decimal(denominator)
    multiplier = _to_decimal(context.option("multiplier", 100))
    if not numerator or not denominator or multiplier is None:
        return _ZERO_PERCENT
    return (numerator / denominator * multiplier).quantize(_ZERO_PERCENT, rounding=ROUND_HALF_UP)


def trim(value: Any, context: Optional[TransformContext] = None) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


BUILTIN_TRANSFORMS: dict[str, TransformFn] = {
    "singleToSequence": single_to_sequence,
    "singleToArray": single_to_sequence,
    "sequenceField": sequence_field,
    "arrayField": sequence_field,
    "formatPhone": format_phone,
    "formatDate": format_date,
    "formatCurrency": format_currency,
    "formatAmount": format_currency,
    "calculatePercentage": calculate_percentage,
    "trim": trim,
    "camelCaseKeys": camel_case_keys,
}


# =============================================================================
# Registry
# =============================================================================

class TransformRegistry:
    """
    Name -> transform lookup for one engine instance.

    Custom transforms are supplied at construction and may shadow
    built-ins; the registry is not modified afterwards.

    Usage:
        registry = TransformRegistry({"upper": lambda v, ctx: str(v).upper()})
        registry.apply("formatPhone", "+1 (555) 010-2030")   # "5550102030"
    """

    def __init__(self, custom: Optional[Mapping[str, TransformFn]] = None) -> None:
        self._transforms: dict[str, TransformFn] = dict(BUILTIN_TRANSFORMS)
        for name, fn in (custom or {}).items():
            if not callable(fn):
                raise TypeError(f"Transform '{name}' is not callable")
            if name in BUILTIN_TRANSFORMS:
                logger.info("Custom transform '%s' overrides the built-in", name)
            self._transforms[name] = fn

    def __contains__(self, name: object) -> bool:
        return name in self._transforms

    @property
    def names(self) -> list[str]:
        return sorted(self._transforms)

    def get(self, name: str) -> TransformFn:
        try:
            return self._transforms[name]
        except KeyError:
            raise UnknownTransformError(
                message=f"Unknown transform: {name}",
                details={"transform": name, "available": self.names},
            ) from None

    def apply(
        self,
        name: str,
        value: Any,
        context: Optional[TransformContext] = None,
    ) -> Any:
        """Apply a named transform to a value."""
        return self.get(name)(value, context or TransformContext())

    def check(self, names: Iterable[str], form_id: Optional[str] = None) -> None:
        """
        Verify every name is registered.

        Raises:
            UnknownTransformError: Listing every unknown name
        """
        unknown = sorted({n for n in names if n not in self._transforms})
        if unknown:
            raise UnknownTransformError(
                message=f"Unknown transform(s): {', '.join(unknown)}",
                details={"unknown": unknown, "available": self.names},
                form_id=form_id,
            )
