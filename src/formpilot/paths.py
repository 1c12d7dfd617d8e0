"""
FormPilot Path Resolver

Read/write access into nested dicts and lists using a small path grammar.

Grammar:
- Dotted bare segments:        "borrower.personal.firstName"
- Zero-based sequence index:   "borrowers[0].firstName"
- Quoted keys:                 "DEAL.OTHER['saaf:DEAL_EXTENSION']" or ["..."]
- Wildcard (mapping templates): "borrowers[*].firstName", bound per index

Paths are compiled once (at configuration load) into a tuple of segments;
get/set are plain walks over that tuple.

Missing data is never an error: get() returns the ABSENT sentinel when any
intermediate node is missing. Malformed syntax is a PathSyntaxError, raised
at compile time.
"""
from __future__ import annotations

from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from .exceptions import PathSyntaxError


# =============================================================================
# Absent Sentinel
# =============================================================================

class _Absent:
    """Marker for a value that could not be resolved (distinct from None)."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Absent":
        return self

    def __deepcopy__(self, memo: dict) -> "_Absent":
        return self


ABSENT = _Absent()


def is_absent(value: Any) -> bool:
    """Check whether a resolved value is the ABSENT sentinel."""
    return value is ABSENT


# =============================================================================
# Path Segments
# =============================================================================

class SegmentKind(str, Enum):
    """Kinds of path segment."""
    KEY = "key"            # bare identifier
    QUOTED = "quoted"      # ['key'] / ["key"]
    INDEX = "index"        # [N]
    WILDCARD = "wildcard"  # [*]


@dataclass(frozen=True)
class PathSegment:
    """One compiled step of a path expression."""
    kind: SegmentKind
    key: Union[str, int, None] = None


_BARE_STOP = ".[]'\""


def _syntax_error(expr: str, reason: str, position: int) -> PathSyntaxError:
    return PathSyntaxError(
        message=f"Invalid path '{expr}': {reason} at position {position}",
        details={"path": expr, "position": position, "reason": reason},
    )


def _tokenize(expr: str) -> tuple[PathSegment, ...]:
    """Split a path expression into segments, validating syntax."""
    if not isinstance(expr, str) or not expr.strip():
        raise PathSyntaxError(
            message="Path expression must be a non-empty string",
            details={"path": expr},
        )

    segments: list[PathSegment] = []
    n = len(expr)
    i = 0
    expect_segment = True

    while i < n:
        ch = expr[i]

        if ch == ".":
            if expect_segment:
                raise _syntax_error(expr, "empty segment", i)
            expect_segment = True
            i += 1
            continue

        if ch == "[":
            if i + 1 < n and expr[i + 1] in "'\"":
                quote = expr[i + 1]
                end = expr.find(quote + "]", i + 2)
                if end == -1:
                    raise _syntax_error(expr, "unterminated quoted key", i)
                key = expr[i + 2:end]
                if not key:
                    raise _syntax_error(expr, "empty quoted key", i)
                segments.append(PathSegment(SegmentKind.QUOTED, key))
                i = end + 2
            else:
                end = expr.find("]", i + 1)
                if end == -1:
                    raise _syntax_error(expr, "unterminated bracket", i)
                inner = expr[i + 1:end].strip()
                if inner == "*":
                    segments.append(PathSegment(SegmentKind.WILDCARD))
                elif inner.isdigit():
                    segments.append(PathSegment(SegmentKind.INDEX, int(inner)))
                else:
                    raise _syntax_error(
                        expr, "bracket must hold an index, '*' or a quoted key", i
                    )
                i = end + 1
            expect_segment = False
            if i < n and expr[i] not in ".[":
                raise _syntax_error(expr, f"unexpected character '{expr[i]}'", i)
            continue

        if ch in _BARE_STOP or not expect_segment:
            raise _syntax_error(expr, f"unexpected character '{ch}'", i)

        start = i
        while i < n and expr[i] not in _BARE_STOP:
            i += 1
        segments.append(PathSegment(SegmentKind.KEY, expr[start:i]))
        expect_segment = False
        if i < n and expr[i] not in ".[":
            raise _syntax_error(expr, f"unexpected character '{expr[i]}'", i)

    if expect_segment:
        raise _syntax_error(expr, "path ends with '.'", n)

    return tuple(segments)


# =============================================================================
# Walking
# =============================================================================

def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _step(current: Any, segment: PathSegment) -> Any:
    """Take one step into a container, returning ABSENT when impossible."""
    kind = segment.kind

    if kind is SegmentKind.WILDCARD:
        return ABSENT

    if kind is SegmentKind.INDEX:
        if _is_sequence(current) and 0 <= segment.key < len(current):
            return current[segment.key]
        if isinstance(current, Mapping) and segment.key in current:
            return current[segment.key]
        return ABSENT

    key = segment.key
    if isinstance(current, Mapping):
        return current[key] if key in current else ABSENT

    # Bare numeric segments index sequences ("borrowers.0.firstName")
    if kind is SegmentKind.KEY and key.isdigit() and _is_sequence(current):
        index = int(key)
        return current[index] if index < len(current) else ABSENT

    return ABSENT


def _assign(container: Any, segment: PathSegment, value: Any) -> None:
    """Write value into container at segment, growing lists as needed."""
    if isinstance(container, list):
        if segment.kind is SegmentKind.INDEX:
            index = segment.key
        elif isinstance(segment.key, str) and segment.key.isdigit():
            index = int(segment.key)
        else:
            raise TypeError(
                f"Cannot write key '{segment.key}' into a list"
            )
        while len(container) <= index:
            container.append(None)
        container[index] = value
        return

    if isinstance(container, MutableMapping):
        container[segment.key] = value
        return

    raise TypeError(
        f"Cannot write into {type(container).__name__} at '{segment.key}'"
    )


def _accepts(container: Any, segment: PathSegment) -> bool:
    """True if container can be written at segment without replacing it."""
    if isinstance(container, list):
        return segment.kind is SegmentKind.INDEX or (
            isinstance(segment.key, str) and segment.key.isdigit()
        )
    return isinstance(container, MutableMapping)


# =============================================================================
# Compiled Path
# =============================================================================

@dataclass(frozen=True)
class CompiledPath:
    """
    A pre-parsed path expression.

    Attributes:
        expression: Original path text
        segments: Parsed segments
    """
    expression: str
    segments: tuple[PathSegment, ...]

    def __str__(self) -> str:
        return self.expression

    @property
    def has_wildcard(self) -> bool:
        """True if the path contains a [*] segment that must be bound first."""
        return any(s.kind is SegmentKind.WILDCARD for s in self.segments)

    def bind(self, index: int) -> CompiledPath:
        """Replace every [*] segment with a concrete index."""
        if not self.has_wildcard:
            return self
        return CompiledPath(
            expression=self.expression.replace("[*]", f"[{index}]"),
            segments=tuple(
                PathSegment(SegmentKind.INDEX, index)
                if s.kind is SegmentKind.WILDCARD else s
                for s in self.segments
            ),
        )

    def get(self, document: Any) -> Any:
        """
        Resolve the path against a document.

        Returns:
            The value found, or ABSENT if any step is missing.
            A stored None is returned as None.
        """
        current = document
        for segment in self.segments:
            if current is None or current is ABSENT:
                return ABSENT
            current = _step(current, segment)
        return current

    def set(self, document: Any, value: Any) -> None:
        """
        Write a value at this path, creating intermediate containers.

        Missing intermediates become dicts, or lists when the following
        segment is an index. An intermediate that cannot take the following
        segment (a scalar, or a list under a key segment) is replaced the
        same way.
        """
        if self.has_wildcard:
            raise PathSyntaxError(
                message=f"Cannot write through unbound wildcard path '{self.expression}'",
                details={"path": self.expression},
            )

        current = document
        for segment, following in zip(self.segments, self.segments[1:]):
            child = _step(current, segment)
            if not _accepts(child, following):
                child = [] if following.kind is SegmentKind.INDEX else {}
                _assign(current, segment, child)
            current = child

        _assign(current, self.segments[-1], value)


def compile_path(expression: str) -> CompiledPath:
    """
    Compile a path expression.

    Raises:
        PathSyntaxError: If the expression is malformed
    """
    return CompiledPath(expression=expression, segments=_tokenize(expression))


class PathCache:
    """
    Compiled-path memo owned by one form configuration.

    Never shared process-wide: each FormDefinition carries its own.
    """

    def __init__(self) -> None:
        self._paths: dict[str, CompiledPath] = {}

    def compile(self, expression: str) -> CompiledPath:
        compiled = self._paths.get(expression)
        if compiled is None:
            compiled = compile_path(expression)
            self._paths[expression] = compiled
        return compiled

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, expression: object) -> bool:
        return expression in self._paths


# =============================================================================
# Convenience Functions
# =============================================================================

def get_path(document: Any, expression: str, default: Any = ABSENT) -> Any:
    """
    Resolve a path expression against a document.

    Convenience function that compiles on every call; engine code
    uses pre-compiled paths instead.
    """
    value = compile_path(expression).get(document)
    return default if value is ABSENT else value


def set_path(document: Any, expression: str, value: Any) -> None:
    """Write a value into a document at a path expression."""
    compile_path(expression).set(document, value)
