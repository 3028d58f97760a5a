"""Primitive checks evaluated against values taken from the plan.

Every assertion returns an ``AssertionResult`` and never raises: a fault
inside an assertion (bad path syntax, invalid regex, unsupported operand)
becomes an ``error`` result, which is kept distinct from a ``fail`` so a
report can tell a broken test apart from broken infrastructure.
"""

import functools
import json
import logging
import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from infratest.plan_runner.errors import PathSyntaxError
from infratest.plan_runner.models.assertion_result import (
    AssertionResult,
    AssertionStatus,
)
from infratest.plan_runner.models.test_definition import Comparator
from infratest.plan_runner.plan_path import parse_path
from infratest.plan_runner.plan_store import NOT_FOUND, PlanSnapshot, resolve, thaw

logger = logging.getLogger(__name__)

_EXCERPT_LENGTH = 80
_COMPARATORS: dict[str, tuple[str, Callable[[int, int], bool]]] = {
    "eq": ("==", lambda actual, expected: actual == expected),
    "gte": (">=", lambda actual, expected: actual >= expected),
    "lte": ("<=", lambda actual, expected: actual <= expected),
}


def _guarded(
    func: Callable[..., AssertionResult],
) -> Callable[..., AssertionResult]:
    """Convert any exception raised by an assertion into an error result."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> AssertionResult:
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.debug(f"Assertion {func.__name__} raised", exc_info=e)
            return AssertionResult(
                assertion=func.__name__,
                status="error",
                message=f"{type(e).__name__}: {e}",
                path=kwargs.get("path"),
            )

    return wrapper


def _result(
    assertion: str,
    status: AssertionStatus,
    message: str,
    *,
    expected: Any = None,
    actual: Any = None,
    path: str | None = None,
) -> AssertionResult:
    return AssertionResult(
        assertion=assertion,
        status=status,
        message=message,
        expected=_plain(expected),
        actual=_plain(actual),
        path=path,
    )


def _plain(value: Any) -> Any:
    return None if value is NOT_FOUND else thaw(value)


def _show(value: Any) -> str:
    """Render a value verbatim, as it appeared in the plan JSON."""
    return json.dumps(_plain(value), sort_keys=True, default=repr)


def _where(path: str | None) -> str:
    return f" at {path}" if path else ""


def _unresolved(
    assertion: str, path: str | None, expected: Any = None
) -> AssertionResult:
    return _result(
        assertion,
        "error",
        f"No value resolved{_where(path)}",
        expected=expected,
        path=path,
    )


def _canonical(value: Any, ordered: bool) -> Any:
    """Reduce a JSON value to a comparable form.

    Booleans stay distinct from numbers and integral floats equal their
    integer. With ``ordered=False`` lists compare as multisets at every level.
    """
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return (type(value).__name__, value)
    if isinstance(value, int | float):
        number = int(value) if float(value).is_integer() else value
        return ("number", number)
    if isinstance(value, Mapping):
        return (
            "map",
            tuple(sorted((str(k), _canonical(v, ordered)) for k, v in value.items())),
        )
    if isinstance(value, Sequence | set | frozenset):
        items = [_canonical(v, ordered) for v in value]
        if not ordered:
            items.sort(key=repr)
        return ("list", tuple(items))
    return (type(value).__name__, repr(value))


def lookup(source: PlanSnapshot | Mapping[str, Any], path: str) -> Any:
    """Resolve ``path`` against a snapshot or a sub-tree of it.

    Returns:
        The value, or ``NOT_FOUND`` when a segment is absent

    Raises:
        PathSyntaxError: If ``path`` is malformed

    """
    if isinstance(source, PlanSnapshot):
        return source.get(path)
    return resolve(source, parse_path(path))


@_guarded
def equals(
    actual: Any,
    expected: Any,
    *,
    ordered: bool = True,
    path: str | None = None,
    message: str | None = None,
) -> AssertionResult:
    """Check structural equality; ``ordered=False`` ignores list order."""
    if actual is NOT_FOUND:
        return _unresolved("equals", path, expected)
    if _canonical(actual, ordered) == _canonical(expected, ordered):
        return _result(
            "equals",
            "pass",
            f"Value{_where(path)} equals {_show(expected)}",
            expected=expected,
            actual=actual,
            path=path,
        )
    return _result(
        "equals",
        "fail",
        message
        or f"Expected {_show(expected)}, got {_show(actual)}{_where(path)}",
        expected=expected,
        actual=actual,
        path=path,
    )


@_guarded
def not_equals(
    actual: Any,
    unexpected: Any,
    *,
    ordered: bool = True,
    path: str | None = None,
    message: str | None = None,
) -> AssertionResult:
    """Check that a value differs from ``unexpected``."""
    if actual is NOT_FOUND:
        return _unresolved("not_equals", path, unexpected)
    if _canonical(actual, ordered) != _canonical(unexpected, ordered):
        return _result(
            "not_equals",
            "pass",
            f"Value{_where(path)} differs from {_show(unexpected)}",
            expected=unexpected,
            actual=actual,
            path=path,
        )
    return _result(
        "not_equals",
        "fail",
        message or f"Expected a value other than {_show(unexpected)}{_where(path)}",
        expected=unexpected,
        actual=actual,
        path=path,
    )


@_guarded
def not_empty(
    value: Any, *, path: str | None = None, message: str | None = None
) -> AssertionResult:
    """Fail if the value is absent, null, an empty string or an empty container."""
    if value is NOT_FOUND or value is None:
        return _result(
            "not_empty",
            "fail",
            message or f"Value{_where(path)} is absent",
            path=path,
        )
    if isinstance(value, str | Mapping | Sequence) and len(value) == 0:
        return _result(
            "not_empty",
            "fail",
            message or f"Value{_where(path)} is empty",
            actual=value,
            path=path,
        )
    return _result(
        "not_empty",
        "pass",
        f"Value{_where(path)} is not empty",
        actual=value,
        path=path,
    )


@_guarded
def contains(
    haystack: Any,
    needle: Any,
    *,
    path: str | None = None,
    message: str | None = None,
) -> AssertionResult:
    """Check substring, mapping key or list element containment."""
    if haystack is NOT_FOUND:
        return _unresolved("contains", path, needle)
    if isinstance(haystack, str):
        if not isinstance(needle, str):
            raise TypeError(
                f"cannot search a string for {type(needle).__name__} {needle!r}"
            )
        found = needle in haystack
    elif isinstance(haystack, Mapping):
        found = needle in haystack
    elif isinstance(haystack, Sequence):
        target = _canonical(needle, True)
        found = any(_canonical(item, True) == target for item in haystack)
    else:
        raise TypeError(f"{type(haystack).__name__} value is not a container")

    if found:
        return _result(
            "contains",
            "pass",
            f"Value{_where(path)} contains {_show(needle)}",
            expected=needle,
            path=path,
        )
    rendered = haystack if isinstance(haystack, str) else _show(haystack)
    excerpt = rendered[:_EXCERPT_LENGTH]
    if len(rendered) > _EXCERPT_LENGTH:
        excerpt += "..."
    return _result(
        "contains",
        "fail",
        message
        or (
            f"Expected {_show(needle)} in value{_where(path)} "
            f"(length {len(haystack)}): {excerpt}"
        ),
        expected=needle,
        actual=excerpt,
        path=path,
    )


@_guarded
def matches(
    value: Any,
    pattern: str,
    *,
    path: str | None = None,
    message: str | None = None,
) -> AssertionResult:
    """Check that a string value contains a match for ``pattern``."""
    if value is NOT_FOUND:
        return _unresolved("matches", path, pattern)
    compiled = re.compile(pattern)
    if not isinstance(value, str):
        raise TypeError(
            f"cannot match {type(value).__name__} value against a pattern"
        )
    if compiled.search(value):
        return _result(
            "matches",
            "pass",
            f"Value{_where(path)} matches /{pattern}/",
            expected=pattern,
            actual=value,
            path=path,
        )
    return _result(
        "matches",
        "fail",
        message or f"Value {_show(value)}{_where(path)} does not match /{pattern}/",
        expected=pattern,
        actual=value,
        path=path,
    )


def path_exists(
    source: PlanSnapshot | Mapping[str, Any],
    path: str,
    *,
    label: str | None = None,
    message: str | None = None,
) -> AssertionResult:
    """Check that every segment of ``path`` is present.

    A malformed path is an error, a missing segment is a failure.
    """
    shown = label or path
    try:
        value = lookup(source, path)
    except PathSyntaxError as e:
        return _result("path_exists", "error", str(e), path=shown)
    except Exception as e:
        return _result(
            "path_exists", "error", f"{type(e).__name__}: {e}", path=shown
        )
    if value is NOT_FOUND:
        return _result(
            "path_exists",
            "fail",
            message or f"Path {shown} not found in plan",
            path=shown,
        )
    return _result("path_exists", "pass", f"Path {shown} exists", path=shown)


@_guarded
def resource_count(
    snapshot: PlanSnapshot,
    resource_type: str,
    expected_count: int,
    comparator: Comparator = "eq",
    *,
    message: str | None = None,
) -> AssertionResult:
    """Count planned resources of a type and compare against ``expected_count``."""
    if comparator not in _COMPARATORS:
        raise ValueError(
            f"unknown comparator {comparator!r}, expected one of "
            f"{', '.join(_COMPARATORS)}"
        )
    symbol, compare = _COMPARATORS[comparator]
    actual = len(snapshot.resources(resource_type))
    if compare(actual, expected_count):
        return _result(
            "resource_count",
            "pass",
            f"{actual} {resource_type} resources ({symbol} {expected_count})",
            expected=expected_count,
            actual=actual,
            path=resource_type,
        )
    return _result(
        "resource_count",
        "fail",
        message
        or (
            f"Expected {resource_type} count {symbol} {expected_count}, "
            f"got {actual}"
        ),
        expected=expected_count,
        actual=actual,
        path=resource_type,
    )
