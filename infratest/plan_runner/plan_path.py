"""Parse dotted/indexed path expressions into typed segments.

Paths address values inside the plan document::

    planned_values.root_module.resources[0].values.bucket
    resource_changes[2]["change"].after
    configuration["provider_config"]["aws"].name

A segment is either a mapping key (``str``) or a list index (``int``).
Keys containing dots or brackets must use the quoted form ``["..."]``.
"""

from collections.abc import Sequence

from infratest.plan_runner.errors import PathSyntaxError

Segment = str | int

_RESERVED = frozenset(".[]\"'")


def parse_path(path: str) -> tuple[Segment, ...]:
    """Parse a path expression.

    Args:
        path: Path expression such as ``a.b[0]["c.d"]``

    Returns:
        Tuple of segments, keys as ``str`` and indexes as ``int``

    Raises:
        PathSyntaxError: If the expression is empty or malformed

    """
    if not isinstance(path, str):
        raise PathSyntaxError(repr(path), 0, "path must be a string")
    if not path:
        raise PathSyntaxError(path, 0, "empty path")

    segments: list[Segment] = []
    pos = 0
    expect_key = True
    while pos < len(path):
        char = path[pos]
        if char == "[":
            if expect_key and segments:
                raise PathSyntaxError(path, pos, "empty key")
            pos = _parse_bracket(path, pos, segments)
            expect_key = False
        elif char == ".":
            if expect_key:
                raise PathSyntaxError(path, pos, "empty key")
            pos += 1
            expect_key = True
            if pos == len(path):
                raise PathSyntaxError(path, pos, "trailing dot")
        elif expect_key:
            pos = _parse_key(path, pos, segments)
            expect_key = False
        else:
            raise PathSyntaxError(path, pos, f"unexpected character {char!r}")
    return tuple(segments)


def _parse_key(path: str, pos: int, segments: list[Segment]) -> int:
    start = pos
    while pos < len(path) and path[pos] not in _RESERVED:
        if path[pos].isspace():
            raise PathSyntaxError(path, pos, "whitespace in key")
        pos += 1
    if pos == start:
        raise PathSyntaxError(path, pos, f"unexpected character {path[pos]!r}")
    segments.append(path[start:pos])
    return pos


def _parse_bracket(path: str, pos: int, segments: list[Segment]) -> int:
    end = path.find("]", pos)
    if end == -1:
        raise PathSyntaxError(path, pos, "unclosed bracket")
    body = path[pos + 1 : end]
    if len(body) >= 2 and body[0] == body[-1] and body[0] in "\"'":
        key = body[1:-1]
        if not key:
            raise PathSyntaxError(path, pos, "empty quoted key")
        segments.append(key)
    elif body.isdigit():
        segments.append(int(body))
    else:
        raise PathSyntaxError(
            path, pos, f"bracket must hold an index or quoted key, got {body!r}"
        )
    return end + 1


def format_path(segments: Sequence[Segment]) -> str:
    """Render segments back into a path expression."""
    parts: list[str] = []
    for segment in segments:
        if isinstance(segment, int):
            parts.append(f"[{segment}]")
        elif _RESERVED.intersection(segment) or not segment:
            parts.append(f'["{segment}"]')
        elif parts:
            parts.append(f".{segment}")
        else:
            parts.append(segment)
    return "".join(parts)
