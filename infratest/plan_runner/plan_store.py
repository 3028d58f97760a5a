"""Load the rendered plan once and serve read-only lookups into it."""

import hashlib
import json
import logging
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path
from types import MappingProxyType
from typing import Any

from infratest.plan_runner.errors import PlanLoadError
from infratest.plan_runner.plan_path import Segment, parse_path

logger = logging.getLogger(__name__)


class _NotFound:
    """Marker for a path that resolved to nothing."""

    _instance: "_NotFound | None" = None

    def __new__(cls) -> "_NotFound":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()


def freeze(value: Any) -> Any:
    """Recursively convert JSON containers into read-only equivalents."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, list | tuple):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Convert frozen containers back into plain dicts and lists."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple | list):
        return [thaw(v) for v in value]
    return value


class PlanSnapshot:
    """Immutable, parsed view of the plan for one run."""

    def __init__(self, data: Mapping[str, Any], source: str = "<memory>") -> None:
        """Freeze the parsed plan document."""
        self._root: Mapping[str, Any] = freeze(data)
        self.source = source
        self.digest = hashlib.sha256(
            json.dumps(data, sort_keys=True).encode()
        ).hexdigest()
        self._resources: tuple[Mapping[str, Any], ...] = tuple(
            _collect_resources(self._root)
        )

    @property
    def root(self) -> Mapping[str, Any]:
        """Top-level plan document."""
        return self._root

    def get(self, path: str | Sequence[Segment]) -> Any:
        """Resolve a path into the plan.

        Args:
            path: Path expression or pre-parsed segments

        Returns:
            The value at ``path`` or ``NOT_FOUND`` if any segment is absent

        Raises:
            PathSyntaxError: If ``path`` is a malformed expression

        """
        segments = parse_path(path) if isinstance(path, str) else tuple(path)
        return resolve(self._root, segments)

    def resources(self, resource_type: str | None = None) -> list[Mapping[str, Any]]:
        """Planned resource entries, optionally restricted to one type."""
        if resource_type is None:
            return list(self._resources)
        return [r for r in self._resources if r.get("type") == resource_type]


def resolve(value: Any, segments: Sequence[Segment]) -> Any:
    """Walk ``segments`` from ``value``, returning ``NOT_FOUND`` on a miss."""
    current = value
    for segment in segments:
        if isinstance(segment, int):
            if isinstance(current, str | bytes) or not isinstance(current, Sequence):
                return NOT_FOUND
            if segment >= len(current):
                return NOT_FOUND
            current = current[segment]
        elif isinstance(current, Mapping):
            if segment not in current:
                return NOT_FOUND
            current = current[segment]
        else:
            return NOT_FOUND
    return current


def _entries(value: Any) -> list[Any]:
    if isinstance(value, str | bytes) or not isinstance(value, Sequence):
        return []
    return list(value)


def _collect_resources(root: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    planned = root.get("planned_values")
    if isinstance(planned, Mapping):
        module = planned.get("root_module")
        return _walk_module(module) if isinstance(module, Mapping) else []
    return [r for r in _entries(root.get("resources")) if isinstance(r, Mapping)]


def _walk_module(module: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    found = [r for r in _entries(module.get("resources")) if isinstance(r, Mapping)]
    for child in _entries(module.get("child_modules")):
        if isinstance(child, Mapping):
            found.extend(_walk_module(child))
    return found


class PlanStore:
    """Owns the one-time load of the plan document.

    The first call to ``load`` reads and parses the file; every later call,
    from any thread, returns the same snapshot.
    """

    def __init__(self, source: Path) -> None:
        """Initialize the store for a plan file."""
        self.source = source
        self._snapshot: PlanSnapshot | None = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        """Whether the snapshot has been materialized."""
        return self._snapshot is not None

    def load(self) -> PlanSnapshot:
        """Load the plan, parsing it only on the first call.

        Returns:
            The cached plan snapshot

        Raises:
            PlanLoadError: If the file is missing, unreadable or not a JSON object

        """
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._read()
            return self._snapshot

    def get(self, path: str | Sequence[Segment]) -> Any:
        """Resolve a path against the loaded snapshot."""
        return self.load().get(path)

    def _read(self) -> PlanSnapshot:
        logger.info(f"Loading plan from {self.source}")
        if not self.source.exists():
            raise PlanLoadError(f"Plan file not found: {self.source}")

        try:
            text = self.source.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PlanLoadError(f"Unable to read plan {self.source}: {e}") from e

        try:
            data = json.loads(text)
        except (json.JSONDecodeError, RecursionError) as e:
            raise PlanLoadError(f"Invalid JSON in {self.source}: {e}") from e

        if not isinstance(data, dict):
            raise PlanLoadError(
                f"Plan {self.source} must be a JSON object, "
                f"got {type(data).__name__}"
            )

        try:
            snapshot = PlanSnapshot(data, source=str(self.source))
        except (TypeError, ValueError, RecursionError) as e:
            raise PlanLoadError(
                f"Unable to build plan snapshot from {self.source}: "
                f"{type(e).__name__}: {e}"
            ) from e
        logger.info(
            f"Plan loaded: {len(snapshot.resources())} planned resources, "
            f"sha256 {snapshot.digest[:12]}"
        )
        return snapshot
