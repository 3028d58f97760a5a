"""Static registry mapping module names to their test modules."""

import fnmatch
import logging
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from types import MappingProxyType

from infratest.plan_runner.errors import ConfigurationError
from infratest.plan_runner.models.test_definition import TestModule
from infratest.plan_runner.test_loader import load_builtin_suites, load_suites

logger = logging.getLogger(__name__)


class ModuleRegistry:
    """Read-only table of test modules in declaration order.

    Populated once from a fixed list of modules; there is no way to add or
    remove modules afterwards.
    """

    def __init__(self, modules: Iterable[TestModule]) -> None:
        """Validate and freeze the module table.

        Raises:
            ConfigurationError: If module names collide, a module has no cases
                or a module declares the same case name twice

        """
        table: dict[str, TestModule] = {}
        for module in modules:
            if module.name in table:
                raise ConfigurationError(
                    f"Duplicate test module '{module.name}' "
                    f"(from {module.source or 'code'})"
                )
            validate_module(module)
            table[module.name] = module
        self._modules = MappingProxyType(table)

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __iter__(self) -> Iterator[TestModule]:
        return iter(self._modules.values())

    def __len__(self) -> int:
        return len(self._modules)

    @property
    def names(self) -> list[str]:
        """Registered module names in declaration order."""
        return list(self._modules)

    def get(self, name: str) -> TestModule:
        """Look up a module by name.

        Raises:
            ConfigurationError: If no module has that name

        """
        try:
            return self._modules[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown test module: {name}. "
                f"Must be one of: {', '.join(self.names) or '(none registered)'}"
            ) from None

    def select(
        self, names: Sequence[str] = (), filters: Sequence[str] = ()
    ) -> list[TestModule]:
        """Resolve the module selection.

        Explicit names must all exist. Filters are glob patterns and may
        match nothing. With neither given every module is selected. The
        result keeps declaration order.

        Raises:
            ConfigurationError: If an explicit name is not registered

        """
        for name in names:
            self.get(name)

        if not names and not filters:
            return list(self)

        wanted = set(names)
        return [
            module
            for module in self
            if module.name in wanted
            or any(fnmatch.fnmatchcase(module.name, f) for f in filters)
        ]


def validate_module(module: TestModule) -> None:
    """Check a module's cases are present and uniquely named.

    Raises:
        ConfigurationError: If the module is empty or has duplicate case names

    """
    if not module.cases:
        raise ConfigurationError(f"Test module '{module.name}' has no test cases")
    seen: set[str] = set()
    for name in module.case_names:
        if name in seen:
            raise ConfigurationError(
                f"Duplicate test case '{name}' in module '{module.name}'"
            )
        seen.add(name)


def build_registry(
    suite_paths: Iterable[Path] = (), include_builtin: bool = True
) -> ModuleRegistry:
    """Register bundled suites (unless disabled) followed by extra suites."""
    modules: list[TestModule] = []
    if include_builtin:
        modules.extend(load_builtin_suites())
    modules.extend(load_suites(suite_paths))
    registry = ModuleRegistry(modules)
    logger.info(f"Registered {len(registry)} test modules: {registry.names}")
    return registry
