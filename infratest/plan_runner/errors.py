"""Exception hierarchy for the plan test runner."""


class PlanTestError(Exception):
    """Base class for all runner errors."""


class FatalRunError(PlanTestError):
    """Setup failure that aborts the run before any module executes."""

    exit_code = 2


class ConfigurationError(FatalRunError):
    """Invalid configuration, unknown module name or bad flag combination."""


class PlanLoadError(FatalRunError):
    """The plan document is missing, unreadable or not valid JSON."""


class PathSyntaxError(PlanTestError):
    """A plan path expression could not be parsed."""

    def __init__(self, path: str, position: int, reason: str) -> None:
        """Initialize with the offending path and where parsing stopped."""
        super().__init__(f"Malformed path {path!r} at position {position}: {reason}")
        self.path = path
        self.position = position
        self.reason = reason
