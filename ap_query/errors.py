"""Errors raised by profile queries."""


class QueryError(Exception):
    """Base class for failures a caller should surface as a non-zero exit."""


class InputError(QueryError):
    """The profile input could not be read or is in an unsupported format."""


class NoLineInfo(QueryError):
    """Frames matched the pattern but none of them carry a source line."""

    def __init__(self, method: str):
        super().__init__(f"no line info for frames matching '{method}'")
        self.method = method


class AssertBelowFailed(QueryError):
    """The hottest self-time method is at or above the caller's threshold."""

    def __init__(self, name: str, self_pct: float, threshold: float, report: str = ""):
        super().__init__(
            f"ASSERT FAILED: {name} self={self_pct:.1f}% >= threshold {threshold:.1f}%"
        )
        self.name = name
        self.self_pct = self_pct
        self.threshold = threshold
        # Rendered tables, so a CLI can still show them before failing.
        self.report = report
