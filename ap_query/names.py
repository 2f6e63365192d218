"""Frame name helpers shared by every query."""

SEPARATOR = "."


def _normalize(frame: str) -> str:
    return frame.replace("/", SEPARATOR)


def short_name(frame: str) -> str:
    """
    Reduce a frame to its last two components.

    "com/example/App.process" and "com.example.App.process" both become
    "App.process"; a frame with a single component is returned as is.
    """
    base = _normalize(frame)
    parts = base.split(SEPARATOR)
    if len(parts) >= 2:
        return parts[-2] + SEPARATOR + parts[-1]
    return base


def display_name(frame: str, fqn: bool = False) -> str:
    if fqn:
        return _normalize(frame)
    return short_name(frame)


def matches_method(frame: str, pattern: str) -> bool:
    """Substring match against the fully-qualified or the short name."""
    return pattern in _normalize(frame) or pattern in short_name(frame)


def truncate(n: int, top: int) -> int:
    """Number of rows to keep out of n; top <= 0 keeps everything."""
    if 0 < top < n:
        return top
    return n


def pct(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return 100.0 * count / total
