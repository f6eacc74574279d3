"""Trellis exception hierarchy."""


class TrellisError(Exception):
    """Base for all trellis-specific errors."""


class RouterFrozenError(TrellisError, RuntimeError):
    """Raised when routes or middleware are registered after setup started."""


class PatternError(TrellisError, ValueError):
    """Raised by the multiplexer for a pattern it cannot parse."""


class PatternConflictError(TrellisError, ValueError):
    """Raised when two registrations share a method and path shape."""

    def __init__(self, pattern: str, existing: str) -> None:
        self.pattern = pattern
        self.existing = existing
        super().__init__(f"Pattern {pattern!r} conflicts with already registered pattern {existing!r}")
