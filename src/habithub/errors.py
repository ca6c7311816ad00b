# src/habithub/errors.py


class HabitHubError(Exception):
    """Base class for every failure surfaced to the dashboard."""


class NotAuthenticated(HabitHubError):
    """No owner identity is available for an operation that needs one."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class NotFound(HabitHubError):
    """A referenced habit or session does not exist for this owner."""

    def __init__(self, kind: str, ident):
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind} '{ident}' not found")


class ValidationError(HabitHubError):
    """Caller input was rejected before reaching the store."""


class StoreFailure(HabitHubError):
    """Any other failure reported by the data store."""
