"""Domain errors, translated to HTTP responses in main.py."""


class DashboardError(Exception):
    """Base class for errors raised by the dashboard services."""


class InvalidOperation(DashboardError):
    """A request that is well-formed but not allowed in the current state."""

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.message = message
        self.field = field


class UpstreamServiceError(DashboardError):
    """A third-party API timed out, failed, or returned an unusable payload."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.message = message
