"""Custom exceptions for equityplan."""


class EquityPlanError(Exception):
    """Base exception for equity planning errors."""


class InvalidInputError(EquityPlanError, ValueError):
    """Raised when a grant, client, or exercise record fails validation.

    Subclasses ValueError so pydantic validators can raise it directly and
    have it reported as a ValidationError at the model boundary.
    """

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Invalid input on '{field}': {message}")


class RateTableError(EquityPlanError):
    """Raised when a rate table configuration cannot be loaded."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"Rate table error from {source}: {message}")


class GrantNotFoundError(EquityPlanError):
    """Raised when a lookup references a grant the client doesn't hold."""

    def __init__(self, grant_id: str):
        self.grant_id = grant_id
        super().__init__(f"Grant not found: {grant_id}")
