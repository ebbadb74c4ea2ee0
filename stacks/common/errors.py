"""Exceptions raised while building the infrastructure description."""


class InfrastructureError(Exception):
    """Base exception for infrastructure composition errors."""


class ConfigurationError(InfrastructureError):
    """Raised when required deployment inputs are missing or empty.

    Attributes:
        missing_keys: Every offending environment variable name, in check order.
    """

    def __init__(self, missing_keys: list[str]) -> None:
        self.missing_keys = list(missing_keys)
        super().__init__(
            f"environment variable(s) not defined: {', '.join(self.missing_keys)}",
        )


class ResourceCompositionError(InfrastructureError):
    """Raised when resources cannot be wired together as requested."""
