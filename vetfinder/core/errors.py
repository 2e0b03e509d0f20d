"""Error taxonomy shared by the vet search adapters, bridge and HTTP layer."""


class VetFinderError(RuntimeError):
    """Base class for failures scoped to a single user action."""


class ConfigError(VetFinderError):
    """Raised when mandatory configuration is missing."""


class ValidationError(VetFinderError, ValueError):
    """Raised when a required query input is missing or malformed."""


class NotFound(VetFinderError):
    """Raised when a lookup yields nothing (e.g. an unknown location)."""


class UpstreamUnavailable(VetFinderError):
    """Raised when a provider or the store fails or answers with an error status."""


class Unauthenticated(VetFinderError):
    """Raised when an action needs a signed-in user and none is present."""
