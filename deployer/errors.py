class DeployerError(Exception):
    pass

class AuthError(DeployerError):
    """Shared secret missing or wrong."""

class ValidationError(DeployerError):
    """Request is missing a required field or has a malformed one."""

class GenerationError(DeployerError):
    """The text-generation provider failed or returned nothing usable."""

class PublishError(DeployerError):
    """Creating, reading or writing the GitHub repository failed."""

class CallbackError(DeployerError):
    """The evaluation callback could not be delivered."""
