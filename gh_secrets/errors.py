# gh_secrets/errors.py
"""
Error taxonomy for authentication and secret transport.

Terminal device-flow outcomes each get their own exception type so callers
can give tailored guidance ("restart the flow" vs. "check the approval").
None of these messages ever carry a secret value or an access token.
"""


class GhSecretsError(Exception):
    """Base class for every error raised by gh_secrets."""
    pass


class TransportError(GhSecretsError):
    """Raised when a network request fails or returns an unusable response."""
    pass


class EncodingError(GhSecretsError):
    """Raised when base64 text or key material cannot be decoded."""
    pass


class ConfigError(GhSecretsError):
    """Raised when the configuration file is missing or invalid."""
    pass


class InvalidSecretName(GhSecretsError):
    """Raised when a secret name is rejected by the name validator."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Invalid secret name '{name}': use letters, digits and underscores, "
            "do not start with a digit or with GITHUB_"
        )


class ApiError(GhSecretsError):
    """Raised when the GitHub REST API answers with an error status."""

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(f"GitHub API error {status}: {message}")


class AuthError(ApiError):
    """Raised when the identity lookup rejects the token (401/403)."""
    pass


class DeviceFlowError(GhSecretsError):
    """Base class for terminal device authorization failures."""
    pass


class DeviceCodeExpired(DeviceFlowError):
    """The device code expired before the user approved it."""

    def __init__(self):
        super().__init__("Device code expired. Please restart the authorization flow.")


class UserDeniedAuthorization(DeviceFlowError):
    """The user declined the authorization request."""

    def __init__(self):
        super().__init__("Access denied by user. Check the approval in your browser.")


class ProviderError(DeviceFlowError):
    """The authorization server returned an error code we do not handle."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"OAuth error: {code}")


class AuthenticationFailed(GhSecretsError):
    """
    Raised at the credential acquisition boundary.

    The underlying failure is available as ``cause`` and as ``__cause__``.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {type(cause).__name__}: {cause}"
        super().__init__(message)
