"""
Error taxonomy for the session credential lifecycle.

Every AuthError carries the HTTP status it maps to, a stable error code and a
generic public message. Messages never contain token material; internal
detail goes to the logs only.
"""


class AuthError(Exception):
    status_code: int = 401
    error_code: str = "unauthorized"
    public_message: str = "Unauthorized"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


# Access credential failures (Request Authenticator / Access Token Codec)

class CredentialError(AuthError):
    """The presented access credential could not be accepted (401)."""
    error_code = "credential_invalid"


class MissingCredential(CredentialError):
    error_code = "missing_credential"


class MalformedToken(CredentialError):
    error_code = "malformed"


class InvalidSignature(CredentialError):
    error_code = "invalid_signature"


class TokenExpired(CredentialError):
    error_code = "expired"


class UnsupportedAlgorithm(CredentialError):
    error_code = "unsupported_algorithm"


class MalformedSubject(CredentialError):
    error_code = "malformed_subject"


# Refresh / session failures (Session Issuer / Refresh Token Store)

class InvalidOrExpiredToken(AuthError):
    """
    Refresh token unknown, revoked or expired.

    The three causes share one error so callers cannot probe which one applied.
    """
    error_code = "invalid_or_expired_token"
    public_message = "Invalid or expired refresh token"


class StoreUnavailable(AuthError):
    status_code = 500
    error_code = "store_unavailable"
    public_message = "Internal server error"


class TokenGenerationFailed(AuthError):
    status_code = 500
    error_code = "token_generation_failed"
    public_message = "Internal server error"


class ConfigurationMissing(Exception):
    """Required configuration is absent. Raised at startup only."""
