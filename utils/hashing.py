import hashlib
import secrets

from passlib.context import CryptContext

from core.exceptions import TokenGenerationFailed

bcrypt_context = CryptContext(schemes=['bcrypt'], deprecated='auto')

# Bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


def _bcrypt_input(password: str) -> bytes:
    return password.encode('utf-8')[:BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    return bcrypt_context.hash(_bcrypt_input(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Constant-time password check. Returns False instead of raising when the
    stored hash is missing or unrecognised.
    """
    try:
        return bcrypt_context.verify(_bcrypt_input(plain_password), hashed_password)
    except (ValueError, TypeError):
        return False


def generate_opaque_token(byte_length: int = 32) -> str:
    """
    URL-safe random token without padding, used as a refresh secret.

    Raises:
        TokenGenerationFailed: the OS entropy source is unavailable
    """
    try:
        return secrets.token_urlsafe(byte_length)
    except (OSError, NotImplementedError) as exc:
        raise TokenGenerationFailed("Entropy source unavailable") from exc


def fingerprint_token(token: str) -> str:
    """SHA-256 hex digest used as the storage lookup key for opaque tokens."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()
