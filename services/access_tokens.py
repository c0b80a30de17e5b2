from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from jose import jwk, jwt
from jose.exceptions import JWKError, JWTError
from jose.utils import base64url_decode

from core.config import HMAC_ALGORITHMS
from core.exceptions import (
    ConfigurationMissing,
    InvalidSignature,
    MalformedSubject,
    MalformedToken,
    TokenExpired,
    TokenGenerationFailed,
    UnsupportedAlgorithm,
)
from models.mixins import utc_now


@dataclass(frozen=True)
class AccessTokenClaims:
    """Verified contents of an access token."""
    subject: str
    expires_at: datetime
    issued_at: Optional[datetime] = None


def _subject_from_claim(value: Any) -> str:
    # bool is an int subclass but never a valid subject
    if isinstance(value, bool):
        raise MalformedSubject()
    if isinstance(value, str):
        if not value.strip():
            raise MalformedSubject()
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    raise MalformedSubject()


def _timestamp_from_claim(value: Any) -> datetime:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedToken()
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise MalformedToken() from exc


class AccessTokenCodec:
    """
    Signs and verifies stateless access tokens (JWT, HMAC family only).

    Claims carried: sub (user id as string), iat, exp. Verification is purely
    cryptographic; there is no server-side lookup.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = utc_now,
    ):
        if not secret:
            raise ConfigurationMissing("Access token signing secret is not configured")
        if algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock

    def encode(self, subject_id, ttl: timedelta) -> str:
        """
        Create a signed access token for subject_id valid for ttl.

        Raises:
            TokenGenerationFailed: signing failed
        """
        subject = str(subject_id)
        if not subject:
            raise ValueError("subject_id cannot be empty")

        now = self._clock()
        payload = {
            "sub": subject,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }

        try:
            return jwt.encode(payload, self._secret, algorithm=self._algorithm)
        except (JWTError, JWKError) as exc:
            raise TokenGenerationFailed("Could not sign access token") from exc

    def decode(self, token: str) -> AccessTokenClaims:
        """
        Verify token and return its claims.

        Checks, in order: structure, declared algorithm, signature, expiry,
        subject.

        Raises:
            MalformedToken: token, header or claims cannot be parsed
            UnsupportedAlgorithm: header alg is not HS256/HS384/HS512
            InvalidSignature: MAC does not match
            TokenExpired: now >= exp
            MalformedSubject: sub missing, empty or not a string/integer
        """
        if not isinstance(token, str) or not token:
            raise MalformedToken()

        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise MalformedToken() from exc

        algorithm = header.get("alg")
        if algorithm not in HMAC_ALGORITHMS:
            raise UnsupportedAlgorithm()

        signing_input, _, signature_segment = token.rpartition(".")
        try:
            message = signing_input.encode("ascii")
            signature = base64url_decode(signature_segment.encode("ascii"))
            key = jwk.construct(self._secret, algorithm=algorithm)
        except (ValueError, JWKError) as exc:
            raise MalformedToken() from exc

        if not key.verify(message, signature):
            raise InvalidSignature()

        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedToken() from exc

        expires_at = _timestamp_from_claim(claims.get("exp"))
        if self._clock() >= expires_at:
            raise TokenExpired()

        issued_at = None
        if claims.get("iat") is not None:
            issued_at = _timestamp_from_claim(claims["iat"])

        return AccessTokenClaims(
            subject=_subject_from_claim(claims.get("sub")),
            expires_at=expires_at,
            issued_at=issued_at,
        )
