from dataclasses import dataclass

from core.config import Settings
from core.exceptions import InvalidOrExpiredToken, StoreUnavailable, TokenGenerationFailed
from services.access_tokens import AccessTokenCodec
from services.refresh_token_store import RefreshTokenStore
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    user_id: int
    access_expires_in: int
    refresh_expires_in: int


class SessionIssuer:
    """
    Handles the session lifecycle: issuing, rotating and revoking token pairs.
    """

    def __init__(self, settings: Settings, store: RefreshTokenStore, codec: AccessTokenCodec):
        self.settings = settings
        self.store = store
        self.codec = codec

    def _pair(self, access_token: str, refresh_token: str, user_id: int) -> TokenPair:
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            user_id=user_id,
            access_expires_in=int(self.settings.access_token_ttl.total_seconds()),
            refresh_expires_in=int(self.settings.refresh_token_ttl.total_seconds()),
        )

    def issue(self, user_id: int) -> TokenPair:
        """
        Creates access token + refresh token pair for a verified user.

        The access token is only returned together with a stored refresh
        session; if storing fails the caller gets an exception and no tokens.

        Raises:
            StoreUnavailable: database failed or timed out
            TokenGenerationFailed: signing or entropy failure
        """
        try:
            access_token = self.codec.encode(user_id, self.settings.access_token_ttl)
            refresh_token, record = self.store.create(user_id, self.settings.refresh_token_ttl)
        except (StoreUnavailable, TokenGenerationFailed):
            logger.error("Token issuance failed", extra={"user_id": user_id})
            raise
        except ValueError as exc:
            logger.error("Token issuance failed", extra={"user_id": user_id}, exc_info=True)
            raise TokenGenerationFailed("Could not issue tokens") from exc

        logger.info(
            "Session issued",
            extra={"user_id": user_id, "refresh_token_id": record.id}
        )

        return self._pair(access_token, refresh_token, user_id)

    def rotate(self, presented_refresh_token: str) -> TokenPair:
        """
        Exchanges a live refresh token for a new pair (token rotation).

        Flow:
        1. Look up the record by the token's fingerprint
        2. Reject if unknown, revoked or expired (one error for all three)
        3. Sign a fresh access token for the record's user
        4. Atomically revoke the old record and chain its successor

        Raises:
            InvalidOrExpiredToken: token unknown, revoked, expired or lost a race
            StoreUnavailable: database failed or timed out
            TokenGenerationFailed: signing or entropy failure
        """
        record = self.store.find_by_token(presented_refresh_token)

        if record is None or not self.store.is_usable(record):
            logger.warning(
                "Refresh rejected - token invalid or expired",
                extra={"refresh_token_id": record.id if record else None}
            )
            raise InvalidOrExpiredToken()

        user_id = record.user_id
        record_id = record.id

        # Signed first: a signing failure must leave the presented token live
        try:
            access_token = self.codec.encode(user_id, self.settings.access_token_ttl)
        except ValueError as exc:
            raise TokenGenerationFailed("Could not issue access token") from exc

        new_refresh_token, new_record = self.store.rotate(
            record, user_id, self.settings.refresh_token_ttl
        )

        logger.info(
            "Session rotated",
            extra={
                "user_id": user_id,
                "refresh_token_id": record_id,
                "replaced_by_id": new_record.id
            }
        )

        return self._pair(access_token, new_refresh_token, user_id)

    def revoke_session(self, presented_refresh_token: str) -> None:
        """
        Revokes a refresh token (logout).

        Always succeeds from the caller's point of view; unknown or already
        revoked tokens are ignored.
        """
        self.store.revoke(presented_refresh_token)
        logger.info("Session revoked")

    def revoke_all_sessions(self, user_id: int) -> int:
        """Revokes every refresh token of a user (logout from all devices)."""
        return self.store.revoke_all_for_user(user_id)
