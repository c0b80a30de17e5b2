from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from core.exceptions import StoreUnavailable, TokenGenerationFailed, InvalidOrExpiredToken
from models.mixins import as_utc, utc_now
from models.refresh_tokens import RefreshToken
from utils.hashing import fingerprint_token, generate_opaque_token
from utils.logger import get_logger

logger = get_logger(__name__)


class RefreshTokenStore:
    """
    Persists refresh sessions keyed by the fingerprint of their opaque secret.

    The raw secret only ever leaves this class as a return value; it is never
    written to the database or the logs.

    All writes go through a conditional UPDATE on `revoked_at IS NULL`, so two
    callers racing on the same record cannot both revoke it. Database failures
    (timeouts, lost connections, lock waits) are rolled back and surface as
    StoreUnavailable.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now, token_bytes: int = 32):
        self.db = db
        self._clock = clock
        self._token_bytes = token_bytes

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except IntegrityError as exc:
            self.db.rollback()
            logger.error(
                "Refresh token hash collision",
                extra={"operation": operation},
                exc_info=True
            )
            raise TokenGenerationFailed("Could not store refresh token") from exc
        except (PoolTimeoutError, DBAPIError) as exc:
            self.db.rollback()
            logger.error(
                "Refresh token store unavailable",
                extra={"operation": operation, "error_type": type(exc).__name__},
                exc_info=True
            )
            raise StoreUnavailable() from exc
        except BaseException:
            # Covers cancellation too: nothing half-written may be committed
            self.db.rollback()
            raise

    def create(self, user_id: int, ttl: timedelta) -> Tuple[str, RefreshToken]:
        """
        Start a new refresh session for user_id.

        Returns:
            Tuple of (raw_token, stored record). Hand raw_token to the client.
        """
        raw_token = generate_opaque_token(self._token_bytes)
        now = self._clock()

        record = RefreshToken(
            user_id=user_id,
            token_hash=fingerprint_token(raw_token),
            created_at=now,
            expires_at=now + ttl
        )

        with self._guard("create"):
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)

        logger.debug(
            "Refresh token created",
            extra={"user_id": user_id, "refresh_token_id": record.id}
        )

        return raw_token, record

    def find_by_token(self, raw_token: str) -> Optional[RefreshToken]:
        token_hash = fingerprint_token(raw_token)

        with self._guard("find"):
            return self.db.query(RefreshToken).filter(
                RefreshToken.token_hash == token_hash
            ).first()

    def is_usable(self, record: RefreshToken) -> bool:
        return record.revoked_at is None and self._clock() < as_utc(record.expires_at)

    def rotate(self, old_record: RefreshToken, user_id: int, ttl: timedelta) -> Tuple[str, RefreshToken]:
        """
        Revoke old_record and create its successor in one transaction.

        The old record is only revoked if it is still live at write time. When
        another caller got there first, nothing is written and the presented
        token is treated as already used.

        Returns:
            Tuple of (new_raw_token, new record)

        Raises:
            InvalidOrExpiredToken: old_record was already revoked
            StoreUnavailable: the database failed or timed out
        """
        new_raw_token = generate_opaque_token(self._token_bytes)
        new_hash = fingerprint_token(new_raw_token)
        old_id = old_record.id
        now = self._clock()

        with self._guard("rotate"):
            revoked = self.db.query(RefreshToken).filter(
                RefreshToken.id == old_id,
                RefreshToken.revoked_at.is_(None)
            ).update(
                {"revoked_at": now, "replaced_by_token_hash": new_hash},
                synchronize_session=False
            )

            if revoked != 1:
                logger.warning(
                    "Refresh token rotation rejected - already revoked",
                    extra={"user_id": user_id, "refresh_token_id": old_id}
                )
                raise InvalidOrExpiredToken()

            new_record = RefreshToken(
                user_id=user_id,
                token_hash=new_hash,
                created_at=now,
                expires_at=now + ttl
            )
            self.db.add(new_record)
            self.db.commit()
            self.db.refresh(new_record)

        logger.debug(
            "Refresh token rotated",
            extra={
                "user_id": user_id,
                "refresh_token_id": old_id,
                "replaced_by_id": new_record.id
            }
        )

        return new_raw_token, new_record

    def revoke(self, raw_token: str) -> None:
        """
        Revoke the live record for raw_token, if any.

        Unknown and already-revoked tokens are a silent no-op so logout cannot
        be used to probe which tokens exist.
        """
        token_hash = fingerprint_token(raw_token)

        with self._guard("revoke"):
            revoked = self.db.query(RefreshToken).filter(
                RefreshToken.token_hash == token_hash,
                RefreshToken.revoked_at.is_(None)
            ).update({"revoked_at": self._clock()}, synchronize_session=False)
            self.db.commit()

        if revoked:
            logger.debug("Refresh token revoked")

    def revoke_all_for_user(self, user_id: int) -> int:
        """
        Revoke every live refresh session of a user (logout everywhere).

        Returns:
            Number of records revoked
        """
        with self._guard("revoke_all"):
            revoked = self.db.query(RefreshToken).filter(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None)
            ).update({"revoked_at": self._clock()}, synchronize_session=False)
            self.db.commit()

        logger.info(
            "All refresh tokens revoked for user",
            extra={"user_id": user_id, "revoked_count": revoked}
        )

        return revoked

    def rotation_chain(self, record: RefreshToken) -> List[RefreshToken]:
        """
        Follow replaced_by_token_hash links from record to the newest session.

        Returns:
            [record, successor, successor's successor, ...]
        """
        chain = [record]
        seen = {record.token_hash}
        current = record

        with self._guard("chain"):
            while current.replaced_by_token_hash and current.replaced_by_token_hash not in seen:
                successor = self.db.query(RefreshToken).filter(
                    RefreshToken.token_hash == current.replaced_by_token_hash
                ).first()
                if successor is None:
                    break
                chain.append(successor)
                seen.add(successor.token_hash)
                current = successor

        return chain
