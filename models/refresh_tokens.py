from core.database import Base
from sqlalchemy import Column, DateTime, String, Integer, ForeignKey
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin


class RefreshToken(Base, CreatedAtMixin):
    """
    One refresh session.

    Only the SHA-256 fingerprint of the opaque secret is stored. A record is
    live while revoked_at is NULL and expires_at is in the future. Rotation
    revokes the record and points replaced_by_token_hash at its successor, so
    a session's history can be walked as a chain. Records are never deleted.
    """
    __tablename__ = "refresh_tokens"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="refresh_tokens")

    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    replaced_by_token_hash = Column(String(64), nullable=True)

    def __repr__(self):
        return (
            f"<RefreshToken id={self.id} user_id={self.user_id} "
            f"revoked={self.revoked_at is not None}>"
        )
