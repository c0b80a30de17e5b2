from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session
from starlette import status

from models.users import User
from utils.hashing import get_password_hash, verify_password
from utils.logger import get_logger

logger = get_logger(__name__)

# Verified against when the email is unknown so both paths cost one bcrypt check
FAKE_HASHED_PASSWORD = get_password_hash("this_is_a_fake_user_that_never_exists")


class AuthService:
    """
    Identity checks that hand a verified user id to the session issuer.
    """

    @staticmethod
    def create_user(email: str, password: str, db: Session) -> User:
        email = email.lower().strip()

        existing_user = db.query(User).filter(User.email == email).first()
        if existing_user:
            logger.warning(
                "Registration attempt with existing email",
                extra={"email": email}
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="User already exists"
            )

        model = User(email=email, hashed_password=get_password_hash(password))

        db.add(model)
        db.commit()
        db.refresh(model)

        return model

    @staticmethod
    def authenticate_user(email: str, password: str, db: Session) -> Optional[User]:
        email = email.lower().strip()
        user = db.query(User).filter(User.email == email).first()

        hashed_password = user.hashed_password if user else FAKE_HASHED_PASSWORD
        password_correct = verify_password(password, hashed_password)

        if not user or not password_correct or not user.is_active:
            logger.warning(
                "Login failed - invalid credentials",
                extra={"email": email}
            )
            return None

        logger.debug(
            "User authenticated successfully",
            extra={"user_id": user.id, "email": email}
        )

        return user

    @staticmethod
    def get_active_user_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id, User.is_active == True).one_or_none()  # noqa: E712
