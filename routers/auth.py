from typing import Optional

from fastapi import APIRouter, HTTPException, Request, Response
from starlette import status

from core.exceptions import MalformedSubject
from schemas.auth_schemas import (Token, SignupRequest, LoginRequest, RefreshTokenRequest,
                                  MessageResponse, UserResponse)
from services.auth_service import AuthService
from services.session_issuer import TokenPair
from utils.cookies import set_auth_cookies, clear_auth_cookies
from utils.deps import db_dependency, issuer_dependency, settings_dependency, user_dependency
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


def _token_response(pair: TokenPair) -> Token:
    return Token(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.access_expires_in
    )


def _presented_refresh_token(request: Request, body: Optional[RefreshTokenRequest],
                             cookie_name: str) -> str:
    """
    Reads the refresh token from its cookie first, then the JSON body.
    """
    token = request.cookies.get(cookie_name)
    if token:
        return token

    if body is not None and body.refresh_token:
        return body.refresh_token

    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                        detail="Missing refresh token")


@router.post("/signup", response_model=Token, status_code=status.HTTP_201_CREATED)
def signup(body: SignupRequest, response: Response, db: db_dependency,
           issuer: issuer_dependency, settings: settings_dependency):
    """
    Create a user and start a session (tokens returned and set as cookies).
    """
    user = AuthService.create_user(body.email, body.password, db)
    pair = issuer.issue(user.id)

    set_auth_cookies(response, pair, settings)

    logger.info(
        "User registered successfully",
        extra={"user_id": user.id, "email": user.email}
    )

    return _token_response(pair)


@router.post("/login", response_model=Token)
def login(body: LoginRequest, response: Response, db: db_dependency,
          issuer: issuer_dependency, settings: settings_dependency):
    user = AuthService.authenticate_user(body.email, body.password, db)

    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Invalid credentials")

    pair = issuer.issue(user.id)
    set_auth_cookies(response, pair, settings)

    logger.info(
        "User logged in successfully",
        extra={"user_id": user.id, "email": user.email}
    )

    return _token_response(pair)


@router.post("/refresh", response_model=Token)
def refresh_token(request: Request, response: Response, issuer: issuer_dependency,
                  settings: settings_dependency, body: Optional[RefreshTokenRequest] = None):
    """
    Rotate the refresh token and return a new pair (cookies updated).
    """
    presented = _presented_refresh_token(request, body, settings.REFRESH_COOKIE_NAME)
    pair = issuer.rotate(presented)

    set_auth_cookies(response, pair, settings)

    logger.info("Access token refreshed", extra={"user_id": pair.user_id})

    return _token_response(pair)


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, response: Response, issuer: issuer_dependency,
           settings: settings_dependency, body: Optional[RefreshTokenRequest] = None):
    """
    Revoke the current refresh token and clear auth cookies.
    """
    presented = _presented_refresh_token(request, body, settings.REFRESH_COOKIE_NAME)
    issuer.revoke_session(presented)

    clear_auth_cookies(response, settings)

    logger.info("User logged out")

    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
def get_me(user_id: user_dependency, db: db_dependency):
    """
    Return the authenticated user (protected endpoint).
    """
    try:
        numeric_id = int(user_id)
    except ValueError:
        raise MalformedSubject()

    model = AuthService.get_active_user_by_id(db=db, user_id=numeric_id)
    if model is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail="User not found")

    return model
