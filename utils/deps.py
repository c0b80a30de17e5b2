from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from core.config import Settings
from services.access_tokens import AccessTokenCodec
from services.refresh_token_store import RefreshTokenStore
from services.request_authenticator import RequestAuthenticator
from services.session_issuer import SessionIssuer


def get_settings(request: Request) -> Settings:
    return request.app.state.settings

settings_dependency = Annotated[Settings, Depends(get_settings)]


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]


def get_access_token_codec(request: Request, settings: settings_dependency) -> AccessTokenCodec:
    return AccessTokenCodec(
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        clock=request.app.state.clock
    )

codec_dependency = Annotated[AccessTokenCodec, Depends(get_access_token_codec)]


def get_session_issuer(request: Request, db: db_dependency, settings: settings_dependency,
                       codec: codec_dependency) -> SessionIssuer:
    store = RefreshTokenStore(
        db,
        clock=request.app.state.clock,
        token_bytes=settings.REFRESH_TOKEN_BYTES
    )
    return SessionIssuer(settings, store, codec)

issuer_dependency = Annotated[SessionIssuer, Depends(get_session_issuer)]


def get_authenticator(settings: settings_dependency, codec: codec_dependency) -> RequestAuthenticator:
    return RequestAuthenticator(codec, cookie_name=settings.ACCESS_COOKIE_NAME)


def get_current_user(request: Request,
                     authenticator: Annotated[RequestAuthenticator, Depends(get_authenticator)]) -> str:
    """
    Protects an endpoint: resolves to the authenticated user id, or raises a
    CredentialError that the app turns into a 401 challenge.
    """
    return authenticator.authenticate(request)


user_dependency = Annotated[str, Depends(get_current_user)]
