from fastapi import Response

from core.config import Settings
from services.session_issuer import TokenPair


def _cookie_flags(settings: Settings) -> dict:
    # Browsers drop SameSite=None cookies that are not Secure
    secure = settings.COOKIE_SECURE or settings.COOKIE_SAMESITE == "none"
    return {"httponly": True, "samesite": settings.COOKIE_SAMESITE, "secure": secure}


def set_auth_cookies(response: Response, pair: TokenPair, settings: Settings) -> None:
    """
    Sets both tokens as HttpOnly cookies.

    The access cookie is sent on every path; the refresh cookie only reaches
    the auth endpoints.
    """
    flags = _cookie_flags(settings)

    response.set_cookie(
        key=settings.ACCESS_COOKIE_NAME,
        value=pair.access_token,
        max_age=pair.access_expires_in,
        path="/",
        **flags
    )
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=pair.refresh_token,
        max_age=pair.refresh_expires_in,
        path=settings.REFRESH_COOKIE_PATH,
        **flags
    )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    flags = _cookie_flags(settings)

    response.delete_cookie(key=settings.ACCESS_COOKIE_NAME, path="/", **flags)
    response.delete_cookie(key=settings.REFRESH_COOKIE_NAME, path=settings.REFRESH_COOKIE_PATH, **flags)
