from starlette.requests import Request

from core.exceptions import CredentialError, MissingCredential
from services.access_tokens import AccessTokenCodec
from utils.logger import get_logger

logger = get_logger(__name__)


class RequestAuthenticator:
    """
    Authenticates a single inbound request from its access credential.

    How it works:
    1. Take the token from `Authorization: Bearer <token>`, else from the
       access-token cookie
    2. Verify it with the access token codec (signature, algorithm, expiry)
    3. Bind the verified subject id to request.state.user_id

    Nothing here touches the database, so a revoked session's access token
    stays valid until it expires.
    """

    def __init__(self, codec: AccessTokenCodec, cookie_name: str = "access_token"):
        self.codec = codec
        self.cookie_name = cookie_name

    def extract_credential(self, request: Request) -> str:
        header = request.headers.get("Authorization", "").strip()
        if header:
            parts = header.split()
            if len(parts) == 2 and parts[0].lower() == "bearer":
                return parts[1]

        cookie = request.cookies.get(self.cookie_name)
        if cookie:
            return cookie

        raise MissingCredential()

    def authenticate(self, request: Request) -> str:
        """
        Returns:
            The authenticated user id (string)

        Raises:
            CredentialError: any extraction or verification failure
        """
        try:
            token = self.extract_credential(request)
            claims = self.codec.decode(token)
        except CredentialError as exc:
            logger.warning(
                "Authentication failed",
                extra={"reason": exc.error_code, "path": request.url.path}
            )
            raise

        request.state.user_id = claims.subject
        return claims.subject
