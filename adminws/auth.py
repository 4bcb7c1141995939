import json
import re
from functools import lru_cache
from typing import Mapping

from fastapi import HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param
from jwcrypto import jwk, jwt
from jwcrypto.common import JWException, base64url_encode
from jwcrypto.jwt import JWTExpired
from pydantic import ValidationError

from adminws.constants import WS_AUTH_SUBPROTOCOL
from adminws.exceptions import AuthenticationError
from adminws.logging import logger
from adminws.schemas.user import UserContext
from adminws.settings import app_settings


@lru_cache
def get_signing_key() -> jwk.JWK:
    """Symmetric key shared with the service that issues access tokens."""
    return jwk.JWK(
        kty="oct", k=base64url_encode(app_settings.JWT_SECRET.encode())
    )


def decode_token(access_token: str) -> UserContext:
    """
    Verifies an access token and builds the caller context from its claims.

    Args:
        access_token: The raw JWT (without the ``Bearer`` scheme).

    Returns:
        UserContext: The authenticated caller.

    Raises:
        AuthenticationError: When the token is missing (``missing_token``),
            expired (``token_expired``), malformed or badly signed
            (``token_decode_error``), or its claims do not describe a user
            (``invalid_claims``).
    """
    if not access_token:
        raise AuthenticationError("missing_token", "No access token provided")

    try:
        token = jwt.JWT(
            jwt=access_token,
            key=get_signing_key(),
            algs=[app_settings.JWT_ALGORITHM],
        )
    except JWTExpired as ex:
        logger.info(f"JWT token expired: {ex}")
        raise AuthenticationError("token_expired", str(ex))
    except (JWException, ValueError) as ex:
        logger.info(f"Error occurred while decode auth token: {ex}")
        raise AuthenticationError("token_decode_error", str(ex))

    try:
        return UserContext(**json.loads(token.claims))
    except (ValidationError, TypeError) as ex:
        raise AuthenticationError("invalid_claims", str(ex))


def extract_websocket_token(
    headers: Mapping[str, str], query_params: Mapping[str, str]
) -> str:
    """
    Reads the bearer token offered during the WebSocket upgrade.

    Browsers cannot set an Authorization header on a WebSocket, so clients
    pass ``Sec-WebSocket-Protocol: Bearer, <token>``. The ``Authorization``
    query parameter (``?Authorization=Bearer <token>``) is accepted too.

    Returns:
        The raw token, or an empty string when none was offered.
    """
    offered = headers.get("sec-websocket-protocol", "")
    subprotocols = [p for p in re.split(r"[,\s]+", offered) if p]
    if len(subprotocols) >= 2 and subprotocols[0] == WS_AUTH_SUBPROTOCOL:
        return subprotocols[1]

    _, token = get_authorization_scheme_param(
        query_params.get("Authorization", "")
    )
    return token


async def get_user_context(request: Request) -> UserContext:
    """
    FastAPI dependency authenticating an HTTP request.

    Raises:
        HTTPException: 401 Unauthorized if the bearer token is not valid.
    """
    _, access_token = get_authorization_scheme_param(
        request.headers.get("authorization", "")
    )

    try:
        return decode_token(access_token)
    except AuthenticationError as ex:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ex.reason,
            headers={"WWW-Authenticate": "Bearer"},
        )
