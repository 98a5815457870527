import logging
from typing import Protocol
from ros_ingress.models.identity import UserInfo

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
DEV_TOKEN = "dev-token"


class AuthenticationError(Exception):
    """The token was checked and rejected."""


class Authenticator(Protocol):
    async def authenticate(self, token: str) -> UserInfo:
        """
        Validates a bearer token.

        Raises:
            AuthenticationError: when the token is rejected. Any other exception
                means the token could not be checked at all.
        """
        ...


class NoOpAuthenticator:
    """Development authenticator that accepts any request as ``dev-user``."""

    async def authenticate(self, token: str) -> UserInfo:
        logger.debug("Using no-op authenticator - allowing request without authentication")
        return UserInfo(username="dev-user", uid="dev-uid", groups=["system:authenticated"])


def parse_bearer_token(header: str) -> str:
    if not header:
        raise AuthenticationError("missing Authorization header")
    if not header.startswith(BEARER_PREFIX):
        raise AuthenticationError("invalid Authorization header format")
    token = header[len(BEARER_PREFIX):]
    if not token:
        raise AuthenticationError("empty token")
    return token
