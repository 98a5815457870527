import logging
from dataclasses import dataclass
from fastapi import HTTPException, Request, status
from ros_ingress.config import settings
from ros_ingress.core.auth.authenticator import DEV_TOKEN, AuthenticationError, NoOpAuthenticator, parse_bearer_token
from ros_ingress.core.metrics import MetricsSink, NullMetrics
from ros_ingress.models.identity import UserInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedCaller:
    user: UserInfo
    token: str


async def authenticate_request(request: Request) -> AuthenticatedCaller:
    """Validates the bearer token with the application's authenticator."""
    if not settings.AUTH_ENABLED:
        user = await NoOpAuthenticator().authenticate(DEV_TOKEN)
        return AuthenticatedCaller(user=user, token=DEV_TOKEN)

    try:
        token = parse_bearer_token(request.headers.get("Authorization", ""))
    except AuthenticationError as exc:
        logger.debug(f"Rejected request: {exc}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Unauthorized: {exc}")

    authenticator = getattr(request.app.state, "authenticator", None) or NoOpAuthenticator()
    try:
        user = await authenticator.authenticate(token)
    except AuthenticationError as exc:
        logger.info(f"Token authentication failed: {exc}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized: Invalid token")
    except Exception as exc:
        logger.error(f"Token review failed: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal Server Error: Authentication failed",
        )

    logger.debug(f"Token authentication successful for user {user.username}")
    return AuthenticatedCaller(user=user, token=token)


def get_metrics(request: Request) -> MetricsSink:
    return getattr(request.app.state, "metrics", None) or NullMetrics()
