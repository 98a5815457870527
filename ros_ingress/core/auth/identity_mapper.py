import logging
from typing import Dict, List, Optional
from ros_ingress.models.identity import Identity, User, UserInfo

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_PREFIX = "system:serviceaccount:"


class MissingOrgError(Exception):
    """The authenticated user carries no org id and no fallback is configured."""


def _first_extra(extra: Dict[str, List[str]], key: str) -> Optional[str]:
    values = extra.get(key)
    if values:
        return values[0]
    return None


def extract_org_id(user: UserInfo) -> str:
    for group in user.groups:
        if group.startswith("org:") and group[len("org:"):]:
            return group[len("org:"):]
    return _first_extra(user.extra, "org_id") or ""


def extract_account_number(user: UserInfo) -> str:
    for key in ("account_number", "customer_id", "client_id"):
        value = _first_extra(user.extra, key)
        if value:
            return value
    for group in user.groups:
        if group.startswith("account:"):
            return group[len("account:"):]
    return ""


def is_org_admin(user: UserInfo) -> bool:
    return any(group == "org-admin" or "admin" in group for group in user.groups)


def is_internal(user: UserInfo) -> bool:
    return any(group == "internal" or "redhat" in group for group in user.groups)


def build_identity(user: UserInfo, fallback_org_id: str = "", fallback_account: str = "") -> Identity:
    """
    Maps an authenticated user onto a tenant identity.

    The org id comes from an ``org:<id>`` group, then ``extra["org_id"]``; the
    account from ``extra`` (account_number, customer_id, client_id), then an
    ``account:<id>`` group. Missing values use the configured fallbacks, and a
    missing org id without a fallback raises ``MissingOrgError``.
    """
    org_id = extract_org_id(user)
    if not org_id:
        if not fallback_org_id:
            raise MissingOrgError(f"no org id found for user {user.username}")
        logger.warning(f"No org id found for user {user.username}, using configured fallback")
        org_id = fallback_org_id

    account_number = extract_account_number(user) or fallback_account

    identity_type = "ServiceAccount" if user.username.startswith(SERVICE_ACCOUNT_PREFIX) else "User"
    return Identity(
        account_number=account_number,
        org_id=org_id,
        type=identity_type,
        auth_type="oauth2",
        user=User(
            username=user.username,
            email=_first_extra(user.extra, "email") or "",
            first_name=_first_extra(user.extra, "first_name") or "",
            last_name=_first_extra(user.extra, "last_name") or "",
            active=True,
            org_admin=is_org_admin(user),
            internal=is_internal(user),
            locale="en_US",
        ),
    )
