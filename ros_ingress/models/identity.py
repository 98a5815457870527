import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class UserInfo:
    """Authenticated user as reported by the token authenticator."""

    username: str
    uid: str = ""
    groups: List[str] = field(default_factory=list)
    extra: Dict[str, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class User:
    username: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    active: bool = True
    org_admin: bool = False
    internal: bool = False
    locale: str = "en_US"


@dataclass(frozen=True)
class Identity:
    account_number: str
    org_id: str
    type: str = "User"
    auth_type: str = "oauth2"
    user: Optional[User] = None


@dataclass(frozen=True)
class RequestContext:
    """Per-request identity, downstream credential and deadline.

    ``deadline`` is an absolute ``time.monotonic()`` value.
    """

    identity: Optional[Identity] = None
    credential: str = ""
    deadline: Optional[float] = None

    @classmethod
    def with_timeout(cls, timeout: Optional[float], identity: Optional[Identity] = None, credential: str = "") -> "RequestContext":
        deadline = time.monotonic() + timeout if timeout else None
        return cls(identity=identity, credential=credential, deadline=deadline)

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    @property
    def account(self) -> str:
        if self.identity is None:
            return "unknown"
        return self.identity.account_number

    @property
    def org_id(self) -> str:
        if self.identity is None:
            return "unknown"
        return self.identity.org_id

    @property
    def schema(self) -> str:
        if self.identity is not None and self.identity.org_id:
            return f"org_{self.identity.org_id}"
        return "default"
