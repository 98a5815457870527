import pytest
from ros_ingress.core.auth.authenticator import AuthenticationError, NoOpAuthenticator, parse_bearer_token
from ros_ingress.core.auth.identity_mapper import MissingOrgError, build_identity
from ros_ingress.models.identity import UserInfo


def test_org_and_account_from_groups():
    user = UserInfo(username="jdoe", groups=["system:authenticated", "org:12345", "account:67890"])

    identity = build_identity(user)

    assert identity.org_id == "12345"
    assert identity.account_number == "67890"
    assert identity.type == "User"
    assert identity.auth_type == "oauth2"


def test_empty_org_group_falls_through_to_extra():
    user = UserInfo(username="jdoe", groups=["org:"], extra={"org_id": ["555"]})

    assert build_identity(user).org_id == "555"


def test_account_lookup_order():
    user = UserInfo(
        username="jdoe",
        groups=["org:1", "account:from-group"],
        extra={"customer_id": ["customer"], "client_id": ["client"]},
    )

    assert build_identity(user).account_number == "customer"


def test_missing_org_without_fallback_is_rejected():
    with pytest.raises(MissingOrgError):
        build_identity(UserInfo(username="jdoe", groups=["system:authenticated"]))


def test_fallbacks_apply_only_when_values_are_missing():
    identity = build_identity(UserInfo(username="jdoe"), fallback_org_id="999", fallback_account="acct-0")

    assert identity.org_id == "999"
    assert identity.account_number == "acct-0"


def test_service_account_and_user_flags():
    user = UserInfo(
        username="system:serviceaccount:cost-mgmt:operator",
        groups=["org:1", "cluster-admins", "redhat-employees"],
        extra={"email": ["ops@example.com"], "first_name": ["Op"]},
    )

    identity = build_identity(user)

    assert identity.type == "ServiceAccount"
    assert identity.user.org_admin is True
    assert identity.user.internal is True
    assert identity.user.email == "ops@example.com"
    assert identity.user.first_name == "Op"
    assert identity.user.last_name == ""


@pytest.mark.parametrize("header", ["", "Basic abc", "Bearer ", "bearer token"])
def test_malformed_authorization_headers(header):
    with pytest.raises(AuthenticationError):
        parse_bearer_token(header)


def test_bearer_token_is_extracted():
    assert parse_bearer_token("Bearer abc.def") == "abc.def"


@pytest.mark.asyncio
async def test_noop_authenticator_returns_development_user():
    user = await NoOpAuthenticator().authenticate("anything")

    assert user.username == "dev-user"
    assert user.groups == ["system:authenticated"]
