import pytest
from fastapi import HTTPException

from app.core.config import Settings
from app.dependencies.auth import ANONYMOUS_USERNAME, Role, User, resolve_user_from_token, role_required


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_tokens={
            "op": "jdoe:operator",
            "both": "asmith:viewer,operator",
            "view": "guest:viewer",
            "broken": "mallory:admin",
            "nameless": ":viewer",
        }
    )


def test_missing_token_is_anonymous_viewer(settings):
    user = resolve_user_from_token(None, settings)

    assert user.username == ANONYMOUS_USERNAME
    assert user.roles == (Role.VIEWER,)


def test_operator_token_implies_viewer(settings):
    user = resolve_user_from_token("op", settings)

    assert user.username == "jdoe"
    assert user.has_role(Role.OPERATOR)
    assert user.has_role(Role.VIEWER)


def test_explicit_roles_kept(settings):
    assert resolve_user_from_token("both", settings).roles == (Role.VIEWER, Role.OPERATOR)
    assert resolve_user_from_token("nameless", settings).username == ANONYMOUS_USERNAME


@pytest.mark.parametrize("token", ["unknown-token", "broken"])
def test_invalid_tokens_rejected(settings, token):
    with pytest.raises(HTTPException) as excinfo:
        resolve_user_from_token(token, settings)

    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_role_required_dependency():
    dependency = role_required(Role.OPERATOR)
    operator = User("jdoe", (Role.OPERATOR, Role.VIEWER))

    assert await dependency(operator) is operator
    with pytest.raises(HTTPException) as excinfo:
        await dependency(User("guest", (Role.VIEWER,)))
    assert excinfo.value.status_code == 403
