from collections.abc import Callable
from enum import Enum
from typing import Annotated

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import Settings, get_settings


class Role(str, Enum):
    """Supported roles."""

    OPERATOR = "operator"
    VIEWER = "viewer"


class User:
    """Authenticated caller; ``username`` is recorded as the actor of every change."""

    def __init__(self, username: str, roles: tuple[Role, ...]):
        self.username = username
        self.roles = roles

    def has_role(self, role: Role) -> bool:
        return role in self.roles


ANONYMOUS_USERNAME = "unknown"

bearer_scheme = HTTPBearer(auto_error=False)


def resolve_user_from_token(token: str | None, settings: Settings) -> User:
    """Map a bearer token to a user using the ``api_tokens`` setting.

    Token verification proper lives in the upstream gateway; this service only
    needs a username and role. Entries look like ``"jdoe:operator,viewer"``.
    Requests without a token are read-only.
    """

    if token is None:
        return User(username=ANONYMOUS_USERNAME, roles=(Role.VIEWER,))

    entry = settings.api_tokens.get(token)
    if entry is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")

    username, _, role_names = entry.partition(":")
    try:
        roles = tuple(Role(name.strip()) for name in role_names.split(",") if name.strip())
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials") from exc
    if Role.OPERATOR in roles and Role.VIEWER not in roles:
        roles = (*roles, Role.VIEWER)
    return User(username=username.strip() or ANONYMOUS_USERNAME, roles=roles or (Role.VIEWER,))


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    token = credentials.credentials if credentials is not None else None
    return resolve_user_from_token(token, settings)


def role_required(role: Role) -> Callable[[User], User]:
    """Dependency factory ensuring the current user has the requested role."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not user.has_role(role):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
