from fastapi import APIRouter
from pydantic import BaseModel

from app.dependencies.auth import CurrentUser, Role

router = APIRouter(prefix="/users", tags=["users"])


class UserResponse(BaseModel):
    username: str
    roles: list[Role]


@router.get("/me", response_model=UserResponse, summary="Caller identity used as the actor of changes")
async def read_current_user(user: CurrentUser) -> UserResponse:
    return UserResponse(username=user.username, roles=list(user.roles))
