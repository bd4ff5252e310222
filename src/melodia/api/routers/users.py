"""User account endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from melodia.api.dependencies import (
    get_current_user_id,
    get_follows_repository,
    get_playlist_repository,
    get_user_repository,
)
from melodia.api.schemas import (
    PlaylistResponse,
    SubscriptionUpdate,
    UserCreate,
    UserProfileUpdate,
    UserResponse,
)
from melodia.domain.exceptions import AuthorizationError
from melodia.infrastructure.persistence.repositories import (
    PlaylistRepository,
    UserFollowsRepository,
    UserRepository,
)

router = APIRouter()


def _require_self(user_id: str, caller_id: str) -> None:
    if user_id != caller_id:
        raise AuthorizationError("You can only change your own account")


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(
    body: UserCreate, repo: UserRepository = Depends(get_user_repository)
) -> Any:
    return await repo.create(body.model_dump())


@router.get("/search", response_model=list[UserResponse])
async def search_users(
    q: str = Query(""), repo: UserRepository = Depends(get_user_repository)
) -> Any:
    if not q.strip():
        return []
    return await repo.search(q.strip())


@router.get("/stats")
async def user_stats(repo: UserRepository = Depends(get_user_repository)) -> dict[str, Any]:
    return {
        "total": await repo.count(),
        "active": await repo.count_active(),
        "by_tier": await repo.count_by_tier(),
    }


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, repo: UserRepository = Depends(get_user_repository)) -> Any:
    return await repo.get(user_id)


@router.get("/{user_id}/playlists", response_model=list[PlaylistResponse])
async def user_public_playlists(
    user_id: str, repo: PlaylistRepository = Depends(get_playlist_repository)
) -> Any:
    return [playlist for playlist in await repo.find_by_user(user_id) if playlist.is_public]


@router.get("/{user_id}/follow-stats")
async def follow_stats(
    user_id: str, follows: UserFollowsRepository = Depends(get_follows_repository)
) -> dict[str, int]:
    return await follows.get_user_follow_stats(user_id)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_profile(
    user_id: str,
    body: UserProfileUpdate,
    caller_id: str = Depends(get_current_user_id),
    repo: UserRepository = Depends(get_user_repository),
) -> Any:
    _require_self(user_id, caller_id)
    return await repo.update_profile(user_id, body.model_dump(exclude_unset=True))


@router.put("/{user_id}/subscription", response_model=UserResponse)
async def update_subscription(
    user_id: str,
    body: SubscriptionUpdate,
    caller_id: str = Depends(get_current_user_id),
    repo: UserRepository = Depends(get_user_repository),
) -> Any:
    _require_self(user_id, caller_id)
    return await repo.update_subscription(user_id, body.subscription_tier)


@router.post("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    repo: UserRepository = Depends(get_user_repository),
) -> Any:
    _require_self(user_id, caller_id)
    return await repo.deactivate(user_id)
