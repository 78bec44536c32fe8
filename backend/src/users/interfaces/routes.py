from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request

from shared.deadline import request_deadline
from shared.dependencies import get_user_repository
from users.application.services import (
    change_password,
    create_user,
    deactivate_user,
    delete_user,
    get_user,
    list_users,
    update_user,
)
from users.domain.entities import MAX_USER_ID
from users.domain.repository import UserRepository
from users.interfaces.schemas import (
    ChangePasswordRequest,
    CreateUserRequest,
    UpdateUserRequest,
    UserListResponse,
    UserResponse,
)

router = APIRouter(prefix="/api/v1/users", tags=["users"])

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

UserId = Annotated[int, Path(ge=1, le=MAX_USER_ID)]


@router.post("", response_model=UserResponse, status_code=201)
async def create(
    body: CreateUserRequest,
    request: Request,
    repo: UserRepository = Depends(get_user_repository),
):
    async with request_deadline(request):
        return await create_user(
            repo,
            email=body.email,
            username=body.username,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
        )


@router.get("", response_model=UserListResponse)
async def list_all(
    request: Request,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    repo: UserRepository = Depends(get_user_repository),
):
    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    async with request_deadline(request):
        return await list_users(repo, page=page, page_size=page_size)


@router.get("/{user_id}", response_model=UserResponse)
async def get_one(
    user_id: UserId,
    request: Request,
    repo: UserRepository = Depends(get_user_repository),
):
    async with request_deadline(request):
        return await get_user(repo, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update(
    user_id: UserId,
    body: UpdateUserRequest,
    request: Request,
    repo: UserRepository = Depends(get_user_repository),
):
    async with request_deadline(request):
        return await update_user(repo, user_id, body.to_changes())


@router.delete("/{user_id}", status_code=204)
async def delete(
    user_id: UserId,
    request: Request,
    repo: UserRepository = Depends(get_user_repository),
):
    async with request_deadline(request):
        await delete_user(repo, user_id)


@router.post("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate(
    user_id: UserId,
    request: Request,
    repo: UserRepository = Depends(get_user_repository),
):
    async with request_deadline(request):
        return await deactivate_user(repo, user_id)


@router.put("/{user_id}/password", status_code=204)
async def set_password(
    user_id: UserId,
    body: ChangePasswordRequest,
    request: Request,
    repo: UserRepository = Depends(get_user_repository),
):
    async with request_deadline(request):
        await change_password(repo, user_id, body.password)
