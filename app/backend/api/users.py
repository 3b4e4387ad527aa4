import logging
from fastapi import APIRouter, Depends, HTTPException, status, Request
from typing import List

from ..models.db_models import NewUser
from ..models.redis_models import AdminProfile
from ..services.user_service import UserService
from ..services.errors import NotFoundError, DuplicateEmailError
from .schemas.user import UserCreateRequest, UserResponse
from .schemas.fingerprint import FingerprintResponse
from .schemas.base import MessageResponse
from .auth import get_current_admin
from .dependencies import get_user_service
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=List[UserResponse], summary="List every tracked user")
async def list_users(
    admin: AdminProfile = Depends(get_current_admin),
    service: UserService = Depends(get_user_service)
):
    return await service.list_users()


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED, summary="Register a student or staff member")
@limiter.limit("60/minute")
async def create_user(
    request: Request,
    user_request: UserCreateRequest,
    admin: AdminProfile = Depends(get_current_admin),
    service: UserService = Depends(get_user_service)
):
    try:
        return await service.create_user(NewUser(**user_request.model_dump()))
    except DuplicateEmailError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    admin: AdminProfile = Depends(get_current_admin),
    service: UserService = Depends(get_user_service)
):
    try:
        return await service.get_user(user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{user_id}/fingerprints", response_model=List[FingerprintResponse], summary="List a user's enrolled fingerprints")
async def list_user_fingerprints(
    user_id: int,
    admin: AdminProfile = Depends(get_current_admin),
    service: UserService = Depends(get_user_service)
):
    try:
        return await service.list_fingerprints(user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    admin: AdminProfile = Depends(get_current_admin),
    service: UserService = Depends(get_user_service)
):
    """Deletes the user and its fingerprints. Past attendance rows are kept for audit."""
    try:
        await service.delete_user(user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    logger.info(f"Admin '{admin.username}' deleted user {user_id}.")
    return MessageResponse(message="User deleted")
