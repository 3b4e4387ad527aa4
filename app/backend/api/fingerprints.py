import logging
from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.responses import JSONResponse

from ..models.redis_models import AdminProfile
from ..services.attendance_service import AttendanceService, DuplicateRejection
from ..services.user_service import UserService
from ..services.errors import NotFoundError, DuplicateCredentialError
from .schemas.fingerprint import (
    FingerprintRegisterRequest, FingerprintResponse,
    FingerprintVerifyRequest, FingerprintVerifyResponse, DuplicateScanResponse,
)
from .schemas.user import UserResponse
from .auth import get_current_admin
from .dependencies import get_attendance_service, get_user_service
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fingerprint", tags=["Fingerprints"])


@router.post(
    "/register",
    response_model=FingerprintResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll a fingerprint credential for a user"
)
@limiter.limit("30/minute")
async def register_fingerprint(
    request: Request,
    register_request: FingerprintRegisterRequest,
    admin: AdminProfile = Depends(get_current_admin),
    service: UserService = Depends(get_user_service)
):
    try:
        return await service.register_fingerprint(
            user_id=register_request.user_id,
            template_id=register_request.template_id,
            public_key=register_request.public_key,
            credential_type=register_request.credential_type,
        )
    except DuplicateCredentialError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post(
    "/verify",
    response_model=FingerprintVerifyResponse,
    responses={400: {"model": DuplicateScanResponse}},
    summary="Record attendance for a scanned fingerprint"
)
@limiter.limit("120/minute")
async def verify_fingerprint(
    request: Request,
    verify_request: FingerprintVerifyRequest,
    admin: AdminProfile = Depends(get_current_admin),
    service: AttendanceService = Depends(get_attendance_service)
):
    """
    Resolves the template id to a user and records a sign-in or sign-out.
    A second scan of the same kind on the same day is answered with 400 and
    `alreadyRecorded: true`.
    """
    try:
        result = await service.verify_fingerprint(verify_request.template_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"Fingerprint verification failed: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal Server Error")

    if isinstance(result, DuplicateRejection):
        body = DuplicateScanResponse(message=result.message)
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump(by_alias=True))

    return FingerprintVerifyResponse(
        message=result.message,
        user=UserResponse.model_validate(result.user),
        action=result.action,
    )
