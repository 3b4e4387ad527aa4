import logging
from fastapi import APIRouter, Depends, HTTPException, status, Response, Request
from fastapi.security import OAuth2PasswordBearer
from datetime import datetime, timedelta, timezone
from uuid import uuid4
from typing import Optional
import asyncpg
import bcrypt
import jwt
from pydantic import ValidationError

from .schemas.user import RegisterRequest, LoginRequest, Token, TokenData, AdminResponse, AuthResponse
from .schemas.base import MessageResponse
from ..models.db_models import AdminUser
from ..models.redis_models import AdminProfile, AdminSessionRedis
from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..config.config import settings
from .dependencies import get_db_client, get_redis_client
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

# --- Router and security setup ---
router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# --- Helpers ---
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


def create_access_token(data: dict, expires_delta: timedelta) -> str:
    """Creates a signed JWT carrying `data` that expires after `expires_delta`."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _admin_response(admin: AdminUser) -> AdminResponse:
    return AdminResponse.model_validate(admin.model_dump(exclude={"password"}))


async def _start_session(admin: AdminUser, response: Response, redis_client: RedisClient) -> Token:
    """Stores a Redis session for the admin, issues a token bound to it and sets the auth cookie."""
    ttl = settings.ADMIN_SESSION_TTL_SECONDS
    now = datetime.now(timezone.utc)
    session = AdminSessionRedis(
        admin=AdminProfile(**admin.model_dump(exclude={"password", "created_at"})),
        session_id=uuid4(),
        session_start_time=now,
        session_end_time=now + timedelta(seconds=ttl),
    )
    await redis_client.save_admin_session(session, ttl=ttl)

    access_token = create_access_token(
        data={"admin_id": admin.id, "sid": str(session.session_id)},
        expires_delta=timedelta(minutes=settings.ADMIN_TOKEN_EXPIRE_MINUTES),
    )
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite="lax",
        max_age=ttl,
    )
    logger.info(f"Redis session created for admin '{admin.username}' with a TTL of {ttl} seconds.")
    return Token(access_token=access_token)


# --- Dependency for protected routes ---
async def get_current_admin(
    request: Request,
    bearer_token: Optional[str] = Depends(oauth2_scheme),
    redis_client: RedisClient = Depends(get_redis_client)
) -> AdminProfile:
    """
    Decodes the admin token (Bearer header or auth cookie), validates it with
    pydantic and checks that the session it names is still live in Redis.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized - Please login",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = bearer_token or request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        raise credentials_exception

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = TokenData.model_validate(payload)
    except (jwt.PyJWTError, ValidationError) as e:
        logger.warning(f"Token validation error: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if token_data.admin_id is None:
        logger.warning(f"Token is valid but missing 'admin_id': {payload}")
        raise credentials_exception

    session = await redis_client.get_admin_session(token_data.admin_id)
    if session is None or str(session.session_id) != token_data.sid:
        logger.warning(f"Admin {token_data.admin_id} has a valid token but no matching session in Redis. Denying access.")
        raise credentials_exception
    return session.admin


# --- API endpoints ---

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def register(
    request: Request,
    response: Response,
    register_request: RegisterRequest,
    db_client: AsyncPostgresClient = Depends(get_db_client),
    redis_client: RedisClient = Depends(get_redis_client)
):
    """Creates an admin account and logs it in."""
    if await db_client.get_admin_by_username(register_request.username):
        raise HTTPException(status_code=400, detail="Username already exists")
    if await db_client.get_admin_by_email(register_request.email):
        raise HTTPException(status_code=400, detail="Email already exists")

    try:
        admin = await db_client.create_admin(
            username=register_request.username,
            email=register_request.email,
            password_hash=hash_password(register_request.password),
            full_name=register_request.full_name,
        )
    except asyncpg.UniqueViolationError:
        # Lost a race against a concurrent registration with the same username or email.
        raise HTTPException(status_code=400, detail="Username or email already exists")

    logger.info(f"Admin '{admin.username}' registered.")
    token = await _start_session(admin, response, redis_client)
    return AuthResponse(user=_admin_response(admin), message="Registration successful", token=token)


@router.post("/login", response_model=AuthResponse)
@limiter.limit("20/minute")
async def login(
    request: Request,
    response: Response,
    login_request: LoginRequest,
    db_client: AsyncPostgresClient = Depends(get_db_client),
    redis_client: RedisClient = Depends(get_redis_client)
):
    """Login endpoint for the admin dashboard."""
    logger.info(f"Login attempt for admin '{login_request.username}'.")
    admin = await db_client.get_admin_by_username(login_request.username)
    if admin is None or not verify_password(login_request.password, admin.password):
        logger.warning(f"Failed login for '{login_request.username}'.")
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = await _start_session(admin, response, redis_client)
    return AuthResponse(user=_admin_response(admin), message="Login successful", token=token)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    bearer_token: Optional[str] = Depends(oauth2_scheme),
    redis_client: RedisClient = Depends(get_redis_client)
):
    """Clears the auth cookie and, when the token is readable, the Redis session."""
    token = bearer_token or request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
            admin_id = payload.get("admin_id")
            if admin_id is not None:
                await redis_client.delete_admin_session(admin_id)
                logger.info(f"Session for admin {admin_id} deleted from Redis.")
        except jwt.PyJWTError:
            logger.info("Logout with an unreadable token; only the cookie is cleared.")
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=AdminResponse)
async def me(
    current_admin: AdminProfile = Depends(get_current_admin),
    db_client: AsyncPostgresClient = Depends(get_db_client)
):
    """Returns the logged in admin without the password hash."""
    admin = await db_client.get_admin(current_admin.id)
    if admin is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _admin_response(admin)
