"""Authentication API endpoints"""

import uuid
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from kombu.exceptions import OperationalError as BrokerError
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import settings
from app.database import get_db
from app.identity import AuthError, AuthErrorCode
from app.models.profile import Profile, ProfileRole
from app.models.user import User
from app.ratelimit import limiter
from app.schemas.auth import (
    AuthResult,
    PasswordResetConfirm,
    PasswordResetRequest,
    RefreshRequest,
    SignInRequest,
    SignUpRequest,
    UserInfo,
)

router = APIRouter()
logger = structlog.get_logger()

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# OAuth2 scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/signin")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/signin", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash password"""
    return pwd_context.hash(password)


def normalize_email(email: str) -> str:
    """Syntax-check an email address and return its canonical form"""
    try:
        return validate_email(email.strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError:
        raise AuthError(AuthErrorCode.INVALID_EMAIL)


def _encode(payload: dict) -> str:
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user: User) -> str:
    """Create JWT access token"""
    expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": str(user.id),
        "exp": expire,
        "type": "access",
    }
    return _encode(payload)


def create_refresh_token(user: User) -> str:
    """Create JWT refresh token"""
    expire = datetime.utcnow() + timedelta(days=settings.refresh_token_expire_days)
    payload = {
        "sub": str(user.id),
        "exp": expire,
        "type": "refresh",
        "jti": uuid.uuid4().hex,
    }
    return _encode(payload)


def create_reset_token(user: User) -> str:
    """Create a password reset token, void once the password changes"""
    expire = datetime.utcnow() + timedelta(minutes=settings.password_reset_expire_minutes)
    payload = {
        "sub": str(user.id),
        "exp": expire,
        "type": "reset",
        "fp": user.hashed_password[-16:],
    }
    return _encode(payload)


def decode_token(token: str, expected_type: str) -> Optional[dict]:
    """Decode a token of the given type, None when invalid or expired"""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("sub") is None or payload.get("type") != expected_type:
        return None
    return payload


def user_info(user: User) -> UserInfo:
    return UserInfo(uid=user.id, email=user.email, display_name=user.display_name)


def auth_failure(exc: AuthError) -> JSONResponse:
    """Render an identity failure in the uniform result shape"""
    result = AuthResult(success=False, error=exc.message, code=exc.code.value)
    return JSONResponse(status_code=exc.status_code, content=result.model_dump(exclude_none=True))


def _issue_tokens(user: User) -> AuthResult:
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user)
    user.refresh_token = refresh_token
    return AuthResult(
        success=True,
        user=user_info(user),
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.access_token_expire_minutes * 60,
    )


async def user_from_token(token: Optional[str], db: AsyncSession) -> Optional[User]:
    """Resolve an access token to an active user"""
    if not token:
        return None
    payload = decode_token(token, "access")
    if payload is None:
        return None
    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        return None
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user from token"""
    user = await user_from_token(token, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Verify user is active"""
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


async def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Current user when a valid bearer token is sent, else None"""
    return await user_from_token(token, db)


async def get_profile(user: User, db: AsyncSession) -> Optional[Profile]:
    result = await db.execute(select(Profile).where(Profile.uid == user.id))
    return result.scalar_one_or_none()


async def require_admin(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Role is read from the stored profile on every call, never from the token"""
    profile = await get_profile(current_user, db)
    if profile is None or not profile.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return current_user


async def is_admin(user: User, db: AsyncSession) -> bool:
    profile = await get_profile(user, db)
    return profile is not None and profile.is_admin


@router.post("/signup", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.auth_rate_limit)
async def sign_up(
    request: Request,
    payload: SignUpRequest,
    db: AsyncSession = Depends(get_db),
):
    """Create an account and its profile in one transaction"""
    try:
        email = normalize_email(payload.email)
        if len(payload.password) < settings.min_password_length:
            raise AuthError(AuthErrorCode.WEAK_PASSWORD)

        result = await db.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none() is not None:
            raise AuthError(AuthErrorCode.EMAIL_ALREADY_IN_USE)

        display_name = payload.name.strip()
        user = User(
            id=uuid.uuid4(),
            email=email,
            hashed_password=get_password_hash(payload.password),
            display_name=display_name,
        )
        db.add(user)
        db.add(
            Profile(
                uid=user.id,
                email=email,
                display_name=display_name,
                role=ProfileRole.CUSTOMER,
                reservations=[],
                email_notifications=True,
                sms_notifications=False,
            )
        )
        response = _issue_tokens(user)
        # account and profile commit together; a failed profile insert leaves no account
        await db.commit()
    except AuthError as exc:
        await db.rollback()
        return auth_failure(exc)
    except IntegrityError:
        await db.rollback()
        return auth_failure(AuthError(AuthErrorCode.EMAIL_ALREADY_IN_USE))
    except OperationalError:
        await db.rollback()
        logger.exception("Sign up failed", email=payload.email)
        return auth_failure(AuthError(AuthErrorCode.NETWORK_REQUEST_FAILED))

    logger.info("User account created", uid=str(user.id))
    return response


@router.post("/signin", response_model=AuthResult)
@limiter.limit(settings.auth_rate_limit)
async def sign_in(
    request: Request,
    payload: SignInRequest,
    db: AsyncSession = Depends(get_db),
):
    """Authenticate user and return tokens"""
    try:
        email = normalize_email(payload.email)
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user is None:
            raise AuthError(AuthErrorCode.USER_NOT_FOUND)
        if not verify_password(payload.password, user.hashed_password):
            raise AuthError(AuthErrorCode.WRONG_PASSWORD)
        if not user.is_active:
            raise AuthError(AuthErrorCode.USER_DISABLED)

        response = _issue_tokens(user)
        await db.commit()
    except AuthError as exc:
        await db.rollback()
        logger.info("Sign in rejected", code=exc.code.value)
        return auth_failure(exc)
    except OperationalError:
        await db.rollback()
        logger.exception("Sign in failed")
        return auth_failure(AuthError(AuthErrorCode.NETWORK_REQUEST_FAILED))

    # Update last login; the sign-in stands even if this write fails
    try:
        profile = await get_profile(user, db)
        if profile is not None:
            profile.last_login = datetime.utcnow()
            await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.warning("Failed to update last login", uid=str(user.id), exc_info=True)

    logger.info("User signed in", uid=str(user.id))
    return response


@router.post("/refresh", response_model=AuthResult)
async def refresh_token(
    request: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Refresh access token using refresh token"""
    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid refresh token",
    )
    payload = decode_token(request.refresh_token, "refresh")
    if payload is None:
        raise invalid

    result = await db.execute(select(User).where(User.id == UUID(payload["sub"])))
    user = result.scalar_one_or_none()

    if not user or not user.is_active or user.refresh_token != request.refresh_token:
        raise invalid

    # Rotate the refresh token
    response = _issue_tokens(user)
    await db.commit()

    return response


@router.post("/signout", response_model=AuthResult)
async def sign_out(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Sign out by invalidating the refresh token"""
    current_user.refresh_token = None
    await db.commit()
    logger.info("User signed out", uid=str(current_user.id))
    return AuthResult(success=True)


@router.post("/password-reset", response_model=AuthResult)
@limiter.limit(settings.auth_rate_limit)
async def request_password_reset(
    request: Request,
    payload: PasswordResetRequest,
    db: AsyncSession = Depends(get_db),
):
    """Queue a password reset email; success means the request was accepted"""
    from app.jobs.celery_app import celery_app

    try:
        email = normalize_email(payload.email)
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            raise AuthError(AuthErrorCode.USER_NOT_FOUND)
        if not user.is_active:
            raise AuthError(AuthErrorCode.USER_DISABLED)

        celery_app.send_task("send_password_reset_email", args=[user.email, create_reset_token(user)])
    except AuthError as exc:
        return auth_failure(exc)
    except (OperationalError, BrokerError):
        logger.exception("Password reset request failed")
        return auth_failure(AuthError(AuthErrorCode.NETWORK_REQUEST_FAILED))

    logger.info("Password reset email queued", uid=str(user.id))
    return AuthResult(
        success=True,
        message="Password reset email sent. Please check your inbox.",
    )


@router.post("/password-reset/confirm", response_model=AuthResult)
async def confirm_password_reset(
    payload: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db),
):
    """Set a new password from a reset token"""
    try:
        claims = decode_token(payload.token, "reset")
        if claims is None:
            raise AuthError(AuthErrorCode.INVALID_RESET_TOKEN)

        result = await db.execute(select(User).where(User.id == UUID(claims["sub"])))
        user = result.scalar_one_or_none()
        if user is None or user.hashed_password[-16:] != claims.get("fp"):
            raise AuthError(AuthErrorCode.INVALID_RESET_TOKEN)
        if len(payload.new_password) < settings.min_password_length:
            raise AuthError(AuthErrorCode.WEAK_PASSWORD)

        user.hashed_password = get_password_hash(payload.new_password)
        user.password_changed_at = datetime.utcnow()
        user.refresh_token = None
        await db.commit()
    except AuthError as exc:
        await db.rollback()
        return auth_failure(exc)

    logger.info("Password reset completed", uid=str(user.id))
    return AuthResult(success=True, message="Your password has been updated. Please sign in.")
