"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    extract_access_token,
    get_auth_service,
    get_current_user,
    get_session_token_service,
)
from app.core import get_db, settings
from app.core.request_utils import get_client_ip
from app.middleware.csrf import CSRF_COOKIE_NAME, generate_csrf_token
from app.models.user import User
from app.schemas.auth import (
    CsrfTokenResponse,
    LoginRequest,
    MessageResponse,
    PasswordResetRequest,
    RateLimitedResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
    VerifyEmailRequest,
)
from app.services.auth import (
    AuthService,
    EmailAlreadyRegisteredError,
    EmailAlreadyVerifiedError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidVerificationTokenError,
    RateLimitedError,
    TokenStoreUnavailableError,
    UserInactiveError,
)
from app.services.mail import MailDeliveryError
from app.services.session_tokens import (
    REFRESH_TOKEN_COOKIE,
    RevocationResult,
    SessionTokenService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

CSRF_RESPONSE = {status.HTTP_403_FORBIDDEN: {"description": "Invalid CSRF token"}}


@router.get("/csrf-token", response_model=CsrfTokenResponse)
async def get_csrf_token(response: Response) -> CsrfTokenResponse:
    """Issue an anti-forgery token.

    The token is returned in the body and set as a cookie; state-changing
    requests must send it back in the X-CSRF-Token header.
    """
    token = generate_csrf_token(settings.csrf_secret_key)
    response.set_cookie(
        CSRF_COOKIE_NAME,
        token,
        path="/",
        domain=settings.cookie_domain,
        secure=settings.cookie_secure,
        httponly=False,
        samesite="lax",
    )
    return CsrfTokenResponse(csrf_token=token)


@router.post(
    "/login",
    response_model=UserResponse,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"description": "Email or password is incorrect"},
        status.HTTP_429_TOO_MANY_REQUESTS: {"model": RateLimitedResponse},
        **CSRF_RESPONSE,
    },
)
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
    tokens: SessionTokenService = Depends(get_session_token_service),
) -> UserResponse | JSONResponse:
    """Authenticate and set the session cookies.

    Repeated failures lock the account; while locked every attempt gets a
    429 carrying the number of recorded failures.
    """
    try:
        user = await auth_service.authenticate(
            email=data.email,
            password=data.password,
        )
    except RateLimitedError as e:
        # Failed attempts must be persisted even though the request fails
        await db.commit()
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": str(e), "attempts_count": e.attempts_count},
        )
    except InvalidCredentialsError as e:
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email or password is incorrect",
        ) from e
    except UserInactiveError as e:
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is deactivated",
        ) from e

    tokens.attach_to_response(response, tokens.issue_token_pair(user.id))
    logger.info(
        f"User logged in: {user.id}",
        extra={"user_id": str(user.id), "client_ip": get_client_ip(request)},
    )
    return UserResponse.model_validate(user)


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_409_CONFLICT: {"description": "User with this email already exists"},
        **CSRF_RESPONSE,
    },
)
async def register(
    request: RegisterRequest,
    http_request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    tokens: SessionTokenService = Depends(get_session_token_service),
) -> UserResponse:
    """Create an account, sign it in and send the verification email."""
    try:
        user = await auth_service.register(
            email=request.email,
            password=request.password,
            first_name=request.first_name,
            last_name=request.last_name,
            ip=get_client_ip(http_request),
        )
    except EmailAlreadyRegisteredError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e

    tokens.attach_to_response(response, tokens.issue_token_pair(user.id))
    return UserResponse.model_validate(user)


@router.post(
    "/refresh-token",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"description": "Invalid or expired refresh token"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Session store is unavailable"},
        **CSRF_RESPONSE,
    },
)
async def refresh_token(
    request: Request,
    response: Response,
    tokens: SessionTokenService = Depends(get_session_token_service),
) -> None:
    """Set a new access cookie from the refresh cookie.

    The refresh token is not rotated.
    """
    try:
        await tokens.rotate_access_token(request.cookies.get(REFRESH_TOKEN_COOKIE), response)
    except InvalidOrExpiredTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        ) from e
    except TokenStoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e


@router.post("/logout", response_model=MessageResponse, responses=CSRF_RESPONSE)
async def logout(
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_user),
    tokens: SessionTokenService = Depends(get_session_token_service),
) -> MessageResponse:
    """Log out the current user.

    Both tokens are denylisted until they would have expired and both
    cookies are cleared. Always reports success once the session is valid.
    """
    result = await tokens.revoke(
        response,
        access_token=extract_access_token(request),
        refresh_token=request.cookies.get(REFRESH_TOKEN_COOKIE),
    )
    if result is RevocationResult.PARTIALLY_REVOKED:
        logger.warning(f"Logout for user {current_user.id} only partially revoked tokens")
    logger.info(f"User logged out: {current_user.id}")
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Get the current user's information."""
    return UserResponse.model_validate(current_user)


@router.post("/send-verification-email", response_model=MessageResponse, responses=CSRF_RESPONSE)
async def send_verification_email(
    http_request: Request,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Send the email verification link again."""
    try:
        await auth_service.send_verification_email(current_user, get_client_ip(http_request))
    except EmailAlreadyVerifiedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except MailDeliveryError as e:
        logger.error(f"Error sending verification email: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not send email, try again later",
        ) from e
    return MessageResponse(message="Verification email sent")


@router.post("/verify-email", response_model=MessageResponse, responses=CSRF_RESPONSE)
async def verify_email(
    request: VerifyEmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Confirm an email address with the token from the verification link."""
    try:
        await auth_service.verify_email(request.email, request.token)
    except InvalidVerificationTokenError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return MessageResponse(message="Email verified successfully")


@router.post("/request-password-reset", response_model=MessageResponse, responses=CSRF_RESPONSE)
async def request_password_reset(
    request: PasswordResetRequest,
    http_request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Email a password reset link.

    The response is the same whether or not the address has an account.
    """
    try:
        await auth_service.request_password_reset(request.email, get_client_ip(http_request))
    except MailDeliveryError as e:
        logger.error(f"Error sending password reset email: {e}")
    return MessageResponse(message="If the account exists, a reset link has been sent")


@router.post("/reset-password", response_model=MessageResponse, responses=CSRF_RESPONSE)
async def reset_password(
    request: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Set a new password using the token from the reset link."""
    try:
        await auth_service.reset_password(request.email, request.token, request.password)
    except InvalidVerificationTokenError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return MessageResponse(message="Password changed successfully")
