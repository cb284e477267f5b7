"""
ytclipper Backend — Auth Route Handlers
=========================================

What:  /api/v1/auth/* endpoints: password and Google sign-in, session refresh,
       logout, email verification, password reset and the current-user views.
How:   Thin: bind the request, call AccountService, move tokens into cookies.
       Every failure is raised and rendered by the handlers in main.py.

Session cookies:
    login, refresh and the Google callback set both cookies (TokenIssuer);
    logout clears them. Tokens are also returned in the JSON body of login
    and refresh for non-browser clients.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Query, Request, Response, status
from fastapi.responses import RedirectResponse

from ytclipper.config import settings
from ytclipper.exceptions import AuthenticationError, IdentityProviderError
from ytclipper.routes.deps import (
    RequireAuth,
    get_account_service,
    get_oauth_bridge,
    get_token_issuer,
)
from ytclipper.schemas.auth import (
    AccessTokenResponse,
    AddPasswordRequest,
    CurrentUserResult,
    ForgotPasswordRequest,
    GoogleLoginResponse,
    LoginRequest,
    LoginResult,
    MessageResponse,
    RegisterRequest,
    RegisterResult,
    ResetPasswordRequest,
    TokenPair,
    VerifyEmailRequest,
)
from ytclipper.schemas.common import ErrorResponse
from ytclipper.services.account_service import AccountService
from ytclipper.services.google_oauth import GoogleOAuthBridge
from ytclipper.services.token_issuer import TokenIssuer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])

_ERRORS = {
    400: {"description": "Invalid input or token", "model": ErrorResponse},
    401: {"description": "Not authenticated", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}


# ── Password Sign-Up / Sign-In ───────────────────────────────────────────


@router.post(
    "/register",
    response_model=RegisterResult,
    responses={**_ERRORS, 409: {"description": "Email taken", "model": ErrorResponse}},
    summary="Create a password account",
)
async def register(
    body: RegisterRequest,
    accounts: AccountService = Depends(get_account_service),
) -> RegisterResult:
    return await accounts.register(body)


@router.post(
    "/login",
    response_model=LoginResult,
    responses={**_ERRORS, 404: {"description": "Unknown email", "model": ErrorResponse}},
    summary="Sign in with email and password",
)
async def login(
    body: LoginRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> LoginResult:
    result = await accounts.login(body)
    issuer.set_token_cookies(response, result.token_pair())
    return result


@router.post(
    "/refresh",
    response_model=TokenPair,
    responses=_ERRORS,
    summary="Rotate the session from the refresh-token cookie",
)
async def refresh(
    request: Request,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> TokenPair:
    pair = accounts.refresh(request.cookies.get(issuer.cookies.refresh_name))
    issuer.set_token_cookies(response, pair)
    return pair


@router.post("/logout", response_model=MessageResponse, summary="Clear the session cookies")
async def logout(
    response: Response,
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> MessageResponse:
    issuer.clear_token_cookies(response)
    return MessageResponse(message="Logged out successfully")


# ── One-Time Token Flows ─────────────────────────────────────────────────


@router.post("/forgot-password", response_model=MessageResponse, responses=_ERRORS)
async def forgot_password(
    body: ForgotPasswordRequest,
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    return await accounts.forgot_password(body.email)


@router.post("/reset-password", response_model=MessageResponse, responses=_ERRORS)
async def reset_password(
    body: ResetPasswordRequest,
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    return await accounts.reset_password(body.token, body.password)


@router.post("/verify-email", response_model=MessageResponse, responses=_ERRORS)
async def verify_email(
    body: VerifyEmailRequest,
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    return await accounts.verify_email(body.token)


# ── Authenticated ────────────────────────────────────────────────────────


@router.post("/add-password", response_model=MessageResponse, responses=_ERRORS)
async def add_password(
    body: AddPasswordRequest,
    account: RequireAuth,
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    return await accounts.add_password(account, body.password)


@router.get("/me", response_model=CurrentUserResult, responses=_ERRORS)
async def me(
    request: Request,
    account: RequireAuth,
    accounts: AccountService = Depends(get_account_service),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> CurrentUserResult:
    return accounts.current_user(
        account,
        request.cookies.get(issuer.cookies.access_name),
        request.cookies.get(issuer.cookies.refresh_name),
    )


@router.get("/token", response_model=AccessTokenResponse, responses=_ERRORS)
async def access_token(
    request: Request,
    account: RequireAuth,
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AccessTokenResponse:
    """Hand the httponly access cookie to clients that need it as a bearer token."""
    token = request.cookies.get(issuer.cookies.access_name)
    if not token:
        raise AuthenticationError(message="No access token found", code="NO_TOKEN")
    return AccessTokenResponse(access_token=token)


@router.get(
    "/status",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_ERRORS,
)
async def auth_status(account: RequireAuth) -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Google Sign-In ───────────────────────────────────────────────────────


def _require_enabled(bridge: GoogleOAuthBridge) -> None:
    if not bridge.enabled:
        raise IdentityProviderError(
            message="Google sign-in is not configured",
            context={"reason": "missing_credentials"},
        )


@router.get("/google/login", response_model=GoogleLoginResponse, responses=_ERRORS)
async def google_login(
    response: Response,
    bridge: GoogleOAuthBridge = Depends(get_oauth_bridge),
) -> GoogleLoginResponse:
    _require_enabled(bridge)
    state = bridge.new_state()
    response.set_cookie(
        key=settings.oauth_state_cookie_name,
        value=bridge.create_state_cookie(state),
        max_age=bridge.state_ttl_seconds,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        # Must survive the top-level redirect back from Google
        samesite="lax",
    )
    return GoogleLoginResponse(auth_url=bridge.authorization_url(state))


@router.get("/google/callback", responses=_ERRORS, response_class=RedirectResponse)
async def google_callback(
    code: str = Query(min_length=1),
    state: str = Query(min_length=1),
    oauth_state: Optional[str] = Cookie(default=None, alias=settings.oauth_state_cookie_name),
    bridge: GoogleOAuthBridge = Depends(get_oauth_bridge),
    accounts: AccountService = Depends(get_account_service),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> RedirectResponse:
    _require_enabled(bridge)
    bridge.verify_state(oauth_state, state)

    identity = await bridge.exchange_code(code)
    account, pair = await accounts.login_with_google(identity)
    logger.info("Google sign-in for account %s", account.id)

    redirect = RedirectResponse(
        url=settings.oauth_success_redirect_url, status_code=status.HTTP_302_FOUND
    )
    issuer.set_token_cookies(redirect, pair)
    redirect.delete_cookie(key=settings.oauth_state_cookie_name, path="/")
    return redirect
