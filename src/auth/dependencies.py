"""Auth dependencies for FastAPI route injection."""

import logging
from collections.abc import Callable, Iterable

from fastapi import Depends, Request

from src.auth.jwt import TOKEN_TYPE_ACCESS, IdentityClaims, TokenService, utcnow
from src.auth.passwords import PasswordHasher
from src.auth.service import AuthService
from src.config.settings import Settings, get_settings
from src.notifications.mailer import Mailer, get_mailer
from src.utils.errors import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

# The identity context attached to a request
CurrentUser = IdentityClaims


def get_clock():
    return utcnow


def get_token_service(settings: Settings = Depends(get_settings), clock=Depends(get_clock)) -> TokenService:
    return TokenService(settings, clock=clock)


def get_auth_service(
    settings: Settings = Depends(get_settings),
    tokens: TokenService = Depends(get_token_service),
    mailer: Mailer = Depends(get_mailer),
) -> AuthService:
    return AuthService(settings, tokens, PasswordHasher(settings.BCRYPT_ROUNDS), mailer)


def _extract_bearer_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth[7:].strip() or None
    return None


async def get_current_user(request: Request, tokens: TokenService = Depends(get_token_service)) -> CurrentUser:
    """FastAPI dependency: require a valid bearer access token."""
    token = _extract_bearer_token(request)
    if not token:
        raise AuthenticationError("Missing authorization header")
    try:
        user = tokens.verify(token, TOKEN_TYPE_ACCESS)
    except AuthenticationError as exc:
        logger.warning("Bearer token rejected: %s", exc.message)
        raise AuthenticationError("Invalid or expired token") from exc
    request.state.user_id = user.id
    return user


async def get_optional_user(request: Request, tokens: TokenService = Depends(get_token_service)) -> CurrentUser | None:
    """FastAPI dependency: the caller's identity if a valid bearer token is present, else None."""
    token = _extract_bearer_token(request)
    if not token:
        return None
    try:
        user = tokens.verify(token, TOKEN_TYPE_ACCESS)
    except AuthenticationError:
        return None
    request.state.user_id = user.id
    return user


def authorize(user: CurrentUser | None, allowed_roles: Iterable[str]) -> CurrentUser:
    if user is None:
        raise AuthenticationError("Unauthorized")
    if user.role not in set(allowed_roles):
        raise AuthorizationError("Forbidden - insufficient role")
    return user


def require_roles(*roles: str) -> Callable:
    """Build a dependency that admits only callers whose role is in `roles`."""
    allowed = frozenset(roles)

    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        return authorize(user, allowed)

    return dependency


def is_owner(user: CurrentUser, owner_id) -> bool:
    return owner_id is not None and str(owner_id) == user.id
