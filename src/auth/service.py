"""Auth business logic: sessions, refresh rotation and one-time token flows."""

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta

from src.auth import repository
from src.auth.jwt import TOKEN_TYPE_REFRESH, IdentityClaims, TokenService
from src.auth.passwords import PasswordHasher
from src.config.settings import Settings
from src.db.models import (
    KIND_EMAIL_VERIFICATION,
    KIND_MAGIC_LOGIN,
    KIND_PASSWORD_RESET,
    ROLE_ADMIN,
    ROLE_SERVICE_PROVIDER,
)
from src.notifications.mailer import (
    EmailMessage,
    Mailer,
    frontend_link,
    magic_link_email,
    password_reset_email,
    verification_email,
)
from src.utils.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"
INVALID_ONE_TIME_TOKEN = "Invalid or expired token"

# Never returned to clients
SECRET_USER_FIELDS = {"password_hash"}


def public_profile(user: dict) -> dict:
    return {k: v for k, v in user.items() if k not in SECRET_USER_FIELDS}


class AuthService:
    def __init__(self, settings: Settings, tokens: TokenService, hasher: PasswordHasher, mailer: Mailer):
        self.settings = settings
        self.tokens = tokens
        self.hasher = hasher
        self.mailer = mailer

    def now(self):
        return self.tokens.clock()

    # --- Hashing of stored secrets ---

    def hash_refresh_token(self, token: str) -> str:
        return hmac.new(self.settings.JWT_SECRET.encode(), token.encode(), hashlib.sha256).hexdigest()

    @staticmethod
    def hash_one_time_token(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()

    # --- Sessions ---

    def _start_session(self, user: dict) -> dict:
        identity = IdentityClaims(id=str(user["id"]), email=user["email"], role=user["role"])
        tokens, refresh_expires_at = self.tokens.issue_pair(identity)
        repository.insert_refresh_token(identity.id, self.hash_refresh_token(tokens["refresh_token"]), refresh_expires_at)
        return {**tokens, "user": public_profile(user)}

    def signup(self, email: str, password: str, display_name: str, phone: str | None = None, role: str | None = None) -> dict:
        if role == ROLE_ADMIN:
            logger.warning("Signup rejected: attempt to self-register as admin")
            raise AuthorizationError("Cannot self-register as admin")

        if repository.get_user_by_email(email, "id"):
            raise ConflictError("Email already in use")

        now = self.now()
        user = repository.create_user({
            "email": email,
            "password_hash": self.hasher.hash(password),
            "display_name": display_name,
            "phone": phone,
            "role": ROLE_SERVICE_PROVIDER,
            "email_verified": False,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        })

        token = self._issue_one_time_token(
            user["id"], KIND_EMAIL_VERIFICATION, timedelta(hours=self.settings.VERIFICATION_TOKEN_TTL_HOURS)
        )
        link = frontend_link(self.settings.FRONTEND_URL, "/auth/verify-email", token)
        self._send(verification_email(email, link))
        logger.info("Signup successful for user %s (role=%s)", user["id"], ROLE_SERVICE_PROVIDER)

        result = {"user": public_profile(user)}
        if not self.settings.is_production:
            result["verification_token"] = token
        return result

    def signin(self, email: str, password: str) -> dict:
        user = repository.get_user_by_email(email)
        if not user or not self.hasher.verify(password, user.get("password_hash")):
            logger.warning("Signin failed: bad credentials")
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not user.get("email_verified"):
            logger.warning("Signin refused for unverified user %s", user["id"])
            raise AuthorizationError("Please verify your email before signing in")

        session = self._start_session(user)
        logger.info("Signin successful for user %s (role=%s)", user["id"], user["role"])
        return session

    def refresh(self, refresh_token: str) -> dict:
        """Exchange an active refresh token for a new pair. The old token is revoked."""
        try:
            claims = self.tokens.verify(refresh_token, TOKEN_TYPE_REFRESH)
        except AuthenticationError as exc:
            logger.warning("Refresh rejected: %s", exc.message)
            raise AuthenticationError(INVALID_REFRESH_TOKEN) from exc

        token_hash = self.hash_refresh_token(refresh_token)
        now = self.now()
        if repository.revoke_active_refresh_token(token_hash, claims.id, now) is None:
            self._log_rejected_refresh(token_hash, claims.id, now)
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        user = repository.get_user_by_id(claims.id)
        if not user:
            logger.warning("Refresh rejected: user %s no longer exists", claims.id)
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        session = self._start_session(user)
        logger.info("Refresh token rotated for user %s", claims.id)
        return session

    def _log_rejected_refresh(self, token_hash: str, user_id: str, now) -> None:
        row = repository.find_refresh_token(token_hash)
        if row is None or str(row["user_id"]) != user_id:
            reason = "not found"
        elif row["revoked"]:
            reason = "already revoked"
        else:
            reason = "expired"
        logger.warning("Refresh rejected for user %s: token %s", user_id, reason)

    def signout(self, refresh_token: str) -> None:
        repository.revoke_refresh_token(self.hash_refresh_token(refresh_token))
        logger.info("Refresh token revoked at signout")

    # --- Profile and passwords ---

    def get_profile(self, user_id: str) -> dict:
        user = repository.get_user_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def update_password(self, user_id: str, current_password: str, new_password: str) -> None:
        user = repository.get_user_by_id(user_id, "id, password_hash")
        if not user:
            raise NotFoundError("User not found")
        if not self.hasher.verify(current_password, user.get("password_hash")):
            raise AuthenticationError("Current password incorrect")

        repository.update_user(user_id, {"password_hash": self.hasher.hash(new_password)}, self.now())
        logger.info("Password updated for user %s", user_id)

    # --- One-time token flows ---

    def _issue_one_time_token(self, user_id: str, kind: str, ttl: timedelta) -> str:
        token = secrets.token_urlsafe(32)
        now = self.now()
        repository.create_one_time_token(user_id, kind, self.hash_one_time_token(token), now + ttl, now)
        logger.info("Issued %s token for user %s", kind, user_id)
        return token

    def _redeem(self, token: str, kind: str) -> dict:
        row = repository.consume_one_time_token(self.hash_one_time_token(token), kind, self.now())
        if row is None:
            logger.warning("Rejected %s token", kind)
            raise ValidationError(INVALID_ONE_TIME_TOKEN)
        return row

    def _send(self, message: EmailMessage) -> None:
        try:
            self.mailer.send(message)
        except Exception:
            logger.exception("Failed to send '%s' email", message.subject)

    def forgot_password(self, email: str) -> None:
        user = repository.get_user_by_email(email, "id, email")
        if not user:
            logger.info("Password reset requested for unknown email")
            return

        token = self._issue_one_time_token(
            user["id"], KIND_PASSWORD_RESET, timedelta(minutes=self.settings.RESET_TOKEN_TTL_MINUTES)
        )
        link = frontend_link(self.settings.FRONTEND_URL, "/auth/update-password", token)
        self._send(password_reset_email(user["email"], link))

    def validate_reset_token(self, token: str) -> None:
        row = repository.find_live_one_time_token(self.hash_one_time_token(token), KIND_PASSWORD_RESET, self.now())
        if row is None:
            raise ValidationError(INVALID_ONE_TIME_TOKEN)

    def reset_password(self, token: str, new_password: str) -> None:
        password_hash = self.hasher.hash(new_password)
        row = self._redeem(token, KIND_PASSWORD_RESET)
        user_id = str(row["user_id"])

        repository.update_user(user_id, {"password_hash": password_hash}, self.now())
        revoked = repository.revoke_user_refresh_tokens(user_id)
        logger.info("Password reset for user %s, %d refresh token(s) revoked", user_id, revoked)

    def verify_email(self, token: str) -> str:
        """Mark the account verified. Returns the URL the client should be sent to."""
        row = self._redeem(token, KIND_EMAIL_VERIFICATION)
        repository.update_user(str(row["user_id"]), {"email_verified": True}, self.now())
        logger.info("Email verified for user %s", row["user_id"])
        return f"{self.settings.FRONTEND_URL.rstrip('/')}/auth/signin"

    def issue_magic_token(self, email: str, send_email: bool) -> dict:
        user = repository.get_user_by_email(email, "id, email")
        if not user:
            raise NotFoundError("User not found")

        ttl_minutes = self.settings.MAGIC_TOKEN_TTL_MINUTES
        token = self._issue_one_time_token(user["id"], KIND_MAGIC_LOGIN, timedelta(minutes=ttl_minutes))
        link = frontend_link(self.settings.FRONTEND_URL, "/magic-login", token)
        if send_email:
            self._send(magic_link_email(user["email"], link))
        return {"token": token, "magic_url": link, "expires_in": f"{ttl_minutes} minutes"}

    def magic_login(self, token: str) -> dict:
        row = self._redeem(token, KIND_MAGIC_LOGIN)
        user = repository.get_user_by_id(str(row["user_id"]))
        if not user:
            raise ValidationError(INVALID_ONE_TIME_TOKEN)

        session = self._start_session(user)
        logger.info("Magic login for user %s", user["id"])
        return session

    # --- Administrative seeding ---

    def create_admin(self, email: str, password: str, display_name: str, phone: str | None = None) -> dict:
        if repository.get_user_by_email(email, "id"):
            raise ConflictError("Email already in use")

        now = self.now()
        user = repository.create_user({
            "email": email,
            "password_hash": self.hasher.hash(password),
            "display_name": display_name,
            "phone": phone,
            "role": ROLE_ADMIN,
            "email_verified": True,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        })
        logger.info("Admin user %s created", user["id"])
        return public_profile(user)
