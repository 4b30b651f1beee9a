"""JWT token creation and verification."""

import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from src.config.settings import Settings
from src.db.models import VALID_ROLES
from src.utils.errors import ExpiredToken, InvalidToken

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"

# Historical claim names for the subject id, in lookup order
SUBJECT_CLAIMS = ("sub", "id", "userId", "user_id")

_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}
_DURATION_RE = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d)\s*$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_duration(value: str) -> timedelta:
    """Parse "15m", "7d", "3600s", "500ms" etc.

    Anything without a recognised suffix is read as milliseconds, using
    whatever digits it contains (0 when there are none).
    """
    match = _DURATION_RE.match(value)
    if match:
        return int(match.group(1)) * _DURATION_UNITS[match.group(2)]
    digits = re.sub(r"\D", "", value)
    return timedelta(milliseconds=int(digits) if digits else 0)


@dataclass(frozen=True)
class IdentityClaims:
    id: str
    email: str
    role: str


def normalize_claims(payload: dict) -> IdentityClaims:
    subject = next((payload[k] for k in SUBJECT_CLAIMS if payload.get(k) not in (None, "")), None)
    if subject is None:
        raise InvalidToken("Token has no subject")
    role = payload.get("role")
    if role not in VALID_ROLES:
        raise InvalidToken("Token has an unknown role")
    return IdentityClaims(id=str(subject), email=payload.get("email") or "", role=role)


class TokenService:
    """Issues and verifies signed access/refresh tokens."""

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = utcnow):
        self._secret = settings.JWT_SECRET
        self._algorithm = settings.JWT_ALGORITHM
        self.access_ttl = parse_duration(settings.ACCESS_TOKEN_EXPIRES_IN)
        self.refresh_ttl = parse_duration(settings.REFRESH_TOKEN_EXPIRES_IN)
        self.access_expires_in = settings.ACCESS_TOKEN_EXPIRES_IN
        self.clock = clock

    def _issue(self, identity: IdentityClaims, token_type: str, ttl: timedelta) -> tuple[str, datetime]:
        now = self.clock()
        expires_at = now + ttl
        payload = {
            "sub": identity.id,
            "email": identity.email,
            "role": identity.role,
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm), expires_at

    def issue_access(self, identity: IdentityClaims) -> str:
        token, _ = self._issue(identity, TOKEN_TYPE_ACCESS, self.access_ttl)
        return token

    def issue_refresh(self, identity: IdentityClaims) -> tuple[str, datetime]:
        """Return the refresh token and the absolute expiry to persist alongside it."""
        return self._issue(identity, TOKEN_TYPE_REFRESH, self.refresh_ttl)

    def issue_pair(self, identity: IdentityClaims) -> tuple[dict, datetime]:
        refresh_token, refresh_expires_at = self.issue_refresh(identity)
        tokens = {
            "access_token": self.issue_access(identity),
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": self.access_expires_in,
        }
        return tokens, refresh_expires_at

    def verify(self, token: str, expected_type: str = TOKEN_TYPE_ACCESS) -> IdentityClaims:
        """Validate signature, type and expiry. Raises InvalidToken or ExpiredToken."""
        try:
            # Expiry is checked below against the injected clock
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False, "require": ["exp"]},
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidToken() from exc

        # Untyped tokens were issued before the "type" claim existed
        if payload.get("type", expected_type) != expected_type:
            raise InvalidToken("Invalid token type")

        exp = payload["exp"]
        if not isinstance(exp, (int, float)):
            raise InvalidToken()
        if exp <= self.clock().timestamp():
            raise ExpiredToken()

        return normalize_claims(payload)
