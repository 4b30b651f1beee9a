"""Data access layer for users, refresh tokens and one-time tokens."""

import logging
from datetime import datetime
from typing import Any

from postgrest.exceptions import APIError

from src.db.client import get_supabase
from src.db.models import ONE_TIME_TOKENS, PUBLIC_USER_COLUMNS, REFRESH_TOKENS, USERS
from src.utils.errors import ConflictError, InternalError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def _iso(dt: datetime) -> str:
    return dt.isoformat()


def _execute(query, action: str):
    try:
        return query.execute()
    except APIError as exc:
        if exc.code == UNIQUE_VIOLATION:
            raise ConflictError() from exc
        logger.error("Store error while trying to %s: code=%s message=%s", action, exc.code, exc.message)
        raise InternalError("Database error") from exc


def _first(result) -> dict | None:
    return result.data[0] if result.data else None


# --- Users ---

def get_user_by_email(email: str, columns: str = "*") -> dict | None:
    db = get_supabase()
    result = _execute(db.table(USERS).select(columns).eq("email", email).limit(1), "load user by email")
    return _first(result)


def get_user_by_id(user_id: str, columns: str = PUBLIC_USER_COLUMNS) -> dict | None:
    db = get_supabase()
    result = _execute(db.table(USERS).select(columns).eq("id", user_id).limit(1), "load user")
    return _first(result)


def create_user(data: dict[str, Any]) -> dict:
    db = get_supabase()
    result = _execute(db.table(USERS).insert(data), "create user")
    if not result.data:
        raise InternalError("Failed to create user")
    return result.data[0]


def update_user(user_id: str, data: dict[str, Any], now: datetime) -> dict | None:
    db = get_supabase()
    result = _execute(
        db.table(USERS).update({**data, "updated_at": _iso(now)}).eq("id", user_id),
        "update user",
    )
    return _first(result)


# --- Refresh tokens ---

def insert_refresh_token(user_id: str, token_hash: str, expires_at: datetime) -> dict:
    db = get_supabase()
    result = _execute(
        db.table(REFRESH_TOKENS).insert({
            "user_id": user_id,
            "token_hash": token_hash,
            "expires_at": _iso(expires_at),
            "revoked": False,
        }),
        "store refresh token",
    )
    return result.data[0]


def revoke_active_refresh_token(token_hash: str, user_id: str, now: datetime) -> dict | None:
    """Revoke the token only if it is still active. Returns the revoked row, or None.

    The filters and the write are a single UPDATE, so two callers racing on the
    same token cannot both see it active.
    """
    db = get_supabase()
    result = _execute(
        db.table(REFRESH_TOKENS)
        .update({"revoked": True})
        .eq("token_hash", token_hash)
        .eq("user_id", user_id)
        .eq("revoked", False)
        .gt("expires_at", _iso(now)),
        "rotate refresh token",
    )
    return _first(result)


def find_refresh_token(token_hash: str) -> dict | None:
    db = get_supabase()
    result = _execute(
        db.table(REFRESH_TOKENS).select("id, user_id, revoked, expires_at").eq("token_hash", token_hash).limit(1),
        "load refresh token",
    )
    return _first(result)


def revoke_refresh_token(token_hash: str) -> None:
    db = get_supabase()
    _execute(db.table(REFRESH_TOKENS).update({"revoked": True}).eq("token_hash", token_hash), "revoke refresh token")


def revoke_user_refresh_tokens(user_id: str) -> int:
    db = get_supabase()
    result = _execute(
        db.table(REFRESH_TOKENS).update({"revoked": True}).eq("user_id", user_id).eq("revoked", False),
        "revoke user refresh tokens",
    )
    return len(result.data or [])


# --- One-time tokens ---

def create_one_time_token(user_id: str, kind: str, token_hash: str, expires_at: datetime, now: datetime) -> dict:
    """Store a new one-time token, retiring any unused token of the same kind for this user."""
    db = get_supabase()
    _execute(
        db.table(ONE_TIME_TOKENS)
        .update({"consumed_at": _iso(now)})
        .eq("user_id", user_id)
        .eq("kind", kind)
        .is_("consumed_at", "null"),
        "retire one-time tokens",
    )
    result = _execute(
        db.table(ONE_TIME_TOKENS).insert({
            "user_id": user_id,
            "kind": kind,
            "token_hash": token_hash,
            "expires_at": _iso(expires_at),
        }),
        "store one-time token",
    )
    return result.data[0]


def consume_one_time_token(token_hash: str, kind: str, now: datetime) -> dict | None:
    """Atomically mark a live token as consumed. Returns the row, or None if it was not redeemable."""
    db = get_supabase()
    result = _execute(
        db.table(ONE_TIME_TOKENS)
        .update({"consumed_at": _iso(now)})
        .eq("token_hash", token_hash)
        .eq("kind", kind)
        .is_("consumed_at", "null")
        .gt("expires_at", _iso(now)),
        "redeem one-time token",
    )
    return _first(result)


def find_live_one_time_token(token_hash: str, kind: str, now: datetime) -> dict | None:
    db = get_supabase()
    result = _execute(
        db.table(ONE_TIME_TOKENS)
        .select("id, user_id, expires_at")
        .eq("token_hash", token_hash)
        .eq("kind", kind)
        .is_("consumed_at", "null")
        .gt("expires_at", _iso(now))
        .limit(1),
        "load one-time token",
    )
    return _first(result)
