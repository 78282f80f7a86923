"""
Session Service — login session tokens.

Token:     signed JWT, HS256
Lifetime:  SESSION_REMEMBER_SECONDS (30 days) with "remember me",
           SESSION_DEFAULT_SECONDS (4 hours) without

Token payload:
{
    "sub": <user_id>,
    "dev": <device signature hash>,
    "remember": true | false,
    "iat": <issued_at>,
    "exp": <expires_at>
}

The device signature is a hash of the client's User-Agent. A token
presented from a different client does not match and is treated like an
expired one: ``resolve_session`` returns None, it never raises.
"""

import hashlib
import logging
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

logger = logging.getLogger(__name__)

# ─── Defaults ────────────────────────────────────────────────
DEFAULT_REMEMBER_SECONDS = 30 * 24 * 3600
DEFAULT_SESSION_SECONDS = 4 * 3600
ALGORITHM = "HS256"


def _get_secret():
    return current_app.config["SECRET_KEY"]


def _lifetime(remember: bool) -> int:
    if remember:
        return current_app.config.get("SESSION_REMEMBER_SECONDS", DEFAULT_REMEMBER_SECONDS)
    return current_app.config.get("SESSION_DEFAULT_SECONDS", DEFAULT_SESSION_SECONDS)


def device_signature(user_agent: str | None) -> str:
    """Stable fingerprint of the client; only its hash goes into the token."""
    return hashlib.sha256((user_agent or "").encode("utf-8")).hexdigest()[:32]


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def issue_session(user_id: str, user_agent: str | None, remember: bool = False) -> dict:
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=_lifetime(remember))
    payload = {
        "sub": user_id,
        "dev": device_signature(user_agent),
        "remember": bool(remember),
        "iat": now,
        "exp": expires_at,
    }
    token = jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)
    return {
        "token": token,
        "token_type": "Bearer",
        "expires_at": expires_at.isoformat(),
        "remember": bool(remember),
    }


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def resolve_session(token: str | None, user_agent: str | None) -> str | None:
    """Return the session's user id, or None when the token is absent, invalid, expired or foreign."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError as exc:
        logger.info("Rejected session token: %s", exc)
        return None
    if payload.get("dev") != device_signature(user_agent):
        logger.warning("Session device signature mismatch for user=%s", payload.get("sub"))
        return None
    return payload.get("sub")


def bearer_token(headers) -> str | None:
    """Extract the token from an ``Authorization: Bearer ...`` header."""
    auth = headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None
