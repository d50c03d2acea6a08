import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

from clipprompt.config import settings
from clipprompt.models.schemas import User

logger = logging.getLogger(__name__)


@dataclass
class SessionData:
    session_id: str
    user: User
    expires_at: datetime


@dataclass
class _StoredSession:
    secret_hash: str
    data: SessionData


_USERS_BY_EMAIL: Dict[str, User] = {}
_SESSIONS: Dict[str, _StoredSession] = {}


def generate_session_secret() -> str:
    return secrets.token_urlsafe(32)


def hash_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode()).hexdigest()


def _get_or_create_user(name: str, email: str) -> User:
    key = email.strip().lower()
    user = _USERS_BY_EMAIL.get(key)
    if user is None:
        user = User(
            id=str(uuid.uuid4()),
            name=name.strip() or key,
            email=key,
            created_date=datetime.now(timezone.utc),
        )
        _USERS_BY_EMAIL[key] = user
        logger.info("Created user %s", user.id)
    return user


def create_session(name: str, email: str, ttl_seconds: Optional[int] = None) -> Tuple[str, SessionData]:
    """Log a user in and return ``(token, session)``.

    The token is ``<session_id>.<secret>``; only the sha256 of the secret is kept.
    """
    user = _get_or_create_user(name, email)
    ttl = ttl_seconds if ttl_seconds is not None else settings.session_ttl_seconds
    session_id = str(uuid.uuid4())
    secret = generate_session_secret()
    data = SessionData(
        session_id=session_id,
        user=user,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl),
    )
    _SESSIONS[session_id] = _StoredSession(secret_hash=hash_secret(secret), data=data)
    logger.info("Opened session %s for user %s", session_id, user.id)
    return f"{session_id}.{secret}", data


def parse_token(token: str) -> Optional[Tuple[str, str]]:
    parts = token.split(".", 1)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]


def validate_session(token: str) -> Optional[SessionData]:
    parsed = parse_token(token)
    if parsed is None:
        return None
    session_id, secret = parsed

    stored = _SESSIONS.get(session_id)
    if stored is None:
        return None
    if not secrets.compare_digest(stored.secret_hash, hash_secret(secret)):
        return None
    if stored.data.expires_at <= datetime.now(timezone.utc):
        _SESSIONS.pop(session_id, None)
        return None
    return stored.data


def revoke_session(session_id: str) -> bool:
    removed = _SESSIONS.pop(session_id, None)
    if removed is not None:
        logger.info("Closed session %s", session_id)
    return removed is not None

