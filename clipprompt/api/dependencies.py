from typing import Optional

from fastapi import Header, HTTPException, status

from clipprompt.services.session_service import SessionData, validate_session


def _parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def get_session(authorization: Optional[str] = Header(default=None)) -> SessionData:
    token = _parse_bearer_token(authorization)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing session token.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    session = validate_session(token)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session
