# Freedom Family Hub - API Security
#
# A random session token is generated when the backend starts. Every
# Quick Unlock endpoint requires it in the X-Session-Token header, so
# other local processes cannot drive the vault.

import secrets

from fastapi import Header, HTTPException, Request, status


def initialize_session_token(app) -> str:
    """
    Generate a new 256-bit session token for this backend instance.

    Returns:
        The generated token (handed to the front-end once via /api/session)
    """
    token = secrets.token_urlsafe(32)
    app.state.session_token = token
    return token


def get_session_token(app) -> str:
    """
    Raises:
        RuntimeError: If the token has not been initialized
    """
    token = getattr(app.state, "session_token", None)
    if token is None:
        raise RuntimeError("Session token not initialized. Call initialize_session_token() first.")
    return token


async def verify_session_token(
    request: Request,
    x_session_token: str = Header(None),
) -> str:
    """
    FastAPI dependency to verify the session token.

    Usage in routes:
        @router.get("/protected", dependencies=[Depends(verify_session_token)])

    Raises:
        HTTPException: 503 if no token exists yet, 401 if missing or invalid
    """
    expected = getattr(request.app.state, "session_token", None)
    if expected is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session token not initialized"
        )

    if x_session_token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Session-Token header"
        )

    # Constant-time comparison
    if not secrets.compare_digest(x_session_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token"
        )

    return x_session_token
