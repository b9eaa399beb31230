from uuid import uuid4

import jwt
from fastapi import Depends, HTTPException, Request, Response

from campus_rag.core.container import Container
from campus_rag.core.security import decode_token
from campus_rag.schemas.conversations import AnonymousSession, AuthenticatedUser, Owner
from campus_rag.services.rag import RagService

SESSION_COOKIE = "sessionId"
TOKEN_COOKIE = "token"


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_rag(container: Container = Depends(get_container)) -> RagService:
    return container.rag


def _bearer_token(request: Request) -> str | None:
    token = request.cookies.get(TOKEN_COOKIE)
    if token:
        return token
    auth = request.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None


def _user_from_token(request: Request, container: Container) -> AuthenticatedUser | None:
    token = _bearer_token(request)
    if not token:
        return None
    try:
        payload = decode_token(token, container.settings)
    except jwt.PyJWTError:
        return None
    sub = payload.get("sub")
    return AuthenticatedUser(id=str(sub)) if sub else None


def get_owner(
    request: Request,
    response: Response,
    container: Container = Depends(get_container),
) -> Owner:
    """Authenticated user if a valid token is present, else the anonymous session."""
    user = _user_from_token(request, container)
    if user is not None:
        return user

    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        session_id = str(uuid4())
        response.set_cookie(
            SESSION_COOKIE,
            session_id,
            httponly=True,
            secure=container.settings.ENV == "production",
            samesite="strict",
            max_age=container.settings.SESSION_COOKIE_MAX_AGE,
        )
    return AnonymousSession(id=session_id)


def get_current_user(
    request: Request,
    container: Container = Depends(get_container),
) -> AuthenticatedUser:
    if not _bearer_token(request):
        raise HTTPException(status_code=401, detail="Authentication required")
    user = _user_from_token(request, container)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user
