import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

from api.dependencies import SESSION_COOKIE, get_auth_client, read_access_token
from storage.auth_client import AuthClient, AuthError

router = APIRouter()
logger = logging.getLogger(__name__)


class LoginIn(BaseModel):
    email: str
    password: str


@router.post("/auth/login")
async def login(payload: LoginIn, response: Response, auth: AuthClient = Depends(get_auth_client)) -> dict:
    """Password sign-in; stores the access token in the session cookie."""
    try:
        session = await auth.sign_in(payload.email, payload.password)
    except AuthError as e:
        logger.warning(f"Sign-in failed for {payload.email}: {e.message}")
        raise HTTPException(status_code=e.status_code or 401, detail=e.message)

    response.set_cookie(SESSION_COOKIE, session.access_token, httponly=True, samesite="lax")
    return {"user_id": session.user_id, "email": session.email, "access_token": session.access_token}


@router.post("/auth/logout")
async def logout(request: Request, response: Response, auth: AuthClient = Depends(get_auth_client)) -> dict:
    """Sign out and notify any active views of this user."""
    token = read_access_token(request)
    try:
        session = await auth.get_session(token)
        if session is not None:
            await auth.sign_out(session)
    except AuthError as e:
        logger.error(f"Error signing out: {e.message}")
        raise HTTPException(status_code=502, detail=e.message)
    finally:
        response.delete_cookie(SESSION_COOKIE)
    return {"status": "signed_out"}


@router.get("/auth/session")
async def session_status(request: Request, auth: AuthClient = Depends(get_auth_client)) -> dict:
    """Check if the caller holds a valid session."""
    try:
        session = await auth.get_session(read_access_token(request))
    except AuthError as e:
        logger.error(f"Error checking session: {e.message}")
        return {"authenticated": False, "error": e.message}

    if session is None:
        return {"authenticated": False}
    return {"authenticated": True, "user_id": session.user_id, "email": session.email}
