import logging
import os
from typing import AsyncIterator, Optional

from fastapi import Depends, HTTPException, Request

from api import state
from api.backend import BackendAPI
from api.session_gate import SessionGate
from llm.image_client import ImageDescriptionClient
from mission_control.models import Session
from storage.auth_client import AuthClient
from storage.store_client import StoreClient
from storage.task_repository import TaskRepository

logger = logging.getLogger(__name__)

# Configuration
LOGIN_URL = os.getenv("LOGIN_URL", "/login")
SESSION_COOKIE = os.getenv("SESSION_COOKIE", "sb-access-token")


class LoginRedirect(Exception):
    """Raised when a gated route is hit without a valid session."""

    def __init__(self, location: str):
        super().__init__(location)
        self.location = location


def get_store_client() -> StoreClient:
    if state.store_client is None:
        raise HTTPException(status_code=503, detail="Store client not initialized")
    return state.store_client


def get_auth_client() -> AuthClient:
    if state.auth_client is None:
        raise HTTPException(status_code=503, detail="Auth client not initialized")
    return state.auth_client


def get_image_client() -> ImageDescriptionClient:
    if state.image_client is None:
        state.image_client = ImageDescriptionClient()
    return state.image_client


def read_access_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


async def require_session(
    request: Request,
    auth: AuthClient = Depends(get_auth_client),
) -> AsyncIterator[Session]:
    """Session gate for task routes. Redirects to LOGIN_URL when unauthorized."""
    redirects: list[str] = []
    gate = SessionGate(
        auth,
        read_access_token(request),
        on_redirect=redirects.append,
        login_url=LOGIN_URL,
    )
    await gate.mount()
    if not gate.authorized:
        raise LoginRedirect(redirects[0] if redirects else LOGIN_URL)
    try:
        yield gate.session
    finally:
        gate.unmount()


def get_task_repository(
    session: Session = Depends(require_session),
    store: StoreClient = Depends(get_store_client),
) -> TaskRepository:
    return TaskRepository(store.with_token(session.access_token), owner_id=session.user_id)


def get_backend(
    repository: TaskRepository = Depends(get_task_repository),
    image_client: ImageDescriptionClient = Depends(get_image_client),
) -> BackendAPI:
    return BackendAPI(repository, image_client)
