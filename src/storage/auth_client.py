import logging
from typing import Callable, Optional

import httpx

from mission_control.models import Session
from storage.store_client import STORE_TIMEOUT_S, SUPABASE_ANON_KEY, SUPABASE_URL

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

AuthListener = Callable[[str, Session], None]


class AuthError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _json_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError as e:
        raise AuthError(
            f"Invalid reply from auth service: {e}", status_code=502
        ) from e
    if not isinstance(body, dict):
        raise AuthError("Invalid reply from auth service", status_code=502)
    return body


class AuthEvents:
    """In-process fan-out of session changes (sign-in / sign-out)."""

    def __init__(self):
        self._listeners: list[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: str, session: Session) -> None:
        # copy: listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception(f"Auth listener failed on {event}")

    def __len__(self) -> int:
        return len(self._listeners)


class AuthClient:
    """Session lookups against the hosted auth API (GoTrue endpoints)."""

    def __init__(
        self,
        base_url: str = SUPABASE_URL,
        api_key: str = SUPABASE_ANON_KEY,
        http: Optional[httpx.AsyncClient] = None,
        events: Optional[AuthEvents] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.events = events or AuthEvents()
        self._http = http or httpx.AsyncClient(timeout=STORE_TIMEOUT_S)

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self, access_token: Optional[str] = None) -> dict:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _post(self, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._http.post(f"{self.base_url}/auth/v1{path}", **kwargs)
        except httpx.HTTPError as e:
            raise AuthError(f"Auth request failed: {e}") from e

    async def get_session(self, access_token: Optional[str]) -> Optional[Session]:
        """Return the session for a token, or None when it is absent or rejected.

        Raises AuthError when the auth service cannot be reached or answers
        with something other than a user object.
        """
        if not access_token:
            return None

        try:
            r = await self._http.get(
                f"{self.base_url}/auth/v1/user", headers=self._headers(access_token)
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Auth request failed: {e}") from e

        if r.status_code in (401, 403):
            return None
        if not r.is_success:
            raise AuthError(f"Session lookup failed: {r.text}", status_code=r.status_code)

        user = _json_body(r)
        if not user.get("id"):
            return None
        return Session(access_token=access_token, user_id=user["id"], email=user.get("email"))

    async def sign_in(self, email: str, password: str) -> Session:
        r = await self._post(
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        if not r.is_success:
            try:
                body = _json_body(r)
            except AuthError:
                body = {}
            message = (
                body.get("error_description")
                or body.get("msg")
                or body.get("message")
                or r.text
                or "Sign-in failed"
            )
            raise AuthError(message, status_code=r.status_code)

        data = _json_body(r)
        user = data.get("user") or {}
        if not data.get("access_token") or not user.get("id"):
            raise AuthError("Sign-in response is missing the session", status_code=502)

        session = Session(
            access_token=data["access_token"],
            user_id=user["id"],
            email=user.get("email"),
        )
        logger.info(f"User {session.user_id} signed in")
        self.events.emit(SIGNED_IN, session)
        return session

    async def sign_out(self, session: Session) -> None:
        r = await self._post("/logout", headers=self._headers(session.access_token))
        # 401 means the token is already invalid, which is what we want anyway
        if not r.is_success and r.status_code != 401:
            raise AuthError(f"Sign-out failed: {r.text}", status_code=r.status_code)
        logger.info(f"User {session.user_id} signed out")
        self.events.emit(SIGNED_OUT, session)
