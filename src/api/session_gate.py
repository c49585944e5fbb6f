import logging
from enum import Enum
from typing import Callable, Optional

from mission_control.models import Session
from storage.auth_client import SIGNED_OUT, AuthClient

logger = logging.getLogger(__name__)


class GateState(str, Enum):
    CHECKING = "checking"
    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"


class SessionGate:
    """
    Guards a task view: checking -> authorized | unauthorized.

    Once authorized, a sign-out of the same user while the view is mounted
    flips the gate to unauthorized. Every transition to unauthorized calls
    ``on_redirect(login_url)`` exactly once; there is no retry in place.
    """

    def __init__(
        self,
        auth: AuthClient,
        access_token: Optional[str],
        on_redirect: Callable[[str], None],
        login_url: str = "/login",
    ):
        self.auth = auth
        self.access_token = access_token
        self.on_redirect = on_redirect
        self.login_url = login_url
        self.state = GateState.CHECKING
        self.session: Optional[Session] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def authorized(self) -> bool:
        return self.state is GateState.AUTHORIZED

    async def mount(self) -> GateState:
        self.state = GateState.CHECKING
        try:
            session = await self.auth.get_session(self.access_token)
        except Exception as e:
            logger.error(f"Session check error: {e}")
            session = None

        if session is None:
            self._deny()
            return self.state

        self.session = session
        self.state = GateState.AUTHORIZED
        self._unsubscribe = self.auth.events.subscribe(self._on_auth_event)
        return self.state

    def unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_auth_event(self, event: str, session: Session) -> None:
        if event != SIGNED_OUT or self.session is None:
            return
        if session.user_id == self.session.user_id:
            logger.info(f"User {session.user_id} signed out while a view was active")
            self._deny()

    def _deny(self) -> None:
        if self.state is GateState.UNAUTHORIZED:
            return
        self.state = GateState.UNAUTHORIZED
        self.unmount()
        self.on_redirect(self.login_url)

    async def __aenter__(self) -> "SessionGate":
        await self.mount()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.unmount()
