"""
Auth Session store.

Holds ``user``, ``token`` and ``is_loading``; ``is_authenticated`` is derived
so that it can never be true without a user.  A token without a user is the
transient *bootstrapping* state after a reload.

The store subscribes to the API client's unauthorized broadcast: the first
401 clears the in-memory session and the persisted credential together, and
every listener (role gates) is notified once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import ValidationError

from ridebook.domain.entities import User
from ridebook.domain.errors import RidebookError
from ridebook.infrastructure.gateways import AuthGateway, AuthResult
from ridebook.infrastructure.http_client import ApiClient
from ridebook.infrastructure.storage import PersistedEntry

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


@dataclass(frozen=True)
class AuthSession:
    user: Optional[User]
    token: Optional[str]
    is_authenticated: bool
    is_loading: bool


class AuthStore:
    def __init__(self, client: ApiClient, gateway: AuthGateway, entry: PersistedEntry):
        self.client = client
        self.gateway = gateway
        self._entry = entry
        self.user: Optional[User] = None
        self.token: Optional[str] = None
        self.is_loading = False
        self.hydrated = False
        self._listeners: list[Listener] = []
        self._unsubscribe = client.on_unauthorized(self.invalidate)

    # ── Derived state ─────────────────────────────────────────────────

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.token is not None

    @property
    def is_bootstrapping(self) -> bool:
        return self.token is not None and self.user is None

    @property
    def session(self) -> AuthSession:
        return AuthSession(self.user, self.token, self.is_authenticated, self.is_loading)

    # ── Observers ─────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Auth listener failed")

    # ── Persistence ───────────────────────────────────────────────────

    async def hydrate(self) -> None:
        """Read the stored credential once; afterwards storage is 'ready'."""
        state = await self._entry.load() or {}
        self.token = state.get("token")
        try:
            self.user = User.model_validate(state["user"]) if state.get("user") else None
        except ValidationError:
            logger.warning("Stored user snapshot unreadable; will refetch")
            self.user = None
        self.client.set_token(self.token)
        self.hydrated = True
        self._notify()

    async def _persist(self) -> None:
        await self._entry.save(
            {
                "token": self.token,
                "user": self.user.model_dump() if self.user else None,
            }
        )

    async def _apply(self, result: AuthResult) -> None:
        self.user = result.user
        self.token = result.token
        self.client.set_token(result.token)
        await self._persist()

    # ── Operations ────────────────────────────────────────────────────

    async def login(self, email: str, password: str) -> User:
        self.is_loading = True
        try:
            await self._apply(await self.gateway.login(email, password))
        finally:
            self.is_loading = False
            self._notify()
        return self.user

    async def register(self, data: dict[str, Any]) -> User:
        self.is_loading = True
        try:
            await self._apply(await self.gateway.register(data))
        finally:
            self.is_loading = False
            self._notify()
        return self.user

    async def logout(self) -> None:
        try:
            await self.gateway.logout()
        except RidebookError as exc:
            logger.warning("Logout call failed: %s", exc)
        finally:
            await self._clear()

    async def fetch_user(self) -> Optional[User]:
        if not self.token:
            return None
        self.is_loading = True
        self._notify()
        try:
            self.user = await self.gateway.current_user()
            await self._persist()
        finally:
            self.is_loading = False
            self._notify()
        return self.user

    async def update_profile(self, data: dict[str, Any]) -> User:
        self.user = await self.gateway.update_profile(data)
        await self._persist()
        self._notify()
        return self.user

    async def invalidate(self) -> None:
        """Unauthorized broadcast handler; a no-op once already cleared."""
        if self.token is None and self.user is None:
            return
        logger.info("Session invalidated by backend")
        await self._clear()

    async def _clear(self) -> None:
        self.user = None
        self.token = None
        self.client.clear_token()
        await self._entry.clear()
        self._notify()
