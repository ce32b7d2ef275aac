"""
Auth Bootstrap & Role Gate
==========================

After a restart the stored token is available before the user profile is.
Redirecting to login in that gap is a false logout; rendering protected
content before the role is known leaks it.  The gate resolves the race:

1. Once storage is hydrated, a stored token without a user triggers exactly
   one ``fetch_user`` per mount.  Its failure is not raised; the decision
   rules below pick the outcome.
2. RENDER when the user is authenticated with an allowed role, or as a grace
   render while a stored token waits for its user.
3. REDIRECT to login only once nothing is loading, nobody is authenticated
   and no usable token remains.
4. REDIRECT to the role's landing route when a resolved role is not allowed.

Gates subscribe to the auth store, so a global 401 makes every mounted gate
re-evaluate and converge on a single login redirect.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from ridebook.domain.entities import User
from ridebook.domain.enums import UserRole
from ridebook.domain.errors import RidebookError
from ridebook.state.auth import AuthStore

logger = logging.getLogger(__name__)

LOGIN_ROUTE = "/auth/login"


def route_for_role(role: Optional[str]) -> str:
    if role == UserRole.ADMIN.value:
        return "/admin"
    if role == UserRole.DRIVER.value:
        return "/driver/dashboard"
    return "/"


def route_for_user(user: Optional[User]) -> str:
    """Landing route when the full user (with driver profile) is known."""
    if user is None:
        return LOGIN_ROUTE
    if user.role == UserRole.DRIVER.value:
        if user.driver is None:
            return "/driver/registration"
        if not user.driver.verified:
            return "/driver/pending"
    return route_for_role(user.role)


class GateDecision(str, enum.Enum):
    WAIT = "wait"
    RENDER = "render"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class GateOutcome:
    decision: GateDecision
    target: Optional[str] = None


class RoleGate:
    def __init__(
        self,
        auth: AuthStore,
        allowed_roles: Iterable[str],
        navigate: Optional[Callable[[str], Any]] = None,
    ):
        self.auth = auth
        self.allowed_roles = frozenset(getattr(r, "value", r) for r in allowed_roles)
        self._navigate = navigate
        self.mounted = False
        self.redirects: list[str] = []
        self._tried_bootstrap = False
        self._bootstrap_failed = False
        self._last_redirect: Optional[str] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def has_stored_token(self) -> bool:
        return (
            self.auth.hydrated
            and self.auth.token is not None
            and not self._bootstrap_failed
        )

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def mount(self) -> GateOutcome:
        if not self.auth.hydrated:
            await self.auth.hydrate()
        self.mounted = True
        self._unsubscribe = self.auth.subscribe(self._on_auth_change)
        await self.bootstrap()
        return self.evaluate()

    def unmount(self) -> None:
        self.mounted = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def bootstrap(self) -> None:
        if self._tried_bootstrap:
            return
        if not (self.has_stored_token and self.auth.user is None):
            return
        self._tried_bootstrap = True
        try:
            await self.auth.fetch_user()
        except RidebookError as exc:
            logger.info("User bootstrap failed: %s", exc)
            self._bootstrap_failed = True
        self.evaluate()

    def _on_auth_change(self) -> None:
        if self.mounted:
            self.evaluate()

    # ── Decision ──────────────────────────────────────────────────────

    def decide(self) -> GateOutcome:
        user = self.auth.user
        if self.auth.is_authenticated and user.role in self.allowed_roles:
            return GateOutcome(GateDecision.RENDER)
        if self.has_stored_token and user is None:
            return GateOutcome(GateDecision.RENDER)
        if self.auth.is_loading:
            return GateOutcome(GateDecision.WAIT)
        if not self.auth.is_authenticated and not self.has_stored_token:
            return GateOutcome(GateDecision.REDIRECT, LOGIN_ROUTE)
        if user is not None and user.role not in self.allowed_roles:
            return GateOutcome(GateDecision.REDIRECT, route_for_role(user.role))
        return GateOutcome(GateDecision.WAIT)

    def evaluate(self) -> GateOutcome:
        if not self.mounted:
            return GateOutcome(GateDecision.WAIT)
        outcome = self.decide()
        if outcome.decision == GateDecision.REDIRECT:
            self._redirect(outcome.target)
        elif outcome.decision == GateDecision.RENDER:
            self._last_redirect = None
        return outcome

    def _redirect(self, target: str) -> None:
        if target == self._last_redirect:
            return
        self._last_redirect = target
        self.redirects.append(target)
        logger.debug("Gate redirect -> %s", target)
        if self._navigate is not None:
            self._navigate(target)
