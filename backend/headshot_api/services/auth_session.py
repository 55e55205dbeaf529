"""Per-request auth state with sign-in/sign-out notifications."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import StrEnum

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_common.core.app_error import Errors
from headshot_db.schemas.auth import AuthIdentity

from .credit_ledger_service import CreditLedgerService


class AuthEventType(StrEnum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"


class AuthState(BaseModel):
    identity: AuthIdentity | None = None

    @property
    def is_signed_in(self) -> bool:
        return self.identity is not None


type AuthListener = Callable[[AuthEventType, AuthState], Awaitable[None]]


class AuthSession:
    """Explicitly constructed auth context. Listeners are awaited in subscription order."""

    def __init__(self) -> None:
        self._state = AuthState()
        self._listeners: list[AuthListener] = []

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def identity(self) -> AuthIdentity:
        if self._state.identity is None:
            raise Errors.Auth.NOT_SIGNED_IN.create()
        return self._state.identity

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: AuthListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def sign_in(self, identity: AuthIdentity) -> None:
        self._state = AuthState(identity=identity)
        await self._notify(AuthEventType.SIGNED_IN)

    async def sign_out(self) -> None:
        if self._state.identity is None:
            return
        self._state = AuthState()
        await self._notify(AuthEventType.SIGNED_OUT)

    async def _notify(self, event: AuthEventType) -> None:
        for listener in list(self._listeners):
            await listener(event, self._state)


class CreditBootstrapListener:
    """Makes sure a signed-in user has a ledger row, granting the sign-up bonus on first sign-in."""

    def __init__(self, ledger: CreditLedgerService, db: AsyncSession) -> None:
        self.ledger = ledger
        self.db = db

    async def __call__(self, event: AuthEventType, state: AuthState) -> None:
        if event != AuthEventType.SIGNED_IN or state.identity is None:
            return
        identity = state.identity
        await self.ledger.initialize(self.db, identity.user_id, identity.email, identity.display_name)
