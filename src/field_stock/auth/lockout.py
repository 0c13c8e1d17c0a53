"""PIN login with an escalating lockout.

The attempt counter and the lockout deadline survive restarts; both live
in the local key/value store. While a lockout is active the remote user
table is never consulted.
"""

import logging
from typing import Optional, Sequence

from field_stock.database.models import LockoutState
from field_stock.database.store import KeyValueStore
from field_stock.errors import InvalidPin, LockedOut, RemoteError
from field_stock.io.decoders import decode_users
from field_stock.io.validators import validate_pin
from field_stock.remote.client import RemoteStore
from field_stock.utils.clock import Clock, now_ms
from field_stock.utils.constants import (
    LOCKOUT_LADDER_MS,
    LOCKOUT_UNTIL_KEY,
    LOGIN_ATTEMPTS_KEY,
)

from .session import Session

logger = logging.getLogger(__name__)


class PinAuthenticator:
    """Checks PINs against the remote user table."""

    def __init__(self, remote: RemoteStore, store: KeyValueStore,
                 clock: Clock = now_ms,
                 ladder: Optional[Sequence[int]] = None):
        self.remote = remote
        self.store = store
        self._clock = clock
        self.ladder = list(ladder if ladder is not None else LOCKOUT_LADDER_MS)
        if not self.ladder:
            raise ValueError("Lockout ladder must not be empty")

    # ── Persisted state ─────────────────────────────────────────

    def state(self) -> LockoutState:
        return LockoutState(
            attempts=int(self.store.get(LOGIN_ATTEMPTS_KEY, 0) or 0),
            locked_until=int(self.store.get(LOCKOUT_UNTIL_KEY, 0) or 0),
        )

    def _save(self, state: LockoutState):
        self.store.set(LOGIN_ATTEMPTS_KEY, state.attempts)
        self.store.set(LOCKOUT_UNTIL_KEY, state.locked_until)

    def lockout_for(self, attempts: int) -> int:
        """Lockout duration after the given number of consecutive failures."""
        if attempts <= 0:
            return 0
        return self.ladder[min(attempts - 1, len(self.ladder) - 1)]

    def attempts_remaining(self, attempts: int) -> int:
        """Failures still allowed before one triggers a lockout."""
        for failure in range(attempts + 1, len(self.ladder) + 1):
            if self.lockout_for(failure):
                return failure - attempts
        return len(self.ladder) - attempts

    # ── Login / logout ──────────────────────────────────────────

    def login(self, pin: str) -> tuple[Session, dict]:
        """Authenticate ``pin``.

        Returns the session and the freshly fetched user table (keyed by
        PIN). Raises ``LockedOut`` without any remote call during a
        lockout, ``ValidationError`` for a malformed PIN, and
        ``InvalidPin`` for an unknown one.
        """
        now = self._clock()
        state = self.state()
        if state.is_locked(now):
            raise LockedOut(state.remaining_ms(now))
        if state.locked_until:
            state = LockoutState()
            self._save(state)

        pin = validate_pin(pin)
        users = decode_users(self.remote.read_users())
        user = users.get(pin)

        if user is None:
            state.attempts += 1
            duration = self.lockout_for(state.attempts)
            if duration:
                state.locked_until = now + duration
            self._save(state)
            logger.warning(
                "Failed login attempt %d%s", state.attempts,
                f", locked for {duration // 1000} s" if duration else "",
            )
            raise InvalidPin(
                attempts_remaining=self.attempts_remaining(state.attempts),
                locked_for_ms=duration,
            )

        self._save(LockoutState())
        logger.info("%s logged in", user.name)
        self._log_event(user.name, pin, "Login", "User logged in")
        return Session(user=user, pin=pin), users

    def logout(self, session: Session):
        self._log_event(session.name, session.pin, "Logout", "User logged out")

    def _log_event(self, user_name: str, pin: str, action: str, details: str):
        try:
            self.remote.log_login(user_name, pin, action, details)
        except RemoteError as e:
            logger.warning("Could not record %s event: %s", action, e)
