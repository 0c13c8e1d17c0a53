"""Exception types shared across the inventory engine."""

from field_stock.utils.formatters import format_lockout_remaining


class FieldStockError(Exception):
    """Base exception for the application."""


# ── Remote store ────────────────────────────────────────────────

class RemoteError(FieldStockError):
    """The remote sheet service rejected or failed a call."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(RemoteError):
    """Network failure or timeout while talking to the remote service."""


class RateLimited(TransportError):
    """The remote service answered HTTP 429."""


# ── Validation ──────────────────────────────────────────────────

class ValidationError(FieldStockError, ValueError):
    """A request was rejected locally; no remote call was issued."""


class PermissionDenied(ValidationError):
    """The current session lacks the right for this action."""


# ── Writes ──────────────────────────────────────────────────────

class PartialWriteError(FieldStockError):
    """Quantities were written but the paired audit entry was not.

    The remote store has no transaction spanning both commands, so this
    state is reported to the caller rather than reconciled.
    """

    def __init__(self, message: str, part_id: str, updates: dict[str, int]):
        super().__init__(message)
        self.part_id = part_id
        self.updates = dict(updates)


# ── Configuration ───────────────────────────────────────────────

class CategoryCycleError(FieldStockError):
    """A category's parent chain loops back on itself."""

    def __init__(self, chain: list[str]):
        super().__init__(
            "Category hierarchy contains a cycle: " + " -> ".join(chain)
        )
        self.chain = chain


# ── Authentication ──────────────────────────────────────────────

class LockedOut(FieldStockError):
    """Login refused because of an active lockout."""

    def __init__(self, remaining_ms: int):
        super().__init__(
            f"Locked out. Try again in "
            f"{format_lockout_remaining(remaining_ms)}"
        )
        self.remaining_ms = remaining_ms


class InvalidPin(FieldStockError):
    """The PIN did not match any user."""

    def __init__(self, attempts_remaining: int, locked_for_ms: int = 0):
        if locked_for_ms:
            minutes = locked_for_ms // 60000
            message = (
                f"Too many attempts. Locked out for {minutes} "
                f"minute{'s' if minutes != 1 else ''}."
            )
        else:
            message = (
                f"Invalid PIN. {attempts_remaining} "
                f"attempt{'s' if attempts_remaining != 1 else ''} remaining."
            )
        super().__init__(message)
        self.attempts_remaining = attempts_remaining
        self.locked_for_ms = locked_for_ms
