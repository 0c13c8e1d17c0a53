"""Formatting utilities for display values."""

from datetime import datetime


def format_currency(value: float) -> str:
    """Format a float as USD currency."""
    return f"${value:,.2f}"


def format_quantity(value: int, min_quantity: int = 0) -> str:
    """Format quantity, flagging low stock."""
    if min_quantity > 0 and value < min_quantity:
        return f"{value} (LOW)"
    return str(value)


def format_lockout_remaining(remaining_ms: int) -> str:
    """Format a lockout countdown as m:ss, rounding seconds up."""
    seconds_total = max(0, -(-remaining_ms // 1000))
    minutes, seconds = divmod(seconds_total, 60)
    return f"{minutes}:{seconds:02d}"


def format_timestamp(epoch_ms: int) -> str:
    """Format an epoch-ms timestamp the way the history sheet stores it."""
    return datetime.fromtimestamp(epoch_ms / 1000).strftime(
        "%m/%d/%Y, %I:%M:%S %p"
    )
