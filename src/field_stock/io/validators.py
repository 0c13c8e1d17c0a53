"""Validation rules applied before any command reaches the remote sheet."""

import re

from field_stock.errors import ValidationError
from field_stock.utils.constants import MAX_IMAGE_BYTES, PIN_LENGTH, SEASONS


def validate_pin(pin: str) -> str:
    """Return the PIN stripped, or raise if it is not exactly 4 digits."""
    pin = (pin or "").strip()
    if len(pin) != PIN_LENGTH or not pin.isdigit():
        raise ValidationError(f"PIN must be {PIN_LENGTH} digits")
    return pin


def validate_quantity(quantity) -> int:
    """Quantities moved between locations are positive whole numbers."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be a whole number")
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")
    return quantity


def validate_part_fields(part_id: str, name: str, category_id: str) -> list[str]:
    """Check the required new-part fields. Returns a list of error strings."""
    errors = []
    if not (part_id or "").strip():
        errors.append("Part number is required")
    if not (name or "").strip():
        errors.append("Part name is required")
    if not (category_id or "").strip():
        errors.append("Category is required")
    return errors


def validate_seasons(seasons: list[str]) -> list[str]:
    """Normalize an active-season selection; at least one is required."""
    selected = []
    for season in seasons:
        season = season.strip().lower()
        if season not in SEASONS:
            raise ValidationError(f"Unknown season: {season}")
        if season not in selected:
            selected.append(season)
    if not selected:
        raise ValidationError("Select at least one season")
    return selected


def validate_image_size(size_bytes: int):
    if size_bytes > MAX_IMAGE_BYTES:
        raise ValidationError("Image too large. Max 5MB.")


def slugify(name: str) -> str:
    """Derive an id from a display name (``"Van #2"`` -> ``van--2``)."""
    return re.sub(r"[^a-z0-9]", "-", name.strip().lower())
