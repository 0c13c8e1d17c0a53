"""The signed-in technician."""

from dataclasses import dataclass

from field_stock.database.models import User
from field_stock.errors import PermissionDenied


@dataclass
class Session:
    user: User
    pin: str

    @property
    def name(self) -> str:
        return self.user.name

    @property
    def is_owner(self) -> bool:
        return self.user.is_owner

    @property
    def can_edit_pin(self) -> bool:
        return self.user.is_owner or self.user.can_edit_pin

    @property
    def truck_id(self) -> str:
        return self.user.truck_id

    def require_owner(self, action: str = "This action"):
        if not self.is_owner:
            raise PermissionDenied(f"{action} requires owner access")
