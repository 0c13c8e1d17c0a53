"""HTTP client for the remote inventory sheet service.

The service exposes one URL. Reads are ``GET ?action=<query>`` and answer
``{"success": bool, "data": ...}``; writes are ``POST`` requests whose
``text/plain`` body is a JSON object tagged with an ``action`` field.
"""

import json
import logging
from typing import Any, Optional

import httpx

from field_stock.config import Config
from field_stock.errors import RateLimited, RemoteError, TransportError

logger = logging.getLogger(__name__)

Table = list[list[Any]]


class RemoteStore:
    """Query and command calls against the sheet service."""

    def __init__(self, base_url: Optional[str] = None,
                 client: Optional[httpx.Client] = None,
                 timeout: Optional[float] = None):
        self.base_url = base_url if base_url is not None else Config.REMOTE_URL
        self._client = client or httpx.Client(
            timeout=timeout or Config.REMOTE_TIMEOUT_SECONDS,
            follow_redirects=True,
        )

    def close(self):
        self._client.close()

    # ── Transport ───────────────────────────────────────────────

    def query(self, action: str) -> Any:
        """Run a read action and return its ``data`` payload."""
        return self._send("GET", action, params={"action": action})

    def command(self, action: str, **payload) -> dict:
        """Run a write action; returns the full response object."""
        body = {"action": action, **payload}
        return self._send(
            "POST", action,
            content=json.dumps(body),
            headers={"Content-Type": "text/plain"},
            full=True,
        )

    def _send(self, method: str, action: str, full: bool = False,
              **kwargs) -> Any:
        try:
            response = self._client.request(method, self.base_url, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Timed out calling {action}") from exc
        except httpx.TransportError as exc:
            raise TransportError(
                f"Connection error calling {action}: {exc}"
            ) from exc

        if response.status_code == 429:
            raise RateLimited(
                f"Rate limited calling {action}", status_code=429
            )
        if response.status_code >= 400:
            raise RemoteError(
                f"{action} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            result = response.json()
        except ValueError as exc:
            raise RemoteError(f"{action} returned a non-JSON body") from exc
        if not isinstance(result, dict) or not result.get("success"):
            error = result.get("error") if isinstance(result, dict) else None
            raise RemoteError(f"{action} failed: {error or 'unknown error'}")

        logger.debug("%s %s ok", method, action)
        return result if full else result.get("data")

    # ── Queries ─────────────────────────────────────────────────

    def read_settings(self) -> Table:
        return self.query("readSettings") or []

    def read_categories(self) -> Table:
        return self.query("readCategories") or []

    def read_trucks(self) -> Table:
        return self.query("readTrucks") or []

    def read_inventory(self) -> Table:
        return self.query("readInventory") or []

    def read_history(self) -> Table:
        return self.query("readHistory") or []

    def read_users(self) -> Table:
        return self.query("readUsers") or []

    def read_low_stock(self) -> dict:
        """Precomputed low-stock view: ``{"shop": [...], "trucks": {...}}``."""
        return self.query("getLowStockItems") or {"shop": [], "trucks": {}}

    # ── Commands ────────────────────────────────────────────────

    def set_quantities(self, part_id: str, updates: dict[str, int]) -> dict:
        """Overwrite absolute quantities for the given locations."""
        return self.command(
            "updatePartQuantity", partId=part_id, updates=updates
        )

    def add_part(self, part: dict) -> dict:
        return self.command("addPart", part=part)

    def save_category(self, category_id: str, name: str,
                      parent_id: str, order: int) -> dict:
        return self.command(
            "saveCategory", id=category_id, name=name,
            parentId=parent_id, order=order,
        )

    def delete_category(self, category_id: str) -> dict:
        return self.command("deleteCategory", id=category_id)

    def save_truck(self, truck_id: str, name: str, active: bool) -> dict:
        return self.command("saveTruck", id=truck_id, name=name, active=active)

    def delete_truck(self, truck_id: str) -> dict:
        return self.command("deleteTruck", id=truck_id)

    def save_user(self, pin: str, name: str, truck_id: str,
                  is_owner: bool = False, can_edit_pin: bool = False) -> dict:
        return self.command(
            "saveUser", pin=pin, name=name, truck=truck_id,
            isOwner=is_owner, canEditPIN=can_edit_pin,
        )

    def delete_user(self, pin: str) -> dict:
        return self.command("deleteUser", pin=pin)

    def change_pin(self, old_pin: str, new_pin: str) -> dict:
        return self.command("changePIN", oldPIN=old_pin, newPIN=new_pin)

    def save_setting(self, key: str, value: str) -> dict:
        return self.command("saveSetting", setting=key, value=value)

    def add_transaction(self, transaction: dict) -> dict:
        return self.command("addTransaction", transaction=transaction)

    def log_login(self, user_name: str, pin: str, login_action: str,
                  details: str) -> dict:
        return self.command(
            "logLogin", userName=user_name, pin=pin,
            loginAction=login_action, details=details,
        )

    def upload_image(self, image_data: str, file_name: str) -> str:
        """Upload a base64 data URL; returns the hosted image URL."""
        result = self.command(
            "uploadImage", imageData=image_data, fileName=file_name
        )
        return result.get("imageUrl", "")
