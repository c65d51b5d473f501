"""Admin user management on the remote service.

This module provides:
- AdminUsers: Role lookup and CRUD of admin panel users
- generate_password: Random password for invited admin users
"""

from __future__ import annotations

import logging
import secrets
import string
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from strapisync.client.api import AuthExpiredError, StrapiError
from strapisync.core.query import build_query
from strapisync.core.types import AdminResult

if TYPE_CHECKING:
    import httpx

    from strapisync.client.sync.context import SyncContext

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "Author"
PASSWORD_LENGTH = 16


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Generate a password with at least one lowercase, uppercase and digit."""
    alphabet = string.ascii_letters + string.digits
    while True:
        password = "".join(secrets.choice(alphabet) for _ in range(length))
        if (
            any(c.islower() for c in password)
            and any(c.isupper() for c in password)
            and any(c.isdigit() for c in password)
        ):
            return password


class AdminUsers:
    """Manages admin panel users with the privileged admin token."""

    def __init__(self, context: SyncContext) -> None:
        self._client = context.client
        self._auth = context.auth

    def admin_send(
        self,
        method: str,
        resource_type: str,
        entry_id: str | None = None,
        action: str | None = None,
        body: Any = None,
        query: str | None = None,
    ) -> httpx.Response:
        """Send an admin request, logging in again once if the token expired."""
        credential = self._auth.get_admin_token()
        try:
            return self._client.admin_send(
                method, resource_type, credential.token, entry_id, action, body, query
            )
        except AuthExpiredError:
            logger.info("Admin token rejected, logging in again")
            self._auth.invalidate_admin()
            credential = self._auth.get_admin_token(force=True)
            return self._client.admin_send(
                method, resource_type, credential.token, entry_id, action, body, query
            )

    def _process(
        self,
        method: str,
        resource_type: str,
        entry_id: str | None = None,
        action: str | None = None,
        body: Any = None,
        query: str | None = None,
    ) -> AdminResult:
        try:
            response = self.admin_send(method, resource_type, entry_id, action, body, query)
        except StrapiError as e:
            logger.error(f"Admin endpoint error: {e}")
            return AdminResult(status=HTTPStatus.BAD_REQUEST)
        return AdminResult(status=response.status_code, data=response.json() if response.content else None)

    def get_role_id(self, role: str) -> int:
        """Get the id of an admin role by name, or -1 if it does not exist."""
        result = self._process("GET", "roles")
        if not result.ok or not result.data:
            return -1
        for available in result.data.get("data") or []:
            if available.get("name") == role:
                return int(available["id"])
        return -1

    def register(
        self,
        email: str,
        firstname: str,
        password: str | None = None,
        role: str = DEFAULT_ROLE,
    ) -> AdminResult:
        """Invite an admin user with the given role.

        The remote service sends the invitation; the password is only set
        on update.
        """
        del password  # set by the invited user
        body = {
            "email": email,
            "firstname": firstname,
            "roles": [self.get_role_id(role)],
        }
        return self._process("POST", "users", body=body)

    def get(self, email: str) -> AdminResult:
        """Find an admin user by email (case insensitive)."""
        query = build_query({"fields": ["email"], "filters": {"email": email.lower()}})
        result = self._process("GET", "users", query=query)
        if result.status != HTTPStatus.OK:
            return AdminResult(status=HTTPStatus.BAD_REQUEST)
        results = ((result.data or {}).get("data") or {}).get("results") or []
        if not results:
            return AdminResult(status=HTTPStatus.NOT_FOUND)
        return AdminResult(status=HTTPStatus.OK, data=results[0])

    def list(self) -> AdminResult:
        """List all admin users."""
        return self._process("GET", "users")

    def update(
        self,
        email: str,
        firstname: str,
        password: str | None = None,
        role: str = DEFAULT_ROLE,
        is_active: bool = True,
    ) -> AdminResult:
        """Update an admin user, activating it with a password."""
        existing = self.get(email)
        if not existing.ok:
            return AdminResult(status=HTTPStatus.BAD_REQUEST)
        body = {
            "email": email.lower(),
            "firstname": firstname,
            "password": password or generate_password(),
            "isActive": is_active,
            "roles": [self.get_role_id(role)],
        }
        return self._process("PUT", "users", entry_id=str(existing.data["id"]), body=body)

    def delete(self, email: str) -> AdminResult:
        """Delete an admin user by email."""
        existing = self.get(email)
        if not existing.ok:
            return AdminResult(status=HTTPStatus.BAD_REQUEST)
        return self._process("DELETE", "users", entry_id=str(existing.data["id"]))
