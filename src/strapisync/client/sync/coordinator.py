"""Sync coordinator for bootstrapping and bulk synchronisation.

This module provides:
- SyncCoordinator: Startup sequence, per-user configuration and the owner
  of the entity engine and admin user management

Bootstrap sequence (safe to re-run):
1. Register the admin identity (ignored if it already exists), then log in
2. Register the default service-account user through the admin token
   (ignored if it already exists), then log in as that user
3. Trigger the bulk synchronisation with the admin token

Registration is best effort; logins are authoritative. A failed login
raises BootstrapError and the steps depending on it are skipped.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from strapisync.client.api import AlreadyRegisteredError, AuthenticationError, StrapiError
from strapisync.client.sync.admin import AdminUsers
from strapisync.client.sync.engine import EntitySyncEngine
from strapisync.client.sync.types import BootstrapError

if TYPE_CHECKING:
    import httpx

    from strapisync.client.sync.context import SyncContext
    from strapisync.client.sync.domain import DomainServices
    from strapisync.core.types import Credential, Identity

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """Orchestrates authentication and synchronisation with the remote service.

    Usage:
        context = SyncContext.create(config)
        coordinator = SyncCoordinator(context, services)
        coordinator.start(timeout=60)
        coordinator.engine.create_product("prod_1")
    """

    def __init__(self, context: SyncContext, services: DomainServices) -> None:
        """Initialize the coordinator.

        Args:
            context: Shared sync context.
            services: Domain services for the entity engine.
        """
        self._context = context
        self._client = context.client
        self._auth = context.auth
        self._config = context.config
        self.engine = EntitySyncEngine(context, services)
        self.admin_users = AdminUsers(context)

    @property
    def context(self) -> SyncContext:
        return self._context

    # === Registration and login ===

    def register_or_login_admin(self) -> Credential:
        """Register the admin identity if needed and log it in.

        Returns:
            The admin credential.

        Raises:
            BootstrapError: If the admin login fails.
        """
        try:
            self._auth.register_admin()
            logger.info(f"Registered admin {self._config.admin.email} with strapi")
        except AlreadyRegisteredError:
            logger.info("Admin already registered")
        except StrapiError as e:
            logger.warning(f"Unable to register admin {self._config.admin.email}: {e}")

        try:
            return self._auth.get_admin_token(force=True)
        except AuthenticationError as e:
            raise BootstrapError(f"Unable to log in admin: {e}") from e

    def register_or_login_default_user(self) -> Credential:
        """Register the default service-account user if needed and log it in.

        Returns:
            The default user's credential.

        Raises:
            BootstrapError: If the login fails.
        """
        identity = self._config.default_user
        try:
            self._auth.register_user(identity)
            logger.info(f"Registered default user {identity.email} with strapi")
        except AlreadyRegisteredError:
            logger.info(f"Default user {identity.email} already registered")
        except StrapiError as e:
            logger.warning(f"Unable to register default user {identity.email}: {e}")

        return self.login_as_default_user()

    def login_as_default_user(self) -> Credential:
        """Log in as the default user.

        Raises:
            BootstrapError: If the login fails.
        """
        identity = self._config.default_user
        try:
            return self._auth.get_token(identity, force=True)
        except AuthenticationError as e:
            raise BootstrapError(f"Unable to log in default user {identity.email}: {e}") from e

    # === Synchronisation ===

    def execute_sync(self, token: str) -> httpx.Response:
        """Trigger the bulk synchronisation on the remote side.

        Raises:
            BootstrapError: If the request fails.
        """
        try:
            return self._client.synchronise(token)
        except StrapiError as e:
            raise BootstrapError(f"Unable to trigger synchronisation: {e}") from e

    def bootstrap(self) -> None:
        """Run the bootstrap sequence.

        Raises:
            BootstrapError: If a login or the bulk sync fails.
        """
        admin = self.register_or_login_admin()
        self.register_or_login_default_user()
        self.execute_sync(admin.token)
        logger.info("Bootstrap complete")

    def start(self, timeout: float | None = None) -> None:
        """Wait for the remote service to be healthy, then bootstrap.

        Args:
            timeout: Seconds to wait for health (None waits forever).

        Raises:
            TimeoutError: If the service did not become healthy in time.
            BootstrapError: If the bootstrap fails.
        """
        self._client.health.wait_for_health(timeout)
        self.bootstrap()

    def configure_for_user(self, identity: Identity) -> httpx.Response:
        """Log in as ``identity`` and synchronise with its token.

        Raises:
            BootstrapError: If the login or the sync fails.
        """
        try:
            credential = self._auth.get_token(identity)
        except AuthenticationError as e:
            raise BootstrapError(f"Unable to log in {identity.email}: {e}") from e
        return self.execute_sync(credential.token)

    def delete_default_user(self) -> Any:
        """Delete the default user from the remote service.

        Returns:
            The deleted user as returned by the service.

        Raises:
            AuthenticationError: If logging in fails.
            TransportError: If a request fails.
        """
        identity = self._config.default_user
        me = self.engine.send("GET", "users/me", identity).json()
        response = self.engine.send("DELETE", "users", identity, entry_id=str(me["id"]))
        self._auth.invalidate(identity)
        logger.info(f"Deleted default user {identity.email}")
        return response.json() if response.content else None
