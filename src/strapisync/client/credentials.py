"""Credential caching and authentication against the remote service.

This module provides:
- CredentialCache: Tokens keyed by identity email, with a reuse window
- AuthClient: Login/registration for the admin and per-tenant identities

The remote login endpoints are themselves rate limited, so tokens are
reused for a while instead of logging in before every request. While the
service is throttling, the reuse window widens to the last backoff delay.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from strapisync.client.api import AuthenticationError
from strapisync.client.retry import RateLimitState

if TYPE_CHECKING:
    from strapisync.client.api import StrapiClient
    from strapisync.core.types import Credential, Identity

logger = logging.getLogger(__name__)


class CredentialCache:
    """Bearer tokens keyed by identity email.

    Concurrent logins for one identity may race; the cache keeps whichever
    credential was stored last.
    """

    def __init__(
        self,
        reuse_window: float = 180.0,
        rate_limit: RateLimitState | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            reuse_window: Seconds a credential is reused before re-login.
            rate_limit: Shared rate-limit state widening the reuse window.
            clock: Monotonic clock.
        """
        self._credentials: dict[str, Credential] = {}
        self._reuse_window = reuse_window
        self._rate_limit = rate_limit if rate_limit is not None else RateLimitState()
        self._clock = clock

    @property
    def reuse_window(self) -> float:
        """Effective reuse window in seconds."""
        backoff = self._rate_limit.backoff or 0.0
        return max(self._reuse_window, backoff)

    def now(self) -> float:
        """Current time on the cache clock."""
        return self._clock()

    def is_fresh(self, credential: Credential) -> bool:
        """Check whether a credential is still inside the reuse window."""
        return credential.age(self._clock()) < self.reuse_window

    def get(self, email: str) -> Credential | None:
        """Get the cached credential for an identity, fresh or not."""
        return self._credentials.get(email)

    def put(self, email: str, credential: Credential) -> None:
        """Store a credential for an identity."""
        self._credentials[email] = credential

    def invalidate(self, email: str) -> None:
        """Drop the cached credential for an identity."""
        self._credentials.pop(email, None)


class AuthClient:
    """Logs identities into the remote service and caches their tokens."""

    def __init__(
        self,
        client: StrapiClient,
        cache: CredentialCache,
        admin: Identity,
    ) -> None:
        """Initialize the auth client.

        Args:
            client: HTTP client for the remote service.
            cache: Credential cache for per-user tokens.
            admin: The privileged administrative identity.
        """
        self._client = client
        self._cache = cache
        self._admin = admin
        self._admin_credential: Credential | None = None
        self._last_admin_attempt: float | None = None

    @property
    def cache(self) -> CredentialCache:
        """Per-user credential cache."""
        return self._cache

    @property
    def admin_credential(self) -> Credential | None:
        """Last admin credential, if any."""
        return self._admin_credential

    @property
    def admin_profile(self) -> dict[str, Any] | None:
        """Profile returned by the last admin login."""
        return self._admin_credential.user if self._admin_credential else None

    # === Per-user tokens ===

    def get_token(self, identity: Identity, force: bool = False) -> Credential:
        """Get a token for an identity, logging in when needed.

        Args:
            identity: User identity.
            force: Ignore the cached credential.

        Returns:
            A credential for the identity.

        Raises:
            AuthenticationError: If the login fails.
        """
        cached = self._cache.get(identity.email)
        if cached and not force and self._cache.is_fresh(cached):
            logger.debug("Using cached user credentials")
            return cached

        credential = self._client.login(identity)
        credential.acquired_at = self._cache.now()
        self._cache.put(identity.email, credential)
        logger.info(f"{identity.email} successfully logged in to Strapi")
        return credential

    def invalidate(self, identity: Identity) -> None:
        """Forget the cached token of an identity."""
        self._cache.invalidate(identity.email)

    def fetch_user_token(self, email: str) -> str | None:
        """Get the cached token string for an email, if any."""
        credential = self._cache.get(email)
        if credential:
            logger.info(f"Fetched token for: {email}")
            return credential.token
        return None

    # === Admin token ===

    def get_admin_token(self, force: bool = False) -> Credential:
        """Get the privileged admin token.

        Logins are attempted at most once per reuse window, successful or
        not, so repeated failures back off as well.

        Args:
            force: Ignore the cached token and the attempt window.

        Returns:
            The admin credential.

        Raises:
            AuthenticationError: If the login fails or a recent attempt failed.
        """
        now = self._cache.now()
        recently_attempted = (
            self._last_admin_attempt is not None
            and now - self._last_admin_attempt < self._cache.reuse_window
        )
        if not force and recently_attempted:
            if self._admin_credential:
                return self._admin_credential
            raise AuthenticationError(
                f"Admin login for {self._admin.email} failed recently, backing off"
            )

        self._last_admin_attempt = now
        try:
            credential = self._client.admin_login(self._admin)
        except AuthenticationError:
            logger.error(f"An error occurred while logging into admin {self._admin.email}")
            raise
        credential.acquired_at = now
        self._admin_credential = credential
        logger.info(f"Logged in admin {self._admin.email} with strapi")
        return credential

    def invalidate_admin(self) -> None:
        """Forget the admin token and allow an immediate re-login."""
        self._admin_credential = None
        self._last_admin_attempt = None

    # === Registration ===

    def register_admin(self) -> Any:
        """Register the administrative identity.

        Raises:
            AlreadyRegisteredError: If an admin already exists.
            TransportError: If the service could not be reached.
        """
        return self._client.register_admin(self._admin)

    def register_user(self, identity: Identity) -> Any:
        """Register a service-account identity using the admin token.

        Raises:
            AuthenticationError: If no admin token can be obtained.
            AlreadyRegisteredError: If the user already exists.
            TransportError: If the service could not be reached.
        """
        admin = self.get_admin_token()
        return self._client.register_user(identity, admin.token)
