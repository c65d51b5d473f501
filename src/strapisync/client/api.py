"""HTTP client for the remote content service.

This module provides:
- StrapiClient: Health-gated, rate-limit aware HTTP client
- Entry CRUD (``/api/{type}[/{id}]``) and admin (``/admin/...``) requests
- Login and registration endpoints
- Error taxonomy for rejected requests
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from http import HTTPStatus
from typing import Any

import httpx

from strapisync.client.health import HealthMonitor
from strapisync.client.retry import RateLimitState, retry_on_rate_limit
from strapisync.core.types import Credential, HealthState, Identity

logger = logging.getLogger(__name__)

PLUGIN_PREFIX = "/strapi-plugin-medusajs"


class StrapiError(Exception):
    """Base exception for remote service errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(StrapiError):
    """A request was rejected or could not be delivered."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        method: str | None = None,
        resource_type: str | None = None,
        entry_id: str | None = None,
    ) -> None:
        self.method = method
        self.resource_type = resource_type
        self.entry_id = entry_id
        self.remote_message = message
        context = f"{method or ''} {resource_type or ''}".strip()
        if entry_id:
            context += f" id: {entry_id}"
        super().__init__(
            f"Error while trying {context} entry in strapi: {message}", status_code
        )


class AuthExpiredError(TransportError):
    """Token rejected by the remote service."""


class NotFoundError(TransportError):
    """Resource not found."""


class RateLimitedError(TransportError):
    """Still rate limited after all retries."""


class AuthenticationError(StrapiError):
    """Login failed."""


class AlreadyRegisteredError(StrapiError):
    """The account already exists on the remote service."""


_ALREADY_EXISTS_MARKERS = ("already", "taken", "exists")


def _error_message(response: httpx.Response) -> str:
    """Extract a readable message from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if error:
            return str(error)
        if body.get("message"):
            return str(body["message"])
        if body.get("data") is not None:
            return str(body["data"])
    return str(body)


class StrapiClient:
    """HTTP client for the remote content service.

    Every request first waits for the service to be healthy and is retried
    transparently while the service answers 429.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        sync_timeout: float = 3600.0,
        health_state: HealthState | None = None,
        health_check_interval: float = 120.0,
        health_poll_interval: float = 1.0,
        rate_limit: RateLimitState | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: ``protocol://host:port`` of the remote service.
            timeout: Request timeout in seconds.
            sync_timeout: Timeout for the bulk synchronisation call.
            health_state: Shared health state (a new one if omitted).
            health_check_interval: Seconds a healthy probe is reused.
            health_poll_interval: Seconds between probes while waiting.
            rate_limit: Shared rate-limit state (a new one if omitted).
            transport: Optional httpx transport (used by tests).
            clock: Monotonic clock for health caching.
            sleep: Sleep function for health polling and 429 backoff.
            wall_clock: Epoch clock for rate-limit reset headers.
        """
        self._base_url = base_url.rstrip("/")
        self._sync_timeout = sync_timeout
        self._sleep = sleep
        self._wall_clock = wall_clock
        self.rate_limit = rate_limit if rate_limit is not None else RateLimitState()
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=timeout,
            transport=transport,
        )
        self.health = HealthMonitor(
            self.health_check,
            state=health_state,
            interval=health_check_interval,
            poll_interval=health_poll_interval,
            clock=clock,
            sleep=sleep,
        )

    @property
    def base_url(self) -> str:
        """Base URL of the remote service."""
        return self._base_url

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> StrapiClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    # === Health check ===

    def health_check(self) -> bool:
        """Probe the remote service once.

        Returns:
            True if ``HEAD /_health`` answers with a 2xx status.
        """
        try:
            response = self._client.head("/_health")
        except httpx.RequestError as e:
            logger.error(f"Strapi health check failed: {e}")
            return False
        return response.is_success

    # === Request pipeline ===

    def _request(
        self,
        method: str,
        url: str,
        *,
        token: str | None = None,
        json: Any = None,
        files: Any = None,
        data: Any = None,
        timeout: float | None = None,
        resource_type: str | None = None,
        entry_id: str | None = None,
    ) -> httpx.Response:
        """Issue a request and map rejections to exceptions."""
        self.health.wait_for_health()

        method = method.upper()
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        kwargs: dict[str, Any] = {"headers": headers}
        if json is not None:
            kwargs["json"] = json
        if files is not None:
            kwargs["files"] = files
        if data is not None:
            kwargs["data"] = data
        if timeout is not None:
            kwargs["timeout"] = timeout

        logger.info(f"{method} {self._base_url}{url}")
        try:
            response = retry_on_rate_limit(
                lambda: self._client.request(method, url, **kwargs),
                self.rate_limit,
                sleep=self._sleep,
                wall_clock=self._wall_clock,
            )
        except httpx.RequestError as e:
            self.health.mark_unhealthy()
            raise TransportError(str(e), None, method, resource_type, entry_id) from e

        return self._handle_response(response, method, resource_type, entry_id)

    def _handle_response(
        self,
        response: httpx.Response,
        method: str,
        resource_type: str | None,
        entry_id: str | None,
    ) -> httpx.Response:
        """Raise the matching exception for a rejected response."""
        if response.is_success:
            logger.info(
                f"Strapi Ok : {method}, {entry_id}, {resource_type} :status:{response.status_code}"
            )
            return response

        message = _error_message(response)
        status = response.status_code
        logger.error(f"Strapi error {status} {method} {resource_type} {entry_id or ''}: {message}")
        error_type: type[TransportError] = TransportError
        if status in (HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN):
            error_type = AuthExpiredError
        elif status == HTTPStatus.NOT_FOUND:
            error_type = NotFoundError
        elif status == HTTPStatus.TOO_MANY_REQUESTS:
            error_type = RateLimitedError
        raise error_type(message, status, method, resource_type, entry_id)

    @staticmethod
    def entry_path(method: str, resource_type: str, entry_id: str | None = None) -> str:
        """Build the entry endpoint path.

        Creates always target the collection; other verbs address the entry
        when an id is given.
        """
        if method.upper() != "POST" and entry_id:
            return f"/api/{resource_type}/{entry_id}"
        return f"/api/{resource_type}"

    @staticmethod
    def admin_path(
        resource_type: str,
        entry_id: str | None = None,
        action: str | None = None,
        query: str | None = None,
    ) -> str:
        """Build an admin endpoint path: ``/admin/{type}[/{action}][/{id}][?query]``."""
        parts = [str(p) for p in (resource_type, action, entry_id) if p]
        path = "/admin/" + "/".join(parts)
        return f"{path}?{query}" if query else path

    def send(
        self,
        method: str,
        resource_type: str,
        token: str,
        entry_id: str | None = None,
        body: Any = None,
        files: Any = None,
        data: Any = None,
    ) -> httpx.Response:
        """Send an authenticated entry request.

        Args:
            method: HTTP verb (GET, POST, PUT, DELETE).
            resource_type: Remote collection, e.g. ``products``.
            token: Bearer token.
            entry_id: Optional entry id (ignored for POST).
            body: Optional JSON body.
            files: Optional multipart files.
            data: Optional multipart form fields.

        Returns:
            The successful response.

        Raises:
            AuthExpiredError: If the token was rejected.
            NotFoundError: If the entry or type does not exist.
            TransportError: For any other failure.
        """
        return self._request(
            method,
            self.entry_path(method, resource_type, entry_id),
            token=token,
            json=body,
            files=files,
            data=data,
            resource_type=resource_type,
            entry_id=entry_id,
        )

    def admin_send(
        self,
        method: str,
        resource_type: str,
        token: str | None,
        entry_id: str | None = None,
        action: str | None = None,
        body: Any = None,
        query: str | None = None,
    ) -> httpx.Response:
        """Send a request to the admin API with the privileged token."""
        return self._request(
            method,
            self.admin_path(resource_type, entry_id, action, query),
            token=token,
            json=body,
            resource_type=resource_type,
            entry_id=entry_id,
        )

    # === Authentication ===

    def login(self, identity: Identity) -> Credential:
        """Log in as a regular user.

        Args:
            identity: User identity.

        Returns:
            Fresh credential (acquired_at is left for the caller to stamp).

        Raises:
            AuthenticationError: If the login is rejected or fails.
        """
        try:
            response = self._request(
                "POST",
                "/api/auth/local",
                json={"identifier": identity.email, "password": identity.password},
                resource_type="auth/local",
            )
        except TransportError as e:
            raise AuthenticationError(
                f"Error {identity.email} while trying to login to strapi: {e.remote_message}",
                e.status_code,
            ) from e

        body = response.json()
        if not body.get("jwt"):
            raise AuthenticationError(f"No jwt returned for {identity.email}", response.status_code)
        return Credential(token=body["jwt"], acquired_at=0.0, user=body.get("user"))

    def admin_login(self, identity: Identity) -> Credential:
        """Log in as the administrative user.

        Raises:
            AuthenticationError: If the login is rejected or fails.
        """
        try:
            response = self._request(
                "POST",
                "/admin/login",
                json={"email": identity.email, "password": identity.password},
                resource_type="admin/login",
            )
        except TransportError as e:
            raise AuthenticationError(
                f"Error {identity.email} while trying to login as admin: {e.remote_message}",
                e.status_code,
            ) from e

        payload = response.json().get("data") or {}
        if not payload.get("token"):
            raise AuthenticationError(
                f"No admin token returned for {identity.email}", response.status_code
            )
        return Credential(token=payload["token"], acquired_at=0.0, user=payload.get("user"))

    def _register(self, url: str, body: dict[str, Any], token: str | None, label: str) -> Any:
        try:
            response = self._request(
                "POST",
                url,
                token=token,
                json=body,
                timeout=self._sync_timeout,
                resource_type=label,
            )
        except TransportError as e:
            if e.status_code is not None and e.status_code in (
                HTTPStatus.BAD_REQUEST,
                HTTPStatus.CONFLICT,
            ) and any(m in e.remote_message.lower() for m in _ALREADY_EXISTS_MARKERS):
                raise AlreadyRegisteredError(e.remote_message, e.status_code) from e
            raise
        return response.json()

    def register_admin(self, identity: Identity) -> Any:
        """Register the first administrative user.

        Raises:
            AlreadyRegisteredError: If an admin is already registered.
            TransportError: If the service rejected the request otherwise.
        """
        body = self._register(
            "/admin/register-admin", identity.registration_payload(), None, "register-admin"
        )
        return (body.get("data") or {}).get("user")

    def register_user(self, identity: Identity, admin_token: str) -> Any:
        """Create a service-account user through the plugin endpoint.

        Raises:
            AlreadyRegisteredError: If the user already exists.
            TransportError: If the service rejected the request otherwise.
        """
        return self._register(
            f"{PLUGIN_PREFIX}/create-medusa-user",
            identity.registration_payload(),
            admin_token,
            "create-medusa-user",
        )

    # === Bulk synchronisation ===

    def synchronise(self, token: str) -> httpx.Response:
        """Trigger the full two-way synchronisation on the remote side."""
        response = self._request(
            "POST",
            f"{PLUGIN_PREFIX}/synchronise-medusa-tables",
            token=token,
            json={},
            timeout=self._sync_timeout,
            resource_type="synchronise-medusa-tables",
        )
        logger.info("Successfully initiated two way sync with strapi")
        return response
