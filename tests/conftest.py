"""Shared fixtures: a fake remote service, a fake clock and domain services."""

from __future__ import annotations

import itertools
import json
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

from strapisync.client.sync.context import SyncContext
from strapisync.client.sync.domain import DomainServices
from strapisync.core.config import SyncConfig
from strapisync.core.types import Identity

BASE_URL = "http://strapi.test:1337"

DEFAULT_TYPES = (
    "products",
    "product-variants",
    "regions",
    "product-types",
    "product-metafields",
    "images",
    "product-documents",
    "product-medias",
)


class FakeClock:
    """Manually advanced clock; ``sleep`` advances it too."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _json(status: int, body: Any) -> httpx.Response:
    return httpx.Response(status, json=body)


def _error(status: int, message: str) -> httpx.Response:
    return _json(status, {"data": None, "error": {"status": status, "message": message}})


@dataclass
class FakeStrapi:
    """In-memory stand-in for the remote content service.

    Entries are keyed by ``medusa_id``; every request is recorded in
    ``calls`` as ``(method, path)``.
    """

    admin: Identity
    types: set[str] = field(default_factory=lambda: set(DEFAULT_TYPES))
    healthy: bool = True
    admin_registered: bool = False
    users: dict[str, dict[str, Any]] = field(default_factory=dict)
    entries: dict[str, dict[str, dict[str, Any]]] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)
    user_tokens: dict[str, str] = field(default_factory=dict)
    admin_tokens: set[str] = field(default_factory=set)
    sync_count: int = 0
    _ids: Iterator[int] = field(default_factory=lambda: itertools.count(1))

    # === Helpers for tests ===

    def count(self, method: str, prefix: str = "") -> int:
        return sum(1 for m, p in self.calls if m == method and p.startswith(prefix))

    def logins(self) -> int:
        return self.count("POST", "/api/auth/local")

    def api_calls(self) -> list[tuple[str, str]]:
        return [(m, p) for m, p in self.calls if p.startswith("/api/")]

    def expire_tokens(self) -> None:
        self.user_tokens.clear()
        self.admin_tokens.clear()

    def add_user(self, identity: Identity) -> None:
        self.users[identity.email] = {
            "id": next(self._ids),
            "email": identity.email,
            "username": identity.email,
            "password": identity.password,
        }

    # === Transport ===

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        self.calls.append((method, path))

        if path == "/_health":
            return httpx.Response(204 if self.healthy else 503)
        if path == "/admin/register-admin":
            return self._register_admin(request)
        if path == "/admin/login":
            return self._admin_login(request)
        if path == "/strapi-plugin-medusajs/create-medusa-user":
            return self._create_user(request)
        if path == "/strapi-plugin-medusajs/synchronise-medusa-tables":
            if self._token(request) not in self.admin_tokens | set(self.user_tokens):
                return _error(401, "Unauthorized")
            self.sync_count += 1
            return _json(200, {"status": "started"})
        if path == "/api/auth/local":
            return self._login(request)
        if path.startswith("/api/users"):
            return self._users(request, path)
        if path.startswith("/api/"):
            return self._entries(request, path)
        return _error(404, "Not Found")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    # === Endpoints ===

    @staticmethod
    def _token(request: httpx.Request) -> str | None:
        header = request.headers.get("Authorization", "")
        return header.removeprefix("Bearer ") if header else None

    def _register_admin(self, request: httpx.Request) -> httpx.Response:
        if self.admin_registered:
            return _error(400, "You cannot register a new super admin, one already exists")
        self.admin_registered = True
        body = json.loads(request.content)
        return _json(200, {"data": {"user": {"id": 1, "email": body["email"]}, "token": "reg"}})

    def _admin_login(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if not self.admin_registered or body.get("email") != self.admin.email or (
            body.get("password") != self.admin.password
        ):
            return _error(400, "Invalid credentials")
        token = f"admin-{next(self._ids)}"
        self.admin_tokens.add(token)
        return _json(200, {"data": {"token": token, "user": {"id": 1, "email": self.admin.email}}})

    def _create_user(self, request: httpx.Request) -> httpx.Response:
        if self._token(request) not in self.admin_tokens:
            return _error(401, "Unauthorized")
        body = json.loads(request.content)
        if body["email"] in self.users:
            return _error(400, "Email is already taken")
        self.add_user(Identity(email=body["email"], password=body["password"]))
        return _json(200, {"id": self.users[body["email"]]["id"], "email": body["email"]})

    def _login(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        user = self.users.get(body.get("identifier"))
        if user is None or user["password"] != body.get("password"):
            return _error(400, "Invalid identifier or password")
        token = f"jwt-{next(self._ids)}"
        self.user_tokens[token] = user["email"]
        public = {k: v for k, v in user.items() if k != "password"}
        return _json(200, {"jwt": token, "user": public})

    def _users(self, request: httpx.Request, path: str) -> httpx.Response:
        email = self.user_tokens.get(self._token(request) or "")
        if email is None:
            return _error(401, "Unauthorized")
        user = self.users[email]
        public = {k: v for k, v in user.items() if k != "password"}
        if path == "/api/users/me" and request.method == "GET":
            return _json(200, public)
        if request.method == "DELETE" and path == f"/api/users/{user['id']}":
            del self.users[email]
            return _json(200, public)
        return _error(404, "Not Found")

    def _entries(self, request: httpx.Request, path: str) -> httpx.Response:
        if self._token(request) not in self.user_tokens:
            return _error(401, "Unauthorized")

        parts = path.removeprefix("/api/").split("/")
        resource_type = parts[0]
        entry_id = parts[1] if len(parts) > 1 else None
        if resource_type not in self.types:
            return _error(404, "Not Found")
        collection = self.entries.setdefault(resource_type, {})

        if request.method == "GET":
            if entry_id is None:
                return _json(200, {"data": list(collection.values()), "meta": {}})
            if entry_id not in collection:
                return _error(404, "Not Found")
            return _json(200, {"data": collection[entry_id], "meta": {}})

        if request.method == "POST":
            payload = self._payload(request)
            if payload.get("medusa_id") in collection:
                return _error(400, "This attribute must be unique")
            entry = {"id": next(self._ids), **payload}
            collection[payload.get("medusa_id") or str(entry["id"])] = entry
            return _json(200, {"data": entry, "meta": {}})

        if entry_id not in collection:
            return _error(404, "Not Found")
        if request.method == "PUT":
            collection[entry_id] = {**collection[entry_id], **self._payload(request)}
            return _json(200, {"data": collection[entry_id], "meta": {}})
        if request.method == "DELETE":
            return _json(200, {"data": collection.pop(entry_id), "meta": {}})
        return _error(405, "Method Not Allowed")

    @staticmethod
    def _payload(request: httpx.Request) -> dict[str, Any]:
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            return dict(json.loads(request.content).get("data") or {})
        if content_type.startswith("application/x-www-form-urlencoded"):
            return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        # Multipart uploads: only the form fields matter here
        fields: dict[str, Any] = {}
        for part in request.content.split(b"--"):
            if b'name="' not in part or b"filename=" in part:
                continue
            header, _, value = part.partition(b"\r\n\r\n")
            name = header.split(b'name="', 1)[1].split(b'"', 1)[0].decode()
            fields[name] = value.rstrip(b"\r\n").decode()
        return fields


class FakeDomainService:
    """Domain service backed by a dict, recording retrieve/list calls."""

    def __init__(self, entities: dict[str, dict[str, Any]] | None = None) -> None:
        self.entities = entities if entities is not None else {}
        self.retrieved: list[tuple[str, dict[str, Any] | None]] = []
        self.listed: list[dict[str, Any]] = []

    def retrieve(self, entity_id: str, config: dict[str, Any] | None = None) -> Any:
        self.retrieved.append((entity_id, config))
        if entity_id not in self.entities:
            raise LookupError(f"{entity_id} not found")
        return self.entities[entity_id]

    def list(
        self,
        selector: dict[str, Any] | None = None,
        config: dict[str, Any] | None = None,
    ) -> list[Any]:
        config = config or {}
        self.listed.append(config)
        items = list(self.entities.values())
        skip = config.get("skip", 0)
        take = config.get("take", len(items))
        return items[skip : skip + take]


class FakeProviderService:
    def __init__(self, providers: list[dict[str, Any]]) -> None:
        self.providers = providers

    def list(self) -> list[Any]:
        return list(self.providers)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def admin_identity() -> Identity:
    return Identity(email="admin@example.com", password="Admin-pass1", profile={"firstname": "Ad"})


@pytest.fixture
def default_identity() -> Identity:
    return Identity(email="service@example.com", password="Service-pass1")


@pytest.fixture
def sync_config(admin_identity: Identity, default_identity: Identity) -> SyncConfig:
    return SyncConfig(
        admin=admin_identity,
        default_user=default_identity,
        protocol="http",
        host="strapi.test",
        port=1337,
        health_check_interval=120.0,
    )


@pytest.fixture
def fake_strapi(admin_identity: Identity) -> FakeStrapi:
    return FakeStrapi(admin=admin_identity)


@pytest.fixture
def seeded_strapi(fake_strapi: FakeStrapi, default_identity: Identity) -> FakeStrapi:
    """Remote service with the admin and default user already registered."""
    fake_strapi.admin_registered = True
    fake_strapi.add_user(default_identity)
    return fake_strapi


@pytest.fixture
def product_service() -> FakeDomainService:
    return FakeDomainService(
        {
            "p1": {
                "id": "p1",
                "title": "Shirt",
                "thumbnail": "https://cdn.test/shirt.png",
                "type": {"id": "pt1", "value": "Apparel"},
                "tags": [{"id": "tag1", "value": "summer"}],
                "options": [{"id": "opt1", "title": "Size"}],
                "variants": [
                    {
                        "id": "v1",
                        "title": "S",
                        "prices": [{"id": "ma1", "amount": 1000, "currency_code": "usd"}],
                        "options": [{"id": "ov1", "value": "S"}],
                    }
                ],
                "images": [
                    {"id": "img1", "url": "https://cdn.test/shirt.png"},
                    {"id": "img2", "url": "https://cdn.test/back.png"},
                ],
                "created_at": "2024-01-01T00:00:00",
                "updated_at": "2024-01-02T00:00:00",
            }
        }
    )


@pytest.fixture
def domain_services(product_service: FakeDomainService) -> DomainServices:
    return DomainServices(
        product=product_service,
        product_variant=FakeDomainService(
            {"v1": {"id": "v1", "title": "S", "prices": [], "options": []}}
        ),
        region=FakeDomainService(
            {"reg1": {"id": "reg1", "name": "EU", "currency_code": "eur", "countries": []}}
        ),
        product_type=FakeDomainService({"pt1": {"id": "pt1", "value": "Apparel"}}),
    )


@pytest.fixture
def make_context(sync_config: SyncConfig, clock: FakeClock):  # type: ignore[no-untyped-def]
    """Factory building a SyncContext wired to a fake remote service."""
    contexts: list[SyncContext] = []

    def factory(strapi: FakeStrapi, config: SyncConfig | None = None) -> SyncContext:
        context = SyncContext.create(
            config or sync_config,
            transport=strapi.transport(),
            clock=clock,
            sleep=clock.sleep,
            wall_clock=clock,
        )
        contexts.append(context)
        return context

    yield factory
    for context in contexts:
        context.close()
