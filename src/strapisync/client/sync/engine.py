"""Entity sync engine mirroring domain entities into the remote service.

This module provides:
- EntitySyncEngine: Create/update/delete of mirrored entries per entity kind

Every transition follows the same steps: field relevance filter (updates
only), remote type probe, echo check, canonical fetch from the domain
service, translation, then the authenticated request. Remote failures come
back as ``SyncResult(status=400)``; domain fetch failures propagate as
DomainFetchError.

Per entity kind:

    | Kind          | Remote type         | Domain service  |
    |---------------|---------------------|-----------------|
    | product       | products            | product         |
    | variant       | product-variants    | product_variant |
    | region        | regions             | region          |
    | product type  | product-types       | product_type    |
    | metafield     | product-metafields  | product         |
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from strapisync.client.api import AuthExpiredError, NotFoundError, StrapiError
from strapisync.client.sync.domain import DomainServices, as_mapping
from strapisync.client.sync.ignore import SIDE_MEDUSA, SIDE_STRAPI
from strapisync.client.sync.mapping import MAPPINGS, REMOTE_ID_KEY, translate
from strapisync.client.sync.types import DomainFetchError, TypeNotConfiguredError
from strapisync.core.types import ChangeEvent, EntityKind, Identity, SyncResult

if TYPE_CHECKING:
    import httpx

    from strapisync.client.sync.context import SyncContext
    from strapisync.client.sync.domain import DomainService

logger = logging.getLogger(__name__)

# Status returned when the entity is already mirrored
ALREADY_MIRRORED_STATUS = HTTPStatus.FOUND

IMAGES_TYPE = "images"
DOCUMENTS_TYPE = "product-documents"
MEDIAS_TYPE = "product-medias"

EventLike = ChangeEvent | Mapping[str, Any]


def _as_event(event: EventLike) -> ChangeEvent:
    if isinstance(event, ChangeEvent):
        return event
    return ChangeEvent.from_dict(dict(event))


class EntitySyncEngine:
    """Mirrors commerce entities into the remote content service."""

    def __init__(self, context: SyncContext, services: DomainServices) -> None:
        """Initialize the engine.

        Args:
            context: Shared sync context.
            services: Domain services providing canonical entities.
        """
        self._context = context
        self._client = context.client
        self._auth = context.auth
        self._echo = context.echo
        self._config = context.config
        self._services = services

    @property
    def default_identity(self) -> Identity:
        """Identity used when callers do not pass one."""
        return self._config.default_user

    # === Echo markers ===

    def add_ignore(self, entity_id: str, side: str) -> None:
        """Mark the next notification for an entity from ``side`` as an echo."""
        self._echo.add_ignore(entity_id, side)

    def should_ignore(self, entity_id: str, side: str) -> bool:
        """Check whether a notification for an entity is an echo."""
        return self._echo.should_ignore(entity_id, side)

    # === Authenticated requests ===

    def send(
        self,
        method: str,
        resource_type: str,
        identity: Identity | None = None,
        entry_id: str | None = None,
        body: Any = None,
        files: Any = None,
        data: Any = None,
    ) -> httpx.Response:
        """Send an entry request as ``identity``.

        A rejected token is dropped and the request retried once with a
        fresh login.

        Raises:
            AuthenticationError: If logging in fails.
            TransportError: If the request fails, including the retry.
        """
        identity = identity or self.default_identity
        credential = self._auth.get_token(identity)
        try:
            return self._client.send(
                method, resource_type, credential.token, entry_id, body, files, data
            )
        except AuthExpiredError:
            logger.info(f"Token for {identity.email} rejected, logging in again")
            self._auth.invalidate(identity)
            credential = self._auth.get_token(identity, force=True)
            return self._client.send(
                method, resource_type, credential.token, entry_id, body, files, data
            )

    def process_entry(
        self,
        method: str,
        resource_type: str,
        identity: Identity | None = None,
        entry_id: str | None = None,
        body: Any = None,
        files: Any = None,
        data: Any = None,
    ) -> SyncResult:
        """Send an entry request and wrap the outcome in a SyncResult."""
        try:
            response = self.send(method, resource_type, identity, entry_id, body, files, data)
        except StrapiError as e:
            logger.error(f"Unable to process strapi entry request: {e}")
            return SyncResult.failed()
        return SyncResult.from_body(response.status_code, _json_or_none(response))

    def has_type(self, resource_type: str, identity: Identity | None = None) -> bool:
        """Check whether the remote service has a collection for a type.

        Raises:
            AuthenticationError: If logging in fails.
            TransportError: For failures other than "not found".
        """
        try:
            self.send("GET", resource_type, identity)
        except NotFoundError as e:
            logger.info(f"{resource_type} type not found in strapi: {e}")
            return False
        return True

    def _require_type(self, resource_type: str, identity: Identity) -> None:
        if not self.has_type(resource_type, identity):
            raise TypeNotConfiguredError(resource_type)

    def get_entries(
        self,
        resource_type: str,
        entry_id: str | None = None,
        identity: Identity | None = None,
    ) -> SyncResult:
        """Fetch entries (or one entry) of a remote type.

        Returns:
            SyncResult whose ``data`` is the entry list (or entry). A missing
            type or entry gives status 404.
        """
        try:
            response = self.send("GET", resource_type, identity, entry_id)
        except StrapiError as e:
            logger.error(f"Unable to retrieve {resource_type}, {entry_id or 'any'}: {e}")
            return SyncResult(status=HTTPStatus.NOT_FOUND)
        body = _json_or_none(response)
        payload = body.get("data", body) if isinstance(body, dict) else body
        result = SyncResult.from_body(response.status_code, body)
        result.data = payload
        return result

    def entry_exists(
        self,
        resource_type: str,
        entity_id: str,
        identity: Identity | None = None,
    ) -> SyncResult | None:
        """Look up the mirrored entry for a domain id.

        Returns:
            The entry, or None when it is not mirrored.

        Raises:
            TransportError: For failures other than "not found".
        """
        try:
            response = self.send("GET", resource_type, identity, entity_id)
        except NotFoundError:
            return None
        body = _json_or_none(response)
        if not body or (isinstance(body, dict) and "data" in body and not body["data"]):
            return None
        return SyncResult.from_body(response.status_code, body)

    # === Domain fetch and translation ===

    def _service_for(self, kind: EntityKind) -> DomainService:
        services = {
            EntityKind.PRODUCT: self._services.product,
            EntityKind.PRODUCT_VARIANT: self._services.product_variant,
            EntityKind.REGION: self._services.region,
            EntityKind.PRODUCT_TYPE: self._services.product_type,
            EntityKind.PRODUCT_METAFIELD: self._services.product,
        }
        service = services[kind]
        if service is None:
            raise DomainFetchError("-", kind.resource_type, "no domain service configured")
        return service

    def _fetch(self, kind: EntityKind, entity_id: str, with_selection: bool = True) -> dict[str, Any]:
        service = self._service_for(kind)
        config = MAPPINGS[kind].retrieve_config() if with_selection else None
        try:
            entity = service.retrieve(entity_id, config) if config else service.retrieve(entity_id)
        except Exception as e:
            raise DomainFetchError(entity_id, kind.resource_type, str(e)) from e
        if entity is None:
            raise DomainFetchError(entity_id, kind.resource_type, "not found")
        return as_mapping(entity)

    def _translate(self, kind: EntityKind, entity: Mapping[str, Any]) -> dict[str, Any]:
        return translate(
            entity,
            MAPPINGS[kind],
            self._config.field_overrides(kind),
        )

    def _after_write(self, entity_id: str, result: SyncResult) -> SyncResult:
        if result.ok and self._config.mark_echo:
            self._echo.add_ignore(entity_id, SIDE_MEDUSA)
        return result

    def _guard(self, kind: EntityKind, entity_id: str, identity: Identity) -> bool:
        """Run the type probe and echo check. True when the change may proceed."""
        try:
            self._require_type(kind.resource_type, identity)
        except TypeNotConfiguredError as e:
            logger.info(str(e))
            return False
        except StrapiError as e:
            logger.error(
                f"Unable to check type GET {kind.resource_type} for id: {entity_id} in strapi: {e}"
            )
            return False
        if self._echo.should_ignore(entity_id, SIDE_STRAPI):
            logger.info(
                f"Strapi has just updated {kind.resource_type} {entity_id} "
                "which triggered this function. IGNORING... "
            )
            return False
        return True

    # === Generic transitions ===

    def _create(
        self,
        kind: EntityKind,
        entity_id: str,
        identity: Identity | None,
        load: Callable[[], Mapping[str, Any]] | None = None,
    ) -> SyncResult:
        identity = identity or self.default_identity
        if not self._guard(kind, entity_id, identity):
            return SyncResult.failed()

        entity = load() if load else self._fetch(kind, entity_id)

        try:
            existing = self.entry_exists(kind.resource_type, entity_id, identity)
        except StrapiError as e:
            logger.error(f"Unable to check {kind.resource_type} {entity_id} in strapi: {e}")
            return SyncResult.failed()
        if existing is not None:
            logger.info(f"{kind.resource_type} {entity_id} already exists in strapi")
            existing.status = ALREADY_MIRRORED_STATUS
            existing.medusa_id = existing.medusa_id or entity_id
            return existing

        body = self._translate(kind, entity)
        result = self.process_entry("POST", kind.resource_type, identity, body={"data": body})
        return self._after_write(entity_id, result)

    def _update(
        self,
        kind: EntityKind,
        event: EventLike,
        identity: Identity | None,
        load: Callable[[], Mapping[str, Any]] | None = None,
    ) -> SyncResult:
        event = _as_event(event)
        identity = identity or self.default_identity
        if not event.touches(MAPPINGS[kind].update_fields):
            logger.debug(f"No relevant field changed for {kind.resource_type} {event.id}")
            return SyncResult.failed()
        if not self._guard(kind, event.id, identity):
            return SyncResult.failed()

        entity = load() if load else self._fetch(kind, event.id)
        body = self._translate(kind, entity)
        result = self.process_entry(
            "PUT", kind.resource_type, identity, entry_id=event.id, body={"data": body}
        )
        return self._after_write(event.id, result)

    def _delete(
        self,
        kind: EntityKind,
        event: EventLike,
        identity: Identity | None,
    ) -> SyncResult:
        event = _as_event(event)
        identity = identity or self.default_identity
        if not self._guard(kind, event.id, identity):
            return SyncResult.failed()

        result = self.process_entry("DELETE", kind.resource_type, identity, entry_id=event.id)
        return self._after_write(event.id, result)

    # === Products ===

    def create_product(self, product_id: str, identity: Identity | None = None) -> SyncResult:
        """Mirror a product, renaming its relations for the remote side."""
        return self._create(EntityKind.PRODUCT, product_id, identity)

    def update_product(self, event: EventLike, identity: Identity | None = None) -> SyncResult:
        """Update a mirrored product when a relevant field changed."""
        return self._update(EntityKind.PRODUCT, event, identity)

    def delete_product(self, event: EventLike, identity: Identity | None = None) -> SyncResult:
        """Delete a mirrored product."""
        return self._delete(EntityKind.PRODUCT, event, identity)

    # === Product variants ===

    def create_product_variant(
        self, variant_id: str, identity: Identity | None = None
    ) -> SyncResult:
        """Mirror a product variant."""
        return self._create(EntityKind.PRODUCT_VARIANT, variant_id, identity)

    def update_product_variant(
        self, event: EventLike, identity: Identity | None = None
    ) -> SyncResult:
        """Update a mirrored product variant.

        Granular variant events only act on a few fields; updates coming
        from the whole product carry no field list and always go through.
        """
        return self._update(EntityKind.PRODUCT_VARIANT, event, identity)

    def delete_product_variant(
        self, event: EventLike, identity: Identity | None = None
    ) -> SyncResult:
        """Delete a mirrored product variant."""
        return self._delete(EntityKind.PRODUCT_VARIANT, event, identity)

    # === Regions ===

    def create_region(self, region_id: str, identity: Identity | None = None) -> SyncResult:
        """Mirror a region."""
        return self._create(EntityKind.REGION, region_id, identity)

    def update_region(self, event: EventLike, identity: Identity | None = None) -> SyncResult:
        """Update a mirrored region."""
        return self._update(EntityKind.REGION, event, identity)

    def delete_region(self, event: EventLike, identity: Identity | None = None) -> SyncResult:
        """Delete a mirrored region (guarded by the ``regions`` type)."""
        return self._delete(EntityKind.REGION, event, identity)

    # === Product types ===

    def create_product_type(
        self, product_type_id: str, identity: Identity | None = None
    ) -> SyncResult:
        """Mirror a product type."""
        return self._create(EntityKind.PRODUCT_TYPE, product_type_id, identity)

    def update_product_type(
        self, event: EventLike, identity: Identity | None = None
    ) -> SyncResult:
        """Update a mirrored product type."""
        return self._update(EntityKind.PRODUCT_TYPE, event, identity)

    def delete_product_type(
        self, event: EventLike, identity: Identity | None = None
    ) -> SyncResult:
        """Delete a mirrored product type."""
        return self._delete(EntityKind.PRODUCT_TYPE, event, identity)

    # === Product metafields ===
    # A metafield entry shares its id with its product.

    def _metafield_entity(self, event: ChangeEvent) -> dict[str, Any]:
        product = self._fetch(EntityKind.PRODUCT_METAFIELD, event.id, with_selection=False)
        return {
            **event.data,
            "id": event.id,
            "created_at": product.get("created_at"),
            "updated_at": product.get("updated_at"),
        }

    def create_product_metafield(
        self, event: EventLike, identity: Identity | None = None
    ) -> SyncResult:
        """Mirror the metafields of a product.

        Args:
            event: ``{"id": product_id, "data": {...}}``.
            identity: Identity to act as.
        """
        event = _as_event(event)
        return self._create(
            EntityKind.PRODUCT_METAFIELD,
            event.id,
            identity,
            load=lambda: self._metafield_entity(event),
        )

    def update_product_metafield(
        self, event: EventLike, identity: Identity | None = None
    ) -> SyncResult:
        """Update the mirrored metafields of a product."""
        event = _as_event(event)
        return self._update(
            EntityKind.PRODUCT_METAFIELD,
            event,
            identity,
            load=lambda: self._metafield_entity(event),
        )

    def delete_product_metafield(
        self, event: EventLike, identity: Identity | None = None
    ) -> SyncResult:
        """Delete the mirrored metafields of a product."""
        return self._delete(EntityKind.PRODUCT_METAFIELD, event, identity)

    # === Assets ===

    def create_image_assets(
        self, product: Mapping[str, Any], identity: Identity | None = None
    ) -> SyncResult:
        """Mirror the images of a product, except its thumbnail.

        Returns:
            SyncResult with the list of per-image results as ``data``.
        """
        thumbnail = product.get("thumbnail")
        results = [
            self.process_entry(
                "POST",
                IMAGES_TYPE,
                identity,
                body={"data": translate(image)},
            )
            for image in product.get("images") or []
            if image.get("url") != thumbnail
        ]
        return SyncResult(status=HTTPStatus.OK, data=results)

    def _upload_file(
        self,
        resource_type: str,
        product_id: str,
        filename: str,
        content: bytes | None,
        url: str | None,
        identity: Identity | None,
        method: str = "POST",
    ) -> SyncResult:
        if content is None and not url:
            logger.error("Either file content or file url needs to be specified")
            return SyncResult.failed()

        medusa_id = f"{product_id}-{filename.replace('.', '-', 1)}"
        form: dict[str, str] = {REMOTE_ID_KEY: medusa_id, "filename": filename}
        if url:
            form["fileUrl"] = url
        files = {"files": (filename, content)} if content is not None else None
        return self.process_entry(
            method,
            resource_type,
            identity,
            entry_id=None if method.upper() == "POST" else medusa_id,
            files=files,
            data=form,
        )

    def create_document(
        self,
        product_id: str,
        filename: str,
        content: bytes | None = None,
        url: str | None = None,
        identity: Identity | None = None,
    ) -> SyncResult:
        """Upload a product document (file content or remote url)."""
        return self._upload_file(DOCUMENTS_TYPE, product_id, filename, content, url, identity)

    def create_media(
        self,
        product_id: str,
        filename: str,
        content: bytes | None = None,
        url: str | None = None,
        identity: Identity | None = None,
    ) -> SyncResult:
        """Upload a product media file (file content or remote url)."""
        return self._upload_file(MEDIAS_TYPE, product_id, filename, content, url, identity)


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None
