"""Tests for the entity sync engine against a fake remote service."""

from __future__ import annotations

import dataclasses
import logging
from http import HTTPStatus

import pytest

from strapisync.client.sync.domain import DomainServices
from strapisync.client.sync.engine import EntitySyncEngine
from strapisync.client.sync.ignore import SIDE_MEDUSA, SIDE_STRAPI
from strapisync.client.sync.types import DomainFetchError
from strapisync.core.config import SyncConfig
from strapisync.core.types import ChangeEvent
from tests.conftest import FakeClock, FakeDomainService, FakeStrapi


@pytest.fixture
def engine(make_context, seeded_strapi: FakeStrapi, domain_services: DomainServices):  # type: ignore[no-untyped-def]
    return EntitySyncEngine(make_context(seeded_strapi), domain_services)


class TestProductLifecycle:
    """End-to-end create/update/delete of a product."""

    def test_create_update_delete(
        self,
        engine: EntitySyncEngine,
        seeded_strapi: FakeStrapi,
        product_service: FakeDomainService,
    ) -> None:
        """Should mirror every transition of product p1."""
        created = engine.create_product("p1")

        assert created.status == HTTPStatus.OK
        assert created.medusa_id == "p1"
        entry = seeded_strapi.entries["products"]["p1"]
        assert entry["title"] == "Shirt"
        assert entry["product-type"] == {"medusa_id": "pt1", "value": "Apparel"}
        assert entry["product-variant"][0]["money-amount"][0]["medusa_id"] == "ma1"

        product_service.entities["p1"]["title"] = "Shirt v2"
        updated = engine.update_product({"id": "p1", "fields": ["title"]})

        assert updated.ok
        assert seeded_strapi.entries["products"]["p1"]["title"] == "Shirt v2"

        deleted = engine.delete_product({"id": "p1"})

        assert deleted.ok
        assert "p1" not in seeded_strapi.entries["products"]

    def test_fetch_uses_selection(
        self, engine: EntitySyncEngine, product_service: FakeDomainService
    ) -> None:
        """Should load the product with its relations."""
        engine.create_product("p1")

        entity_id, config = product_service.retrieved[0]
        assert entity_id == "p1"
        assert config is not None
        assert "variants.prices" in config["relations"]

    def test_duplicate_create(self, engine: EntitySyncEngine, seeded_strapi: FakeStrapi) -> None:
        """Should report an already mirrored entity without writing it again."""
        engine.create_product("p1")

        again = engine.create_product("p1")

        assert again.status == HTTPStatus.FOUND
        assert again.medusa_id == "p1"
        assert len(seeded_strapi.entries["products"]) == 1
        assert seeded_strapi.count("POST", "/api/products") == 1

    @pytest.mark.parametrize(
        "update",
        [
            "update_product",
            "update_product_variant",
            "update_region",
            "update_product_type",
            "update_product_metafield",
        ],
    )
    def test_disjoint_update_makes_no_calls(
        self, engine: EntitySyncEngine, seeded_strapi: FakeStrapi, update: str
    ) -> None:
        """Should skip updates that touch no synchronised field."""
        calls_before = len(seeded_strapi.calls)

        result = getattr(engine, update)(ChangeEvent(id="p1", fields=["handle", "metadata"]))

        assert result.status == HTTPStatus.BAD_REQUEST
        assert len(seeded_strapi.calls) == calls_before

    def test_update_missing_entry(self, engine: EntitySyncEngine) -> None:
        """Should return 400 when the remote entry does not exist."""
        result = engine.update_product({"id": "p1"})

        assert result.status == HTTPStatus.BAD_REQUEST

    def test_domain_fetch_failure_propagates(self, engine: EntitySyncEngine) -> None:
        """Should raise DomainFetchError when the entity cannot be loaded."""
        with pytest.raises(DomainFetchError) as exc_info:
            engine.create_product("missing")
        assert exc_info.value.entity_id == "missing"
        assert exc_info.value.resource_type == "products"

    def test_custom_field_renames_reach_remote(  # type: ignore[no-untyped-def]
        self,
        make_context,
        seeded_strapi: FakeStrapi,
        domain_services: DomainServices,
        sync_config: SyncConfig,
    ) -> None:
        """Should write configured field renames to the remote entry."""
        config = dataclasses.replace(sync_config, custom_fields={"products": {"title": "name"}})
        engine = EntitySyncEngine(make_context(seeded_strapi, config), domain_services)

        engine.create_product("p1")

        entry = seeded_strapi.entries["products"]["p1"]
        assert entry["name"] == "Shirt"
        assert "title" not in entry


class TestEchoSuppression:
    """Tests for echo markers around engine operations."""

    def test_marker_suppresses_until_ttl(
        self, engine: EntitySyncEngine, seeded_strapi: FakeStrapi, clock: FakeClock
    ) -> None:
        """Should ignore the change while the marker lives."""
        engine.add_ignore("p1", SIDE_STRAPI)

        suppressed = engine.create_product("p1")

        assert suppressed.status == HTTPStatus.BAD_REQUEST
        assert seeded_strapi.count("POST", "/api/products") == 0

        clock.advance(3)
        created = engine.create_product("p1")

        assert created.ok
        assert seeded_strapi.count("POST", "/api/products") == 1

    def test_update_marker_suppresses_until_ttl(
        self,
        engine: EntitySyncEngine,
        seeded_strapi: FakeStrapi,
        product_service: FakeDomainService,
        clock: FakeClock,
    ) -> None:
        """Should ignore an update notification that echoes a remote write."""
        engine.create_product("p1")
        product_service.entities["p1"]["title"] = "Shirt v2"
        engine.add_ignore("p1", SIDE_STRAPI)

        suppressed = engine.update_product({"id": "p1", "fields": ["title"]})

        assert suppressed.status == HTTPStatus.BAD_REQUEST
        assert seeded_strapi.count("PUT", "/api/products") == 0
        assert seeded_strapi.entries["products"]["p1"]["title"] == "Shirt"

        clock.advance(3)
        updated = engine.update_product({"id": "p1", "fields": ["title"]})

        assert updated.ok
        assert seeded_strapi.entries["products"]["p1"]["title"] == "Shirt v2"

    def test_successful_write_marks_domain_side(  # type: ignore[no-untyped-def]
        self,
        make_context,
        seeded_strapi: FakeStrapi,
        domain_services: DomainServices,
        sync_config: SyncConfig,
    ) -> None:
        """Should mark the domain side after a write when enabled."""
        config = dataclasses.replace(sync_config, mark_echo=True)
        engine = EntitySyncEngine(make_context(seeded_strapi, config), domain_services)

        engine.create_product("p1")

        assert engine.should_ignore("p1", SIDE_MEDUSA)

    def test_no_domain_marker_by_default(self, engine: EntitySyncEngine) -> None:
        """Should not mark the domain side unless enabled."""
        engine.create_product("p1")

        assert not engine.should_ignore("p1", SIDE_MEDUSA)


class TestAuthRetry:
    """Tests for the single re-login on rejected tokens."""

    def test_expired_token_is_renewed_once(
        self, engine: EntitySyncEngine, seeded_strapi: FakeStrapi
    ) -> None:
        """Should log in again and retry the request."""
        engine.create_product("p1")
        seeded_strapi.expire_tokens()

        result = engine.delete_product({"id": "p1"})

        assert result.ok
        assert seeded_strapi.logins() == 2

    def test_login_failure_returns_400(
        self, engine: EntitySyncEngine, seeded_strapi: FakeStrapi
    ) -> None:
        """Should give up when the fresh login is rejected too."""
        seeded_strapi.users.clear()

        result = engine.create_product("p1")

        assert result.status == HTTPStatus.BAD_REQUEST
        assert "products" not in seeded_strapi.entries

    def test_login_failure_is_logged_as_error(
        self,
        engine: EntitySyncEngine,
        seeded_strapi: FakeStrapi,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Should report a rejected login as an error, not as a missing type."""
        seeded_strapi.users.clear()

        with caplog.at_level(logging.INFO, logger="strapisync"):
            result = engine.create_product("p1")

        assert result.status == HTTPStatus.BAD_REQUEST
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert any("GET products" in r.getMessage() and "p1" in r.getMessage() for r in errors)
        assert "type not found" not in caplog.text


class TestTypeProbe:
    """Tests for the remote type guard."""

    def test_missing_type_skips(self, engine: EntitySyncEngine, seeded_strapi: FakeStrapi) -> None:
        """Should skip entities whose type is not configured remotely."""
        seeded_strapi.types.discard("regions")

        result = engine.create_region("reg1")

        assert result.status == HTTPStatus.BAD_REQUEST
        assert seeded_strapi.count("POST", "/api/regions") == 0

    def test_region_delete_probes_regions(
        self, engine: EntitySyncEngine, seeded_strapi: FakeStrapi
    ) -> None:
        """Should guard region deletes with the regions type."""
        engine.create_region("reg1")
        seeded_strapi.calls.clear()

        result = engine.delete_region({"id": "reg1"})

        assert result.ok
        assert ("GET", "/api/regions") in seeded_strapi.calls
        assert ("GET", "/api/product-variants") not in seeded_strapi.calls


class TestOtherKinds:
    """Tests for variants, product types and metafields."""

    def test_variant_coarse_update(
        self, engine: EntitySyncEngine, seeded_strapi: FakeStrapi
    ) -> None:
        """Should update variants on events without a field list."""
        engine.create_product_variant("v1")

        result = engine.update_product_variant({"id": "v1"})

        assert result.ok
        assert seeded_strapi.count("PUT", "/api/product-variants/v1") == 1

    def test_product_type(self, engine: EntitySyncEngine, seeded_strapi: FakeStrapi) -> None:
        """Should mirror product types."""
        assert engine.create_product_type("pt1").ok
        assert seeded_strapi.entries["product-types"]["pt1"]["value"] == "Apparel"
        assert engine.delete_product_type({"id": "pt1"}).ok

    def test_metafield(
        self,
        engine: EntitySyncEngine,
        seeded_strapi: FakeStrapi,
        product_service: FakeDomainService,
    ) -> None:
        """Should mirror metafields under the product id with its timestamps."""
        result = engine.create_product_metafield({"id": "p1", "data": {"color": "red"}})

        assert result.ok
        entry = seeded_strapi.entries["product-metafields"]["p1"]
        assert entry["data"] == {"color": "red"}
        assert entry["created_at"] == "2024-01-01T00:00:00"
        assert product_service.retrieved == [("p1", None)]
        assert seeded_strapi.count("GET", "/api/product-metafields") == 2


class TestEntriesAndAssets:
    """Tests for entry lookup and asset uploads."""

    def test_get_entries(self, engine: EntitySyncEngine) -> None:
        """Should return the remote entries."""
        engine.create_product("p1")

        result = engine.get_entries("products")

        assert result.ok
        assert [e["medusa_id"] for e in result.data] == ["p1"]

    def test_get_entries_missing_type(self, engine: EntitySyncEngine) -> None:
        """Should return 404 for an unknown type."""
        assert engine.get_entries("unknown").status == HTTPStatus.NOT_FOUND

    def test_entry_exists(self, engine: EntitySyncEngine) -> None:
        """Should find mirrored entries only."""
        assert engine.entry_exists("products", "p1") is None
        engine.create_product("p1")
        found = engine.entry_exists("products", "p1")
        assert found is not None
        assert found.medusa_id == "p1"

    def test_image_assets_skip_thumbnail(
        self,
        engine: EntitySyncEngine,
        seeded_strapi: FakeStrapi,
        product_service: FakeDomainService,
    ) -> None:
        """Should post every image except the thumbnail."""
        result = engine.create_image_assets(product_service.entities["p1"])

        assert result.ok
        assert list(seeded_strapi.entries["images"]) == ["img2"]

    def test_create_document(self, engine: EntitySyncEngine, seeded_strapi: FakeStrapi) -> None:
        """Should upload the file with a derived medusa_id."""
        result = engine.create_document("p1", "manual.pdf", content=b"%PDF-1.4")

        assert result.ok
        entry = seeded_strapi.entries["product-documents"]["p1-manual-pdf"]
        assert entry["filename"] == "manual.pdf"

    def test_create_media_from_url(
        self, engine: EntitySyncEngine, seeded_strapi: FakeStrapi
    ) -> None:
        """Should send the remote url when no content is given."""
        result = engine.create_media("p1", "front.view.png", url="https://cdn.test/front.png")

        assert result.ok
        entry = seeded_strapi.entries["product-medias"]["p1-front-view.png"]
        assert entry["fileUrl"] == "https://cdn.test/front.png"

    def test_upload_requires_content_or_url(self, engine: EntitySyncEngine) -> None:
        """Should reject uploads without content or url."""
        assert engine.create_media("p1", "a.png").status == HTTPStatus.BAD_REQUEST
