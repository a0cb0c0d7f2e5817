"""Tests for the ingestion pipeline and product retrieval."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

import catalogue.service
from catalogue.errors import EntityCreationError, EntityLookupError, ProductCreationError
from catalogue.models import (
    Attribute,
    AttributeValue,
    Brand,
    Collection,
    Color,
    Product,
    ProductAttribute,
    ProductColor,
    ProductSize,
    Vendor,
)
from catalogue.resolver import find_or_create
from catalogue.schemas import ExtractionResult, ProductFragment
from catalogue.service import (
    PLACEHOLDER_VENDOR,
    CatalogueService,
    IngestionPipeline,
    merge_product_fragments,
)

USER_ID = "user-1"
IMAGE_URL = "https://storage.test/product-files/user-1_1.jpg"


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def _names(db, model) -> list:
    return sorted((await db.execute(select(model.name))).scalars())


class TestMergeProductFragments:
    def test_later_fragment_wins(self):
        merged = merge_product_fragments(
            [ProductFragment(category="Clothing"), ProductFragment(category="Footwear", name="Boot")]
        )
        assert merged["category"] == "Footwear"
        assert merged["name"] == "Boot"

    def test_empty_values_do_not_overwrite(self):
        merged = merge_product_fragments(
            [ProductFragment(name="Boot", gender="Unisex"), ProductFragment(name="", gender=None)]
        )
        assert merged == {"name": "Boot", "gender": "Unisex"}

    def test_no_fragments_gives_defaults(self):
        assert merge_product_fragments([]) == {
            "name": "Unnamed Product",
            "product_type": "Unknown",
            "category": "Unknown",
        }

    def test_fragments_without_name_still_get_one(self):
        merged = merge_product_fragments([ProductFragment(category="Bags")])
        assert merged["name"] == "Unnamed Product"
        assert "product_type" not in merged

    def test_tag_list_is_joined(self):
        merged = merge_product_fragments([ProductFragment(tags=["summer", "linen"])])
        assert merged["tags"] == "summer, linen"


class TestIngestionPipeline:
    async def test_single_color_scenario(self, session_factory):
        extraction = ExtractionResult.model_validate(
            {
                "products": [{"name": "Red Shirt", "confidence_score": 0.9}],
                "colors": [{"name": "Red"}],
                "brands": [],
                "collections": [],
                "sizes": [],
                "attributes": [],
            }
        )
        async with session_factory() as db:
            product_id = await IngestionPipeline().ingest(db, extraction, USER_ID, IMAGE_URL)

        async with session_factory() as db:
            product = await db.get(Product, product_id)
            assert product.name == "Red Shirt"
            assert product.user_id == USER_ID
            assert product.image_url == IMAGE_URL
            assert product.brand_id is None
            assert product.collection_id is None
            assert await _names(db, Vendor) == [PLACEHOLDER_VENDOR]
            assert await _names(db, Color) == ["Red"]
            link = (await db.execute(select(ProductColor))).scalar_one()
            assert link.product_id == product_id

    async def test_empty_extraction_uses_defaults(self, session_factory):
        async with session_factory() as db:
            product_id = await IngestionPipeline().ingest(db, ExtractionResult(), USER_ID, "")
            product = await db.get(Product, product_id)

            assert (product.name, product.product_type, product.category) == (
                "Unnamed Product", "Unknown", "Unknown",
            )
            assert await _count(db, Product) == 1
            assert await _count(db, Brand) == 0

    async def test_only_first_brand_and_collection_are_used(self, session_factory):
        extraction = ExtractionResult.model_validate(
            {
                "brands": [{"name": "Acme"}, {"name": "Globex"}],
                "collections": [{"name": "Spring 24"}, {"name": "Fall 24"}],
            }
        )
        async with session_factory() as db:
            product_id = await IngestionPipeline().ingest(db, extraction, USER_ID, "")
            product = await db.get(Product, product_id)

            assert await _names(db, Brand) == ["Acme"]
            assert await _names(db, Collection) == ["Spring 24"]
            assert product.brand_id is not None
            assert product.collection_id is not None

    async def test_existing_entities_are_reused(self, session_factory):
        extraction = ExtractionResult.model_validate(
            {"brands": [{"name": "Acme"}], "colors": [{"name": "Red"}], "sizes": [{"name": "M"}]}
        )
        pipeline = IngestionPipeline()
        async with session_factory() as db:
            first = await pipeline.ingest(db, extraction, USER_ID, "")
            second = await pipeline.ingest(db, extraction, USER_ID, "")

            assert first != second
            assert await _count(db, Product) == 2
            assert await _count(db, Vendor) == 1
            assert await _count(db, Brand) == 1
            assert await _count(db, Color) == 1
            assert await _count(db, ProductColor) == 2
            assert await _count(db, ProductSize) == 2

    async def test_unnamed_brand_is_skipped(self, session_factory):
        extraction = ExtractionResult.model_validate({"brands": [{"confidence_score": 0.2}]})
        async with session_factory() as db:
            product_id = await IngestionPipeline().ingest(db, extraction, USER_ID, "")
            product = await db.get(Product, product_id)
            assert product.brand_id is None
            assert await _count(db, Brand) == 0

    async def test_attributes_are_resolved_and_linked(self, session_factory):
        extraction = ExtractionResult.model_validate(
            {
                "attributes": [
                    {"name": "Material", "value": "Cotton", "confidence_score": 0.8},
                    {"name": "Pattern", "value": "Striped", "confidence_score": 0.6},
                    {"name": "Material", "value": "Linen", "confidence_score": 0.4},
                    {"name": "Fit"},
                ]
            }
        )
        async with session_factory() as db:
            product_id = await IngestionPipeline().ingest(db, extraction, USER_ID, "")

            assert await _names(db, Attribute) == ["Material", "Pattern"]
            attribute = (
                await db.execute(select(Attribute).where(Attribute.name == "Material"))
            ).scalar_one()
            assert attribute.data_type == "text"

            values = (await db.execute(select(AttributeValue.value))).scalars().all()
            assert sorted(values) == ["Cotton", "Linen", "Striped"]

            links = (await db.execute(select(ProductAttribute))).scalars().all()
            assert len(links) == 3
            assert {link.product_id for link in links} == {product_id}
            assert sorted(link.confidence_score for link in links) == [0.4, 0.6, 0.8]
            assert all(link.override_value is None for link in links)

    async def test_failed_link_does_not_stop_the_others(self, session_factory):
        class FlakyPipeline(IngestionPipeline):
            calls = 0

            async def _insert_link(self, db, link):
                self.calls += 1
                if self.calls == 2:
                    raise SQLAlchemyError("link insert failed")
                await super()._insert_link(db, link)

        extraction = ExtractionResult.model_validate(
            {"colors": [{"name": "Red"}, {"name": "Green"}, {"name": "Blue"}]}
        )
        pipeline = FlakyPipeline()
        async with session_factory() as db:
            product_id = await pipeline.ingest(db, extraction, USER_ID, "")

        assert pipeline.calls == 3
        async with session_factory() as db:
            linked = (
                await db.execute(
                    select(Color.name)
                    .join(ProductColor, ProductColor.color_id == Color.id)
                    .where(ProductColor.product_id == product_id)
                )
            ).scalars().all()
            assert sorted(linked) == ["Blue", "Red"]

    async def test_duplicate_color_link_is_skipped(self, session_factory):
        extraction = ExtractionResult.model_validate(
            {"colors": [{"name": "Red"}, {"name": "Red"}, {"name": "Blue"}]}
        )
        async with session_factory() as db:
            await IngestionPipeline().ingest(db, extraction, USER_ID, "")

        async with session_factory() as db:
            assert await _count(db, ProductColor) == 2
            assert await _names(db, Color) == ["Blue", "Red"]

    async def test_color_lookup_failure_propagates(self, session_factory, monkeypatch):
        async def failing_color_lookup(db, model, match, defaults):
            if model is Color:
                raise EntityLookupError("Failed to look up colors", detail="connection lost")
            return await find_or_create(db, model, match, defaults)

        monkeypatch.setattr(catalogue.service, "find_or_create", failing_color_lookup)
        extraction = ExtractionResult.model_validate(
            {"colors": [{"name": "Red"}], "sizes": [{"name": "M"}]}
        )
        async with session_factory() as db:
            with pytest.raises(EntityLookupError):
                await IngestionPipeline().ingest(db, extraction, USER_ID, "")

        async with session_factory() as db:
            # The product was already committed; nothing after the failure ran
            assert await _count(db, Product) == 1
            assert await _count(db, ProductColor) == 0
            assert await _count(db, ProductSize) == 0

    async def test_attribute_value_creation_failure_propagates(
        self, session_factory, monkeypatch
    ):
        async def failing_value_insert(db, model, match, defaults):
            if model is AttributeValue:
                raise EntityCreationError("Failed to create attribute_values")
            return await find_or_create(db, model, match, defaults)

        monkeypatch.setattr(catalogue.service, "find_or_create", failing_value_insert)
        extraction = ExtractionResult.model_validate(
            {"attributes": [{"name": "Material", "value": "Cotton"}]}
        )
        async with session_factory() as db:
            with pytest.raises(EntityCreationError):
                await IngestionPipeline().ingest(db, extraction, USER_ID, "")
            assert await _count(db, ProductAttribute) == 0

    async def test_product_failure_keeps_earlier_rows(self, session_factory):
        extraction = ExtractionResult.model_validate(
            {"brands": [{"name": "Acme"}], "colors": [{"name": "Red"}]}
        )
        async with session_factory() as db:
            # user_id is NOT NULL, so the product insert fails
            with pytest.raises(ProductCreationError):
                await IngestionPipeline().ingest(db, extraction, None, "")

        async with session_factory() as db:
            assert await _count(db, Vendor) == 1
            assert await _count(db, Brand) == 1
            assert await _count(db, Product) == 0
            assert await _count(db, Color) == 0


class TestRetrieval:
    async def test_product_comes_with_relations(self, session_factory):
        extraction = ExtractionResult.model_validate(
            {
                "products": [{"name": "Boot"}, {"category": "Footwear"}],
                "brands": [{"name": "Acme"}],
                "collections": [{"name": "Winter"}],
                "colors": [{"name": "Black"}],
                "sizes": [{"name": "EU 38"}],
                "attributes": [{"name": "Material", "value": "Leather", "confidence_score": 0.9}],
            }
        )
        async with session_factory() as db:
            product_id = await IngestionPipeline().ingest(db, extraction, USER_ID, IMAGE_URL)

        service = CatalogueService()
        async with session_factory() as db:
            product = await service.get_product(db, product_id)

        assert product.category == "Footwear"
        assert product.vendor.name == PLACEHOLDER_VENDOR
        assert product.brand.name == "Acme"
        assert product.collection.name == "Winter"
        assert [c.color.name for c in product.colors] == ["Black"]
        assert [s.size.name for s in product.sizes] == ["EU 38"]
        [attribute] = product.attributes
        assert attribute.attribute.name == "Material"
        assert attribute.attribute_value.value == "Leather"

    async def test_missing_product_is_none(self, session_factory):
        async with session_factory() as db:
            assert await CatalogueService().get_product(db, 12345) is None

    async def test_list_products(self, session_factory):
        pipeline = IngestionPipeline()
        async with session_factory() as db:
            await pipeline.ingest(db, ExtractionResult(), USER_ID, "")
            await pipeline.ingest(
                db, ExtractionResult.model_validate({"products": [{"name": "Bag"}]}), USER_ID, ""
            )

        async with session_factory() as db:
            products = await CatalogueService().list_products(db)

        assert sorted(p.name for p in products) == ["Bag", "Unnamed Product"]
        assert all(p.vendor is not None for p in products)
        assert all(p.colors == [] for p in products)
