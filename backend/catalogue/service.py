"""
Product ingestion and retrieval.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from catalogue.errors import ProductCreationError
from catalogue.models import (
    Attribute,
    AttributeValue,
    Base,
    Brand,
    Collection,
    Color,
    Product,
    ProductAttribute,
    ProductColor,
    ProductSize,
    Size,
    Vendor,
)
from catalogue.resolver import find_or_create
from catalogue.schemas import ExtractionResult, NamedEntry, ProductFragment

logger = logging.getLogger(__name__)

# Images carry no vendor information, so every product hangs off this one.
PLACEHOLDER_VENDOR = "Unknown Vendor"

DEFAULT_ATTRIBUTE_TYPE = "text"

PRODUCT_FIELDS = (
    "name",
    "product_type",
    "category",
    "subcategory",
    "gender",
    "target_age_group",
    "description",
    "tags",
)

PRODUCT_DEFAULTS = {
    "name": "Unnamed Product",
    "product_type": "Unknown",
    "category": "Unknown",
}


def merge_product_fragments(fragments: List[ProductFragment]) -> Dict[str, Any]:
    """
    Fold fragments left to right; a later non-empty field wins.

    An empty list yields PRODUCT_DEFAULTS.
    """
    if not fragments:
        return dict(PRODUCT_DEFAULTS)

    merged: Dict[str, Any] = {}
    for fragment in fragments:
        for field in PRODUCT_FIELDS:
            value = getattr(fragment, field)
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value if v)
            if value:
                merged[field] = value

    # Fragments that never named the product still need a name to insert
    merged.setdefault("name", PRODUCT_DEFAULTS["name"])
    return merged


def _first_name(entries: List[NamedEntry]) -> Optional[str]:
    """Only the first suggestion is used; it may lack a name."""
    if not entries:
        return None
    name = (entries[0].name or "").strip()
    return name or None


class IngestionPipeline:
    """
    Turns one extraction into committed rows.

    Order: vendor -> brand -> collection -> product -> colors -> sizes ->
    attributes. Every step commits on its own; nothing is rolled back when
    a later step fails.
    """

    def __init__(self, vendor_name: str = PLACEHOLDER_VENDOR) -> None:
        self.vendor_name = vendor_name

    async def ingest(
        self,
        db: AsyncSession,
        extraction: ExtractionResult,
        owner_user_id: str,
        image_url: str,
    ) -> int:
        """
        Store the extracted product.

        Args:
            db: Database session
            extraction: Parsed model output
            owner_user_id: Auth provider id of the uploader
            image_url: Public URL of the stored image ("" when none)

        Returns:
            Id of the created product

        Raises:
            EntityLookupError, EntityCreationError: If resolving a vendor,
                brand, collection, color, size or attribute fails
            ProductCreationError: If the product insert fails
        """
        # Step 1: Vendor
        vendor = await find_or_create(
            db,
            Vendor,
            {"name": self.vendor_name},
            {"contact_person": "", "email": "", "phone_number": "", "address": ""},
        )

        # Step 2: Brand (first suggestion only)
        brand_id: Optional[int] = None
        brand_name = _first_name(extraction.brands)
        if brand_name:
            brand = await find_or_create(
                db,
                Brand,
                {"name": brand_name},
                {"description": "", "logo_url": "", "website_url": "", "country_of_origin": ""},
            )
            brand_id = brand.id
        elif extraction.brands:
            logger.warning("[Pipeline] First brand entry has no name, skipping brand")

        # Step 3: Collection (first suggestion only)
        collection_id: Optional[int] = None
        collection_name = _first_name(extraction.collections)
        if collection_name:
            collection = await find_or_create(
                db,
                Collection,
                {"name": collection_name},
                {"description": "", "season": "", "launch_date": None, "image_url": ""},
            )
            collection_id = collection.id
        elif extraction.collections:
            logger.warning("[Pipeline] First collection entry has no name, skipping collection")

        # Step 4: Product
        fields = merge_product_fragments(extraction.products)
        product_id = await self._create_product(
            db,
            fields,
            vendor_id=vendor.id,
            brand_id=brand_id,
            collection_id=collection_id,
            user_id=owner_user_id,
            image_url=image_url,
        )

        # Steps 5-7: links; a failed join insert is logged and skipped
        linked_colors = await self._link_named(
            db, product_id, extraction.colors, Color, ProductColor, "color_id"
        )
        linked_sizes = await self._link_named(
            db, product_id, extraction.sizes, Size, ProductSize, "size_id"
        )
        linked_attributes = await self._link_attributes(db, product_id, extraction)

        logger.info(
            "[Pipeline] Product %s stored: %d/%d colors, %d/%d sizes, %d/%d attributes",
            product_id,
            linked_colors, len(extraction.colors),
            linked_sizes, len(extraction.sizes),
            linked_attributes, len(extraction.attributes),
        )
        return product_id

    async def _create_product(
        self, db: AsyncSession, fields: Dict[str, Any], **refs: Any
    ) -> int:
        product = Product(**fields, **refs)
        try:
            db.add(product)
            await db.flush()
            product_id = product.id
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("[Pipeline] Product insert failed: %s", e)
            raise ProductCreationError("Failed to create product", detail=str(e)) from e

        if product_id is None:
            raise ProductCreationError("Failed to create product")

        logger.info("[Pipeline] Created product %s (%s)", product_id, fields.get("name"))
        return product_id

    async def _insert_link(self, db: AsyncSession, link: Base) -> None:
        """Insert one join row in its own commit."""
        try:
            db.add(link)
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            raise

    async def _link_named(
        self,
        db: AsyncSession,
        product_id: int,
        entries: List[NamedEntry],
        model: type,
        link_model: type,
        link_field: str,
    ) -> int:
        """Resolve each entry by name and link it to the product. Returns links made."""
        table = model.__tablename__
        linked = 0
        for entry in entries:
            name = (entry.name or "").strip()
            if not name:
                logger.warning("[Pipeline] Skipping %s entry without a name", table)
                continue
            # Resolver failures propagate; only the join insert is skippable
            resolved = await find_or_create(db, model, {"name": name}, {})
            try:
                await self._insert_link(
                    db, link_model(product_id=product_id, **{link_field: resolved.id})
                )
                linked += 1
            except SQLAlchemyError as e:
                logger.warning("[Pipeline] Could not link %s '%s' to product %s: %s",
                               table, name, product_id, e)
        return linked

    async def _link_attributes(
        self, db: AsyncSession, product_id: int, extraction: ExtractionResult
    ) -> int:
        linked = 0
        for entry in extraction.attributes:
            name = (entry.name or "").strip()
            value = (entry.value or "").strip()
            if not name or not value:
                logger.warning("[Pipeline] Skipping attribute entry %r without name or value",
                               entry.model_dump())
                continue
            attribute = await find_or_create(
                db,
                Attribute,
                {"name": name},
                {"data_type": DEFAULT_ATTRIBUTE_TYPE, "category": None},
            )
            # Keyed on (attribute, value) rather than the attribute alone, so
            # "Material: Cotton" and "Material: Linen" are distinct values
            attribute_value = await find_or_create(
                db,
                AttributeValue,
                {"attribute_id": attribute.id, "value": value},
                {},
            )
            try:
                await self._insert_link(
                    db,
                    ProductAttribute(
                        product_id=product_id,
                        attribute_id=attribute.id,
                        attribute_value_id=attribute_value.id,
                        confidence_score=entry.confidence_score,
                        override_value=None,
                    ),
                )
                linked += 1
            except SQLAlchemyError as e:
                logger.warning("[Pipeline] Could not link attribute '%s' to product %s: %s",
                               name, product_id, e)
        return linked


def _with_relations(stmt):
    return stmt.options(
        selectinload(Product.vendor),
        selectinload(Product.brand),
        selectinload(Product.collection),
        selectinload(Product.colors).selectinload(ProductColor.color),
        selectinload(Product.sizes).selectinload(ProductSize.size),
        selectinload(Product.attributes).selectinload(ProductAttribute.attribute),
        selectinload(Product.attributes).selectinload(ProductAttribute.attribute_value),
    ).execution_options(populate_existing=True)


class CatalogueService:
    """Read side: products with all their relations loaded."""

    async def get_product(self, db: AsyncSession, product_id: int) -> Optional[Product]:
        stmt = _with_relations(select(Product).where(Product.id == product_id))
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_products(self, db: AsyncSession) -> List[Product]:
        result = await db.execute(_with_relations(select(Product)))
        return list(result.scalars().all())
