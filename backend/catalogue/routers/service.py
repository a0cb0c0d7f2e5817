"""
Catalogue routes: analyze an image, store a product, read products back.

All routes require a bearer token.
"""
import json
import logging
import mimetypes
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from catalogue.auth_client import AuthenticatedUser
from catalogue.database import get_db
from catalogue.dependencies import (
    get_current_user,
    get_extraction_client,
    get_storage_client,
)
from catalogue.errors import CLIENT_ERRORS, CatalogueError, NotFoundError, ValidationError
from catalogue.extraction import GeminiExtractionClient, extraction_from_payload
from catalogue.schemas import ErrorResponse, ProductView, StoreResponse
from catalogue.service import CatalogueService, IngestionPipeline
from catalogue.storage_client import SupabaseStorageClient, build_object_key

logger = logging.getLogger(__name__)

router = APIRouter()

pipeline = IngestionPipeline()
catalogue_service = CatalogueService()

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    401: {"model": ErrorResponse, "description": "Missing or invalid token"},
    500: {"model": ErrorResponse, "description": "Server error"},
}


def _mime_type(upload: UploadFile) -> str:
    if upload.content_type and upload.content_type != "application/octet-stream":
        return upload.content_type
    guessed, _ = mimetypes.guess_type(upload.filename or "")
    return guessed or "image/jpeg"


@router.post("/analyze", responses=_ERRORS)
async def analyze_image(
    image: Optional[UploadFile] = File(None),
    user: AuthenticatedUser = Depends(get_current_user),
    extraction_client: GeminiExtractionClient = Depends(get_extraction_client),
) -> Any:
    """
    Extract product information from an image.

    Returns the JSON the model wrote, as is, without storing anything.
    """
    try:
        if image is None:
            raise ValidationError("No image file provided")

        content = await image.read()
        if not content:
            raise ValidationError("No image file provided")

        logger.info("[Analyze] %s sent %s (%d bytes)", user.id, image.filename, len(content))
        return await extraction_client.extract(content, _mime_type(image))

    except CLIENT_ERRORS:
        raise
    except Exception as e:
        logger.exception("[Analyze] Failed")
        raise CatalogueError("Failed to analyze image", detail=_detail(e)) from e


@router.post(
    "/store",
    response_model=StoreResponse,
    responses={code: _ERRORS[code] for code in (401, 500)},
)
async def store_product(
    data: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: AuthenticatedUser = Depends(get_current_user),
    storage_client: SupabaseStorageClient = Depends(get_storage_client),
    db: AsyncSession = Depends(get_db),
) -> StoreResponse:
    """
    Store an extraction (as returned by /analyze) and its image.

    Flow:
    1. Parse the extraction JSON sent in the ``data`` form field
    2. Upload the image, if any, and get its public URL
    3. Run the ingestion pipeline
    """
    try:
        # Unreadable or missing data falls through to the 500 below
        if data is None:
            raise CatalogueError("Missing product data")
        extraction = extraction_from_payload(json.loads(data))

        image_url = ""
        if image is not None:
            content = await image.read()
            if content:
                content_type = _mime_type(image)
                key = build_object_key(user.id, image.filename, content_type)
                await storage_client.upload(
                    key, content, content_type, access_token=user.access_token
                )
                image_url = storage_client.public_url(key)

        product_id = await pipeline.ingest(db, extraction, user.id, image_url)

    except CLIENT_ERRORS:
        raise
    except Exception as e:
        logger.exception("[Store] Failed")
        raise CatalogueError("Failed to store product data", detail=_detail(e)) from e

    return StoreResponse(
        message="Product data stored successfully",
        productId=product_id,
        imageUrl=image_url,
    )


@router.get(
    "/product/{product_id}",
    response_model=ProductView,
    responses={**_ERRORS, 404: {"model": ErrorResponse, "description": "Not found"}},
)
async def get_product(
    product_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ProductView:
    """Fetch one product with brand, vendor, collection, colors, sizes and attributes."""
    try:
        try:
            pk = int(product_id)
        except ValueError:
            raise ValidationError("Invalid product ID")

        product = await catalogue_service.get_product(db, pk)
        if product is None:
            raise NotFoundError("Product not found")
        return ProductView.model_validate(product)

    except CLIENT_ERRORS:
        raise
    except Exception as e:
        logger.exception("[Product] Fetch of %s failed", product_id)
        raise CatalogueError("Failed to fetch product", detail=_detail(e)) from e


@router.get("/products", response_model=List[ProductView], responses=_ERRORS)
async def get_all_products(
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[ProductView]:
    """Fetch every product with its relations. No paging."""
    try:
        products = await catalogue_service.list_products(db)
        return [ProductView.model_validate(p) for p in products]
    except Exception as e:
        logger.exception("[Product] Listing failed")
        raise CatalogueError("Failed to fetch products", detail=_detail(e)) from e


def _detail(e: Exception) -> str:
    """Prefer the underlying cause over the wrapper's summary."""
    if isinstance(e, CatalogueError):
        return f"{e.message}: {e.detail}" if e.detail else e.message
    return str(e)
