"""
Pydantic schemas for request/response validation.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------- extraction payload ----------
#
# The model's reply is never rejected for its shape. Anything that cannot be
# read as text is dropped to None, and entries that are not objects are
# skipped, so a syntactically valid reply always yields an ExtractionResult.


def _as_text(value: Any) -> Optional[str]:
    """Models sometimes answer sizes or values as bare numbers."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


class ExtractionEntry(BaseModel):
    """One partial row suggested by the model, with its certainty."""

    model_config = ConfigDict(extra="allow")

    confidence_score: Optional[float] = Field(None, description="Model certainty (0.00-1.00)")

    @field_validator("confidence_score", mode="before")
    @classmethod
    def lenient_score(cls, v: Any) -> Optional[float]:
        if v is None or isinstance(v, bool):
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None


class ProductFragment(ExtractionEntry):
    """
    A subset of product fields.

    The model usually answers with one fragment per field, so a product is
    rebuilt by folding all fragments together.
    """

    name: Optional[str] = None
    product_type: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    gender: Optional[str] = None
    target_age_group: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[Union[str, List[str]]] = None

    @field_validator(
        "name", "product_type", "category", "subcategory", "gender",
        "target_age_group", "description",
        mode="before",
    )
    @classmethod
    def field_as_text(cls, v: Any) -> Optional[str]:
        return _as_text(v)

    @field_validator("tags", mode="before")
    @classmethod
    def tags_as_text(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [t for t in (_as_text(item) for item in v) if t]
        return _as_text(v)


class NamedEntry(ExtractionEntry):
    """Brand, collection, color or size suggestion."""

    name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def bare_string_is_name(cls, data: Any) -> Any:
        if isinstance(data, (str, int, float)) and not isinstance(data, bool):
            return {"name": _as_text(data)}
        return data

    @field_validator("name", mode="before")
    @classmethod
    def name_as_text(cls, v: Any) -> Optional[str]:
        return _as_text(v)


class AttributeEntry(NamedEntry):
    value: Optional[str] = None

    @field_validator("value", mode="before")
    @classmethod
    def value_as_text(cls, v: Any) -> Optional[str]:
        return _as_text(v)


class ExtractionResult(BaseModel):
    """Structured reply of the hosted model, keyed by target table."""

    model_config = ConfigDict(extra="allow")

    products: List[ProductFragment] = Field(default_factory=list)
    brands: List[NamedEntry] = Field(default_factory=list)
    collections: List[NamedEntry] = Field(default_factory=list)
    colors: List[NamedEntry] = Field(default_factory=list)
    sizes: List[NamedEntry] = Field(default_factory=list)
    attributes: List[AttributeEntry] = Field(default_factory=list)

    @field_validator("products", mode="before")
    @classmethod
    def product_objects_only(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict)]

    @field_validator("brands", "collections", "colors", "sizes", "attributes", mode="before")
    @classmethod
    def named_entries_only(cls, v: Any) -> List[Any]:
        # Bare names are kept, NamedEntry turns them into {"name": ...}
        if not isinstance(v, list):
            return []
        return [
            item for item in v
            if isinstance(item, (dict, str, int, float)) and not isinstance(item, bool)
        ]


# ---------- auth ----------


class SignupRequest(BaseModel):
    """Required fields are checked by the route so a miss is a 400."""

    email: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "jane@example.com",
                "password": "s3cret-pass",
                "full_name": "Jane Doe",
                "avatar_url": None,
            }
        }
    )


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class SignupResponse(BaseModel):
    message: str
    user: Optional[Dict[str, Any]] = None


class LoginResponse(BaseModel):
    message: str
    session: Dict[str, Any]
    user: Optional[Dict[str, Any]] = None


# ---------- ingestion / retrieval ----------


class StoreResponse(BaseModel):
    """Response of a successful ingestion."""

    message: str
    productId: int
    imageUrl: str


class VendorView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[datetime] = None


class BrandView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    country_of_origin: Optional[str] = None
    created_at: Optional[datetime] = None


class CollectionView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    season: Optional[str] = None
    launch_date: Optional[date] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None


class ColorView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class SizeView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class AttributeView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    data_type: str
    category: Optional[str] = None


class AttributeValueView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    attribute_id: int
    value: str


class ProductColorView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    color_id: int
    color: ColorView


class ProductSizeView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    size_id: int
    size: SizeView


class ProductAttributeView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    attribute_id: int
    attribute_value_id: int
    confidence_score: Optional[float] = None
    override_value: Optional[str] = None
    attribute: AttributeView
    attribute_value: AttributeValueView


class ProductView(BaseModel):
    """A product with every related row joined in."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    product_type: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    gender: Optional[str] = None
    target_age_group: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[str] = None
    image_url: Optional[str] = None
    user_id: str
    vendor_id: int
    brand_id: Optional[int] = None
    collection_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    vendor: VendorView
    brand: Optional[BrandView] = None
    collection: Optional[CollectionView] = None
    colors: List[ProductColorView] = Field(default_factory=list)
    sizes: List[ProductSizeView] = Field(default_factory=list)
    attributes: List[ProductAttributeView] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Error response schema."""

    error: str = Field(..., description="Error message")
    detailedError: Optional[str] = Field(None, description="Additional error details")
