from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OperationType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    NO_CHANGE = "NO_CHANGE"


def _drop_nulls(data: Any, keep=()) -> Any:
    # Adapters hand over partial records; a null falls back to the field default.
    if isinstance(data, dict):
        return {k: v for k, v in data.items() if v is not None or k in keep}
    return data


class Variant(BaseModel):
    model_config = ConfigDict(extra="ignore", use_enum_values=False)

    variant_id: str
    price_currency: str = "USD"
    original_price: float = 0
    selling_price: float = 0
    sale_price: Optional[float] = None
    final_price: float = 0
    discount: float = 0          # percentage 0-100
    link_url: str = ""
    deeplink_url: str = ""
    image_url: str = ""
    alternate_image_urls: List[str] = Field(default_factory=list)
    is_on_sale: bool = False
    is_in_stock: bool = False
    size: str = ""
    color: str = ""
    mpn: str = ""
    ratings_count: int = 0
    average_ratings: float = 0
    review_count: int = 0
    variant_description: str = ""
    operation_type: OperationType = OperationType.INSERT

    @model_validator(mode="before")
    @classmethod
    def _defaults_for_nulls(cls, data: Any) -> Any:
        return _drop_nulls(data, keep=("sale_price",))


class Product(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=lambda: str(uuid4()))   # persisted identifier
    parent_product_id: str = ""                              # retailer's stable key
    name: str = ""
    description: str = ""
    category: str = ""
    retailer_domain: str = ""
    brand: str = ""
    gender: str = ""
    materials: str = ""
    return_policy_link: str = ""
    return_policy: str = ""
    source: str = ""
    size_chart: str = ""
    available_bank_offers: str = ""
    available_coupons: str = ""
    operation_type: OperationType = OperationType.INSERT
    variants: List[Variant] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _defaults_for_nulls(cls, data: Any) -> Any:
        data = _drop_nulls(data)
        if isinstance(data, dict) and "parent_product_id" in data:
            # Retailers hand out numeric ids; identity is always compared as text.
            data["parent_product_id"] = str(data["parent_product_id"]).strip()
        return data

    def to_document(self) -> Dict[str, Any]:
        """Shape stored in the `products` table (variants embedded)."""
        return self.model_dump(mode="json")

    def to_export(self) -> Dict[str, Any]:
        """Shape written to catalog files; the persisted id stays internal."""
        return self.model_dump(mode="json", exclude={"id"})


class Store(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str
    store_type: str
    store_url: str = ""
    country: str = "US"
    city: str = ""
    state: str = ""
    return_policy: str = ""
    is_scrapped: bool = False
    products: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _defaults_for_nulls(cls, data: Any) -> Any:
        return _drop_nulls(data, keep=("id", "created_at", "updated_at"))


class StoreInfo(BaseModel):
    name: str
    domain: str
    currency: str = "USD"
    country: str = "US"
    total_products: int = 0
    crawled_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    crawl_type: str = "RECRAWL"
