"""
Pydantic models for the search API.

Field names of catalog rows follow the Supabase columns (snake_case); the
fields the storefront reads directly (relevanceScore, resultType, priceMin,
hasMore, ...) keep their camelCase wire names through aliases.
"""

from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer


# ============================================================================
# Enums
# ============================================================================

class ResultType(str, Enum):
    """Kind of entry in a merged result list."""
    PRODUCT = "product"
    BRAND = "brand"
    CATEGORY = "category"


class StockStatus(str, Enum):
    """Stock-quantity bucket a search can be restricted to."""
    ALL = "all"
    IN_STOCK = "in-stock"            # quantity > 0
    OUT_OF_STOCK = "out-of-stock"    # quantity == 0
    LOW_STOCK = "low-stock"          # 1..5
    HIGH_STOCK = "high-stock"        # >= 20


# ============================================================================
# Catalog rows
# ============================================================================

class Product(BaseModel):
    """Read-only projection of a products row."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Union[str, int]
    name: str = ""
    brand_name: Optional[str] = None
    price: Optional[float] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    sku: Optional[str] = None
    featured: bool = False
    stock_quantity: Optional[int] = None
    tags: List[str] = Field(default_factory=list)
    materials: List[str] = Field(default_factory=list)
    zoho_category_name: Optional[str] = None
    manufacturer: Optional[str] = None
    # JSONB columns: objects in most rows, arrays or scalars in some
    specs: Optional[Any] = None
    attributes: Optional[Any] = None
    dtc_description: Optional[str] = None
    vip_price: Optional[float] = None

    @field_validator("name", "featured", mode="before")
    @classmethod
    def null_to_default(cls, v, info):
        # Supabase returns NULL for unset columns
        if v is None:
            return {"name": "", "featured": False}[info.field_name]
        return v

    @field_validator("tags", "materials", mode="before")
    @classmethod
    def clean_string_list(cls, v):
        """NULL becomes []; NULL elements are dropped, others stringified."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        if isinstance(v, (list, tuple)):
            return [item if isinstance(item, str) else str(item) for item in v if item is not None]
        return v


class SearchResult(Product):
    """A product, brand or category normalized into the product shape."""
    relevance_score: int = Field(0, ge=0, alias="relevanceScore")
    result_type: ResultType = Field(ResultType.PRODUCT, alias="resultType")


# ============================================================================
# Request Models
# ============================================================================

class SearchFilters(BaseModel):
    """Optional constraints on a search. Absent values mean no constraint."""
    model_config = ConfigDict(populate_by_name=True)

    category: Optional[str] = None
    brand: Optional[str] = None
    price_min: Optional[float] = Field(None, alias="priceMin")
    price_max: Optional[float] = Field(None, alias="priceMax")
    stock_status: StockStatus = Field(StockStatus.ALL, alias="stockStatus")
    featured: bool = False
    materials: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        """Wire-format dict used in responses and analytics rows."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SearchRequest(BaseModel):
    """Parsed /api/search parameters."""
    q: str = ""
    limit: int = Field(20, ge=1)
    offset: int = Field(0, ge=0)
    include_categories: bool = False
    include_brands: bool = False
    filters: SearchFilters = Field(default_factory=SearchFilters)


class SearchAnalyticsEvent(BaseModel):
    """Body of POST /api/search/analytics (suggestion clicks)."""
    model_config = ConfigDict(populate_by_name=True)

    query: str = ""
    result_count: int = Field(0, alias="resultCount")
    selected_result: Optional[Any] = Field(None, alias="selectedResult")
    user_agent: Optional[str] = Field(None, alias="userAgent")


# ============================================================================
# Response Models
# ============================================================================

class _OmitEmptyOptionals(BaseModel):
    """Drops the listed top-level keys when they are None; other nulls stay."""
    omit_if_none: ClassVar[Tuple[str, ...]] = ()

    @model_serializer(mode="wrap")
    def omit_empty_optionals(self, handler):
        data = handler(self)
        for key in self.omit_if_none:
            if data.get(key) is None:
                data.pop(key, None)
        return data


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    limit: int
    offset: int
    has_more: bool = Field(alias="hasMore")


class SearchResponse(_OmitEmptyOptionals):
    """Response from /api/search."""
    omit_if_none: ClassVar[Tuple[str, ...]] = ("pagination", "message")

    results: List[SearchResult]
    total: int
    query: str
    filters: Dict[str, Any] = Field(default_factory=dict)
    pagination: Optional[Pagination] = None
    message: Optional[str] = None


class SearchErrorResponse(BaseModel):
    error: str
    results: List[SearchResult] = Field(default_factory=list)
    total: int = 0


class Suggestion(BaseModel):
    """A single autocomplete entry (product or brand)."""
    model_config = ConfigDict(populate_by_name=True)

    type: ResultType
    id: Union[str, int]
    title: str
    subtitle: str
    price: Optional[float] = None
    image: Optional[str] = None
    url: str
    relevance_score: int = Field(0, ge=0, alias="relevanceScore")


class SuggestionResponse(_OmitEmptyOptionals):
    omit_if_none: ClassVar[Tuple[str, ...]] = ("query",)

    query: Optional[str] = None
    suggestions: List[Suggestion] = Field(default_factory=list)


class PopularSearch(BaseModel):
    query: str
    count: int


class PopularSearchesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    popular_searches: List[PopularSearch] = Field(alias="popularSearches")
    period: str
    limit: int


class BrandListingResponse(BaseModel):
    """A brand page: its products plus counts for the page's filter sidebar."""
    model_config = ConfigDict(populate_by_name=True)

    brand: str
    label: str
    products: List[Product]
    total: int
    categories: List[Dict[str, str]]
    category_counts: Dict[str, int] = Field(alias="categoryCounts")
    stats: Dict[str, Dict[str, int]]
