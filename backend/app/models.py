"""
Shared data types for the menu acquisition pipeline.

Everything the scraper, the parsers and the HTTP layer pass between each
other lives here so the wire shapes (camelCase aliases) are defined once.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.config import get_settings


DIETARY_TAGS = [
    "vegetarian", "vegan", "gluten-free", "nut-allergy",
    "shellfish-allergy", "lactose-free", "halal", "kosher",
]

CUISINES = [
    "Italian", "Japanese", "Mexican", "American", "Indian", "Chinese", "French",
    "Korean", "Mediterranean", "Thai", "Vietnamese", "Spanish", "Pakistani",
    "Persian", "Greek", "Turkish", "Lebanese", "Middle Eastern", "Ethiopian",
    "Moroccan", "Brazilian", "Caribbean", "African", "Fusion", "International",
]


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

class ContentClassification(BaseModel):
    score: int = Field(ge=0, le=100)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str | None = None

    @computed_field
    @property
    def is_menu(self) -> bool:
        return self.score > 50


# ---------------------------------------------------------------------------
# Branding
# ---------------------------------------------------------------------------

class ColorPalette(BaseModel):
    primary: str | None = None
    secondary: str | None = None
    accent: str | None = None
    text: str | None = None
    background: str | None = None

    def is_empty(self) -> bool:
        return not any(self.model_dump().values())


# ---------------------------------------------------------------------------
# Menu content
# ---------------------------------------------------------------------------

class MenuItem(BaseModel):
    name: str
    description: str | None = None
    price: str | None = None
    category: str | None = None
    tags: list[str] = Field(default_factory=list)


class ParsedMenu(BaseModel):
    items: list[MenuItem] = Field(default_factory=list)
    categories: list[str] | None = None
    description: str | None = None
    cuisine: str | None = None
    tags: list[str] | None = None


ChunkType = Literal["description", "cuisine", "tags", "category", "item"]


class MenuChunkData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    description: str | None = None
    cuisine: str | None = None
    tags: list[str] | None = None
    category_name: str | None = Field(default=None, alias="categoryName")
    item: MenuItem | None = None


class MenuChunk(BaseModel):
    type: ChunkType
    data: MenuChunkData

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Scraping
# ---------------------------------------------------------------------------

class ScrapeOptions(BaseModel):
    headless: bool = True
    timeout: int = 20000  # milliseconds, per navigation
    min_content_length: int = 200
    max_retries: int = 2
    user_agent: str = ""

    @classmethod
    def from_settings(cls, **overrides) -> "ScrapeOptions":
        settings = get_settings()
        values = {
            "headless": settings.headless,
            "timeout": settings.page_load_timeout,
            "min_content_length": settings.scrape_min_content_length,
            "max_retries": settings.scrape_max_retries,
            "user_agent": settings.user_agent,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class ScrapeResult(BaseModel):
    text: str
    logo: str | None = None
    colors: ColorPalette | None = None


# ---------------------------------------------------------------------------
# Places + HTTP payloads
# ---------------------------------------------------------------------------

class PlaceDetails(BaseModel):
    place_id: str
    name: str
    website_url: str | None = None
    address: str | None = None
    city: str | None = None
    currency: str = "USD"
    phone: str | None = None
    photo_urls: list[str] = Field(default_factory=list)


class ScrapeAndSaveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    place_id: str | None = Field(default=None, alias="placeId")
    restaurant_name: str | None = Field(default=None, alias="restaurantName")
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    phone: str | None = None
    rating: float | None = None


class ScrapeAndSaveResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    restaurant_id: str | None = Field(default=None, alias="restaurantId")
    restaurant_slug: str | None = Field(default=None, alias="restaurantSlug")
    total_categories: int | None = Field(default=None, alias="totalCategories")
    total_items: int | None = Field(default=None, alias="totalItems")
    message: str
    already_exists: bool | None = Field(default=None, alias="alreadyExists")
    in_progress: bool | None = Field(default=None, alias="inProgress")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
