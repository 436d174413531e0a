"""
Listing data models for Listings Service.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PropertyType(str, Enum):
    """Property types."""
    APARTMENT = "Apartment"
    VILLA = "Villa"
    STUDIO = "Studio"
    PENTHOUSE = "Penthouse"
    BUNGALOW = "Bungalow"


class FurnishedStatus(str, Enum):
    """Furnishing levels."""
    FURNISHED = "Furnished"
    UNFURNISHED = "Unfurnished"
    SEMI = "Semi"


class ListedBy(str, Enum):
    """Who published the listing."""
    OWNER = "Owner"
    AGENT = "Agent"
    BUILDER = "Builder"


class ListingType(str, Enum):
    """Listing types."""
    SALE = "sale"
    RENT = "rent"


class PropertyFields(BaseModel):
    """Fields shared by listing requests and stored listings."""

    model_config = ConfigDict(use_enum_values=True, str_strip_whitespace=True)

    title: str = Field(..., min_length=1, description="Listing title")
    type: PropertyType = Field(..., description="Property type")
    price: float = Field(..., ge=0, description="Asking price or monthly rent")
    state: str = Field(..., min_length=1, description="State")
    city: str = Field(..., min_length=1, description="City")
    area_sq_ft: float = Field(..., ge=0, description="Built-up area in square feet")
    bedrooms: int = Field(..., ge=0)
    bathrooms: int = Field(..., ge=0)
    amenities: List[str] = Field(default_factory=list)
    furnished: FurnishedStatus
    available_from: datetime = Field(..., description="Date the property becomes available")
    listed_by: ListedBy
    tags: List[str] = Field(default_factory=list)
    color_theme: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    is_verified: bool = False
    listing_type: ListingType
    images: List[str] = Field(default_factory=list)
    description: Optional[str] = None

    @field_validator("available_from")
    @classmethod
    def _available_from_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class PropertyCreateRequest(PropertyFields):
    """Request model for creating a listing."""
    property_id: str = Field(..., min_length=1, max_length=255, description="External listing ID")


class PropertyUpdateRequest(BaseModel):
    """Request model for a partial listing update.

    Only fields present in the request body are applied.
    """

    model_config = ConfigDict(use_enum_values=True, str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=1)
    type: Optional[PropertyType] = None
    price: Optional[float] = Field(None, ge=0)
    state: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    area_sq_ft: Optional[float] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    amenities: Optional[List[str]] = None
    furnished: Optional[FurnishedStatus] = None
    available_from: Optional[datetime] = None
    listed_by: Optional[ListedBy] = None
    tags: Optional[List[str]] = None
    color_theme: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    is_verified: Optional[bool] = None
    listing_type: Optional[ListingType] = None
    images: Optional[List[str]] = None
    description: Optional[str] = None

    @field_validator("available_from")
    @classmethod
    def _available_from_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class PropertyRecord(PropertyFields):
    """Stored listing."""
    id: str = Field(default_factory=new_id)
    property_id: str
    created_by: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserProfile(BaseModel):
    """Known user, created on first authenticated request."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Recommendation(BaseModel):
    """A listing one user recommended to another."""
    id: str = Field(default_factory=new_id)
    property_id: str
    recommended_by: str
    recipient_id: str
    message: Optional[str] = Field(None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow)


class FavoriteRequest(BaseModel):
    """Request model for adding a favorite."""
    property_id: str = Field(..., min_length=1, description="Listing ID")


class RecommendationRequest(BaseModel):
    """Request model for recommending a listing."""

    model_config = ConfigDict(str_strip_whitespace=True)

    property_id: str = Field(..., min_length=1, description="Listing ID")
    recipient_email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", description="Recipient email")
    message: Optional[str] = Field(None, max_length=500)
