# fleetmarket
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RegisterIn(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=6, max_length=128)
    name: Optional[str] = None
    phone_number: Optional[str] = None


class LoginIn(BaseModel):
    email: str
    password: str


class DevLoginIn(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    phone_number: Optional[str] = None
    role: str
    status: str
    locked: bool = False
    banned_until: Optional[datetime] = None
    dealership_id: Optional[str] = None
    created_at: Optional[datetime] = None


class UsersPageOut(BaseModel):
    items: List[UserOut]
    total: int
    page: int
    page_size: int
    total_pages: int


class UsersSummaryOut(BaseModel):
    total: int
    dealers: int
    admins: int
    active: int
    banned: int


class UserLookupOut(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None


# Listings

class ListingIn(BaseModel):
    owner_type: Optional[str] = None  # dealership|user
    dealership_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    # vehicles
    make: Optional[str] = None
    model: Optional[str] = None
    trim: Optional[str] = None
    year: Optional[int] = None
    price: Optional[float] = None
    color: Optional[str] = None
    category: Optional[str] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    drivetrain: Optional[str] = None
    condition: Optional[str] = None
    mileage: Optional[float] = None
    features: Optional[List[str]] = None
    images: Optional[List[str]] = None
    description: Optional[str] = None
    source: Optional[str] = None
    bought_price: Optional[float] = None
    date_bought: Optional[datetime] = None
    seller_name: Optional[str] = None
    rental_period: Optional[str] = None
    is_boosted: Optional[bool] = None
    # plates
    letter: Optional[str] = None
    digits: Optional[str] = None


class ListingOut(BaseModel):
    id: str
    kind: str
    status: str
    price: float
    dealership_id: Optional[str] = None
    dealership_name: Optional[str] = None
    user_id: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    trim: Optional[str] = None
    year: Optional[int] = None
    color: Optional[str] = None
    category: Optional[str] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    drivetrain: Optional[str] = None
    condition: Optional[str] = None
    mileage: Optional[float] = None
    features: List[str] = []
    images: List[str] = []
    description: Optional[str] = None
    source: Optional[str] = None
    rental_period: Optional[str] = None
    letter: Optional[str] = None
    digits: Optional[str] = None
    is_boosted: bool = False
    views: int = 0
    likes: int = 0
    sold_price: Optional[float] = None
    date_sold: Optional[datetime] = None
    buyer_name: Optional[str] = None
    listed_at: Optional[datetime] = None


class ListingsPageOut(BaseModel):
    items: List[ListingOut]
    total: int
    page: int
    page_size: int
    total_pages: int


class StatusIn(BaseModel):
    status: str


class TransferIn(BaseModel):
    dealership_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None


class BulkStatusIn(BaseModel):
    ids: List[uuid.UUID]
    status: str


class BulkResultOut(BaseModel):
    requested: int
    updated: int
    succeeded: List[str]
    failed: Dict[str, str]


# Dealerships

class DealershipIn(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    logo: Optional[str] = None
    subscription_end_date: Optional[str] = None
    user_id: Optional[uuid.UUID] = None


class DealershipOut(BaseModel):
    id: str
    name: str
    location: str
    phone: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    logo: Optional[str] = None
    subscription_end_date: date
    subscription_status: str
    cars_listed: int = 0
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None


class DealershipsPageOut(BaseModel):
    items: List[DealershipOut]
    total: int
    page: int
    page_size: int
    total_pages: int


class DealershipOverviewOut(BaseModel):
    total: int
    active: int
    expiring: int
    expired: int
    expired_dealerships: List[DealershipOut]
    expiring_dealerships: List[DealershipOut]


class DealershipUpdateOut(BaseModel):
    dealership: DealershipOut
    cascade: Optional[str] = None


class ExtendIn(BaseModel):
    months: int = Field(1, ge=1, le=120)


class DealershipBulkIn(BaseModel):
    action: str  # extend|end
    ids: List[uuid.UUID]
    months: int = Field(1, ge=1, le=120)


class RoleChangeIn(BaseModel):
    role: str
    dealership: Optional[DealershipIn] = None


class BulkRoleIn(BaseModel):
    ids: List[uuid.UUID]
    role: str


# AutoClips

class AutoClipIn(BaseModel):
    title: str = Field(min_length=1, max_length=128)
    description: Optional[str] = Field(default=None, max_length=2048)
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    car_id: Optional[uuid.UUID] = None


class AutoClipPatchIn(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=128)
    description: Optional[str] = Field(default=None, max_length=2048)
    status: Optional[str] = None


class AutoClipOut(BaseModel):
    id: str
    dealership_id: str
    dealership_name: Optional[str] = None
    car_id: Optional[str] = None
    car_label: Optional[str] = None
    title: str
    description: Optional[str] = None
    video_url: str
    thumbnail_url: Optional[str] = None
    status: str
    views: int = 0
    likes: int = 0
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None


class AutoClipsPageOut(BaseModel):
    items: List[AutoClipOut]
    total: int
    page: int
    page_size: int
    total_pages: int


class AutoClipStatsOut(BaseModel):
    pending: int
    approved_today: int
    rejected_today: int
    total_reviewed: int


class RejectIn(BaseModel):
    reason: Optional[str] = None


class AutoClipBulkIn(BaseModel):
    action: str  # approve|reject
    ids: List[uuid.UUID]
    reason: Optional[str] = None


# Dealer console

class ProfilePatchIn(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class SoldIn(BaseModel):
    sold_price: float = Field(gt=0)
    date_sold: Optional[datetime] = None
    buyer_name: Optional[str] = None


class SaleOut(BaseModel):
    id: str
    make: str
    model: str
    year: int
    bought_price: Optional[float] = None
    sold_price: Optional[float] = None
    profit: Optional[float] = None
    days_on_market: Optional[int] = None
    date_sold: Optional[datetime] = None
    buyer_name: Optional[str] = None


class SalesOut(BaseModel):
    sales: List[SaleOut]
    total_revenue: float
    total_profit: float
    monthly: List[Dict[str, Any]]


# Media

class MediaOut(BaseModel):
    bucket: str
    path: str
    url: str
    size: int
    content_type: str
