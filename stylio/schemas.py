"""Request schemas for query strings and JSON bodies.

Query parameters arrive as strings, so every query model relies on pydantic's
lax coercion (``"4.5"`` -> ``4.5``, ``"true"`` -> ``True``). Legacy parameter
names are accepted through ``AliasChoices`` next to the current camelCase name.
Cross-field rules live in ``check()`` so that they can report every offending
field at once instead of stopping at the first.
"""
from __future__ import annotations

from datetime import date
from typing import ClassVar, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import SearchSettings
from .search.geo import GeoQuery

Mode = Literal["toSalon", "toHome", "both"]
Audience = Literal["men", "women", "kids", "unisex"]
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
BookingStatus = Literal["pending", "confirmed", "in_progress", "completed", "cancelled", "no_show"]


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class RequestModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)

    # (low attribute, high attribute, public low name, public high name)
    RANGES: ClassVar[tuple[tuple[str, str, str, str], ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_values(cls, data):
        if isinstance(data, dict):
            return {key: value for key, value in data.items()
                    if not (isinstance(value, str) and not value.strip())}
        return data

    def check(self, settings: SearchSettings) -> list[dict[str, str]]:
        errors = []
        for low_attr, high_attr, low_name, high_name in self.RANGES:
            low, high = getattr(self, low_attr), getattr(self, high_attr)
            if low is not None and high is not None and low > high:
                errors.append({
                    "field": low_name,
                    "message": f"{low_name} cannot be greater than {high_name}",
                })
        return errors


class PageParams(RequestModel):
    page: int = Field(1, ge=1)
    limit: Optional[int] = Field(None, ge=1)


class SortParams(RequestModel):
    sort_by: Optional[str] = Field(None, validation_alias=_alias("sortBy", "sort"))
    sort_order: Optional[str] = Field(None, validation_alias=_alias("sortOrder", "order"))


class GeoParams(RequestModel):
    lat: Optional[float] = Field(None, ge=-90, le=90, validation_alias=_alias("lat", "latitude"))
    lng: Optional[float] = Field(None, ge=-180, le=180, validation_alias=_alias("lng", "longitude"))
    radius: Optional[float] = Field(None, gt=0)

    def check(self, settings: SearchSettings) -> list[dict[str, str]]:
        errors = super().check(settings)
        if (self.lat is None) != (self.lng is None):
            missing = "lng" if self.lng is None else "lat"
            errors.append({"field": missing, "message": "lat and lng must be provided together"})
        if self.radius is not None and not settings.min_radius <= self.radius <= settings.max_radius:
            errors.append({
                "field": "radius",
                "message": f"radius must be between {settings.min_radius} and {settings.max_radius}",
            })
        return errors

    def geo_query(self, settings: SearchSettings) -> GeoQuery | None:
        if self.lat is None or self.lng is None:
            return None
        radius = self.radius if self.radius is not None else settings.default_radius
        return GeoQuery(lat=self.lat, lng=self.lng, radius=min(radius, settings.max_radius))


class CategoricalParams(RequestModel):
    mode: Optional[Mode] = None
    audience: Optional[Audience] = None


class SalonListQuery(GeoParams, CategoricalParams, SortParams, PageParams):
    RANGES = (
        ("min_rating", "max_rating", "minRating", "maxRating"),
        ("min_price_level", "max_price_level", "minPriceLevel", "maxPriceLevel"),
        ("min_price", "max_price", "minPrice", "maxPrice"),
    )

    q: Optional[str] = Field(None, max_length=200, validation_alias=_alias("q", "search"))
    city_id: Optional[int] = Field(None, validation_alias=_alias("cityId", "city"))
    area_id: Optional[int] = Field(None, validation_alias=_alias("areaId", "area"))
    category: Optional[str] = None
    service_type: Optional[str] = Field(None, validation_alias=_alias("serviceType", "type"))
    min_rating: Optional[float] = Field(None, ge=0, le=5, validation_alias="minRating")
    max_rating: Optional[float] = Field(None, ge=0, le=5, validation_alias="maxRating")
    min_price_level: Optional[int] = Field(None, ge=1, le=4, validation_alias="minPriceLevel")
    max_price_level: Optional[int] = Field(None, ge=1, le=4, validation_alias="maxPriceLevel")
    min_price: Optional[float] = Field(None, ge=0, validation_alias="minPrice")
    max_price: Optional[float] = Field(None, ge=0, validation_alias="maxPrice")
    has_parking: Optional[bool] = Field(None, validation_alias="hasParking")
    has_wifi: Optional[bool] = Field(None, validation_alias="hasWifi")
    has_ac: Optional[bool] = Field(None, validation_alias="hasAc")
    verified: Optional[bool] = Field(None, validation_alias=_alias("isVerified", "verified"))


class NearbySalonQuery(GeoParams, CategoricalParams):
    limit: Optional[int] = Field(None, ge=1)

    def check(self, settings: SearchSettings) -> list[dict[str, str]]:
        errors = super().check(settings)
        if self.lat is None and self.lng is None:
            errors.append({"field": "lat", "message": "lat and lng are required"})
        return errors


class ServiceListQuery(GeoParams, CategoricalParams, SortParams, PageParams):
    RANGES = (
        ("min_price", "max_price", "minPrice", "maxPrice"),
        ("min_rating", "max_rating", "minRating", "maxRating"),
    )

    q: Optional[str] = Field(None, max_length=200, validation_alias=_alias("q", "search"))
    salon_id: Optional[int] = Field(None, validation_alias=_alias("salonId", "salon"))
    city_id: Optional[int] = Field(None, validation_alias=_alias("cityId", "city"))
    area_id: Optional[int] = Field(None, validation_alias=_alias("areaId", "area"))
    type_id: Optional[int] = Field(None, validation_alias="typeId")
    category: Optional[str] = None
    service_type: Optional[str] = Field(None, validation_alias=_alias("serviceType", "type"))
    min_price: Optional[float] = Field(None, ge=0, validation_alias="minPrice")
    max_price: Optional[float] = Field(None, ge=0, validation_alias="maxPrice")
    min_rating: Optional[float] = Field(None, ge=0, le=5, validation_alias="minRating")
    max_rating: Optional[float] = Field(None, ge=0, le=5, validation_alias="maxRating")
    popular: Optional[bool] = None


class ServiceSearchQuery(ServiceListQuery):
    q: str = Field(..., min_length=1, max_length=200, validation_alias=_alias("q", "search"))


class SalonServicesQuery(CategoricalParams):
    RANGES = (("min_price", "max_price", "minPrice", "maxPrice"),)

    category: Optional[str] = None
    min_price: Optional[float] = Field(None, ge=0, validation_alias="minPrice")
    max_price: Optional[float] = Field(None, ge=0, validation_alias="maxPrice")


class ProviderListQuery(GeoParams, SortParams, PageParams):
    q: Optional[str] = Field(None, max_length=200, validation_alias=_alias("q", "search"))
    salon_id: Optional[int] = Field(None, validation_alias=_alias("salonId", "salon"))
    area_id: Optional[int] = Field(None, validation_alias=_alias("areaId", "area"))
    specialization: Optional[str] = Field(None, max_length=100)
    home_service: Optional[bool] = Field(None, validation_alias="homeService")
    min_rating: Optional[float] = Field(None, ge=0, le=5, validation_alias="minRating")


class SearchQuery(GeoParams, CategoricalParams):
    q: str = Field(..., min_length=1, max_length=200, validation_alias=_alias("q", "search"))
    type: Literal["salons", "services", "providers", "all"] = "all"
    limit: Optional[int] = Field(None, ge=1)
    city_id: Optional[int] = Field(None, validation_alias=_alias("cityId", "city"))


class SuggestionQuery(RequestModel):
    q: str = Field("", max_length=100, validation_alias=_alias("q", "search"))


class CityQuery(RequestModel):
    search: Optional[str] = Field(None, max_length=100)


class AreaQuery(RequestModel):
    city_id: Optional[int] = Field(None, validation_alias=_alias("cityId", "city"))
    search: Optional[str] = Field(None, max_length=100)


class ReviewListQuery(PageParams):
    sort: Literal["newest", "highest", "lowest"] = "newest"


class BookingListQuery(PageParams):
    status: Optional[BookingStatus] = None


class NotificationListQuery(PageParams):
    unread_only: bool = Field(False, validation_alias=_alias("unreadOnly", "unread_only"))


class ShortListQuery(PageParams):
    category: Optional[str] = None
    platform: Optional[Literal["native", "youtube", "instagram", "tiktok"]] = None
    salon_id: Optional[int] = Field(None, validation_alias=_alias("salonId", "salon"))
    featured: Optional[bool] = None
    sort_by: Literal["popular", "newest", "likes"] = Field(
        "popular", validation_alias=_alias("sortBy", "sort")
    )


class AvailableSlotsQuery(RequestModel):
    salon_id: int = Field(..., validation_alias=_alias("salonId", "salon"))
    on_date: date = Field(..., validation_alias="date")


class ProviderAvailabilityQuery(RequestModel):
    on_date: date = Field(..., validation_alias="date")


# --- bodies -----------------------------------------------------------------


class RegisterBody(RequestModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.]+$")
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=8, max_length=128)
    first_name: Optional[str] = Field(None, max_length=100, validation_alias="firstName")
    last_name: Optional[str] = Field(None, max_length=100, validation_alias="lastName")
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator("email", "username")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.lower()


class LoginBody(RequestModel):
    identifier: str = Field(..., min_length=1, validation_alias=_alias("identifier", "email", "username"))
    password: str = Field(..., min_length=1)


class RefreshBody(RequestModel):
    refresh_token: str = Field(..., min_length=1, validation_alias=_alias("refreshToken", "refresh_token"))


class ProfileUpdateBody(RequestModel):
    first_name: Optional[str] = Field(None, max_length=100, validation_alias="firstName")
    last_name: Optional[str] = Field(None, max_length=100, validation_alias="lastName")
    phone: Optional[str] = Field(None, max_length=30)
    avatar: Optional[str] = None


class PasswordChangeBody(RequestModel):
    current_password: str = Field(..., min_length=1, validation_alias="currentPassword")
    new_password: str = Field(..., min_length=8, max_length=128, validation_alias="newPassword")


class AddressBody(RequestModel):
    label: Literal["Home", "Work", "Other"] = "Home"
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, pattern=r"^\d{4,10}$")
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    is_default: bool = Field(False, validation_alias="isDefault")


class BookingServiceItem(RequestModel):
    service_id: int = Field(..., validation_alias=_alias("serviceId", "service"))
    quantity: int = Field(1, ge=1, le=10)

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_id(cls, data):
        if isinstance(data, (int, str)) and not isinstance(data, bool):
            return {"serviceId": data}
        return data


class BookingCreateBody(RequestModel):
    salon_id: int = Field(..., validation_alias=_alias("salonId", "salon"))
    provider_id: Optional[int] = Field(None, validation_alias=_alias("providerId", "provider"))
    services: list[BookingServiceItem] = Field(..., min_length=1)
    booking_type: Literal["salon", "home"] = Field("salon", validation_alias="bookingType")
    booking_date: date = Field(..., validation_alias=_alias("bookingDate", "date"))
    booking_time: str = Field(..., pattern=TIME_PATTERN, validation_alias=_alias("bookingTime", "time"))
    home_address: Optional[dict] = Field(None, validation_alias="homeAddress")
    notes: Optional[str] = Field(None, max_length=500)
    promo_code: Optional[str] = Field(None, max_length=40, validation_alias="promoCode")

    def check(self, settings: SearchSettings) -> list[dict[str, str]]:
        errors = super().check(settings)
        if self.booking_type == "home" and not self.home_address:
            errors.append({"field": "homeAddress", "message": "homeAddress is required for home bookings"})
        if self.booking_date < date.today():
            errors.append({"field": "bookingDate", "message": "bookingDate cannot be in the past"})
        return errors


class StatusUpdateBody(RequestModel):
    status: BookingStatus
    reason: Optional[str] = Field(None, max_length=500, validation_alias=_alias("reason", "cancellationReason"))


class CancelBody(RequestModel):
    reason: Optional[str] = Field(None, max_length=500, validation_alias=_alias("reason", "cancellationReason"))


class SalonReviewBody(RequestModel):
    salon_id: int = Field(..., validation_alias=_alias("salonId", "salon"))
    booking_id: Optional[int] = Field(None, validation_alias=_alias("bookingId", "booking"))
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=100)
    comment: Optional[str] = Field(None, max_length=1000)
    cleanliness: Optional[int] = Field(None, ge=1, le=5)
    service: Optional[int] = Field(None, ge=1, le=5)
    value: Optional[int] = Field(None, ge=1, le=5)


class ProviderReviewBody(RequestModel):
    provider_id: int = Field(..., validation_alias=_alias("providerId", "provider"))
    booking_id: Optional[int] = Field(None, validation_alias=_alias("bookingId", "booking"))
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class FavoriteBody(RequestModel):
    salon_id: int = Field(..., validation_alias=_alias("salonId", "salon"))


class PromoValidateBody(RequestModel):
    code: str = Field(..., min_length=1, max_length=40)
    amount: float = Field(..., ge=0, validation_alias=_alias("amount", "bookingAmount"))

    @field_validator("code")
    @classmethod
    def _uppercase(cls, value: str) -> str:
        return value.upper()


class ShortCommentBody(RequestModel):
    text: str = Field(..., min_length=1, max_length=500)
