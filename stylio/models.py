"""Database models for the Stylio marketplace."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def isoformat(value) -> str | None:
    return value.isoformat() if value else None


def split_tags(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def join_tags(tags) -> str | None:
    if not tags:
        return None
    return ",".join(str(tag).strip() for tag in tags if str(tag).strip())


MODES = ("toSalon", "toHome", "both")
AUDIENCES = ("men", "women", "kids", "unisex")
BOOKING_STATUSES = ("pending", "confirmed", "in_progress", "completed", "cancelled", "no_show")
NOTIFICATION_TYPES = (
    "booking_created",
    "booking_confirmed",
    "booking_started",
    "booking_completed",
    "booking_cancelled",
    "booking_no_show",
    "review",
    "promo",
    "system",
)


# Home-service coverage of a provider
provider_home_areas = db.Table(
    "provider_home_areas",
    db.Column("provider_id", db.Integer, db.ForeignKey("providers.provider_id"), primary_key=True),
    db.Column("area_id", db.Integer, db.ForeignKey("areas.area_id"), primary_key=True),
)


class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    phone = db.Column(db.String(30))
    avatar = db.Column(db.Text)
    role = db.Column(
        db.Enum(
            "customer",
            "provider",
            "admin",
            name="user_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="customer",
        server_default="customer",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default="1")
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    auth_account = db.relationship(
        "AuthAccount", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    addresses = db.relationship(
        "Address", back_populates="user", cascade="all, delete-orphan", order_by="Address.address_id"
    )
    salons = db.relationship("Salon", back_populates="owner")

    @property
    def full_name(self) -> str:
        parts = [self.first_name or "", self.last_name or ""]
        return " ".join(part for part in parts if part).strip() or self.username

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "username": self.username,
            "name": self.full_name,
            "avatar": self.avatar,
        }

    def to_dict(self) -> dict[str, object]:
        return {
            **self.to_dict_basic(),
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phone": self.phone,
            "role": self.role,
            "isActive": self.is_active,
            "createdAt": isoformat(self.created_at),
        }


class AuthAccount(db.Model):
    __tablename__ = "auth_accounts"

    account_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    refresh_token = db.Column(db.Text)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    user = db.relationship("User", back_populates="auth_account")


class Address(db.Model):
    __tablename__ = "addresses"

    address_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    label = db.Column(
        db.Enum("Home", "Work", "Other", name="address_label", native_enum=False, validate_strings=True),
        nullable=False,
        default="Home",
    )
    street = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    state = db.Column(db.String(100))
    pincode = db.Column(db.String(12))
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    user = db.relationship("User", back_populates="addresses")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.address_id,
            "label": self.label,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "location": _point(self.latitude, self.longitude),
            "isDefault": self.is_default,
        }


def _point(lat, lng) -> dict[str, float] | None:
    if lat is None or lng is None:
        return None
    return {"lat": lat, "lng": lng}


class City(db.Model):
    __tablename__ = "cities"

    city_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False)
    state = db.Column(db.String(100))
    country = db.Column(db.String(100), nullable=False, default="India")
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    areas = db.relationship("Area", back_populates="city", order_by="Area.name")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.city_id,
            "name": self.name,
            "slug": self.slug,
            "state": self.state,
            "country": self.country,
            "center": _point(self.latitude, self.longitude),
        }


class Area(db.Model):
    __tablename__ = "areas"
    __table_args__ = (db.UniqueConstraint("city_id", "name", name="uq_area_city_name"),)

    area_id = db.Column(db.Integer, primary_key=True)
    city_id = db.Column(db.Integer, db.ForeignKey("cities.city_id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(120), nullable=False)
    pincode = db.Column(db.String(12))
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    city = db.relationship("City", back_populates="areas")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.area_id,
            "name": self.name,
            "slug": self.slug,
            "pincode": self.pincode,
            "cityId": self.city_id,
            "cityName": self.city.name if self.city else None,
            "center": _point(self.latitude, self.longitude),
        }


class Salon(db.Model):
    __tablename__ = "salons"

    salon_id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    area_id = db.Column(db.Integer, db.ForeignKey("areas.area_id"), index=True)
    city_id = db.Column(db.Integer, db.ForeignKey("cities.city_id"), index=True)
    name = db.Column(db.String(150), nullable=False)
    slug = db.Column(db.String(180), unique=True, nullable=False)
    description = db.Column(db.Text)
    address = db.Column(db.String(255))
    latitude = db.Column(db.Float, index=True)
    longitude = db.Column(db.Float, index=True)
    tags = db.Column(db.Text)
    phone = db.Column(db.String(30))
    email = db.Column(db.String(255))
    website = db.Column(db.String(255))
    opening_time = db.Column(db.String(5), nullable=False, default="09:00")
    closing_time = db.Column(db.String(5), nullable=False, default="21:00")
    is_open_sunday = db.Column(db.Boolean, nullable=False, default=True)
    cover_image = db.Column(db.String(500))
    logo = db.Column(db.String(500))
    thumbnail_url = db.Column(db.String(500))
    mode = db.Column(
        db.Enum(*MODES, name="salon_mode", native_enum=False, validate_strings=True),
        nullable=False,
        default="toSalon",
    )
    average_rating = db.Column(db.Float, nullable=False, default=0)
    total_reviews = db.Column(db.Integer, nullable=False, default=0)
    price_level = db.Column(db.Integer, nullable=False, default=2)
    popularity_score = db.Column(db.Float, nullable=False, default=0)
    has_parking = db.Column(db.Boolean, nullable=False, default=False)
    has_wifi = db.Column(db.Boolean, nullable=False, default=False)
    has_ac = db.Column(db.Boolean, nullable=False, default=False)
    accepts_cards = db.Column(db.Boolean, nullable=False, default=True)
    offers_home_service = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    owner = db.relationship("User", back_populates="salons")
    area = db.relationship("Area")
    city = db.relationship("City")
    audiences = db.relationship("SalonAudience", cascade="all, delete-orphan", lazy="selectin")
    images = db.relationship(
        "SalonImage", cascade="all, delete-orphan", order_by="SalonImage.sort_order"
    )
    services = db.relationship("Service", back_populates="salon")
    providers = db.relationship("Provider", back_populates="salon")

    @property
    def audience(self) -> list[str]:
        return sorted(entry.audience for entry in self.audiences)

    @audience.setter
    def audience(self, values) -> None:
        self.audiences = [SalonAudience(audience=value) for value in dict.fromkeys(values or [])]

    @property
    def tag_list(self) -> list[str]:
        return split_tags(self.tags)

    def to_summary(self) -> dict[str, object]:
        return {
            "id": self.salon_id,
            "name": self.name,
            "slug": self.slug,
            "address": self.address,
            "averageRating": self.average_rating,
            "thumbnailUrl": self.thumbnail_url or self.cover_image,
        }


class SalonAudience(db.Model):
    __tablename__ = "salon_audiences"

    salon_id = db.Column(db.Integer, db.ForeignKey("salons.salon_id"), primary_key=True)
    audience = db.Column(
        db.Enum(*AUDIENCES, name="salon_audience", native_enum=False, validate_strings=True),
        primary_key=True,
    )


class SalonImage(db.Model):
    __tablename__ = "salon_images"

    image_id = db.Column(db.Integer, primary_key=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.salon_id"), nullable=False, index=True)
    url = db.Column(db.String(500), nullable=False)
    caption = db.Column(db.String(255))
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {"id": self.image_id, "url": self.url, "caption": self.caption}


class ServiceCategory(db.Model):
    __tablename__ = "service_categories"

    category_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.Text)
    icon = db.Column(db.String(255))
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    types = db.relationship("ServiceType", back_populates="category", order_by="ServiceType.name")

    def to_dict(self, include_types: bool = False) -> dict[str, object]:
        data = {
            "id": self.category_id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "icon": self.icon,
        }
        if include_types:
            data["types"] = [t.to_dict() for t in self.types if t.is_active]
        return data


class ServiceType(db.Model):
    __tablename__ = "service_types"
    __table_args__ = (db.UniqueConstraint("category_id", "slug", name="uq_service_type_slug"),)

    type_id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(
        db.Integer, db.ForeignKey("service_categories.category_id"), nullable=False, index=True
    )
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(120), nullable=False, index=True)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    category = db.relationship("ServiceCategory", back_populates="types")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.type_id,
            "name": self.name,
            "slug": self.slug,
            "categoryId": self.category_id,
        }


class Service(db.Model):
    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.salon_id"), nullable=False, index=True)
    type_id = db.Column(db.Integer, db.ForeignKey("service_types.type_id"), index=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    mode = db.Column(
        db.Enum(*MODES, name="service_mode", native_enum=False, validate_strings=True),
        nullable=False,
        default="toSalon",
    )
    price = db.Column(db.Float, nullable=False)
    base_price = db.Column(db.Float)
    discounted_price = db.Column(db.Float)
    home_price = db.Column(db.Float)
    duration_minutes = db.Column(db.Integer, nullable=False, default=30)
    tags = db.Column(db.Text)
    image_url = db.Column(db.String(500))
    booking_count = db.Column(db.Integer, nullable=False, default=0)
    is_popular = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    salon = db.relationship("Salon", back_populates="services")
    service_type = db.relationship("ServiceType")
    audiences = db.relationship("ServiceAudience", cascade="all, delete-orphan", lazy="selectin")

    @property
    def final_price(self) -> float:
        return self.discounted_price or self.price

    @property
    def audience(self) -> list[str]:
        return sorted(entry.audience for entry in self.audiences)

    @audience.setter
    def audience(self, values) -> None:
        self.audiences = [ServiceAudience(audience=value) for value in dict.fromkeys(values or [])]

    @property
    def tag_list(self) -> list[str]:
        return split_tags(self.tags)


class ServiceAudience(db.Model):
    __tablename__ = "service_audiences"

    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), primary_key=True)
    audience = db.Column(
        db.Enum(*AUDIENCES, name="service_audience", native_enum=False, validate_strings=True),
        primary_key=True,
    )


class Provider(db.Model):
    __tablename__ = "providers"

    provider_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), unique=True, nullable=False)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.salon_id"), index=True)
    phone = db.Column(db.String(30))
    avatar = db.Column(db.String(500))
    bio = db.Column(db.Text)
    specialization = db.Column(db.Text)
    experience_years = db.Column(db.Integer, nullable=False, default=0)
    offers_home_service = db.Column(db.Boolean, nullable=False, default=False)
    home_service_fee = db.Column(db.Float, nullable=False, default=0)
    average_rating = db.Column(db.Float, nullable=False, default=0)
    total_reviews = db.Column(db.Integer, nullable=False, default=0)
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    user = db.relationship("User", lazy="joined")
    salon = db.relationship("Salon", back_populates="providers")
    home_areas = db.relationship("Area", secondary=provider_home_areas)
    availability = db.relationship(
        "ProviderAvailability",
        cascade="all, delete-orphan",
        order_by="ProviderAvailability.day_of_week",
    )

    @property
    def specializations(self) -> list[str]:
        return split_tags(self.specialization)


class ProviderAvailability(db.Model):
    __tablename__ = "provider_availability"

    availability_id = db.Column(db.Integer, primary_key=True)
    provider_id = db.Column(db.Integer, db.ForeignKey("providers.provider_id"), nullable=False, index=True)
    # 0 = Sunday ... 6 = Saturday
    day_of_week = db.Column(db.Integer, nullable=False)
    start_time = db.Column(db.String(5), nullable=False)
    end_time = db.Column(db.String(5), nullable=False)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict[str, object]:
        return {
            "dayOfWeek": self.day_of_week,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "isAvailable": self.is_available,
        }


class Booking(db.Model):
    __tablename__ = "bookings"

    booking_id = db.Column(db.Integer, primary_key=True)
    booking_number = db.Column(db.String(10), unique=True, nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.salon_id"), nullable=False, index=True)
    provider_id = db.Column(db.Integer, db.ForeignKey("providers.provider_id"))
    promo_code_id = db.Column(db.Integer, db.ForeignKey("promo_codes.promo_id"))
    booking_type = db.Column(
        db.Enum("salon", "home", name="booking_type", native_enum=False, validate_strings=True),
        nullable=False,
        default="salon",
    )
    booking_date = db.Column(db.Date, nullable=False)
    booking_time = db.Column(db.String(5), nullable=False)
    total_amount = db.Column(db.Float, nullable=False, default=0)
    discount_amount = db.Column(db.Float, nullable=False, default=0)
    final_amount = db.Column(db.Float, nullable=False, default=0)
    status = db.Column(
        db.Enum(*BOOKING_STATUSES, name="booking_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="pending",
    )
    home_address = db.Column(db.JSON)
    notes = db.Column(db.Text)
    cancellation_reason = db.Column(db.Text)
    cancelled_by = db.Column(db.String(20))
    cancelled_at = db.Column(db.DateTime)
    confirmed_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    customer = db.relationship("User")
    salon = db.relationship("Salon")
    provider = db.relationship("Provider")
    promo_code = db.relationship("PromoCode")
    items = db.relationship("BookingItem", back_populates="booking", cascade="all, delete-orphan")


class BookingItem(db.Model):
    __tablename__ = "booking_items"

    item_id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.booking_id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Float, nullable=False)

    booking = db.relationship("Booking", back_populates="items")
    service = db.relationship("Service")


class SalonReview(db.Model):
    __tablename__ = "salon_reviews"
    __table_args__ = (
        db.UniqueConstraint("salon_id", "customer_id", "booking_id", name="uq_salon_review"),
    )

    review_id = db.Column(db.Integer, primary_key=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.salon_id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.booking_id"))
    rating = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(150))
    comment = db.Column(db.Text)
    cleanliness_rating = db.Column(db.Integer)
    service_rating = db.Column(db.Integer)
    value_rating = db.Column(db.Integer)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    customer = db.relationship("User")
    salon = db.relationship("Salon")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.review_id,
            "salonId": self.salon_id,
            "customer": self.customer.to_dict_basic() if self.customer else None,
            "bookingId": self.booking_id,
            "rating": self.rating,
            "title": self.title,
            "comment": self.comment,
            "subRatings": {
                "cleanliness": self.cleanliness_rating,
                "service": self.service_rating,
                "value": self.value_rating,
            },
            "isVerified": self.is_verified,
            "createdAt": isoformat(self.created_at),
        }


class ProviderReview(db.Model):
    __tablename__ = "provider_reviews"
    __table_args__ = (
        db.UniqueConstraint("provider_id", "customer_id", "booking_id", name="uq_provider_review"),
    )

    review_id = db.Column(db.Integer, primary_key=True)
    provider_id = db.Column(db.Integer, db.ForeignKey("providers.provider_id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.booking_id"))
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    customer = db.relationship("User")
    provider = db.relationship("Provider")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.review_id,
            "providerId": self.provider_id,
            "customer": self.customer.to_dict_basic() if self.customer else None,
            "bookingId": self.booking_id,
            "rating": self.rating,
            "comment": self.comment,
            "isVerified": self.is_verified,
            "createdAt": isoformat(self.created_at),
        }


class Favorite(db.Model):
    __tablename__ = "favorites"
    __table_args__ = (db.UniqueConstraint("user_id", "salon_id", name="uq_favorite_user_salon"),)

    favorite_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.salon_id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    salon = db.relationship("Salon")


class Notification(db.Model):
    __tablename__ = "notifications"

    notification_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.booking_id"))
    type = db.Column(
        db.Enum(*NOTIFICATION_TYPES, name="notification_type", native_enum=False, validate_strings=True),
        nullable=False,
        default="system",
    )
    title = db.Column(db.String(150), nullable=False)
    message = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.notification_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "bookingId": self.booking_id,
            "data": self.data,
            "isRead": self.is_read,
            "readAt": isoformat(self.read_at),
            "createdAt": isoformat(self.created_at),
        }


class PromoCode(db.Model):
    __tablename__ = "promo_codes"

    promo_id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), unique=True, nullable=False)
    description = db.Column(db.String(255))
    discount_type = db.Column(
        db.Enum("percentage", "fixed", name="discount_type", native_enum=False, validate_strings=True),
        nullable=False,
    )
    discount_value = db.Column(db.Float, nullable=False)
    max_discount = db.Column(db.Float)
    min_booking_amount = db.Column(db.Float, nullable=False, default=0)
    valid_from = db.Column(db.DateTime, nullable=False, default=utc_now)
    valid_until = db.Column(db.DateTime, nullable=False)
    max_uses = db.Column(db.Integer)
    max_uses_per_user = db.Column(db.Integer, nullable=False, default=1)
    current_uses = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def is_valid(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        if not self.is_active:
            return False
        if not as_utc(self.valid_from) <= now <= as_utc(self.valid_until):
            return False
        if self.max_uses is not None and self.current_uses >= self.max_uses:
            return False
        return True

    def calculate_discount(self, amount: float) -> float:
        if amount < (self.min_booking_amount or 0):
            return 0.0
        if self.discount_type == "percentage":
            discount = amount * self.discount_value / 100
            if self.max_discount is not None:
                discount = min(discount, self.max_discount)
        else:
            discount = min(self.discount_value, amount)
        return float(Decimal(str(discount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.promo_id,
            "code": self.code,
            "description": self.description,
            "discountType": self.discount_type,
            "discountValue": self.discount_value,
            "maxDiscount": self.max_discount,
            "minBookingAmount": self.min_booking_amount,
            "validFrom": isoformat(self.valid_from),
            "validUntil": isoformat(self.valid_until),
        }


class Short(db.Model):
    __tablename__ = "shorts"

    short_id = db.Column(db.Integer, primary_key=True)
    creator_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.salon_id"), index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    video_url = db.Column(db.String(500), nullable=False)
    thumbnail_url = db.Column(db.String(500))
    platform = db.Column(
        db.Enum("native", "youtube", "instagram", "tiktok", name="short_platform", native_enum=False,
                validate_strings=True),
        nullable=False,
        default="native",
    )
    duration_seconds = db.Column(db.Integer)
    category = db.Column(db.String(60), index=True)
    tags = db.Column(db.Text)
    view_count = db.Column(db.Integer, nullable=False, default=0)
    like_count = db.Column(db.Integer, nullable=False, default=0)
    comment_count = db.Column(db.Integer, nullable=False, default=0)
    share_count = db.Column(db.Integer, nullable=False, default=0)
    is_featured = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    creator = db.relationship("User")
    salon = db.relationship("Salon")

    @property
    def tag_list(self) -> list[str]:
        return split_tags(self.tags)


class ShortLike(db.Model):
    __tablename__ = "short_likes"
    __table_args__ = (db.UniqueConstraint("short_id", "user_id", name="uq_short_like"),)

    like_id = db.Column(db.Integer, primary_key=True)
    short_id = db.Column(db.Integer, db.ForeignKey("shorts.short_id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)


class ShortBookmark(db.Model):
    __tablename__ = "short_bookmarks"
    __table_args__ = (db.UniqueConstraint("short_id", "user_id", name="uq_short_bookmark"),)

    bookmark_id = db.Column(db.Integer, primary_key=True)
    short_id = db.Column(db.Integer, db.ForeignKey("shorts.short_id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    short = db.relationship("Short")


class ShortComment(db.Model):
    __tablename__ = "short_comments"

    comment_id = db.Column(db.Integer, primary_key=True)
    short_id = db.Column(db.Integer, db.ForeignKey("shorts.short_id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    user = db.relationship("User")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.comment_id,
            "shortId": self.short_id,
            "user": self.user.to_dict_basic() if self.user else None,
            "text": self.text,
            "createdAt": isoformat(self.created_at),
        }


class CreatorFollow(db.Model):
    __tablename__ = "creator_follows"
    __table_args__ = (db.UniqueConstraint("follower_id", "creator_id", name="uq_creator_follow"),)

    follow_id = db.Column(db.Integer, primary_key=True)
    follower_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    creator_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
