"""HTTP routes for health, authentication, user accounts and locations."""
from __future__ import annotations

from flask import Blueprint, Flask, current_app, g, jsonify, request
from sqlalchemy import func, or_, select, text, union, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from .auth import decode_refresh_token, issue_tokens, login_required
from .errors import Conflict, NotFound, Unauthorized, ValidationFailed
from .extensions import db
from .models import Address, Area, AuthAccount, City, Salon, User, utc_now
from .responses import ok
from .schemas import (AddressBody, AreaQuery, CityQuery, LoginBody, PasswordChangeBody,
                      ProfileUpdateBody, RefreshBody, RegisterBody)
from .search.filters import escape_like
from .validation import parse_body, parse_query

bp = Blueprint("api", __name__)


def register_routes(app: Flask) -> None:
    from .routes_discovery import bp_discovery
    from .routes_extended import bp_ext

    app.register_blueprint(bp)
    app.register_blueprint(bp_discovery)
    app.register_blueprint(bp_ext)


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- authentication ----------------------------------------------------------


@bp.post("/auth/register")
def register_user() -> tuple[dict[str, object], int]:
    """Register a new customer account and log it in.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            username:
              type: string
            email:
              type: string
            password:
              type: string
              minLength: 8
            firstName:
              type: string
            lastName:
              type: string
            phone:
              type: string
          required:
            - username
            - email
            - password
    responses:
      201:
        description: User registered, tokens issued
      400:
        description: Invalid payload, or email/username already in use
    """
    body = parse_body(RegisterBody)

    taken = db.session.scalar(
        select(User).where(or_(User.email == body.email, User.username == body.username))
    )
    if taken is not None:
        field = "email" if taken.email == body.email else "username"
        raise Conflict(f"{field} is already in use", errors=[{"field": field, "message": "already in use"}])

    user = User(
        username=body.username,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
        role="customer",
    )
    account = AuthAccount(user=user, password_hash=generate_password_hash(body.password))
    db.session.add_all([user, account])
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise Conflict("email or username is already in use") from exc

    tokens = issue_tokens(user, account)
    account.last_login_at = utc_now()
    db.session.commit()

    current_app.logger.info("Registered user %s", user.user_id)
    return ok({"user": user.to_dict(), **tokens}, message="Registration successful", status=201)


@bp.post("/auth/login")
def login() -> tuple[dict[str, object], int]:
    """Authenticate by email or username and password.
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Login successful, returns access and refresh tokens
      401:
        description: Invalid credentials or deactivated account
    """
    body = parse_body(LoginBody)
    identifier = body.identifier.lower()

    record = db.session.execute(
        select(User, AuthAccount)
        .join(AuthAccount, AuthAccount.user_id == User.user_id)
        .where(or_(User.email == identifier, User.username == identifier))
    ).first()

    if record is None:
        raise Unauthorized("Invalid credentials")

    user, account = record
    if not check_password_hash(account.password_hash, body.password):
        raise Unauthorized("Invalid credentials")
    if not user.is_active:
        raise Unauthorized("Account is deactivated")

    tokens = issue_tokens(user, account)
    account.last_login_at = utc_now()
    db.session.commit()

    return ok({"user": user.to_dict(), **tokens}, message="Login successful")


@bp.post("/auth/refresh-token")
def refresh_token() -> tuple[dict[str, object], int]:
    """Exchange a refresh token for a new token pair."""
    body = parse_body(RefreshBody)
    payload = decode_refresh_token(body.refresh_token)

    account = db.session.scalar(select(AuthAccount).where(AuthAccount.user_id == payload.get("user_id")))
    if account is None or account.refresh_token != body.refresh_token:
        raise Unauthorized("Invalid refresh token")
    if not account.user.is_active:
        raise Unauthorized("Account is deactivated")

    tokens = issue_tokens(account.user, account)
    db.session.commit()
    return ok(tokens)


@bp.post("/auth/logout")
@login_required
def logout() -> tuple[dict[str, object], int]:
    account = g.current_user.auth_account
    if account is not None:
        account.refresh_token = None
        db.session.commit()
    return ok(message="Logged out successfully")


# --- users ---------------------------------------------------------------------


@bp.get("/users/profile")
@login_required
def get_profile() -> tuple[dict[str, object], int]:
    """Return the authenticated user's profile and saved addresses.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    """
    user = g.current_user
    data = user.to_dict()
    data["addresses"] = [address.to_dict() for address in user.addresses]
    return ok({"user": data})


@bp.patch("/users/profile")
@login_required
def update_profile() -> tuple[dict[str, object], int]:
    """Update names, phone or avatar.

    The avatar is either a URL or an inline ``data:`` URI; inline blobs are
    stored as-is up to ``MAX_AVATAR_BYTES``.
    """
    body = parse_body(ProfileUpdateBody)
    user = g.current_user

    if body.avatar is not None:
        if body.avatar.startswith("data:") and len(body.avatar) > current_app.config["MAX_AVATAR_BYTES"]:
            raise ValidationFailed.for_field("avatar", "Avatar image is too large")
        user.avatar = body.avatar

    for attr in ("first_name", "last_name", "phone"):
        value = getattr(body, attr)
        if value is not None:
            setattr(user, attr, value)

    db.session.commit()
    return ok({"user": user.to_dict()}, message="Profile updated")


@bp.patch("/users/password")
@login_required
def change_password() -> tuple[dict[str, object], int]:
    body = parse_body(PasswordChangeBody)
    account = g.current_user.auth_account
    if account is None or not check_password_hash(account.password_hash, body.current_password):
        raise ValidationFailed.for_field("currentPassword", "Current password is incorrect")

    account.password_hash = generate_password_hash(body.new_password)
    account.refresh_token = None
    db.session.commit()
    return ok(message="Password changed successfully")


@bp.get("/users/addresses")
@login_required
def list_addresses() -> tuple[dict[str, object], int]:
    return ok({"addresses": [address.to_dict() for address in g.current_user.addresses]})


def _clear_default_address(user_id: int) -> None:
    db.session.execute(
        update(Address).where(Address.user_id == user_id, Address.is_default.is_(True)).values(is_default=False)
    )


@bp.post("/users/addresses")
@login_required
def add_address() -> tuple[dict[str, object], int]:
    """Save an address. The first address, or one sent with isDefault, becomes the default."""
    body = parse_body(AddressBody)
    user = g.current_user

    make_default = body.is_default or not user.addresses
    if make_default:
        _clear_default_address(user.user_id)

    address = Address(
        user_id=user.user_id,
        label=body.label,
        street=body.street,
        city=body.city,
        state=body.state,
        pincode=body.pincode,
        latitude=body.lat,
        longitude=body.lng,
        is_default=make_default,
    )
    db.session.add(address)
    db.session.commit()
    return ok({"address": address.to_dict()}, message="Address added", status=201)


def _own_address(address_id: int) -> Address:
    address = db.session.get(Address, address_id)
    if address is None or address.user_id != g.current_user.user_id:
        raise NotFound("Address not found")
    return address


@bp.patch("/users/addresses/<int:address_id>/default")
@login_required
def set_default_address(address_id: int) -> tuple[dict[str, object], int]:
    address = _own_address(address_id)
    _clear_default_address(address.user_id)
    address.is_default = True
    db.session.commit()
    return ok({"address": address.to_dict()}, message="Default address updated")


@bp.delete("/users/addresses/<int:address_id>")
@login_required
def delete_address(address_id: int) -> tuple[dict[str, object], int]:
    address = _own_address(address_id)
    was_default = address.is_default
    db.session.delete(address)
    db.session.flush()

    if was_default:
        replacement = db.session.scalar(
            select(Address).where(Address.user_id == g.current_user.user_id).order_by(Address.address_id)
        )
        if replacement is not None:
            replacement.is_default = True

    db.session.commit()
    return ok(message="Address deleted")


# --- locations -----------------------------------------------------------------


def _salon_counts(column):
    return dict(db.session.execute(
        select(column, func.count(Salon.salon_id))
        .where(Salon.is_active.is_(True), column.is_not(None))
        .group_by(column)
    ).all())


def _city_salon_counts():
    """Active salons per city, linked directly or through one of its areas."""
    direct = select(Salon.city_id.label("city_id"), Salon.salon_id).where(
        Salon.is_active.is_(True), Salon.city_id.is_not(None)
    )
    via_area = (
        select(Area.city_id.label("city_id"), Salon.salon_id)
        .select_from(Salon)
        .join(Area, Salon.area_id == Area.area_id)
        .where(Salon.is_active.is_(True))
    )
    links = union(direct, via_area).subquery()
    return dict(db.session.execute(
        select(links.c.city_id, func.count(links.c.salon_id)).group_by(links.c.city_id)
    ).all())


@bp.get("/cities")
def list_cities() -> tuple[dict[str, object], int]:
    """List active cities with their active salon counts.
    ---
    tags:
      - Locations
    parameters:
      - name: search
        in: query
        type: string
    """
    params = parse_query(CityQuery)
    stmt = select(City).where(City.is_active.is_(True)).order_by(City.name)
    if params.search:
        stmt = stmt.where(City.name.ilike(f"%{escape_like(params.search)}%", escape="\\"))

    counts = _city_salon_counts()
    cities = []
    for city in db.session.scalars(stmt):
        data = city.to_dict()
        data["salonCount"] = counts.get(city.city_id, 0)
        cities.append(data)
    return ok({"cities": cities})


@bp.get("/cities/<int:city_id>")
def get_city(city_id: int) -> tuple[dict[str, object], int]:
    city = db.session.get(City, city_id)
    if city is None or not city.is_active:
        raise NotFound("City not found")
    data = city.to_dict()
    data["areas"] = [area.to_dict() for area in city.areas if area.is_active]
    return ok({"city": data})


@bp.get("/areas")
def list_areas() -> tuple[dict[str, object], int]:
    """List active areas, optionally within one city, with salon counts.
    ---
    tags:
      - Locations
    parameters:
      - name: city
        in: query
        type: integer
      - name: search
        in: query
        type: string
    """
    params = parse_query(AreaQuery)
    stmt = select(Area).where(Area.is_active.is_(True)).order_by(Area.name)
    if params.city_id is not None:
        stmt = stmt.where(Area.city_id == params.city_id)
    if params.search:
        stmt = stmt.where(Area.name.ilike(f"%{escape_like(params.search)}%", escape="\\"))

    counts = _salon_counts(Salon.area_id)
    areas = []
    for area in db.session.scalars(stmt):
        data = area.to_dict()
        data["salonCount"] = counts.get(area.area_id, 0)
        areas.append(data)
    return ok({"areas": areas})


@bp.get("/areas/<int:area_id>")
def get_area(area_id: int) -> tuple[dict[str, object], int]:
    area = db.session.get(Area, area_id)
    if area is None or not area.is_active:
        raise NotFound("Area not found")
    return ok({"area": area.to_dict()})
