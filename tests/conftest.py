"""pytest configuration: path management, the app under test and data builders."""
from __future__ import annotations

import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from werkzeug.security import generate_password_hash

from stylio import create_app
from stylio.auth import build_access_token
from stylio.config import TestingConfig
from stylio.extensions import db
from stylio.models import (Area, AuthAccount, City, Provider, ProviderAvailability, Salon, Service,
                           ServiceCategory, ServiceType, User)

# Reference point used throughout the geo tests (central Bangalore).
ORIGIN = (12.9716, 77.5946)


@pytest.fixture
def app():
    flask_app = create_app(TestingConfig)
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(username: str, role: str = "customer", password: str = "password123", **fields) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        first_name=fields.pop("first_name", username.capitalize()),
        last_name=fields.pop("last_name", "Tester"),
        role=role,
        **fields,
    )
    db.session.add(user)
    db.session.add(AuthAccount(user=user, password_hash=generate_password_hash(password)))
    db.session.commit()
    return user


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {build_access_token(user)}"}


def next_weekday(weekday: int = 1) -> date:
    """The next date strictly after today with ``date.weekday() == weekday``."""
    today = date.today()
    days = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=days)


@pytest.fixture
def customer(app):
    return make_user("carol")


@pytest.fixture
def owner(app):
    return make_user("oscar", role="provider")


@pytest.fixture
def catalog(app, owner):
    """One city, three areas, a small service catalog and four salons around ORIGIN.

    Distances from ORIGIN: glow ~0 m, barber ~1.4 km, family ~5.2 km, faraway ~30 km.
    """
    city = City(name="Bangalore", slug="bangalore", latitude=ORIGIN[0], longitude=ORIGIN[1])
    indiranagar = Area(city=city, name="Indiranagar", slug="indiranagar")
    mg_road = Area(city=city, name="MG Road", slug="mg-road")
    koramangala = Area(city=city, name="Koramangala", slug="koramangala")

    hair = ServiceCategory(name="Hair", slug="hair")
    skin = ServiceCategory(name="Skin", slug="skin")
    haircut = ServiceType(category=hair, name="Haircut", slug="haircut")
    facial = ServiceType(category=skin, name="Facial", slug="facial")
    db.session.add_all([city, indiranagar, mg_road, koramangala, hair, skin, haircut, facial])
    db.session.flush()

    def salon(name, area, lat, lng, mode, audience, **fields):
        record = Salon(
            owner_id=owner.user_id,
            name=name,
            slug=name.lower().replace(" ", "-"),
            area_id=area.area_id if area else None,
            city_id=city.city_id,
            latitude=lat,
            longitude=lng,
            mode=mode,
            **fields,
        )
        record.audience = audience
        db.session.add(record)
        return record

    glow = salon("Glow Studio", indiranagar, 12.9716, 77.5946, "both", ["women"],
                 average_rating=4.6, price_level=2, popularity_score=90, has_wifi=True, tags="bridal,hair")
    barber = salon("The Barber Room", mg_road, 12.9756, 77.6066, "toSalon", ["men"],
                   average_rating=4.2, price_level=1, popularity_score=70, has_parking=True)
    family = salon("Family Cuts", koramangala, 12.9352, 77.6245, "toHome", ["unisex"],
                   average_rating=3.9, price_level=3, popularity_score=50, has_wifi=True)
    faraway = salon("Faraway Spa", None, 13.2400, 77.7000, "toSalon", ["women"],
                    average_rating=4.9, price_level=4, popularity_score=95)
    db.session.flush()

    def service(record, name, service_type, price, mode="toSalon", home_price=None, audience=("unisex",)):
        item = Service(salon_id=record.salon_id, type_id=service_type.type_id, name=name, price=price,
                       mode=mode, home_price=home_price)
        item.audience = list(audience)
        db.session.add(item)
        return item

    glow_cut = service(glow, "Haircut", haircut, 500, mode="both", home_price=650, audience=("women",))
    glow_facial = service(glow, "Gold Facial", facial, 1500, audience=("women",))
    barber_cut = service(barber, "Classic Haircut", haircut, 300, audience=("men",))
    family_cut = service(family, "Kids Haircut", haircut, 700, mode="toHome", home_price=800)
    faraway_facial = service(faraway, "Spa Facial", facial, 2500, audience=("women",))

    stylist_user = make_user("stella", role="provider")
    stylist = Provider(user_id=stylist_user.user_id, salon_id=glow.salon_id, specialization="bridal,colour",
                       experience_years=6, average_rating=4.8, offers_home_service=True)
    stylist.availability = [
        ProviderAvailability(day_of_week=day, start_time="10:00", end_time="18:00") for day in range(1, 7)
    ]
    db.session.add(stylist)
    db.session.commit()

    return {
        "city": city,
        "areas": {"indiranagar": indiranagar, "mg_road": mg_road, "koramangala": koramangala},
        "salons": {"glow": glow, "barber": barber, "family": family, "faraway": faraway},
        "services": {
            "glow_cut": glow_cut,
            "glow_facial": glow_facial,
            "barber_cut": barber_cut,
            "family_cut": family_cut,
            "faraway_facial": faraway_facial,
        },
        "stylist": stylist,
        "stylist_user": stylist_user,
    }
