#!/usr/bin/env python3
"""Seed a local database with a city, areas, the service catalog and a few salons."""
import sys
from datetime import timedelta
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import func, select
from werkzeug.security import generate_password_hash

from stylio import create_app
from stylio.extensions import db
from stylio.models import (Area, AuthAccount, City, Provider, ProviderAvailability, PromoCode, Salon,
                           Service, ServiceCategory, ServiceType, Short, User, join_tags, utc_now)
from stylio.salons import recompute_popularity, slugify, unique_salon_slug

AREAS = [
    ("Indiranagar", "560038", 12.9784, 77.6408),
    ("Koramangala", "560034", 12.9352, 77.6245),
    ("MG Road", "560001", 12.9756, 77.6066),
]

CATALOG = {
    "Hair": ["Haircut", "Hair Colour", "Blow Dry"],
    "Skin": ["Facial", "Clean Up"],
    "Nails": ["Manicure", "Pedicure"],
}

SALONS = [
    {
        "name": "Glow Studio",
        "area": "Indiranagar",
        "lat": 12.9716, "lng": 77.5946,
        "mode": "both", "audience": ["women"],
        "price_level": 2, "rating": 4.6, "tags": ["bridal", "hair"],
        "services": [("Haircut", 500, 650), ("Facial", 1200, 1500), ("Manicure", 600, None)],
    },
    {
        "name": "The Barber Room",
        "area": "MG Road",
        "lat": 12.9756, "lng": 77.6066,
        "mode": "toSalon", "audience": ["men"],
        "price_level": 1, "rating": 4.2, "tags": ["beard", "grooming"],
        "services": [("Haircut", 300, None), ("Clean Up", 450, None)],
    },
    {
        "name": "Family Cuts Koramangala",
        "area": "Koramangala",
        "lat": 12.9352, "lng": 77.6245,
        "mode": "toHome", "audience": ["unisex"],
        "price_level": 3, "rating": 3.9, "tags": ["kids", "family"],
        "services": [("Haircut", 700, 800), ("Pedicure", 900, 1000), ("Blow Dry", 650, 750)],
    },
]


def _user(username: str, role: str, first_name: str) -> User:
    user = User(username=username, email=f"{username}@stylio.local", first_name=first_name,
                last_name="Demo", role=role)
    db.session.add(user)
    db.session.add(AuthAccount(user=user, password_hash=generate_password_hash("password123")))
    return user


def seed() -> None:
    app = create_app()

    with app.app_context():
        db.create_all()
        if db.session.scalar(select(func.count(City.city_id))):
            print("Database already seeded, nothing to do.")
            return

        city = City(name="Bangalore", slug="bangalore", state="Karnataka", latitude=12.9716, longitude=77.5946)
        db.session.add(city)
        areas = {}
        for name, pincode, lat, lng in AREAS:
            areas[name] = Area(city=city, name=name, slug=slugify(name), pincode=pincode,
                               latitude=lat, longitude=lng)
        db.session.add_all(areas.values())

        types = {}
        for order, (category_name, type_names) in enumerate(CATALOG.items()):
            category = ServiceCategory(name=category_name, slug=slugify(category_name), display_order=order)
            db.session.add(category)
            for type_name in type_names:
                types[type_name] = ServiceType(category=category, name=type_name, slug=slugify(type_name))
        db.session.add_all(types.values())

        owner = _user("owner", "provider", "Olivia")
        _user("customer", "customer", "Chris")
        _user("admin", "admin", "Ada")
        db.session.flush()

        for index, spec in enumerate(SALONS):
            salon = Salon(
                owner_id=owner.user_id,
                name=spec["name"],
                slug=unique_salon_slug(spec["name"]),
                address=f"{spec['area']}, Bangalore",
                area=areas[spec["area"]],
                city_id=city.city_id,
                latitude=spec["lat"],
                longitude=spec["lng"],
                mode=spec["mode"],
                price_level=spec["price_level"],
                average_rating=spec["rating"],
                tags=join_tags(spec["tags"]),
                has_wifi=True,
                has_ac=index != 1,
                has_parking=index == 0,
                offers_home_service=spec["mode"] != "toSalon",
                is_verified=index < 2,
            )
            salon.audience = spec["audience"]
            db.session.add(salon)
            db.session.flush()

            for name, price, home_price in spec["services"]:
                service = Service(
                    salon_id=salon.salon_id,
                    type_id=types[name].type_id,
                    name=name,
                    price=price,
                    home_price=home_price,
                    mode=spec["mode"] if home_price else "toSalon",
                    duration_minutes=45,
                )
                service.audience = spec["audience"]
                db.session.add(service)

            stylist = _user(f"stylist{index + 1}", "provider", f"Stylist{index + 1}")
            db.session.flush()
            provider = Provider(
                user_id=stylist.user_id,
                salon_id=salon.salon_id,
                specialization=join_tags(spec["tags"]),
                experience_years=3 + index * 2,
                offers_home_service=spec["mode"] != "toSalon",
            )
            provider.availability = [
                ProviderAvailability(day_of_week=day, start_time="10:00", end_time="19:00") for day in range(1, 7)
            ]
            db.session.add(provider)

            db.session.add(Short(
                creator_id=owner.user_id,
                salon_id=salon.salon_id,
                title=f"A look from {spec['name']}",
                video_url=f"https://videos.stylio.local/{salon.slug}.mp4",
                category=spec["tags"][0],
                view_count=1500 * (index + 1),
                like_count=120 * (index + 1),
            ))
            recompute_popularity(salon)

        db.session.add(PromoCode(
            code="WELCOME20",
            description="20% off your first booking",
            discount_type="percentage",
            discount_value=20,
            max_discount=300,
            min_booking_amount=500,
            valid_until=utc_now() + timedelta(days=90),
        ))
        db.session.commit()
        print(f"Seeded {len(SALONS)} salons in {city.name}")


if __name__ == "__main__":
    seed()
