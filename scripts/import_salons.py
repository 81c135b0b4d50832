#!/usr/bin/env python3
"""Import salons from a JSON export.

The file holds a list of salon documents. Older exports use ``rating`` for
the average rating and ``coverImage`` in place of ``thumbnailUrl``; those are
folded into the current fields on the way in.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import select

from stylio import create_app
from stylio.extensions import db
from stylio.models import Area, City, Salon, User, join_tags
from stylio.salons import unique_salon_slug
from stylio.search.formatters import normalize_document, pick


def _lookup(model, name_column, value):
    if value in (None, ""):
        return None
    return db.session.scalar(select(model).where(name_column == str(value)))


def build_salon(doc: dict, owner_id: int) -> Salon:
    data = normalize_document(doc)
    location = data.get("location") or {}
    city = _lookup(City, City.name, pick(data, "city", "cityName"))
    area = _lookup(Area, Area.name, pick(data, "area", "areaName"))

    salon = Salon(
        owner_id=owner_id,
        name=data["name"],
        slug=unique_salon_slug(data["name"]),
        description=data.get("description"),
        address=data.get("address"),
        latitude=pick(location, "lat", "latitude", default=data.get("latitude")),
        longitude=pick(location, "lng", "longitude", default=data.get("longitude")),
        city_id=city.city_id if city else (area.city_id if area else None),
        area_id=area.area_id if area else None,
        mode=data["mode"],
        average_rating=float(data["averageRating"]),
        total_reviews=int(data.get("totalReviews") or 0),
        price_level=int(data["priceLevel"]),
        thumbnail_url=data.get("thumbnailUrl"),
        cover_image=data.get("coverImage"),
        tags=join_tags(data.get("tags")),
        is_verified=bool(data.get("isVerified")),
    )
    audience = data.get("audience") or ["unisex"]
    salon.audience = [audience] if isinstance(audience, str) else audience
    return salon


def import_salons(path: Path, owner_email: str, dry_run: bool = False) -> int:
    app = create_app()
    documents = json.loads(path.read_text(encoding="utf-8"))

    with app.app_context():
        owner = db.session.scalar(select(User).where(User.email == owner_email.lower()))
        if owner is None:
            print(f"Owner '{owner_email}' not found. Create it with scripts/set_user_password.py first.")
            return 0

        imported = 0
        for doc in documents:
            if not doc.get("name"):
                print(f"Skipping document without a name: {doc}")
                continue
            db.session.add(build_salon(doc, owner.user_id))
            db.session.flush()
            imported += 1

        if dry_run:
            db.session.rollback()
            print(f"Dry run: {imported} salons would be imported")
        else:
            db.session.commit()
            print(f"Imported {imported} salons")
        return imported


def main() -> None:
    parser = argparse.ArgumentParser(description="Import salons from a JSON export.")
    parser.add_argument("path", type=Path, help="JSON file with a list of salon documents")
    parser.add_argument("--owner", required=True, help="Email of the user that will own the salons")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    import_salons(args.path, args.owner, args.dry_run)


if __name__ == "__main__":
    main()
