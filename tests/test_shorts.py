"""Short videos: listing, counters, likes, bookmarks, comments and follows."""
from __future__ import annotations

from datetime import timedelta

import pytest

from stylio.extensions import db
from stylio.models import Notification, Short, utc_now

from conftest import auth_headers, make_user


@pytest.fixture
def shorts(app, owner):
    records = [
        Short(creator_id=owner.user_id, title="Balayage in 60s", video_url="https://v/1.mp4", category="hair",
              view_count=950, like_count=10, is_featured=True),
        Short(creator_id=owner.user_id, title="Bridal glow", video_url="https://v/2.mp4", category="makeup",
              platform="youtube", view_count=2_300_000, like_count=1500),
        Short(creator_id=owner.user_id, title="Old nail art", video_url="https://v/3.mp4", category="nails",
              view_count=1_000_000, like_count=20_000, created_at=utc_now() - timedelta(days=30)),
    ]
    db.session.add_all(records)
    db.session.commit()
    return records


def test_list_sorted_by_views_with_formatted_counts(client, shorts) -> None:
    response = client.get("/shorts")
    items = response.get_json()["data"]["shorts"]

    assert [item["title"] for item in items] == ["Bridal glow", "Old nail art", "Balayage in 60s"]
    assert items[0]["formatted"]["views"] == "2.3M"
    assert items[0]["formatted"]["likes"] == "1.5K"
    assert items[1]["formatted"]["views"] == "1M"
    assert items[2]["formatted"]["views"] == "950"
    assert "isLiked" not in items[0]


def test_filters_and_sort(client, shorts) -> None:
    assert [s["title"] for s in client.get("/shorts?featured=true").get_json()["data"]["shorts"]] == [
        "Balayage in 60s"
    ]
    assert [s["title"] for s in client.get("/shorts?platform=youtube").get_json()["data"]["shorts"]] == [
        "Bridal glow"
    ]
    assert client.get("/shorts?sortBy=likes").get_json()["data"]["shorts"][0]["title"] == "Old nail art"


def test_legacy_counter_aliases(client, shorts) -> None:
    item = client.get("/shorts?apiVersion=legacy").get_json()["data"]["shorts"][0]

    assert item["viewsCount"] == item["viewCount"]
    assert item["likesCount"] == item["likeCount"]


def test_trending_only_covers_recent_shorts(client, shorts) -> None:
    titles = [item["title"] for item in client.get("/shorts/trending").get_json()["data"]["shorts"]]

    assert titles == ["Bridal glow", "Balayage in 60s"]


def test_view_counter(client, shorts) -> None:
    short_id = shorts[0].short_id

    response = client.post(f"/shorts/{short_id}/view")

    assert response.get_json()["data"] == {"viewCount": 951, "formattedViews": "951"}


def test_like_toggle(client, shorts, customer) -> None:
    short_id = shorts[0].short_id
    headers = auth_headers(customer)

    liked = client.post(f"/shorts/{short_id}/like", headers=headers).get_json()["data"]
    detail = client.get(f"/shorts/{short_id}", headers=headers).get_json()["data"]["short"]
    unliked = client.post(f"/shorts/{short_id}/like", headers=headers).get_json()["data"]

    assert liked["liked"] is True
    assert liked["likeCount"] == 11
    assert detail["isLiked"] is True
    assert detail["isBookmarked"] is False
    assert unliked == {"liked": False, "likeCount": 10, "formattedLikes": "10"}


def test_bookmarks(client, shorts, customer) -> None:
    headers = auth_headers(customer)

    client.post(f"/shorts/{shorts[1].short_id}/bookmark", headers=headers)
    saved = client.get("/shorts/bookmarks", headers=headers).get_json()["data"]["shorts"]

    assert [item["title"] for item in saved] == ["Bridal glow"]
    assert saved[0]["isBookmarked"] is True


def test_comments(client, shorts, customer) -> None:
    short_id = shorts[0].short_id

    created = client.post(f"/shorts/{short_id}/comments", json={"text": "Gorgeous!"}, headers=auth_headers(customer))
    listing = client.get(f"/shorts/{short_id}/comments").get_json()["data"]

    assert created.status_code == 201
    assert listing["pagination"]["total"] == 1
    assert db.session.get(Short, short_id).comment_count == 1


def test_empty_comment_is_rejected(client, shorts, customer) -> None:
    response = client.post(f"/shorts/{shorts[0].short_id}/comments", json={"text": "   "},
                           headers=auth_headers(customer))

    assert response.status_code == 400


def test_follow_creator_toggle(client, shorts, owner, customer) -> None:
    headers = auth_headers(customer)

    followed = client.post(f"/shorts/creators/{owner.username}/follow", headers=headers).get_json()["data"]
    unfollowed = client.post(f"/shorts/creators/{owner.username}/follow", headers=headers).get_json()["data"]

    assert followed["following"] is True
    assert followed["followers"] == 1
    assert unfollowed == {"following": False, "followers": 0, "formattedFollowers": "0"}
    assert db.session.query(Notification).filter_by(user_id=owner.user_id).count() == 1


def test_cannot_follow_yourself(client, shorts, owner) -> None:
    response = client.post(f"/shorts/creators/{owner.username}/follow", headers=auth_headers(owner))

    assert response.status_code == 400


def test_unknown_short(client, shorts) -> None:
    assert client.get("/shorts/9999").status_code == 404
