"""Unit tests for the filter clause builders."""
from __future__ import annotations

from types import SimpleNamespace

from stylio.extensions import db
from stylio.models import Salon
from stylio.search.filters import (audience_values, build_salon_filter, escape_like, mode_values,
                                   range_clauses, resolve_service_types)


def test_escape_like_neutralises_wildcards() -> None:
    assert escape_like("50%_off") == "50\\%\\_off"
    assert escape_like("back\\slash") == "back\\\\slash"
    assert escape_like("plain") == "plain"


def test_mode_both_matches_every_mode() -> None:
    assert set(mode_values("both")) == {"toSalon", "toHome", "both"}


def test_specific_mode_also_matches_both() -> None:
    assert mode_values("toHome") == ["toHome", "both"]
    assert mode_values("toSalon") == ["toSalon", "both"]


def test_audience_always_includes_unisex() -> None:
    assert audience_values("women") == ["women", "unisex"]
    assert audience_values("unisex") == ["unisex"]


def test_range_clauses_only_for_given_bounds() -> None:
    assert range_clauses(Salon.average_rating) == []
    assert len(range_clauses(Salon.average_rating, low=3)) == 1
    assert len(range_clauses(Salon.average_rating, low=3, high=4.5)) == 2


def test_feature_flags_only_filter_when_true(app) -> None:
    base = build_salon_filter(SimpleNamespace(), db.session)
    unset = build_salon_filter(SimpleNamespace(has_parking=False, has_wifi=None), db.session)
    wanted = build_salon_filter(SimpleNamespace(has_parking=True, has_wifi=True), db.session)

    assert len(base) == 1  # active salons only
    assert len(unset) == len(base)
    assert len(wanted) == len(base) + 2


def test_resolve_service_types_by_slug_and_id(app, catalog) -> None:
    haircut_id = catalog["services"]["glow_cut"].type_id

    assert resolve_service_types(db.session) is None
    assert resolve_service_types(db.session, category="hair") == [haircut_id]
    assert resolve_service_types(db.session, service_type=str(haircut_id)) == [haircut_id]
    assert resolve_service_types(db.session, category="no-such-category") == []
