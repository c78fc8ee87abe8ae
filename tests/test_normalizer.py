"""
Field Normalizer Tests — coverage for:
  - Authoring shape (nested locationDetails / historicalDetails) vs read shape
  - Classification labels, legacy isHeritage flag, derived isHeritage
  - Image / document flattening and malformed entries
  - Coordinates at the top level or nested, non-numeric degrade to None
  - Totality (never raises) and idempotence of normalize ∘ to_document
"""

import pytest

from heritage_cms.services.normalizer import (
    CanonicalChurch,
    content_fields,
    normalize,
    parse_classification,
    to_document,
)


# ═══════════════════════════════════════════════════════════════════════════
# Shapes
# ═══════════════════════════════════════════════════════════════════════════


class TestShapes:

    def test_authoring_shape(self, church_raw):
        church = normalize(church_raw)
        assert church.name == "Our Lady of the Assumption Parish"
        assert church.street_address == "Poblacion Road"
        assert church.barangay == "Poblacion"
        assert church.municipality == "Dauis"
        assert church.location == "Dauis"
        assert church.founding_year == 1697
        assert church.architectural_style == "Baroque"
        assert church.assigned_priest == "Fr. Juan Dela Cruz"
        assert church.heritage_classification == "none"
        assert church.is_heritage is False

    def test_read_shape(self):
        church = normalize({
            "id": "abc",
            "name": "Baclayon Church",
            "municipality": "Baclayon",
            "latitude": 9.6226,
            "longitude": 123.9125,
            "heritageClassification": "national_cultural_treasure",
            "foundingYear": 1727,
            "status": "approved",
        })
        assert church.id == "abc"
        assert church.latitude == pytest.approx(9.6226)
        assert church.longitude == pytest.approx(123.9125)
        assert church.heritage_classification == "national_cultural_treasure"
        assert church.is_heritage is True
        assert church.status == "approved"

    def test_flat_fields_win_over_nested(self):
        church = normalize({
            "municipality": "Loboc",
            "locationDetails": {"municipality": "Loay"},
        })
        assert church.municipality == "Loboc"

    def test_founded_year_fallback(self):
        assert normalize({"foundedYear": "1602"}).founding_year == 1602
        assert normalize({"foundingYear": "around 1600"}).founding_year is None

    def test_unknown_status_defaults_to_draft(self):
        assert normalize({"status": "archived"}).status == "draft"
        assert normalize({}).status == "draft"


# ═══════════════════════════════════════════════════════════════════════════
# Classification
# ═══════════════════════════════════════════════════════════════════════════


class TestClassification:

    @pytest.mark.parametrize("label, expected", [
        ("ICP", "important_cultural_property"),
        ("icp", "important_cultural_property"),
        ("Important Cultural Properties", "important_cultural_property"),
        ("important_cultural_property", "important_cultural_property"),
        ("NCT", "national_cultural_treasure"),
        ("National Cultural Treasures", "national_cultural_treasure"),
        ("non-heritage", "none"),
        ("none", "none"),
        ("something else", "none"),
    ])
    def test_labels(self, label, expected):
        assert parse_classification(label) == expected

    def test_non_string_is_absent(self):
        assert parse_classification(None) is None
        assert parse_classification(3) is None
        assert parse_classification("  ") is None

    def test_new_key_wins_over_legacy(self):
        church = normalize({"heritageClassification": "NCT", "classification": "ICP"})
        assert church.heritage_classification == "national_cultural_treasure"

    def test_nested_historical_details(self):
        church = normalize({"historicalDetails": {"heritageClassification": "ICP"}})
        assert church.heritage_classification == "important_cultural_property"

    def test_legacy_is_heritage_flag(self):
        church = normalize({"isHeritage": True})
        assert church.heritage_classification == "important_cultural_property"
        assert church.is_heritage is True

    def test_is_heritage_flag_never_overrides_classification(self):
        church = normalize({"classification": "non-heritage", "isHeritage": True})
        assert church.heritage_classification == "none"
        assert church.is_heritage is False


# ═══════════════════════════════════════════════════════════════════════════
# Media + coordinates
# ═══════════════════════════════════════════════════════════════════════════


class TestMediaAndCoordinates:

    def test_images_flattened(self):
        church = normalize({
            "images": [
                "https://img/a.jpg",
                {"url": "https://img/b.jpg", "caption": "Facade"},
                ["https://img/c.jpg", {"url": "https://img/d.jpg"}],
                {"caption": "no url"},
                42,
                "",
            ],
        })
        assert church.images == [
            "https://img/a.jpg",
            "https://img/b.jpg",
            "https://img/c.jpg",
            "https://img/d.jpg",
        ]

    def test_photos_fallback(self):
        assert normalize({"photos": [{"url": "p.jpg"}]}).images == ["p.jpg"]
        assert normalize({"images": ["i.jpg"], "photos": ["p.jpg"]}).images == ["i.jpg"]

    def test_documents_flattened(self):
        assert normalize({"documents": [{"url": "deed.pdf"}, None]}).documents == ["deed.pdf"]
        assert normalize({"documents": "deed.pdf"}).documents == []

    def test_nested_coordinates(self):
        church = normalize({"coordinates": {"latitude": "9.85", "longitude": "124.14"}})
        assert church.latitude == pytest.approx(9.85)
        assert church.longitude == pytest.approx(124.14)

    @pytest.mark.parametrize("lat", ["north", None, float("nan"), 200, True, {"deg": 9}])
    def test_bad_latitude_degrades_to_none(self, lat):
        assert normalize({"latitude": lat, "longitude": 124.0}).latitude is None

    def test_virtual_tour_requires_scenes(self):
        assert normalize({"virtualTour": {"scenes": "nope"}}).virtual_tour is None
        tour = normalize({"virtualTour": {"title": "Nave", "scenes": [{"id": "s1"}, "junk"]}}).virtual_tour
        assert tour == {"title": "Nave", "scenes": [{"id": "s1"}]}

    def test_mass_schedules_drop_incomplete_entries(self):
        church = normalize({"massSchedules": [
            {"day": "Sunday", "time": "06:00", "language": "Cebuano"},
            {"day": "Monday"},
            "daily",
        ]})
        assert church.mass_schedules == [{"day": "Sunday", "time": "06:00", "language": "Cebuano"}]


# ═══════════════════════════════════════════════════════════════════════════
# Totality + round trip
# ═══════════════════════════════════════════════════════════════════════════


class TestTotality:

    @pytest.mark.parametrize("raw", [None, "church", 12, ["a"], {"locationDetails": "x", "images": {"a": 1}}])
    def test_never_raises(self, raw):
        church = normalize(raw)
        assert isinstance(church, CanonicalChurch)

    def test_non_mapping_gives_empty_record(self):
        assert normalize("church") == CanonicalChurch()

    @pytest.mark.parametrize("raw", [
        {"foundingYear": 10 ** 400},
        {"name": 10 ** 400},
        {"coordinates": {"latitude": 10 ** 400, "longitude": -(10 ** 400)}},
        {"massSchedules": [{"day": "Sunday", "time": 10 ** 400}]},
        {"contactInfo": {"phone": 10 ** 400}},
    ])
    def test_huge_integers_never_raise(self, raw):
        church = normalize(raw)
        assert church.founding_year is None
        assert church.latitude is None
        assert church.longitude is None

    @pytest.mark.parametrize("bad_name", [{}, [], {"en": "St. Peter"}, True, float("inf")])
    def test_malformed_name_falls_back_to_church_name(self, bad_name):
        church = normalize({"name": bad_name, "churchName": "Loboc Church", "parishName": "St. Peter"})
        assert church.name == "Loboc Church"

    def test_malformed_municipality_falls_back_to_nested(self):
        church = normalize({"municipality": ["Loboc"], "locationDetails": {"municipality": "Loay"}})
        assert church.municipality == "Loay"


ROUND_TRIP_RECORDS = [
    {},
    {
        "parishName": "St. Peter",
        "locationDetails": {"municipality": "Loboc", "barangay": "Poblacion"},
        "historicalDetails": {"foundingYear": 1602, "heritageClassification": "ICP"},
        "photos": [["a.jpg", {"url": "b.jpg"}], {"bad": 1}],
        "coordinates": {"latitude": "9.63", "longitude": "124.03"},
        "massSchedules": [{"day": "Sunday", "time": "07:00", "isFbLive": True}],
        "contactInfo": {"phone": "038-123", "email": ""},
        "virtualTour": {"scenes": [{"id": "altar"}]},
        "tags": ["baroque", 1850, None],
    },
    {
        "name": "Baclayon Church",
        "address": "Baclayon, Bohol",
        "isHeritage": True,
        "status": "approved",
        "latitude": "not a number",
    },
]


@pytest.mark.parametrize("raw", ROUND_TRIP_RECORDS)
def test_normalize_is_idempotent(raw):
    once = normalize(raw)
    assert normalize(to_document(once)) == once


def test_content_fields_exclude_workflow_keys(church_raw):
    content = content_fields(normalize(church_raw))
    assert "status" not in content
    assert "heritageClassification" not in content
    assert content["name"] == "Our Lady of the Assumption Parish"
