"""
Church Field Normalizer

Reconciles the two shapes a church record arrives in:
  - authoring shape (dashboard forms): nested ``locationDetails``,
    ``historicalDetails``, ``parishName``/``churchName``, ``currentParishPriest``,
    legacy ``classification`` labels such as "ICP" or
    "Important Cultural Properties";
  - read shape (public app): flat keys, ``heritageClassification``,
    ``latitude``/``longitude`` at the top level, ``isHeritage``.

into one canonical ``CanonicalChurch``.

Contract:
  - ``normalize`` is pure and total: it never raises.  A sub-object that
    cannot be parsed degrades to None / an empty list instead of failing
    the whole record.
  - ``isHeritage`` is always derived from the classification; a stored
    flag is only consulted when no classification exists anywhere.
  - ``normalize(to_document(normalize(raw))) == normalize(raw)``.

Usage:
    from heritage_cms.services.normalizer import normalize, to_document

    church = normalize(raw_doc)
    doc = to_document(church)
"""

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from heritage_cms.models.church import CHURCH_STATUSES, HERITAGE_CLASSES

logger = logging.getLogger(__name__)


@dataclass
class CanonicalChurch:
    """Typed, shape-independent view of one church record."""

    id: str | None = None
    name: str | None = None
    full_name: str | None = None
    diocese: str | None = None
    parish_id: str | None = None
    status: str = "draft"
    heritage_classification: str = "none"
    is_heritage: bool = False

    # Location
    location: str | None = None
    street_address: str | None = None
    barangay: str | None = None
    municipality: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    # History & heritage
    founding_year: int | None = None
    founders: str | None = None
    architectural_style: str | None = None
    historical_background: str | None = None
    description: str | None = None
    cultural_significance: str | None = None
    architectural_features: str | None = None
    heritage_information: str | None = None

    # Parish operations
    assigned_priest: str | None = None
    feast_day: str | None = None
    mass_schedules: list = field(default_factory=list)
    contact_info: dict | None = None

    # Media
    images: list = field(default_factory=list)
    documents: list = field(default_factory=list)
    virtual_tour: dict | None = None

    tags: list = field(default_factory=list)
    category: str | None = None


# Canonical attribute → read-shape document key, in document order.
_DOCUMENT_KEYS = {
    "id": "id",
    "name": "name",
    "full_name": "fullName",
    "diocese": "diocese",
    "parish_id": "parishId",
    "status": "status",
    "heritage_classification": "heritageClassification",
    "is_heritage": "isHeritage",
    "location": "location",
    "street_address": "streetAddress",
    "barangay": "barangay",
    "municipality": "municipality",
    "latitude": "latitude",
    "longitude": "longitude",
    "founding_year": "foundingYear",
    "founders": "founders",
    "architectural_style": "architecturalStyle",
    "historical_background": "historicalBackground",
    "description": "description",
    "cultural_significance": "culturalSignificance",
    "architectural_features": "architecturalFeatures",
    "heritage_information": "heritageInformation",
    "assigned_priest": "assignedPriest",
    "feast_day": "feastDay",
    "mass_schedules": "massSchedules",
    "contact_info": "contactInfo",
    "images": "images",
    "documents": "documents",
    "virtual_tour": "virtualTour",
    "tags": "tags",
    "category": "category",
}

# Keys that describe workflow state rather than authored content.
WORKFLOW_KEYS = frozenset({"id", "diocese", "parishId", "status", "heritageClassification", "isHeritage"})

# Document keys holding authored content (what ChurchProfile.fields stores).
CONTENT_KEYS = tuple(k for k in _DOCUMENT_KEYS.values() if k not in WORKFLOW_KEYS)

_PARSE_ERRORS = (TypeError, ValueError, AttributeError, KeyError, IndexError, OverflowError)


# ── Primitive coercion ───────────────────────────────────────────────────────

def _safe(fn, raw, default=None):
    """Run one sub-object parser, degrading to *default* if it blows up."""
    try:
        return fn(raw)
    except _PARSE_ERRORS as exc:
        logger.debug("Normalizer dropped unparseable value via %s: %s", fn.__name__, exc)
        return default


def _mapping(value):
    return value if isinstance(value, Mapping) else {}


def _first(*values):
    """First value that reads as text; malformed entries fall through to the next key."""
    for v in values:
        if _text(v) is not None:
            return v
    return None


def _text(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, int):
        try:
            return str(value)
        except ValueError:
            # beyond the interpreter's int → str digit limit
            return None
    if isinstance(value, float) and math.isfinite(value):
        return str(value)
    return None


def _number(value):
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    number = float(value)
    return number if math.isfinite(number) else None


def _year(value):
    number = _number(value)
    if number is None or number != int(number):
        return None
    return int(number)


def _latitude(value):
    number = _number(value)
    return number if number is not None and -90.0 <= number <= 90.0 else None


def _longitude(value):
    number = _number(value)
    return number if number is not None and -180.0 <= number <= 180.0 else None


# ── Classification ───────────────────────────────────────────────────────────

def parse_classification(value) -> str | None:
    """Map any known classification label to the canonical enum value.

    Returns None when *value* is absent or not a string, so callers can fall
    back to the next candidate field; unknown labels map to "none".
    """
    if not isinstance(value, str) or not value.strip():
        return None
    slug = re.sub(r"[^a-z]+", "_", value.lower()).strip("_")
    if slug == "icp" or slug.startswith("important_cultural_propert"):
        return "important_cultural_property"
    if slug == "nct" or slug.startswith("national_cultural_treasure"):
        return "national_cultural_treasure"
    return "none"


def _classification(raw):
    details = _mapping(raw.get("historicalDetails"))
    for candidate in (
        raw.get("heritageClassification"),
        raw.get("classification"),
        details.get("heritageClassification"),
    ):
        parsed = parse_classification(candidate)
        if parsed is not None:
            return parsed
    if raw.get("isHeritage") is True:
        return "important_cultural_property"
    return "none"


# ── Collections ──────────────────────────────────────────────────────────────

def _url_of(item):
    if isinstance(item, str):
        return item.strip() or None
    if isinstance(item, Mapping):
        url = item.get("url")
        if isinstance(url, str) and url.strip():
            return url.strip()
    return None


def _url_list(value, *, allow_nested=True):
    """Flatten strings, ``{url}`` objects and nested lists into URL strings."""
    if not isinstance(value, (list, tuple)):
        return []
    urls = []
    for item in value:
        if allow_nested and isinstance(item, (list, tuple)):
            urls.extend(_url_list(item, allow_nested=True))
            continue
        url = _url_of(item)
        if url:
            urls.append(url)
    return urls


def _mass_schedules(value):
    if not isinstance(value, (list, tuple)):
        return []
    schedules = []
    for item in value:
        if not isinstance(item, Mapping):
            continue
        day, time = _text(item.get("day")), _text(item.get("time"))
        if not day or not time:
            continue
        entry = {"day": day, "time": time}
        for key in ("endTime", "type", "language"):
            text = _text(item.get(key))
            if text:
                entry[key] = text
        if isinstance(item.get("isFbLive"), bool):
            entry["isFbLive"] = item["isFbLive"]
        schedules.append(entry)
    return schedules


def _contact_info(value):
    if not isinstance(value, Mapping):
        return None
    info = {}
    for key, v in value.items():
        text = _text(v)
        if isinstance(key, str) and text:
            info[key] = text
    return info or None


def _virtual_tour(value):
    if not isinstance(value, Mapping):
        return None
    scenes = value.get("scenes")
    if not isinstance(scenes, (list, tuple)):
        return None
    tour = {k: v for k, v in value.items() if k != "scenes" and isinstance(k, str)}
    tour["scenes"] = [dict(s) for s in scenes if isinstance(s, Mapping)]
    return tour


def _tags(value):
    if not isinstance(value, (list, tuple)):
        return []
    return [t for t in (_text(v) for v in value) if t]


def _status(value):
    return value if value in CHURCH_STATUSES else "draft"


# ── Public API ───────────────────────────────────────────────────────────────

def normalize(raw) -> CanonicalChurch:
    """Normalize a raw church document of either shape.  Never raises."""
    if not isinstance(raw, Mapping):
        return CanonicalChurch()

    location_details = _mapping(raw.get("locationDetails"))
    details = _mapping(raw.get("historicalDetails"))
    coordinates = _mapping(raw.get("coordinates"))

    classification = _safe(_classification, raw, "none")

    lat = _safe(_latitude, raw.get("latitude"))
    if lat is None:
        lat = _safe(_latitude, coordinates.get("latitude"))
    lng = _safe(_longitude, raw.get("longitude"))
    if lng is None:
        lng = _safe(_longitude, coordinates.get("longitude"))

    images = _safe(_url_list, raw.get("images"), [])
    if not images:
        images = _safe(_url_list, raw.get("photos"), [])

    municipality = _text(_first(raw.get("municipality"), location_details.get("municipality")))

    return CanonicalChurch(
        id=_text(raw.get("id")),
        name=_text(_first(raw.get("name"), raw.get("churchName"), raw.get("parishName"))),
        full_name=_text(raw.get("fullName")),
        diocese=_text(raw.get("diocese")),
        parish_id=_text(raw.get("parishId")),
        status=_status(raw.get("status")),
        heritage_classification=classification,
        is_heritage=classification in HERITAGE_CLASSES,
        location=_text(_first(raw.get("location"), municipality, raw.get("address"))),
        street_address=_text(_first(
            raw.get("streetAddress"), location_details.get("streetAddress"), raw.get("address"),
        )),
        barangay=_text(_first(raw.get("barangay"), location_details.get("barangay"))),
        municipality=municipality,
        latitude=lat,
        longitude=lng,
        founding_year=_safe(_year, _first(
            raw.get("foundingYear"), raw.get("foundedYear"), details.get("foundingYear"),
        )),
        founders=_text(_first(raw.get("founders"), details.get("founders"))),
        architectural_style=_text(_first(raw.get("architecturalStyle"), details.get("architecturalStyle"))),
        historical_background=_text(_first(
            raw.get("historicalBackground"), raw.get("history"), details.get("historicalBackground"),
        )),
        description=_text(raw.get("description")),
        cultural_significance=_text(raw.get("culturalSignificance")),
        architectural_features=_text(_first(
            raw.get("architecturalFeatures"), details.get("architecturalFeatures"),
        )),
        heritage_information=_text(_first(
            raw.get("heritageInformation"), details.get("heritageInformation"),
        )),
        assigned_priest=_text(_first(raw.get("assignedPriest"), raw.get("currentParishPriest"))),
        feast_day=_text(raw.get("feastDay")),
        mass_schedules=_safe(_mass_schedules, raw.get("massSchedules"), []),
        contact_info=_safe(_contact_info, raw.get("contactInfo")),
        images=images,
        documents=_safe(_url_list, raw.get("documents"), []),
        virtual_tour=_safe(_virtual_tour, raw.get("virtualTour")),
        tags=_safe(_tags, raw.get("tags"), []),
        category=_text(raw.get("category")),
    )


def to_document(church: CanonicalChurch) -> dict:
    """Serialize a canonical record back to the flat read-side shape."""
    return {key: getattr(church, attr) for attr, key in _DOCUMENT_KEYS.items()}


def content_fields(church: CanonicalChurch) -> dict:
    """Authored content only, keyed the way ChurchProfile.fields stores it."""
    doc = to_document(church)
    return {key: doc[key] for key in CONTENT_KEYS}


def from_profile(profile) -> CanonicalChurch:
    """Canonical view of a persisted ChurchProfile's live values (never the overlay)."""
    doc = dict(profile.fields or {})
    doc.update({
        "id": profile.id,
        "diocese": profile.diocese,
        "parishId": profile.parish_id,
        "status": profile.status,
        "heritageClassification": profile.heritage_classification,
    })
    return normalize(doc)
