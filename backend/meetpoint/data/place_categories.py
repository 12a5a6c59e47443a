"""Static preference → Google Places type table.

Used for:
- narrowing place searches with a `type` filter when a preference names a known category
- normalizing preference tags before duplicate checks

Terms not in the table pass through unchanged with no type filter.
"""

from dataclasses import dataclass

# Canonical Google Places types we filter on
PLACE_TYPES: frozenset[str] = frozenset({
    "restaurant", "cafe", "bar", "bakery", "meal_takeaway", "night_club",
    "bowling_alley", "amusement_park", "movie_theater", "park", "tourist_attraction",
    "stadium", "gym", "museum", "art_gallery", "library", "book_store",
    "university", "shopping_mall", "supermarket", "spa", "zoo", "aquarium",
})

# Normalized preference → canonical type
PREFERENCE_TYPES: dict[str, str] = {
    # Food & drink
    "restaurant": "restaurant", "restaurants": "restaurant", "food": "restaurant",
    "dinner": "restaurant", "lunch": "restaurant",
    "cafe": "cafe", "cafes": "cafe", "café": "cafe", "coffee": "cafe",
    "coffee shop": "cafe", "tea": "cafe",
    "bar": "bar", "bars": "bar", "pub": "bar", "pubs": "bar", "drinks": "bar",
    "bakery": "bakery", "bakeries": "bakery",
    "takeaway": "meal_takeaway", "takeout": "meal_takeaway",
    # Nightlife & entertainment
    "club": "night_club", "clubs": "night_club", "nightclub": "night_club",
    "night club": "night_club",
    "bowling": "bowling_alley", "bowling alley": "bowling_alley",
    "amusement park": "amusement_park", "theme park": "amusement_park",
    "cinema": "movie_theater", "movies": "movie_theater", "movie theater": "movie_theater",
    # Outdoors & attractions
    "park": "park", "parks": "park", "garden": "park",
    "attraction": "tourist_attraction", "sightseeing": "tourist_attraction",
    "stadium": "stadium",
    "zoo": "zoo", "zoos": "zoo",
    "aquarium": "aquarium", "aquariums": "aquarium",
    # Culture & study
    "museum": "museum", "museums": "museum",
    "gallery": "art_gallery", "art gallery": "art_gallery",
    "library": "library", "libraries": "library",
    "bookstore": "book_store", "book store": "book_store",
    "university": "university", "campus": "university",
    # Shopping & wellness
    "mall": "shopping_mall", "malls": "shopping_mall", "shopping": "shopping_mall",
    "supermarket": "supermarket", "grocery": "supermarket",
    "gym": "gym", "gyms": "gym", "fitness": "gym",
    "spa": "spa", "spas": "spa",
}


@dataclass(frozen=True)
class PreferenceQuery:
    search_term: str
    place_type: str | None = None


def normalize_preference(preference: str) -> str:
    """Lowercase, trim and collapse inner whitespace."""
    return " ".join(str(preference).lower().split())


def map_preference(preference: str) -> PreferenceQuery:
    """Map a free-text preference to its search term and optional type filter."""
    term = normalize_preference(preference)
    place_type = PREFERENCE_TYPES.get(term)
    if place_type is None and term.replace(" ", "_") in PLACE_TYPES:
        place_type = term.replace(" ", "_")
    return PreferenceQuery(search_term=term, place_type=place_type)


def unique_preferences(preferences: list[str]) -> list[str]:
    """Drop blanks and duplicates (after normalization), keeping first-seen order."""
    seen: set[str] = set()
    ordered: list[str] = []
    for pref in preferences:
        term = normalize_preference(pref)
        if not term or term in seen:
            continue
        seen.add(term)
        ordered.append(term)
    return ordered
