"""Place candidate search — per-preference provider queries, quality gate, dedupe."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from meetpoint.config import settings
from meetpoint.data.place_categories import PreferenceQuery, map_preference, unique_preferences
from meetpoint.exceptions import InvalidInputError, ProviderError
from meetpoint.services.google_maps_client import MapsProvider
from meetpoint.services.recommendation.config import QUALITY_GATE, SEARCH_LIMITS, QualityGate, SearchLimits
from meetpoint.services.recommendation.fanout import DeadlineExceeded, gather_bounded
from meetpoint.services.recommendation.types import CandidatePlace, Coordinate

logger = logging.getLogger(__name__)


@dataclass
class PlaceSearchResult:
    candidates: list[CandidatePlace] = field(default_factory=list)
    next_page_token: str | None = None


@dataclass
class _PreferenceOutcome:
    """What one preference's query sequence produced."""
    candidates: list[CandidatePlace] = field(default_factory=list)
    next_page_token: str | None = None
    queries_attempted: int = 0
    queries_failed: int = 0


def preference_match_score(name: str, types: Sequence[str], term: str) -> float:
    """
    Relevance of a place to a preference term, 0.0-0.8.

    +0.4 term in name, +0.3 term is one of the types, +0.1 term is the primary type.
    Reported to clients for display only; ranking never reads it.
    """
    term = term.lower()
    score = 0.0
    if term and term in name.lower():
        score += 0.4
    lowered = [t.lower() for t in types]
    if term in lowered:
        score += 0.3
    if lowered and lowered[0] == term:
        score += 0.1
    return round(score, 2)


def parse_place(raw: dict, preference: str | None = None) -> CandidatePlace | None:
    """Map a raw provider record to a CandidatePlace; None if it lacks an id or location."""
    place_id = raw.get("place_id")
    loc = (raw.get("geometry") or {}).get("location") or {}
    if not place_id or loc.get("lat") is None or loc.get("lng") is None:
        return None
    try:
        location = Coordinate(loc["lat"], loc["lng"])
        rating = float(raw.get("rating") or 0.0)
        rating_count = int(raw.get("user_ratings_total") or 0)
    except (ValueError, TypeError, InvalidInputError) as e:
        logger.debug(f"Skipping malformed place {place_id}: {e}")
        return None

    name = raw.get("name") or ""
    types = tuple(raw.get("types") or ())
    return CandidatePlace(
        place_id=str(place_id),
        name=name,
        address=raw.get("formatted_address") or raw.get("vicinity") or "",
        location=location,
        types=types,
        rating=rating,
        rating_count=rating_count,
        matched_preference=preference,
        match_score=preference_match_score(name, types, preference) if preference else 0.0,
    )


class PlaceCandidateSearch:
    """Searches the provider per preference and keeps unique, well-rated places."""

    def __init__(
        self,
        provider: MapsProvider,
        quality_gate: QualityGate = QUALITY_GATE,
        limits: SearchLimits = SEARCH_LIMITS,
        wider_radius_meters: int | None = None,
        concurrency: int | None = None,
    ):
        self.provider = provider
        self.quality_gate = quality_gate
        self.limits = limits
        self.wider_radius_meters = wider_radius_meters or settings.wider_search_radius_meters
        self.concurrency = concurrency or settings.provider_concurrency

    async def search(
        self,
        center: Coordinate,
        preferences: Sequence[str],
        radius_meters: int,
        page_token: str | None = None,
        deadline: float | None = None,
    ) -> PlaceSearchResult:
        """
        Find candidates for every preference around `center`.

        With `page_token`, issues only the single continuation query the
        token belongs to. Raises ProviderError only if every attempted query
        failed; an empty result is otherwise a normal outcome.
        """
        terms = unique_preferences(list(preferences))
        if not terms:
            return PlaceSearchResult()

        queries = [map_preference(t) for t in terms]

        if page_token:
            outcome = await self._continue_page(center, queries, radius_meters, page_token)
            outcomes = [outcome]
        else:
            calls = [
                (lambda q=q: self._search_preference(center, q, radius_meters))
                for q in queries
            ]
            results = await gather_bounded(calls, concurrency=self.concurrency, deadline=deadline)

            outcomes = []
            for query, result in zip(queries, results):
                if isinstance(result, DeadlineExceeded):
                    logger.warning(f"Place search for '{query.search_term}' hit the deadline, skipped")
                    continue
                if isinstance(result, Exception):
                    logger.error(f"Place search for '{query.search_term}' failed: {result}")
                    outcomes.append(_PreferenceOutcome(queries_attempted=1, queries_failed=1))
                    continue
                outcomes.append(result)

        attempted = sum(o.queries_attempted for o in outcomes)
        failed = sum(o.queries_failed for o in outcomes)
        if attempted and failed == attempted:
            raise ProviderError(f"All {attempted} place search queries failed")

        # Merge in preference order so output never depends on completion order
        seen: set[str] = set()
        merged: list[CandidatePlace] = []
        next_token = None
        for outcome in outcomes:
            if next_token is None and outcome.next_page_token:
                next_token = outcome.next_page_token
            for cand in outcome.candidates:
                if cand.place_id not in seen:
                    seen.add(cand.place_id)
                    merged.append(cand)

        logger.info(
            f"Place search: {len(terms)} preferences, {attempted} queries "
            f"({failed} failed), {len(merged)} candidates"
        )
        return PlaceSearchResult(candidates=merged, next_page_token=next_token)

    async def _search_preference(
        self, center: Coordinate, query: PreferenceQuery, radius_meters: int
    ) -> _PreferenceOutcome:
        """Primary query, qualifier escalation, then one wider retry if still empty."""
        outcome = _PreferenceOutcome()
        seen: set[str] = set()
        target = self.limits.target_per_preference

        search_terms = [query.search_term] + [
            f"{qualifier} {query.search_term}" for qualifier in self.limits.qualifiers
        ]

        for idx, term in enumerate(search_terms):
            if len(outcome.candidates) >= target:
                break
            page = await self._attempt(outcome, term, center, radius_meters, query.place_type)
            if page is None:
                continue
            if idx == 0:
                outcome.next_page_token = page.next_page_token
            self._collect(outcome, seen, page.results, query.search_term)

        if not outcome.candidates and self.limits.wider_retry and self.wider_radius_meters > radius_meters:
            page = await self._attempt(
                outcome, query.search_term, center, self.wider_radius_meters, query.place_type
            )
            if page is not None:
                self._collect(outcome, seen, page.results, query.search_term)

        logger.debug(
            f"Preference '{query.search_term}' (type={query.place_type}): "
            f"{len(outcome.candidates)} kept after {outcome.queries_attempted} queries"
        )
        return outcome

    async def _continue_page(
        self,
        center: Coordinate,
        queries: list[PreferenceQuery],
        radius_meters: int,
        page_token: str,
    ) -> _PreferenceOutcome:
        outcome = _PreferenceOutcome()
        term = " ".join(q.search_term for q in queries)
        page = await self._attempt(outcome, term, center, radius_meters, None, page_token=page_token)
        if page is not None:
            outcome.next_page_token = page.next_page_token
            self._collect(outcome, set(), page.results, queries[0].search_term)
        return outcome

    async def _attempt(
        self,
        outcome: _PreferenceOutcome,
        term: str,
        center: Coordinate,
        radius_meters: int,
        place_type: str | None,
        page_token: str | None = None,
    ):
        outcome.queries_attempted += 1
        try:
            return await self.provider.text_search(
                term, center, radius_meters, page_token=page_token, place_type=place_type
            )
        except ProviderError as e:
            outcome.queries_failed += 1
            logger.warning(f"Place query '{term}' failed: {e.message}")
            return None

    def _collect(
        self,
        outcome: _PreferenceOutcome,
        seen: set[str],
        raw_results: list[dict],
        preference: str,
    ) -> None:
        for raw in raw_results:
            cand = parse_place(raw, preference)
            if cand is None or cand.place_id in seen:
                continue
            if not self.quality_gate.passes(cand.rating, cand.rating_count):
                continue
            seen.add(cand.place_id)
            outcome.candidates.append(cand)
