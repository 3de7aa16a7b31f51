"""
Ride search entry point: query validation, primary corridor matching with a
single traditional fallback, and an optional short-lived result cache.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from django.conf import settings
from django.core.cache import caches

from ..models import Ride
from . import provinces
from .matching import Coordinates, CorridorMatcher, MatchEngineError, MatchResult
from .normalizer import LocationNormalizer
from .ranking import MatchStatistics, RankedResults, ResultRanker
from .repository import RideCandidate, RideFilters, RideRepository

logger = logging.getLogger(__name__)

STRATEGY_PRIMARY = 'primary'
STRATEGY_FALLBACK = 'fallback'


class InvalidQueryError(ValueError):
    """Raised when a search query cannot be run as given."""
    pass


class FallbackExhaustedError(Exception):
    """Both the corridor matcher and the traditional fallback failed."""
    pass


@dataclass
class SearchQuery:
    """A rider's search: free-text corridor ends plus optional extras."""
    origin_text: str
    destination_text: str
    origin_coords: Optional[Coordinates] = None
    destination_coords: Optional[Coordinates] = None
    radius_km: Optional[float] = None
    max_results: Optional[int] = None
    departure_date: Optional[date] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    seats: Optional[int] = None
    vehicle_type: Optional[str] = None
    driver_id: Optional[str] = None

    def __post_init__(self):
        if self.radius_km is None:
            self.radius_km = settings.RIDE_SEARCH_DEFAULT_RADIUS_KM
        if self.max_results is None:
            self.max_results = settings.RIDE_SEARCH_DEFAULT_MAX_RESULTS

    def validate(self) -> 'SearchQuery':
        """
        Check the query and clamp max_results to the hard cap.

        Raises:
            InvalidQueryError: If either end is empty after trimming, the
                radius is out of bounds, or coordinates are invalid
        """
        origin = (self.origin_text or '').strip()
        destination = (self.destination_text or '').strip()
        if not origin or not destination:
            raise InvalidQueryError("Both origin and destination are required")

        low, high = settings.RIDE_SEARCH_MIN_RADIUS_KM, settings.RIDE_SEARCH_MAX_RADIUS_KM
        if not low <= self.radius_km <= high:
            raise InvalidQueryError(f"radius_km must be between {low:g} and {high:g}")

        if self.max_results < 1:
            raise InvalidQueryError("max_results must be at least 1")
        self.max_results = min(self.max_results, settings.RIDE_SEARCH_MAX_RESULTS_CAP)

        for coords in (self.origin_coords, self.destination_coords):
            if coords is not None and not _valid_coords(coords):
                raise InvalidQueryError("Latitude must be between -90 and 90 and longitude between -180 and 180")

        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise InvalidQueryError("min_price cannot be greater than max_price")

        return self

    def to_filters(self) -> RideFilters:
        return RideFilters(
            departure_on=self.departure_date,
            min_price=self.min_price,
            max_price=self.max_price,
            min_seats=self.seats,
            vehicle_type=self.vehicle_type,
            driver_id=self.driver_id,
        )

    def cache_key(self, normalized: Tuple[str, str]) -> str:
        parts = (
            normalized,
            self.origin_coords,
            self.destination_coords,
            self.radius_km,
            self.max_results,
            self.departure_date,
            self.min_price,
            self.max_price,
            self.seats,
            (self.vehicle_type or '').lower(),
            self.driver_id,
        )
        digest = hashlib.sha1(repr(parts).encode('utf-8')).hexdigest()
        return f"ride-search:{digest}"


@dataclass
class SearchOutcome:
    """Ranked rides plus everything a caller needs to describe the search."""
    ranked: List[MatchResult]
    stats: MatchStatistics
    strategy_used: str
    original: Dict[str, str] = field(default_factory=dict)
    normalized: Dict[str, str] = field(default_factory=dict)
    radius_km: Optional[float] = None
    primary_failed: bool = False
    error: Optional[str] = None

    def as_response(self) -> Dict[str, Any]:
        return {
            'rides': self.ranked,
            'stats': self.stats.as_dict(),
            'search_params': {
                'original': self.original,
                'normalized': self.normalized,
                'radius_km': self.radius_km,
                'strategy_used': self.strategy_used,
                'primary_failed': self.primary_failed,
                'error': self.error,
            },
            'total': len(self.ranked),
        }


class FallbackCoordinator:
    """
    Runs the corridor matcher and, only if it finds nothing or fails, the
    traditional substring search once.

    Start -> Normalizing -> PrimaryMatch -> Ranked -> Done
                                  \\-> (empty or error) -> FallbackMatch -> Ranked -> Done

    Never raises for matching failures; a search where both strategies
    failed comes back empty with the error recorded on the outcome.
    """

    def __init__(
        self,
        matcher: Optional[CorridorMatcher] = None,
        ranker: Optional[ResultRanker] = None,
    ):
        self.matcher = matcher or CorridorMatcher()
        self.ranker = ranker or ResultRanker()

    def search_with_fallback(self, query: SearchQuery) -> SearchOutcome:
        original = {'from': query.origin_text, 'to': query.destination_text}
        normalized = {
            'from': LocationNormalizer.normalize(query.origin_text),
            'to': LocationNormalizer.normalize(query.destination_text),
        }
        filters = query.to_filters()

        def outcome(ranked: RankedResults, strategy: str, primary_failed=False, error=None):
            return SearchOutcome(
                ranked=ranked.ranked,
                stats=ranked.stats,
                strategy_used=strategy,
                original=original,
                normalized=normalized,
                radius_km=query.radius_km,
                primary_failed=primary_failed,
                error=error,
            )

        primary_failed = False
        try:
            results = self.matcher.match(
                normalized['from'],
                normalized['to'],
                query.radius_km,
                origin_coords=query.origin_coords,
                destination_coords=query.destination_coords,
                filters=filters,
                original=(query.origin_text, query.destination_text),
            )
            ranked = self.ranker.rank(results, query.max_results)
            if ranked.ranked:
                logger.info(
                    f"Search {normalized['from']!r} -> {normalized['to']!r}: "
                    f"{ranked.stats.total} rides from corridor matching"
                )
                return outcome(ranked, STRATEGY_PRIMARY)
            logger.info(
                f"No corridor matches for {normalized['from']!r} -> {normalized['to']!r}, "
                f"falling back to traditional search"
            )
        except MatchEngineError as e:
            primary_failed = True
            logger.warning(f"Corridor matching failed, falling back to traditional search: {e}")

        try:
            results = self.matcher.match_traditional(
                query.origin_text,
                query.destination_text,
                filters=filters,
                original=(query.origin_text, query.destination_text),
                origin_coords=query.origin_coords,
            )
        except MatchEngineError as e:
            exhausted = FallbackExhaustedError(f"All search strategies failed: {e}")
            logger.error(str(exhausted))
            empty = self.ranker.rank([], query.max_results)
            return outcome(empty, STRATEGY_FALLBACK, primary_failed=primary_failed, error=str(exhausted))

        ranked = self.ranker.rank(results, query.max_results)
        logger.info(
            f"Search {original['from']!r} -> {original['to']!r}: "
            f"{ranked.stats.total} rides from traditional search"
        )
        return outcome(ranked, STRATEGY_FALLBACK, primary_failed=primary_failed)


class RideSearchService:
    """
    Caller-facing ride search.

    Results for identical normalized queries are cached for
    RIDE_SEARCH_CACHE_TTL_SECONDS; keep the TTL shorter than the time it
    takes a booked ride to stop being offered.
    """

    def __init__(
        self,
        repository: Optional[RideRepository] = None,
        cache=None,
        cache_ttl: Optional[int] = None,
        now: Optional[Callable] = None,
    ):
        self.repository = repository or RideRepository()
        self.matcher = CorridorMatcher(repository=self.repository, now=now)
        self.ranker = ResultRanker()
        self.coordinator = FallbackCoordinator(matcher=self.matcher, ranker=self.ranker)
        self.cache_ttl = settings.RIDE_SEARCH_CACHE_TTL_SECONDS if cache_ttl is None else cache_ttl
        if cache is None and self.cache_ttl > 0:
            cache = caches[settings.RIDE_SEARCH_CACHE_ALIAS]
        self.cache = cache if self.cache_ttl > 0 else None

    def search(self, query: SearchQuery) -> SearchOutcome:
        """
        Run a validated search.

        Raises:
            InvalidQueryError: If the query is malformed
        """
        query.validate()

        cache_key = None
        if self.cache is not None:
            cache_key = query.cache_key((
                LocationNormalizer.normalize(query.origin_text),
                LocationNormalizer.normalize(query.destination_text),
            ))
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Serving ride search from cache: {cache_key}")
                return cached

        outcome = self.coordinator.search_with_fallback(query)

        if cache_key and not outcome.primary_failed and not outcome.error:
            self.cache.set(cache_key, outcome, self.cache_ttl)
        return outcome

    def search_nearby(
        self,
        origin_coords: Coordinates,
        radius_km: Optional[float] = None,
        destination_coords: Optional[Coordinates] = None,
        max_results: Optional[int] = None,
    ) -> RankedResults:
        """
        Coordinate-only search around a point.

        A failing inventory yields an empty result rather than an error.

        Raises:
            InvalidQueryError: If the coordinates or radius are invalid
        """
        radius_km = settings.RIDE_SEARCH_DEFAULT_RADIUS_KM if radius_km is None else radius_km
        max_results = settings.RIDE_SEARCH_DEFAULT_MAX_RESULTS if max_results is None else max_results

        for coords in (origin_coords, destination_coords):
            if coords is not None and not _valid_coords(coords):
                raise InvalidQueryError("Latitude must be between -90 and 90 and longitude between -180 and 180")
        low, high = settings.RIDE_SEARCH_MIN_RADIUS_KM, settings.RIDE_SEARCH_MAX_RADIUS_KM
        if not low <= radius_km <= high:
            raise InvalidQueryError(f"radius_km must be between {low:g} and {high:g}")
        max_results = min(max(max_results, 1), settings.RIDE_SEARCH_MAX_RESULTS_CAP)

        try:
            results = self.matcher.match_nearby(
                origin_coords, radius_km, destination_coords=destination_coords
            )
        except MatchEngineError as e:
            logger.error(f"Nearby search failed: {e}")
            results = []
        return self.ranker.rank(results, max_results)

    def list_rides(
        self,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        vehicle_type: Optional[str] = None,
        status: Optional[str] = None,
        departure_date: Optional[date] = None,
    ) -> List[RideCandidate]:
        """
        Browse the inventory, soonest first.

        Place names are normalized before filtering and both must hold when
        given. Without a status only bookable rides are listed, and
        available rides that have already departed are always left out.
        """
        status = status or Ride.Status.AVAILABLE
        filters = RideFilters(
            statuses=(status,),
            origin_place=LocationNormalizer.normalize(origin) or None,
            destination_place=LocationNormalizer.normalize(destination) or None,
            vehicle_type=vehicle_type,
            departure_on=departure_date,
        )
        if status == Ride.Status.AVAILABLE:
            filters.departure_date_from = self.matcher.now()
        return self.repository.query_available_rides(filters)

    def rides_by_driver(self, driver_id: str, status: Optional[str] = None) -> List[RideCandidate]:
        """Every ride a driver has published, in any status unless one is given."""
        statuses = (status,) if status else tuple(Ride.Status.values)
        return self.repository.query_available_rides(
            RideFilters(driver_id=driver_id, statuses=statuses)
        )

    def get_ride(self, ride_id) -> Optional[RideCandidate]:
        return self.repository.query_ride_by_id(ride_id)

    @staticmethod
    def analyze_locations(origin: str, destination: str) -> Dict[str, Any]:
        """
        Describe how the service understands a pair of place names.

        Raises:
            InvalidQueryError: If either name is empty after trimming
        """
        if not (origin or '').strip() or not (destination or '').strip():
            raise InvalidQueryError("Both origin and destination are required")

        def describe(text):
            normalized = LocationNormalizer.normalize(text)
            province = provinces.detect_province(normalized)
            return {
                'original': text,
                'normalized': normalized,
                'detected_province': province,
                'is_province': provinces.is_province(normalized),
                'confidence': 'high' if province else 'low',
            }

        from_info = describe(origin)
        to_info = describe(destination)
        identified = bool(from_info['detected_province'] and to_info['detected_province'])
        return {
            'from': from_info,
            'to': to_info,
            'corridor_analysis': {
                'corridor_identified': identified,
                'same_province': identified and from_info['detected_province'] == to_info['detected_province'],
                'recommended_strategy': 'corridor' if identified else 'traditional',
            },
        }


def _valid_coords(coords) -> bool:
    try:
        lat, lng = coords
    except (TypeError, ValueError):
        return False
    if lat is None or lng is None:
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180
