"""
Corridor matching service for finding rides that serve a rider's route.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from django.db import models
from django.utils import timezone
from rapidfuzz import fuzz

from ..models import Ride
from . import provinces
from .distance import DistanceService
from .normalizer import NormalizationCache
from .repository import RideCandidate, RideFilters, RideRepository

logger = logging.getLogger(__name__)

Coordinates = Tuple[float, float]


class MatchEngineError(Exception):
    """Raised when the ride inventory cannot be read or scored."""
    pass


class MatchType(models.TextChoices):
    EXACT_MATCH = 'exact_match', 'Exact match'
    EXACT_PROVINCE = 'exact_province', 'Same provinces'
    FROM_CORRECT_PROVINCE_TO = 'from_correct_province_to', 'Same origin, destination province'
    TO_CORRECT_PROVINCE_FROM = 'to_correct_province_from', 'Same destination, origin province'
    PARTIAL_FROM = 'partial_from', 'Partial origin match'
    PARTIAL_TO = 'partial_to', 'Partial destination match'
    NEARBY = 'nearby', 'Nearby'
    TRADITIONAL = 'traditional', 'Text search'


MATCH_PRIORITY = {
    MatchType.EXACT_MATCH: 6,
    MatchType.EXACT_PROVINCE: 5,
    MatchType.FROM_CORRECT_PROVINCE_TO: 4,
    MatchType.TO_CORRECT_PROVINCE_FROM: 4,
    MatchType.PARTIAL_FROM: 3,
    MatchType.PARTIAL_TO: 3,
    MatchType.NEARBY: 2,
    MatchType.TRADITIONAL: 1,
}

# Inclusive compatibility score range per match type.
SCORE_BANDS = {
    MatchType.EXACT_MATCH: (90, 100),
    MatchType.EXACT_PROVINCE: (75, 89),
    MatchType.FROM_CORRECT_PROVINCE_TO: (60, 74),
    MatchType.TO_CORRECT_PROVINCE_FROM: (60, 74),
    MatchType.PARTIAL_FROM: (40, 59),
    MatchType.PARTIAL_TO: (40, 59),
    MatchType.NEARBY: (20, 39),
    MatchType.TRADITIONAL: (20, 20),
}

TRADITIONAL_SCORE = 20
MIN_PARTIAL_LENGTH = 3
SIMILARITY_THRESHOLD = 80

FUNCTION_CORRIDOR = 'corridor'
FUNCTION_TRADITIONAL = 'traditional'
FUNCTION_NEARBY = 'nearby'


class SideLevel(IntEnum):
    """How well one end of a ride matches one end of the query."""
    NONE = 0
    PARTIAL = 1
    PROVINCE = 2
    CITY = 3


@dataclass(frozen=True)
class SideMatch:
    level: SideLevel
    # False when the match went through a district/locality field or an
    # inferred province rather than the field the rider actually named.
    direct: bool = True


NO_MATCH = SideMatch(SideLevel.NONE, direct=False)


@dataclass
class MatchResult:
    """A ride together with how and how well it matched a query."""
    candidate: RideCandidate
    match_type: MatchType
    compatibility_score: int
    distance_from_origin_km: Optional[float] = None
    search_metadata: Dict[str, Any] = field(default_factory=dict)
    # Order within a strategy that ranks by something other than score.
    strategy_rank: int = 0

    @property
    def ride_id(self):
        return self.candidate.id

    @property
    def priority(self) -> int:
        return MATCH_PRIORITY[self.match_type]


class CorridorMatcher:
    """
    Service for matching a rider's origin/destination corridor against the
    available ride inventory.

    Each end of a ride is classified against the rider's normalized term:
    1. City: the term names the ride's city, district or locality
    2. Province: the term names the ride's province, or a city in it
    3. Partial: substring or close misspelling of one of the ride's fields

    The pair of classifications decides the match type. Rides with no
    textual match can still qualify as nearby when coordinates are given.
    """

    def __init__(
        self,
        repository: Optional[RideRepository] = None,
        now: Optional[Callable] = None,
    ):
        self.repository = repository or RideRepository()
        self.now = now or timezone.now
        self.distance_service = DistanceService()

    def match(
        self,
        origin: str,
        destination: str,
        radius_km: float,
        origin_coords: Optional[Coordinates] = None,
        destination_coords: Optional[Coordinates] = None,
        filters: Optional[RideFilters] = None,
        original: Optional[Tuple[str, str]] = None,
    ) -> List[MatchResult]:
        """
        Find and score every available ride against the corridor.

        Args:
            origin, destination: Place names, normalized or not
            radius_km: Radius for nearby matches; does not limit text matches
            origin_coords, destination_coords: Optional (lat, lng) of the rider
            filters: Attribute filters passed through to the repository
            original: The rider's text before normalization, for metadata

        Returns:
            Unordered list of MatchResult

        Raises:
            MatchEngineError: If the inventory cannot be read or scored
        """
        normalize = NormalizationCache()
        origin_key = normalize(origin)
        destination_key = normalize(destination)

        if not origin_key and not destination_key:
            logger.info("Both corridor ends normalized to nothing; no matches")
            return []

        now = self.now()
        candidates = self._load_candidates(filters, now)
        metadata = self._metadata(
            original or (origin, destination), origin_key, destination_key, FUNCTION_CORRIDOR
        )

        origin_province = provinces.detect_province(origin_key)
        destination_province = provinces.detect_province(destination_key)

        results = []
        try:
            for candidate in candidates:
                if not candidate.is_eligible(now):
                    continue
                result = self._evaluate(
                    candidate,
                    normalize,
                    origin_key,
                    destination_key,
                    origin_province,
                    destination_province,
                    radius_km,
                    origin_coords,
                    destination_coords,
                )
                if result:
                    result.search_metadata = dict(metadata)
                    results.append(result)
        except Exception as e:
            raise MatchEngineError(f"Scoring failed: {e}") from e

        logger.info(
            f"Corridor match {origin_key!r} -> {destination_key!r}: "
            f"{len(results)} of {len(candidates)} candidates matched"
        )
        return results

    def match_traditional(
        self,
        origin: str,
        destination: str,
        filters: Optional[RideFilters] = None,
        original: Optional[Tuple[str, str]] = None,
        origin_coords: Optional[Coordinates] = None,
    ) -> List[MatchResult]:
        """
        Plain case-insensitive substring search on the raw ride fields.

        Results are ordered rides-matching-both-ends first, then origin
        only, then destination only, then anything else the search found.

        Raises:
            MatchEngineError: If the inventory cannot be read
        """
        origin_raw = (origin or '').strip()
        destination_raw = (destination or '').strip()
        if not origin_raw and not destination_raw:
            return []

        filters = replace(
            filters or RideFilters(),
            from_text=origin_raw or None,
            to_text=destination_raw or None,
        )
        now = self.now()
        candidates = self._load_candidates(filters, now)
        metadata = self._metadata(
            original or (origin, destination), origin_raw, destination_raw, FUNCTION_TRADITIONAL
        )
        metadata['fallback_used'] = True

        results = []
        for candidate in candidates:
            if not candidate.is_eligible(now):
                continue

            origin_hit = _contains(candidate.from_city, origin_raw)
            destination_hit = _contains(candidate.to_city, destination_raw)
            any_hit = (
                origin_hit or destination_hit or
                _contains(candidate.from_province, origin_raw) or
                _contains(candidate.to_province, destination_raw)
            )
            if not any_hit:
                continue

            if origin_hit and destination_hit:
                strategy_rank = 0
            elif origin_hit:
                strategy_rank = 1
            elif destination_hit:
                strategy_rank = 2
            else:
                strategy_rank = 3

            results.append(MatchResult(
                candidate=candidate,
                match_type=MatchType.TRADITIONAL,
                compatibility_score=TRADITIONAL_SCORE,
                distance_from_origin_km=self._distance_to(origin_coords, candidate.origin_coords, candidate),
                search_metadata=dict(metadata),
                strategy_rank=strategy_rank,
            ))

        logger.info(f"Traditional search {origin_raw!r} -> {destination_raw!r}: {len(results)} matches")
        return results

    def match_nearby(
        self,
        origin_coords: Coordinates,
        radius_km: float,
        destination_coords: Optional[Coordinates] = None,
        filters: Optional[RideFilters] = None,
    ) -> List[MatchResult]:
        """
        Coordinate-only search: rides passing within radius_km of the rider.

        When destination coordinates are given, the ride must also pass
        within the radius of the destination.

        Raises:
            MatchEngineError: If the inventory cannot be read
        """
        now = self.now()
        candidates = self._load_candidates(filters, now)
        metadata = {
            'original_search': {
                'from': _format_coords(origin_coords),
                'to': _format_coords(destination_coords),
            },
            'normalized_search': {'from': '', 'to': ''},
            'normalization_applied': False,
            'fallback_used': False,
            'function_used': FUNCTION_NEARBY,
        }

        results = []
        for candidate in candidates:
            if not candidate.is_eligible(now):
                continue

            origin_distance = self._distance_to(origin_coords, candidate.origin_coords, candidate)
            if origin_distance is None or origin_distance > radius_km:
                continue

            farthest = origin_distance
            if destination_coords:
                destination_distance = self._distance_to(
                    destination_coords, candidate.destination_coords, candidate
                )
                if destination_distance is None or destination_distance > radius_km:
                    continue
                farthest = max(origin_distance, destination_distance)

            results.append(MatchResult(
                candidate=candidate,
                match_type=MatchType.NEARBY,
                compatibility_score=nearby_score(farthest, radius_km),
                distance_from_origin_km=round(origin_distance, 2),
                search_metadata=dict(metadata),
            ))

        logger.info(f"Nearby search around {_format_coords(origin_coords)}: {len(results)} matches")
        return results

    def _load_candidates(self, filters: Optional[RideFilters], now) -> List[RideCandidate]:
        filters = replace(
            filters or RideFilters(),
            statuses=(Ride.Status.AVAILABLE,),
            departure_date_from=now,
        )
        try:
            return list(self.repository.query_available_rides(filters))
        except Exception as e:
            logger.warning(f"Ride inventory query failed: {e}")
            raise MatchEngineError(f"Ride inventory unavailable: {e}") from e

    def _evaluate(
        self,
        candidate: RideCandidate,
        normalize: NormalizationCache,
        origin_key: str,
        destination_key: str,
        origin_province: Optional[str],
        destination_province: Optional[str],
        radius_km: float,
        origin_coords: Optional[Coordinates],
        destination_coords: Optional[Coordinates],
    ) -> Optional[MatchResult]:
        origin_side = classify_side(
            origin_key,
            origin_province,
            normalize,
            city=candidate.from_city,
            province=candidate.from_province,
            district=candidate.from_district,
            locality=candidate.from_locality,
            address=candidate.from_address,
        )
        destination_side = classify_side(
            destination_key,
            destination_province,
            normalize,
            city=candidate.to_city,
            province=candidate.to_province,
            district=candidate.to_district,
            locality=candidate.to_locality,
            address=candidate.to_address,
        )

        origin_distance = self._distance_to(origin_coords, candidate.origin_coords, candidate)
        match_type, score = classify_tier(origin_side, destination_side)

        # A ride can be nearby through its destination alone. Its
        # distance_from_origin_km then stays the origin distance, which may
        # exceed the radius or be None when the ride has no origin location.
        if match_type is None:
            destination_distance = self._distance_to(
                destination_coords, candidate.destination_coords, candidate
            )
            distances = [d for d in (origin_distance, destination_distance) if d is not None]
            if not distances or min(distances) > radius_km:
                return None
            match_type = MatchType.NEARBY
            score = nearby_score(min(distances), radius_km)

        logger.debug(f"Ride {candidate.id}: {match_type} ({score})")
        return MatchResult(
            candidate=candidate,
            match_type=match_type,
            compatibility_score=score,
            distance_from_origin_km=round(origin_distance, 2) if origin_distance is not None else None,
        )

    def _distance_to(
        self,
        query_coords: Optional[Coordinates],
        endpoint: tuple,
        candidate: RideCandidate,
    ) -> Optional[float]:
        if not query_coords:
            return None
        route_points = self.distance_service.decode_route(candidate.route_geometry)
        return self.distance_service.distance_to_ride_km(
            query_coords[0], query_coords[1], endpoint, route_points
        )

    @staticmethod
    def _metadata(original, origin_key: str, destination_key: str, function_used: str) -> Dict[str, Any]:
        original_from, original_to = original
        return {
            'original_search': {'from': original_from, 'to': original_to},
            'normalized_search': {'from': origin_key, 'to': destination_key},
            'normalization_applied': original_from != origin_key or original_to != destination_key,
            'fallback_used': False,
            'function_used': function_used,
        }


def classify_side(
    term: str,
    term_province: Optional[str],
    normalize: Callable[[str], str],
    city: str = '',
    province: str = '',
    district: str = '',
    locality: str = '',
    address: str = '',
) -> SideMatch:
    """Classify how one end of a ride matches a normalized query term."""
    if not term:
        return NO_MATCH

    city = normalize(city)
    district = normalize(district)
    locality = normalize(locality)

    if term == city:
        return SideMatch(SideLevel.CITY)
    if term in (district, locality):
        return SideMatch(SideLevel.CITY, direct=False)

    ride_province = normalize(province)
    ride_province = provinces.canonical_province(ride_province) or ride_province
    if not ride_province:
        ride_province = provinces.detect_province(city) or ''

    if ride_province:
        if provinces.canonical_province(term) == ride_province or term == ride_province:
            return SideMatch(SideLevel.PROVINCE)
        if term_province == ride_province:
            return SideMatch(SideLevel.PROVINCE, direct=False)

    fields = (city, ride_province, district, locality, normalize(address))
    if _partial_match(term, fields) or _similar(term, city):
        return SideMatch(SideLevel.PARTIAL, direct=False)

    return NO_MATCH


def classify_tier(origin: SideMatch, destination: SideMatch) -> Tuple[Optional[MatchType], int]:
    """
    Turn a pair of side matches into a match type and compatibility score.

    Returns:
        (match_type, score), or (None, 0) when neither end matches textually
    """
    o_level, d_level = origin.level, destination.level

    if o_level == SideLevel.CITY and d_level == SideLevel.CITY:
        score = 100 - 5 * (not origin.direct) - 5 * (not destination.direct)
        return MatchType.EXACT_MATCH, score

    if o_level >= SideLevel.PROVINCE and d_level >= SideLevel.PROVINCE:
        if o_level == SideLevel.CITY:
            return MatchType.FROM_CORRECT_PROVINCE_TO, 64 + 5 * origin.direct + 5 * destination.direct
        if d_level == SideLevel.CITY:
            return MatchType.TO_CORRECT_PROVINCE_FROM, 62 + 5 * destination.direct + 5 * origin.direct
        return MatchType.EXACT_PROVINCE, 77 + 6 * origin.direct + 6 * destination.direct

    if o_level or d_level:
        if o_level >= d_level:
            return MatchType.PARTIAL_FROM, min(40 + 5 * o_level + 4 * d_level, 59)
        return MatchType.PARTIAL_TO, min(40 + 5 * d_level + 4 * o_level, 59)

    return None, 0


def nearby_score(distance_km: float, radius_km: float) -> int:
    """Closer rides score higher, from 39 at zero distance down to 20."""
    low, high = SCORE_BANDS[MatchType.NEARBY]
    if radius_km <= 0:
        return low
    closeness = max(0.0, 1.0 - distance_km / radius_km)
    return max(low, min(high, low + round((high - low) * closeness)))


def _partial_match(term: str, fields: Iterable[str]) -> bool:
    if len(term) < MIN_PARTIAL_LENGTH:
        return False
    for value in fields:
        if len(value) < MIN_PARTIAL_LENGTH:
            continue
        if term in value or value in term:
            return True
    return False


def _similar(term: str, value: str) -> bool:
    if not term or not value:
        return False
    return fuzz.ratio(term, value) >= SIMILARITY_THRESHOLD


def _contains(haystack: str, needle: str) -> bool:
    if not haystack or not needle:
        return False
    return needle.casefold() in haystack.casefold()


def _format_coords(coords: Optional[Coordinates]) -> str:
    if not coords:
        return ''
    return f"{coords[0]},{coords[1]}"
