"""Services module for ride search and matching."""

from .distance import DistanceService
from .matching import CorridorMatcher, MatchEngineError, MatchResult, MatchType
from .normalizer import LocationNormalizer, normalize
from .ranking import MatchStatistics, ResultRanker
from .repository import RideCandidate, RideFilters, RideRepository
from .search import (
    FallbackCoordinator,
    FallbackExhaustedError,
    InvalidQueryError,
    RideSearchService,
    SearchQuery,
)

__all__ = [
    'DistanceService',
    'CorridorMatcher',
    'MatchEngineError',
    'MatchResult',
    'MatchType',
    'LocationNormalizer',
    'normalize',
    'MatchStatistics',
    'ResultRanker',
    'RideCandidate',
    'RideFilters',
    'RideRepository',
    'FallbackCoordinator',
    'FallbackExhaustedError',
    'InvalidQueryError',
    'RideSearchService',
    'SearchQuery',
]
