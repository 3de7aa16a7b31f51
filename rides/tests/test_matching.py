"""
Tests for the corridor matcher.
"""

from datetime import time
from unittest.mock import patch

import polyline
from django.db import DatabaseError
from django.test import SimpleTestCase

from rides.models import Ride
from rides.services.matching import (
    CorridorMatcher,
    MatchEngineError,
    MatchType,
    SCORE_BANDS,
    SideLevel,
    SideMatch,
    SIMILARITY_THRESHOLD,
    NO_MATCH,
    classify_side,
    classify_tier,
    nearby_score,
)
from rides.services.normalizer import normalize

from .helpers import FakeRepository, MAPUTO, NAMPULA, PEMBA, make_candidate, past_date


class CorridorMatcherTests(SimpleTestCase):
    """Tests for CorridorMatcher.match."""

    def match(self, candidates, origin, destination, radius_km=100, **kwargs):
        self.repository = FakeRepository(candidates)
        matcher = CorridorMatcher(repository=self.repository)
        return matcher.match(origin, destination, radius_km, **kwargs)

    def assertSingleMatch(self, results, match_type):
        self.assertEqual(len(results), 1)
        result = results[0]
        self.assertEqual(result.match_type, match_type)
        low, high = SCORE_BANDS[match_type]
        self.assertGreaterEqual(result.compatibility_score, low)
        self.assertLessEqual(result.compatibility_score, high)
        return result

    def test_exact_match(self):
        """Test both cities matching gives an exact match scored 90 or more."""
        results = self.match([make_candidate()], 'maputo', 'beira')

        result = self.assertSingleMatch(results, MatchType.EXACT_MATCH)
        self.assertGreaterEqual(result.compatibility_score, 90)

    def test_exact_match_ignores_case_and_accents(self):
        """Test ride fields are normalized before comparison."""
        candidate = make_candidate(from_city='MAPUTO', to_city='Béira ')
        results = self.match([candidate], 'Maputo', 'beira')

        self.assertSingleMatch(results, MatchType.EXACT_MATCH)

    def test_district_match_scores_below_direct_city(self):
        """Test a match through the district field is still exact but weaker."""
        direct = make_candidate()
        via_district = make_candidate(to_city='Beira Cidade', to_district='Beira')
        results = self.match([direct, via_district], 'maputo', 'beira')

        scores = {r.ride_id: r.compatibility_score for r in results}
        self.assertEqual(scores[direct.id], 100)
        self.assertEqual(scores[via_district.id], 95)

    def test_exact_province(self):
        """Test both ends in the right provinces but different cities."""
        candidate = make_candidate(from_city='Matola', to_city='Dondo')
        results = self.match([candidate], 'maputo', 'beira')

        self.assertSingleMatch(results, MatchType.EXACT_PROVINCE)

    def test_province_names_in_query(self):
        """Test riders can search by province name."""
        candidate = make_candidate(
            from_city='Beira', from_province='Sofala',
            to_city='Nacala', to_province='Nampula',
        )
        results = self.match([candidate], 'Sofala', 'Nampula')

        self.assertSingleMatch(results, MatchType.EXACT_PROVINCE)

    def test_from_correct_province_to(self):
        """Test exact origin city with destination only in the right province."""
        candidate = make_candidate(to_city='Dondo')
        results = self.match([candidate], 'maputo', 'beira')

        self.assertSingleMatch(results, MatchType.FROM_CORRECT_PROVINCE_TO)

    def test_to_correct_province_from(self):
        """Test exact destination city with origin only in the right province."""
        candidate = make_candidate(from_city='Boane')
        results = self.match([candidate], 'maputo', 'beira')

        self.assertSingleMatch(results, MatchType.TO_CORRECT_PROVINCE_FROM)

    def test_misspelled_destination(self):
        """Test a close misspelling still places the destination in its province."""
        results = self.match([make_candidate()], 'Maputo', 'Beiraa')

        self.assertSingleMatch(results, MatchType.FROM_CORRECT_PROVINCE_TO)

    def test_missing_ride_province_is_inferred(self):
        """Test the ride province is inferred from its city when blank."""
        candidate = make_candidate(from_city='Matola', from_province='', to_city='Dondo', to_province='')
        results = self.match([candidate], 'maputo', 'beira')

        self.assertSingleMatch(results, MatchType.EXACT_PROVINCE)

    def test_partial_from(self):
        """Test only the origin matching gives a partial origin match."""
        candidate = make_candidate(to_city='Tete', to_province='Tete')
        results = self.match([candidate], 'maputo', 'pemba')

        self.assertSingleMatch(results, MatchType.PARTIAL_FROM)

    def test_partial_to(self):
        """Test only the destination matching gives a partial destination match."""
        candidate = make_candidate(
            from_city='Inhambane', from_province='Inhambane',
            to_city='Pemba', to_province='Cabo Delgado',
        )
        results = self.match([candidate], 'maputo', 'pemba')

        self.assertSingleMatch(results, MatchType.PARTIAL_TO)

    def test_substring_partial(self):
        """Test a substring of the ride city counts as a partial match."""
        candidate = make_candidate(
            from_city='Nacala Porto', from_province='Nampula',
            to_city='Pemba', to_province='Cabo Delgado',
        )
        results = self.match([candidate], 'porto', 'lisboa')

        result = self.assertSingleMatch(results, MatchType.PARTIAL_FROM)
        self.assertEqual(result.compatibility_score, 45)

    def test_nearby_without_text_match(self):
        """Test a ride 55 km away with no text match is returned as nearby."""
        candidate = make_candidate(
            from_city='Alto Molocue', from_province='Zambezia',
            to_city='Gurue', to_province='Zambezia',
            from_latitude=NAMPULA[0] - 0.5, from_longitude=NAMPULA[1],
        )
        results = self.match([candidate], 'Nampula', 'Pemba', radius_km=100, origin_coords=NAMPULA)

        result = self.assertSingleMatch(results, MatchType.NEARBY)
        self.assertLessEqual(result.distance_from_origin_km, 100)
        self.assertAlmostEqual(result.distance_from_origin_km, 55.6, delta=0.5)

    def test_nearby_outside_radius(self):
        """Test rides beyond the radius are not returned."""
        candidate = make_candidate(
            from_city='Alto Molocue', from_province='Zambezia',
            to_city='Gurue', to_province='Zambezia',
            from_latitude=NAMPULA[0] - 0.5, from_longitude=NAMPULA[1],
        )
        results = self.match([candidate], 'Nampula', 'Pemba', radius_km=20, origin_coords=NAMPULA)

        self.assertEqual(results, [])

    def test_nearby_along_route(self):
        """Test a ride whose route passes near the rider counts as nearby."""
        route = [(-25.9692, 32.5732), (-25.0, 33.0), (-24.0, 33.5), (-19.8436, 34.8389)]
        candidate = make_candidate(
            from_latitude=route[0][0], from_longitude=route[0][1],
            to_latitude=route[-1][0], to_longitude=route[-1][1],
            route_geometry=polyline.encode(route),
        )
        results = self.match(
            [candidate], 'Chissibuca', 'Lichinga', radius_km=50, origin_coords=(-24.05, 33.5)
        )

        result = self.assertSingleMatch(results, MatchType.NEARBY)
        self.assertLess(result.distance_from_origin_km, 10)

    def test_nearby_through_destination_only(self):
        """Test a ride near only the rider's destination reports its real origin distance."""
        candidate = make_candidate(
            from_city='Alto Molocue', from_province='Zambezia',
            to_city='Gurue', to_province='Zambezia',
            from_latitude=MAPUTO[0], from_longitude=MAPUTO[1],
            to_latitude=PEMBA[0], to_longitude=PEMBA[1],
        )
        results = self.match(
            [candidate], 'Chissibuca', 'Lichinga', radius_km=50,
            origin_coords=NAMPULA, destination_coords=PEMBA,
        )

        result = self.assertSingleMatch(results, MatchType.NEARBY)
        self.assertEqual(result.compatibility_score, 39)
        self.assertGreater(result.distance_from_origin_km, 50)

    def test_nearby_through_destination_without_origin_location(self):
        """Test a ride with no origin location can still be nearby by its destination."""
        candidate = make_candidate(
            from_city='Alto Molocue', from_province='Zambezia',
            to_city='Gurue', to_province='Zambezia',
            to_latitude=PEMBA[0], to_longitude=PEMBA[1],
        )
        results = self.match(
            [candidate], 'Chissibuca', 'Lichinga', radius_km=50,
            origin_coords=NAMPULA, destination_coords=PEMBA,
        )

        result = self.assertSingleMatch(results, MatchType.NEARBY)
        self.assertIsNone(result.distance_from_origin_km)

    def test_text_match_not_limited_by_radius(self):
        """Test text matches are kept and carry their distance even beyond the radius."""
        candidate = make_candidate(from_latitude=-25.9692, from_longitude=32.5732)
        results = self.match([candidate], 'maputo', 'beira', radius_km=10, origin_coords=NAMPULA)

        result = self.assertSingleMatch(results, MatchType.EXACT_MATCH)
        self.assertGreater(result.distance_from_origin_km, 1000)

    def test_no_coords_no_nearby(self):
        """Test unmatched rides are dropped when no coordinates are given."""
        candidate = make_candidate(from_city='Tete', from_province='Tete', to_city='Songo', to_province='Tete')
        self.assertEqual(self.match([candidate], 'maputo', 'beira'), [])

    def test_unavailable_and_departed_rides_excluded(self):
        """Test only available, future rides are matched."""
        booked = make_candidate(status=Ride.Status.BOOKED)
        departed = make_candidate(departure_date=past_date(), departure_time=time(23, 59))
        available = make_candidate()
        results = self.match([booked, departed, available], 'maputo', 'beira')

        self.assertEqual([r.ride_id for r in results], [available.id])

    def test_repository_receives_availability_filters(self):
        """Test the storage query is always restricted to available future rides."""
        self.match([], 'maputo', 'beira')

        filters = self.repository.calls[0]
        self.assertEqual(list(filters.statuses), [Ride.Status.AVAILABLE])
        self.assertIsNotNone(filters.departure_date_from)

    def test_both_sides_empty_returns_nothing(self):
        """Test a query that normalizes to nothing does not hit storage."""
        results = self.match([make_candidate()], ' , ', '')

        self.assertEqual(results, [])
        self.assertEqual(self.repository.calls, [])

    def test_metadata(self):
        """Test each result carries the original and normalized query."""
        results = self.match([make_candidate()], 'maputo', 'beira', original=('Maputo ', 'Béira'))

        metadata = results[0].search_metadata
        self.assertEqual(metadata['original_search'], {'from': 'Maputo ', 'to': 'Béira'})
        self.assertEqual(metadata['normalized_search'], {'from': 'maputo', 'to': 'beira'})
        self.assertTrue(metadata['normalization_applied'])
        self.assertFalse(metadata['fallback_used'])
        self.assertEqual(metadata['function_used'], 'corridor')

    def test_storage_failure_raises_engine_error(self):
        """Test storage errors surface as MatchEngineError."""
        matcher = CorridorMatcher(repository=FakeRepository(error=DatabaseError('down')))

        with self.assertRaises(MatchEngineError):
            matcher.match('maputo', 'beira', 100)

    @patch('rides.services.matching.classify_side', side_effect=RuntimeError('bad row'))
    def test_scoring_failure_raises_engine_error(self, mock_classify):
        """Test unexpected scoring errors surface as MatchEngineError."""
        matcher = CorridorMatcher(repository=FakeRepository([make_candidate()]))

        with self.assertRaises(MatchEngineError):
            matcher.match('maputo', 'beira', 100)


class TraditionalMatchTests(SimpleTestCase):
    """Tests for CorridorMatcher.match_traditional."""

    def test_order_and_labels(self):
        """Test both-ends hits rank before origin-only, destination-only and the rest."""
        both = make_candidate()
        origin_only = make_candidate(to_city='Tete', to_province='Tete')
        destination_only = make_candidate(from_city='Inhambane', from_province='Inhambane')
        province_only = make_candidate(from_city='Matola', to_city='Xai-Xai', to_province='Gaza')
        repository = FakeRepository(text_candidates=[province_only, destination_only, origin_only, both])
        matcher = CorridorMatcher(repository=repository)

        results = matcher.match_traditional('Maputo', 'Beira')

        ranks = {r.ride_id: r.strategy_rank for r in results}
        self.assertEqual(ranks, {both.id: 0, origin_only.id: 1, destination_only.id: 2, province_only.id: 3})
        for result in results:
            self.assertEqual(result.match_type, MatchType.TRADITIONAL)
            self.assertEqual(result.compatibility_score, 20)
            self.assertTrue(result.search_metadata['fallback_used'])
            self.assertEqual(result.search_metadata['function_used'], 'traditional')

    def test_passes_raw_text_to_storage(self):
        """Test the raw rider text is used as the storage filter."""
        repository = FakeRepository()
        CorridorMatcher(repository=repository).match_traditional(' Maputo ', 'Beira')

        filters = repository.calls[0]
        self.assertEqual(filters.from_text, 'Maputo')
        self.assertEqual(filters.to_text, 'Beira')

    def test_skips_rows_without_text_hit(self):
        """Test rows storage returned that do not contain either term are dropped."""
        unrelated = make_candidate(from_city='Tete', from_province='Tete', to_city='Songo', to_province='Tete')
        matcher = CorridorMatcher(repository=FakeRepository(text_candidates=[unrelated]))

        self.assertEqual(matcher.match_traditional('Maputo', 'Beira'), [])

    def test_storage_failure_raises_engine_error(self):
        """Test storage errors surface as MatchEngineError."""
        matcher = CorridorMatcher(repository=FakeRepository(text_error=DatabaseError('down')))

        with self.assertRaises(MatchEngineError):
            matcher.match_traditional('Maputo', 'Beira')


class NearbyMatchTests(SimpleTestCase):
    """Tests for CorridorMatcher.match_nearby."""

    def test_within_radius(self):
        """Test rides near the rider are returned and scored by distance."""
        near = make_candidate(from_latitude=NAMPULA[0] - 0.1, from_longitude=NAMPULA[1])
        farther = make_candidate(from_latitude=NAMPULA[0] - 0.5, from_longitude=NAMPULA[1])
        away = make_candidate(from_latitude=-25.9692, from_longitude=32.5732)
        matcher = CorridorMatcher(repository=FakeRepository([near, farther, away]))

        results = matcher.match_nearby(NAMPULA, 100)

        scores = {r.ride_id: r.compatibility_score for r in results}
        self.assertEqual(set(scores), {near.id, farther.id})
        self.assertGreater(scores[near.id], scores[farther.id])
        self.assertTrue(all(r.match_type == MatchType.NEARBY for r in results))

    def test_destination_must_also_be_near(self):
        """Test destination coordinates restrict results further."""
        candidate = make_candidate(
            from_latitude=NAMPULA[0], from_longitude=NAMPULA[1],
            to_latitude=-12.9740, to_longitude=40.5178,
        )
        matcher = CorridorMatcher(repository=FakeRepository([candidate]))

        self.assertEqual(len(matcher.match_nearby(NAMPULA, 100, destination_coords=(-13.0, 40.5))), 1)
        self.assertEqual(matcher.match_nearby(NAMPULA, 100, destination_coords=(-19.8, 34.8)), [])


class ClassifyTierTests(SimpleTestCase):
    """Tests for turning side matches into match types."""

    def test_tiers(self):
        """Test every combination lands on the expected type and inside its band."""
        city = SideMatch(SideLevel.CITY)
        province = SideMatch(SideLevel.PROVINCE)
        inferred = SideMatch(SideLevel.PROVINCE, direct=False)
        partial = SideMatch(SideLevel.PARTIAL, direct=False)

        cases = [
            (city, city, MatchType.EXACT_MATCH),
            (province, province, MatchType.EXACT_PROVINCE),
            (inferred, inferred, MatchType.EXACT_PROVINCE),
            (city, inferred, MatchType.FROM_CORRECT_PROVINCE_TO),
            (inferred, city, MatchType.TO_CORRECT_PROVINCE_FROM),
            (city, NO_MATCH, MatchType.PARTIAL_FROM),
            (partial, partial, MatchType.PARTIAL_FROM),
            (NO_MATCH, province, MatchType.PARTIAL_TO),
            (partial, city, MatchType.PARTIAL_TO),
        ]
        for origin, destination, expected in cases:
            match_type, score = classify_tier(origin, destination)
            self.assertEqual(match_type, expected, (origin, destination))
            low, high = SCORE_BANDS[expected]
            self.assertTrue(low <= score <= high, (origin, destination, score))

    def test_no_match(self):
        """Test two empty sides give no match type."""
        self.assertEqual(classify_tier(NO_MATCH, NO_MATCH), (None, 0))

    def test_nearby_score_bounds(self):
        """Test nearby scores stay inside their band."""
        self.assertEqual(nearby_score(0, 100), 39)
        self.assertEqual(nearby_score(100, 100), 20)
        self.assertEqual(nearby_score(250, 100), 20)
        self.assertEqual(nearby_score(5, 0), 20)


class ClassifySideTests(SimpleTestCase):
    """Tests for classifying one end of a ride against a query term."""

    def test_close_spelling_is_partial(self):
        """Test a near spelling of an unlisted town counts as a partial match."""
        side = classify_side('namialu', None, normalize, city='Namialo')

        self.assertEqual(side.level, SideLevel.PARTIAL)

    def test_distant_spelling_is_no_match(self):
        """Test names below the similarity threshold do not match."""
        self.assertEqual(SIMILARITY_THRESHOLD, 80)
        self.assertEqual(classify_side('nametil', None, normalize, city='Namialo'), NO_MATCH)
