"""
Great-circle distances between riders and rides.

A ride is located by its endpoints and, when the publishing workflow
stored one, the encoded polyline of its planned route.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import polyline

logger = logging.getLogger(__name__)

LatLng = Tuple[float, float]


@dataclass
class NearestPointResult:
    """Closest decoded route point to a query location."""
    latitude: float
    longitude: float
    distance_km: float
    route_index: int


class DistanceService:
    """
    Haversine distance helpers, all in kilometres.
    """

    EARTH_RADIUS_KM = 6371.0

    @classmethod
    def haversine_km(cls, lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """
        Great-circle distance between two (lat, lon) points.

        Returns:
            Distance in kilometres
        """
        phi1, phi2 = math.radians(lat1), math.radians(lat2)
        half_dphi = math.radians(lat2 - lat1) / 2
        half_dlambda = math.radians(lon2 - lon1) / 2

        h = math.sin(half_dphi) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(half_dlambda) ** 2
        return 2 * cls.EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))

    @classmethod
    def find_nearest_point_on_route(
        cls,
        query_lat: float,
        query_lon: float,
        route_points: Sequence[LatLng],
    ) -> Optional[NearestPointResult]:
        """
        Scan the route for the point closest to the query location.

        Returns:
            NearestPointResult, or None for an empty route
        """
        if not route_points:
            return None

        distances = [
            cls.haversine_km(query_lat, query_lon, lat, lon)
            for lat, lon in route_points
        ]
        index = min(range(len(distances)), key=distances.__getitem__)
        lat, lon = route_points[index]
        return NearestPointResult(
            latitude=lat,
            longitude=lon,
            distance_km=distances[index],
            route_index=index,
        )

    @staticmethod
    def decode_route(route_geometry: Optional[str]) -> List[LatLng]:
        """Decode an encoded polyline, returning [] when it is empty or corrupt."""
        if not route_geometry:
            return []
        try:
            return polyline.decode(route_geometry)
        except (ValueError, IndexError, TypeError) as e:
            logger.debug(f"Could not decode route geometry: {e}")
            return []

    @classmethod
    def distance_to_ride_km(
        cls,
        query_lat: float,
        query_lon: float,
        endpoint: Tuple[Optional[float], Optional[float]],
        route_points: Optional[Sequence[LatLng]] = None,
    ) -> Optional[float]:
        """
        How far the query location is from a ride.

        Uses whichever is closer: the given ride endpoint or any point of
        the ride's route.

        Returns:
            Distance in kilometres, or None when the ride has neither
            endpoint coordinates nor a route
        """
        candidates = []

        end_lat, end_lon = endpoint
        if end_lat is not None and end_lon is not None:
            candidates.append(cls.haversine_km(query_lat, query_lon, end_lat, end_lon))

        nearest = cls.find_nearest_point_on_route(query_lat, query_lon, route_points or [])
        if nearest is not None:
            candidates.append(nearest.distance_km)

        return min(candidates, default=None)
