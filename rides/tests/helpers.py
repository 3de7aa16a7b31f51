"""
Shared builders for the rides tests.
"""

from datetime import time, timedelta
from decimal import Decimal

from django.utils import timezone

from rides.models import Ride
from rides.services.repository import DriverInfo, RideCandidate, VehicleInfo

# Approximate city centres.
MAPUTO = (-25.9692, 32.5732)
BEIRA = (-19.8436, 34.8389)
NAMPULA = (-15.1165, 39.2666)
PEMBA = (-12.9740, 40.5178)


def future_date(days=3):
    return timezone.localdate() + timedelta(days=days)


def past_date(days=1):
    return timezone.localdate() - timedelta(days=days)


def create_ride(**overrides) -> Ride:
    data = {
        'driver_id': 'driver-1',
        'driver_name': 'Joana Sitoe',
        'driver_rating': 4.8,
        'from_city': 'Maputo',
        'to_city': 'Beira',
        'from_province': 'Maputo',
        'to_province': 'Sofala',
        'departure_date': future_date(),
        'departure_time': time(8, 30),
        'price_per_seat': Decimal('1500.00'),
        'available_seats': 3,
        'max_passengers': 4,
        'vehicle_make': 'Toyota',
        'vehicle_model': 'Hiace',
        'vehicle_type': 'van',
        'vehicle_plate': 'AAA-123-MP',
        'vehicle_color': 'White',
        'status': Ride.Status.AVAILABLE,
    }
    data.update(overrides)
    return Ride.objects.create(**data)


_candidate_ids = iter(range(1000, 100000))


def make_candidate(**overrides) -> RideCandidate:
    data = {
        'id': next(_candidate_ids),
        'driver_id': 'driver-1',
        'from_city': 'Maputo',
        'to_city': 'Beira',
        'from_province': 'Maputo',
        'to_province': 'Sofala',
        'departure_date': future_date(),
        'departure_time': time(8, 30),
        'price_per_seat': 1500.0,
        'available_seats': 3,
        'vehicle': VehicleInfo(make='Toyota', model='Hiace', type='van'),
        'driver': DriverInfo(name='Joana Sitoe', rating=4.8),
    }
    data.update(overrides)
    return RideCandidate(**data)


class FakeRepository:
    """
    In-memory stand-in for RideRepository.

    Returns `candidates` for corridor queries (no text filter) and
    `text_candidates` for text queries, so tests can control what each
    strategy sees.
    """

    def __init__(self, candidates=(), text_candidates=None, error=None, text_error=None):
        self.candidates = list(candidates)
        self.text_candidates = list(candidates) if text_candidates is None else list(text_candidates)
        self.error = error
        self.text_error = text_error
        self.calls = []

    def query_available_rides(self, filters):
        self.calls.append(filters)
        is_text_query = bool(filters.from_text or filters.to_text)
        if is_text_query:
            if self.text_error:
                raise self.text_error
            return list(self.text_candidates)
        if self.error:
            raise self.error
        return list(self.candidates)

    def query_ride_by_id(self, ride_id):
        for candidate in self.candidates:
            if candidate.id == ride_id:
                return candidate
        return None
