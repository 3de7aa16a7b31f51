"""
Storage boundary for the matching core.

Everything the matcher reads passes through RideCandidate, so rows in any
of the shapes the storage layer produces (snake_case columns, camelCase
API payloads, lower-cased raw SQL aliases) arrive in one canonical form.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, List, Mapping, Optional, Sequence

from django.conf import settings
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime, parse_time

from ..models import Ride

logger = logging.getLogger(__name__)

DEFAULT_DEPARTURE_TIME = time(8, 0)


@dataclass(frozen=True)
class VehicleInfo:
    make: str = ''
    model: str = ''
    type: str = 'economy'
    plate: str = ''
    color: str = ''


@dataclass(frozen=True)
class DriverInfo:
    name: str = ''
    rating: float = 4.5


@dataclass(frozen=True)
class RideCandidate:
    """Read-only projection of a ride, as consumed by the matcher."""
    id: Any
    driver_id: str
    from_city: str
    to_city: str
    departure_date: date
    departure_time: time
    price_per_seat: float
    available_seats: int
    from_province: str = ''
    to_province: str = ''
    from_district: str = ''
    to_district: str = ''
    from_locality: str = ''
    to_locality: str = ''
    from_address: str = ''
    to_address: str = ''
    from_latitude: Optional[float] = None
    from_longitude: Optional[float] = None
    to_latitude: Optional[float] = None
    to_longitude: Optional[float] = None
    route_geometry: str = ''
    max_passengers: int = 4
    vehicle: VehicleInfo = field(default_factory=VehicleInfo)
    driver: DriverInfo = field(default_factory=DriverInfo)
    status: str = Ride.Status.AVAILABLE

    @property
    def departs_at(self) -> datetime:
        return timezone.make_aware(datetime.combine(self.departure_date, self.departure_time))

    @property
    def origin_coords(self) -> tuple:
        return (self.from_latitude, self.from_longitude)

    @property
    def destination_coords(self) -> tuple:
        return (self.to_latitude, self.to_longitude)

    def is_eligible(self, now: datetime) -> bool:
        """Only available rides that have not departed yet can be matched."""
        return self.status == Ride.Status.AVAILABLE and self.departs_at >= now

    @classmethod
    def from_model(cls, ride: Ride) -> 'RideCandidate':
        return cls(
            id=ride.id,
            driver_id=ride.driver_id,
            from_city=ride.from_city,
            to_city=ride.to_city,
            departure_date=ride.departure_date,
            departure_time=ride.departure_time,
            price_per_seat=float(ride.price_per_seat),
            available_seats=ride.available_seats,
            from_province=ride.from_province,
            to_province=ride.to_province,
            from_district=ride.from_district,
            to_district=ride.to_district,
            from_locality=ride.from_locality,
            to_locality=ride.to_locality,
            from_address=ride.from_address or ride.from_city,
            to_address=ride.to_address or ride.to_city,
            from_latitude=ride.from_latitude,
            from_longitude=ride.from_longitude,
            to_latitude=ride.to_latitude,
            to_longitude=ride.to_longitude,
            route_geometry=ride.route_geometry,
            max_passengers=ride.max_passengers,
            vehicle=VehicleInfo(
                make=ride.vehicle_make,
                model=ride.vehicle_model,
                type=ride.vehicle_type or 'economy',
                plate=ride.vehicle_plate,
                color=ride.vehicle_color,
            ),
            driver=DriverInfo(name=ride.driver_name, rating=ride.driver_rating),
            status=ride.status,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'RideCandidate':
        """
        Build a candidate from a loosely-typed row.

        Accepts snake_case, camelCase and all-lower-case keys for every
        field, and numbers or dates given as strings.

        Raises:
            ValueError: If the row has no id or no usable departure date
        """
        ride_id = _pick(row, 'id', 'ride_id', 'rideId')
        if ride_id is None:
            raise ValueError("Ride row has no id")

        departure_date, departure_time = _parse_departure(
            _pick(row, 'departure_date', 'departureDate', 'departuredate'),
            _pick(row, 'departure_time', 'departureTime', 'departuretime'),
        )
        if departure_date is None:
            raise ValueError(f"Ride row {ride_id} has no usable departure date")

        from_city = _text(_pick(row, 'from_city', 'fromCity', 'fromcity'))
        to_city = _text(_pick(row, 'to_city', 'toCity', 'tocity'))
        vehicle = _pick(row, 'vehicle_info', 'vehicleInfo') or {}

        return cls(
            id=ride_id,
            driver_id=_text(_pick(row, 'driver_id', 'driverId', 'driverid')),
            from_city=from_city,
            to_city=to_city,
            departure_date=departure_date,
            departure_time=departure_time,
            price_per_seat=_to_float(_pick(row, 'price_per_seat', 'pricePerSeat', 'priceperseat'), 0.0),
            available_seats=max(_to_int(_pick(row, 'available_seats', 'availableSeats', 'availableseats'), 0), 0),
            from_province=_text(_pick(row, 'from_province', 'fromProvince', 'fromprovince')),
            to_province=_text(_pick(row, 'to_province', 'toProvince', 'toprovince')),
            from_district=_text(_pick(row, 'from_district', 'fromDistrict', 'fromdistrict')),
            to_district=_text(_pick(row, 'to_district', 'toDistrict', 'todistrict')),
            from_locality=_text(_pick(row, 'from_locality', 'fromLocality', 'fromlocality')),
            to_locality=_text(_pick(row, 'to_locality', 'toLocality', 'tolocality')),
            from_address=_text(_pick(row, 'from_address', 'fromAddress', 'fromaddress')) or from_city,
            to_address=_text(_pick(row, 'to_address', 'toAddress', 'toaddress')) or to_city,
            from_latitude=_to_float(_pick(row, 'from_latitude', 'fromLatitude', 'from_lat', 'fromLat')),
            from_longitude=_to_float(_pick(row, 'from_longitude', 'fromLongitude', 'from_lng', 'fromLng')),
            to_latitude=_to_float(_pick(row, 'to_latitude', 'toLatitude', 'to_lat', 'toLat')),
            to_longitude=_to_float(_pick(row, 'to_longitude', 'toLongitude', 'to_lng', 'toLng')),
            route_geometry=_text(_pick(row, 'route_geometry', 'routeGeometry', 'polyline')),
            max_passengers=_to_int(
                _pick(row, 'max_passengers', 'maxPassengers', 'maxpassengers')
                or _pick(vehicle, 'max_passengers', 'maxPassengers'),
                4,
            ),
            vehicle=VehicleInfo(
                make=_text(_pick(row, 'vehicle_make', 'vehicleMake') or _pick(vehicle, 'make')),
                model=_text(_pick(row, 'vehicle_model', 'vehicleModel') or _pick(vehicle, 'model')),
                type=_text(
                    _pick(row, 'vehicle_type', 'vehicleType', 'vehicletype') or _pick(vehicle, 'type')
                ) or 'economy',
                plate=_text(_pick(row, 'vehicle_plate', 'vehiclePlate') or _pick(vehicle, 'plate')),
                color=_text(_pick(row, 'vehicle_color', 'vehicleColor') or _pick(vehicle, 'color')),
            ),
            driver=DriverInfo(
                name=_text(_pick(row, 'driver_name', 'driverName', 'drivername')),
                rating=_to_float(_pick(row, 'driver_rating', 'driverRating', 'driverrating'), 4.5),
            ),
            status=_text(_pick(row, 'status')) or Ride.Status.AVAILABLE,
        )


def _pick(row: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None and value != '':
            return value
    return None


def _text(value: Any) -> str:
    return '' if value is None else str(value)


def _to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _parse_departure(raw_date: Any, raw_time: Any):
    departure_date = None
    departure_time = None

    if isinstance(raw_date, str):
        try:
            raw_date = parse_date(raw_date) or parse_datetime(raw_date)
        except ValueError:
            raw_date = None

    if isinstance(raw_date, datetime):
        if timezone.is_aware(raw_date):
            raw_date = timezone.localtime(raw_date)
        departure_date = raw_date.date()
        departure_time = raw_date.time()
    elif isinstance(raw_date, date):
        departure_date = raw_date

    if isinstance(raw_time, str):
        try:
            raw_time = parse_time(raw_time)
        except ValueError:
            raw_time = None
    if isinstance(raw_time, time):
        departure_time = raw_time

    return departure_date, (departure_time or DEFAULT_DEPARTURE_TIME).replace(tzinfo=None)


@dataclass
class RideFilters:
    """Filters accepted by RideRepository.query_available_rides."""
    from_text: Optional[str] = None
    to_text: Optional[str] = None
    from_province: Optional[str] = None
    to_province: Optional[str] = None
    statuses: Sequence[str] = (Ride.Status.AVAILABLE,)
    departure_date_from: Optional[datetime] = None
    departure_on: Optional[date] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_seats: Optional[int] = None
    vehicle_type: Optional[str] = None
    driver_id: Optional[str] = None
    # Per-end place filters, AND-ed with each other and with everything else.
    origin_place: Optional[str] = None
    destination_place: Optional[str] = None
    # None reads every matching row.
    limit: Optional[int] = None


class RideRepository:
    """
    Read-only access to the ride inventory.

    Text filters are case-insensitive containment checks OR-ed together,
    the way the original direct search worked; attribute filters are AND-ed.
    Rows are streamed in batches of RIDE_SEARCH_CANDIDATE_BATCH_SIZE and
    never cut short unless the caller sets a limit, so scoring always sees
    the whole eligible inventory.
    """

    def __init__(self, queryset=None):
        self.queryset = queryset if queryset is not None else Ride.objects.all()

    def query_available_rides(self, filters: RideFilters) -> List[RideCandidate]:
        qs = self.queryset.filter(status__in=list(filters.statuses))

        if filters.departure_date_from is not None:
            local_now = timezone.localtime(filters.departure_date_from)
            qs = qs.filter(
                Q(departure_date__gt=local_now.date()) |
                Q(departure_date=local_now.date(), departure_time__gte=local_now.time())
            )
        if filters.departure_on is not None:
            qs = qs.filter(departure_date=filters.departure_on)

        text_filter = Q()
        if filters.from_text:
            text_filter |= Q(from_city__icontains=filters.from_text)
            text_filter |= Q(from_province__icontains=filters.from_text)
        if filters.to_text:
            text_filter |= Q(to_city__icontains=filters.to_text)
            text_filter |= Q(to_province__icontains=filters.to_text)
        if filters.from_province:
            text_filter |= Q(from_province__icontains=filters.from_province)
        if filters.to_province:
            text_filter |= Q(to_province__icontains=filters.to_province)
        if text_filter:
            qs = qs.filter(text_filter)

        if filters.origin_place:
            qs = qs.filter(
                Q(from_city__icontains=filters.origin_place) |
                Q(from_province__icontains=filters.origin_place)
            )
        if filters.destination_place:
            qs = qs.filter(
                Q(to_city__icontains=filters.destination_place) |
                Q(to_province__icontains=filters.destination_place)
            )

        if filters.min_price is not None:
            qs = qs.filter(price_per_seat__gte=filters.min_price)
        if filters.max_price is not None:
            qs = qs.filter(price_per_seat__lte=filters.max_price)
        if filters.min_seats is not None:
            qs = qs.filter(available_seats__gte=filters.min_seats)
        if filters.vehicle_type:
            qs = qs.filter(vehicle_type__icontains=filters.vehicle_type)
        if filters.driver_id:
            qs = qs.filter(driver_id=filters.driver_id)

        qs = qs.order_by('departure_date', 'departure_time', 'id')
        if filters.limit:
            qs = qs[:filters.limit]
        rides = [
            RideCandidate.from_model(ride)
            for ride in qs.iterator(chunk_size=settings.RIDE_SEARCH_CANDIDATE_BATCH_SIZE)
        ]
        logger.debug(f"Storage returned {len(rides)} ride candidates")
        return rides

    def query_ride_by_id(self, ride_id) -> Optional[RideCandidate]:
        try:
            ride = self.queryset.filter(pk=ride_id).first()
        except (TypeError, ValueError):
            return None
        return RideCandidate.from_model(ride) if ride else None
