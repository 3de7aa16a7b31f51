"""
Serializers for the rides API.
"""

from django.conf import settings
from rest_framework import serializers

from .models import Ride
from .services import MatchType, SearchQuery
from .services.search import STRATEGY_FALLBACK, STRATEGY_PRIMARY


def _validate_latitude(value):
    if not -90 <= value <= 90:
        raise serializers.ValidationError("Latitude must be between -90 and 90")
    return value


def _validate_longitude(value):
    if not -180 <= value <= 180:
        raise serializers.ValidationError("Longitude must be between -180 and 180")
    return value


def _coords(data, lat_field, lng_field):
    """Return (lat, lng) when both halves are present, None when neither is."""
    lat = data.get(lat_field)
    lng = data.get(lng_field)
    if lat is None and lng is None:
        return None
    if lat is None or lng is None:
        raise serializers.ValidationError(
            f"{lat_field} and {lng_field} must be provided together"
        )
    return (lat, lng)


class VehicleInfoSerializer(serializers.Serializer):
    make = serializers.CharField()
    model = serializers.CharField()
    type = serializers.CharField()
    plate = serializers.CharField()
    color = serializers.CharField()


class DriverInfoSerializer(serializers.Serializer):
    name = serializers.CharField()
    rating = serializers.FloatField()


class RideCandidateSerializer(serializers.Serializer):
    """Serializer for a ride as seen by the search service."""

    id = serializers.ReadOnlyField()
    driver_id = serializers.CharField()
    driver = DriverInfoSerializer()
    vehicle = VehicleInfoSerializer()
    from_address = serializers.CharField()
    to_address = serializers.CharField()
    from_city = serializers.CharField()
    to_city = serializers.CharField()
    from_province = serializers.CharField()
    to_province = serializers.CharField()
    from_district = serializers.CharField()
    to_district = serializers.CharField()
    from_locality = serializers.CharField()
    to_locality = serializers.CharField()
    from_latitude = serializers.FloatField(allow_null=True)
    from_longitude = serializers.FloatField(allow_null=True)
    to_latitude = serializers.FloatField(allow_null=True)
    to_longitude = serializers.FloatField(allow_null=True)
    departure_date = serializers.DateField()
    departure_time = serializers.TimeField()
    price_per_seat = serializers.FloatField()
    available_seats = serializers.IntegerField()
    max_passengers = serializers.IntegerField()
    status = serializers.CharField()


class MatchResultSerializer(serializers.Serializer):
    """Serializer for a ranked ride: the ride's fields plus how it matched."""

    match_type = serializers.ChoiceField(choices=MatchType.choices)
    compatibility_score = serializers.IntegerField()
    distance_from_origin_km = serializers.FloatField(allow_null=True)
    search_metadata = serializers.DictField()

    def to_representation(self, instance):
        data = RideCandidateSerializer(instance.candidate).data
        data.update(super().to_representation(instance))
        return data


class MatchStatisticsSerializer(serializers.Serializer):
    exact_match = serializers.IntegerField()
    exact_province = serializers.IntegerField()
    from_correct_province_to = serializers.IntegerField()
    to_correct_province_from = serializers.IntegerField()
    partial_from = serializers.IntegerField()
    partial_to = serializers.IntegerField()
    nearby = serializers.IntegerField()
    traditional = serializers.IntegerField()
    total = serializers.IntegerField()
    average_score = serializers.FloatField()


class SearchParamsSerializer(serializers.Serializer):
    original = serializers.DictField(child=serializers.CharField())
    normalized = serializers.DictField(child=serializers.CharField(allow_blank=True))
    radius_km = serializers.FloatField()
    strategy_used = serializers.ChoiceField(choices=[STRATEGY_PRIMARY, STRATEGY_FALLBACK])
    primary_failed = serializers.BooleanField()
    error = serializers.CharField(allow_null=True)


class SearchResponseSerializer(serializers.Serializer):
    """Serializer for the complete search response."""

    total = serializers.IntegerField()
    rides = MatchResultSerializer(many=True)
    stats = MatchStatisticsSerializer()
    search_params = SearchParamsSerializer()


class NearbyResponseSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    rides = MatchResultSerializer(many=True)
    stats = MatchStatisticsSerializer()


class RideSearchQuerySerializer(serializers.Serializer):
    """Serializer for ride search query parameters."""

    origin = serializers.CharField(max_length=255)
    destination = serializers.CharField(max_length=255)
    origin_latitude = serializers.FloatField(required=False, validators=[_validate_latitude])
    origin_longitude = serializers.FloatField(required=False, validators=[_validate_longitude])
    destination_latitude = serializers.FloatField(required=False, validators=[_validate_latitude])
    destination_longitude = serializers.FloatField(required=False, validators=[_validate_longitude])
    radius_km = serializers.FloatField(
        default=settings.RIDE_SEARCH_DEFAULT_RADIUS_KM,
        min_value=settings.RIDE_SEARCH_MIN_RADIUS_KM,
        max_value=settings.RIDE_SEARCH_MAX_RADIUS_KM,
    )
    max_results = serializers.IntegerField(default=settings.RIDE_SEARCH_DEFAULT_MAX_RESULTS, min_value=1)
    departure_date = serializers.DateField(required=False)
    min_price = serializers.FloatField(required=False, min_value=0)
    max_price = serializers.FloatField(required=False, min_value=0)
    seats = serializers.IntegerField(required=False, min_value=1)
    vehicle_type = serializers.CharField(required=False, max_length=30)
    driver_id = serializers.CharField(required=False, max_length=64)

    def validate(self, attrs):
        attrs['origin_coords'] = _coords(attrs, 'origin_latitude', 'origin_longitude')
        attrs['destination_coords'] = _coords(attrs, 'destination_latitude', 'destination_longitude')
        if (
            attrs.get('min_price') is not None and attrs.get('max_price') is not None
            and attrs['min_price'] > attrs['max_price']
        ):
            raise serializers.ValidationError("min_price cannot be greater than max_price")
        return attrs

    def to_query(self) -> SearchQuery:
        data = self.validated_data
        return SearchQuery(
            origin_text=data['origin'],
            destination_text=data['destination'],
            origin_coords=data['origin_coords'],
            destination_coords=data['destination_coords'],
            radius_km=data['radius_km'],
            max_results=data['max_results'],
            departure_date=data.get('departure_date'),
            min_price=data.get('min_price'),
            max_price=data.get('max_price'),
            seats=data.get('seats'),
            vehicle_type=data.get('vehicle_type'),
            driver_id=data.get('driver_id'),
        )


class NearbyQuerySerializer(serializers.Serializer):
    """Serializer for coordinate-only search parameters."""

    latitude = serializers.FloatField(validators=[_validate_latitude])
    longitude = serializers.FloatField(validators=[_validate_longitude])
    destination_latitude = serializers.FloatField(required=False, validators=[_validate_latitude])
    destination_longitude = serializers.FloatField(required=False, validators=[_validate_longitude])
    radius_km = serializers.FloatField(
        default=settings.RIDE_SEARCH_DEFAULT_RADIUS_KM,
        min_value=settings.RIDE_SEARCH_MIN_RADIUS_KM,
        max_value=settings.RIDE_SEARCH_MAX_RADIUS_KM,
    )
    max_results = serializers.IntegerField(default=settings.RIDE_SEARCH_DEFAULT_MAX_RESULTS, min_value=1)

    def validate(self, attrs):
        attrs['destination_coords'] = _coords(attrs, 'destination_latitude', 'destination_longitude')
        return attrs


class RideListQuerySerializer(serializers.Serializer):
    """Serializer for ride listing filters."""

    from_location = serializers.CharField(required=False, max_length=255)
    to_location = serializers.CharField(required=False, max_length=255)
    vehicle_type = serializers.CharField(required=False, max_length=30)
    status = serializers.ChoiceField(choices=Ride.Status.choices, required=False)
    departure_date = serializers.DateField(required=False)


class DriverRidesQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Ride.Status.choices, required=False)


class LocationDetectQuerySerializer(serializers.Serializer):
    origin = serializers.CharField(max_length=255)
    destination = serializers.CharField(max_length=255)


class LocationInfoSerializer(serializers.Serializer):
    original = serializers.CharField()
    normalized = serializers.CharField(allow_blank=True)
    detected_province = serializers.CharField(allow_null=True)
    is_province = serializers.BooleanField()
    confidence = serializers.ChoiceField(choices=['high', 'low'])


class CorridorAnalysisSerializer(serializers.Serializer):
    corridor_identified = serializers.BooleanField()
    same_province = serializers.BooleanField()
    recommended_strategy = serializers.ChoiceField(choices=['corridor', 'traditional'])


class LocationDetectResponseSerializer(serializers.Serializer):
    # "from" is a keyword, so the fields are declared below.
    corridor_analysis = CorridorAnalysisSerializer()

    def get_fields(self):
        fields = super().get_fields()
        fields['from'] = LocationInfoSerializer()
        fields['to'] = LocationInfoSerializer()
        return fields
