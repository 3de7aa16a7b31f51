"""
API views for the rides application.
"""

from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from .serializers import (
    RideCandidateSerializer,
    RideListQuerySerializer,
    DriverRidesQuerySerializer,
    RideSearchQuerySerializer,
    SearchResponseSerializer,
    NearbyQuerySerializer,
    NearbyResponseSerializer,
    LocationDetectQuerySerializer,
    LocationDetectResponseSerializer,
)
from .services import RideSearchService, InvalidQueryError


def _float_param(name, description, required=False):
    return OpenApiParameter(
        name=name,
        type=OpenApiTypes.FLOAT,
        location=OpenApiParameter.QUERY,
        required=required,
        description=description,
    )


def _str_param(name, description):
    return OpenApiParameter(
        name=name,
        type=OpenApiTypes.STR,
        location=OpenApiParameter.QUERY,
        required=False,
        description=description,
    )


@extend_schema_view(
    list=extend_schema(
        summary="List rides",
        description="Paginated ride listing, soonest first. Without a status only rides "
                    "that are available and have not departed yet are listed.",
        tags=['Rides'],
        parameters=[
            _str_param('from_location', 'Origin city, province or address'),
            _str_param('to_location', 'Destination city, province or address'),
            _str_param('vehicle_type', 'Vehicle type, e.g. economy'),
            _str_param('status', 'Ride status (default: available)'),
            OpenApiParameter(
                name='departure_date',
                type=OpenApiTypes.DATE,
                location=OpenApiParameter.QUERY,
                required=False,
                description='Only rides departing on this day'
            ),
        ],
        responses={200: RideCandidateSerializer(many=True)},
    ),
    retrieve=extend_schema(
        summary="Get a ride",
        description="Retrieve a single ride by ID.",
        tags=['Rides'],
        responses={200: RideCandidateSerializer},
    ),
    driver=extend_schema(
        summary="List a driver's rides",
        description="Every ride published by the driver, soonest first, in any status unless one is given.",
        tags=['Rides'],
        parameters=[_str_param('status', 'Only rides in this status')],
        responses={200: RideCandidateSerializer(many=True)},
    ),
)
class RideViewSet(viewsets.GenericViewSet):
    """
    Read-only access to the ride inventory.

    Endpoints:
    - GET /api/rides/ - List rides
    - GET /api/rides/{id}/ - Retrieve a ride
    - GET /api/rides/driver/{driver_id}/ - List a driver's rides
    """

    serializer_class = RideCandidateSerializer

    def list(self, request):
        params = RideListQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        data = params.validated_data

        rides = RideSearchService().list_rides(
            origin=data.get('from_location'),
            destination=data.get('to_location'),
            vehicle_type=data.get('vehicle_type'),
            status=data.get('status'),
            departure_date=data.get('departure_date'),
        )
        return self._paginated(rides)

    def retrieve(self, request, pk=None):
        ride = RideSearchService().get_ride(pk)
        if ride is None:
            return Response(
                {'error': f'Ride {pk} not found'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(self.get_serializer(ride).data)

    @action(detail=False, methods=['get'], url_path=r'driver/(?P<driver_id>[^/.]+)')
    def driver(self, request, driver_id=None):
        params = DriverRidesQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        rides = RideSearchService().rides_by_driver(driver_id, status=params.validated_data.get('status'))
        return self._paginated(rides)

    def _paginated(self, rides):
        page = self.paginate_queryset(rides)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(rides, many=True).data)


class RideSearchView(APIView):
    """
    API view for corridor ride search.
    """

    @extend_schema(
        summary="Search rides along a corridor",
        description="""
        Rank available rides by how well they serve the rider's origin/destination corridor.

        Match types, best first:
        1. **exact_match**: both ends name the ride's cities
        2. **exact_province**: both ends fall in the ride's provinces
        3. **from_correct_province_to / to_correct_province_from**: one end city-level, the other province-level
        4. **partial_from / partial_to**: only a substring or misspelling match on one end
        5. **nearby**: no text match, but the ride passes within `radius_km` of the given coordinates

        When nothing matches, a plain substring search runs once and its rides are labelled
        `traditional`; `search_params.strategy_used` is then `fallback`.
        """,
        tags=['Search'],
        parameters=[
            OpenApiParameter(
                name='origin',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=True,
                description='Where the rider leaves from: city, province or address'
            ),
            OpenApiParameter(
                name='destination',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=True,
                description='Where the rider is going: city, province or address'
            ),
            _float_param('origin_latitude', 'Rider origin latitude'),
            _float_param('origin_longitude', 'Rider origin longitude'),
            _float_param('destination_latitude', 'Rider destination latitude'),
            _float_param('destination_longitude', 'Rider destination longitude'),
            _float_param('radius_km', 'Radius for nearby matches in km (default: 100, 1-500)'),
            OpenApiParameter(
                name='max_results',
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                default=20,
                description='Maximum rides returned (default: 20, capped at 100)'
            ),
            OpenApiParameter(
                name='departure_date',
                type=OpenApiTypes.DATE,
                location=OpenApiParameter.QUERY,
                required=False,
                description='Only rides departing on this day'
            ),
            _float_param('min_price', 'Minimum price per seat'),
            _float_param('max_price', 'Maximum price per seat'),
            OpenApiParameter(
                name='seats',
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description='Minimum number of available seats'
            ),
            OpenApiParameter(
                name='vehicle_type',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description='Vehicle type, e.g. economy'
            ),
            OpenApiParameter(
                name='driver_id',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description='Only rides offered by this driver'
            ),
        ],
        responses={200: SearchResponseSerializer},
    )
    def get(self, request):
        """Search rides for the rider's corridor."""
        serializer = RideSearchQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        try:
            outcome = RideSearchService().search(serializer.to_query())
        except InvalidQueryError as e:
            return Response(
                {'error': str(e)},
                status=status.HTTP_400_BAD_REQUEST
            )

        return Response(SearchResponseSerializer(outcome.as_response()).data)


class NearbyRidesView(APIView):
    """
    API view for coordinate-only ride search.
    """

    @extend_schema(
        summary="Find rides near a point",
        description="Rides whose start or route passes within `radius_km` of the given point "
                    "(and of the destination point, if given), closest first.",
        tags=['Search'],
        parameters=[
            _float_param('latitude', 'Rider latitude', required=True),
            _float_param('longitude', 'Rider longitude', required=True),
            _float_param('destination_latitude', 'Rider destination latitude'),
            _float_param('destination_longitude', 'Rider destination longitude'),
            _float_param('radius_km', 'Search radius in km (default: 100, 1-500)'),
            OpenApiParameter(
                name='max_results',
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                default=20,
                description='Maximum rides returned (default: 20, capped at 100)'
            ),
        ],
        responses={200: NearbyResponseSerializer},
    )
    def get(self, request):
        serializer = NearbyQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            ranked = RideSearchService().search_nearby(
                (data['latitude'], data['longitude']),
                radius_km=data['radius_km'],
                destination_coords=data['destination_coords'],
                max_results=data['max_results'],
            )
        except InvalidQueryError as e:
            return Response(
                {'error': str(e)},
                status=status.HTTP_400_BAD_REQUEST
            )

        return Response(NearbyResponseSerializer({
            'total': len(ranked.ranked),
            'rides': ranked.ranked,
            'stats': ranked.stats.as_dict(),
        }).data)


class LocationDetectView(APIView):
    """
    API view describing how place names are normalized and placed.
    """

    @extend_schema(
        summary="Analyze a pair of place names",
        description="Shows the normalized form and detected province of each end of a corridor.",
        tags=['Search'],
        parameters=[
            OpenApiParameter(
                name='origin',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=True,
            ),
            OpenApiParameter(
                name='destination',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=True,
            ),
        ],
        responses={200: LocationDetectResponseSerializer},
    )
    def get(self, request):
        serializer = LocationDetectQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        try:
            analysis = RideSearchService.analyze_locations(
                serializer.validated_data['origin'],
                serializer.validated_data['destination'],
            )
        except InvalidQueryError as e:
            return Response(
                {'error': str(e)},
                status=status.HTTP_400_BAD_REQUEST
            )

        return Response(LocationDetectResponseSerializer(analysis).data)
