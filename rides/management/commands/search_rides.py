"""
Management command to run a corridor ride search from the command line.
"""

import json

from django.core.management.base import BaseCommand, CommandError

from rides.serializers import SearchResponseSerializer
from rides.services import InvalidQueryError, RideSearchService, SearchQuery


class Command(BaseCommand):
    help = 'Search available rides along a corridor and print the ranked result as JSON'

    def add_arguments(self, parser):
        parser.add_argument('--from', dest='origin', required=True, help='Origin city, province or address')
        parser.add_argument('--to', dest='destination', required=True, help='Destination city, province or address')
        parser.add_argument('--from-lat', type=float, dest='origin_latitude')
        parser.add_argument('--from-lng', type=float, dest='origin_longitude')
        parser.add_argument('--to-lat', type=float, dest='destination_latitude')
        parser.add_argument('--to-lng', type=float, dest='destination_longitude')
        parser.add_argument('--radius-km', type=float, dest='radius_km')
        parser.add_argument('--max-results', type=int, dest='max_results')
        parser.add_argument('--no-cache', action='store_true', help='Bypass the result cache')

    def handle(self, *args, **options):
        query = SearchQuery(
            origin_text=options['origin'],
            destination_text=options['destination'],
            origin_coords=self._coords(options, 'origin_latitude', 'origin_longitude', '--from-lat', '--from-lng'),
            destination_coords=self._coords(options, 'destination_latitude', 'destination_longitude', '--to-lat', '--to-lng'),
            radius_km=options.get('radius_km'),
            max_results=options.get('max_results'),
        )

        service = RideSearchService(cache_ttl=0) if options['no_cache'] else RideSearchService()
        try:
            outcome = service.search(query)
        except InvalidQueryError as e:
            raise CommandError(str(e))

        data = SearchResponseSerializer(outcome.as_response()).data
        self.stdout.write(json.dumps(data, indent=2, ensure_ascii=False))

        style = self.style.SUCCESS if outcome.ranked else self.style.WARNING
        self.stderr.write(style(
            f"{len(outcome.ranked)} rides found using the {outcome.strategy_used} strategy"
        ))

    @staticmethod
    def _coords(options, lat_key, lng_key, lat_flag, lng_flag):
        lat, lng = options.get(lat_key), options.get(lng_key)
        if lat is None and lng is None:
            return None
        if lat is None or lng is None:
            raise CommandError(f"{lat_flag} and {lng_flag} must be given together")
        return (lat, lng)
