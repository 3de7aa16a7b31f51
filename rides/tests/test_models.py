"""
Tests for the Ride model.
"""

from datetime import time

from django.test import TestCase

from rides.models import Ride

from .helpers import create_ride, future_date


class RideModelTests(TestCase):
    """Tests for the Ride model."""

    def test_create_ride(self):
        """Test creating a ride with defaults."""
        ride = Ride.objects.create(
            driver_id='driver-7',
            from_city='Chimoio',
            to_city='Tete',
            departure_date=future_date(),
            departure_time=time(7, 0),
            price_per_seat='650.00',
        )

        self.assertIsNotNone(ride.id)
        self.assertEqual(ride.status, Ride.Status.AVAILABLE)
        self.assertEqual(ride.available_seats, 1)
        self.assertEqual(ride.vehicle_type, 'economy')
        self.assertIsNotNone(ride.date_added)
        self.assertIsNotNone(ride.date_last_updated)

    def test_ride_string_representation(self):
        """Test ride string representation."""
        ride = create_ride()

        self.assertIn("Ride", str(ride))
        self.assertIn("Maputo -> Beira", str(ride))

    def test_coords_properties(self):
        """Test origin and destination coordinate pairs."""
        ride = Ride(from_latitude=-25.9692, from_longitude=32.5732, to_latitude=-19.8436, to_longitude=34.8389)

        self.assertEqual(ride.origin_coords, (-25.9692, 32.5732))
        self.assertEqual(ride.destination_coords, (-19.8436, 34.8389))

    def test_departs_at(self):
        """Test departure date and time combine into an aware datetime."""
        ride = create_ride(departure_time=time(10, 0))

        self.assertEqual(ride.departs_at.date(), ride.departure_date)
        self.assertEqual(ride.departs_at.hour, 10)
        self.assertIsNotNone(ride.departs_at.tzinfo)
