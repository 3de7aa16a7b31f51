"""
Ride model for the corridor search service.
"""

from datetime import datetime

from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from django.utils import timezone


class Ride(models.Model):
    """
    A ride offered by a driver between two places.

    Location text is stored as entered by the publishing workflow, in any
    casing and with or without diacritics. The matcher normalizes it at
    search time. The route_geometry field optionally stores an encoded
    polyline of the planned route.
    """

    class Status(models.TextChoices):
        AVAILABLE = 'available', 'Available'
        BOOKED = 'booked', 'Booked'
        CANCELLED = 'cancelled', 'Cancelled'
        COMPLETED = 'completed', 'Completed'

    driver_id = models.CharField(max_length=64, db_index=True)
    driver_name = models.CharField(max_length=120, blank=True, default='')
    driver_rating = models.FloatField(
        default=4.5,
        validators=[MinValueValidator(0), MaxValueValidator(5)],
    )

    from_address = models.CharField(max_length=255, blank=True, default='')
    to_address = models.CharField(max_length=255, blank=True, default='')
    from_city = models.CharField(max_length=120)
    to_city = models.CharField(max_length=120)
    from_province = models.CharField(max_length=120, blank=True, default='')
    to_province = models.CharField(max_length=120, blank=True, default='')
    from_district = models.CharField(max_length=120, blank=True, default='')
    to_district = models.CharField(max_length=120, blank=True, default='')
    from_locality = models.CharField(max_length=120, blank=True, default='')
    to_locality = models.CharField(max_length=120, blank=True, default='')

    from_latitude = models.FloatField(null=True, blank=True)
    from_longitude = models.FloatField(null=True, blank=True)
    to_latitude = models.FloatField(null=True, blank=True)
    to_longitude = models.FloatField(null=True, blank=True)
    route_geometry = models.TextField(
        blank=True,
        default='',
        help_text="Encoded polyline of the planned route"
    )

    departure_date = models.DateField()
    departure_time = models.TimeField()
    price_per_seat = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)],
    )
    available_seats = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(0)],
        help_text="Number of available seats"
    )
    max_passengers = models.PositiveIntegerField(default=4)

    vehicle_make = models.CharField(max_length=60, blank=True, default='')
    vehicle_model = models.CharField(max_length=60, blank=True, default='')
    vehicle_type = models.CharField(max_length=30, blank=True, default='economy')
    vehicle_plate = models.CharField(max_length=20, blank=True, default='')
    vehicle_color = models.CharField(max_length=30, blank=True, default='')

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.AVAILABLE,
        db_index=True,
    )
    date_added = models.DateTimeField(auto_now_add=True)
    date_last_updated = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['departure_date', 'departure_time']
        verbose_name = 'Ride'
        verbose_name_plural = 'Rides'

    def __str__(self):
        return f"Ride {self.id}: {self.from_city} -> {self.to_city} ({self.departure_date})"

    @property
    def origin_coords(self) -> tuple:
        """Return origin coordinates as tuple."""
        return (self.from_latitude, self.from_longitude)

    @property
    def destination_coords(self) -> tuple:
        """Return destination coordinates as tuple."""
        return (self.to_latitude, self.to_longitude)

    @property
    def departs_at(self) -> datetime:
        """Departure as an aware datetime in the current time zone."""
        return timezone.make_aware(
            datetime.combine(self.departure_date, self.departure_time)
        )
