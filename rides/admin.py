"""
Admin configuration for the rides app.
"""

from django.contrib import admin
from .models import Ride


@admin.register(Ride)
class RideAdmin(admin.ModelAdmin):
    list_display = [
        'id',
        'from_city',
        'to_city',
        'departure_date',
        'departure_time',
        'price_per_seat',
        'available_seats',
        'status',
    ]
    list_filter = ['status', 'vehicle_type', 'from_province', 'to_province', 'departure_date']
    search_fields = ['from_city', 'to_city', 'from_province', 'to_province', 'driver_name', 'driver_id']
    readonly_fields = ['date_added', 'date_last_updated']
    ordering = ['departure_date', 'departure_time']
