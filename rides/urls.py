"""
URL configuration for the rides app.
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import RideViewSet, RideSearchView, NearbyRidesView, LocationDetectView

router = DefaultRouter()
router.register(r'rides', RideViewSet, basename='ride')

urlpatterns = [
    path('rides/search/', RideSearchView.as_view(), name='ride-search'),
    path('rides/nearby/', NearbyRidesView.as_view(), name='ride-nearby'),
    path('rides/locations/detect/', LocationDetectView.as_view(), name='ride-location-detect'),
    path('', include(router.urls)),
]
