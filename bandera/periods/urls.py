from django.urls import path

from .views import (
    PeriodDetailView,
    PeriodListCreateView,
    PeriodStatusView,
    PeriodToggleView,
)

app_name = "periods"

urlpatterns = [
    path("", PeriodListCreateView.as_view(), name="period-list"),
    path("status/", PeriodStatusView.as_view(), name="period-status"),
    path("<uuid:period_id>/", PeriodDetailView.as_view(), name="period-detail"),
    path("<uuid:period_id>/toggle/", PeriodToggleView.as_view(), name="period-toggle"),
]
