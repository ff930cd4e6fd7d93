from django.urls import path

from .views import EligibilityView, PeriodResultsView, VoteCreateView

app_name = "voting"

urlpatterns = [
    path("eligibility/", EligibilityView.as_view(), name="eligibility"),
    path("votes/", VoteCreateView.as_view(), name="votes"),
    path("results/", PeriodResultsView.as_view(), name="results"),
]
