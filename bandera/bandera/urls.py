"""
URL configuration for bandera project.

Every API endpoint lives under the versioned `api/v1/` prefix; the Django
admin and DRF's browsable-API login stay outside it.
"""
from django.contrib import admin
from django.urls import include, path

# API endpoints under a versioned path
api_urlpatterns = [
    path("candidates/", include("candidates.urls")),
    path("periods/", include("periods.urls")),
    path("voting/", include("voting.urls")),
]
urlpatterns = [
    # all api endpoints are prefixed with 'api/'
    path("api/v1/", include(api_urlpatterns)),
    # Non-API paths like admin and auth
    path("admin/", admin.site.urls),
    path("api-auth/", include("rest_framework.urls")),
]
