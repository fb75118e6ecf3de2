"""
Root URLs: Django admin, the clinic API (with ``/healthz`` and
``/metrics``) and the drf-yasg schema at ``/swagger/`` and ``/redoc/``.
"""
from django.contrib import admin
from django.urls import include, path
from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework.permissions import AllowAny

api_info = openapi.Info(
    title="Hospital Operations API",
    default_version='v1',
    description="Doctor schedules, slot availability, booking, billing and financial analytics.",
)

schema_view = get_schema_view(api_info, public=True, permission_classes=(AllowAny,))

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('clinic.routers')),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]
