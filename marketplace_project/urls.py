from django.contrib import admin
from django.urls import path, include
from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

# API URL patterns that show up in the Swagger docs
api_urlpatterns = [
    path('api/v1/', include('auctions.urls')),
]

schema_view = get_schema_view(
    openapi.Info(
        title="Bidding Marketplace API",
        default_version='v1',
        description="Vendor submissions, admin moderation and bidding",
        contact=openapi.Contact(email="contact@marketplace.local"),
        license=openapi.License(name="BSD License"),
    ),
    public=True,
    permission_classes=[permissions.AllowAny],
    patterns=api_urlpatterns,
)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/docs/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('api/docs/redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]

urlpatterns += api_urlpatterns
