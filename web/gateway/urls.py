from django.conf import settings
from django.urls import include, path
from django.views.static import serve

urlpatterns = [
    path("api/", include("apps.orders.urls")),
    path("", include("apps.monitoring.urls")),
]

if settings.DEBUG:
    # local runs only; deployments serve MEDIA_ROOT from the proxy
    urlpatterns += [
        path(f"{settings.MEDIA_URL.strip('/')}/<path:path>", serve, {"document_root": settings.MEDIA_ROOT}),
    ]
