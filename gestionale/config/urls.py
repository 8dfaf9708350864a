"""
URL configuration for the gestionale project.

Every app exposes its endpoints under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Gestionale Admin Panel"
admin.site.site_title = "Gestionale Admin Portal"
admin.site.index_title = "Gestione negozio, clienti e cantieri"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('gestionale.core.urls')),
    path('api/v1/', include('gestionale.catalog.urls')),
    path('api/v1/', include('gestionale.parties.urls')),
    path('api/v1/', include('gestionale.purchasing.urls')),
    path('api/v1/', include('gestionale.quotes.urls')),
    path('api/v1/', include('gestionale.orders.urls')),
]
