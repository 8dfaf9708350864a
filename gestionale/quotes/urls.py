from django.urls import path
from . import views

urlpatterns = [
    path('quotes/', views.quote_list_create, name='quote-list-create'),
    path('quotes/preview/', views.quote_preview, name='quote-preview'),
    path('quotes/<int:pk>/', views.quote_detail, name='quote-detail'),
    path('quotes/<int:pk>/pdf/', views.quote_pdf, name='quote-pdf'),
    path('sites/<int:pk>/quotes/', views.site_quotes, name='site-quotes'),
]
