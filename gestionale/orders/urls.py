from django.urls import path
from . import views

urlpatterns = [
    path('orders/pdf/', views.order_pdf, name='order-pdf'),
    path('orders/preview/', views.order_preview, name='order-preview'),
]
