from django.urls import path
from . import views

urlpatterns = [
    path('purchases/', views.purchase_list_create, name='purchase-list-create'),
    path('purchases/<int:pk>/', views.purchase_detail, name='purchase-detail'),
    path('sites/<int:pk>/purchases/', views.site_purchases, name='site-purchases'),
    path('documents/', views.document_record, name='document-record'),
    path('documents/check/', views.document_check, name='document-check'),
]
