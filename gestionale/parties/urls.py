from django.urls import path
from . import views

urlpatterns = [
    path('customers/', views.customer_list_create, name='customer-list-create'),
    path('customers/autofill/', views.customer_autofill, name='customer-autofill'),
    path('customers/<int:pk>/', views.customer_detail, name='customer-detail'),
    path('customers/<int:pk>/overview/', views.customer_overview, name='customer-overview'),
    path('customers/<int:pk>/sites/', views.customer_sites, name='customer-sites'),
    path('sites/<int:pk>/', views.site_detail, name='site-detail'),
    path('sites/<int:pk>/materials/', views.site_materials, name='site-materials'),
    path('sites/<int:pk>/checklist/pdf/', views.site_checklist_pdf, name='site-checklist-pdf'),
]
