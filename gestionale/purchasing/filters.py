import django_filters

from .models import Purchase


class PurchaseFilter(django_filters.FilterSet):
    """Filter for the purchase list using django-filter"""

    customer = django_filters.NumberFilter(field_name='customer_id', lookup_expr='exact')
    site = django_filters.NumberFilter(field_name='site_id', lookup_expr='exact')
    date_from = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='date', lookup_expr='lte')

    class Meta:
        model = Purchase
        fields = ['customer', 'site', 'date_from', 'date_to']
