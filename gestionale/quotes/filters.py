import django_filters

from .models import Quote


class QuoteFilter(django_filters.FilterSet):
    customer = django_filters.NumberFilter(field_name='customer_id', lookup_expr='exact')
    site = django_filters.NumberFilter(field_name='site_id', lookup_expr='exact')

    class Meta:
        model = Quote
        fields = ['customer', 'site']
