import django_filters
from django.db.models import Q

from .models import Customer


class CustomerFilter(django_filters.FilterSet):
    """Filter for the customer list using django-filter"""

    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = Customer
        fields = ['search']

    def filter_search(self, queryset, name, value):
        """Case-insensitive match on company name, VAT number or tax code"""
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(company_name__icontains=value) |
            Q(vat_number__icontains=value) |
            Q(tax_code__icontains=value)
        )
