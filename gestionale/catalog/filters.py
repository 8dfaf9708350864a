import django_filters
from django.db.models import Q

from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Filter for the product list using django-filter"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')

    class Meta:
        model = Product
        fields = ['search', 'category']

    def filter_search(self, queryset, name, value):
        """
        Case-insensitive match on product name or code.

        For multi-word searches every word must appear in the name or the code,
        in any order ("cavo 2.5" matches "CAVO UNIPOLARE 2.5MM").
        """
        if not value or not value.strip():
            return queryset

        for word in value.split():
            queryset = queryset.filter(Q(name__icontains=word) | Q(code__icontains=word))
        return queryset
