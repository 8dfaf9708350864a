from django.contrib import admin
from .models import Quote, QuoteItem


class QuoteItemInline(admin.TabularInline):
    model = QuoteItem
    extra = 0
    fields = ['product', 'product_code', 'product_name', 'quantity', 'unit_price', 'vat_rate']
    readonly_fields = ['product_code', 'product_name', 'unit_price', 'vat_rate']


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = ['quote_number', 'customer', 'site', 'date', 'include_vat', 'total', 'created_by']
    list_filter = ['include_vat', 'date']
    search_fields = ['quote_number', 'customer__company_name', 'site__name']
    ordering = ['-date', '-id']
    inlines = [QuoteItemInline]
    list_select_related = ['customer', 'site', 'created_by']
    readonly_fields = ['quote_number', 'subtotal', 'tax', 'total', 'vat_rate', 'created_at', 'updated_at']
