from django.contrib import admin
from .models import Purchase, PurchaseItem, DocumentImport


class PurchaseItemInline(admin.TabularInline):
    model = PurchaseItem
    extra = 0
    fields = ['product', 'product_code', 'product_name', 'quantity', 'unit_price']
    readonly_fields = ['product_code', 'product_name', 'unit_price']


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    list_display = ['id', 'customer', 'site', 'date', 'get_total', 'created_by', 'created_at']
    list_filter = ['date', 'created_at']
    search_fields = ['customer__company_name', 'site__name', 'notes']
    ordering = ['-date', '-id']
    inlines = [PurchaseItemInline]
    list_select_related = ['customer', 'site', 'created_by']
    readonly_fields = ['total', 'created_at', 'updated_at']

    def get_total(self, obj):
        return f"€{obj.total:.2f}"
    get_total.short_description = 'Totale'


@admin.register(DocumentImport)
class DocumentImportAdmin(admin.ModelAdmin):
    list_display = ['supplier', 'document_date', 'created_by', 'created_at']
    search_fields = ['supplier', 'signature']
    ordering = ['-created_at']
    readonly_fields = ['signature', 'supplier', 'document_date', 'created_by', 'created_at']
