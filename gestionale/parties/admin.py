from django.contrib import admin
from .models import Customer, ConstructionSite, SiteMaterial


class ConstructionSiteInline(admin.TabularInline):
    model = ConstructionSite
    extra = 0
    fields = ['name', 'address']


class SiteMaterialInline(admin.TabularInline):
    model = SiteMaterial
    extra = 0
    fields = ['position', 'product', 'text', 'quantity', 'purchased']


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['company_name', 'vat_number', 'tax_code', 'city', 'province', 'phone', 'email']
    list_filter = ['province']
    search_fields = ['company_name', 'vat_number', 'tax_code', 'email']
    ordering = ['company_name']
    inlines = [ConstructionSiteInline]
    readonly_fields = ['created_at', 'updated_at']


@admin.register(ConstructionSite)
class ConstructionSiteAdmin(admin.ModelAdmin):
    list_display = ['name', 'customer', 'address', 'created_at']
    search_fields = ['name', 'address', 'customer__company_name']
    ordering = ['name']
    list_select_related = ['customer']
    inlines = [SiteMaterialInline]
    readonly_fields = ['created_at', 'updated_at']
