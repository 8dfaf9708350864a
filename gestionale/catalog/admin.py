from django.contrib import admin
from .models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'profit_margin', 'vat_rate', 'is_system', 'created_at']
    list_filter = ['is_system', 'vat_rate']
    search_fields = ['name']
    ordering = ['name']
    readonly_fields = ['is_system', 'created_at', 'updated_at']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'category', 'quantity', 'purchase_price', 'selling_price', 'updated_at']
    list_filter = ['category']
    search_fields = ['code', 'name']
    ordering = ['name']
    list_select_related = ['category']
    readonly_fields = ['created_at', 'updated_at']
