from django.db import transaction
from rest_framework import serializers

from gestionale.catalog.models import Product
from .models import Customer, ConstructionSite, SiteMaterial


class CustomerSerializer(serializers.ModelSerializer):
    site_count = serializers.SerializerMethodField()

    class Meta:
        model = Customer
        fields = ['id', 'company_name', 'vat_number', 'tax_code', 'address', 'city',
                  'postal_code', 'province', 'email', 'phone', 'site_count',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_site_count(self, obj):
        return obj.sites.count()

    def validate_company_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('La ragione sociale è obbligatoria.')
        return value

    def validate_vat_number(self, value):
        return value.strip()

    def validate_tax_code(self, value):
        return value.strip().upper()

    def validate_province(self, value):
        return value.strip().upper()


class SiteMaterialSerializer(serializers.ModelSerializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all(), required=False, allow_null=True)
    product_code = serializers.CharField(source='product.code', read_only=True, default=None)
    product_name = serializers.CharField(source='product.name', read_only=True, default=None)

    class Meta:
        model = SiteMaterial
        fields = ['id', 'product', 'product_code', 'product_name', 'text', 'quantity', 'purchased']

    def validate(self, attrs):
        text = (attrs.get('text') or '').strip()
        attrs['text'] = text
        if attrs.get('product') is None and not text:
            raise serializers.ValidationError('Indica un prodotto o una descrizione del materiale.')
        return attrs


def replace_site_materials(site, materials_data):
    """Replace the whole material list of a site, keeping the given order"""
    with transaction.atomic():
        site.materials.all().delete()
        SiteMaterial.objects.bulk_create([
            SiteMaterial(
                site=site,
                product=item.get('product'),
                text=item.get('text', ''),
                quantity=item.get('quantity', 1),
                purchased=item.get('purchased', False),
                position=position,
            )
            for position, item in enumerate(materials_data)
        ])


class ConstructionSiteSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.company_name', read_only=True)
    materials = SiteMaterialSerializer(many=True, required=False)

    class Meta:
        model = ConstructionSite
        fields = ['id', 'customer', 'customer_name', 'name', 'address', 'materials', 'created_at', 'updated_at']
        read_only_fields = ['customer', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Il nome del cantiere è obbligatorio.')
        return value

    def create(self, validated_data):
        materials_data = validated_data.pop('materials', [])
        with transaction.atomic():
            site = ConstructionSite.objects.create(**validated_data)
            replace_site_materials(site, materials_data)
        return site

    def update(self, instance, validated_data):
        # Materials are edited through the dedicated materials endpoint
        validated_data.pop('materials', None)
        return super().update(instance, validated_data)


class SiteMaterialsSerializer(serializers.Serializer):
    materials = SiteMaterialSerializer(many=True)
