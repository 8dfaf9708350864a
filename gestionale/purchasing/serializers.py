from decimal import Decimal

from django.db import transaction
from rest_framework import serializers

from gestionale.catalog.models import Product
from .models import Purchase, PurchaseItem, DocumentImport

MSG_PURCHASE_NO_ITEMS = "Aggiungi almeno un prodotto all'acquisto."
MSG_SITE_NOT_OF_CUSTOMER = 'Il cantiere non appartiene al cliente selezionato.'
MSG_QUANTITY_NOT_POSITIVE = 'La quantità deve essere maggiore di zero.'


class PurchaseItemSerializer(serializers.ModelSerializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseItem
        fields = ['id', 'product', 'product_code', 'product_name', 'quantity', 'unit_price', 'line_total']
        read_only_fields = ['product_code', 'product_name', 'unit_price']

    def get_line_total(self, obj):
        return str(obj.get_line_total().quantize(Decimal('0.01')))

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError(MSG_QUANTITY_NOT_POSITIVE)
        return value


class PurchaseSerializer(serializers.ModelSerializer):
    items = PurchaseItemSerializer(many=True)
    customer_name = serializers.CharField(source='customer.company_name', read_only=True)
    site_name = serializers.CharField(source='site.name', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Purchase
        fields = ['id', 'customer', 'customer_name', 'site', 'site_name', 'date', 'total', 'notes',
                  'items', 'created_by', 'created_by_username', 'created_at', 'updated_at']
        read_only_fields = ['total', 'created_by', 'created_at', 'updated_at']

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError(MSG_PURCHASE_NO_ITEMS)
        return value

    def validate(self, attrs):
        if attrs['site'].customer_id != attrs['customer'].id:
            raise serializers.ValidationError({'site': MSG_SITE_NOT_OF_CUSTOMER})
        return attrs

    def create(self, validated_data):
        """Create the purchase with its items; code, name and purchase price are copied from the product"""
        items_data = validated_data.pop('items')
        with transaction.atomic():
            purchase = Purchase.objects.create(**validated_data)
            PurchaseItem.objects.bulk_create([
                PurchaseItem(
                    purchase=purchase,
                    product=item['product'],
                    product_code=item['product'].code,
                    product_name=item['product'].name,
                    quantity=item['quantity'],
                    unit_price=item['product'].purchase_price,
                )
                for item in items_data
            ])
            purchase.recalculate_total()
        return purchase


class DocumentImportSerializer(serializers.ModelSerializer):
    class Meta:
        model = DocumentImport
        fields = ['id', 'signature', 'supplier', 'document_date', 'created_at']
        read_only_fields = ['created_at']
        # Repeated signatures are handled by DocumentImport.record
        extra_kwargs = {'signature': {'validators': []}}

    def validate_signature(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('La firma del documento è obbligatoria.')
        return value
