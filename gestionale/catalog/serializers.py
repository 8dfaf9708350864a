from decimal import Decimal

from rest_framework import serializers

from .models import Category, Product
from .pricing import selling_price_from_margin


class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'profit_margin', 'vat_rate', 'is_system', 'product_count', 'created_at', 'updated_at']
        read_only_fields = ['is_system', 'created_at', 'updated_at']

    def get_product_count(self, obj):
        annotated = getattr(obj, 'product_count', None)
        if annotated is not None:
            return annotated
        return obj.products.count()

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Il nome della categoria è obbligatorio.')
        return value


class ProductSerializer(serializers.ModelSerializer):
    category = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all(), required=False, allow_null=True)
    category_name = serializers.CharField(source='category.name', read_only=True)
    selling_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True)
    margin_percentage = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    stock_value = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'category', 'category_name', 'code', 'name', 'quantity',
                  'purchase_price', 'selling_price', 'margin_percentage', 'stock_value',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_code(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Il codice prodotto è obbligatorio.')
        # New codes are merged by upsert; only a rename onto another product's code is an error
        if self.instance is not None:
            clash = Product.objects.filter(code__iexact=value).exclude(pk=self.instance.pk)
            if clash.exists():
                raise serializers.ValidationError('Esiste già un altro prodotto con questo codice.')
        return value

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Il nome del prodotto è obbligatorio.')
        return value

    def update(self, instance, validated_data):
        if 'category' in validated_data and validated_data['category'] is None:
            validated_data['category'] = Category.get_uncategorized()

        category = validated_data.get('category', instance.category)
        purchase_price = validated_data.get('purchase_price', instance.purchase_price)
        pricing_changed = category != instance.category or purchase_price != instance.purchase_price

        if validated_data.get('selling_price') is None:
            validated_data.pop('selling_price', None)
            if pricing_changed:
                validated_data['selling_price'] = selling_price_from_margin(purchase_price, category.profit_margin)

        return super().update(instance, validated_data)


class StagedProductSerializer(serializers.Serializer):
    """A product extracted from a supplier document, waiting for review"""
    name = serializers.CharField(max_length=255)
    code = serializers.CharField(max_length=100)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=Decimal('0'), default=Decimal('0'))
    purchase_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'), default=Decimal('0'))
    selling_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True)
    category = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all())
    category_name = serializers.CharField(source='category.name', read_only=True)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Il nome del prodotto è obbligatorio.')
        return value

    def validate_code(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Il codice prodotto è obbligatorio.')
        return value
