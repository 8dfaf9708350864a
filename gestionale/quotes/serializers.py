from rest_framework import serializers

from gestionale.catalog.models import Product
from gestionale.parties.models import Customer, ConstructionSite
from .models import Quote, QuoteItem

MSG_QUOTE_NO_ITEMS = 'Aggiungi almeno un prodotto al preventivo.'
MSG_SITE_NOT_OF_CUSTOMER = 'Il cantiere non appartiene al cliente selezionato.'


class QuoteLineSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.select_related('category'))
    quantity = serializers.IntegerField(min_value=1, default=1)


class QuotePreviewSerializer(serializers.Serializer):
    """Items and VAT switch; enough to price a quote"""
    items = QuoteLineSerializer(many=True)
    include_vat = serializers.BooleanField(default=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError(MSG_QUOTE_NO_ITEMS)
        return value

    def get_lines(self):
        return [(item['product'], item['quantity']) for item in self.validated_data['items']]


class QuoteCreateSerializer(QuotePreviewSerializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all())
    site = serializers.PrimaryKeyRelatedField(queryset=ConstructionSite.objects.all(), required=False, allow_null=True)
    date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        site = attrs.get('site')
        if site is not None and site.customer_id != attrs['customer'].id:
            raise serializers.ValidationError({'site': MSG_SITE_NOT_OF_CUSTOMER})
        return attrs


class QuoteItemSerializer(serializers.ModelSerializer):
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = QuoteItem
        fields = ['id', 'product', 'product_code', 'product_name', 'unit_price', 'vat_rate', 'quantity', 'line_total']

    def get_line_total(self, obj):
        return f"{obj.get_line_total():.2f}"


class QuoteSerializer(serializers.ModelSerializer):
    items = QuoteItemSerializer(many=True, read_only=True)
    customer_name = serializers.CharField(source='customer.company_name', read_only=True)
    site_name = serializers.CharField(source='site.name', read_only=True, default=None)

    class Meta:
        model = Quote
        fields = ['id', 'quote_number', 'customer', 'customer_name', 'site', 'site_name', 'date', 'notes',
                  'include_vat', 'subtotal', 'tax', 'total', 'vat_rate', 'items', 'created_by', 'created_at']
        read_only_fields = fields
