from django.utils import timezone
from rest_framework import serializers

from gestionale.catalog.models import Product
from gestionale.parties.models import Customer, ConstructionSite

MSG_ORDER_NO_ITEMS = "Aggiungi almeno un prodotto all'ordine."
MSG_ORDER_NO_CUSTOMER = 'Seleziona un cliente prima di continuare.'
MSG_SITE_NOT_OF_CUSTOMER = 'Il cantiere non appartiene al cliente selezionato.'


class OrderLineSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    quantity = serializers.IntegerField(min_value=1, default=1)


class OrderRequestSerializer(serializers.Serializer):
    """A material order for a customer (and optionally one of its sites); never stored"""
    customer = serializers.PrimaryKeyRelatedField(
        queryset=Customer.objects.all(),
        error_messages={'required': MSG_ORDER_NO_CUSTOMER, 'null': MSG_ORDER_NO_CUSTOMER},
    )
    site = serializers.PrimaryKeyRelatedField(queryset=ConstructionSite.objects.all(), required=False, allow_null=True)
    date = serializers.DateField(required=False)
    items = OrderLineSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError(MSG_ORDER_NO_ITEMS)
        return value

    def validate(self, attrs):
        site = attrs.get('site')
        if site is not None and site.customer_id != attrs['customer'].id:
            raise serializers.ValidationError({'site': MSG_SITE_NOT_OF_CUSTOMER})
        attrs['date'] = attrs.get('date') or timezone.localdate()
        return attrs
