from rest_framework import serializers
from .models import User, ShopInfo, AuditLog


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'is_active', 'is_staff', 'is_superuser', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class ShopInfoSerializer(serializers.ModelSerializer):
    display_company_name = serializers.CharField(read_only=True)

    class Meta:
        model = ShopInfo
        fields = ['name', 'description', 'vat_rate', 'company_name', 'display_company_name',
                  'tax_code', 'iban', 'payment_conditions', 'updated_at']
        read_only_fields = ['updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Il nome del negozio è obbligatorio.')
        return value


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']
