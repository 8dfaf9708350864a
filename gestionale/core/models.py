from django.contrib.auth.models import AbstractUser
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from decimal import Decimal


DEFAULT_VAT_RATE = Decimal('22.00')


class User(AbstractUser):
    """Extended user model with additional fields"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'


class ShopInfo(models.Model):
    """Shop header data printed on quotes, checklists and orders (single row)"""
    name = models.CharField(max_length=200, default='ELETTRO-CALORE IMPIANTI')
    description = models.CharField(max_length=255, blank=True, default='VIA ELETTRICA 123, ROMA')
    vat_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=DEFAULT_VAT_RATE,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))]
    )
    company_name = models.CharField(max_length=200, blank=True)
    tax_code = models.CharField(max_length=32, blank=True)
    iban = models.CharField(max_length=34, blank=True)
    payment_conditions = models.CharField(max_length=255, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def display_company_name(self):
        return self.company_name or self.name

    @classmethod
    def get_solo(cls):
        """Return the shop info row, creating it with defaults on first access"""
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'shop_info'
        verbose_name = 'shop info'
        verbose_name_plural = 'shop info'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('price_change', 'Price Change'),
        ('stock_add', 'Stock Added'),
        ('materials_update', 'Site Materials Updated'),
        ('purchase_create', 'Purchase Created'),
        ('quote_create', 'Quote Created'),
        ('product_import', 'Products Imported'),
        ('document_record', 'Document Recorded'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., product name, quote number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., quote number, product code, document signature)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_fb5d28_idx'),
            models.Index(fields=['action'], name='audit_logs_action_6f3b77_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_n_1a2c4e_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_object__9d8e31_idx'),
        ]
