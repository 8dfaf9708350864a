from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from decimal import Decimal

from gestionale.core.models import User
from gestionale.catalog.pricing import quantize_money


class Purchase(models.Model):
    """Materials bought for a customer's construction site"""
    customer = models.ForeignKey('parties.Customer', on_delete=models.PROTECT, related_name='purchases')
    site = models.ForeignKey('parties.ConstructionSite', on_delete=models.PROTECT, related_name='purchases')
    date = models.DateField(default=timezone.localdate, db_index=True)
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='purchases')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Purchase-{self.id} ({self.date})"

    def get_total(self):
        return sum((item.get_line_total() for item in self.items.all()), Decimal('0.00'))

    def recalculate_total(self):
        self.total = quantize_money(self.get_total())
        self.save(update_fields=['total', 'updated_at'])
        return self.total

    class Meta:
        db_table = 'purchases'
        ordering = ['-date', '-id']


class PurchaseItem(models.Model):
    """A purchased product line; code, name and price are copied at purchase time"""
    purchase = models.ForeignKey(Purchase, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_items')
    product_code = models.CharField(max_length=100)
    product_name = models.CharField(max_length=255)
    quantity = models.DecimalField(
        max_digits=12, decimal_places=3,
        validators=[MinValueValidator(Decimal('0.001'))]
    )
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)

    def __str__(self):
        return f"{self.product_name} x {self.quantity}"

    def get_line_total(self):
        return self.quantity * self.unit_price

    class Meta:
        db_table = 'purchase_items'
        ordering = ['id']


class DocumentImport(models.Model):
    """Ledger of supplier documents already imported into the catalog"""
    signature = models.TextField(unique=True)
    supplier = models.CharField(max_length=255, blank=True)
    document_date = models.CharField(max_length=20, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='document_imports')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.signature[:80]

    @classmethod
    def exists(cls, signature):
        return cls.objects.filter(signature=signature).exists()

    @classmethod
    def record(cls, signature, supplier='', document_date='', user=None):
        """Record a signature; returns (entry, created) and never duplicates"""
        return cls.objects.get_or_create(
            signature=signature,
            defaults={
                'supplier': supplier or '',
                'document_date': document_date or '',
                'created_by': user if user and user.is_authenticated else None,
            },
        )

    class Meta:
        db_table = 'document_imports'
        ordering = ['-created_at']
