from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from decimal import Decimal

from gestionale.core.models import User


class Quote(models.Model):
    """A proforma quote (preventivo) issued to a customer, optionally for one of its sites"""
    quote_number = models.CharField(max_length=30, unique=True, db_index=True)
    customer = models.ForeignKey('parties.Customer', on_delete=models.PROTECT, related_name='quotes')
    site = models.ForeignKey('parties.ConstructionSite', on_delete=models.SET_NULL, null=True, blank=True, related_name='quotes')
    date = models.DateField(default=timezone.localdate, db_index=True)
    notes = models.TextField(blank=True)
    include_vat = models.BooleanField(default=True)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    vat_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('0.00'),
        help_text="Effective VAT rate: tax / subtotal × 100"
    )
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='quotes')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.quote_number

    class Meta:
        db_table = 'quotes'
        ordering = ['-date', '-id']


class QuoteItem(models.Model):
    """A quoted product line; code, name, selling price and VAT rate are copied when the quote is saved"""
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='quote_items')
    product_code = models.CharField(max_length=100)
    product_name = models.CharField(max_length=255)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    vat_rate = models.DecimalField(max_digits=5, decimal_places=2)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    def __str__(self):
        return f"{self.product_name} x {self.quantity}"

    def get_line_total(self):
        return self.unit_price * self.quantity

    class Meta:
        db_table = 'quote_items'
        ordering = ['id']
