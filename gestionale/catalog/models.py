from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.db.models.functions import Lower
from decimal import Decimal

from .pricing import margin_percentage


UNCATEGORIZED_NAME = 'Da Assegnare'


class Category(models.Model):
    """Product categories, each with its own profit margin and VAT rate"""
    name = models.CharField(max_length=200, db_index=True)
    profit_margin = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))],
        help_text="Markup % applied to the purchase price to get the selling price"
    )
    vat_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('22.00'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))]
    )
    is_system = models.BooleanField(default=False, help_text="Set only on the built-in 'Da Assegnare' category")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @classmethod
    def get_uncategorized(cls):
        """Return the catch-all category for products without an assignment"""
        category = cls.objects.filter(is_system=True).first()
        if category is None:
            category, _ = cls.objects.get_or_create(
                name__iexact=UNCATEGORIZED_NAME,
                defaults={'name': UNCATEGORIZED_NAME, 'profit_margin': Decimal('0.00'), 'vat_rate': Decimal('22.00'), 'is_system': True},
            )
            if not category.is_system:
                category.is_system = True
                category.save(update_fields=['is_system', 'updated_at'])
        return category

    @classmethod
    def name_taken(cls, name, exclude_pk=None):
        queryset = cls.objects.filter(name__iexact=name.strip())
        if exclude_pk is not None:
            queryset = queryset.exclude(pk=exclude_pk)
        return queryset.exists()

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(Lower('name'), name='categories_name_ci_unique'),
        ]


class Product(models.Model):
    """Product master: one row per product code"""
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name='products')
    code = models.CharField(max_length=100, db_index=True)
    name = models.CharField(max_length=255, db_index=True)
    quantity = models.DecimalField(
        max_digits=12, decimal_places=3, default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))]
    )
    purchase_price = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))]
    )
    selling_price = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))]
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.code})"

    @property
    def margin_percentage(self):
        return margin_percentage(self.purchase_price, self.selling_price)

    @property
    def stock_value(self):
        return self.purchase_price * self.quantity

    class Meta:
        db_table = 'products'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(Lower('code'), name='products_code_ci_unique'),
        ]
