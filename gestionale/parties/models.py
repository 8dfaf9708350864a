from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal


class Customer(models.Model):
    """Customers (companies or private clients) the shop works for"""
    company_name = models.CharField(max_length=255, db_index=True, help_text="Ragione sociale")
    vat_number = models.CharField(max_length=20, blank=True, db_index=True, help_text="Partita IVA")
    tax_code = models.CharField(max_length=20, blank=True, db_index=True, help_text="Codice fiscale")
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=10, blank=True)
    province = models.CharField(max_length=5, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.company_name

    @property
    def city_line(self):
        """'00100 Roma (RM)' as printed on documents"""
        line = f"{self.postal_code} {self.city}".strip()
        if self.province:
            line = f"{line} ({self.province})"
        return line

    @classmethod
    def find_duplicate(cls, vat_number='', tax_code='', exclude_pk=None):
        """Return a customer with the same non-empty VAT number or tax code, if any"""
        query = models.Q()
        if vat_number and vat_number.strip():
            query |= models.Q(vat_number__iexact=vat_number.strip())
        if tax_code and tax_code.strip():
            query |= models.Q(tax_code__iexact=tax_code.strip())
        if not query:
            return None
        queryset = cls.objects.filter(query)
        if exclude_pk is not None:
            queryset = queryset.exclude(pk=exclude_pk)
        return queryset.first()

    class Meta:
        db_table = 'customers'
        ordering = ['company_name']


class ConstructionSite(models.Model):
    """A customer's job site (cantiere)"""
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='sites')
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.customer.company_name})"

    class Meta:
        db_table = 'construction_sites'
        ordering = ['name']


class SiteMaterial(models.Model):
    """An entry of a site's material checklist: a catalog product or free text"""
    site = models.ForeignKey(ConstructionSite, on_delete=models.CASCADE, related_name='materials')
    product = models.ForeignKey('catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='site_materials')
    text = models.CharField(max_length=255, blank=True)
    quantity = models.DecimalField(
        max_digits=12, decimal_places=3, default=Decimal('1'),
        validators=[MinValueValidator(Decimal('0.001'))]
    )
    purchased = models.BooleanField(default=False)
    position = models.PositiveIntegerField(default=0)

    def __str__(self):
        label = self.product.name if self.product else self.text
        return f"{label} x {self.quantity}"

    class Meta:
        db_table = 'site_materials'
        ordering = ['position', 'id']
