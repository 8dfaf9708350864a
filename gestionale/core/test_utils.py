"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from gestionale.catalog.models import Category, Product
from gestionale.parties.models import Customer, ConstructionSite, SiteMaterial
from gestionale.purchasing.models import Purchase, PurchaseItem
from gestionale.quotes.services import create_quote
from decimal import Decimal
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def random_digits(length=11):
        return ''.join(random.choices(string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_category(name=None, profit_margin=None, vat_rate=None):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            profit_margin=profit_margin if profit_margin is not None else Decimal('30.00'),
            vat_rate=vat_rate if vat_rate is not None else Decimal('22.00'),
        )

    @staticmethod
    def create_product(name=None, code=None, category=None, quantity=None,
                       purchase_price=None, selling_price=None):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not code:
            code = f'CODE-{TestDataFactory.random_string(8)}'
        if not category:
            category = TestDataFactory.create_category()
        return Product.objects.create(
            name=name,
            code=code,
            category=category,
            quantity=quantity if quantity is not None else Decimal('10'),
            purchase_price=purchase_price if purchase_price is not None else Decimal('10.00'),
            selling_price=selling_price if selling_price is not None else Decimal('13.00'),
        )

    @staticmethod
    def create_customer(company_name=None, vat_number=None, tax_code=None, **extra):
        """Create a test customer"""
        if not company_name:
            company_name = f'Cliente_{TestDataFactory.random_string(6)} SRL'
        if vat_number is None:
            vat_number = TestDataFactory.random_digits(11)
        if tax_code is None:
            tax_code = TestDataFactory.random_string(16).upper()
        defaults = {
            'address': 'Via Roma 1',
            'city': 'Milano',
            'postal_code': '20121',
            'province': 'MI',
        }
        defaults.update(extra)
        return Customer.objects.create(
            company_name=company_name,
            vat_number=vat_number,
            tax_code=tax_code,
            **defaults
        )

    @staticmethod
    def create_site(customer=None, name=None, address=None):
        """Create a test construction site"""
        if not customer:
            customer = TestDataFactory.create_customer()
        if not name:
            name = f'Cantiere {TestDataFactory.random_string(6)}'
        return ConstructionSite.objects.create(
            customer=customer,
            name=name,
            address=address or 'Via Garibaldi 5, Milano'
        )

    @staticmethod
    def create_site_material(site, product=None, text='', quantity=None, purchased=False, position=0):
        """Create a test site material"""
        return SiteMaterial.objects.create(
            site=site,
            product=product,
            text=text,
            quantity=quantity if quantity is not None else Decimal('1'),
            purchased=purchased,
            position=position
        )

    @staticmethod
    def create_purchase(user=None, site=None, purchase_date=None, items=None):
        """
        Create a test purchase.

        items: [(product, quantity), ...]; the total is recalculated.
        """
        if not site:
            site = TestDataFactory.create_site()
        if not purchase_date:
            purchase_date = timezone.localdate()
        purchase = Purchase.objects.create(
            customer=site.customer,
            site=site,
            date=purchase_date,
            created_by=user
        )
        for product, quantity in items or []:
            PurchaseItem.objects.create(
                purchase=purchase,
                product=product,
                product_code=product.code,
                product_name=product.name,
                quantity=Decimal(str(quantity)),
                unit_price=product.purchase_price
            )
        purchase.recalculate_total()
        return purchase

    @staticmethod
    def create_quote(user=None, customer=None, site=None, items=None, quote_date=None, include_vat=True, notes=''):
        """Create a test quote through the quote service (numbered and priced)"""
        if site and not customer:
            customer = site.customer
        if not customer:
            customer = TestDataFactory.create_customer()
        if items is None:
            items = [(TestDataFactory.create_product(), 1)]
        return create_quote(
            customer=customer,
            lines=items,
            site=site,
            date=quote_date,
            notes=notes,
            include_vat=include_vat,
            user=user
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()


class APITestCase(TestCase):
    """TestCase with an authenticated client and an empty cache"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
