"""
Test suite for the purchasing module
Tests: purchases with price snapshots, site/customer validation, document signatures and the upload ledger
"""
from datetime import date
from decimal import Decimal

from django.db import IntegrityError
from django.test import TestCase
from rest_framework import status

from gestionale.core.models import AuditLog
from gestionale.core.test_utils import TestDataFactory, APITestCase
from gestionale.purchasing.models import Purchase, PurchaseItem, DocumentImport
from gestionale.purchasing.signatures import create_document_signature


class PurchaseModelTests(TestCase):

    def setUp(self):
        self.site = TestDataFactory.create_site()
        self.product = TestDataFactory.create_product(purchase_price=Decimal('5.50'))

    def test_purchase_str(self):
        purchase = TestDataFactory.create_purchase(site=self.site)
        self.assertIn('Purchase-', str(purchase))

    def test_total(self):
        other = TestDataFactory.create_product(purchase_price=Decimal('8.50'))
        purchase = TestDataFactory.create_purchase(site=self.site, items=[(self.product, 20), (other, 5)])
        self.assertEqual(purchase.total, Decimal('152.50'))
        self.assertEqual(purchase.get_total(), Decimal('152.50'))

    def test_line_total(self):
        purchase = TestDataFactory.create_purchase(site=self.site, items=[(self.product, '2.5')])
        item = purchase.items.get()
        self.assertEqual(item.get_line_total(), Decimal('13.75'))


class PurchaseAPITests(APITestCase):

    def setUp(self):
        super().setUp()
        self.customer = TestDataFactory.create_customer()
        self.site = TestDataFactory.create_site(customer=self.customer)
        self.product = TestDataFactory.create_product(code='CAV-01', name='Cavo HDMI 2m', purchase_price=Decimal('5.50'))

    def test_create_purchase(self):
        data = {
            'customer': self.customer.id,
            'site': self.site.id,
            'date': '2023-10-15',
            'items': [{'product': self.product.id, 'quantity': '20'}],
        }
        response = self.client.post('/api/v1/purchases/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total'], '110.00')
        self.assertEqual(response.data['items'][0]['product_code'], 'CAV-01')
        self.assertEqual(response.data['items'][0]['unit_price'], '5.50')
        self.assertEqual(response.data['created_by'], self.user.id)
        self.assertTrue(AuditLog.objects.filter(action='purchase_create').exists())

    def test_create_purchase_defaults_to_today(self):
        data = {'customer': self.customer.id, 'site': self.site.id, 'items': [{'product': self.product.id, 'quantity': '1'}]}
        response = self.client.post('/api/v1/purchases/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNotNone(response.data['date'])

    def test_price_snapshot_survives_product_changes(self):
        data = {'customer': self.customer.id, 'site': self.site.id, 'items': [{'product': self.product.id, 'quantity': '2'}]}
        response = self.client.post('/api/v1/purchases/', data, format='json')
        self.product.purchase_price = Decimal('9.99')
        self.product.name = 'Rinominato'
        self.product.save()
        item = PurchaseItem.objects.get(purchase_id=response.data['id'])
        self.assertEqual(item.unit_price, Decimal('5.50'))
        self.assertEqual(item.product_name, 'Cavo HDMI 2m')

    def test_create_purchase_without_items(self):
        data = {'customer': self.customer.id, 'site': self.site.id, 'items': []}
        response = self.client.post('/api/v1/purchases/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)
        self.assertFalse(Purchase.objects.exists())

    def test_create_purchase_zero_quantity(self):
        data = {'customer': self.customer.id, 'site': self.site.id, 'items': [{'product': self.product.id, 'quantity': '0'}]}
        response = self.client.post('/api/v1/purchases/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_site_must_belong_to_customer(self):
        other_site = TestDataFactory.create_site()
        data = {'customer': self.customer.id, 'site': other_site.id, 'items': [{'product': self.product.id, 'quantity': '1'}]}
        response = self.client.post('/api/v1/purchases/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('site', response.data)

    def test_site_purchases_newest_first(self):
        older = TestDataFactory.create_purchase(site=self.site, purchase_date=date(2023, 10, 15), items=[(self.product, 20)])
        newer = TestDataFactory.create_purchase(site=self.site, purchase_date=date(2023, 10, 18), items=[(self.product, 1)])
        TestDataFactory.create_purchase(items=[(self.product, 1)])
        response = self.client.get(f'/api/v1/sites/{self.site.id}/purchases/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [newer.id, older.id])

    def test_list_filters(self):
        TestDataFactory.create_purchase(site=self.site, purchase_date=date(2023, 10, 15), items=[(self.product, 1)])
        TestDataFactory.create_purchase(site=self.site, purchase_date=date(2024, 1, 10), items=[(self.product, 1)])
        TestDataFactory.create_purchase(items=[(self.product, 1)])

        response = self.client.get('/api/v1/purchases/', {'customer': self.customer.id})
        self.assertEqual(len(response.data), 2)
        response = self.client.get('/api/v1/purchases/', {'site': self.site.id, 'date_from': '2024-01-01'})
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/purchases/', {'date_to': '2023-12-31'})
        self.assertEqual(len(response.data), 1)

    def test_invalid_filters(self):
        response = self.client.get('/api/v1/purchases/', {'date_from': 'garbage'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date_from', response.data)
        response = self.client.get('/api/v1/purchases/', {'customer': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('customer', response.data)

    def test_purchase_detail(self):
        purchase = TestDataFactory.create_purchase(site=self.site, items=[(self.product, 3)])
        response = self.client.get(f'/api/v1/purchases/{purchase.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], '16.50')
        response = self.client.get('/api/v1/purchases/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class DocumentSignatureTests(TestCase):

    def test_signature_format(self):
        products = [
            {'code': ' B-2 ', 'quantity': Decimal('10.000')},
            {'code': 'A-1', 'quantity': Decimal('2.50')},
            {'code': None, 'quantity': 1},
        ]
        signature = create_document_signature('  Forniture Elettriche SpA ', '2024-03-15', products)
        self.assertEqual(signature, 'forniture elettriche spa|2024-03-15|A-1:2.5;B-2:10;N/A:1')

    def test_signature_ignores_line_order(self):
        lines = [{'code': 'A', 'quantity': 1}, {'code': 'B', 'quantity': 2}]
        self.assertEqual(
            create_document_signature('X', '2024-01-01', lines),
            create_document_signature('x', '2024-01-01', list(reversed(lines))),
        )

    def test_record_is_idempotent(self):
        _, created = DocumentImport.record('sig-1', supplier='X')
        _, created_again = DocumentImport.record('sig-1', supplier='X')
        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(DocumentImport.objects.count(), 1)

    def test_signature_unique(self):
        DocumentImport.objects.create(signature='sig-2')
        with self.assertRaises(IntegrityError):
            DocumentImport.objects.create(signature='sig-2')


class DocumentLedgerAPITests(APITestCase):

    def test_check_and_record(self):
        signature = 'forniture elettriche spa|2024-03-15|CAV-25:100'
        response = self.client.get('/api/v1/documents/check/', {'signature': signature})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['exists'])

        data = {'signature': signature, 'supplier': 'Forniture Elettriche SpA', 'document_date': '2024-03-15'}
        response = self.client.post('/api/v1/documents/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.post('/api/v1/documents/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(DocumentImport.objects.count(), 1)

        response = self.client.get('/api/v1/documents/check/', {'signature': signature})
        self.assertTrue(response.data['exists'])

    def test_check_requires_signature(self):
        response = self.client.get('/api/v1/documents/check/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_record_requires_signature(self):
        response = self.client.post('/api/v1/documents/', {'signature': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
