"""
Test suite for the orders module
Tests: material orders priced at purchase price, validation and PDF output
"""
from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from gestionale.core.test_utils import TestDataFactory, APITestCase
from gestionale.orders.services import build_order


class BuildOrderTests(TestCase):

    def test_priced_at_purchase_price(self):
        customer = TestDataFactory.create_customer()
        product = TestDataFactory.create_product(code='CAV-01', purchase_price=Decimal('5.50'), selling_price=Decimal('8.80'))
        other = TestDataFactory.create_product(code='TSH-001', purchase_price=Decimal('8.50'))
        order = build_order(customer, [(product, 4), (other, 1), (product, 6)], date(2024, 3, 1))
        self.assertEqual([item['code'] for item in order['items']], ['CAV-01', 'TSH-001'])
        self.assertEqual(order['items'][0]['quantity'], 10)
        self.assertEqual(order['items'][0]['line_total'], Decimal('55.00'))
        self.assertEqual(order['total'], Decimal('63.50'))
        self.assertIsNone(order['site'])


class OrderAPITests(APITestCase):

    def setUp(self):
        super().setUp()
        self.customer = TestDataFactory.create_customer()
        self.site = TestDataFactory.create_site(customer=self.customer)
        self.product = TestDataFactory.create_product(code='CAV-01', purchase_price=Decimal('5.50'))

    def test_preview(self):
        data = {
            'customer': self.customer.id,
            'site': self.site.id,
            'date': '2024-03-01',
            'items': [{'product': self.product.id, 'quantity': 20}],
        }
        response = self.client.post('/api/v1/orders/preview/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['date'], '2024-03-01')
        self.assertEqual(response.data['site'], self.site.id)
        self.assertEqual(response.data['items'][0]['unit_price'], '5.50')
        self.assertEqual(response.data['total'], '110.00')

    def test_pdf(self):
        data = {'customer': self.customer.id, 'date': '2024-03-01', 'items': [{'product': self.product.id, 'quantity': 2}]}
        response = self.client.post('/api/v1/orders/pdf/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertEqual(response['Content-Disposition'], 'attachment; filename="Ordine-2024-03-01.pdf"')
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_date_defaults_to_today(self):
        data = {'customer': self.customer.id, 'items': [{'product': self.product.id, 'quantity': 1}]}
        response = self.client.post('/api/v1/orders/preview/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['date'])

    def test_without_items(self):
        response = self.client.post('/api/v1/orders/pdf/', {'customer': self.customer.id, 'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], "Aggiungi almeno un prodotto all'ordine.")

    def test_body_must_be_an_object(self):
        response = self.client.post('/api/v1/orders/pdf/', [{'product': self.product.id, 'quantity': 1}], format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_without_customer(self):
        data = {'items': [{'product': self.product.id, 'quantity': 1}]}
        response = self.client.post('/api/v1/orders/pdf/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['customer'][0], 'Seleziona un cliente prima di continuare.')

    def test_site_must_belong_to_customer(self):
        other_site = TestDataFactory.create_site()
        data = {'customer': self.customer.id, 'site': other_site.id, 'items': [{'product': self.product.id, 'quantity': 1}]}
        response = self.client.post('/api/v1/orders/preview/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('site', response.data)

    def test_requires_authentication(self):
        self.client.logout()
        data = {'customer': self.customer.id, 'items': [{'product': self.product.id, 'quantity': 1}]}
        response = self.client.post('/api/v1/orders/pdf/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
