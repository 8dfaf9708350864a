"""
Test suite for the quotes module
Tests: per-category VAT totals, yearly numbering, preview, creation and PDF download
"""
from datetime import date
from decimal import Decimal
from unittest import mock

from django.db import IntegrityError
from django.test import TestCase
from rest_framework import status

from gestionale.core.models import AuditLog
from gestionale.core.test_utils import TestDataFactory, APITestCase
from gestionale.quotes.models import Quote
from gestionale.quotes.services import create_quote, next_quote_number
from gestionale.quotes.totals import compute_quote_totals, merge_lines


class QuoteTotalsTests(TestCase):

    def setUp(self):
        self.reduced = TestDataFactory.create_category(name='Cavi', vat_rate=Decimal('10.00'))
        self.standard = TestDataFactory.create_category(name='Audio', vat_rate=Decimal('22.00'))
        self.cable = TestDataFactory.create_product(code='CAV-01', category=self.reduced, selling_price=Decimal('8.80'))
        self.headphones = TestDataFactory.create_product(code='HDP-002', category=self.standard, selling_price=Decimal('58.50'))

    def test_mixed_vat_rates(self):
        totals = compute_quote_totals([(self.cable, 15), (self.headphones, 1)])
        self.assertEqual(totals['subtotal'], Decimal('190.50'))
        self.assertEqual(totals['tax'], Decimal('26.07'))
        self.assertEqual(totals['total'], Decimal('216.57'))
        self.assertEqual(totals['vat_rate'], Decimal('13.69'))
        self.assertEqual([item['vat_rate'] for item in totals['items']], [Decimal('10.00'), Decimal('22.00')])

    def test_without_vat(self):
        totals = compute_quote_totals([(self.cable, 15), (self.headphones, 1)], include_vat=False)
        self.assertEqual(totals['tax'], Decimal('0.00'))
        self.assertEqual(totals['total'], totals['subtotal'])
        self.assertEqual(totals['vat_rate'], Decimal('0.00'))

    def test_rounds_once_at_the_end(self):
        product = TestDataFactory.create_product(category=self.standard, selling_price=Decimal('0.05'))
        # 3 x 0.05 x 22% = 0.033 of tax
        totals = compute_quote_totals([(product, 3)])
        self.assertEqual(totals['subtotal'], Decimal('0.15'))
        self.assertEqual(totals['tax'], Decimal('0.03'))
        self.assertEqual(totals['total'], Decimal('0.18'))

    def test_merge_repeated_products(self):
        merged = merge_lines([(self.cable, 2), (self.headphones, 1), (self.cable, 3)])
        self.assertEqual(merged, [(self.cable, 5), (self.headphones, 1)])

    def test_empty_lines(self):
        totals = compute_quote_totals([])
        self.assertEqual(totals['items'], [])
        self.assertEqual(totals['total'], Decimal('0.00'))


class QuoteNumberingTests(TestCase):

    def test_sequence_per_year(self):
        first = TestDataFactory.create_quote(quote_date=date(2024, 5, 10))
        second = TestDataFactory.create_quote(quote_date=date(2024, 6, 1))
        next_year = TestDataFactory.create_quote(quote_date=date(2025, 1, 2))
        self.assertEqual(first.quote_number, 'PREV-2024-001')
        self.assertEqual(second.quote_number, 'PREV-2024-002')
        self.assertEqual(next_year.quote_number, 'PREV-2025-001')

    def test_next_number_after_gap(self):
        TestDataFactory.create_quote(quote_date=date(2024, 5, 10))
        Quote.objects.filter(quote_number='PREV-2024-001').update(quote_number='PREV-2024-007')
        self.assertEqual(next_quote_number(2024), 'PREV-2024-008')

    def test_number_collision_is_retried(self):
        TestDataFactory.create_quote(quote_date=date(2024, 5, 10))
        customer = TestDataFactory.create_customer()
        product = TestDataFactory.create_product()
        with mock.patch('gestionale.quotes.services.next_quote_number',
                        side_effect=['PREV-2024-001', 'PREV-2024-002']):
            quote = create_quote(customer, [(product, 1)], date=date(2024, 6, 1))
        self.assertEqual(quote.quote_number, 'PREV-2024-002')
        self.assertEqual(quote.items.count(), 1)
        self.assertEqual(Quote.objects.count(), 2)

    def test_number_collision_gives_up(self):
        TestDataFactory.create_quote(quote_date=date(2024, 5, 10))
        customer = TestDataFactory.create_customer()
        product = TestDataFactory.create_product()
        with mock.patch('gestionale.quotes.services.next_quote_number', return_value='PREV-2024-001'):
            with self.assertRaises(IntegrityError):
                create_quote(customer, [(product, 1)], date=date(2024, 6, 1))
        self.assertEqual(Quote.objects.count(), 1)

    def test_items_are_snapshots(self):
        product = TestDataFactory.create_product(name='Cuffie', selling_price=Decimal('58.50'))
        customer = TestDataFactory.create_customer()
        quote = create_quote(customer, [(product, 2)], date=date(2024, 5, 10))
        product.selling_price = Decimal('70.00')
        product.save()
        item = quote.items.get()
        self.assertEqual(item.unit_price, Decimal('58.50'))
        self.assertEqual(item.product_name, 'Cuffie')
        self.assertEqual(item.get_line_total(), Decimal('117.00'))


class QuoteAPITests(APITestCase):

    def setUp(self):
        super().setUp()
        self.customer = TestDataFactory.create_customer(company_name='Rossi Costruzioni SRL')
        self.site = TestDataFactory.create_site(customer=self.customer, name='Villetta Nord')
        category = TestDataFactory.create_category(vat_rate=Decimal('10.00'))
        self.cable = TestDataFactory.create_product(code='CAV-01', category=category, selling_price=Decimal('8.80'))

    def test_preview(self):
        data = {'items': [{'product': self.cable.id, 'quantity': 10}, {'product': self.cable.id, 'quantity': 5}]}
        response = self.client.post('/api/v1/quotes/preview/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 1)
        self.assertEqual(response.data['items'][0]['quantity'], 15)
        self.assertEqual(response.data['subtotal'], '132.00')
        self.assertEqual(response.data['tax'], '13.20')
        self.assertEqual(response.data['total'], '145.20')
        self.assertFalse(Quote.objects.exists())

    def test_body_must_be_an_object(self):
        response = self.client.post('/api/v1/quotes/', [{'product': self.cable.id, 'quantity': 1}], format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_preview_without_items(self):
        response = self.client.post('/api/v1/quotes/preview/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], "Aggiungi almeno un prodotto al preventivo.")

    def test_create_quote(self):
        data = {
            'customer': self.customer.id,
            'site': self.site.id,
            'date': '2024-05-10',
            'notes': 'Consegna in cantiere',
            'include_vat': True,
            'items': [{'product': self.cable.id, 'quantity': 15}],
        }
        response = self.client.post('/api/v1/quotes/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['quote_number'], 'PREV-2024-001')
        self.assertEqual(response.data['total'], '145.20')
        self.assertEqual(response.data['site_name'], 'Villetta Nord')
        self.assertEqual(response.data['items'][0]['product_code'], 'CAV-01')
        self.assertEqual(response.data['created_by'], self.user.id)
        self.assertTrue(AuditLog.objects.filter(action='quote_create', object_reference='PREV-2024-001').exists())

    def test_create_quote_without_vat(self):
        data = {'customer': self.customer.id, 'include_vat': False, 'items': [{'product': self.cable.id, 'quantity': 10}]}
        response = self.client.post('/api/v1/quotes/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['tax'], '0.00')
        self.assertEqual(response.data['total'], '88.00')
        self.assertIsNone(response.data['site'])

    def test_create_quote_without_items(self):
        response = self.client.post('/api/v1/quotes/', {'customer': self.customer.id, 'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)
        self.assertFalse(Quote.objects.exists())

    def test_create_quote_invalid_quantity(self):
        data = {'customer': self.customer.id, 'items': [{'product': self.cable.id, 'quantity': 0}]}
        response = self.client.post('/api/v1/quotes/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_site_must_belong_to_customer(self):
        other_site = TestDataFactory.create_site()
        data = {'customer': self.customer.id, 'site': other_site.id, 'items': [{'product': self.cable.id, 'quantity': 1}]}
        response = self.client.post('/api/v1/quotes/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('site', response.data)

    def test_list_filters(self):
        TestDataFactory.create_quote(site=self.site, items=[(self.cable, 1)])
        TestDataFactory.create_quote(customer=self.customer, items=[(self.cable, 1)])
        TestDataFactory.create_quote(items=[(self.cable, 1)])

        response = self.client.get('/api/v1/quotes/')
        self.assertEqual(len(response.data), 3)
        response = self.client.get('/api/v1/quotes/', {'customer': self.customer.id})
        self.assertEqual(len(response.data), 2)
        response = self.client.get('/api/v1/quotes/', {'site': self.site.id})
        self.assertEqual(len(response.data), 1)

    def test_invalid_filters(self):
        response = self.client.get('/api/v1/quotes/', {'customer': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('customer', response.data)
        response = self.client.get('/api/v1/quotes/', {'site': 'x'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_site_quotes_newest_first(self):
        older = TestDataFactory.create_quote(site=self.site, quote_date=date(2024, 5, 10), items=[(self.cable, 1)])
        newer = TestDataFactory.create_quote(site=self.site, quote_date=date(2024, 6, 1), items=[(self.cable, 1)])
        response = self.client.get(f'/api/v1/sites/{self.site.id}/quotes/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [newer.id, older.id])

        response = self.client.get('/api/v1/sites/99999/quotes/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_quote_detail(self):
        quote = TestDataFactory.create_quote(customer=self.customer, items=[(self.cable, 2)])
        response = self.client.get(f'/api/v1/quotes/{quote.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['line_total'], '17.60')
        response = self.client.get('/api/v1/quotes/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_quote_pdf_download(self):
        quote = TestDataFactory.create_quote(site=self.site, quote_date=date(2024, 5, 10), items=[(self.cable, 15)])
        response = self.client.get(f'/api/v1/quotes/{quote.id}/pdf/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertEqual(response['Content-Disposition'], 'attachment; filename="Preventivo-PREV-2024-001.pdf"')
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_quote_pdf_inline(self):
        quote = TestDataFactory.create_quote(customer=self.customer, items=[(self.cable, 1)])
        response = self.client.get(f'/api/v1/quotes/{quote.id}/pdf/', {'inline': '1'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Disposition'].startswith('inline;'))

    def test_quote_pdf_many_items(self):
        products = [TestDataFactory.create_product(selling_price=Decimal('1.00')) for _ in range(60)]
        quote = TestDataFactory.create_quote(customer=self.customer, items=[(p, 1) for p in products])
        response = self.client.get(f'/api/v1/quotes/{quote.id}/pdf/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_quote_pdf_not_found(self):
        response = self.client.get('/api/v1/quotes/99999/pdf/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
