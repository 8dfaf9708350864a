"""
Test suite for the parties module
Tests: customers, duplicate detection, autofill, construction sites and their material checklists
"""
from decimal import Decimal
from unittest import mock

from django.test import TestCase, override_settings
from rest_framework import status

from gestionale.core.gemini_service import AssistantError
from gestionale.core.models import AuditLog
from gestionale.core.test_utils import TestDataFactory, APITestCase
from gestionale.parties.models import Customer, ConstructionSite, SiteMaterial


class CustomerModelTests(TestCase):

    def test_city_line(self):
        customer = TestDataFactory.create_customer(city='Milano', postal_code='20121', province='MI')
        self.assertEqual(customer.city_line, '20121 Milano (MI)')

    def test_find_duplicate_by_vat_or_tax_code(self):
        customer = TestDataFactory.create_customer(vat_number='12345678901', tax_code='RSSMRA80A01H501Y')
        self.assertEqual(Customer.find_duplicate('12345678901', ''), customer)
        self.assertEqual(Customer.find_duplicate('', 'rssmra80a01h501y'), customer)
        self.assertIsNone(Customer.find_duplicate('99999999999', 'ALTRO'))
        self.assertIsNone(Customer.find_duplicate('12345678901', '', exclude_pk=customer.pk))

    def test_blank_identifiers_never_duplicate(self):
        TestDataFactory.create_customer(vat_number='', tax_code='')
        self.assertIsNone(Customer.find_duplicate('', ''))
        self.assertIsNone(Customer.find_duplicate('  ', None))


class CustomerAPITests(APITestCase):

    def test_create_customer(self):
        data = {
            'company_name': 'Mario Rossi SRL', 'vat_number': '12345678901', 'tax_code': 'rssmra80a01h501y',
            'address': 'Via Roma 1', 'city': 'Milano', 'postal_code': '20121', 'province': 'mi',
        }
        response = self.client.post('/api/v1/customers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['tax_code'], 'RSSMRA80A01H501Y')
        self.assertEqual(response.data['province'], 'MI')
        self.assertEqual(response.data['site_count'], 0)

    def test_create_duplicate_vat(self):
        TestDataFactory.create_customer(vat_number='12345678901')
        response = self.client.post('/api/v1/customers/', {'company_name': 'Altro', 'vat_number': '12345678901'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cliente con questa P.IVA o Codice Fiscale già esistente.')

    def test_create_customers_without_identifiers(self):
        for name in ('Privato Uno', 'Privato Due'):
            response = self.client.post('/api/v1/customers/', {'company_name': name}, format='json')
            self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_company_name_required(self):
        response = self.client.post('/api/v1/customers/', {'company_name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_ordered_and_searchable(self):
        TestDataFactory.create_customer(company_name='Zeta Impianti', vat_number='11111111111')
        TestDataFactory.create_customer(company_name='Alfa Costruzioni', vat_number='22222222222')
        response = self.client.get('/api/v1/customers/')
        self.assertEqual([row['company_name'] for row in response.data], ['Alfa Costruzioni', 'Zeta Impianti'])
        response = self.client.get('/api/v1/customers/', {'search': '1111111'})
        self.assertEqual([row['company_name'] for row in response.data], ['Zeta Impianti'])

    def test_update_to_duplicate_vat(self):
        TestDataFactory.create_customer(vat_number='12345678901')
        customer = TestDataFactory.create_customer(vat_number='99999999999')
        response = self.client.patch(f'/api/v1/customers/{customer.id}/', {'vat_number': '12345678901'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_keeps_own_identifiers(self):
        customer = TestDataFactory.create_customer(vat_number='12345678901')
        response = self.client.patch(f'/api/v1/customers/{customer.id}/', {'phone': '021234567'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['phone'], '021234567')

    def test_delete_customer(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_site(customer=customer)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(ConstructionSite.objects.exists())
        self.assertTrue(AuditLog.objects.filter(model_name='Customer', action='delete').exists())

    def test_delete_customer_with_quotes_blocked(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_quote(customer=customer)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Customer.objects.filter(pk=customer.pk).exists())

    def test_delete_customer_with_purchases_blocked(self):
        site = TestDataFactory.create_site()
        TestDataFactory.create_purchase(site=site, items=[(TestDataFactory.create_product(), 1)])
        response = self.client.delete(f'/api/v1/customers/{site.customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_not_found(self):
        response = self.client.get('/api/v1/customers/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Cliente non trovato')


class CustomerOverviewAPITests(APITestCase):

    def test_overview_groups_by_site(self):
        customer = TestDataFactory.create_customer()
        site = TestDataFactory.create_site(customer=customer, name='Nuova Villetta')
        TestDataFactory.create_site(customer=customer, name='Ufficio')
        product = TestDataFactory.create_product(purchase_price=Decimal('5.50'), selling_price=Decimal('8.80'))
        TestDataFactory.create_purchase(site=site, items=[(product, 20)])
        TestDataFactory.create_purchase(site=site, items=[(product, 2)])
        TestDataFactory.create_quote(site=site, items=[(product, 10)], include_vat=False)

        response = self.client.get(f'/api/v1/customers/{customer.id}/overview/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customer']['id'], customer.id)
        sites = {row['name']: row for row in response.data['sites']}
        self.assertEqual(len(sites['Nuova Villetta']['purchases']), 2)
        self.assertEqual(sites['Nuova Villetta']['purchase_total'], '121.00')
        self.assertEqual(sites['Nuova Villetta']['quote_total'], '88.00')
        self.assertEqual(sites['Ufficio']['purchases'], [])
        self.assertEqual(sites['Ufficio']['purchase_total'], '0.00')


class CustomerAutofillAPITests(APITestCase):

    def test_requires_company_name(self):
        response = self.client.post('/api/v1/customers/autofill/', {'company_name': ' '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Inserisci prima la Ragione Sociale.')

    def test_body_must_be_an_object(self):
        response = self.client.post('/api/v1/customers/autofill/', ['Mario Rossi SRL'], format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Inserisci prima la Ragione Sociale.')

    @mock.patch('gestionale.core.gemini_service.lookup_company_identifiers')
    def test_returns_identifiers(self, mock_lookup):
        mock_lookup.return_value = {'vat_number': '12345678901', 'tax_code': '12345678901'}
        response = self.client.post('/api/v1/customers/autofill/', {'company_name': 'Mario Rossi SRL'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'vat_number': '12345678901', 'tax_code': '12345678901'})
        mock_lookup.assert_called_once_with('Mario Rossi SRL')
        self.assertFalse(Customer.objects.exists())

    @mock.patch('gestionale.core.gemini_service.lookup_company_identifiers')
    def test_nothing_found(self, mock_lookup):
        mock_lookup.return_value = {'vat_number': '', 'tax_code': ''}
        response = self.client.post('/api/v1/customers/autofill/', {'company_name': 'Sconosciuta'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Nessun dato trovato per questa azienda.')

    @mock.patch('gestionale.core.gemini_service.lookup_company_identifiers')
    def test_lookup_failure(self, mock_lookup):
        mock_lookup.side_effect = AssistantError('timeout')
        response = self.client.post('/api/v1/customers/autofill/', {'company_name': 'Mario Rossi SRL'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)

    @override_settings(GEMINI_API_KEY='')
    @mock.patch.dict('os.environ', {'GEMINI_API_KEY': ''})
    def test_not_configured(self):
        response = self.client.post('/api/v1/customers/autofill/', {'company_name': 'Mario Rossi SRL'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)


class ConstructionSiteAPITests(APITestCase):

    def setUp(self):
        super().setUp()
        self.customer = TestDataFactory.create_customer()
        self.product = TestDataFactory.create_product(code='CAV-01', name='Cavo HDMI 2m')

    def test_create_site_with_materials(self):
        data = {
            'name': 'Ristrutturazione Appartamento',
            'address': 'Via Garibaldi 5, Milano',
            'materials': [
                {'text': 'Piastrelle bagno', 'purchased': True},
                {'product': self.product.id, 'quantity': '3'},
            ],
        }
        response = self.client.post(f'/api/v1/customers/{self.customer.id}/sites/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['customer'], self.customer.id)
        self.assertEqual(len(response.data['materials']), 2)
        self.assertEqual(response.data['materials'][1]['product_code'], 'CAV-01')

    def test_list_sites_ordered_by_name(self):
        TestDataFactory.create_site(customer=self.customer, name='Ufficio')
        TestDataFactory.create_site(customer=self.customer, name='Appartamento')
        TestDataFactory.create_site(name='Altro cliente')
        response = self.client.get(f'/api/v1/customers/{self.customer.id}/sites/')
        self.assertEqual([row['name'] for row in response.data], ['Appartamento', 'Ufficio'])

    def test_material_needs_product_or_text(self):
        data = {'name': 'Cantiere', 'materials': [{'text': '  ', 'quantity': '1'}]}
        response = self.client.post(f'/api/v1/customers/{self.customer.id}/sites/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_site_not_found(self):
        response = self.client.get('/api/v1/sites/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Cantiere non trovato')

    def test_update_site_keeps_materials(self):
        site = TestDataFactory.create_site(customer=self.customer)
        TestDataFactory.create_site_material(site, text='Cemento')
        response = self.client.patch(f'/api/v1/sites/{site.id}/', {'name': 'Nuovo nome', 'materials': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Nuovo nome')
        self.assertEqual(len(response.data['materials']), 1)

    def test_replace_materials(self):
        site = TestDataFactory.create_site(customer=self.customer)
        TestDataFactory.create_site_material(site, text='Vecchio')
        data = {'materials': [
            {'text': 'Tegole', 'purchased': False},
            {'product': self.product.id, 'quantity': '2.5', 'purchased': True},
        ]}
        response = self.client.put(f'/api/v1/sites/{site.id}/materials/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        texts = list(SiteMaterial.objects.filter(site=site).values_list('text', 'position'))
        self.assertEqual(texts, [('Tegole', 0), ('', 1)])
        self.assertTrue(AuditLog.objects.filter(action='materials_update', object_id=str(site.id)).exists())

    def test_replace_materials_invalid_keeps_old_list(self):
        site = TestDataFactory.create_site(customer=self.customer)
        TestDataFactory.create_site_material(site, text='Vecchio')
        data = {'materials': [{'text': 'Ok'}, {'quantity': '0'}]}
        response = self.client.put(f'/api/v1/sites/{site.id}/materials/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(list(site.materials.values_list('text', flat=True)), ['Vecchio'])

    def test_deleted_product_leaves_material_without_product(self):
        site = TestDataFactory.create_site(customer=self.customer)
        material = TestDataFactory.create_site_material(site, product=self.product)
        self.product.delete()
        material.refresh_from_db()
        self.assertIsNone(material.product)

    def test_delete_site_with_purchases_blocked(self):
        site = TestDataFactory.create_site(customer=self.customer)
        TestDataFactory.create_purchase(site=site, items=[(self.product, 1)])
        response = self.client.delete(f'/api/v1/sites/{site.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_site(self):
        site = TestDataFactory.create_site(customer=self.customer)
        response = self.client.delete(f'/api/v1/sites/{site.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_checklist_pdf(self):
        site = TestDataFactory.create_site(customer=self.customer, name='Nuova Villetta Nord')
        TestDataFactory.create_site_material(site, product=self.product, purchased=True, position=0)
        TestDataFactory.create_site_material(site, text='Tegole', position=1)
        response = self.client.get(f'/api/v1/sites/{site.id}/checklist/pdf/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertIn('ListaMateriali-Nuova_Villetta_Nord.pdf', response['Content-Disposition'])
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_checklist_pdf_empty(self):
        site = TestDataFactory.create_site(customer=self.customer)
        response = self.client.get(f'/api/v1/sites/{site.id}/checklist/pdf/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.content.startswith(b'%PDF'))
