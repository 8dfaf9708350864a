"""
Test suite for the catalog module
Tests: pricing helpers, product upsert, category and product APIs, supplier document import
"""
from decimal import Decimal
from unittest import mock

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status

from gestionale.core.gemini_service import AssistantError
from gestionale.core.models import AuditLog
from gestionale.core.test_utils import TestDataFactory, APITestCase
from gestionale.catalog import pricing
from gestionale.catalog.importers import (
    DocumentImportError, parse_invoice_xml, normalize_extraction, stage_products,
    MSG_CATEGORIZATION_FAILED, MSG_NO_CATEGORIES,
)
from gestionale.catalog.models import Category, Product, UNCATEGORIZED_NAME
from gestionale.catalog.services import upsert_product, delete_category
from gestionale.purchasing.models import DocumentImport

INVOICE_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<p:FatturaElettronica xmlns:p="http://ivaservizi.agenziaentrate.gov.it/docs/xsd/fatture/v1.2" versione="FPR12">
  <FatturaElettronicaHeader>
    <CedentePrestatore>
      <DatiAnagrafici>
        <Anagrafica><Denominazione>Forniture Elettriche SpA</Denominazione></Anagrafica>
      </DatiAnagrafici>
    </CedentePrestatore>
  </FatturaElettronicaHeader>
  <FatturaElettronicaBody>
    <DatiGenerali>
      <DatiGeneraliDocumento>
        <TipoDocumento>TD01</TipoDocumento>
        <Data>2024-03-15</Data>
      </DatiGeneraliDocumento>
    </DatiGenerali>
    <DatiBeniServizi>
      <DettaglioLinee>
        <NumeroLinea>1</NumeroLinea>
        <CodiceArticolo><CodiceTipo>INTERNO</CodiceTipo><CodiceValore>CAV-25</CodiceValore></CodiceArticolo>
        <Descrizione>Cavo unipolare 2.5mm</Descrizione>
        <Quantita>100.00</Quantita>
        <PrezzoUnitario>0.50</PrezzoUnitario>
      </DettaglioLinee>
      <DettaglioLinee>
        <NumeroLinea>2</NumeroLinea>
        <Descrizione>Scatola derivazione</Descrizione>
        <Quantita>2.50</Quantita>
        <PrezzoUnitario>3.20</PrezzoUnitario>
      </DettaglioLinee>
    </DatiBeniServizi>
  </FatturaElettronicaBody>
</p:FatturaElettronica>
"""

INVOICE_SIGNATURE = 'forniture elettriche spa|2024-03-15|CAV-25:100;N/A:2.5'


def _xml_upload(content=INVOICE_XML, name='fattura.xml'):
    return SimpleUploadedFile(name, content, content_type='text/xml')


class PricingTests(TestCase):

    def test_selling_price_from_margin(self):
        self.assertEqual(pricing.selling_price_from_margin(Decimal('10.00'), Decimal('30')), Decimal('13.00'))
        self.assertEqual(pricing.selling_price_from_margin('5,50', 60), Decimal('8.80'))

    def test_margin_percentage(self):
        self.assertEqual(pricing.margin_percentage(Decimal('8.50'), Decimal('12.75')), Decimal('50.00'))
        self.assertIsNone(pricing.margin_percentage(0, Decimal('5')))

    def test_quantize_rounds_half_up(self):
        self.assertEqual(pricing.quantize_money(Decimal('2.345')), Decimal('2.35'))

    def test_format_quantity(self):
        self.assertEqual(pricing.format_quantity(Decimal('10.000')), '10')
        self.assertEqual(pricing.format_quantity(Decimal('2.500')), '2.5')
        self.assertEqual(pricing.format_quantity(Decimal('100.00')), '100')


class CategoryModelTests(TestCase):

    def test_uncategorized_exists(self):
        category = Category.get_uncategorized()
        self.assertEqual(category.name, UNCATEGORIZED_NAME)
        self.assertTrue(category.is_system)
        self.assertEqual(Category.objects.filter(is_system=True).count(), 1)

    def test_name_taken_case_insensitive(self):
        TestDataFactory.create_category(name='Elettronica')
        self.assertTrue(Category.name_taken(' elettronica '))
        self.assertFalse(Category.name_taken('Illuminazione'))

    def test_delete_category_moves_products(self):
        category = TestDataFactory.create_category()
        product = TestDataFactory.create_product(category=category)
        self.assertEqual(delete_category(category), 1)
        product.refresh_from_db()
        self.assertEqual(product.category, Category.get_uncategorized())


class UpsertProductTests(TestCase):

    def setUp(self):
        self.category = TestDataFactory.create_category(profit_margin=Decimal('30'))

    def test_create_derives_selling_price(self):
        product, created = upsert_product('NEW-1', 'Interruttore', 5, Decimal('10.00'), category=self.category)
        self.assertTrue(created)
        self.assertEqual(product.selling_price, Decimal('13.00'))

    def test_create_without_category_is_uncategorized(self):
        product, _ = upsert_product('NEW-2', 'Presa', 1, Decimal('2.00'))
        self.assertTrue(product.category.is_system)
        self.assertEqual(product.selling_price, Decimal('2.00'))

    def test_merge_adds_stock_and_replaces_prices(self):
        TestDataFactory.create_product(code='CAV-01', name='Cavo', category=self.category,
                                       quantity=Decimal('10'), purchase_price=Decimal('5.00'),
                                       selling_price=Decimal('7.00'))
        product, created = upsert_product('cav-01', 'Cavo HDMI', Decimal('5'), Decimal('6.00'), selling_price=Decimal('9.00'))
        self.assertFalse(created)
        self.assertEqual(Product.objects.filter(code__iexact='cav-01').count(), 1)
        self.assertEqual(product.quantity, Decimal('15'))
        self.assertEqual(product.name, 'Cavo HDMI')
        self.assertEqual(product.purchase_price, Decimal('6.00'))
        self.assertEqual(product.selling_price, Decimal('9.00'))

    def test_merge_keeps_category_when_uncategorized_given(self):
        existing = TestDataFactory.create_product(code='CAV-02', category=self.category)
        product, _ = upsert_product('CAV-02', 'Cavo', 1, Decimal('1.00'), category=Category.get_uncategorized())
        self.assertEqual(product.pk, existing.pk)
        self.assertEqual(product.category, self.category)


class CategoryAPITests(APITestCase):

    def test_list_categories(self):
        TestDataFactory.create_category(name='Abbigliamento')
        response = self.client.get('/api/v1/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [row['name'] for row in response.data]
        self.assertEqual(names, sorted(names))
        self.assertIn(UNCATEGORIZED_NAME, names)

    def test_create_category(self):
        data = {'name': 'Cavi', 'profit_margin': '40.00', 'vat_rate': '22.00'}
        response = self.client.post('/api/v1/categories/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['product_count'], 0)
        self.assertTrue(AuditLog.objects.filter(model_name='Category', action='create').exists())

    def test_create_duplicate_category(self):
        TestDataFactory.create_category(name='Cavi')
        response = self.client.post('/api/v1/categories/', {'name': 'cavi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Categoria già esistente')

    def test_new_category_appears_in_list(self):
        self.client.get('/api/v1/categories/')
        self.client.post('/api/v1/categories/', {'name': 'Illuminazione'}, format='json')
        response = self.client.get('/api/v1/categories/')
        self.assertIn('Illuminazione', [row['name'] for row in response.data])

    def test_system_category_cannot_be_deleted_or_renamed(self):
        system = Category.get_uncategorized()
        response = self.client.delete(f'/api/v1/categories/{system.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.patch(f'/api/v1/categories/{system.id}/', {'name': 'Varie'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_system_category_margin_can_change(self):
        system = Category.get_uncategorized()
        response = self.client.patch(f'/api/v1/categories/{system.id}/', {'profit_margin': '10.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_delete_category_moves_products(self):
        category = TestDataFactory.create_category()
        product = TestDataFactory.create_product(category=category)
        response = self.client.delete(f'/api/v1/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        product.refresh_from_db()
        self.assertTrue(product.category.is_system)

    def test_category_not_found(self):
        response = self.client.get('/api/v1/categories/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ProductAPITests(APITestCase):

    def setUp(self):
        super().setUp()
        self.category = TestDataFactory.create_category(name='Materiale Elettrico', profit_margin=Decimal('30'))

    def test_create_product(self):
        data = {'code': 'INT-01', 'name': 'Interruttore', 'quantity': '5', 'purchase_price': '10.00', 'category': self.category.id}
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['selling_price'], '13.00')
        self.assertEqual(response.data['margin_percentage'], '30.00')
        self.assertEqual(response.data['category_name'], 'Materiale Elettrico')

    def test_create_existing_code_merges(self):
        TestDataFactory.create_product(code='CAV-01', category=self.category, quantity=Decimal('10'))
        data = {'code': 'cav-01', 'name': 'Cavo HDMI 2m', 'quantity': '5', 'purchase_price': '5.50', 'selling_price': '8.80'}
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['quantity']), Decimal('15'))
        self.assertEqual(Product.objects.count(), 1)
        self.assertTrue(AuditLog.objects.filter(action='stock_add').exists())

    def test_create_requires_code(self):
        response = self.client.post('/api/v1/products/', {'code': '  ', 'name': 'Senza codice'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('code', response.data)

    def test_search_matches_every_word(self):
        TestDataFactory.create_product(name='CAVO UNIPOLARE 2.5MM', code='CU-25', category=self.category)
        TestDataFactory.create_product(name='Cavo HDMI', code='HDMI-2', category=self.category)
        response = self.client.get('/api/v1/products/', {'search': 'cavo 2.5'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['code'] for row in response.data], ['CU-25'])

    def test_filter_by_category(self):
        other = TestDataFactory.create_category()
        TestDataFactory.create_product(code='A-1', category=self.category)
        TestDataFactory.create_product(code='B-1', category=other)
        response = self.client.get('/api/v1/products/', {'category': other.id})
        self.assertEqual([row['code'] for row in response.data], ['B-1'])

    def test_update_purchase_price_recomputes_selling_price(self):
        product = TestDataFactory.create_product(category=self.category, purchase_price=Decimal('10.00'), selling_price=Decimal('13.00'))
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'purchase_price': '20.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['selling_price'], '26.00')
        self.assertTrue(AuditLog.objects.filter(action='price_change', object_reference=product.code).exists())

    def test_update_explicit_selling_price_kept(self):
        product = TestDataFactory.create_product(category=self.category, purchase_price=Decimal('10.00'))
        response = self.client.patch(
            f'/api/v1/products/{product.id}/', {'purchase_price': '20.00', 'selling_price': '30.00'}, format='json'
        )
        self.assertEqual(response.data['selling_price'], '30.00')

    def test_update_code_clash(self):
        TestDataFactory.create_product(code='AAA', category=self.category)
        product = TestDataFactory.create_product(code='BBB', category=self.category)
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'code': 'aaa'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_null_category_moves_to_uncategorized(self):
        product = TestDataFactory.create_product(category=self.category)
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'category': None}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['category_name'], UNCATEGORIZED_NAME)

    def test_delete_product(self):
        product = TestDataFactory.create_product(category=self.category)
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=product.pk).exists())

    def test_product_not_found(self):
        response = self.client.get('/api/v1/products/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Prodotto non trovato')


class InvoiceXmlParserTests(TestCase):

    def test_parse_fattura(self):
        result = parse_invoice_xml(INVOICE_XML)
        self.assertEqual(result['supplier'], 'Forniture Elettriche SpA')
        self.assertEqual(result['document_date'], '2024-03-15')
        self.assertEqual(len(result['products']), 2)
        first, second = result['products']
        self.assertEqual(first['code'], 'CAV-25')
        self.assertEqual(first['quantity'], Decimal('100.00'))
        self.assertEqual(first['purchase_price'], Decimal('0.50'))
        self.assertIsNone(second['code'])
        self.assertEqual(second['name'], 'Scatola derivazione')

    def test_supplier_person_name(self):
        content = INVOICE_XML.replace(
            b'<Denominazione>Forniture Elettriche SpA</Denominazione>',
            b'<Nome>Luca</Nome><Cognome>Verdi</Cognome>',
        )
        self.assertEqual(parse_invoice_xml(content)['supplier'], 'Luca Verdi')

    def test_malformed_xml(self):
        with self.assertRaisesMessage(DocumentImportError, 'Errore nel parsing del file XML.'):
            parse_invoice_xml(b'<FatturaElettronica><non chiuso>')

    def test_missing_lines(self):
        content = b'<FatturaElettronica><CedentePrestatore/><DatiGeneraliDocumento><Data>2024-01-01</Data></DatiGeneraliDocumento></FatturaElettronica>'
        with self.assertRaises(DocumentImportError):
            parse_invoice_xml(content)

    def test_normalize_extraction_defaults(self):
        result = normalize_extraction({'prodotti': [{'prodotto': 'Tubo', 'prezzoAcquisto': '2,40'}]})
        self.assertEqual(result['supplier'], 'Sconosciuto')
        self.assertEqual(result['products'][0]['quantity'], Decimal('1'))
        self.assertEqual(result['products'][0]['purchase_price'], Decimal('2.40'))
        self.assertIsNone(result['products'][0]['code'])


class StageProductsTests(TestCase):

    def setUp(self):
        self.category = TestDataFactory.create_category(name='Materiale Elettrico', profit_margin=Decimal('60'))
        self.extracted = parse_invoice_xml(INVOICE_XML)

    @mock.patch('gestionale.core.gemini_service.categorize_products')
    def test_stage_assigns_categories_and_codes(self, mock_categorize):
        mock_categorize.return_value = {'Cavo unipolare 2.5mm': 'materiale elettrico'}
        staged, warnings = stage_products(self.extracted)
        self.assertEqual(warnings, [])
        self.assertEqual(staged[0]['category'], self.category)
        self.assertEqual(staged[0]['selling_price'], Decimal('0.80'))
        self.assertTrue(staged[1]['category'].is_system)
        self.assertEqual(staged[1]['selling_price'], Decimal('0.00'))
        self.assertTrue(staged[1]['code'].startswith('N/D-'))
        self.assertTrue(staged[1]['code'].endswith('-2'))

    @mock.patch('gestionale.core.gemini_service.categorize_products')
    def test_stage_falls_back_when_categorization_fails(self, mock_categorize):
        mock_categorize.side_effect = AssistantError('boom')
        staged, warnings = stage_products(self.extracted)
        self.assertEqual(warnings, [MSG_CATEGORIZATION_FAILED])
        self.assertTrue(all(row['category'].is_system for row in staged))

    @mock.patch('gestionale.core.gemini_service.categorize_products')
    def test_stage_without_categories(self, mock_categorize):
        self.category.delete()
        staged, warnings = stage_products(self.extracted)
        self.assertEqual(warnings, [MSG_NO_CATEGORIES])
        mock_categorize.assert_not_called()


class ProductImportAPITests(APITestCase):

    def setUp(self):
        super().setUp()
        self.category = TestDataFactory.create_category(name='Materiale Elettrico', profit_margin=Decimal('60'))
        patcher = mock.patch('gestionale.core.gemini_service.categorize_products',
                             return_value={'Cavo unipolare 2.5mm': 'Materiale Elettrico'})
        self.mock_categorize = patcher.start()
        self.addCleanup(patcher.stop)

    def test_import_xml_stages_products(self):
        response = self.client.post('/api/v1/products/import/', {'file': _xml_upload()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['supplier'], 'Forniture Elettriche SpA')
        self.assertEqual(response.data['signature'], INVOICE_SIGNATURE)
        self.assertEqual(len(response.data['products']), 2)
        self.assertEqual(response.data['products'][0]['category'], self.category.id)
        self.assertEqual(response.data['products'][0]['selling_price'], '0.80')
        self.assertEqual(Product.objects.count(), 0)

    def test_import_without_file(self):
        response = self.client.post('/api/v1/products/import/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_import_invalid_xml(self):
        response = self.client.post('/api/v1/products/import/', {'file': _xml_upload(b'<rotto')}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Errore nel parsing del file XML.')

    def test_duplicate_document_conflict(self):
        DocumentImport.record(INVOICE_SIGNATURE, supplier='Forniture Elettriche SpA')
        response = self.client.post('/api/v1/products/import/', {'file': _xml_upload()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.mock_categorize.assert_not_called()

        response = self.client.post('/api/v1/products/import/', {'file': _xml_upload(), 'force': 'true'}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    @override_settings(GEMINI_API_KEY='')
    @mock.patch.dict('os.environ', {'GEMINI_API_KEY': ''})
    def test_import_pdf_without_api_key(self):
        upload = SimpleUploadedFile('bolla.pdf', b'%PDF-1.4 test', content_type='application/pdf')
        response = self.client.post('/api/v1/products/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    @mock.patch('gestionale.core.gemini_service.extract_document')
    def test_import_image_uses_extraction(self, mock_extract):
        mock_extract.return_value = {
            'fornitore': 'Ferramenta Bianchi',
            'dataDocumento': '2024-04-02',
            'prodotti': [{'prodotto': 'Cavo unipolare 2.5mm', 'quantita': 3, 'prezzoAcquisto': 1.5}],
        }
        upload = SimpleUploadedFile('bolla.jpg', b'\xff\xd8\xff', content_type='image/jpeg')
        response = self.client.post('/api/v1/products/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['signature'], 'ferramenta bianchi|2024-04-02|N/A:3')
        mock_extract.assert_called_once_with(b'\xff\xd8\xff', 'image/jpeg')

    def test_commit_saves_products_and_records_signature(self):
        data = {
            'signature': INVOICE_SIGNATURE,
            'supplier': 'Forniture Elettriche SpA',
            'document_date': '2024-03-15',
            'products': [
                {'name': 'Cavo unipolare 2.5mm', 'code': 'CAV-25', 'quantity': '100', 'purchase_price': '0.50',
                 'selling_price': '0.80', 'category': self.category.id},
                {'name': '', 'code': 'X', 'quantity': '1', 'purchase_price': '1.00', 'category': self.category.id},
            ],
        }
        response = self.client.post('/api/v1/products/import/commit/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['saved']), 1)
        self.assertEqual(response.data['failed'][0]['index'], 1)
        self.assertTrue(response.data['signature_recorded'])
        self.assertTrue(DocumentImport.exists(INVOICE_SIGNATURE))
        self.assertTrue(AuditLog.objects.filter(action='product_import').exists())

    def test_commit_merges_existing_code(self):
        TestDataFactory.create_product(code='CAV-25', category=self.category, quantity=Decimal('10'))
        data = {'products': [{'name': 'Cavo', 'code': 'cav-25', 'quantity': '5', 'purchase_price': '0.50',
                              'category': self.category.id}]}
        response = self.client.post('/api/v1/products/import/commit/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['signature_recorded'])
        self.assertEqual(Product.objects.get().quantity, Decimal('15'))

    def test_commit_body_must_be_an_object(self):
        data = [{'name': 'Cavo', 'code': 'CAV-25', 'category': self.category.id}]
        response = self.client.post('/api/v1/products/import/commit/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Nessun prodotto da salvare.')
        self.assertFalse(Product.objects.exists())

    def test_commit_nothing_saved(self):
        data = {'signature': 'x|y|z', 'products': [{'name': 'Senza categoria', 'code': 'A'}]}
        response = self.client.post('/api/v1/products/import/commit/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(DocumentImport.exists('x|y|z'))
