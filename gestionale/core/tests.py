"""
Test suite for the core module
Tests: authentication, shop info, audit logs, caching and the Gemini client wrapper
"""
from decimal import Decimal
from unittest import mock

from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework import status

from gestionale.core import gemini_service
from gestionale.core.gemini_service import AssistantError, AssistantNotConfigured
from gestionale.core.model_cache import SHOP_INFO_KEY, CATEGORY_LIST_KEY, get_cached_shop_info, get_cached_category_list
from gestionale.core.models import ShopInfo, AuditLog
from gestionale.core.test_utils import TestDataFactory, AuthenticatedAPIClient, APITestCase
from gestionale.core.utils import create_audit_log, assistant_error_response


class AuthAPITests(TestCase):
    """Test JWT login and the current-user endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='mario', password='segreta123')
        self.client = AuthenticatedAPIClient()

    def test_login_returns_tokens(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'mario', 'password': 'segreta123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'mario', 'password': 'sbagliata'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_token(self):
        login = self.client.post('/api/v1/auth/login/', {'username': 'mario', 'password': 'segreta123'}, format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_login_inactive_user(self):
        self.user.is_active = False
        self.user.save()
        response = self.client.post('/api/v1/auth/login/', {'username': 'mario', 'password': 'segreta123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertNotIn('access', response.data)

    def test_refresh_after_user_deleted(self):
        login = self.client.post('/api/v1/auth/login/', {'username': 'mario', 'password': 'segreta123'}, format='json')
        self.user.delete()
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_with_garbage_token(self):
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'non-un-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'mario')
        self.assertEqual(response.data['groups'], [])


class ShopInfoModelTests(TestCase):

    def test_get_solo_creates_defaults(self):
        shop = ShopInfo.get_solo()
        self.assertEqual(shop.pk, 1)
        self.assertEqual(shop.name, 'ELETTRO-CALORE IMPIANTI')
        self.assertEqual(shop.description, 'VIA ELETTRICA 123, ROMA')
        self.assertEqual(shop.vat_rate, Decimal('22.00'))

    def test_single_row(self):
        ShopInfo.get_solo()
        other = ShopInfo(name='Altro Negozio')
        other.save()
        self.assertEqual(ShopInfo.objects.count(), 1)
        self.assertEqual(ShopInfo.get_solo().name, 'Altro Negozio')

    def test_display_company_name_falls_back_to_name(self):
        shop = ShopInfo.get_solo()
        self.assertEqual(shop.display_company_name, 'ELETTRO-CALORE IMPIANTI')
        shop.company_name = 'Elettro Calore S.r.l.'
        self.assertEqual(shop.display_company_name, 'Elettro Calore S.r.l.')


class ShopInfoAPITests(APITestCase):

    def test_get_shop_info(self):
        response = self.client.get('/api/v1/shop-info/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'ELETTRO-CALORE IMPIANTI')
        self.assertEqual(response.data['vat_rate'], '22.00')

    def test_update_shop_info(self):
        data = {'name': 'Nuovo Negozio', 'description': 'Via Nuova 1, Roma', 'vat_rate': '10.00'}
        response = self.client.put('/api/v1/shop-info/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        shop = ShopInfo.get_solo()
        self.assertEqual(shop.name, 'Nuovo Negozio')
        self.assertEqual(shop.vat_rate, Decimal('10.00'))
        self.assertTrue(AuditLog.objects.filter(model_name='ShopInfo', action='update').exists())

    def test_update_refreshes_cached_copy(self):
        self.client.get('/api/v1/shop-info/')
        self.client.patch('/api/v1/shop-info/', {'name': 'Cambiato'}, format='json')
        response = self.client.get('/api/v1/shop-info/')
        self.assertEqual(response.data['name'], 'Cambiato')

    def test_blank_name_rejected(self):
        response = self.client.patch('/api/v1/shop-info/', {'name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_vat_rate_out_of_range(self):
        response = self.client.patch('/api/v1/shop-info/', {'vat_rate': '150'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ModelCacheTests(TestCase):

    def setUp(self):
        cache.clear()

    def test_shop_info_is_cached(self):
        get_cached_shop_info()
        self.assertIsNotNone(cache.get(SHOP_INFO_KEY))

    def test_shop_info_save_invalidates(self):
        get_cached_shop_info()
        shop = ShopInfo.get_solo()
        shop.name = 'Altro'
        shop.save()
        self.assertIsNone(cache.get(SHOP_INFO_KEY))
        self.assertEqual(get_cached_shop_info()['name'], 'Altro')

    def test_product_save_invalidates_category_list(self):
        category = TestDataFactory.create_category(name='Cavi')
        get_cached_category_list()
        self.assertIsNotNone(cache.get(CATEGORY_LIST_KEY))
        TestDataFactory.create_product(category=category)
        self.assertIsNone(cache.get(CATEGORY_LIST_KEY))
        counts = {row['name']: row['product_count'] for row in get_cached_category_list()}
        self.assertEqual(counts['Cavi'], 1)


class AuditLogTests(APITestCase):

    def test_create_audit_log(self):
        log = create_audit_log(user=self.user, action='create', model_name='Customer', object_id=5, object_name='Rossi')
        self.assertIsNotNone(log)
        self.assertEqual(log.object_id, '5')

    def test_create_audit_log_missing_fields(self):
        self.assertIsNone(create_audit_log(user=self.user, action='create'))

    def test_list_only_own_logs_for_non_staff(self):
        other = TestDataFactory.create_user()
        create_audit_log(user=self.user, action='create', model_name='Customer', object_id=1)
        create_audit_log(user=other, action='create', model_name='Customer', object_id=2)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['object_id'], '1')

    def test_staff_sees_all_and_filters(self):
        staff = TestDataFactory.create_user(is_staff=True)
        self.client.authenticate_user(staff)
        create_audit_log(user=self.user, action='create', model_name='Customer', object_id=1)
        create_audit_log(user=staff, action='delete', model_name='Product', object_id=2)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(len(response.data), 2)
        response = self.client.get('/api/v1/audit-logs/', {'action': 'delete'})
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['model_name'], 'Product')

    def test_date_filters(self):
        create_audit_log(user=self.user, action='create', model_name='Customer', object_id=1)
        response = self.client.get('/api/v1/audit-logs/', {'date_from': '2000-01-01'})
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/audit-logs/', {'date_to': '2000-01-01'})
        self.assertEqual(len(response.data), 0)

    def test_invalid_date_filter(self):
        response = self.client.get('/api/v1/audit-logs/', {'date_from': 'garbage'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date_from', response.data)

    def test_detail_of_other_user_forbidden(self):
        other = TestDataFactory.create_user()
        log = create_audit_log(user=other, action='create', model_name='Customer', object_id=1)
        response = self.client.get(f'/api/v1/audit-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ParseJsonTextTests(TestCase):

    def test_plain_json(self):
        self.assertEqual(gemini_service.parse_json_text('{"piva": "123"}'), {'piva': '123'})

    def test_fenced_json(self):
        text = '```json\n{"piva": "123", "codiceFiscale": ""}\n```'
        self.assertEqual(gemini_service.parse_json_text(text), {'piva': '123', 'codiceFiscale': ''})

    def test_json_inside_prose(self):
        text = 'Ecco i dati richiesti: {"piva": "01234567890"} spero sia utile.'
        self.assertEqual(gemini_service.parse_json_text(text), {'piva': '01234567890'})

    def test_invalid(self):
        with self.assertRaises(AssistantError):
            gemini_service.parse_json_text('nessun dato')


@override_settings(GEMINI_API_KEY='test-key', GEMINI_MODEL='gemini-test')
class GeminiServiceTests(TestCase):

    def _mock_client(self, mock_client_cls, text=None, error=None):
        client = mock_client_cls.return_value
        if error is not None:
            client.models.generate_content.side_effect = error
        else:
            client.models.generate_content.return_value = mock.Mock(text=text)
        return client

    @override_settings(GEMINI_API_KEY='')
    @mock.patch.dict('os.environ', {'GEMINI_API_KEY': ''})
    def test_missing_key(self):
        with self.assertRaises(AssistantNotConfigured):
            gemini_service.get_client()

    @mock.patch('gestionale.core.gemini_service.genai.Client')
    def test_categorize_products(self, mock_client_cls):
        client = self._mock_client(
            mock_client_cls,
            text='[{"prodotto": "Cavo HDMI", "categoria": "Elettronica"}, {"prodotto": "Guanti", "categoria": ""}]',
        )
        result = gemini_service.categorize_products(['Cavo HDMI', 'Guanti'], ['Elettronica'])
        self.assertEqual(result, {'Cavo HDMI': 'Elettronica', 'Guanti': 'Da Assegnare'})
        mock_client_cls.assert_called_once_with(api_key='test-key')
        self.assertEqual(client.models.generate_content.call_args.kwargs['model'], 'gemini-test')

    @mock.patch('gestionale.core.gemini_service.genai.Client')
    def test_categorize_empty_list_skips_call(self, mock_client_cls):
        self.assertEqual(gemini_service.categorize_products([], ['Elettronica']), {})
        mock_client_cls.assert_not_called()

    @mock.patch('gestionale.core.gemini_service.genai.Client')
    def test_lookup_company_identifiers(self, mock_client_cls):
        self._mock_client(mock_client_cls, text='```json\n{"piva": " 12345678901 ", "codiceFiscale": null}\n```')
        result = gemini_service.lookup_company_identifiers('Mario Rossi SRL')
        self.assertEqual(result, {'vat_number': '12345678901', 'tax_code': ''})

    @mock.patch('gestionale.core.gemini_service.genai.Client')
    def test_sdk_error_wrapped(self, mock_client_cls):
        self._mock_client(mock_client_cls, error=RuntimeError('quota exceeded'))
        with self.assertRaises(AssistantError):
            gemini_service.lookup_company_identifiers('Mario Rossi SRL')

    @mock.patch('gestionale.core.gemini_service.genai.Client')
    def test_empty_response_is_error(self, mock_client_cls):
        self._mock_client(mock_client_cls, text='')
        with self.assertRaises(AssistantError):
            gemini_service.extract_document(b'%PDF-1.4', 'application/pdf')

    def test_error_response_mapping(self):
        self.assertEqual(assistant_error_response(AssistantNotConfigured('x'), 'msg').status_code, 503)
        response = assistant_error_response(AssistantError('x'), 'Errore.')
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.data, {'error': 'Errore.'})


class SeedDemoDataCommandTests(TestCase):

    def test_seed_is_repeatable(self):
        from django.core.management import call_command
        from io import StringIO
        from gestionale.catalog.models import Product
        from gestionale.parties.models import Customer, ConstructionSite
        from gestionale.purchasing.models import Purchase
        from gestionale.quotes.models import Quote

        call_command('seed_demo_data', stdout=StringIO())
        call_command('seed_demo_data', stdout=StringIO())

        self.assertEqual(Product.objects.count(), 5)
        self.assertEqual(Customer.objects.count(), 2)
        self.assertEqual(ConstructionSite.objects.count(), 3)
        self.assertEqual(Purchase.objects.count(), 2)
        self.assertEqual(Quote.objects.count(), 2)

        first = Quote.objects.get(quote_number='PREV-2024-001')
        # 15 × 8.80 at 10% + 1 × 58.50 at 22%
        self.assertEqual(first.subtotal, Decimal('190.50'))
        self.assertEqual(first.tax, Decimal('26.07'))
        self.assertEqual(first.total, Decimal('216.57'))
        self.assertEqual(Purchase.objects.get(date='2023-10-15').total, Decimal('110.00'))
